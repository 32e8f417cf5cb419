"""Key-value storage contract for history persistence.

The store holds opaque strings. Every implementation must provide atomic
single-key writes: when ``set_item`` fails, the previous value for that key
is left untouched.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class PersistenceQuotaError(Exception):
    """Raised when a write is rejected because storage capacity is exhausted."""

    def __init__(self, key: str, required_bytes: int | None = None, quota_bytes: int | None = None) -> None:
        detail = ""
        if required_bytes is not None and quota_bytes is not None:
            detail = f" ({required_bytes} bytes needed, quota {quota_bytes})"
        super().__init__(f"Storage quota exceeded writing '{key}'{detail}")
        self.key = key
        self.required_bytes = required_bytes
        self.quota_bytes = quota_bytes


class KeyValueStore(ABC):
    """Abstract async string store."""

    @abstractmethod
    async def get_item(self, key: str) -> str | None:
        """Return the value stored under *key*, or None.

        Raises:
            UnicodeDecodeError: the stored bytes are not valid UTF-8.
        """

    @abstractmethod
    async def set_item(self, key: str, value: str) -> None:
        """Store *value* under *key*.

        Raises:
            PersistenceQuotaError: the store has no room for the value.
        """

    @abstractmethod
    async def remove_item(self, key: str) -> None:
        """Delete *key*. Missing keys are ignored."""

    @abstractmethod
    async def keys(self, prefix: str = "") -> list[str]:
        """Return all stored keys starting with *prefix*, sorted."""
