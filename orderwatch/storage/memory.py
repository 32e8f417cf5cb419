"""In-memory key-value store with an optional byte quota."""

from __future__ import annotations

from orderwatch.storage.base import KeyValueStore, PersistenceQuotaError


def _size(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class InMemoryKeyValueStore(KeyValueStore):
    """Dict-backed store.

    With ``quota_bytes`` set, the total UTF-8 size of all keys and values is
    capped, mirroring a browser's per-origin storage limit. The size check
    happens before the dict is touched, so a rejected write changes nothing.
    """

    def __init__(self, quota_bytes: int | None = None) -> None:
        self._data: dict[str, str] = {}
        self._quota = quota_bytes
        self._used = 0

    @property
    def used_bytes(self) -> int:
        return self._used

    async def get_item(self, key: str) -> str | None:
        return self._data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        previous = self._data.get(key)
        freed = _size(key, previous) if previous is not None else 0
        required = self._used - freed + _size(key, value)
        if self._quota is not None and required > self._quota:
            raise PersistenceQuotaError(key, required_bytes=required, quota_bytes=self._quota)
        self._data[key] = value
        self._used = required

    async def remove_item(self, key: str) -> None:
        previous = self._data.pop(key, None)
        if previous is not None:
            self._used -= _size(key, previous)

    async def keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self._data if k.startswith(prefix))
