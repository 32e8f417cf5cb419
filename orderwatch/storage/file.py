"""File-backed key-value store.

One file per key under a directory. Writes go to a temporary file in the
same directory which is then renamed over the target with ``os.replace``,
so readers only ever see the previous or the new complete value.
"""

from __future__ import annotations

import asyncio
import errno
import os
import tempfile
from pathlib import Path
from urllib.parse import quote, unquote

import structlog

from orderwatch.storage.base import KeyValueStore, PersistenceQuotaError

_log = structlog.get_logger(component="storage.file")

_SUFFIX = ".json"
_TMP_PREFIX = ".tmp-"
_CAPACITY_ERRNOS = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)}


class FileKeyValueStore(KeyValueStore):
    """Stores each key as ``<directory>/<escaped key>.json``.

    Args:
        directory:   Directory to hold the files; created on first write.
        quota_bytes: Optional cap on the total size of stored values.
    """

    def __init__(self, directory: str | Path, quota_bytes: int | None = None) -> None:
        self._dir = Path(directory)
        self._quota = quota_bytes

    @property
    def directory(self) -> Path:
        return self._dir

    def _path(self, key: str) -> Path:
        return self._dir / f"{quote(key, safe='')}{_SUFFIX}"

    async def get_item(self, key: str) -> str | None:
        return await asyncio.to_thread(self._read, key)

    async def set_item(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._write, key, value)

    async def remove_item(self, key: str) -> None:
        await asyncio.to_thread(self._remove, key)

    async def keys(self, prefix: str = "") -> list[str]:
        return await asyncio.to_thread(self._keys, prefix)

    def _read(self, key: str) -> str | None:
        try:
            raw = self._path(key).read_bytes()
        except FileNotFoundError:
            return None
        return raw.decode("utf-8")

    def _write(self, key: str, value: str) -> None:
        encoded = value.encode("utf-8")
        if self._quota is not None:
            required = self._used_bytes(excluding=key) + len(encoded)
            if required > self._quota:
                raise PersistenceQuotaError(key, required_bytes=required, quota_bytes=self._quota)

        self._dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=_TMP_PREFIX, dir=self._dir)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(encoded)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self._path(key))
        except OSError as exc:
            _discard(tmp_name)
            if exc.errno in _CAPACITY_ERRNOS:
                raise PersistenceQuotaError(key) from exc
            raise
        except BaseException:
            _discard(tmp_name)
            raise

    def _remove(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass

    def _keys(self, prefix: str) -> list[str]:
        if not self._dir.is_dir():
            return []
        found = []
        for path in self._dir.iterdir():
            if path.name.startswith(_TMP_PREFIX) or not path.name.endswith(_SUFFIX):
                continue
            key = unquote(path.name[: -len(_SUFFIX)])
            if key.startswith(prefix):
                found.append(key)
        return sorted(found)

    def _used_bytes(self, excluding: str) -> int:
        if not self._dir.is_dir():
            return 0
        skip = self._path(excluding).name
        total = 0
        for path in self._dir.iterdir():
            if path.name == skip or path.name.startswith(_TMP_PREFIX):
                continue
            if path.name.endswith(_SUFFIX):
                total += path.stat().st_size
        return total


def _discard(tmp_name: str) -> None:
    try:
        os.unlink(tmp_name)
    except FileNotFoundError:
        pass
    except OSError as exc:
        _log.warning("temp_file_cleanup_failed", path=tmp_name, error=str(exc))
