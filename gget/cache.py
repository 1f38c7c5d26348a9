"""Two-level cache: an in-memory TTL cache in front of JSON entries on disk."""

from __future__ import annotations

import abc
import asyncio
import contextlib
import hashlib
import json
import os
import time
from dataclasses import asdict, dataclass
from datetime import timedelta
from pathlib import Path

from cachetools import TTLCache

CLEANUP_INTERVAL = 3600.0


class CacheError(Exception):
    """Raised when a cache entry cannot be read, written or decoded."""


def _seconds(ttl: float | timedelta) -> float:
    if isinstance(ttl, timedelta):
        return ttl.total_seconds()
    return float(ttl)


def _now_ts() -> int:
    return int(time.time())


def _is_u64(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


@dataclass
class CacheEntry:
    """A value stored on disk with its creation time and lifetime, in seconds."""

    content: str
    timestamp: int
    ttl: int

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, data: str) -> CacheEntry:
        try:
            raw = json.loads(data)
        except ValueError as exc:
            raise CacheError(f"JSON serialization/deserialization error: {exc}") from exc
        if not isinstance(raw, dict):
            raise CacheError("JSON serialization/deserialization error: expected an object")
        try:
            content, timestamp, ttl = raw["content"], raw["timestamp"], raw["ttl"]
        except KeyError as exc:
            raise CacheError(
                f"JSON serialization/deserialization error: missing field {exc}"
            ) from exc
        if not isinstance(content, str) or not _is_u64(timestamp) or not _is_u64(ttl):
            raise CacheError("JSON serialization/deserialization error: invalid field type")
        return cls(content=content, timestamp=timestamp, ttl=ttl)

    def expires_at(self) -> int:
        return self.timestamp + self.ttl


class AsyncStorage(abc.ABC):
    """Asynchronous key/value storage."""

    @abc.abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the stored value, or None when absent or expired."""

    @abc.abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store a value under a key."""

    @abc.abstractmethod
    async def cleanup(self) -> None:
        """Remove expired entries."""


class DiskStorage(AsyncStorage):
    """JSON files on disk, sharded into subdirectories by key hash."""

    def __init__(self, cache_dir: str | os.PathLike[str], ttl: float | timedelta) -> None:
        self.cache_dir = Path(cache_dir)
        self.default_ttl = int(_seconds(ttl))
        self._lock = asyncio.Lock()

    def entry_path(self, key: str) -> Path:
        """Return the file that holds the entry for a key."""
        digest = hashlib.blake2b(key.encode("utf-8"), digest_size=32).hexdigest()
        return self.cache_dir / digest[:2] / f"{digest}.json"

    async def get(self, key: str) -> str | None:
        return await asyncio.to_thread(self._get_sync, key)

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._set_sync, key, value)

    async def cleanup(self) -> None:
        async with self._lock:
            await asyncio.to_thread(self._cleanup_sync)

    def _get_sync(self, key: str) -> str | None:
        path = self.entry_path(key)
        if not path.exists():
            return None
        try:
            data = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise CacheError(f"IO error: {exc}") from exc
        entry = CacheEntry.from_json(data)
        if _now_ts() >= entry.expires_at():
            try:
                path.unlink()
            except OSError as exc:
                raise CacheError(f"IO error: {exc}") from exc
            return None
        return entry.content

    def _set_sync(self, key: str, value: str) -> None:
        path = self.entry_path(key)
        entry = CacheEntry(content=value, timestamp=_now_ts(), ttl=self.default_ttl)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(entry.to_json(), encoding="utf-8")
        except OSError as exc:
            raise CacheError(f"IO error: {exc}") from exc

    def _cleanup_sync(self) -> None:
        now = _now_ts()
        try:
            with os.scandir(self.cache_dir) as it:
                subdirs = [entry.path for entry in it]
            for subdir in subdirs:
                with os.scandir(subdir) as it:
                    files = [Path(entry.path) for entry in it]
                for path in files:
                    try:
                        entry = CacheEntry.from_json(path.read_text(encoding="utf-8"))
                    except (OSError, UnicodeDecodeError, CacheError):
                        continue
                    if now > entry.expires_at():
                        with contextlib.suppress(OSError):
                            path.unlink()
        except OSError as exc:
            raise CacheError(f"IO error: {exc}") from exc


class HybridCache:
    """Memory cache backed by disk storage, with hourly cleanup of expired files."""

    def __init__(
        self,
        cache_dir: str | os.PathLike[str],
        ttl: float | timedelta,
        max_in_mem: int,
    ) -> None:
        self.storage = DiskStorage(cache_dir, ttl)
        self._mem: TTLCache | None = (
            TTLCache(maxsize=max_in_mem, ttl=_seconds(ttl)) if max_in_mem > 0 else None
        )
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._cleanup_task: asyncio.Task | None = None
        else:
            self._cleanup_task = loop.create_task(self._periodic_cleanup())

    async def _periodic_cleanup(self) -> None:
        while True:
            with contextlib.suppress(CacheError):
                await self.storage.cleanup()
            await asyncio.sleep(CLEANUP_INTERVAL)

    async def get(self, key: str) -> str | None:
        if self._mem is not None:
            value = self._mem.get(key)
            if value is not None:
                return value
        value = await self.storage.get(key)
        if value is not None and self._mem is not None:
            self._mem[key] = value
        return value

    async def set(self, key: str, value: str) -> None:
        await self.storage.set(key, value)
        if self._mem is not None:
            self._mem[key] = value

    def close(self) -> None:
        """Stop the background cleanup task."""
        if self._cleanup_task is not None and not self._cleanup_task.done():
            self._cleanup_task.cancel()

    async def __aenter__(self) -> HybridCache:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        task = self._cleanup_task
        self.close()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task