"""
Durable JSON store backend.

Whole-document read/modify/write over a single JSON file:
- writes go to a temp file in the same directory and are renamed over the
  destination, so readers never see a half-written file
- reads fail open: a missing, unparseable or wrongly shaped file yields the
  caller's fallback instead of raising
- callers touching the same path are serialized through a per-path
  asyncio.Lock (FIFO), owned by the backend instance

Locks are process-local. Two processes writing the same file (e.g. the
gateway and the admin CLI at the same instant) are not coordinated.
"""

import asyncio
import copy
import json
import os
import secrets
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable, Generic, Literal, TypeVar

from loguru import logger

from lainclaw.pairing.errors import PairingStorageError
from lainclaw.utils.helpers import ensure_dir

T = TypeVar("T")
R = TypeVar("R")

ReadStatus = Literal["ok", "missing", "corrupt"]


@dataclass
class ReadResult(Generic[T]):
    """Value read from disk plus how it was obtained."""
    value: T
    status: ReadStatus
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


def _normalize_path(path: Path | str) -> str:
    return os.path.normcase(str(Path(path).expanduser().resolve()))


def _read_sync(path: Path, fallback: Any) -> ReadResult:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return ReadResult(copy.deepcopy(fallback), "missing")
    except (OSError, UnicodeDecodeError) as e:
        return ReadResult(copy.deepcopy(fallback), "corrupt", str(e))

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        return ReadResult(copy.deepcopy(fallback), "corrupt", f"invalid JSON: {e}")

    if fallback is not None and not isinstance(parsed, type(fallback)):
        return ReadResult(
            copy.deepcopy(fallback),
            "corrupt",
            f"expected {type(fallback).__name__}, got {type(parsed).__name__}",
        )
    return ReadResult(parsed, "ok")


def _write_sync(path: Path, value: Any) -> None:
    tmp_path = path.with_name(f"{path.name}.{secrets.token_hex(4)}.tmp")
    try:
        ensure_dir(path.parent)
        tmp_path.write_text(json.dumps(value, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
        tmp_path.chmod(0o600)
        os.replace(tmp_path, path)
    except OSError as e:
        try:
            tmp_path.unlink(missing_ok=True)
        except OSError:
            logger.debug(f"Could not remove temp file {tmp_path}")
        raise PairingStorageError(f"Failed to write {path}: {e}") from e


class JsonFileBackend:
    """Atomic JSON persistence with per-path write serialization."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def locked(self, path: Path | str) -> AsyncIterator[None]:
        """Hold the exclusive lock for `path` for the duration of the block."""
        key = _normalize_path(path)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    async def with_lock(self, path: Path | str, fn: Callable[[], Awaitable[R]]) -> R:
        """Run `fn` while holding the lock for `path`. Calls queue in FIFO order."""
        async with self.locked(path):
            return await fn()

    async def ensure_initialized(self, path: Path | str, default: Any) -> bool:
        """Create the file with `default` content if it does not exist.

        Returns True if the file was created.
        """
        path = Path(path).expanduser()
        if await asyncio.to_thread(path.exists):
            return False
        await self.write(path, default)
        logger.debug(f"Initialized state file {path}")
        return True

    async def read(self, path: Path | str, fallback: T) -> ReadResult[T]:
        """Read and parse `path`, falling back to `fallback` on any failure.

        Missing files are expected and silent; corrupt ones are logged.
        """
        path = Path(path).expanduser()
        result = await asyncio.to_thread(_read_sync, path, fallback)
        if result.status == "corrupt":
            logger.warning(f"Ignoring unreadable state file {path}: {result.error}")
        return result

    async def write(self, path: Path | str, value: Any) -> None:
        """Atomically replace `path` with the JSON encoding of `value`."""
        path = Path(path).expanduser()
        await asyncio.to_thread(_write_sync, path, value)

    async def update(
        self,
        path: Path | str,
        fallback: T,
        mutate: Callable[[T], tuple[T | None, R]],
    ) -> R:
        """Locked read-modify-write.

        `mutate` receives the freshest on-disk value and returns
        `(new_value, result)`; `new_value` of None means nothing to persist.
        """
        async with self.locked(path):
            await self.ensure_initialized(path, fallback)
            current = await self.read(path, fallback)
            new_value, result = mutate(current.value)
            if new_value is not None:
                await self.write(path, new_value)
            return result
