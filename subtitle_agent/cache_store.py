from __future__ import annotations

import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path, PurePosixPath
from typing import Dict, Iterator, Optional

from .config import CacheConfig
from .errors import PersistenceError
from .types import CacheKey, MediaType

logger = logging.getLogger(__name__)


class _KeyLock:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0  # holders and waiters


class CacheStore:
    """Permanent on-disk store of converted captions, laid out by media identity.

    Artifacts are never invalidated: once a file exists at the path derived
    from a key it is served as-is for every later request.
    """

    def __init__(self, config: Optional[CacheConfig] = None):
        self.config = config or CacheConfig()
        self.root = Path(self.config.root)
        self._locks: Dict[CacheKey, _KeyLock] = {}
        self._locks_guard = threading.Lock()

    def relative_path(self, key: CacheKey) -> PurePosixPath:
        if key.media_type is MediaType.MOVIE:
            folder = PurePosixPath("movies", key.media_id)
        else:
            folder = PurePosixPath("series", key.media_id, f"season{key.season}", f"episode{key.episode}")
        return folder / self.config.artifact_name

    def resolve_path(self, key: CacheKey) -> Path:
        return self.root.joinpath(*self.relative_path(key).parts)

    def public_url(self, key: CacheKey) -> str:
        prefix = self.config.url_prefix.rstrip("/")
        return f"{prefix}/{self.relative_path(key)}"

    def exists(self, path: Path) -> bool:
        return path.is_file()

    def lookup(self, key: CacheKey) -> Optional[Path]:
        path = self.resolve_path(key)
        return path if self.exists(path) else None

    def write(self, path: Path, data: str) -> Path:
        """Atomically place ``data`` at ``path``; concurrent writers race safely (last one wins)."""
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
                handle.write(data)
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as exc:
            raise PersistenceError(f"Failed to write caption file {path}: {exc}") from exc
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.warning("Could not remove temporary file %s", tmp_name)
        logger.info("Stored caption at %s", path)
        return path

    @contextmanager
    def key_lock(self, key: CacheKey) -> Iterator[None]:
        """Hold the lock for ``key``; the entry is dropped once no thread holds or waits on it."""
        with self._locks_guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = _KeyLock()
                self._locks[key] = entry
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[key]
