"""File-backed cache of rendered plan images.

The index maps cache keys to entries describing a file on disk; image
bytes are never held in memory. Entry lifecycle::

    ABSENT -> PRESENT (store) -> EXPIRED (ttl elapsed / file missing) -> ABSENT (cleanup)

The index is the only state shared between requests. It is guarded by one
lock; per-key locks serialise renders of the same key.
"""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional

from .config import PipelineConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """Index record for one persisted artifact."""
    key: str
    artifact_path: Path
    width: int
    height: int
    created_at: float

    def is_expired(self, now: float, ttl_seconds: float) -> bool:
        return now - self.created_at > ttl_seconds


class KeyLocks:
    """One lock per key, dropped again once nobody holds or waits for it."""

    def __init__(self):
        self._guard = threading.Lock()
        self._slots: Dict[str, list] = {}  # key -> [lock, users]

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            slot = self._slots.setdefault(key, [threading.Lock(), 0])
            slot[1] += 1
        slot[0].acquire()
        try:
            yield
        finally:
            slot[0].release()
            with self._guard:
                slot[1] -= 1
                if slot[1] == 0:
                    del self._slots[key]

    def is_busy(self, key: str) -> bool:
        with self._guard:
            return key in self._slots


_HEX_DIGITS = frozenset("0123456789abcdef")


def _is_key(name: str) -> bool:
    return len(name) == 64 and set(name) <= _HEX_DIGITS


def _delete_file(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Could not delete cached artifact %s: %s", path, exc)


class ArtifactCache:
    """Key -> artifact path index with TTL expiry and a size cap."""

    def __init__(
        self,
        cache_dir: Path,
        ttl_seconds: float,
        enabled: bool = True,
        max_entries: int = 50,
        clock: Callable[[], float] = time.time,
    ):
        self.cache_dir = Path(cache_dir)
        self.ttl_seconds = ttl_seconds
        self.enabled = enabled
        self.max_entries = max_entries
        self._clock = clock
        self._index: Dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self._key_locks = KeyLocks()

        if self.enabled:
            logger.info(
                "Artifact cache enabled: dir=%s ttl=%ss max_entries=%d",
                self.cache_dir, ttl_seconds, max_entries,
            )
        else:
            logger.info("Artifact cache disabled")

    @classmethod
    def from_config(cls, config: PipelineConfig, clock: Callable[[], float] = time.time) -> "ArtifactCache":
        return cls(
            cache_dir=config.cache_dir,
            ttl_seconds=config.cache_ttl_seconds,
            enabled=config.cache_enabled,
            max_entries=config.cache_max_entries,
            clock=clock,
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._index)

    def is_cache_enabled(self) -> bool:
        return self.enabled

    def artifact_path_for(self, key: str, extension: str) -> Path:
        """Stable file location for a key."""
        return self.cache_dir / f"{key}.{extension}"

    def key_lock(self, key: str):
        """Context manager giving exclusive use of ``key`` to one render."""
        return self._key_locks.hold(key)

    def get_entry(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._index.get(key)

    def lookup(self, key: str, extension: Optional[str] = None) -> Optional[Path]:
        """
        Path of a live artifact for ``key``, or None on a miss.

        Misses: cache disabled, no entry, entry past its TTL, an artifact
        in another format than ``extension``, or the file behind the entry
        is gone (the stale entry is dropped).
        """
        if not self.enabled:
            return None

        with self._lock:
            entry = self._index.get(key)
            if entry is None:
                logger.debug("Cache miss: %s", key)
                return None
            if entry.is_expired(self._clock(), self.ttl_seconds):
                logger.debug("Cache entry expired: %s", key)
                return None
            if extension is not None and entry.artifact_path.suffix != f".{extension}":
                logger.debug("Cached %s is not a .%s artifact", entry.artifact_path.name, extension)
                return None
            if not entry.artifact_path.is_file():
                logger.info("Cached artifact vanished, dropping entry: %s", entry.artifact_path)
                del self._index[key]
                return None
            logger.info(
                "Cache hit: %s (%dx%d) -> %s", key, entry.width, entry.height, entry.artifact_path
            )
            return entry.artifact_path

    def store(self, key: str, path: Path, width: int, height: int) -> Optional[CacheEntry]:
        """
        Register a persisted artifact under ``key``.

        Overwriting an entry deletes the superseded file when it lives at a
        different path. Does nothing when the cache is disabled.
        """
        if not self.enabled:
            return None

        path = Path(path)
        with self._lock:
            previous = self._index.get(key)
            if previous is not None and previous.artifact_path != path:
                _delete_file(previous.artifact_path)

            entry = CacheEntry(key=key, artifact_path=path, width=width, height=height,
                               created_at=self._clock())
            self._index[key] = entry
            logger.info("Cached %s -> %s", key, path)

            if len(self._index) > self.max_entries:
                self._evict_oldest(keep=key)
        return entry

    def cleanup(self) -> int:
        """
        Remove expired or stale entries together with their files.

        Keys currently being rendered are left for the next sweep.

        Returns:
            Number of entries removed
        """
        if not self.enabled:
            return 0

        with self._lock:
            now = self._clock()
            doomed: List[CacheEntry] = []
            for key, entry in self._index.items():
                if self._key_locks.is_busy(key):
                    continue
                if entry.is_expired(now, self.ttl_seconds) or not entry.artifact_path.is_file():
                    doomed.append(entry)

            for entry in doomed:
                _delete_file(entry.artifact_path)
                del self._index[entry.key]

            removed = len(doomed)
            if len(self._index) > self.max_entries:
                removed += self._evict_oldest()

        if removed:
            logger.info("Cache cleanup removed %d entries", removed)
        return removed

    def load_existing(self, extension: str) -> int:
        """
        Index ``.<extension>`` artifacts left in ``cache_dir`` by an earlier
        process. Files of other formats are left alone.

        Entries are aged by file modification time; their dimensions are
        unknown and recorded as 0.
        """
        if not self.enabled or not self.cache_dir.is_dir():
            return 0

        loaded = 0
        with self._lock:
            for path in sorted(self.cache_dir.glob(f"*.{extension}")):
                key = path.stem
                if not path.is_file() or not _is_key(key) or key in self._index:
                    continue
                self._index[key] = CacheEntry(key=key, artifact_path=path, width=0, height=0,
                                              created_at=path.stat().st_mtime)
                loaded += 1
            if len(self._index) > self.max_entries:
                self._evict_oldest()

        logger.info("Indexed %d existing artifacts from %s", loaded, self.cache_dir)
        return loaded

    def clear(self) -> None:
        """Drop every entry and its file."""
        with self._lock:
            for entry in self._index.values():
                _delete_file(entry.artifact_path)
            self._index.clear()

    def _evict_oldest(self, keep: Optional[str] = None) -> int:
        """Trim the index to ``max_entries``, oldest first. Caller holds the lock."""
        overflow = len(self._index) - self.max_entries
        if overflow <= 0:
            return 0

        candidates = sorted(
            (e for e in self._index.values()
             if e.key != keep and not self._key_locks.is_busy(e.key)),
            key=lambda e: e.created_at,
        )
        evicted = candidates[:overflow]
        for entry in evicted:
            _delete_file(entry.artifact_path)
            del self._index[entry.key]
        if evicted:
            logger.info("Cache size limit %d: evicted %d oldest entries", self.max_entries, len(evicted))
        return len(evicted)


class CleanupScheduler:
    """Runs ``cache.cleanup()`` every ``interval`` seconds on a daemon thread."""

    def __init__(self, cache: ArtifactCache, interval: float):
        self.cache = cache
        self.interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="artifact-cache-cleanup", daemon=True
        )
        self._thread.start()
        logger.debug("Cache cleanup scheduled every %ss", self.interval)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.cache.cleanup()
            except OSError:
                logger.exception("Cache cleanup sweep failed")

    def __enter__(self) -> "CleanupScheduler":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()
