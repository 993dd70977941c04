"""
In-memory and on-disk caches for images.
"""

import hashlib
import logging
import os
import tempfile
import threading
from typing import Generic, Optional, TypeVar
from lru import LRU
from danbooru_explorer.config.constants import (
    BYTES_PER_MEGABYTE,
    DEFAULT_DISK_CACHE_LIMIT_BYTES,
    MEMORY_CACHE_MAX_ENTRIES,
)
from danbooru_explorer.data.database import Database

logger = logging.getLogger(__name__)

I = TypeVar("I")

DISK_CACHE_LIMIT_KEY = "image_cache.max_size_bytes"


class ImageMemoryCache(Generic[I]):
    """
    Process-lifetime cache of decoded images keyed by URL.

    Entries may disappear at any time, callers must handle a miss.
    """

    def __init__(self, max_entries: int = MEMORY_CACHE_MAX_ENTRIES):
        self._cache = LRU(max_entries)
        self._lock = threading.Lock()

    def get(self, url: str) -> Optional[I]:
        with self._lock:
            return self._cache.get(url)

    def set(self, url: str, image: I) -> None:
        with self._lock:
            self._cache[url] = image

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)


class ImageDiskCache:
    """
    Size-bounded cache of raw image bytes keyed by URL.

    Blobs are stored as files named after the SHA-256 of the URL and indexed
    in the cached_images table. After every insert or limit change the least
    recently used entries are evicted until usage fits the limit again.
    """

    def __init__(self, directory: str, db: Database):
        """
        Initialize the disk cache.

        Args:
            directory: Folder holding the cached blobs, created if missing
            db: Database holding the index and the persisted size limit
        """
        os.makedirs(directory, exist_ok=True)
        self.directory = directory
        self.db = db
        self._lock = threading.Lock()
        stored_limit = db.get_setting(DISK_CACHE_LIMIT_KEY)
        self._max_size_bytes = (
            stored_limit if isinstance(stored_limit, int) and stored_limit > 0
            else DEFAULT_DISK_CACHE_LIMIT_BYTES
        )
        self._tick = self._last_tick()

    @staticmethod
    def filename_for(url: str) -> str:
        return hashlib.sha256(url.encode("utf-8")).hexdigest()

    def data_for(self, url: str) -> Optional[bytes]:
        """
        Get the cached bytes of a URL and mark the entry as used.

        Returns:
            Cached bytes or None if not cached
        """
        with self._lock:
            cursor = self.db.get_cursor()
            with self.db.lock:
                cursor.execute("SELECT filename FROM cached_images WHERE url = ?", (url,))
                row = cursor.fetchone()
            if row is None:
                return None

            path = os.path.join(self.directory, row["filename"])
            try:
                with open(path, "rb") as f:
                    data = f.read()
            except FileNotFoundError:
                logger.debug("Cached file for %s disappeared, dropping entry", url)
                self._remove_entry(url, row["filename"])
                return None

            with self.db.lock:
                cursor.execute(
                    "UPDATE cached_images SET last_access = ? WHERE url = ?",
                    (self._next_tick(), url),
                )
                self.db.commit()
            return data

    def store(self, url: str, data: bytes) -> None:
        """
        Cache bytes for a URL, evicting older entries if over the limit.

        Write failures are logged and leave the cache unchanged.
        """
        filename = self.filename_for(url)
        path = os.path.join(self.directory, filename)
        with self._lock:
            try:
                self._write_atomic(path, data)
            except OSError as e:
                logger.warning("Failed to write image cache: %s", e)
                return

            with self.db.lock:
                self.db.get_cursor().execute(
                    "INSERT INTO cached_images (url, filename, size, last_access) "
                    "VALUES (?, ?, ?, ?) "
                    "ON CONFLICT(url) DO UPDATE SET size = excluded.size, "
                    "last_access = excluded.last_access",
                    (url, filename, len(data), self._next_tick()),
                )
                self.db.commit()
            self._enforce_limit()

    def remove(self, url: str) -> None:
        """Drop a single entry, e.g. one that no longer decodes."""
        with self._lock:
            self._remove_entry(url, self.filename_for(url))

    def current_usage_bytes(self) -> int:
        with self._lock:
            return self._usage()

    def limit_in_megabytes(self) -> int:
        with self._lock:
            return max(1, self._max_size_bytes // BYTES_PER_MEGABYTE)

    def update_limit(self, megabytes: int) -> None:
        """
        Change the size limit and persist it.

        Args:
            megabytes: New limit, values below 1 are raised to 1
        """
        with self._lock:
            self._max_size_bytes = max(1, megabytes) * BYTES_PER_MEGABYTE
            self.db.set_setting(DISK_CACHE_LIMIT_KEY, self._max_size_bytes)
            logger.info("Image cache limit set to %s MB", max(1, megabytes))
            self._enforce_limit()

    def clear(self) -> None:
        """Remove every cached entry."""
        with self._lock:
            with self.db.lock:
                self.db.get_cursor().execute("DELETE FROM cached_images")
                self.db.commit()
            for name in os.listdir(self.directory):
                try:
                    os.remove(os.path.join(self.directory, name))
                except OSError as e:
                    logger.warning("Could not remove cached file %s: %s", name, e)

    # Internal helpers, called with self._lock held

    def _usage(self) -> int:
        with self.db.lock:
            cursor = self.db.get_cursor()
            cursor.execute("SELECT COALESCE(SUM(size), 0) AS total FROM cached_images")
            return int(cursor.fetchone()["total"])

    def _enforce_limit(self) -> None:
        total = self._usage()
        if total <= self._max_size_bytes:
            return

        with self.db.lock:
            cursor = self.db.get_cursor()
            cursor.execute(
                "SELECT url, filename, size FROM cached_images ORDER BY last_access ASC"
            )
            rows = cursor.fetchall()

        evicted = 0
        for row in rows:
            if total <= self._max_size_bytes:
                break
            self._remove_entry(row["url"], row["filename"])
            total -= row["size"]
            evicted += 1
        logger.debug("Evicted %s cached images, usage now %s bytes", evicted, total)

    def _remove_entry(self, url: str, filename: str) -> None:
        with self.db.lock:
            self.db.get_cursor().execute("DELETE FROM cached_images WHERE url = ?", (url,))
            self.db.commit()
        try:
            os.remove(os.path.join(self.directory, filename))
        except FileNotFoundError:
            pass

    def _write_atomic(self, path: str, data: bytes) -> None:
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_path, path)
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def _last_tick(self) -> int:
        with self.db.lock:
            cursor = self.db.get_cursor()
            cursor.execute("SELECT COALESCE(MAX(last_access), 0) AS tick FROM cached_images")
            return int(cursor.fetchone()["tick"])

    def _next_tick(self) -> int:
        self._tick += 1
        return self._tick
