"""
Service for loading images over the network through the image caches.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Sequence
import requests
from danbooru_explorer.config.constants import (
    IMAGE_HEADERS,
    IMAGE_MAX_ATTEMPTS,
    IMAGE_REQUEST_TIMEOUT,
    IMAGE_RESOURCE_TIMEOUT,
    IMAGE_RETRY_BASE_DELAY,
    MAX_CONNECTIONS_PER_HOST,
    SESSION_HEADERS,
)
from danbooru_explorer.services.danbooru_client import make_session
from danbooru_explorer.services.errors import (
    ImageDecodeError,
    ImageLoadError,
    InvalidResponseError,
    ServerError,
    TransportError,
)
from danbooru_explorer.services.image_cache import ImageDiskCache, ImageMemoryCache
from danbooru_explorer.services.image_decoder import DecodedImage, ImageDecoder

logger = logging.getLogger(__name__)


@dataclass
class _InFlight:
    """A shared fetch and the number of callers awaiting it."""

    task: "asyncio.Task[DecodedImage]"
    waiters: int = 0


class ThrottledImageLoader:
    """
    Rate-limited, retrying image loader.

    Lookups go memory cache, then disk cache, then network. Network fetches
    are capped at max_connections at a time, concurrent loads of the same URL
    share a single fetch, and failed fetches are retried with exponential
    backoff.
    """

    def __init__(
        self,
        memory_cache: ImageMemoryCache,
        disk_cache: Optional[ImageDiskCache],
        decoder: ImageDecoder,
        session: Optional[requests.Session] = None,
        max_attempts: int = IMAGE_MAX_ATTEMPTS,
        retry_base_delay: float = IMAGE_RETRY_BASE_DELAY,
        request_timeout: float = IMAGE_REQUEST_TIMEOUT,
        resource_timeout: float = IMAGE_RESOURCE_TIMEOUT,
        max_connections: int = MAX_CONNECTIONS_PER_HOST,
    ):
        """
        Initialize the loader.

        Args:
            memory_cache: Cache of decoded images
            disk_cache: Cache of raw bytes, None to skip the disk
            decoder: Backend turning bytes into images
            session: Session used for downloads, a pooled one is created if None
            max_attempts: Network attempts per URL
            retry_base_delay: Delay after the first failed attempt, doubled each time
            request_timeout: Timeout in seconds for each connect/read
            resource_timeout: Upper bound in seconds for a whole download
            max_connections: Concurrent downloads allowed
        """
        self.memory_cache = memory_cache
        self.disk_cache = disk_cache
        self.decoder = decoder
        self.session = session or make_session(SESSION_HEADERS, max_connections)
        self.max_attempts = max_attempts
        self.retry_base_delay = retry_base_delay
        self.request_timeout = request_timeout
        self.resource_timeout = resource_timeout
        self._slots = asyncio.Semaphore(max_connections)
        self._in_flight: Dict[str, _InFlight] = {}

    async def load(self, url: str) -> DecodedImage:
        """
        Load and decode the image at url.

        Args:
            url: Absolute image URL

        Returns:
            Decoded image

        Raises:
            The last error seen after all attempts failed, ImageLoadError if
            none was recorded
        """
        cached = self.memory_cache.get(url)
        if cached is not None:
            return cached

        entry = self._in_flight.get(url)
        if entry is None:
            entry = _InFlight(asyncio.create_task(self._load_uncached(url)))
            self._in_flight[url] = entry
            entry.task.add_done_callback(lambda task: self._finished(url, entry))

        entry.waiters += 1
        try:
            # A caller going away must not cancel the fetch other callers wait on
            return await asyncio.shield(entry.task)
        finally:
            entry.waiters -= 1
            if entry.waiters == 0 and not entry.task.done():
                logger.debug("No one waits for %s any more, cancelling fetch", url)
                entry.task.cancel()
                self._drop_in_flight(url, entry)

    @property
    def in_flight_count(self) -> int:
        """Number of URLs currently being fetched."""
        return len(self._in_flight)

    async def load_candidates(self, candidates: Sequence[str]) -> DecodedImage:
        """
        Load the first candidate URL that succeeds.

        Raises:
            ImageLoadError: If every candidate failed
        """
        for url in candidates:
            try:
                return await self.load(url)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.debug("Candidate %s failed: %s", url, e)
                continue
        raise ImageLoadError()

    def _finished(self, url: str, entry: "_InFlight") -> None:
        self._drop_in_flight(url, entry)
        if not entry.task.cancelled() and entry.task.exception() is not None:
            logger.debug("Fetch of %s failed: %s", url, entry.task.exception())

    def _drop_in_flight(self, url: str, entry: "_InFlight") -> None:
        if self._in_flight.get(url) is entry:
            del self._in_flight[url]

    async def _load_uncached(self, url: str) -> DecodedImage:
        image = await self._load_from_disk(url)
        if image is not None:
            return image

        last_error: Optional[Exception] = None
        for attempt in range(self.max_attempts):
            try:
                data = await self._download(url)
                image = await asyncio.to_thread(self.decoder.decode, data)
            except (ImageDecodeError, InvalidResponseError, ServerError, TransportError) as e:
                last_error = e
                logger.error(
                    "Image load error (attempt %s) for %s: %s", attempt + 1, url, e
                )
                if attempt < self.max_attempts - 1:
                    await asyncio.sleep(self.retry_base_delay * 2 ** attempt)
                continue

            self.memory_cache.set(url, image)
            if self.disk_cache is not None:
                await asyncio.to_thread(self.disk_cache.store, url, data)
            logger.debug("Loaded image from network: %s", url)
            return image

        raise last_error or ImageLoadError()

    async def _load_from_disk(self, url: str) -> Optional[DecodedImage]:
        if self.disk_cache is None:
            return None
        data = await asyncio.to_thread(self.disk_cache.data_for, url)
        if data is None:
            return None
        try:
            image = await asyncio.to_thread(self.decoder.decode, data)
        except ImageDecodeError:
            logger.debug("Disk cache entry failed to decode for %s", url)
            await asyncio.to_thread(self.disk_cache.remove, url)
            return None
        self.memory_cache.set(url, image)
        logger.debug("Loaded image from disk cache: %s", url)
        return image

    async def _download(self, url: str) -> bytes:
        async with self._slots:
            try:
                response = await asyncio.wait_for(
                    asyncio.to_thread(self._get, url), timeout=self.resource_timeout
                )
            except asyncio.TimeoutError as e:
                raise TransportError(e) from e

        if not isinstance(response, requests.Response):
            raise InvalidResponseError()
        if not 200 <= response.status_code < 300:
            raise ServerError(response.status_code)
        return response.content

    def _get(self, url: str) -> requests.Response:
        """Blocking download, run in a worker thread."""
        try:
            return self.session.get(
                url, headers=dict(IMAGE_HEADERS), timeout=self.request_timeout
            )
        except requests.RequestException as e:
            raise TransportError(e) from e
