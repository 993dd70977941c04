"""
Progressive image resolution: show the first image that loads, then upgrade
to sharper candidates as they arrive.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Protocol, Sequence
from danbooru_explorer.services.errors import ImageLoadError
from danbooru_explorer.services.image_decoder import DecodedImage, pixel_count

logger = logging.getLogger(__name__)


class ImageSource(Protocol):
    async def load(self, url: str) -> DecodedImage: ...


@dataclass(frozen=True)
class ImageState:
    """What a display context currently shows."""

    image: Optional[DecodedImage] = None
    pixel_count: int = 0
    is_loading: bool = False
    error: Optional[Exception] = None


Listener = Callable[[ImageState], None]


class ProgressiveImage:
    """
    A display context for one logical image.

    Candidates are loaded strictly in order. The first success is shown
    right away; a later success replaces it only when it has more pixels.
    Binding new candidates or cancelling supersedes the running load, and
    results of a superseded load are never applied.
    """

    def __init__(self, source: ImageSource, listener: Optional[Listener] = None):
        self.source = source
        self.candidates: List[str] = []
        self.state = ImageState()
        self._listeners: List[Listener] = [listener] if listener else []
        self._generation = 0
        self._task: Optional["asyncio.Task[None]"] = None

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def bind(self, candidates: Sequence[str]) -> "asyncio.Task[None]":
        """
        Start loading a new candidate list, lowest fidelity first.

        Must be called from a running event loop.

        Returns:
            The task running the load
        """
        self.cancel()
        self.candidates = list(candidates)
        self._task = asyncio.create_task(self._run(self._generation))
        return self._task

    def retry(self) -> "asyncio.Task[None]":
        """Run the current candidates again, e.g. after a failure."""
        return self.bind(self.candidates)

    def cancel(self) -> None:
        """Stop the running load; nothing it produces will be shown."""
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _run(self, generation: int) -> None:
        self._apply(generation, ImageState(is_loading=bool(self.candidates)))

        shown = False
        for url in self.candidates:
            if generation != self._generation:
                return
            try:
                image = await self.source.load(url)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.debug("Skipping candidate %s: %s", url, e)
                continue

            pixels = pixel_count(image)
            if not shown:
                shown = True
                self._apply(generation, ImageState(image=image, pixel_count=pixels))
            elif pixels > self.state.pixel_count:
                self._apply(generation, replace(self.state, image=image, pixel_count=pixels))

        if not shown and self.candidates:
            self._apply(generation, ImageState(error=ImageLoadError()))

    def _apply(self, generation: int, state: ImageState) -> None:
        if generation != self._generation:
            return
        self.state = state
        for listener in self._listeners:
            listener(state)
