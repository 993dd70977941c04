"""
Decoding of downloaded image bytes.

The rest of the image pipeline only relies on the DecodedImage protocol, so
the decoding backend can be swapped: Pillow for headless use, Qt when the
images end up in a PySide6 widget.
"""

import io
from typing import Protocol
from PIL import Image, UnidentifiedImageError
from danbooru_explorer.services.errors import ImageDecodeError


class DecodedImage(Protocol):
    """A decoded bitmap."""

    @property
    def width(self) -> int: ...

    @property
    def height(self) -> int: ...

    @property
    def scale(self) -> float: ...

    def save(self, path: str) -> None:
        """Write the image to a file, format taken from the extension."""
        ...


class ImageDecoder(Protocol):
    def decode(self, data: bytes) -> DecodedImage:
        """
        Decode raw bytes.

        Raises:
            ImageDecodeError: If the bytes are not a supported image
        """
        ...


def pixel_count(image: DecodedImage) -> int:
    """Get the scale-adjusted number of pixels of an image, at least 1."""
    return max(1, int(image.width * image.scale) * int(image.height * image.scale))


class PillowImage:
    """DecodedImage backed by a Pillow image."""

    def __init__(self, image: Image.Image, scale: float = 1.0):
        self.image = image
        self._scale = scale

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def scale(self) -> float:
        return self._scale

    def save(self, path: str) -> None:
        self.image.save(path)

    def __repr__(self) -> str:
        return f"<PillowImage {self.width}x{self.height} {self.image.mode}>"


class PillowImageDecoder:
    """Decode images with Pillow."""

    def decode(self, data: bytes) -> PillowImage:
        try:
            image = Image.open(io.BytesIO(data))
            # Force the full decode so truncated files fail here
            image.load()
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise ImageDecodeError(f"Cannot decode image data: {e}") from e
        return PillowImage(image)
