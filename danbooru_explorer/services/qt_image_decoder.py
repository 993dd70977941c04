"""
Qt decoding backend, for hosts that display images in PySide6 widgets.
"""

from PySide6.QtCore import QByteArray
from PySide6.QtGui import QImage, QPixmap
from danbooru_explorer.services.errors import ImageDecodeError


class QtImage:
    """DecodedImage backed by a QImage."""

    def __init__(self, image: QImage):
        self.image = image

    @property
    def width(self) -> int:
        return self.image.width()

    @property
    def height(self) -> int:
        return self.image.height()

    @property
    def scale(self) -> float:
        return self.image.devicePixelRatio()

    def save(self, path: str) -> None:
        if not self.image.save(path):
            raise OSError(f"Could not write image to {path}")

    def to_pixmap(self) -> QPixmap:
        """Convert for display, needs a running QGuiApplication."""
        return QPixmap.fromImage(self.image)


class QtImageDecoder:
    """Decode images with QImage."""

    def decode(self, data: bytes) -> QtImage:
        image = QImage.fromData(QByteArray(data))
        if image.isNull():
            raise ImageDecodeError("Cannot decode image data")
        return QtImage(image)
