# app/utils/image_type.py
from enum import Enum

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
JPEG_SIGNATURE = b"\xff\xd8\xff"

MIN_SNIFF_LEN = 8


class ImageFormat(str, Enum):
    png = "png"
    jpeg = "jpeg"
    unknown = "unknown"

    @property
    def extension(self) -> str:
        if self is ImageFormat.jpeg:
            return "jpg"
        return self.value


def classify(data: bytes) -> ImageFormat:
    """
    Identify the image format from its leading magic bytes only.
    Filename and declared content type are never consulted.
    """
    if data is None or len(data) < MIN_SNIFF_LEN:
        return ImageFormat.unknown
    if data.startswith(PNG_SIGNATURE):
        return ImageFormat.png
    if data.startswith(JPEG_SIGNATURE):
        return ImageFormat.jpeg
    return ImageFormat.unknown
