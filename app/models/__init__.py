# app/models/__init__.py

from .ocr import (
    BoxPoint,
    ImageArtifact,
    OcrRequest,
    RecognitionResult,
    ResponseEnvelope,
    TextBlock,
)

__all__ = [
    "BoxPoint",
    "ImageArtifact",
    "OcrRequest",
    "RecognitionResult",
    "ResponseEnvelope",
    "TextBlock",
]
