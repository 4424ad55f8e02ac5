# app/services/validator.py
from pathlib import PurePath

from app.core.errors import ConflictingSource, DecodeFailed, EmptyPayload, MissingSource
from app.models.ocr import OcrRequest
from app.utils.helpers import strip_data_url

ALLOWED_UPLOAD_EXTENSIONS = ("jpg", "jpeg", "png")


def is_valid_base64(payload: str | None) -> bool:
    """
    Cheap structural pre-filter: non-empty, length a multiple of 4 and no
    embedded whitespace. The real decode may still fail afterwards.
    """
    if not payload:
        return False
    if len(payload) % 4 != 0:
        return False
    return not any(ch.isspace() for ch in payload)


def is_allowed_image_filename(filename: str | None) -> bool:
    if not filename:
        return False
    suffix = PurePath(filename).suffix.lower().lstrip(".")
    return suffix in ALLOWED_UPLOAD_EXTENSIONS


def validate_request(req: OcrRequest) -> None:
    """Shape checks for JSON requests; performs no I/O."""
    has_url = bool(req.image_url and req.image_url.strip())
    has_inline = bool(req.image_base_64)

    if has_url and has_inline:
        raise ConflictingSource("only one of image_url and image_base_64 may be provided")
    if not has_url and not has_inline:
        raise MissingSource("either image_url or image_base_64 must be provided")
    if has_inline:
        payload = strip_data_url(req.image_base_64)
        if not payload:
            raise EmptyPayload("image_base_64 carries no image data")
        if not is_valid_base64(payload):
            raise DecodeFailed("image_base_64 is not a valid base64 string")
