# app/core/errors.py
"""
Failure kinds raised along the ingestion pipeline.

Every kind is caught at the request boundary and rendered into the same
generic failure envelope; clients only ever see ``str(exc)``.
"""


class OcrServiceError(Exception):
    """Base class for all recoverable request failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class MissingSource(OcrServiceError):
    pass


class ConflictingSource(OcrServiceError):
    pass


class DecodeFailed(OcrServiceError):
    pass


class EmptyPayload(OcrServiceError):
    pass


class UnsupportedFormat(OcrServiceError):
    pass


class PayloadTooLarge(OcrServiceError):
    pass


class FetchFailed(OcrServiceError):
    """Download failed; ``status`` is set only for non-2xx responses."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class FetchTimeout(FetchFailed):
    pass


class StorageFailure(OcrServiceError):
    pass


class RecognitionFailed(OcrServiceError):
    pass
