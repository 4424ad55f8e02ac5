# app/services/sources.py
"""
Turn each kind of client-supplied image (URL, inline base64, multipart
upload) into a leased ``ImageArtifact`` in the content store.
"""
from __future__ import annotations

import base64
import binascii
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from typing import BinaryIO

import requests

from app.core.errors import (
    DecodeFailed,
    EmptyPayload,
    FetchFailed,
    FetchTimeout,
    MissingSource,
    PayloadTooLarge,
    StorageFailure,
    UnsupportedFormat,
)
from app.core.logger import get_logger
from app.models.ocr import ImageArtifact
from app.services.store import ContentStore
from app.services.validator import ALLOWED_UPLOAD_EXTENSIONS, is_allowed_image_filename
from app.utils.helpers import strip_data_url

logger = get_logger("sources")

CHUNK_SIZE = 64 * 1024


def decode_inline(payload: str | None) -> bytes:
    if not payload:
        raise EmptyPayload("image_base_64 must not be empty")
    try:
        data = base64.b64decode(strip_data_url(payload), validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeFailed(f"failed to decode base64 image: {e}") from e
    if not data:
        raise EmptyPayload("decoded image is empty")
    return data


def resolve_inline(store: ContentStore, payload: str | None) -> ImageArtifact:
    return store.materialize(decode_inline(payload))


def _download(url: str, max_bytes: int, timeout: float, deadline: float) -> bytes:
    max_mb = max(1, max_bytes // (1024 * 1024))
    try:
        with requests.get(url, stream=True, timeout=timeout) as resp:
            if not 200 <= resp.status_code < 300:
                raise FetchFailed(
                    f"image download failed with HTTP status {resp.status_code}",
                    status=resp.status_code,
                )

            declared = resp.headers.get("Content-Length")
            if declared and declared.isdigit() and int(declared) > max_bytes:
                raise PayloadTooLarge(f"image is too large, at most {max_mb}MB is supported")

            buf = bytearray()
            for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                if time.monotonic() > deadline:
                    raise FetchTimeout(f"image download timed out after {timeout:g}s")
                if not chunk:
                    continue
                buf.extend(chunk)
                if len(buf) > max_bytes:
                    raise PayloadTooLarge(f"image is too large, at most {max_mb}MB is supported")
    except requests.Timeout as e:
        raise FetchTimeout(f"image download timed out after {timeout:g}s") from e
    except requests.RequestException as e:
        raise FetchFailed(f"image download failed: {e}") from e
    return bytes(buf)


def fetch_url(url: str | None, max_bytes: int, timeout: float) -> bytes:
    """
    Download ``url`` once. The body is capped at ``max_bytes`` whatever the
    server declares in Content-Length, and the whole exchange is capped at
    ``timeout`` seconds.

    requests only bounds each socket read, so a server that trickles bytes
    could otherwise hold the caller indefinitely. The download runs on a
    helper thread and the caller stops waiting at the deadline; the helper
    gives up at its next chunk.
    """
    if not url:
        raise MissingSource("image_url must not be empty")

    deadline = time.monotonic() + timeout
    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="image-fetch")
    try:
        future = pool.submit(_download, url, max_bytes, timeout, deadline)
        data = future.result(timeout=timeout)
    except FuturesTimeout as e:
        logger.warning("download of %s exceeded %gs", url, timeout)
        raise FetchTimeout(f"image download timed out after {timeout:g}s") from e
    finally:
        pool.shutdown(wait=False)

    if not data:
        raise EmptyPayload("downloaded image is empty")
    logger.debug("fetched %d bytes from %s", len(data), url)
    return data


def resolve_url(store: ContentStore, url: str | None, timeout: float) -> ImageArtifact:
    return store.materialize(fetch_url(url, store.max_bytes, timeout))


def read_upload(filename: str | None, stream: BinaryIO, max_bytes: int) -> bytes:
    """
    Check the declared filename against the allow-list, then read at most
    ``max_bytes + 1`` bytes from the staged upload.
    """
    if not is_allowed_image_filename(filename):
        allowed = ", ".join(ALLOWED_UPLOAD_EXTENSIONS)
        raise UnsupportedFormat(f"unsupported file type, only {allowed} are allowed")
    try:
        data = stream.read(max_bytes + 1)
    except OSError as e:
        raise StorageFailure(f"failed to read uploaded file: {e}") from e
    if not data:
        raise EmptyPayload("uploaded file is empty")
    if len(data) > max_bytes:
        max_mb = max(1, max_bytes // (1024 * 1024))
        raise PayloadTooLarge(f"image is too large, at most {max_mb}MB is supported")
    return data


def resolve_upload(store: ContentStore, filename: str | None, stream: BinaryIO) -> ImageArtifact:
    data = read_upload(filename, stream, store.max_bytes)
    artifact = store.materialize(data)
    logger.debug("upload %r stored as %s", filename, artifact.path.name)
    return artifact
