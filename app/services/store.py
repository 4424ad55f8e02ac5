# app/services/store.py
"""
Content-addressed working directory.

Images are stored under ``<root>/<md5>.<ext>`` so identical bytes always land
on the same path. Concurrent requests for the same content share one file; a
lease count per path keeps the file alive until the last of them is done.
"""
from __future__ import annotations

import hashlib
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict

from app.core.errors import PayloadTooLarge, StorageFailure, UnsupportedFormat
from app.core.logger import get_logger
from app.models.ocr import ImageArtifact
from app.utils.image_type import ImageFormat, classify

logger = get_logger("store")


def content_digest(data: bytes) -> str:
    """Digest used for naming only; not a security boundary."""
    return hashlib.md5(data).hexdigest()


class ContentStore:
    def __init__(self, root: str | Path, max_bytes: int):
        self.root = Path(root)
        self.max_bytes = max_bytes
        self._lock = threading.Lock()
        self._leases: Dict[Path, int] = {}

    def ensure(self) -> Path:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageFailure(f"failed to create working directory: {e}") from e
        return self.root

    @property
    def max_mb(self) -> int:
        return max(1, self.max_bytes // (1024 * 1024))

    def check_size(self, size: int) -> None:
        if size > self.max_bytes:
            raise PayloadTooLarge(f"image is too large, at most {self.max_mb}MB is supported")

    def materialize(self, data: bytes) -> ImageArtifact:
        """
        Persist ``data`` under its content digest and take a lease on it.
        Every successful call must be paired with ``release``.
        """
        self.check_size(len(data))
        fmt = classify(data)
        if fmt is ImageFormat.unknown:
            raise UnsupportedFormat("unsupported image format, only png and jpeg are accepted")

        digest = content_digest(data)
        path = self.root / f"{digest}.{fmt.extension}"
        artifact = ImageArtifact(path=path, digest=digest, format=fmt, size_bytes=len(data))

        # the existence check shares the lock with removal in release(), so a
        # file seen here cannot disappear while this lease is held
        with self._lock:
            self._leases[path] = self._leases.get(path, 0) + 1
            exists = path.is_file()
        if exists:
            logger.debug("dedup hit %s", path.name)
            return artifact
        try:
            self._write(path, data)
        except Exception:
            self.release(artifact)
            raise
        return artifact

    def release(self, artifact: ImageArtifact) -> None:
        """
        Drop one lease; when it was the last one remove the artifact and the
        engine's ``-result.jpg`` companion. Never raises.
        """
        with self._lock:
            remaining = self._leases.get(artifact.path, 0) - 1
            if remaining > 0:
                self._leases[artifact.path] = remaining
                logger.debug("artifact %s still leased, keeping", artifact.path.name)
                return
            self._leases.pop(artifact.path, None)
            for path in (artifact.path, artifact.result_path):
                remove_quietly(path)

    def leases(self, artifact: ImageArtifact) -> int:
        with self._lock:
            return self._leases.get(artifact.path, 0)

    def _write(self, path: Path, data: bytes) -> None:
        self.ensure()
        fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=f".{path.name}.", suffix=".part")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, path)
        except OSError as e:
            remove_quietly(Path(tmp_name))
            raise StorageFailure(f"failed to save image: {e}") from e
        logger.debug("stored %s (%d bytes)", path.name, len(data))


def remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("failed to remove %s: %s", path, e)
