"""Shared fixtures: isolated working directory, fake engine, test client."""
from __future__ import annotations

import base64
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.main import create_app
from app.models.ocr import RecognitionResult
from app.services.engine import TextEngine
from app.services.store import ContentStore

PNG_1X1_B64 = "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mP8/5+hHgAHggJ/PchI7wAAAABJRU5ErkJggg=="
PNG_1X1 = base64.b64decode(PNG_1X1_B64)
JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00"

ENGINE_OUTPUT = {
    "dbNetTime": 12.5,
    "detectTime": 40.0,
    "textBlocks": [
        {
            "boxPoint": [{"x": 1, "y": 2}, {"x": 30, "y": 2}, {"x": 30, "y": 12}, {"x": 1, "y": 12}],
            "charScores": [0.9, 0.95],
            "text": "hi",
            "boxScore": 0.8,
            "angleIndex": 0,
            "angleScore": 0.99,
            "angleTime": 0.3,
            "crnnTime": 1.1,
            "blockTime": 2.0,
        },
        {
            "boxPoint": [{"x": 1, "y": 20}, {"x": 50, "y": 20}, {"x": 50, "y": 32}, {"x": 1, "y": 32}],
            "charScores": [0.7, 0.8, 0.9],
            "text": "abc",
            "boxScore": 0.75,
            "angleIndex": 1,
            "angleScore": 0.88,
            "angleTime": 0.2,
            "crnnTime": 0.9,
            "blockTime": 1.5,
        },
    ],
    "texts": ["hi", "abc"],
}


class FakeEngine(TextEngine):
    """Records calls and leaves a ``-result.jpg`` side file like the native engine."""

    def __init__(self, ok: bool = True, raises: Exception | None = None):
        self.ok = ok
        self.raises = raises
        self.calls: list[str] = []
        self.seen_existing: list[bool] = []
        self.cleaned_up = False

    def detect(self, image_path: str):
        self.calls.append(image_path)
        self.seen_existing.append(Path(image_path).is_file())
        Path(f"{image_path}-result.jpg").write_bytes(b"boxes")
        if self.raises is not None:
            raise self.raises
        if not self.ok:
            return False, None
        return True, RecognitionResult.model_validate(ENGINE_OUTPUT)

    def cleanup(self) -> None:
        self.cleaned_up = True


class FakeResponse:
    """Stands in for a streamed ``requests`` response."""

    def __init__(self, status_code: int = 200, body: bytes = b"", headers: dict | None = None, chunk: int = 16):
        self.status_code = status_code
        self.headers = headers or {}
        self._body = body
        self._chunk = chunk
        self.read_bytes = 0

    def iter_content(self, chunk_size: int = 1):
        for i in range(0, len(self._body), self._chunk):
            piece = self._body[i : i + self._chunk]
            self.read_bytes += len(piece)
            yield piece

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    return tmp_path / "work"


@pytest.fixture
def settings(tmp_path: Path, work_dir: Path) -> Settings:
    return Settings(
        WORK_DIR=str(work_dir),
        MODEL_DIR=str(tmp_path / "models"),
        ENGINE="stub",
        MAX_IMAGE_BYTES=1024,
    )


@pytest.fixture
def store(work_dir: Path) -> ContentStore:
    store = ContentStore(work_dir, max_bytes=1024)
    store.ensure()
    return store


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def client(settings: Settings, engine: FakeEngine):
    app = create_app(settings=settings, engine=engine)
    with TestClient(app) as test_client:
        yield test_client


def files_in(directory: Path) -> list[str]:
    if not directory.exists():
        return []
    return sorted(p.name for p in directory.iterdir())
