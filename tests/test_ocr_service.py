"""Orchestrator lifecycle: validation, engine outcomes, symbol decode, cleanup."""
from __future__ import annotations

import io
from pathlib import Path

import pytest

from app.core.config import Settings
from app.models.ocr import OcrRequest
from app.services import sources
from app.services.ocr_service import OcrService
from app.services.store import ContentStore
from tests.conftest import PNG_1X1, PNG_1X1_B64, FakeEngine, FakeResponse, files_in


def make_service(store: ContentStore, settings: Settings, engine: FakeEngine, decoder=None) -> OcrService:
    if decoder is None:
        decoder = lambda path: (False, "")  # noqa: E731
    return OcrService(store, engine, settings, decoder=decoder)


def test_inline_success_cleans_up(store, settings, engine, work_dir: Path) -> None:
    service = make_service(store, settings, engine)
    envelope = service.recognize_json(OcrRequest(image_base_64=PNG_1X1_B64, need_block=True))

    assert envelope.code == 200
    assert envelope.msg == "ok"
    assert envelope.data.texts == ["hi", "abc"]
    assert [b.text for b in envelope.data.text_blocks] == ["hi", "abc"]
    assert envelope.data.qr_code is None
    assert engine.seen_existing == [True]
    assert files_in(work_dir) == []


def test_url_success_cleans_up(store, settings, engine, work_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    requested = []

    def fake_get(url, **kwargs):
        requested.append((url, kwargs["timeout"]))
        return FakeResponse(200, PNG_1X1, {"Content-Length": str(len(PNG_1X1))})

    monkeypatch.setattr(sources.requests, "get", fake_get)
    service = make_service(store, settings, engine)
    envelope = service.recognize_json(OcrRequest(image_url="http://example.com/scan.png"))

    assert envelope.code == 200
    assert envelope.data.texts == ["hi", "abc"]
    assert requested == [("http://example.com/scan.png", settings.FETCH_TIMEOUT)]
    assert engine.seen_existing == [True]
    assert files_in(work_dir) == []


def test_block_detail_is_dropped_by_default(store, settings, engine) -> None:
    service = make_service(store, settings, engine)
    envelope = service.recognize_json(OcrRequest(image_base_64=PNG_1X1_B64))
    assert envelope.data.text_blocks is None
    assert envelope.data.texts == ["hi", "abc"]


def test_conflicting_sources_touch_nothing(store, settings, engine, work_dir: Path) -> None:
    service = make_service(store, settings, engine)
    envelope = service.recognize_json(
        OcrRequest(image_url="http://example.com/a.png", image_base_64=PNG_1X1_B64)
    )
    assert envelope.code == 500
    assert envelope.data is None
    assert "only one of" in envelope.msg
    assert engine.calls == []
    assert files_in(work_dir) == []


def test_missing_source(store, settings, engine) -> None:
    envelope = make_service(store, settings, engine).recognize_json(OcrRequest())
    assert envelope.code == 500
    assert "image_url" in envelope.msg and "image_base_64" in envelope.msg


def test_engine_failure_still_cleans_up(store, settings, work_dir: Path) -> None:
    engine = FakeEngine(ok=False)
    envelope = make_service(store, settings, engine).recognize_json(OcrRequest(image_base_64=PNG_1X1_B64))
    assert envelope.code == 500
    assert envelope.msg == "recognition failed"
    assert envelope.data is None
    assert len(engine.calls) == 1
    assert files_in(work_dir) == []


def test_engine_exception_is_reported_as_recognition_failure(store, settings, work_dir: Path) -> None:
    engine = FakeEngine(raises=RuntimeError("segfault avoided"))
    envelope = make_service(store, settings, engine).recognize_json(OcrRequest(image_base_64=PNG_1X1_B64))
    assert envelope.code == 500
    assert envelope.msg == "recognition failed"
    assert files_in(work_dir) == []


def test_unsupported_inline_content(store, settings, engine, work_dir: Path) -> None:
    # "R0lGODlhAQABAAAAACw=" is a GIF header
    envelope = make_service(store, settings, engine).recognize_json(OcrRequest(image_base_64="R0lGODlhAQABAAAAACw="))
    assert envelope.code == 500
    assert "unsupported image format" in envelope.msg
    assert engine.calls == []
    assert files_in(work_dir) == []


def test_symbol_found(store, settings, engine) -> None:
    seen = []

    def decoder(path: str):
        seen.append(Path(path).is_file())
        return True, "https://example.com"

    service = make_service(store, settings, engine, decoder=decoder)
    envelope = service.recognize_json(OcrRequest(image_base_64=PNG_1X1_B64, qr_code=True))
    assert envelope.code == 200
    assert envelope.data.qr_code is True
    assert envelope.data.qr_code_content == "https://example.com"
    assert seen == [True]


def test_symbol_decoder_failure_is_not_fatal(store, settings, engine, work_dir: Path) -> None:
    def decoder(path: str):
        raise ValueError("broken decoder")

    service = make_service(store, settings, engine, decoder=decoder)
    envelope = service.recognize_json(OcrRequest(image_base_64=PNG_1X1_B64, qr_code=True))
    assert envelope.code == 200
    assert envelope.data.qr_code is False
    assert envelope.data.qr_code_content is None
    assert envelope.data.texts == ["hi", "abc"]
    assert files_in(work_dir) == []


def test_symbol_decoder_not_called_unless_requested(store, settings, engine) -> None:
    called = []
    service = make_service(store, settings, engine, decoder=lambda p: called.append(p) or (True, "x"))
    service.recognize_json(OcrRequest(image_base_64=PNG_1X1_B64))
    assert called == []


def test_upload_success_and_cleanup(store, settings, engine, work_dir: Path) -> None:
    service = make_service(store, settings, engine)
    envelope = service.recognize_upload("scan.PNG", io.BytesIO(PNG_1X1), need_block=True)
    assert envelope.code == 200
    assert len(envelope.data.text_blocks) == 2
    assert files_in(work_dir) == []


def test_upload_wrong_extension(store, settings, engine, work_dir: Path) -> None:
    envelope = make_service(store, settings, engine).recognize_upload("report.pdf", io.BytesIO(b"%PDF-1.4"))
    assert envelope.code == 500
    assert "unsupported file type" in envelope.msg
    assert engine.calls == []
    assert files_in(work_dir) == []


def test_unexpected_error_maps_to_failure(store, settings, engine, monkeypatch: pytest.MonkeyPatch) -> None:
    service = make_service(store, settings, engine)

    def explode(data):
        raise KeyError("boom")

    monkeypatch.setattr(store, "materialize", explode)
    envelope = service.recognize_json(OcrRequest(image_base_64=PNG_1X1_B64))
    assert envelope.code == 500
    assert envelope.msg.startswith("internal error")
