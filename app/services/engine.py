# app/services/engine.py
"""
Text recognition engines.

The orchestrator only knows ``TextEngine``: ``detect(path)`` and
``cleanup()``. ``NativeTextEngine`` drives the OcrLiteOnnx shared library
(dbnet + angle + crnn models) through ctypes; ``StubTextEngine`` returns a
canned result so the service can run without the native build.
"""
from __future__ import annotations

import ctypes
import threading
from abc import ABC, abstractmethod
from contextlib import nullcontext
from typing import Optional, Tuple

from pydantic import ValidationError

from app.core.config import Settings
from app.core.logger import get_logger
from app.models.ocr import RecognitionResult

logger = get_logger("engine")

OCR_SUCCESS = 1

DetectOutcome = Tuple[bool, Optional[RecognitionResult]]


class EngineUnavailable(RuntimeError):
    """The engine could not be loaded or initialised at startup."""


class TextEngine(ABC):
    @abstractmethod
    def detect(self, image_path: str) -> DetectOutcome:
        """Return (ok, result). ``result`` is None whenever ok is False."""

    def cleanup(self) -> None:
        pass


class NativeTextEngine(TextEngine):
    def __init__(
        self,
        library_path: str,
        model_paths: Tuple[str, str, str, str],
        num_threads: int,
        buffer_len: int = 10 * 1024,
        serialize: bool = True,
    ):
        try:
            self._lib = ctypes.CDLL(library_path)
        except OSError as e:
            raise EngineUnavailable(f"cannot load OCR library {library_path}: {e}") from e
        self._declare_signatures()

        self._buffer_len = buffer_len
        self._guard = threading.Lock() if serialize else nullcontext()
        self._closed = False

        encoded = [p.encode("utf-8") for p in model_paths]
        ret = self._lib.ocr_init(num_threads, *encoded)
        if ret != OCR_SUCCESS:
            raise EngineUnavailable(f"ocr_init failed ({ret}); check model files {list(model_paths)}")
        logger.info("native OCR engine ready: threads=%d, library=%s", num_threads, library_path)

    def _declare_signatures(self) -> None:
        lib = self._lib
        lib.ocr_init.argtypes = [ctypes.c_int] + [ctypes.c_char_p] * 4
        lib.ocr_init.restype = ctypes.c_int
        lib.ocr_detect2.argtypes = [ctypes.c_char_p, ctypes.c_char_p, ctypes.POINTER(ctypes.c_int)]
        lib.ocr_detect2.restype = ctypes.c_int
        lib.ocr_cleanup.argtypes = []
        lib.ocr_cleanup.restype = None

    def detect(self, image_path: str) -> DetectOutcome:
        # one buffer per call; the library writes at most buffer_len bytes
        out = ctypes.create_string_buffer(self._buffer_len)
        length = ctypes.c_int(self._buffer_len)
        with self._guard:
            ok = self._lib.ocr_detect2(image_path.encode("utf-8"), out, ctypes.byref(length))
        if ok != OCR_SUCCESS:
            logger.warning("ocr_detect2 reported failure for %s", image_path)
            return False, None

        raw = out.raw[: length.value]
        try:
            return True, RecognitionResult.model_validate_json(raw)
        except ValidationError as e:
            logger.error("unparseable engine output for %s: %s", image_path, e)
            return False, None

    def cleanup(self) -> None:
        if not self._closed:
            self._lib.ocr_cleanup()
            self._closed = True
            logger.info("native OCR engine released")


class StubTextEngine(TextEngine):
    """Deterministic stand-in used for local runs without the native library."""

    def detect(self, image_path: str) -> DetectOutcome:
        logger.info("stub detect: %s", image_path)
        result = RecognitionResult.model_validate(
            {
                "dbNetTime": 0.1,
                "detectTime": 0.5,
                "textBlocks": [
                    {
                        "angleIndex": 0,
                        "angleScore": 0.99,
                        "angleTime": 0.05,
                        "blockTime": 0.2,
                        "boxPoint": [
                            {"x": 10, "y": 10},
                            {"x": 100, "y": 10},
                            {"x": 100, "y": 30},
                            {"x": 10, "y": 30},
                        ],
                        "boxScore": 0.92,
                        "charScores": [0.9, 0.8, 0.95, 0.85],
                        "crnnTime": 0.1,
                        "text": "stub recognition result",
                    }
                ],
            }
        )
        return True, result


def build_engine(settings: Settings) -> TextEngine:
    kind = settings.ENGINE.lower()
    if kind == "stub":
        logger.warning("using stub OCR engine; results are canned")
        return StubTextEngine()
    if kind == "native":
        return NativeTextEngine(
            library_path=settings.LIBRARY_PATH,
            model_paths=settings.model_paths(),
            num_threads=settings.thread_count,
            buffer_len=settings.RESULT_BUFFER_LEN,
            serialize=settings.ENGINE_SERIALIZE,
        )
    raise EngineUnavailable(f"unknown OCR engine {settings.ENGINE!r}")
