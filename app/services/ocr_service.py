# app/services/ocr_service.py
"""
Per-request recognition pipeline:

    validating -> resolving -> detecting -> [symbol_decoding] -> assembling
    -> cleaning_up -> done

Any stage may end in ``failed``. Whatever stage was reached, a resolved
artifact is released (and with it the engine's ``-result.jpg``) before the
envelope goes back to the caller.
"""
from __future__ import annotations

import uuid
from enum import Enum
from typing import BinaryIO, Callable, Optional, Tuple

from app.core.config import Settings
from app.core.errors import OcrServiceError, RecognitionFailed
from app.core.logger import get_logger
from app.models.ocr import ImageArtifact, OcrRequest, RecognitionResult, ResponseEnvelope
from app.services.engine import TextEngine
from app.services.qrcode import decode_symbol
from app.services.response import assemble, failure
from app.services.sources import resolve_inline, resolve_upload, resolve_url
from app.services.store import ContentStore
from app.services.validator import validate_request

logger = get_logger("ocr")

SymbolDecoder = Callable[[str], Tuple[bool, str]]


class Stage(str, Enum):
    validating = "validating"
    resolving = "resolving"
    detecting = "detecting"
    symbol_decoding = "symbol_decoding"
    assembling = "assembling"
    cleaning_up = "cleaning_up"
    done = "done"
    failed = "failed"


class OcrService:
    def __init__(
        self,
        store: ContentStore,
        engine: TextEngine,
        settings: Settings,
        decoder: SymbolDecoder = decode_symbol,
    ):
        self.store = store
        self.engine = engine
        self.settings = settings
        self.decoder = decoder

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------
    def recognize_json(self, req: OcrRequest) -> ResponseEnvelope:
        def resolve() -> ImageArtifact:
            if req.image_base_64:
                return resolve_inline(self.store, req.image_base_64)
            return resolve_url(self.store, req.image_url, self.settings.FETCH_TIMEOUT)

        return self._run(
            resolve,
            need_block=req.need_block,
            qr_code=req.qr_code,
            validate=lambda: validate_request(req),
        )

    def recognize_upload(
        self,
        filename: Optional[str],
        stream: BinaryIO,
        need_block: bool = False,
        qr_code: bool = False,
    ) -> ResponseEnvelope:
        return self._run(
            lambda: resolve_upload(self.store, filename, stream),
            need_block=need_block,
            qr_code=qr_code,
        )

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    def _run(
        self,
        resolve: Callable[[], ImageArtifact],
        need_block: bool,
        qr_code: bool,
        validate: Optional[Callable[[], None]] = None,
    ) -> ResponseEnvelope:
        request_id = uuid.uuid4().hex[:8]
        stage = Stage.validating
        artifact: Optional[ImageArtifact] = None
        try:
            self._enter(request_id, stage)
            if validate is not None:
                validate()

            stage = self._enter(request_id, Stage.resolving)
            artifact = resolve()

            stage = self._enter(request_id, Stage.detecting)
            result = self._detect(artifact)

            if qr_code:
                stage = self._enter(request_id, Stage.symbol_decoding)
                result = self._decode_symbol(artifact, result)

            stage = self._enter(request_id, Stage.assembling)
            envelope = assemble(result, need_block)
        except OcrServiceError as e:
            logger.warning("[%s] %s failed: %s", request_id, stage.value, e)
            self._enter(request_id, Stage.failed)
            return failure(str(e))
        except Exception as e:
            logger.exception("[%s] unexpected error while %s", request_id, stage.value)
            self._enter(request_id, Stage.failed)
            return failure(f"internal error: {e}")
        finally:
            if artifact is not None:
                self._enter(request_id, Stage.cleaning_up)
                self.store.release(artifact)

        self._enter(request_id, Stage.done)
        logger.info("[%s] recognized %d text line(s)", request_id, len(result.texts))
        return envelope

    def _detect(self, artifact: ImageArtifact) -> RecognitionResult:
        if not artifact.path.is_file():
            raise RecognitionFailed("recognition failed: image file is missing")
        try:
            ok, result = self.engine.detect(str(artifact.path))
        except Exception as e:
            logger.exception("engine raised while reading %s", artifact.path.name)
            raise RecognitionFailed("recognition failed") from e
        if not ok or result is None:
            raise RecognitionFailed("recognition failed")
        return result

    def _decode_symbol(self, artifact: ImageArtifact, result: RecognitionResult) -> RecognitionResult:
        try:
            found, content = self.decoder(str(artifact.path))
        except Exception:
            logger.exception("qr decode raised for %s; treating as not found", artifact.path.name)
            found, content = False, ""
        update = {"qr_code": bool(found)}
        if found:
            update["qr_code_content"] = content
        return result.model_copy(update=update)

    @staticmethod
    def _enter(request_id: str, stage: Stage) -> Stage:
        logger.debug("[%s] -> %s", request_id, stage.value)
        return stage
