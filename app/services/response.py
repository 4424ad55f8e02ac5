# app/services/response.py
from typing import Any, Dict

from app.models.ocr import RecognitionResult, ResponseEnvelope

SUCCESS_CODE = 200
FAILURE_CODE = 500
SUCCESS_MESSAGE = "ok"


def assemble(result: RecognitionResult, include_block_detail: bool) -> ResponseEnvelope:
    """Wrap a result at the success code, dropping per-block detail unless asked for."""
    if not include_block_detail:
        result = result.model_copy(update={"text_blocks": None})
    return ResponseEnvelope(code=SUCCESS_CODE, msg=SUCCESS_MESSAGE, data=result)


def failure(message: str) -> ResponseEnvelope:
    """Every failure kind shares one code; only the message tells them apart."""
    return ResponseEnvelope(code=FAILURE_CODE, msg=message, data=None)


def render(envelope: ResponseEnvelope) -> Dict[str, Any]:
    data = envelope.data.model_dump(exclude_none=True) if envelope.data is not None else None
    return {"code": envelope.code, "msg": envelope.msg, "data": data}
