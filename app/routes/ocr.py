# app/routes/ocr.py
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse

from app.models.ocr import OcrRequest
from app.services.ocr_service import OcrService
from app.services.response import failure, render
from app.utils.helpers import form_flag

router = APIRouter(prefix="/api", tags=["ocr"])


def get_ocr_service(request: Request) -> OcrService:
    return request.app.state.ocr_service


@router.post("/ocr")
def ocr_json(req: OcrRequest, service: OcrService = Depends(get_ocr_service)):
    """
    Recognize an image given either as ``image_url`` or ``image_base_64``.
    Failures come back as HTTP 200 with ``code`` 500 in the body.
    """
    envelope = service.recognize_json(req)
    return JSONResponse(content=render(envelope))


@router.post("/ocr_file")
def ocr_file(
    file: Optional[UploadFile] = File(None),
    need_block: Optional[str] = Form(None),
    qr_code: Optional[str] = Form(None),
    service: OcrService = Depends(get_ocr_service),
):
    """Recognize an uploaded jpg/jpeg/png file (multipart field ``file``)."""
    if file is None:
        return JSONResponse(content=render(failure("no file uploaded, multipart field 'file' is required")))

    envelope = service.recognize_upload(
        file.filename,
        file.file,
        need_block=form_flag(need_block),
        qr_code=form_flag(qr_code),
    )
    return JSONResponse(content=render(envelope))
