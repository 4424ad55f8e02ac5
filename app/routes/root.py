from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/")
def index(request: Request) -> dict:
    settings = request.app.state.settings
    return {
        "message": "OCR Service",
        "version": settings.VERSION,
        "endpoints": {
            "ocr_json": "POST /api/ocr",
            "ocr_file": "POST /api/ocr_file",
            "health": "GET /health",
        },
    }


@router.get("/health")
def health(request: Request) -> dict:
    settings = request.app.state.settings
    return {"status": "ok", "service": settings.SERVICE_NAME, "version": settings.VERSION}
