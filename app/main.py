# app/main.py
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import Settings, ensure_directories, get_settings
from app.core.logger import get_logger, set_level
from app.routes.ocr import router as ocr_router
from app.routes.root import router as root_router
from app.services.engine import TextEngine, build_engine
from app.services.ocr_service import OcrService
from app.services.response import failure, render
from app.services.store import ContentStore

logger = get_logger("main")

API_PREFIX = "/api/"


def create_app(settings: Optional[Settings] = None, engine: Optional[TextEngine] = None) -> FastAPI:
    settings = settings or get_settings()
    set_level(settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ensure_directories(settings)
        store = ContentStore(settings.work_dir, settings.MAX_IMAGE_BYTES)
        ocr_engine = engine or build_engine(settings)
        app.state.settings = settings
        app.state.ocr_service = OcrService(store, ocr_engine, settings)
        logger.info("working directory: %s", settings.work_dir.resolve())
        try:
            yield
        finally:
            ocr_engine.cleanup()

    app = FastAPI(
        title="OCR Service",
        version=settings.VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # CORS (relaxed; tighten if needed)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Application failures are reported in the body, never through the HTTP status.
    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        detail = errors[0].get("msg", "invalid request") if errors else "invalid request"
        return JSONResponse(content=render(failure(f"invalid request: {detail}")))

    @app.exception_handler(StarletteHTTPException)
    async def api_http_error_handler(request: Request, exc: StarletteHTTPException):
        if request.url.path.startswith(API_PREFIX) and exc.status_code == 400:
            return JSONResponse(content=render(failure(str(exc.detail))))
        return await http_exception_handler(request, exc)

    app.include_router(root_router)
    app.include_router(ocr_router)
    return app


app = create_app()


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
