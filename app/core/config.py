# app/core/config.py

import os
from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings

from app.utils.helpers import ensure_dir


class Settings(BaseSettings):
    # Transient working directory for inbound images and engine side files
    WORK_DIR: str = "tmp"
    MODEL_DIR: str = "models"

    # Ceiling applied to decoded / downloaded / uploaded image bytes
    MAX_IMAGE_BYTES: int = 10 * 1024 * 1024
    FETCH_TIMEOUT: float = 30.0

    # "native" loads the OcrLiteOnnx shared library, "stub" returns a canned result
    ENGINE: str = "native"
    LIBRARY_PATH: str = "./cpp/install/lib/libOcrLiteOnnx.so"
    NUM_THREADS: int | None = None
    ENGINE_SERIALIZE: bool = True
    RESULT_BUFFER_LEN: int = 10 * 1024

    SERVICE_NAME: str = "ocr-service"
    VERSION: str = "1.0"
    HOST: str = "0.0.0.0"
    # container platforms hand the listen port over as plain PORT
    PORT: int = Field(default=8080, validation_alias=AliasChoices("OCR_PORT", "PORT"))
    LOG_LEVEL: str = "INFO"

    class Config:
        env_prefix = "OCR_"
        env_file = ".env"
        case_sensitive = False

    @property
    def work_dir(self) -> Path:
        return Path(self.WORK_DIR)

    @property
    def model_dir(self) -> Path:
        return Path(self.MODEL_DIR)

    @property
    def thread_count(self) -> int:
        return self.NUM_THREADS or os.cpu_count() or 1

    def model_paths(self) -> tuple[str, str, str, str]:
        """dbnet, angle, crnn and keys file paths, in the order ocr_init expects."""
        root = self.model_dir
        return (
            str(root / "dbnet.onnx"),
            str(root / "angle_net.onnx"),
            str(root / "crnn_lite_lstm.onnx"),
            str(root / "keys.txt"),
        )


def ensure_directories(settings: Settings) -> None:
    for path in (settings.work_dir, settings.model_dir):
        ensure_dir(path)


@lru_cache
def get_settings() -> Settings:
    return Settings()
