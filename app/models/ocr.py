# app/models/ocr.py
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from app.utils.image_type import ImageFormat


def _alias(snake: str, camel: str) -> Any:
    # native engine speaks camelCase, the wire format is snake_case
    return Field(default=0.0, validation_alias=AliasChoices(snake, camel))


class OcrRequest(BaseModel):
    image_url: Optional[str] = None
    image_base_64: Optional[str] = None
    need_block: bool = False
    qr_code: bool = False


class BoxPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    x: int
    y: int


class TextBlock(BaseModel):
    model_config = ConfigDict(frozen=True)

    angle_index: int = Field(default=0, validation_alias=AliasChoices("angle_index", "angleIndex"))
    angle_score: float = _alias("angle_score", "angleScore")
    angle_time: float = _alias("angle_time", "angleTime")
    block_time: float = _alias("block_time", "blockTime")
    box_point: List[BoxPoint] = Field(
        default_factory=list, validation_alias=AliasChoices("box_point", "boxPoint")
    )
    box_score: float = _alias("box_score", "boxScore")
    char_scores: List[float] = Field(
        default_factory=list, validation_alias=AliasChoices("char_scores", "charScores")
    )
    crnn_time: float = _alias("crnn_time", "crnnTime")
    text: str = ""


class RecognitionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    db_net_time: float = _alias("db_net_time", "dbNetTime")
    detect_time: float = _alias("detect_time", "detectTime")
    text_blocks: Optional[List[TextBlock]] = Field(
        default=None, validation_alias=AliasChoices("text_blocks", "textBlocks")
    )
    texts: List[str] = Field(default_factory=list)
    qr_code: Optional[bool] = None
    qr_code_content: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _derive_texts(cls, data: Any) -> Any:
        """The engine leaves ``texts`` out when it has no blocks; rebuild it from blocks."""
        if not isinstance(data, dict) or data.get("texts") is not None:
            return data
        blocks = data.get("text_blocks") or data.get("textBlocks") or []
        texts = []
        for block in blocks:
            texts.append(block.get("text", "") if isinstance(block, dict) else block.text)
        return {**data, "texts": texts}


class ResponseEnvelope(BaseModel):
    code: int
    msg: str
    data: Optional[RecognitionResult] = None


@dataclass(frozen=True)
class ImageArtifact:
    path: Path
    digest: str
    format: ImageFormat
    size_bytes: int

    @property
    def result_path(self) -> Path:
        """Companion image the engine draws its detection boxes into."""
        return Path(f"{self.path}-result.jpg")
