# app/utils/helpers.py
from pathlib import Path

TRUTHY_FORM_VALUES = {"true", "1", "yes", "on"}


def strip_data_url(b64: str) -> str:
    """
    Accepts either:
      - raw base64 string
      - or 'data:image/png;base64,...'
    """
    if "," in b64 and b64.strip().startswith("data:"):
        b64 = b64.split(",", 1)[1]
    return b64


def form_flag(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in TRUTHY_FORM_VALUES


def ensure_dir(path: str | Path) -> Path:
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p
