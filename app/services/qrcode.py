# app/services/qrcode.py
from pathlib import Path
from typing import Tuple

import cv2
import numpy as np

from app.core.logger import get_logger

logger = get_logger("qrcode")


def _load_image(image_path: str):
    # np.fromfile + imdecode copes with non-ASCII paths where cv2.imread does not
    data = np.fromfile(image_path, dtype=np.uint8)
    if data.size == 0:
        return None
    return cv2.imdecode(data, cv2.IMREAD_COLOR)


def decode_symbol(image_path: str) -> Tuple[bool, str]:
    """
    Look for a QR code in the image at ``image_path``.
    Returns (found, content); every failure degrades to (False, "").
    """
    if not image_path:
        logger.info("qr decode: empty image path")
        return False, ""
    if not Path(image_path).is_file():
        logger.info("qr decode: image not found: %s", image_path)
        return False, ""

    img = _load_image(image_path)
    if img is None or img.size == 0:
        logger.info("qr decode: cannot decode image %s", image_path)
        return False, ""

    try:
        content, points, _ = cv2.QRCodeDetector().detectAndDecode(img)
    except cv2.error as e:
        logger.info("qr decode: detector failed on %s: %s", image_path, e)
        return False, ""
    if points is None or not content:
        logger.debug("qr decode: no QR code in %s", image_path)
        return False, ""

    logger.info("qr decode: found QR code, content length %d", len(content))
    return True, content
