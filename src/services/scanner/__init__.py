import importlib.util
import logging

logger = logging.getLogger(__name__)

try:
    import cv2  # noqa: F401
    import numpy  # noqa: F401
    _CV_AVAILABLE = True
except ImportError as e:
    logger.warning(f"OpenCV/numpy unavailable, scanning disabled: {e}")
    _CV_AVAILABLE = False

# The OCR engine is heavy, so only check that it can be imported; it loads lazily
OCR_AVAILABLE = importlib.util.find_spec('easyocr') is not None

SCANNER_AVAILABLE = _CV_AVAILABLE
