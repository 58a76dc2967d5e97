import re
import logging
import threading
from typing import Callable, Dict, Optional

from nicegui import run

from src.core.constants import DIGITS
from src.core.errors import RecognitionFailure
from src.core.models import Rect, RecognitionResult

logger = logging.getLogger(__name__)

DIGIT_RUN = re.compile(r'[0-9]+')
NOT_TICKET_CHAR = re.compile(r'[^A-Za-z0-9\-]')

ProgressCallback = Callable[[int], None]


def extract_ticket_number(raw_text: str) -> str:
    """
    Picks the ticket number out of raw OCR text: the longest digit run, first one
    on ties. Without any digits, the text reduced to letters, digits and hyphens.
    """
    runs = DIGIT_RUN.findall(raw_text or '')
    if runs:
        return max(runs, key=len)
    return NOT_TICKET_CHAR.sub('', raw_text or '')


def _report(progress: Optional[ProgressCallback], value: int):
    if progress is not None:
        progress(value)


class EasyOcrEngine:
    """EasyOCR reader restricted to the ticket region. The model loads on first use."""

    def __init__(self, languages=('en',), gpu: bool = False, digits_only: bool = True):
        self.languages = list(languages)
        self.gpu = gpu
        self.digits_only = digits_only
        self.reader = None
        self._load_lock = threading.Lock()

    def load(self):
        with self._load_lock:
            if self.reader is None:
                import easyocr
                logger.info(f"Initializing EasyOCR (languages: {self.languages}, GPU: {self.gpu})")
                self.reader = easyocr.Reader(self.languages, gpu=self.gpu)
        return self.reader

    def recognize(self, image, region: Optional[Rect] = None,
                  progress: Optional[ProgressCallback] = None) -> RecognitionResult:
        reader = self.load()
        _report(progress, 10)

        if image is None:
            raise RecognitionFailure("No frame to recognize")
        if region is not None:
            top, left = int(region.top), int(region.left)
            image = image[top:top + int(region.height), left:left + int(region.width)]
        if getattr(image, 'size', 0) == 0:
            raise RecognitionFailure("Scan region is empty")
        _report(progress, 30)

        results = reader.readtext(image, allowlist=DIGITS if self.digits_only else None, detail=1)
        _report(progress, 90)

        # results: [ (box, text, conf), ... ]
        texts = [r[1] for r in results if len(r) >= 3]
        confs = [float(r[2]) for r in results if len(r) >= 3]
        confidence = (sum(confs) / len(confs)) * 100 if confs else 0.0

        _report(progress, 100)
        return RecognitionResult(text=' '.join(texts), confidence=confidence)

    def close(self):
        self.reader = None


def _default_engine_factory():
    from src.core import config_manager
    config = config_manager.load_config()
    return EasyOcrEngine(
        languages=config.get('ocr_languages', ['en']),
        gpu=config.get('ocr_gpu', False),
        digits_only=config.get('ocr_digits_only', True),
    )


class EngineRegistry:
    """
    Process-wide owner of OCR engines. An engine is created on first demand,
    shared by every scanner session and torn down only at shutdown.
    """

    def __init__(self):
        self._factories: Dict[str, Callable] = {'easyocr': _default_engine_factory}
        self._engines: Dict[str, object] = {}
        self._lock = threading.Lock()

    def register_factory(self, name: str, factory: Callable):
        with self._lock:
            self._factories[name] = factory

    def get(self, name: str = 'easyocr'):
        with self._lock:
            engine = self._engines.get(name)
            if engine is None:
                if name not in self._factories:
                    raise KeyError(f"Unknown OCR engine: {name}")
                logger.info(f"Creating OCR engine '{name}'")
                engine = self._factories[name]()
                self._engines[name] = engine
            return engine

    def shutdown(self):
        with self._lock:
            for name, engine in self._engines.items():
                close = getattr(engine, 'close', None)
                if close:
                    try:
                        close()
                    except Exception as e:
                        logger.error(f"Error closing OCR engine '{name}': {e}")
                logger.info(f"OCR engine '{name}' shut down")
            self._engines.clear()


engine_registry = EngineRegistry()


class TextRecognitionAdapter:
    """
    Async front for the shared OCR engine.

    Failures are an expected outcome: recognize returns None and leaves the
    reason in `error`. Only one recognition may be outstanding; a concurrent
    call is rejected.
    """

    def __init__(self, registry: EngineRegistry = engine_registry, engine_name: str = 'easyocr',
                 on_progress: Optional[ProgressCallback] = None):
        self.registry = registry
        self.engine_name = engine_name
        self.on_progress = on_progress
        self.is_processing = False
        self.error: Optional[str] = None
        self.progress = 0

    def _set_progress(self, value: int):
        self.progress = max(0, min(100, int(value)))
        if self.on_progress:
            self.on_progress(self.progress)

    async def recognize(self, image, rectangle: Optional[Rect] = None) -> Optional[RecognitionResult]:
        if self.is_processing:
            self.error = "Recognition already in progress"
            logger.warning(self.error)
            return None

        self.is_processing = True
        self.error = None
        self._set_progress(0)

        try:
            engine = self.registry.get(self.engine_name)
            raw = await run.io_bound(engine.recognize, image, rectangle, self._set_progress)
            if raw is None:
                raise RecognitionFailure("Recognition was cancelled")

            text = extract_ticket_number(raw.text)
            logger.info(f"OCR raw '{raw.text}' -> '{text}' ({raw.confidence:.1f}%)")
            return RecognitionResult(text=text, confidence=raw.confidence)
        except Exception as e:
            self.error = str(e) or "OCR failed"
            logger.error(f"Recognition failed: {self.error}")
            return None
        finally:
            self.is_processing = False
