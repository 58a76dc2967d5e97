import sys
import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock, patch

import numpy as np

from src.core.constants import DIGITS
from src.core.errors import RecognitionFailure
from src.core.models import Rect, RecognitionResult
from src.services.scanner.ocr import (
    EasyOcrEngine, EngineRegistry, TextRecognitionAdapter, extract_ticket_number
)


def _inline_io_bound():
    return patch('src.services.scanner.ocr.run.io_bound',
                 new=AsyncMock(side_effect=lambda f, *args, **kwargs: f(*args, **kwargs)))


class FakeEngine:
    def __init__(self, text="12345", confidence=88.0, error=None):
        self.text = text
        self.confidence = confidence
        self.error = error
        self.calls = []

    def recognize(self, image, region=None, progress=None):
        self.calls.append(region)
        if progress:
            progress(50)
        if self.error:
            raise self.error
        if progress:
            progress(100)
        return RecognitionResult(text=self.text, confidence=self.confidence)

    def close(self):
        pass


def _registry(engine):
    registry = EngineRegistry()
    registry.register_factory('fake', lambda: engine)
    return registry


class TestTicketNumberExtraction(unittest.TestCase):
    def test_longest_digit_run_wins(self):
        self.assertEqual(extract_ticket_number("O 12345 X 678"), "12345")

    def test_first_run_wins_ties(self):
        self.assertEqual(extract_ticket_number("12 34"), "12")
        self.assertEqual(extract_ticket_number("No.555 / 777"), "555")

    def test_fallback_without_digits(self):
        self.assertEqual(extract_ticket_number("AB-C d!"), "AB-Cd")

    def test_empty_text(self):
        self.assertEqual(extract_ticket_number(""), "")
        self.assertEqual(extract_ticket_number("  \n "), "")


class TestTextRecognitionAdapter(unittest.IsolatedAsyncioTestCase):
    async def test_recognize_post_processes_engine_text(self):
        engine = FakeEngine(text="O 12345 X 678", confidence=72.5)
        adapter = TextRecognitionAdapter(registry=_registry(engine), engine_name='fake')
        region = Rect(left=1, top=2, width=3, height=4)

        with _inline_io_bound():
            result = await adapter.recognize(object(), region)

        self.assertEqual(result.text, "12345")
        self.assertEqual(result.confidence, 72.5)
        self.assertEqual(engine.calls, [region])
        self.assertIsNone(adapter.error)
        self.assertEqual(adapter.progress, 100)
        self.assertFalse(adapter.is_processing)

    async def test_engine_failure_returns_none(self):
        engine = FakeEngine(error=RuntimeError("engine exploded"))
        adapter = TextRecognitionAdapter(registry=_registry(engine), engine_name='fake')

        with _inline_io_bound():
            result = await adapter.recognize(object())

        self.assertIsNone(result)
        self.assertEqual(adapter.error, "engine exploded")
        self.assertFalse(adapter.is_processing)

    async def test_progress_callback(self):
        seen = []
        adapter = TextRecognitionAdapter(registry=_registry(FakeEngine()), engine_name='fake',
                                         on_progress=seen.append)
        with _inline_io_bound():
            await adapter.recognize(object())
        self.assertEqual(seen, [0, 50, 100])

    async def test_engine_created_once_across_sessions(self):
        factory = MagicMock(return_value=FakeEngine())
        registry = EngineRegistry()
        registry.register_factory('fake', factory)

        with _inline_io_bound():
            for _ in range(3):
                adapter = TextRecognitionAdapter(registry=registry, engine_name='fake')
                await adapter.recognize(object())

        factory.assert_called_once()

    async def test_concurrent_call_rejected(self):
        release = asyncio.Event()

        async def slow_io_bound(f, *args, **kwargs):
            await release.wait()
            return f(*args, **kwargs)

        engine = FakeEngine()
        adapter = TextRecognitionAdapter(registry=_registry(engine), engine_name='fake')

        with patch('src.services.scanner.ocr.run.io_bound', new=AsyncMock(side_effect=slow_io_bound)):
            first = asyncio.create_task(adapter.recognize(object()))
            await asyncio.sleep(0)
            self.assertTrue(adapter.is_processing)

            second = await adapter.recognize(object())
            self.assertIsNone(second)
            self.assertEqual(adapter.error, "Recognition already in progress")

            release.set()
            result = await first

        self.assertEqual(result.text, "12345")
        self.assertEqual(len(engine.calls), 1)


class TestEngineRegistry(unittest.TestCase):
    def test_unknown_engine(self):
        with self.assertRaises(KeyError):
            EngineRegistry().get('nope')

    def test_shutdown_closes_and_forgets(self):
        engines = []

        def factory():
            engine = MagicMock()
            engines.append(engine)
            return engine

        registry = EngineRegistry()
        registry.register_factory('fake', factory)
        first = registry.get('fake')
        self.assertIs(registry.get('fake'), first)

        registry.shutdown()
        first.close.assert_called_once()

        self.assertIsNot(registry.get('fake'), first)
        self.assertEqual(len(engines), 2)


class TestEasyOcrEngine(unittest.TestCase):
    def test_reader_loaded_lazily_once(self):
        fake_easyocr = MagicMock()
        with patch.dict(sys.modules, {'easyocr': fake_easyocr}):
            engine = EasyOcrEngine(languages=['en'], gpu=False)
            fake_easyocr.Reader.assert_not_called()
            engine.load()
            engine.load()
        fake_easyocr.Reader.assert_called_once_with(['en'], gpu=False)

    def test_recognize_crops_region_and_restricts_to_digits(self):
        engine = EasyOcrEngine()
        engine.reader = MagicMock()
        engine.reader.readtext.return_value = [
            ([[0, 0], [1, 0], [1, 1], [0, 1]], '123', 0.9),
            ([[0, 0], [1, 0], [1, 1], [0, 1]], '45', 0.7),
        ]
        image = np.zeros((100, 200, 3), dtype=np.uint8)
        progress = []

        result = engine.recognize(image, Rect(left=10, top=20, width=50, height=30), progress.append)

        args, kwargs = engine.reader.readtext.call_args
        self.assertEqual(args[0].shape, (30, 50, 3))
        self.assertEqual(kwargs['allowlist'], DIGITS)
        self.assertEqual(result.text, '123 45')
        self.assertAlmostEqual(result.confidence, 80.0)
        self.assertEqual(progress, [10, 30, 90, 100])

    def test_empty_region_fails(self):
        engine = EasyOcrEngine()
        engine.reader = MagicMock()
        image = np.zeros((100, 200, 3), dtype=np.uint8)
        with self.assertRaises(RecognitionFailure):
            engine.recognize(image, Rect(left=10, top=20, width=0, height=30))

    def test_missing_frame_with_region_fails(self):
        engine = EasyOcrEngine()
        engine.reader = MagicMock()
        with self.assertRaises(RecognitionFailure):
            engine.recognize(None, Rect(left=10, top=20, width=50, height=30))
        engine.reader.readtext.assert_not_called()

    def test_no_text_found(self):
        engine = EasyOcrEngine(digits_only=False)
        engine.reader = MagicMock()
        engine.reader.readtext.return_value = []
        result = engine.recognize(np.zeros((10, 10, 3), dtype=np.uint8))
        self.assertEqual(result.text, '')
        self.assertEqual(result.confidence, 0.0)
        self.assertIsNone(engine.reader.readtext.call_args.kwargs['allowlist'])


if __name__ == '__main__':
    unittest.main()
