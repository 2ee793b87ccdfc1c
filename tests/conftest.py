from __future__ import annotations

import threading
import time
from typing import Callable, Dict, List, Optional, Tuple

import pytest
import requests

from subtitle_agent.errors import TranslationError
from subtitle_agent.translation import BaseTranslator

SAMPLE_SRT = (
    "1\n"
    "00:00:01,000 --> 00:00:02,500\n"
    "Hello there.\n"
    "\n"
    "2\n"
    "00:00:03,000 --> 00:00:04,000\n"
    "How are you?\n"
    "Hello there.\n"
    "\n"
    "3\n"
    "00:01:02,345 --> 00:01:04,000\n"
    "It was 00:01:02,345 exactly.\n"
)


class FakeResponse:
    def __init__(self, status_code: int = 200, payload=None, content: bytes = b""):
        self.status_code = status_code
        self._payload = payload
        self.content = content

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeSession:
    """Stands in for ``requests.Session``; answers GETs from a list of canned results per URL."""

    def __init__(self, routes: Optional[Dict[str, list]] = None):
        self.routes = routes or {}
        self.calls: List[Tuple[str, object]] = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params))
        queue = self.routes.get(url)
        if not queue:
            raise requests.ConnectionError(f"no route for {url}")
        result = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(result, Exception):
            raise result
        return result


class FakeTranslator(BaseTranslator):
    """Records every call; ``fn`` decides the translation and may raise."""

    def __init__(self, fn: Optional[Callable[[str], str]] = None, delay: float = 0.0):
        self.fn = fn or (lambda text: f"<{text}>")
        self.delay = delay
        self.calls: List[Tuple[str, str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def translate_text(self, text: str, source_lang: str, target_lang: str) -> str:
        with self._lock:
            self.calls.append((text, source_lang, target_lang))
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            return self.fn(text)
        finally:
            with self._lock:
                self.in_flight -= 1

    def texts(self) -> List[str]:
        return [call[0] for call in self.calls]


def failing(text: str) -> str:
    raise TranslationError(f"upstream refused {text!r}")


@pytest.fixture
def translator() -> FakeTranslator:
    return FakeTranslator()
