from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Dict, Optional

from .subtitles import is_translatable
from .translation import BaseTranslator
from .translation_cache import CacheEntryKey, TranslationCache

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 10


@dataclass
class TranslationStats:
    total_lines: int = 0
    distinct_lines: int = 0
    cache_hits: int = 0
    failures: int = 0


class TranslationEngine:
    """Translate the dialogue lines of a SubRip document through a bounded worker pool.

    Identical lines are translated once: results land in a process-wide LRU
    cache, and a line that is already being translated (by this run or any
    other) is awaited rather than requested again. A failed call never fails
    the document; that line keeps its source text.
    """

    def __init__(
        self,
        translator: BaseTranslator,
        concurrency: int = DEFAULT_CONCURRENCY,
        cache: Optional[TranslationCache] = None,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.translator = translator
        self.concurrency = concurrency
        self.cache = cache if cache is not None else TranslationCache()
        self._executor = ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="translate")
        self._inflight: Dict[CacheEntryKey, "Future[Optional[str]]"] = {}
        self._lock = threading.Lock()

    def translate_document(self, content: str, source_lang: str, target_lang: str) -> str:
        if content.startswith("\ufeff"):
            content = content[1:]
        lines = content.split("\n")
        dialogue = [line.strip() for line in lines if is_translatable(line)]
        distinct = list(dict.fromkeys(dialogue))
        stats = TranslationStats(total_lines=len(dialogue), distinct_lines=len(distinct))
        logger.info("Translating %s subtitle lines (%s unique)", stats.total_lines, stats.distinct_lines)

        pending: Dict[str, "Future[Optional[str]]"] = {}
        for text in distinct:
            key = (source_lang, target_lang, text)
            cached = self.cache.get(key)
            if cached is not None:
                stats.cache_hits += 1
                pending[text] = _resolved(cached)
            else:
                pending[text] = self._request(key)
        wait(pending.values())

        translations: Dict[str, str] = {}
        for text, future in pending.items():
            translated = future.result()
            if translated is None:
                stats.failures += 1
            else:
                translations[text] = translated

        logger.info(
            "Translation finished: %s unique, %s from cache, %s fell back to source text",
            stats.distinct_lines,
            stats.cache_hits,
            stats.failures,
        )
        return "\n".join(_substitute(line, translations) if is_translatable(line) else line for line in lines)

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def _request(self, key: CacheEntryKey) -> "Future[Optional[str]]":
        with self._lock:
            future = self._inflight.get(key)
            if future is not None:
                return future
            # A worker may have finished between the caller's cache check and this lock.
            cached = self.cache.get(key)
            if cached is not None:
                return _resolved(cached)
            future = self._executor.submit(self._translate, key)
            self._inflight[key] = future
            return future

    def _translate(self, key: CacheEntryKey) -> Optional[str]:
        source_lang, target_lang, text = key
        try:
            translated = _single_line(self.translator.translate_text(text, source_lang, target_lang))
            if not translated:
                translated = text
            self.cache.set(key, translated)
            return translated
        except Exception as exc:  # any backend failure degrades to the source line
            logger.warning("Translation failed for text %r: %s", text[:50], exc)
            return None
        finally:
            with self._lock:
                self._inflight.pop(key, None)


def _resolved(value: str) -> "Future[Optional[str]]":
    future: "Future[Optional[str]]" = Future()
    future.set_result(value)
    return future


def _single_line(text: str) -> str:
    return " ".join(part.strip() for part in text.strip().splitlines() if part.strip())


def _substitute(line: str, translations: Dict[str, str]) -> str:
    core = line.strip()
    translated = translations.get(core)
    if translated is None:
        return line
    start = len(line) - len(line.lstrip())
    return line[:start] + translated + line[start + len(core):]
