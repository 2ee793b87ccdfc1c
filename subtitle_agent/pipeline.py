from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional

from .cache_store import CacheStore
from .config import PipelineConfig
from .engine import TranslationEngine
from .errors import DownloadError, PersistenceError, ProviderError
from .provider import SubtitleProviderClient, build_criteria
from .resolver import ExternalIdResolver
from .subtitles import out_of_order_cues, parse_cue_document, srt_to_vtt
from .translation import BaseTranslator, build_translator
from .translation_cache import TranslationCache
from .types import CacheKey, MediaType, PipelineResult

logger = logging.getLogger(__name__)


class SubtitleAgent:
    """Fetches, translates, converts and caches captions for one media item per call.

    One agent is meant to live for the whole process: its translation cache,
    in-flight map and worker pool are shared by every ``acquire`` call.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        resolver: Optional[ExternalIdResolver] = None,
        provider: Optional[SubtitleProviderClient] = None,
        translator: Optional[BaseTranslator] = None,
        cache_store: Optional[CacheStore] = None,
        engine: Optional[TranslationEngine] = None,
    ):
        self.config = config or PipelineConfig()
        self.cache_store = cache_store or CacheStore(self.config.cache)
        self.resolver = resolver or ExternalIdResolver(self.config.resolver)
        self.provider = provider or SubtitleProviderClient(self.config.provider)
        if engine is None:
            translation = self.config.translation
            engine = TranslationEngine(
                translator=translator or build_translator(translation),
                concurrency=translation.concurrency,
                cache=TranslationCache(translation.cache_size),
            )
        self.engine = engine

    def __enter__(self) -> "SubtitleAgent":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.engine.close()

    def lookup(
        self,
        media_id: str,
        media_type: MediaType | str,
        season: Optional[int] = None,
        episode: Optional[int] = None,
    ) -> Optional[Path]:
        """Path of an already produced caption, without touching the network."""
        return self.cache_store.lookup(CacheKey.build(media_id, media_type, season, episode))

    def acquire(
        self,
        media_id: str,
        media_type: MediaType | str,
        season: Optional[int] = None,
        episode: Optional[int] = None,
    ) -> PipelineResult:
        try:
            key = CacheKey.build(media_id, media_type, season, episode)
        except (TypeError, ValueError) as exc:
            return PipelineResult(success=False, error=str(exc))

        path = self.cache_store.resolve_path(key)
        if self.cache_store.exists(path):
            logger.info("Serving cached caption for %s", _describe(key))
            return self._produced(key, path, from_cache=True)

        with self.cache_store.key_lock(key):
            # Another run for the same key may have finished while we waited.
            if self.cache_store.exists(path):
                return self._produced(key, path, from_cache=True)
            try:
                return self._run(key, path)
            except Exception as exc:  # the boundary only ever reports structured failures
                logger.exception("Unexpected failure while producing caption for %s", _describe(key))
                return PipelineResult(success=False, error=str(exc) or exc.__class__.__name__)

    def _run(self, key: CacheKey, path: Path) -> PipelineResult:
        logger.info("Producing caption for %s", _describe(key))
        alternate_id = self.resolver.resolve(key.media_id, key.media_type)
        criteria = build_criteria(key, alternate_id, self.config.provider.subtitle_format)

        attempts = max(1, self.config.max_attempts)
        source_text: Optional[str] = None
        last_error = f"Failed after {attempts} attempts"
        for attempt in range(1, attempts + 1):
            try:
                tracks = self.provider.search(criteria)
                track = self.provider.select(tracks)
                logger.info("Selected %s subtitle %s", track.language or "unknown", track.display or track.source_url)
                source_text = self.provider.download(track)
                break
            except (ProviderError, DownloadError) as exc:
                last_error = str(exc)
                logger.warning("Subtitle attempt %s/%s failed: %s", attempt, attempts, exc)
                if attempt < attempts:
                    time.sleep(self.config.retry_delay)
        if source_text is None:
            return PipelineResult(success=False, error=last_error)

        self._log_document(source_text)
        translation = self.config.translation
        translated = self.engine.translate_document(
            source_text, translation.source_language, translation.target_language
        )
        vtt = srt_to_vtt(translated)

        try:
            self.cache_store.write(path, vtt)
        except PersistenceError as exc:
            logger.error("%s", exc)
            return PipelineResult(success=False, error=str(exc))
        return self._produced(key, path, from_cache=False)

    def _produced(self, key: CacheKey, path: Path, from_cache: bool) -> PipelineResult:
        return PipelineResult(
            success=True,
            artifact_path=path,
            url=self.cache_store.public_url(key),
            from_cache=from_cache,
        )

    def _log_document(self, source_text: str) -> None:
        try:
            document = parse_cue_document(source_text)
        except ValueError as exc:
            logger.warning("Downloaded subtitle is not strict SubRip, translating as-is: %s", exc)
            return
        logger.info("Downloaded subtitle has %s cues", len(document))
        backwards = out_of_order_cues(document)
        if backwards:
            logger.warning("Subtitle timings go backwards at cues %s", backwards[:10])


def _describe(key: CacheKey) -> str:
    if key.media_type is MediaType.SERIES:
        return f"series {key.media_id} S{key.season:02d}E{key.episode:02d}"
    return f"movie {key.media_id}"
