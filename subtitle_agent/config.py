from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass
class ResolverConfig:
    """Configuration for the TMDb external id lookup."""

    api_base: str = "https://api.themoviedb.org/3"
    api_key_env: Optional[str] = "TMDB_KEY"
    timeout: float = 10.0


@dataclass
class ProviderConfig:
    """Configuration for the subtitle search service."""

    api_base: str = "https://sub.wyzie.ru"
    source_language: str = "en"
    subtitle_format: str = "srt"
    timeout: float = 20.0


@dataclass
class TranslationConfig:
    """Configuration for per-line text translation."""

    provider: str = "google"
    source_language: str = "en"
    target_language: str = "ckb"
    concurrency: int = 10
    cache_size: int = 10000
    timeout: float = 15.0
    api_base: Optional[str] = None
    api_key_env: Optional[str] = "GOOGLE_TRANSLATE_KEY"
    model: str = "gpt-4o-mini"  # openai provider only
    temperature: float = 0.3


@dataclass
class CacheConfig:
    """Where converted captions are stored and served from."""

    root: Path = Path("subtitles")
    artifact_name: str = "caption.vtt"
    url_prefix: str = "/subtitles"


@dataclass
class PipelineConfig:
    """Top level configuration for the subtitle agent."""

    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    translation: TranslationConfig = field(default_factory=TranslationConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    max_attempts: int = 3
    retry_delay: float = 3.0
