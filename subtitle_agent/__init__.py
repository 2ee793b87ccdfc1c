"""Fetch source subtitles for a movie or episode, translate them and cache them as WebVTT."""

from .config import PipelineConfig
from .pipeline import SubtitleAgent
from .types import CacheKey, MediaType, PipelineResult

__all__ = ["SubtitleAgent", "PipelineConfig", "CacheKey", "MediaType", "PipelineResult"]
