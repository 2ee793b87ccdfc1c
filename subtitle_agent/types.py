from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

# Ids become a single path segment under the cache root.
MEDIA_ID_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9_-]*")


class MediaType(str, Enum):
    """Kind of media a caption belongs to."""

    MOVIE = "movie"
    SERIES = "series"

    @classmethod
    def parse(cls, value: "MediaType | str") -> "MediaType":
        """Accept the enum itself or the names the web layer sends (``tv`` and ``anime`` are series)."""
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower()
        if normalized == "movie":
            return cls.MOVIE
        if normalized in {"series", "tv", "anime", "show"}:
            return cls.SERIES
        raise ValueError(f"Unsupported media type: {value!r}")


@dataclass(frozen=True)
class CacheKey:
    """Identity of one persisted caption artifact."""

    media_id: str
    media_type: MediaType
    season: Optional[int] = None
    episode: Optional[int] = None

    def __post_init__(self) -> None:
        if not MEDIA_ID_RE.fullmatch(str(self.media_id)):
            raise ValueError(f"Invalid media_id: {self.media_id!r}")
        if self.media_type is MediaType.SERIES:
            if self.season is None or self.episode is None:
                raise ValueError("Season and episode are required for series.")
        elif self.season is not None or self.episode is not None:
            raise ValueError("Season and episode only apply to series.")

    @classmethod
    def build(
        cls,
        media_id: "str | int",
        media_type: "MediaType | str",
        season: Optional[int] = None,
        episode: Optional[int] = None,
    ) -> "CacheKey":
        kind = MediaType.parse(media_type)
        if kind is MediaType.MOVIE:
            season = episode = None
        else:
            season = int(season) if season is not None else None
            episode = int(episode) if episode is not None else None
        return cls(media_id=str(media_id).strip(), media_type=kind, season=season, episode=episode)


@dataclass
class SearchCriteria:
    """Query sent to the subtitle search service."""

    id: str
    id_kind: str  # "imdb" or "tmdb"
    season: Optional[int] = None
    episode: Optional[int] = None
    format: str = "srt"


@dataclass
class SubtitleTrack:
    """One candidate subtitle file returned by the provider."""

    language: str
    source_url: str
    display: Optional[str] = None
    format: Optional[str] = None


@dataclass
class Cue:
    """Single timed caption entry."""

    index: int
    start: dt.timedelta
    end: dt.timedelta
    lines: List[str] = field(default_factory=list)


@dataclass
class CueDocument:
    """Ordered cues of one subtitle file."""

    cues: List[Cue] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.cues)


@dataclass
class PipelineResult:
    """Outcome of one acquisition run, the only thing callers see."""

    success: bool
    artifact_path: Optional[Path] = None
    url: Optional[str] = None
    from_cache: bool = False
    error: Optional[str] = None

    def to_dict(self) -> dict:
        payload = {"success": self.success, "fromCache": self.from_cache}
        if self.success:
            payload["path"] = str(self.artifact_path) if self.artifact_path else None
            payload["url"] = self.url
        else:
            payload["error"] = self.error
        return payload
