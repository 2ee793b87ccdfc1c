from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import requests

from .config import ProviderConfig
from .errors import DownloadError, NoTracksFound, ProviderError
from .types import CacheKey, MediaType, SearchCriteria, SubtitleTrack

logger = logging.getLogger(__name__)


def build_criteria(key: CacheKey, alternate_id: Optional[str], subtitle_format: str = "srt") -> SearchCriteria:
    """Search by IMDb id when one was resolved, otherwise by the TMDb id."""
    if alternate_id:
        criteria = SearchCriteria(id=alternate_id, id_kind="imdb", format=subtitle_format)
    else:
        criteria = SearchCriteria(id=key.media_id, id_kind="tmdb", format=subtitle_format)
    if key.media_type is MediaType.SERIES:
        criteria.season = key.season
        criteria.episode = key.episode
    return criteria


def select_track(tracks: Sequence[SubtitleTrack], preferred_language: str) -> SubtitleTrack:
    if not tracks:
        raise NoTracksFound()
    wanted = preferred_language.lower()
    for track in tracks:
        if (track.language or "").lower() == wanted:
            return track
    return tracks[0]


class SubtitleProviderClient:
    """Client for a wyzie-style subtitle search API."""

    def __init__(self, config: Optional[ProviderConfig] = None, session: Optional[requests.Session] = None):
        self.config = config or ProviderConfig()
        self.session = session or requests.Session()
        self.base_url = self.config.api_base.rstrip("/")

    def search(self, criteria: SearchCriteria) -> List[SubtitleTrack]:
        params = {"id": criteria.id, "format": criteria.format}
        if criteria.season is not None:
            params["season"] = criteria.season
        if criteria.episode is not None:
            params["episode"] = criteria.episode
        logger.info("Searching subtitles by %s id %s", criteria.id_kind, criteria.id)
        try:
            response = self.session.get(f"{self.base_url}/search", params=params, timeout=self.config.timeout)
        except requests.RequestException as exc:
            raise ProviderError(f"Subtitle search failed: {exc}") from exc
        if response.status_code >= 400:
            raise ProviderError(f"Subtitle search failed (HTTP {response.status_code})")
        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderError("Subtitle search returned invalid JSON") from exc
        if not isinstance(payload, list):
            raise ProviderError(f"Unexpected subtitle search payload: {type(payload).__name__}")

        tracks = [
            SubtitleTrack(
                language=str(item.get("language") or ""),
                source_url=str(item["url"]),
                display=item.get("display"),
                format=item.get("format"),
            )
            for item in payload
            if isinstance(item, dict) and item.get("url")
        ]
        if not tracks:
            raise NoTracksFound()
        logger.debug("Subtitle search returned %s tracks", len(tracks))
        return tracks

    def select(self, tracks: Sequence[SubtitleTrack]) -> SubtitleTrack:
        return select_track(tracks, self.config.source_language)

    def download(self, track: SubtitleTrack) -> str:
        try:
            response = self.session.get(track.source_url, timeout=self.config.timeout)
        except requests.RequestException as exc:
            raise DownloadError(f"Subtitle download failed: {exc}") from exc
        if response.status_code >= 400:
            raise DownloadError(f"Subtitle download failed: {response.status_code}")
        text = response.content.decode("utf-8-sig", errors="replace")
        logger.info("Downloaded %s subtitle (%s characters)", track.language or "unknown", len(text))
        return text
