from __future__ import annotations

import logging
import os
from typing import Optional

import requests

from .config import ResolverConfig
from .types import MediaType

logger = logging.getLogger(__name__)


class ExternalIdResolver:
    """Map a TMDb id to the IMDb id the subtitle provider prefers.

    This is a soft dependency: any failure is logged and reported as ``None``.
    """

    def __init__(self, config: Optional[ResolverConfig] = None, session: Optional[requests.Session] = None):
        self.config = config or ResolverConfig()
        self.session = session or requests.Session()
        self.api_key = os.getenv(self.config.api_key_env) if self.config.api_key_env else None
        self.base_url = self.config.api_base.rstrip("/")

    def resolve(self, media_id: str, media_type: MediaType) -> Optional[str]:
        if not self.api_key:
            logger.warning("TMDb API key not set (env %s); searching by primary id.", self.config.api_key_env)
            return None
        kind = "movie" if media_type is MediaType.MOVIE else "tv"
        url = f"{self.base_url}/{kind}/{media_id}/external_ids"
        try:
            response = self.session.get(url, params={"api_key": self.api_key}, timeout=self.config.timeout)
            if response.status_code >= 400:
                logger.warning("External id lookup failed for %s %s (HTTP %s)", kind, media_id, response.status_code)
                return None
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("External id lookup failed for %s %s: %s", kind, media_id, exc)
            return None

        imdb_id = data.get("imdb_id") if isinstance(data, dict) else None
        if not imdb_id:
            logger.info("No IMDb id listed for %s %s", kind, media_id)
            return None
        logger.info("Resolved TMDb %s %s to IMDb id %s", kind, media_id, imdb_id)
        return str(imdb_id)
