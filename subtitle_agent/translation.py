from __future__ import annotations

import logging
import os
from typing import Optional

import requests
from openai import OpenAI

from .config import TranslationConfig
from .errors import TranslationError

logger = logging.getLogger(__name__)

DEFAULT_PROMPT_TEMPLATE = (
    "Translate the following subtitle line from {source} to {target}. "
    "Keep the meaning and tone, return only the translated line without quotes or notes.\n\n"
)

GOOGLE_TRANSLATE_URL = "https://translate-pa.googleapis.com/v1/translate"


class BaseTranslator:
    def translate_text(self, text: str, source_lang: str, target_lang: str) -> str:
        raise NotImplementedError


class GoogleTranslator(BaseTranslator):
    """Single-line translation through the Google ``translate-pa`` endpoint."""

    def __init__(self, config: TranslationConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.api_key = os.getenv(config.api_key_env) if config.api_key_env else None
        self.url = config.api_base or GOOGLE_TRANSLATE_URL
        self.session = session or requests.Session()

    def translate_text(self, text: str, source_lang: str, target_lang: str) -> str:
        params = [
            ("params.client", "gtx"),
            ("query.source_language", source_lang),
            ("query.target_language", target_lang),
            ("query.display_language", "en-US"),
            ("query.text", text),
            ("data_types", "TRANSLATION"),
        ]
        if self.api_key:
            params.append(("key", self.api_key))
        try:
            response = self.session.get(self.url, params=params, timeout=self.config.timeout)
        except requests.RequestException as exc:
            raise TranslationError(f"Translation request failed: {exc}") from exc
        if response.status_code >= 400:
            raise TranslationError(f"Translation API error: {response.status_code}")
        try:
            data = response.json()
        except ValueError as exc:
            raise TranslationError("Translation API returned invalid JSON") from exc
        translated = data.get("translation") if isinstance(data, dict) else None
        return translated or text


class OpenAITranslator(BaseTranslator):
    """Translate subtitle lines using an OpenAI-compatible Responses API."""

    def __init__(self, config: TranslationConfig, client: Optional[OpenAI] = None):
        self.config = config
        if client is not None and config.api_base:
            logger.warning("Ignoring provided OpenAI client because custom api_base was supplied.")
            client = None
        kwargs = {}
        if config.api_base:
            kwargs["base_url"] = config.api_base
        if config.api_key_env:
            api_key = os.getenv(config.api_key_env)
            if api_key:
                kwargs["api_key"] = api_key
        kwargs["timeout"] = config.timeout
        self.client = client or OpenAI(**kwargs)

    def translate_text(self, text: str, source_lang: str, target_lang: str) -> str:
        prompt = DEFAULT_PROMPT_TEMPLATE.format(source=source_lang, target=target_lang) + text
        try:
            response = self.client.responses.create(
                model=self.config.model,
                input=[
                    {"role": "system", "content": "You are a professional subtitle translator."},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.config.temperature,
            )
            content = response.output_text.strip()
        except Exception as exc:  # SDK errors, network errors and malformed responses
            raise TranslationError(f"OpenAI translation failed: {exc}") from exc
        logger.debug("Translation result: %s -> %s", text, content)
        return content or text


def build_translator(
    config: TranslationConfig,
    client: Optional[OpenAI] = None,
    session: Optional[requests.Session] = None,
) -> BaseTranslator:
    provider = (config.provider or "google").lower()
    if provider == "google":
        return GoogleTranslator(config=config, session=session)
    if provider == "openai":
        return OpenAITranslator(config=config, client=client)
    raise ValueError(f"Unsupported translation provider: {config.provider}")
