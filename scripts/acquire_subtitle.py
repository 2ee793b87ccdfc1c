import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from subtitle_agent import PipelineConfig, SubtitleAgent
from subtitle_agent.config import CacheConfig, ProviderConfig, ResolverConfig, TranslationConfig


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fetch a subtitle for a movie or episode, translate it and cache it as WebVTT.")
    parser.add_argument("media_id", type=str, help="TMDb id of the movie or series.")
    parser.add_argument("--type", dest="media_type", type=str, default="movie", help="Media type (movie/series/tv/anime).")
    parser.add_argument("--season", type=int, help="Season number (series only).")
    parser.add_argument("--episode", type=int, help="Episode number (series only).")
    parser.add_argument("--output-dir", type=Path, default=Path("subtitles"), help="Root directory of the caption cache.")
    parser.add_argument("--url-prefix", type=str, default="/subtitles", help="Public URL prefix the cache root is served under.")
    parser.add_argument("--source-lang", type=str, default="en", help="Language of the subtitle to fetch and translate from.")
    parser.add_argument("--target-lang", type=str, default="ckb", help="Language to translate into.")
    parser.add_argument("--translation-provider", type=str, choices=["google", "openai"], default="google", help="Translation backend to use.")
    parser.add_argument("--translation-model", type=str, default="gpt-4o-mini", help="Model name for the openai provider.")
    parser.add_argument("--translation-api-base", type=str, help="Custom base URL for the translation API (optional).")
    parser.add_argument("--translation-api-key-env", type=str, help="Environment variable containing the translation API key.")
    parser.add_argument("--concurrency", type=int, default=10, help="Maximum translation calls in flight.")
    parser.add_argument("--cache-size", type=int, default=10000, help="Maximum number of translated lines kept in memory.")
    parser.add_argument("--provider-api-base", type=str, default="https://sub.wyzie.ru", help="Base URL of the subtitle search API.")
    parser.add_argument("--tmdb-api-key-env", type=str, default="TMDB_KEY", help="Environment variable containing the TMDb API key.")
    parser.add_argument("--attempts", type=int, default=3, help="Subtitle search/download attempts before giving up.")
    parser.add_argument("--retry-delay", type=float, default=3.0, help="Seconds to wait between attempts.")
    parser.add_argument("--log-level", type=str, default="INFO", help="Logging level (DEBUG, INFO, WARNING, ERROR).")
    return parser.parse_args()


def build_config(args: argparse.Namespace) -> PipelineConfig:
    translation_api_key_env = args.translation_api_key_env
    if not translation_api_key_env:
        translation_api_key_env = "GOOGLE_TRANSLATE_KEY" if args.translation_provider == "google" else "OPENAI_API_KEY"

    translation = TranslationConfig(
        provider=args.translation_provider,
        source_language=args.source_lang,
        target_language=args.target_lang,
        concurrency=args.concurrency,
        cache_size=args.cache_size,
        api_base=args.translation_api_base,
        api_key_env=translation_api_key_env,
        model=args.translation_model,
    )

    return PipelineConfig(
        resolver=ResolverConfig(api_key_env=args.tmdb_api_key_env),
        provider=ProviderConfig(api_base=args.provider_api_base, source_language=args.source_lang),
        translation=translation,
        cache=CacheConfig(root=args.output_dir, url_prefix=args.url_prefix),
        max_attempts=args.attempts,
        retry_delay=args.retry_delay,
    )


def main() -> None:
    args = parse_args()
    load_dotenv()
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))

    config = build_config(args)
    with SubtitleAgent(config=config) as agent:
        result = agent.acquire(args.media_id, args.media_type, season=args.season, episode=args.episode)

    print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    if not result.success:
        logging.error("Subtitle acquisition failed: %s", result.error)
        sys.exit(1)
    logging.info("Caption available at %s (%s)", result.artifact_path, result.url)


if __name__ == "__main__":
    main()
