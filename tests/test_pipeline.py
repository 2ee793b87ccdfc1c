from pathlib import Path
from unittest.mock import MagicMock

import pytest

from subtitle_agent import PipelineConfig, SubtitleAgent
from subtitle_agent.cache_store import CacheStore
from subtitle_agent.config import CacheConfig
from subtitle_agent.errors import DownloadError, NoTracksFound, PersistenceError, ProviderError
from subtitle_agent.provider import select_track
from subtitle_agent.subtitles import srt_to_vtt
from subtitle_agent.types import CacheKey, MediaType, SearchCriteria, SubtitleTrack

from .conftest import SAMPLE_SRT, FakeTranslator, failing


def fake_provider(search_results=None, download_results=None):
    provider = MagicMock()
    provider.search.side_effect = search_results or [[SubtitleTrack("en", "https://cdn/en.srt")]]
    provider.select.side_effect = lambda tracks: select_track(tracks, "en")
    provider.download.side_effect = download_results or [SAMPLE_SRT]
    return provider


def fake_resolver(imdb_id="tt0137523"):
    resolver = MagicMock()
    resolver.resolve.return_value = imdb_id
    return resolver


@pytest.fixture
def config(tmp_path: Path) -> PipelineConfig:
    return PipelineConfig(cache=CacheConfig(root=tmp_path / "subtitles"), retry_delay=0.0)


@pytest.fixture
def build_agent(config):
    agents = []

    def factory(**kwargs):
        kwargs.setdefault("resolver", fake_resolver())
        kwargs.setdefault("provider", fake_provider())
        kwargs.setdefault("translator", FakeTranslator())
        agent = SubtitleAgent(config=config, **kwargs)
        agents.append(agent)
        return agent

    yield factory
    for agent in agents:
        agent.close()


def test_fresh_run_produces_vtt(build_agent, config):
    translator = FakeTranslator()
    agent = build_agent(translator=translator)

    result = agent.acquire("550", "movie")

    expected_path = config.cache.root / "movies" / "550" / "caption.vtt"
    assert result.success and not result.from_cache
    assert result.artifact_path == expected_path
    assert result.url == "/subtitles/movies/550/caption.vtt"
    content = expected_path.read_text(encoding="utf-8")
    assert content.startswith("WEBVTT\n\n1\n00:00:01.000 --> 00:00:02.500\n<Hello there.>\n")
    assert "<It was 00:01:02,345 exactly.>" in content
    assert sorted(translator.texts()) == ["Hello there.", "How are you?", "It was 00:01:02,345 exactly."]


def test_second_call_is_served_from_cache_without_network(build_agent):
    resolver, provider, translator = fake_resolver(), fake_provider(), FakeTranslator()
    agent = build_agent(resolver=resolver, provider=provider, translator=translator)

    first = agent.acquire("550", "movie")
    first_bytes = first.artifact_path.read_bytes()
    second = agent.acquire("550", "movie")

    assert second.success and second.from_cache
    assert second.artifact_path == first.artifact_path
    assert second.artifact_path.read_bytes() == first_bytes
    assert resolver.resolve.call_count == 1
    assert provider.search.call_count == 1
    assert provider.download.call_count == 1
    assert len(translator.calls) == 3


def test_existing_artifact_short_circuits_a_fresh_agent(build_agent, config):
    store = CacheStore(config.cache)
    path = store.resolve_path(CacheKey.build("7", "movie"))
    store.write(path, "WEBVTT\n\ncached")
    resolver, provider = fake_resolver(), fake_provider()

    result = build_agent(resolver=resolver, provider=provider).acquire(7, "movie")

    assert result.success and result.from_cache
    resolver.resolve.assert_not_called()
    provider.search.assert_not_called()


def test_series_search_uses_resolved_id_and_episode(build_agent, config):
    provider = fake_provider()
    agent = build_agent(provider=provider, resolver=fake_resolver("tt0944947"))

    result = agent.acquire("1399", "tv", season=1, episode=2)

    assert result.success
    assert result.artifact_path == config.cache.root / "series" / "1399" / "season1" / "episode2" / "caption.vtt"
    provider.search.assert_called_once_with(
        SearchCriteria(id="tt0944947", id_kind="imdb", season=1, episode=2, format="srt")
    )


def test_missing_alternate_id_searches_by_primary_id(build_agent):
    provider = fake_provider()
    result = build_agent(provider=provider, resolver=fake_resolver(None)).acquire("550", MediaType.MOVIE)

    assert result.success
    provider.search.assert_called_once_with(SearchCriteria(id="550", id_kind="tmdb", format="srt"))


def test_retries_reuse_resolved_id_and_recover(build_agent, monkeypatch):
    sleeps = []
    monkeypatch.setattr("subtitle_agent.pipeline.time.sleep", sleeps.append)
    resolver = fake_resolver()
    provider = fake_provider(
        search_results=[ProviderError("HTTP 502"), NoTracksFound(), [SubtitleTrack("en", "u")]],
    )

    result = build_agent(resolver=resolver, provider=provider).acquire("550", "movie")

    assert result.success and not result.from_cache
    assert provider.search.call_count == 3
    assert resolver.resolve.call_count == 1
    assert {call.args[0].id for call in provider.search.call_args_list} == {"tt0137523"}
    assert sleeps == [0.0, 0.0]


def test_download_errors_are_retried(build_agent):
    provider = fake_provider(
        search_results=[[SubtitleTrack("en", "u")]] * 2,
        download_results=[DownloadError("Subtitle download failed: 500"), SAMPLE_SRT],
    )
    assert build_agent(provider=provider).acquire("550", "movie").success
    assert provider.download.call_count == 2


def test_retry_exhaustion_reports_last_error_and_writes_nothing(build_agent, config):
    provider = fake_provider(
        search_results=[ProviderError("first"), ProviderError("second"), NoTracksFound()],
    )
    translator = FakeTranslator()

    result = build_agent(provider=provider, translator=translator).acquire("550", "movie")

    assert not result.success
    assert result.error == "No subtitles found"
    assert result.to_dict() == {"success": False, "fromCache": False, "error": "No subtitles found"}
    assert provider.search.call_count == 3
    assert translator.calls == []
    assert not (config.cache.root / "movies" / "550" / "caption.vtt").exists()


def test_all_translations_failing_still_succeeds_with_source_text(build_agent):
    result = build_agent(translator=FakeTranslator(failing)).acquire("550", "movie")

    assert result.success
    assert result.artifact_path.read_text(encoding="utf-8") == srt_to_vtt(SAMPLE_SRT)


def test_persistence_failure_is_reported(build_agent, config):
    cache_store = MagicMock(wraps=CacheStore(config.cache))
    cache_store.write.side_effect = PersistenceError("disk full")

    result = build_agent(cache_store=cache_store).acquire("550", "movie")

    assert not result.success
    assert result.error == "disk full"


@pytest.mark.parametrize(
    "args",
    [("1399", "series", None, None), ("550", "podcast", None, None), ("", "movie", None, None)],
)
def test_invalid_requests_fail_without_outbound_calls(build_agent, args):
    resolver, provider = fake_resolver(), fake_provider()
    result = build_agent(resolver=resolver, provider=provider).acquire(*args)

    assert not result.success
    assert result.error
    resolver.resolve.assert_not_called()
    provider.search.assert_not_called()


def test_unexpected_errors_become_structured_failures(build_agent):
    resolver = fake_resolver()
    resolver.resolve.side_effect = KeyError("boom")
    result = build_agent(resolver=resolver).acquire("550", "movie")
    assert not result.success
    assert "boom" in result.error


def test_lookup_and_payload(build_agent):
    agent = build_agent()
    assert agent.lookup("550", "movie") is None

    result = agent.acquire("550", "movie")

    assert agent.lookup("550", "movie") == result.artifact_path
    assert result.to_dict() == {
        "success": True,
        "fromCache": False,
        "path": str(result.artifact_path),
        "url": "/subtitles/movies/550/caption.vtt",
    }


def test_path_like_ids_are_rejected_before_anything_is_written(build_agent, config, tmp_path):
    provider = fake_provider()
    agent = build_agent(provider=provider)

    for media_id in (str(tmp_path / "outside"), "1/../2"):
        result = agent.acquire(media_id, "movie")
        assert not result.success
        assert "Invalid media_id" in result.error

    provider.search.assert_not_called()
    assert not (tmp_path / "outside").exists()


def test_key_locks_are_released_after_each_run(build_agent):
    agent = build_agent()
    assert agent.acquire("550", "movie").success
    assert agent.acquire("550", "movie").from_cache
    assert agent.cache_store._locks == {}


def test_byte_order_mark_download_keeps_index_line(build_agent):
    translator = FakeTranslator()
    provider = fake_provider(download_results=["\ufeff" + SAMPLE_SRT])

    result = build_agent(provider=provider, translator=translator).acquire("550", "movie")

    assert result.artifact_path.read_text(encoding="utf-8").startswith("WEBVTT\n\n1\n00:00:01.000")
    assert "\ufeff1" not in translator.texts()


def test_backwards_cue_timings_are_logged(build_agent, caplog):
    shuffled = (
        "1\n00:00:05,000 --> 00:00:06,000\nLater\n\n"
        "2\n00:00:01,000 --> 00:00:02,000\nEarlier\n"
    )
    provider = fake_provider(download_results=[shuffled])

    with caplog.at_level("WARNING", logger="subtitle_agent.pipeline"):
        result = build_agent(provider=provider).acquire("550", "movie")

    assert result.success
    assert "timings go backwards at cues [2]" in caplog.text
