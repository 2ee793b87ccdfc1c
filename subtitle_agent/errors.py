"""Exceptions raised inside the acquisition pipeline.

Only ``ProviderError``/``DownloadError`` (after the retry budget) and
``PersistenceError`` ever reach ``SubtitleAgent.acquire`` callers, and even
then only as the ``error`` string of a failed ``PipelineResult``.
"""


class PipelineError(Exception):
    pass


class ProviderError(PipelineError):
    """The subtitle search failed or returned something unusable."""


class NoTracksFound(ProviderError):
    def __init__(self, message: str = "No subtitles found"):
        super().__init__(message)


class DownloadError(PipelineError):
    """Fetching the selected subtitle file failed."""


class PersistenceError(PipelineError):
    """The converted caption could not be written to the cache."""


class TranslationError(PipelineError):
    """A single translation call failed; the engine falls back to the source text."""
