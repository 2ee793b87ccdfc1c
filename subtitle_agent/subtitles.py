from __future__ import annotations

import re
from typing import List

import srt

from .types import Cue, CueDocument

VTT_HEADER = "WEBVTT\n\n"

_TIMESTAMP = r"\d{2}:\d{2}:\d{2}[,.]\d{3}"
# Only whole timing lines are rewritten, so dialogue quoting a timestamp survives.
TIMING_LINE_RE = re.compile(
    rf"^[ \t]*{_TIMESTAMP}[ \t]*-->[ \t]*{_TIMESTAMP}[^\n]*$",
    re.MULTILINE,
)
_SRT_FRACTION_RE = re.compile(r"(\d{2}:\d{2}:\d{2}),(\d{3})")


def is_timing_line(line: str) -> bool:
    return "-->" in line


def is_index_line(line: str) -> bool:
    return line.strip().isdigit()


def is_translatable(line: str) -> bool:
    """Dialogue lines only; blank, index and timing lines pass through untouched."""
    return bool(line.strip()) and not is_timing_line(line) and not is_index_line(line)


def srt_to_vtt(content: str) -> str:
    """Convert SubRip text to WebVTT, changing nothing but the header and timing-line separators."""
    if content.startswith("\ufeff"):
        content = content[1:]
    body = TIMING_LINE_RE.sub(lambda match: _SRT_FRACTION_RE.sub(r"\1.\2", match.group(0)), content)
    return VTT_HEADER + body


def parse_cue_document(content: str) -> CueDocument:
    """Parse SubRip text into cues; raises ``ValueError`` for malformed input."""
    try:
        subtitles = list(srt.parse(content))
    except srt.SRTParseError as exc:
        raise ValueError(f"Malformed SubRip content: {exc}") from exc
    return CueDocument(
        cues=[
            Cue(index=sub.index, start=sub.start, end=sub.end, lines=sub.content.split("\n"))
            for sub in subtitles
        ]
    )


def out_of_order_cues(document: CueDocument) -> List[int]:
    """Indices of cues that start before the cue preceding them."""
    return [
        current.index
        for previous, current in zip(document.cues, document.cues[1:])
        if current.start < previous.start
    ]
