"""Speech recognition artifact parsing.

WHY: whisper.cpp's full JSON output changes shape between versions and
flags. Some builds emit tokens with raw centisecond offsets (t0/t1), others
with millisecond offsets ({"offsets": {"from", "to"}}), and some emit only
segment-level human timestamps. The caption renderer needs one thing out of
all of them: an ordered list of timed words.

HOW: The JSON container is decoded and shape-checked with jsonschema. Then
every transcription entry is run through ordered attempt functions, each
returning a result or None; the first hit wins for that entry. Tokens are
tried the same way, one token at a time, so a file that mixes formats still
parses. Adding a format means adding one attempt function to a tuple.

  segment has "tokens"? ── yes ─→ per token: _token_centiseconds → _token_offsets
                       └─ no ──→ _segment_timestamps (even split across words)

parse_srt() handles the plain time-coded artifact used by the segment-level
path and by the word-level fallback.

RULES:
- Tokens empty after trimming, or starting with "[" or "<", are dropped
- Zero words is a valid result, never an error
- TranscriptUnreadable only when the container is not structured data
- The segment-level path divides a segment's duration evenly across its
  words; this is an approximation, not a forced alignment
"""

from __future__ import annotations

import json
from typing import Any, Callable, List, Optional, Sequence

import jsonschema

from heatmap_clipper.core.models import TimedWord, TranscriptSegment
from heatmap_clipper.errors import TranscriptUnreadable

# Only the container is validated; entries are matched leniently below.
WHISPER_JSON_SCHEMA = {
    "type": "object",
    "properties": {
        "transcription": {
            "type": "array",
            "items": {"type": "object"},
        },
    },
}

_SPECIAL_PREFIXES = ("[", "<")


def parse_timestamp(text: str) -> Optional[float]:
    """Parse "H:MM:SS.ss" (or "H:MM:SS,sss") into seconds.

    RULES:
    - Exactly three colon-separated parts, else None
    - A comma decimal separator is accepted
    """
    parts = text.strip().replace(",", ".").split(":")
    if len(parts) != 3:
        return None
    try:
        hours = float(parts[0])
        minutes = float(parts[1])
        seconds = float(parts[2])
    except ValueError:
        return None
    return hours * 3600.0 + minutes * 60.0 + seconds


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _keep_token(text: str) -> bool:
    return bool(text) and not text.startswith(_SPECIAL_PREFIXES)


# ---------------------------------------------------------------------------
# Token attempts
# ---------------------------------------------------------------------------


def _token_centiseconds(token: dict) -> Optional[TimedWord]:
    """Token with raw t0/t1 offsets in centiseconds."""
    text, t0, t1 = token.get("text"), token.get("t0"), token.get("t1")
    if not isinstance(text, str) or not _is_number(t0) or not _is_number(t1):
        return None
    return TimedWord(text=text.strip(), start_s=t0 / 100.0, end_s=t1 / 100.0)


def _token_offsets(token: dict) -> Optional[TimedWord]:
    """Token with offsets.from / offsets.to in milliseconds."""
    text, offsets = token.get("text"), token.get("offsets")
    if not isinstance(text, str) or not isinstance(offsets, dict):
        return None
    start, end = offsets.get("from"), offsets.get("to")
    if not _is_number(start) or not _is_number(end):
        return None
    return TimedWord(text=text.strip(), start_s=start / 1000.0, end_s=end / 1000.0)


TOKEN_ATTEMPTS: Sequence[Callable[[dict], Optional[TimedWord]]] = (
    _token_centiseconds,
    _token_offsets,
)


def _first_match(attempts: Sequence[Callable[[dict], Any]], entry: dict) -> Any:
    for attempt in attempts:
        result = attempt(entry)
        if result is not None:
            return result
    return None


# ---------------------------------------------------------------------------
# Segment attempts
# ---------------------------------------------------------------------------


def _segment_tokens(segment: dict) -> Optional[List[TimedWord]]:
    """Token-level timing; None when the segment has no tokens array."""
    tokens = segment.get("tokens")
    if not isinstance(tokens, list):
        return None

    words: List[TimedWord] = []
    for token in tokens:
        if not isinstance(token, dict):
            continue
        word = _first_match(TOKEN_ATTEMPTS, token)
        if word is not None and _keep_token(word.text):
            words.append(word)
    return words


def _segment_timestamps(segment: dict) -> Optional[List[TimedWord]]:
    """Segment-level timestamps, spread evenly across the segment's words."""
    text = segment.get("text")
    timestamps = segment.get("timestamps")
    if not isinstance(text, str) or not isinstance(timestamps, dict):
        return None
    raw_from, raw_to = timestamps.get("from"), timestamps.get("to")
    if not isinstance(raw_from, str) or not isinstance(raw_to, str):
        return None

    start = parse_timestamp(raw_from)
    end = parse_timestamp(raw_to)
    if start is None or end is None:
        return None

    pieces = text.split()
    step = (end - start) / max(len(pieces), 1)
    words: List[TimedWord] = []
    for i, piece in enumerate(pieces):
        piece = piece.strip()
        if _keep_token(piece):
            words.append(TimedWord(
                text=piece,
                start_s=start + i * step,
                end_s=start + (i + 1) * step,
            ))
    return words


SEGMENT_ATTEMPTS: Sequence[Callable[[dict], Optional[List[TimedWord]]]] = (
    _segment_tokens,
    _segment_timestamps,
)


def parse_whisper_json(text: str) -> List[TimedWord]:
    """Parse a whisper.cpp full-JSON artifact into timed words.

    Args:
        text: The artifact content.

    Returns:
        Words in transcript order; possibly empty.

    Raises:
        TranscriptUnreadable: The content is not JSON, or its container
            does not match WHISPER_JSON_SCHEMA.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise TranscriptUnreadable("Transcript is not valid JSON: {}".format(exc))

    try:
        jsonschema.validate(instance=data, schema=WHISPER_JSON_SCHEMA)
    except jsonschema.ValidationError as exc:
        raise TranscriptUnreadable("Unexpected transcript structure: {}".format(exc.message))

    words: List[TimedWord] = []
    for segment in data.get("transcription", []):
        segment_words = _first_match(SEGMENT_ATTEMPTS, segment)
        if segment_words:
            words.extend(segment_words)
    return words


# ---------------------------------------------------------------------------
# SRT
# ---------------------------------------------------------------------------


def _parse_srt_range(line: str) -> Optional[tuple]:
    """Parse "00:00:01,000 --> 00:00:02,500" into (start, end) seconds."""
    parts = line.split(" --> ")
    if len(parts) != 2:
        return None
    start = parse_timestamp(parts[0])
    end = parse_timestamp(parts[1])
    if start is None or end is None:
        return None
    return start, end


def parse_srt(text: str) -> List[TranscriptSegment]:
    """Parse SRT text into time-coded segments.

    HOW: Walk the lines. A line that is a bare integer starts a block; the
    next line must be a time range; text lines follow until a blank line.

    RULES:
    - Blocks whose time range does not parse are skipped
    - Blocks with no text lines are skipped
    - Never raises; an empty or garbled file yields []
    """
    lines = text.splitlines()
    segments: List[TranscriptSegment] = []
    i = 0
    while i < len(lines):
        if not lines[i].strip().isdigit():
            i += 1
            continue
        if i + 1 >= len(lines):
            break
        time_range = _parse_srt_range(lines[i + 1])
        i += 2
        if time_range is None:
            continue

        block: List[str] = []
        while i < len(lines) and lines[i].strip():
            block.append(lines[i].strip())
            i += 1
        if block:
            segments.append(TranscriptSegment(
                start_s=time_range[0],
                end_s=time_range[1],
                lines=block,
            ))
    return segments
