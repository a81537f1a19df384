"""Heatmap marker extraction and highlight segment selection.

WHY: YouTube's "Most Replayed" graph is embedded in the watch page as a JSON
array of markers, each with a start, a duration, and a normalized intensity.
The page is untrusted input: numbers sometimes arrive as strings, markers are
sometimes wrapped in a renderer object, and the array may be missing
entirely. This module turns that mess into a ranked list of segments worth
clipping.

HOW: Three steps, each a pure function:
  extract_markers_array — regex the marker array out of the page text
  parse_marker          — normalize one raw marker (unwrap, coerce, ms → s)
  select_segments       — threshold, cap duration, stable sort by score
Plus two helpers for the other inputs a run needs: extract_video_id() and
parse_duration().

RULES:
- MIN_SCORE = 0.40: markers scoring below are discarded
- MAX_DURATION = 60.0: longer markers are capped, not discarded
- Numeric fields accept numbers or numeric strings; unparsable → 0.0
- A marker missing any of the three fields is skipped, never fatal
- No recognizable array at all → NoMarkersFound (fatal to the run)
- Ordering: score descending, ties keep their original relative order
"""

from __future__ import annotations

import json
import re
from typing import Any, Iterable, List, Optional
from urllib.parse import parse_qs, urlparse

from heatmap_clipper.core.models import EngagementMarker, HighlightSegment
from heatmap_clipper.errors import NoMarkersFound

MIN_SCORE = 0.40
MAX_DURATION = 60.0

_MARKERS_RE = re.compile(r'"markers":\s*(\[.*?\])\s*,\s*"?markersMetadata"?', re.DOTALL)

_WRAPPER_KEY = "heatMarkerRenderer"
_START_KEY = "startMillis"
_DURATION_KEY = "durationMillis"
_SCORE_KEY = "intensityScoreNormalized"

_SHORT_HOSTS = frozenset({"youtu.be", "www.youtu.be"})
_WATCH_HOSTS = frozenset({"youtube.com", "www.youtube.com", "m.youtube.com"})


def extract_markers_array(page_text: str) -> List[Any]:
    """Pull the raw heatmap marker array out of a watch page.

    WHY: The markers live inside a large inline JSON blob, often with escaped
    quotes. Parsing the whole blob is brittle; the array is delimited by the
    "markers" key and the "markersMetadata" key that always follows it.

    HOW: Non-greedy regex between the two keys, un-escape \\" sequences, then
    json.loads the captured text.

    RULES:
    - No match → NoMarkersFound
    - Captured text that is not valid JSON, or not a list → NoMarkersFound
    """
    match = _MARKERS_RE.search(page_text)
    if match is None:
        raise NoMarkersFound("No heatmap markers found")

    json_text = match.group(1).replace('\\"', '"')
    try:
        markers = json.loads(json_text)
    except json.JSONDecodeError as exc:
        raise NoMarkersFound("Heatmap marker array is not valid JSON: {}".format(exc))

    if not isinstance(markers, list):
        raise NoMarkersFound("Heatmap markers are not an array")
    return markers


def _parse_number(value: Any) -> Optional[float]:
    """Coerce a JSON number or numeric string to float, or None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def parse_marker(raw: Any) -> Optional[EngagementMarker]:
    """Normalize one raw marker into an EngagementMarker.

    WHY: Markers arrive either flat ({"startMillis": ...}) or wrapped
    ({"heatMarkerRenderer": {...}}), and any numeric field may be a string.

    HOW: Unwrap the renderer key if present, require all three fields, then
    coerce each one independently.

    RULES:
    - Non-dict input, or a missing field → None (caller skips the marker)
    - A present but unparsable value → 0.0 for that field only
    - startMillis / durationMillis are divided by 1000
    """
    if not isinstance(raw, dict):
        return None
    data = raw.get(_WRAPPER_KEY, raw)
    if not isinstance(data, dict):
        return None
    if _START_KEY not in data or _DURATION_KEY not in data or _SCORE_KEY not in data:
        return None

    start_ms = _parse_number(data[_START_KEY]) or 0.0
    duration_ms = _parse_number(data[_DURATION_KEY]) or 0.0
    score = _parse_number(data[_SCORE_KEY]) or 0.0

    return EngagementMarker(
        start_s=start_ms / 1000.0,
        duration_s=duration_ms / 1000.0,
        score=score,
    )


def parse_markers(raw_markers: Iterable[Any]) -> List[EngagementMarker]:
    """Normalize a raw marker array, skipping entries that are not markers."""
    markers: List[EngagementMarker] = []
    for raw in raw_markers:
        marker = parse_marker(raw)
        if marker is not None:
            markers.append(marker)
    return markers


def select_segments(markers: Iterable[EngagementMarker]) -> List[HighlightSegment]:
    """Filter and rank markers into highlight segments.

    HOW: Drop markers below MIN_SCORE, cap duration at MAX_DURATION, then
    sort by score descending. Python's sort is stable, including with
    reverse=True, so equal scores keep their page order.

    RULES:
    - Every returned segment has score >= 0.40 and duration_s <= 60.0
    - An empty result is not an error here; the orchestrator decides
    """
    segments = [
        HighlightSegment(
            start_s=m.start_s,
            duration_s=min(m.duration_s, MAX_DURATION),
            score=m.score,
        )
        for m in markers
        if m.score >= MIN_SCORE
    ]
    return sorted(segments, key=lambda s: s.score, reverse=True)


def segments_from_page(page_text: str) -> List[HighlightSegment]:
    """Full selector: page text → ranked highlight segments."""
    return select_segments(parse_markers(extract_markers_array(page_text)))


def extract_video_id(url: str) -> Optional[str]:
    """Extract the YouTube video ID from a watch, short-link, or Shorts URL.

    RULES:
    - youtu.be/<id>            → <id>
    - youtube.com/watch?v=<id> → <id>
    - youtube.com/shorts/<id>  → <id>
    - Anything else (including an unparsable URL) → None
    """
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return None
    host = (parsed.hostname or "").lower()

    if host in _SHORT_HOSTS:
        video_id = parsed.path.lstrip("/").split("/")[0]
        return video_id or None

    if host in _WATCH_HOSTS:
        if parsed.path == "/watch":
            values = parse_qs(parsed.query).get("v")
            if values and values[0]:
                return values[0]
        if parsed.path.startswith("/shorts/"):
            parts = parsed.path.split("/")
            if len(parts) >= 3 and parts[2]:
                return parts[2]

    return None


def parse_duration(text: str) -> int:
    """Parse a yt-dlp duration string into whole seconds.

    RULES:
    - "H:MM:SS" and "MM:SS" are accepted, as is a bare integer
    - A component that does not parse counts as 0
    """

    def _part(value: str) -> int:
        try:
            return int(value.strip())
        except ValueError:
            return 0

    parts = text.strip().split(":")
    if len(parts) == 3:
        return _part(parts[0]) * 3600 + _part(parts[1]) * 60 + _part(parts[2])
    if len(parts) == 2:
        return _part(parts[0]) * 60 + _part(parts[1])
    return _part(parts[0])
