"""Segment caption formatter — plain boxed captions from coarse timestamps.

WHY: When only segment-level timing exists (faster-whisper, or whisper.cpp's
SRT fallback) there is nothing to animate per word. A bold boxed caption per
segment is still far more readable on a phone than no captions at all.

RULES:
- One event per TranscriptSegment, using its start / end unchanged
- Multi-line segments keep their line breaks as ASS hard breaks (\\N)
- Uniform style; no override tags
"""

from __future__ import annotations

from typing import List, Sequence

from heatmap_clipper.core.models import CaptionEvent, TranscriptSegment
from heatmap_clipper.formatters.base import BaseCaptionFormatter, build_script_header

_STYLES = [
    "Style: Default,Arial Black,38,&H00FFFFFF,&H000000FF,&H00000000,&HAA000000,"
    "1,0,0,0,100,100,0,0,4,0,3,2,20,20,100,1",
]

_HEADER = build_script_header(title="Subtitles", styles=_STYLES, extra_info=[])


class SegmentCaptionFormatter(BaseCaptionFormatter):
    """Formatter producing one boxed caption per transcript segment."""

    @property
    def name(self) -> str:
        return "Segment Captions"

    @property
    def script_header(self) -> str:
        return _HEADER

    def build_events(self, source: Sequence[TranscriptSegment]) -> List[CaptionEvent]:
        return [
            CaptionEvent(
                start_s=segment.start_s,
                end_s=segment.end_s,
                text="\\N".join(segment.lines),
            )
            for segment in source
        ]
