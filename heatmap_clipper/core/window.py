"""Clip window calculation.

WHY: A heatmap peak marks where viewers rewound, not where the story starts.
Padding both sides gives the clip context, and clamping keeps the window
inside the video.

RULES:
- start = max(0, segment.start - PADDING)
- end = min(total_duration, segment.end + PADDING)
- end - start < MIN_WINDOW → None (rejected; the caller logs and moves on)
"""

from __future__ import annotations

from typing import Optional

from heatmap_clipper.core.models import ClipWindow, HighlightSegment

PADDING = 10.0
MIN_WINDOW = 3.0


def compute_window(segment: HighlightSegment, total_duration: float) -> Optional[ClipWindow]:
    """Return the padded, clamped window for a segment, or None if too short."""
    start = max(0.0, segment.start_s - PADDING)
    end = min(float(total_duration), segment.end_s + PADDING)

    if end - start < MIN_WINDOW:
        return None
    return ClipWindow(start_s=start, end_s=end)
