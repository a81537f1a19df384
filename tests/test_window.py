"""Tests for clip window padding and clamping."""

from __future__ import annotations

import pytest

from heatmap_clipper.core.models import ClipWindow, HighlightSegment
from heatmap_clipper.core.window import MIN_WINDOW, PADDING, compute_window


class TestComputeWindow:
    def test_pads_both_sides(self):
        window = compute_window(HighlightSegment(100.0, 5.0, 0.9), 3600)
        assert window == ClipWindow(start_s=100.0 - PADDING, end_s=105.0 + PADDING)

    def test_clamps_at_video_start(self):
        window = compute_window(HighlightSegment(4.0, 5.0, 0.9), 3600)
        assert window is not None
        assert window.start_s == 0.0
        assert window.end_s == 19.0

    def test_clamps_at_video_end(self):
        window = compute_window(HighlightSegment(95.0, 5.0, 0.9), 100)
        assert window == ClipWindow(start_s=85.0, end_s=100.0)

    def test_too_short_rejected(self):
        # Marker past the reported duration: the window inverts.
        assert compute_window(HighlightSegment(112.0, 5.0, 0.9), 100) is None

    def test_exactly_min_window_kept(self):
        window = compute_window(HighlightSegment(107.0, 0.0, 0.9), 100)
        assert window is not None
        assert window.duration_s == pytest.approx(MIN_WINDOW)

    def test_end_pads_segment_end(self):
        segment = HighlightSegment(200.0, 12.5, 0.7)
        assert segment.end_s == 212.5
        assert compute_window(segment, 3600).end_s == segment.end_s + PADDING

    def test_window_stays_inside_video(self):
        for start in (0.0, 30.0, 55.0, 59.0):
            window = compute_window(HighlightSegment(start, 60.0, 0.5), 60)
            assert window is not None
            assert 0.0 <= window.start_s <= window.end_s <= 60.0
