"""Caption formatter registry.

WHY: The caption stage picks a formatter by recognition path, and tests and
the service list the available styles. A central dict keeps that lookup in
one place.

HOW: FORMATTERS maps string keys to formatter *classes* (not instances).
Callers instantiate as needed: ``formatter = FORMATTERS["word_highlight"]()``.

RULES:
- Keys are snake_case identifiers
- Values are BaseCaptionFormatter subclasses (not instances)
- Every formatter listed here must be importable without side effects
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Type

from heatmap_clipper.formatters.segment_captions import SegmentCaptionFormatter
from heatmap_clipper.formatters.word_highlight import WordHighlightFormatter

if TYPE_CHECKING:
    from heatmap_clipper.formatters.base import BaseCaptionFormatter

FORMATTERS: Dict[str, Type[BaseCaptionFormatter]] = {
    "word_highlight": WordHighlightFormatter,
    "segment_captions": SegmentCaptionFormatter,
}
