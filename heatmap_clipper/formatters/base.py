"""Abstract caption formatter, ASS serialization, and output container.

WHY: Both caption paths (word-level highlight and segment-level plain
captions) end in the same place: an Advanced SubStation Alpha script that
ffmpeg's ``ass`` filter burns into a 720x1280 clip. They differ only in the
header styles and in how events are built from their input. This base class
owns the shared part so each formatter is just "header + build_events()".

HOW: BaseCaptionFormatter is an ABC with three requirements: a ``name``
property, a ``script_header`` property, and ``build_events()``. The concrete
``format()`` builds the events, serializes each as a ``Dialogue:`` line and
returns one FormatterOutput. format_ass_time() is the single time encoder.

RULES:
- Subclasses MUST implement ``name``, ``script_header`` and ``build_events()``
- ``format()`` returns a list, like every formatter; caption formatters
  return exactly one item with suffix ``".ass"``
- The header MUST declare PlayResX 720 / PlayResY 1280 so style sizes are
  in output pixels
- Times are ``H:MM:SS.cc``: hours unpadded, the rest zero-padded to 2 digits
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List

from heatmap_clipper.core.models import CaptionEvent

ASS_SUFFIX = ".ass"
ASS_MEDIA_TYPE = "text/x-ssa"

EVENTS_SECTION = (
    "[Events]\n"
    "Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text\n"
)

STYLES_FORMAT = (
    "Format: Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, OutlineColour, "
    "BackColour, Bold, Italic, Underline, StrikeOut, ScaleX, ScaleY, Spacing, Angle, "
    "BorderStyle, Outline, Shadow, Alignment, MarginL, MarginR, MarginV, Encoding"
)


@dataclass
class FormatterOutput:
    """One output file produced by a formatter.

    Attributes:
        suffix: File suffix, e.g. ``".ass"``. The caller picks the stem.
        content: The file content.
        media_type: MIME type for the content.
    """

    suffix: str
    content: str
    media_type: str


def format_ass_time(seconds: float) -> str:
    """Encode seconds as an ASS timestamp, e.g. 3725.07 → "1:02:05.07".

    RULES:
    - Centiseconds are rounded, and the carry propagates (59.999 → "0:01:00.00")
    - Negative input clamps to "0:00:00.00"
    """
    total_cs = int(round(max(seconds, 0.0) * 100))
    hours, rest = divmod(total_cs, 360000)
    minutes, rest = divmod(rest, 6000)
    secs, centis = divmod(rest, 100)
    return "{}:{:02d}:{:02d}.{:02d}".format(hours, minutes, secs, centis)


def dialogue_line(event: CaptionEvent) -> str:
    """Serialize one event as an ASS ``Dialogue:`` line (no newline)."""
    return "Dialogue: 0,{},{},{},,0,0,0,,{}".format(
        format_ass_time(event.start_s),
        format_ass_time(event.end_s),
        event.style,
        event.text,
    )


def build_script_header(title: str, styles: List[str], extra_info: List[str]) -> str:
    """Assemble the [Script Info] and [V4+ Styles] sections of an ASS script."""
    info = [
        "[Script Info]",
        "Title: {}".format(title),
        "ScriptType: v4.00+",
        "PlayResX: 720",
        "PlayResY: 1280",
        "WrapStyle: 0",
    ]
    info.extend(extra_info)
    sections = info + ["", "[V4+ Styles]", STYLES_FORMAT] + styles + ["", ""]
    return "\n".join(sections) + EVENTS_SECTION


class BaseCaptionFormatter(ABC):
    """Abstract base for the ASS caption formatters.

    To add a new caption style:
    1. Create a new file in formatters/
    2. Subclass BaseCaptionFormatter
    3. Implement name, script_header and build_events()
    4. Register in FORMATTERS dict in formatters/__init__.py
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable style name, e.g. 'Word Highlight'."""

    @property
    @abstractmethod
    def script_header(self) -> str:
        """Everything up to and including the [Events] Format line."""

    @abstractmethod
    def build_events(self, source: Any) -> List[CaptionEvent]:
        """Turn recognized speech into timed caption events."""

    def format(self, source: Any) -> List[FormatterOutput]:
        """Render recognized speech into an ASS script.

        Args:
            source: Whatever build_events() consumes (timed words or
                    transcript segments).

        Returns:
            A one-element list holding the ASS script.
        """
        lines = [dialogue_line(event) for event in self.build_events(source)]
        content = self.script_header + "".join(line + "\n" for line in lines)
        return [FormatterOutput(suffix=ASS_SUFFIX, content=content, media_type=ASS_MEDIA_TYPE)]
