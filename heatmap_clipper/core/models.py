"""Data model for one clip-generation run.

WHY: The selector, window calculator, transcript parser, phrase grouper, and
caption renderers hand data to each other. Typed dataclasses make every
handoff explicit and keep the units (float seconds everywhere) unambiguous.

HOW: Plain dataclasses, leaf to root:
  EngagementMarker  — one normalized heatmap sample
  HighlightSegment  — a marker that passed the threshold (frozen)
  ClipWindow        — padded, clamped absolute time range (frozen)
  TimedWord         — one recognized word with timing
  TranscriptSegment — one coarse, time-coded line of a plain transcript
  Phrase            — a short run of TimedWords shown together
  CaptionEvent      — one timed, styled subtitle line
Plus two closed enums: SubtitleBackend and WhisperModel.

RULES:
- All times are float seconds (converted from millis / centis at parse time)
- HighlightSegment and ClipWindow are immutable once produced
- Nothing here outlives the processing of a single candidate clip
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import List, Optional

from heatmap_clipper.config import WHISPER_MODEL_BASE_URL


@dataclass
class EngagementMarker:
    """A raw heatmap sample, normalized to seconds.

    RULES:
    - start_s / duration_s: milliseconds from the page divided by 1000
    - score: intensityScoreNormalized, nominally in [0, 1]
    """

    start_s: float
    duration_s: float
    score: float


@dataclass(frozen=True)
class HighlightSegment:
    """A marker that passed the score threshold, with its duration capped.

    RULES:
    - score >= MIN_SCORE (0.40)
    - duration_s <= MAX_DURATION (60.0)
    - Ordering key is score, descending
    """

    start_s: float
    duration_s: float
    score: float

    @property
    def end_s(self) -> float:
        return self.start_s + self.duration_s


@dataclass(frozen=True)
class ClipWindow:
    """Absolute time range extracted from the source for one clip.

    RULES:
    - 0 <= start_s <= end_s <= total duration of the source
    - end_s - start_s >= 3.0 (shorter windows are never constructed)
    """

    start_s: float
    end_s: float

    @property
    def duration_s(self) -> float:
        return self.end_s - self.start_s


@dataclass
class TimedWord:
    """A recognized spoken token with its start and end time."""

    text: str
    start_s: float
    end_s: float


@dataclass
class TranscriptSegment:
    """One time-coded block from a plain (SRT) transcript.

    WHY: The segment-level recognition path has no per-word timing. Its
    captions are drawn one block at a time, so the block is the unit.

    RULES:
    - lines keeps the block's text lines in order (never empty)
    """

    start_s: float
    end_s: float
    lines: List[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return " ".join(self.lines)


@dataclass
class Phrase:
    """An ordered, non-empty run of consecutive words shown on screen together."""

    words: List[TimedWord] = field(default_factory=list)

    @property
    def start_s(self) -> float:
        return self.words[0].start_s

    @property
    def end_s(self) -> float:
        return self.words[-1].end_s

    @property
    def text(self) -> str:
        return " ".join(w.text for w in self.words)


@dataclass
class CaptionEvent:
    """One rendered subtitle line with its display interval.

    RULES:
    - text may carry ASS override tags ({\\c...}, {\\fscx...})
    - style names a style defined in the script header
    """

    start_s: float
    end_s: float
    text: str
    style: str = "Default"


class SubtitleBackend(str, enum.Enum):
    """Speech recognition engine used for captions.

    WHY: The two engines produce different artifacts. whisper.cpp emits a
    full JSON with per-token timing, faster-whisper a plain SRT. So the
    backend decides both the parser path and the caption style.

    RULES:
    - Chosen once per run, before the first clip, and never changed mid-run
    """

    WORD_LEVEL = "whisper.cpp"
    SEGMENT_LEVEL = "faster-whisper"


class WhisperModel(str, enum.Enum):
    """Available Whisper model sizes."""

    TINY = "tiny"
    BASE = "base"
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"

    @property
    def size_display(self) -> str:
        """Approximate download size, for prompts and status output."""
        return _MODEL_SIZES[self]

    @property
    def ggml_filename(self) -> str:
        """Model filename expected by whisper.cpp."""
        return "ggml-{}.bin".format(self.value)

    @property
    def download_url(self) -> str:
        return "{}/{}".format(WHISPER_MODEL_BASE_URL.rstrip("/"), self.ggml_filename)

    @classmethod
    def from_input(cls, text: str) -> Optional[WhisperModel]:
        """Parse a model name from user input, or None if unrecognized.

        RULES:
        - Case-insensitive, surrounding whitespace ignored
        - "large-v1", "large-v2", "large-v3" all map to LARGE
        """
        value = text.strip().lower()
        if value in ("large-v1", "large-v2", "large-v3"):
            return cls.LARGE
        for model in cls:
            if model.value == value:
                return model
        return None


_MODEL_SIZES = {
    WhisperModel.TINY: "~75 MB",
    WhisperModel.BASE: "~142 MB",
    WhisperModel.SMALL: "~466 MB",
    WhisperModel.MEDIUM: "~1.5 GB",
    WhisperModel.LARGE: "~2.9 GB",
}
