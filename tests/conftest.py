"""Shared test fixtures for the heatmap_clipper test suite.

WHY: The selector, the transcript parser, the caption stage and the
pipeline all consume the same kinds of input: a watch page with a marker
array, whisper.cpp JSON in its three shapes, and SRT text. Keeping one
authoritative copy of each here keeps the modules' tests consistent.

HOW: Plain builder functions (importable from tests) plus pytest fixtures.
FakeToolchain stands in for yt-dlp / ffmpeg / whisper.cpp: every method
writes a small file where the real tool would, and failures are injected
per call site.

RULES:
- No test touches the network or runs an external binary
- FakeToolchain records every call in .calls as (method, first-arg) tuples
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Union

import pytest

from heatmap_clipper.core.models import HighlightSegment, SubtitleBackend
from heatmap_clipper.errors import CaptionError, ToolError
from heatmap_clipper.tools.ffmpeg import EncoderSettings


# ---------------------------------------------------------------------------
# Watch pages
# ---------------------------------------------------------------------------


def make_marker(start_ms, duration_ms, score, wrapped: bool = False) -> Dict[str, Any]:
    marker = {
        "startMillis": start_ms,
        "durationMillis": duration_ms,
        "intensityScoreNormalized": score,
    }
    if wrapped:
        return {"heatMarkerRenderer": marker}
    return marker


def make_watch_page(markers: List[Any]) -> str:
    """Embed a marker array the way the watch page's inline JSON does."""
    return (
        "<html><script>var ytInitialData = {\"frameworkUpdates\":{\"entityBatchUpdate\":"
        "{\"mutations\":[{\"payload\":{\"macroMarkersListEntity\":{"
        "\"markersList\":{\"markerType\":\"MARKER_TYPE_HEATMAP\","
        "\"markers\":" + json.dumps(markers) + ","
        "\"markersMetadata\":{\"heatmapMetadata\":{}}}}}}]}}};</script></html>"
    )


# Nine markers, three above the threshold, as a typical long stream shows them.
SAMPLE_MARKERS = [
    make_marker("0", "5000", 0.10),
    make_marker("5000", "5000", "0.35"),
    make_marker("120000", "5000", 0.95),
    make_marker("125000", "5000", "0.62", wrapped=True),
    make_marker("130000", "5000", 0.30),
    make_marker("300000", "5000", 0.40),
    make_marker("305000", "5000", 0.12),
    make_marker("310000", "5000", 0.05),
    make_marker("600000", "5000", 0.39),
]


@pytest.fixture
def sample_page() -> str:
    return make_watch_page(SAMPLE_MARKERS)


# ---------------------------------------------------------------------------
# whisper.cpp JSON artifacts
# ---------------------------------------------------------------------------


WHISPER_JSON_CENTISECONDS = {
    "transcription": [
        {
            "text": " Halo semua, apa kabar?",
            "tokens": [
                {"text": "[_BEG_]", "t0": 0, "t1": 0},
                {"text": " Halo", "t0": 10, "t1": 45},
                {"text": " semua,", "t0": 45, "t1": 90},
                {"text": " apa", "t0": 95, "t1": 120},
                {"text": " kabar?", "t0": 120, "t1": 170},
                {"text": "<|endoftext|>", "t0": 170, "t1": 170},
            ],
        }
    ]
}

WHISPER_JSON_OFFSETS = {
    "transcription": [
        {
            "text": " Hello world",
            "tokens": [
                {"text": " Hello", "offsets": {"from": 0, "to": 420}},
                {"text": " world", "offsets": {"from": 420, "to": 900}},
            ],
        }
    ]
}

WHISPER_JSON_TIMESTAMPS = {
    "transcription": [
        {
            "timestamps": {"from": "00:00:01,000", "to": "00:00:03,000"},
            "text": " one two three four",
        }
    ]
}


# A token cut inside a multibyte character ("\xe4\xbd" is two thirds of one).
WHISPER_JSON_SPLIT_UTF8 = (
    b'{"transcription":[{"tokens":[{"text":" \xe4\xbd","t0":0,"t1":50}]}]}'
)

SRT_SPLIT_UTF8 = b"1\n00:00:00,000 --> 00:00:00,500\n\xe4\xbd\n"


@pytest.fixture
def whisper_json_centiseconds() -> str:
    return json.dumps(WHISPER_JSON_CENTISECONDS)


@pytest.fixture
def whisper_json_offsets() -> str:
    return json.dumps(WHISPER_JSON_OFFSETS)


@pytest.fixture
def whisper_json_timestamps() -> str:
    return json.dumps(WHISPER_JSON_TIMESTAMPS)


SAMPLE_SRT = (
    "1\n"
    "00:00:00,500 --> 00:00:02,000\n"
    "Selamat datang\n"
    "di channel ini\n"
    "\n"
    "2\n"
    "00:00:02,500 --> 00:00:04,250\n"
    "Jangan lupa subscribe\n"
)


@pytest.fixture
def sample_srt() -> str:
    return SAMPLE_SRT


# ---------------------------------------------------------------------------
# Highlight segments
# ---------------------------------------------------------------------------


def make_segments(count: int, start: float = 100.0, spacing: float = 60.0) -> List[HighlightSegment]:
    """Ranked segments with descending scores, spaced apart in the video."""
    return [
        HighlightSegment(start_s=start + i * spacing, duration_s=5.0, score=0.99 - i * 0.01)
        for i in range(count)
    ]


# ---------------------------------------------------------------------------
# Fake toolchain
# ---------------------------------------------------------------------------


def _write_artifact(path: Path, content: Union[str, bytes]) -> Path:
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content, encoding="utf-8")
    return path


class FakeToolchain:
    """Stands in for Toolchain; writes placeholder files instead of media.

    Attributes:
        duration: Value returned by get_duration().
        fail_downloads: Window start times whose download fails.
        fail_crops: Crop attempt numbers (1-based) that fail.
        fail_burn: When True every burn raises ToolError.
        recognition: Backend reported by backend().
        words_json: Content written by transcribe_words(); None → ToolError.
        srt_text: Content written by transcribe_srt() / transcribe_segments().
            Either may be bytes, written as is.
    """

    def __init__(
        self,
        duration: int = 3600,
        recognition: Optional[SubtitleBackend] = None,
        words_json: Optional[Union[str, bytes]] = None,
        srt_text: Union[str, bytes] = SAMPLE_SRT,
    ) -> None:
        self.encoder = EncoderSettings.software()
        self.duration = duration
        self.recognition = recognition
        self.words_json = words_json
        self.srt_text = srt_text
        self.fail_downloads: Set[float] = set()
        self.fail_crops: Set[int] = set()
        self._crop_attempts = 0
        self.fail_burn = False
        self.calls: List[tuple] = []
        self.burned_scripts: List[str] = []

    def backend(self) -> Optional[SubtitleBackend]:
        return self.recognition

    def get_duration(self, video_id: str) -> int:
        self.calls.append(("get_duration", video_id))
        return self.duration

    def download(self, video_id, window, output: Path) -> Path:
        self.calls.append(("download", window.start_s))
        if window.start_s in self.fail_downloads:
            raise ToolError(["yt-dlp"], 1, "ERROR: HTTP Error 403: Forbidden")
        Path(output).write_bytes(b"downloaded")
        return Path(output)

    def crop(self, source: Path, output: Path, crop) -> Path:
        self.calls.append(("crop", Path(source).name))
        if Path(source).read_bytes() != b"downloaded":
            raise AssertionError("crop called on a file that was not downloaded")
        self._crop_attempts += 1
        if self._crop_attempts in self.fail_crops:
            raise ToolError(["ffmpeg"], 1, "Conversion failed!")
        Path(output).write_bytes(b"cropped")
        return Path(output)

    def extract_audio(self, video: Path, audio: Path) -> Path:
        self.calls.append(("extract_audio", Path(video).name))
        Path(audio).write_bytes(b"RIFF")
        return Path(audio)

    def transcribe_words(self, audio, output_base: Path, model, language) -> Path:
        self.calls.append(("transcribe_words", Path(audio).name))
        if self.words_json is None:
            raise ToolError(["whisper-cli"], 1, "failed to load model")
        return _write_artifact(Path(str(output_base) + ".json"), self.words_json)

    def transcribe_srt(self, audio, output_base: Path, model, language) -> Path:
        self.calls.append(("transcribe_srt", Path(audio).name))
        return _write_artifact(Path(str(output_base) + ".srt"), self.srt_text)

    def transcribe_segments(self, media, output_srt: Path, model, language) -> Path:
        self.calls.append(("transcribe_segments", Path(media).name))
        if self.recognition is None:
            raise CaptionError("faster-whisper is not installed")
        return _write_artifact(Path(output_srt), self.srt_text)

    def burn(self, video: Path, script: Path, output: Path) -> Path:
        self.calls.append(("burn", Path(video).name))
        if self.fail_burn:
            raise ToolError(["ffmpeg"], 1, "Unable to open subtitle file")
        self.burned_scripts.append(Path(script).read_text(encoding="utf-8"))
        Path(output).write_bytes(b"captioned")
        return Path(output)

    def count(self, method: str) -> int:
        return sum(1 for call in self.calls if call[0] == method)


@pytest.fixture
def fake_toolchain() -> FakeToolchain:
    return FakeToolchain()
