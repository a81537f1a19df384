"""ffmpeg wrappers: crop/transcode, audio extraction, caption burn-in.

WHY: Every media transformation in a run is one ffmpeg invocation. Keeping
the argument lists here means the pipeline only says *what* to do (crop this
file with this filter, burn this script) and never how ffmpeg spells it.

HOW: EncoderSettings captures the video codec choice once per run, either
software x264 or a hardware encoder that was probed with encoder_available().
The command builders are pure functions so tests can assert on them; the
action functions run them through run_tool().

  crop_video      temp_n.mp4 ─[-vf | -filter_complex]─→ temp_cropped_n.mp4
  extract_audio   clip.mp4 ─→ 16 kHz mono PCM wav (what whisper.cpp expects)
  burn_subtitles  clip.mp4 + temp_n.ass ─[ass filter]─→ clip_n.mp4

RULES:
- Every command starts with -y -hide_banner -loglevel error
- Graph filters map [out] plus optional audio (0:a?); simple filters use -vf
- Crop re-encodes audio as AAC 128k; burn-in copies audio untouched
- The ASS path is escaped for the filter parser: "\\" → "/", ":" → "\\:"
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from heatmap_clipper.config import FFMPEG_BIN
from heatmap_clipper.core.crop import CropFilter
from heatmap_clipper.errors import ToolError
from heatmap_clipper.tools.runner import run_tool

logger = logging.getLogger(__name__)

_BASE_ARGS = ["-y", "-hide_banner", "-loglevel", "error"]
_AAC_ARGS = ["-c:a", "aac", "-b:a", "128k"]
_AUDIO_COPY_ARGS = ["-c:a", "copy"]


@dataclass(frozen=True)
class EncoderSettings:
    """Video encoder selection for every transcode in a run.

    RULES:
    - software(): libx264, ultrafast preset, CRF 26
    - hardware(name): the named ffmpeg encoder with its default rate control
    """

    codec: str
    extra_args: List[str] = field(default_factory=list)

    @property
    def is_hardware(self) -> bool:
        return self.codec != "libx264"

    def args(self) -> List[str]:
        return ["-c:v", self.codec] + list(self.extra_args)

    @classmethod
    def software(cls) -> EncoderSettings:
        return cls(codec="libx264", extra_args=["-preset", "ultrafast", "-crf", "26"])

    @classmethod
    def hardware(cls, encoder: str) -> EncoderSettings:
        return cls(codec=encoder)


def encoder_available(encoder: str) -> bool:
    """Return True if this ffmpeg build lists ``encoder``.

    A listed encoder can still fail at runtime (no GPU, no driver); the crop
    step treats that like any other crop failure.
    """
    try:
        output = run_tool([FFMPEG_BIN, "-hide_banner", "-encoders"])
    except ToolError as exc:
        logger.warning("Could not list ffmpeg encoders: %s", exc)
        return False
    for line in output.splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[1] == encoder:
            return True
    return False


def build_crop_command(
    source: Path, output: Path, crop: CropFilter, encoder: EncoderSettings
) -> List[str]:
    command = [FFMPEG_BIN] + _BASE_ARGS + ["-i", str(source)]
    if crop.is_complex:
        command += [
            "-filter_complex", crop.expression,
            "-map", "[{}]".format(crop.output_label),
            "-map", "0:a?",
        ]
    else:
        command += ["-vf", crop.expression]
    return command + encoder.args() + _AAC_ARGS + [str(output)]


def crop_video(source: Path, output: Path, crop: CropFilter, encoder: EncoderSettings) -> Path:
    """Crop and transcode a downloaded window into the vertical layout."""
    run_tool(build_crop_command(source, output, crop, encoder))
    return Path(output)


def build_extract_audio_command(video: Path, audio: Path) -> List[str]:
    return [FFMPEG_BIN] + _BASE_ARGS + [
        "-i", str(video),
        "-ar", "16000",
        "-ac", "1",
        "-c:a", "pcm_s16le",
        str(audio),
    ]


def extract_audio(video: Path, audio: Path) -> Path:
    """Extract a 16 kHz mono 16-bit PCM wav for speech recognition."""
    run_tool(build_extract_audio_command(video, audio))
    return Path(audio)


def escape_filter_path(path: Path) -> str:
    """Escape a file path for use inside an ffmpeg filter argument."""
    return str(path).replace("\\", "/").replace(":", "\\:")


def build_burn_command(
    video: Path, script: Path, output: Path, encoder: EncoderSettings
) -> List[str]:
    absolute = Path(script).resolve()
    return [FFMPEG_BIN] + _BASE_ARGS + [
        "-i", str(video),
        "-vf", "ass='{}'".format(escape_filter_path(absolute)),
    ] + encoder.args() + _AUDIO_COPY_ARGS + [str(output)]


def burn_subtitles(video: Path, script: Path, output: Path, encoder: EncoderSettings) -> Path:
    """Render an ASS script onto the video frames."""
    run_tool(build_burn_command(video, script, output, encoder))
    return Path(output)
