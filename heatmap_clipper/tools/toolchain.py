"""The set of external tools one run uses, behind one object.

WHY: The pipeline and the caption stage must not care whether a crop runs
ffmpeg with x264 or NVENC, or where the whisper.cpp binary lives. Those
choices are made once at run start. Bundling them here also gives tests one
seam to replace: a fake Toolchain that writes small files instead of
running binaries.

RULES:
- Resolved once per run; never re-probed mid-run. That includes the
  whisper.cpp model: one download attempt per model per Toolchain
- Every method either returns the produced path or raises ToolError /
  CaptionError
- check_dependencies() is the only hard requirement check (ffmpeg, yt-dlp)
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable
from pathlib import Path
from typing import Dict, Optional, Tuple

from heatmap_clipper.config import FFMPEG_BIN, HARDWARE_ENCODER, YTDLP_BIN
from heatmap_clipper.core.crop import CropFilter
from heatmap_clipper.core.models import ClipWindow, SubtitleBackend, WhisperModel
from heatmap_clipper.errors import CaptionError, MissingDependencyError, ToolError
from heatmap_clipper.tools import ffmpeg, whisper, ytdlp
from heatmap_clipper.tools.ffmpeg import EncoderSettings

logger = logging.getLogger(__name__)


def check_dependencies() -> None:
    """Fail fast when a required binary is missing from PATH.

    Raises:
        MissingDependencyError: ffmpeg or yt-dlp is not installed.
    """
    if shutil.which(FFMPEG_BIN) is None:
        raise MissingDependencyError(
            "FFmpeg not found. Please install FFmpeg and ensure it is in PATH."
        )
    if shutil.which(YTDLP_BIN) is None:
        raise MissingDependencyError(
            "yt-dlp not found. Please install it and ensure it is in PATH.\n"
            "Download: https://github.com/yt-dlp/yt-dlp/releases"
        )


class Toolchain:
    """External tool adapters configured for one run."""

    def __init__(
        self,
        encoder: Optional[EncoderSettings] = None,
        whisper_binary: Optional[str] = None,
        models_dir: Optional[Path] = None,
        on_status: Callable[[str], None] | None = None,
    ) -> None:
        self.encoder = encoder or EncoderSettings.software()
        self.whisper_binary = whisper_binary
        self.models_dir = models_dir
        self.on_status = on_status
        self._model_files: Dict[WhisperModel, Path] = {}
        self._model_failures: Dict[WhisperModel, str] = {}

    @classmethod
    def detect(
        cls,
        hw_accel: bool = False,
        on_status: Callable[[str], None] | None = None,
    ) -> Toolchain:
        """Probe the machine and build a Toolchain.

        A requested hardware encoder that this ffmpeg build does not list
        falls back to software encoding.
        """
        encoder = EncoderSettings.software()
        if hw_accel:
            if ffmpeg.encoder_available(HARDWARE_ENCODER):
                encoder = EncoderSettings.hardware(HARDWARE_ENCODER)
            else:
                logger.warning(
                    "Hardware encoder %s not available, using libx264", HARDWARE_ENCODER
                )
        return cls(
            encoder=encoder,
            whisper_binary=whisper.find_whisper_cpp_binary(),
            on_status=on_status,
        )

    # -- probes ------------------------------------------------------------

    def backend(self) -> Optional[SubtitleBackend]:
        """Recognition engine for this run: whisper.cpp first, then faster-whisper."""
        return whisper.backend_for(self.whisper_binary)

    def get_duration(self, video_id: str) -> int:
        return ytdlp.get_duration(video_id)

    # -- media -------------------------------------------------------------

    def download(self, video_id: str, window: ClipWindow, output: Path) -> Path:
        return ytdlp.download_segment(video_id, window, output)

    def crop(self, source: Path, output: Path, crop: CropFilter) -> Path:
        return ffmpeg.crop_video(source, output, crop, self.encoder)

    def extract_audio(self, video: Path, audio: Path) -> Path:
        return ffmpeg.extract_audio(video, audio)

    def burn(self, video: Path, script: Path, output: Path) -> Path:
        return ffmpeg.burn_subtitles(video, script, output, self.encoder)

    # -- recognition -------------------------------------------------------

    def _whisper_cpp(self, model: WhisperModel) -> Tuple[str, Path]:
        """Binary and model file for a whisper.cpp call.

        The model is fetched at most once per Toolchain. A failed download
        is remembered, and every later call raises CaptionError straight
        away instead of downloading again.
        """
        if not self.whisper_binary:
            raise CaptionError("whisper.cpp binary not found")
        if model in self._model_failures:
            raise CaptionError(self._model_failures[model])
        if model not in self._model_files:
            try:
                self._model_files[model] = whisper.ensure_model(
                    model, self.models_dir, on_status=self.on_status
                )
            except ToolError as exc:
                reason = "whisper model {} unavailable: {}".format(model.value, exc)
                self._model_failures[model] = reason
                logger.warning("%s; captions disabled for the rest of the run", reason)
                raise CaptionError(reason) from exc
        return self.whisper_binary, self._model_files[model]

    def transcribe_words(
        self, audio: Path, output_base: Path, model: WhisperModel, language: str
    ) -> Path:
        binary, model_file = self._whisper_cpp(model)
        return whisper.transcribe_word_level(binary, model_file, audio, language, output_base)

    def transcribe_srt(
        self, audio: Path, output_base: Path, model: WhisperModel, language: str
    ) -> Path:
        binary, model_file = self._whisper_cpp(model)
        return whisper.transcribe_srt(binary, model_file, audio, language, output_base)

    def transcribe_segments(
        self, media: Path, output_srt: Path, model: WhisperModel, language: str
    ) -> Path:
        return whisper.transcribe_segment_level(media, output_srt, model, language)
