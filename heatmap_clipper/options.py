"""Run options: what the caller asked for, normalized to what will be used.

WHY: Options arrive from three places: argparse, interactive prompts, and
JSON request bodies. All three hand over loose strings. A run must never
fail because of an unrecognized option value; it falls back to the default
and reports the effective configuration back to the caller.

RULES:
- from_inputs() never raises on a bad value; it substitutes the default
- to_dict() is the "effective configuration" reported by the CLI and service
- backend is None until resolved at run start (None after resolution means
  no recognition engine is installed)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from heatmap_clipper.config import (
    DEFAULT_CROP_MODE,
    DEFAULT_LANGUAGE,
    DEFAULT_MAX_CLIPS,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_WHISPER_MODEL,
)
from heatmap_clipper.core.crop import CropMode
from heatmap_clipper.core.models import SubtitleBackend, WhisperModel

logger = logging.getLogger(__name__)


def default_crop_mode() -> CropMode:
    return CropMode.from_input(DEFAULT_CROP_MODE) or CropMode.DEFAULT


def default_model() -> WhisperModel:
    return WhisperModel.from_input(DEFAULT_WHISPER_MODEL) or WhisperModel.SMALL


@dataclass
class SubtitleConfig:
    """Caption settings for one run."""

    enabled: bool = False
    model: WhisperModel = field(default_factory=default_model)
    language: str = DEFAULT_LANGUAGE
    backend: Optional[SubtitleBackend] = None


@dataclass
class ProcessOptions:
    """Everything a run needs to know besides the video itself."""

    crop_mode: CropMode = field(default_factory=default_crop_mode)
    subtitle: SubtitleConfig = field(default_factory=SubtitleConfig)
    output_dir: Path = field(default_factory=lambda: Path(DEFAULT_OUTPUT_DIR))
    hw_accel: bool = False
    max_clips: int = DEFAULT_MAX_CLIPS

    @classmethod
    def from_inputs(
        cls,
        crop_mode: Optional[str] = None,
        subtitle: bool = False,
        model: Optional[str] = None,
        language: Optional[str] = None,
        output_dir: Optional[str] = None,
        hw_accel: bool = False,
        max_clips: Optional[int] = None,
    ) -> ProcessOptions:
        """Build options from loose user input, falling back on bad values."""
        mode = default_crop_mode()
        if crop_mode:
            parsed_mode = CropMode.from_input(crop_mode)
            if parsed_mode is None:
                logger.warning("Unknown crop mode %r, using %s", crop_mode, mode.value)
            else:
                mode = parsed_mode

        whisper_model = default_model()
        if model:
            parsed_model = WhisperModel.from_input(model)
            if parsed_model is None:
                logger.warning("Unknown model %r, using %s", model, whisper_model.value)
            else:
                whisper_model = parsed_model

        lang = (language or "").strip() or DEFAULT_LANGUAGE
        clips = max_clips if max_clips and max_clips > 0 else DEFAULT_MAX_CLIPS

        return cls(
            crop_mode=mode,
            subtitle=SubtitleConfig(enabled=bool(subtitle), model=whisper_model, language=lang),
            output_dir=Path(output_dir or DEFAULT_OUTPUT_DIR),
            hw_accel=bool(hw_accel),
            max_clips=clips,
        )

    def to_dict(self) -> Dict[str, Any]:
        backend = self.subtitle.backend
        return {
            "crop_mode": self.crop_mode.value,
            "subtitle": self.subtitle.enabled,
            "model": self.subtitle.model.value,
            "language": self.subtitle.language,
            "backend": backend.value if backend else None,
            "output_dir": str(self.output_dir),
            "hw_accel": self.hw_accel,
            "max_clips": self.max_clips,
        }
