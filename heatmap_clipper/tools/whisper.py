"""Speech recognition engines: whisper.cpp and faster-whisper.

WHY: Captions need word timings, and only whisper.cpp gives them cheaply
(its full JSON carries per-token offsets). faster-whisper is the fallback
engine when no whisper.cpp build is installed: it only gives segment
timing, but it installs with pip.

HOW:
  detect_backend()            picks the engine once per run
  find_whisper_cpp_binary()   PATH lookup, then the working directory
  ensure_model()              downloads the ggml model on first use (httpx stream)
  transcribe_word_level()     whisper.cpp → <base>.json (full JSON, per word)
  transcribe_srt()            whisper.cpp → <base>.srt
  transcribe_segment_level()  faster-whisper in-process → .srt

RULES:
- whisper.cpp beats faster-whisper; neither → None (captions are skipped)
- faster-whisper is an optional extra, imported only when it is used
- A recognizer that exits cleanly but writes no artifact raises ToolError
- Model downloads go to a .part file first, then are renamed into place
"""

from __future__ import annotations

import importlib.util
import logging
import shutil
from collections.abc import Callable
from pathlib import Path
from typing import Dict, List, Optional

import httpx

from heatmap_clipper.config import HTTP_TIMEOUT_S, WHISPER_CPP_BINARIES, WHISPER_MODELS_DIR
from heatmap_clipper.core.models import SubtitleBackend, WhisperModel
from heatmap_clipper.errors import CaptionError, ToolError
from heatmap_clipper.tools.runner import run_tool

logger = logging.getLogger(__name__)

_DOWNLOAD_CHUNK_BYTES = 1024 * 1024


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def find_whisper_cpp_binary() -> Optional[str]:
    """Return the whisper.cpp command to run, or None if none is installed."""
    for name in WHISPER_CPP_BINARIES:
        if shutil.which(name):
            return name

    cwd = Path.cwd()
    for name in WHISPER_CPP_BINARIES:
        for candidate in (cwd / (name + ".exe"), cwd / name):
            if candidate.is_file():
                return str(candidate)
    return None


def faster_whisper_available() -> bool:
    return importlib.util.find_spec("faster_whisper") is not None


def backend_for(whisper_binary: Optional[str]) -> Optional[SubtitleBackend]:
    """Recognition engine given an already located whisper.cpp binary."""
    if whisper_binary:
        return SubtitleBackend.WORD_LEVEL
    if faster_whisper_available():
        return SubtitleBackend.SEGMENT_LEVEL
    return None


def detect_backend() -> Optional[SubtitleBackend]:
    """Choose the recognition engine for a run."""
    return backend_for(find_whisper_cpp_binary())


def model_path(model: WhisperModel, models_dir: Optional[Path] = None) -> Path:
    return Path(models_dir or WHISPER_MODELS_DIR) / model.ggml_filename


def backend_status(models_dir: Optional[Path] = None) -> Dict[str, object]:
    """Summarize what is installed, for --subtitle-status and /health."""
    binary = find_whisper_cpp_binary()
    backend = detect_backend()
    return {
        "whisper_cpp": binary,
        "faster_whisper": faster_whisper_available(),
        "backend": backend.value if backend else None,
        "models_dir": str(models_dir or WHISPER_MODELS_DIR),
        "installed_models": [
            m.value for m in WhisperModel if model_path(m, models_dir).exists()
        ],
    }


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


def ensure_model(
    model: WhisperModel,
    models_dir: Optional[Path] = None,
    on_status: Callable[[str], None] | None = None,
    transport: httpx.BaseTransport | None = None,
) -> Path:
    """Return the local ggml model path, downloading it on first use.

    Raises:
        ToolError: The download failed; no partial file is left behind.
    """
    target = model_path(model, models_dir)
    if target.exists():
        return target

    target.parent.mkdir(parents=True, exist_ok=True)
    partial = target.with_name(target.name + ".part")
    url = model.download_url
    if on_status:
        on_status("Downloading {} model ({})...".format(model.value, model.size_display))
    logger.info("Downloading %s to %s", url, target)

    try:
        with httpx.Client(
            follow_redirects=True,
            timeout=httpx.Timeout(None, connect=HTTP_TIMEOUT_S),
            transport=transport,
        ) as client:
            with client.stream("GET", url) as resp:
                resp.raise_for_status()
                with open(partial, "wb") as f:
                    for chunk in resp.iter_bytes(_DOWNLOAD_CHUNK_BYTES):
                        f.write(chunk)
    except (httpx.HTTPError, OSError) as exc:
        partial.unlink(missing_ok=True)
        raise ToolError(["download", url], None, message="Model download failed: {}".format(exc)) from exc

    partial.replace(target)
    return target


# ---------------------------------------------------------------------------
# whisper.cpp
# ---------------------------------------------------------------------------


def build_whisper_cpp_command(
    binary: str,
    model_file: Path,
    audio: Path,
    language: str,
    output_base: Path,
    word_level: bool,
) -> List[str]:
    command = [binary, "-m", str(model_file), "-f", str(audio), "-l", language]
    if word_level:
        command += ["--output-json-full", "--split-on-word", "--max-len", "1"]
    else:
        command += ["--output-srt"]
    return command + ["-of", str(output_base)]


def _run_whisper_cpp(
    binary: str,
    model_file: Path,
    audio: Path,
    language: str,
    output_base: Path,
    word_level: bool,
) -> Path:
    command = build_whisper_cpp_command(
        binary, model_file, audio, language, output_base, word_level
    )
    run_tool(command)
    artifact = Path(str(output_base) + (".json" if word_level else ".srt"))
    if not artifact.exists():
        raise ToolError(command, 0, message="whisper.cpp wrote no {}".format(artifact.name))
    return artifact


def transcribe_word_level(
    binary: str, model_file: Path, audio: Path, language: str, output_base: Path
) -> Path:
    """Run whisper.cpp for per-word timing; returns the full-JSON artifact."""
    return _run_whisper_cpp(binary, model_file, audio, language, output_base, True)


def transcribe_srt(
    binary: str, model_file: Path, audio: Path, language: str, output_base: Path
) -> Path:
    """Run whisper.cpp for segment timing; returns the SRT artifact."""
    return _run_whisper_cpp(binary, model_file, audio, language, output_base, False)


# ---------------------------------------------------------------------------
# faster-whisper
# ---------------------------------------------------------------------------


def format_srt_timestamp(seconds: float) -> str:
    """Encode seconds as an SRT timestamp, e.g. 61.5 → "00:01:01,500"."""
    total_ms = int(round(max(seconds, 0.0) * 1000))
    hours, rest = divmod(total_ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    secs, millis = divmod(rest, 1000)
    return "{:02d}:{:02d}:{:02d},{:03d}".format(hours, minutes, secs, millis)


def transcribe_segment_level(
    media: Path, output_srt: Path, model: WhisperModel, language: str
) -> Path:
    """Transcribe with faster-whisper on CPU (int8) and write an SRT file.

    Raises:
        CaptionError: faster-whisper is not installed, or transcription failed.
    """
    try:
        from faster_whisper import WhisperModel as FasterWhisperModel
    except ImportError as exc:
        raise CaptionError("faster-whisper is not installed") from exc

    logger.info("Transcribing %s with faster-whisper (%s)", media, model.value)
    try:
        recognizer = FasterWhisperModel(model.value, device="cpu", compute_type="int8")
        segments, _info = recognizer.transcribe(str(media), language=language)
        blocks = []
        for i, segment in enumerate(segments, start=1):
            blocks.append("{}\n{} --> {}\n{}\n".format(
                i,
                format_srt_timestamp(segment.start),
                format_srt_timestamp(segment.end),
                segment.text.strip(),
            ))
    except (RuntimeError, OSError, ValueError) as exc:
        raise CaptionError("faster-whisper failed: {}".format(exc)) from exc

    Path(output_srt).write_text("\n".join(blocks), encoding="utf-8")
    return Path(output_srt)
