"""Configuration defaults and .env loading.

WHY: Output locations, default language, model size, and tool names differ
between a laptop and a server. Keeping every environment-driven default in
one module makes them easy to find and override without touching logic.

HOW: python-dotenv loads the .env file on import. Each default is a
module-level constant read from os.environ with a hardcoded fallback.

RULES:
- Only deployment knobs live here; algorithm constants (score threshold,
  padding, canvas sizes) stay next to the algorithms that use them
- Every value can be overridden by an environment variable
- Nothing here shells out or touches the network
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (where the command is run from)
load_dotenv()


def _env_int(name: str, default: int) -> int:
    """Read an integer environment variable, falling back on bad values."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# ---------------------------------------------------------------------------
# Run defaults
# ---------------------------------------------------------------------------

DEFAULT_OUTPUT_DIR = os.getenv("CLIPPER_OUTPUT_DIR", "clips")
DEFAULT_LANGUAGE = os.getenv("CLIPPER_LANGUAGE", "id")
DEFAULT_WHISPER_MODEL = os.getenv("CLIPPER_WHISPER_MODEL", "small")
DEFAULT_CROP_MODE = os.getenv("CLIPPER_CROP_MODE", "default")
DEFAULT_MAX_CLIPS = _env_int("CLIPPER_MAX_CLIPS", 10)

HARDWARE_ENCODER = os.getenv("CLIPPER_HW_ENCODER", "h264_nvenc")
"""ffmpeg encoder used when hardware acceleration is requested."""

# ---------------------------------------------------------------------------
# External tools
# ---------------------------------------------------------------------------

FFMPEG_BIN = os.getenv("CLIPPER_FFMPEG_BIN", "ffmpeg")
YTDLP_BIN = os.getenv("CLIPPER_YTDLP_BIN", "yt-dlp")

WHISPER_CPP_BINARIES = ("whisper-cli", "whisper", "whisper-cpp", "main")
"""whisper.cpp binary names, in lookup order (whisper-cli is the scoop name)."""

WHISPER_MODELS_DIR = Path(
    os.getenv("WHISPER_MODELS_DIR", str(Path.home() / ".cache" / "whisper.cpp"))
)

WHISPER_MODEL_BASE_URL = os.getenv(
    "WHISPER_MODEL_BASE_URL",
    "https://huggingface.co/ggerganov/whisper.cpp/resolve/main",
)

# ---------------------------------------------------------------------------
# Network
# ---------------------------------------------------------------------------

YOUTUBE_WATCH_URL = "https://www.youtube.com/watch"
YOUTUBE_SHORT_URL = "https://youtu.be"
USER_AGENT = os.getenv("CLIPPER_USER_AGENT", "Mozilla/5.0")
HTTP_TIMEOUT_S = 30.0

# ---------------------------------------------------------------------------
# HTTP service
# ---------------------------------------------------------------------------

API_HOST = os.getenv("CLIPPER_API_HOST", "0.0.0.0")
API_PORT = _env_int("CLIPPER_API_PORT", 3000)
