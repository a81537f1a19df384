"""Subprocess execution for external tools.

WHY: yt-dlp, ffmpeg and whisper.cpp are all driven the same way: build an
argument list, run it to completion, and treat a non-zero exit as failure.
One wrapper keeps the capture, logging and error shape identical for all.

RULES:
- Arguments are always a list; never a shell string
- Non-zero exit → ToolError with the captured stderr
- Binary not found / not executable → ToolError with returncode None
- stdout is returned decoded (UTF-8, undecodable bytes replaced)
"""

from __future__ import annotations

import logging
import subprocess
from typing import Optional, Sequence

from heatmap_clipper.errors import ToolError

logger = logging.getLogger(__name__)


def run_tool(args: Sequence[str], timeout: Optional[float] = None) -> str:
    """Run a command to completion and return its stdout."""
    command = [str(a) for a in args]
    logger.debug("Running: %s", " ".join(command))
    try:
        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
        )
    except FileNotFoundError as exc:
        raise ToolError(command, None, message="{} not found".format(command[0])) from exc
    except PermissionError as exc:
        raise ToolError(command, None, message="{} is not executable".format(command[0])) from exc
    except subprocess.TimeoutExpired as exc:
        raise ToolError(
            command, None, message="{} timed out after {}s".format(command[0], timeout)
        ) from exc

    if result.returncode != 0:
        raise ToolError(command, result.returncode, result.stderr or "")
    return result.stdout or ""
