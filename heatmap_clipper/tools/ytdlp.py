"""yt-dlp wrappers: duration lookup, ranged download, self-update.

WHY: Only the highlight window is needed, not the whole video. yt-dlp's
ffmpeg downloader can seek on the remote stream, so a 40 second clip out of
a three hour stream downloads in seconds.

RULES:
- Ranged downloads pass -ss / -to to ffmpeg as input args (ffmpeg_i:)
- Stream preference: MP4 video up to 1080p + M4A audio, else best MP4, else best
- A zero exit that leaves no output file is still a failure (ToolError)
- Duration lookup failure is DurationUnavailable (fatal to the run)
"""

from __future__ import annotations

import logging
from pathlib import Path

from heatmap_clipper.config import YOUTUBE_SHORT_URL, YTDLP_BIN
from heatmap_clipper.core.heatmap import parse_duration
from heatmap_clipper.core.models import ClipWindow
from heatmap_clipper.errors import DurationUnavailable, ToolError
from heatmap_clipper.tools.runner import run_tool

logger = logging.getLogger(__name__)

STREAM_FORMAT = "bestvideo[height<=1080][ext=mp4]+bestaudio[ext=m4a]/best[ext=mp4]/best"


def video_url(video_id: str) -> str:
    return "{}/{}".format(YOUTUBE_SHORT_URL, video_id)


def get_duration(video_id: str) -> int:
    """Return the video's total duration in whole seconds.

    Raises:
        DurationUnavailable: yt-dlp failed or printed nothing usable.
    """
    try:
        output = run_tool([YTDLP_BIN, "--get-duration", video_url(video_id)])
    except ToolError as exc:
        raise DurationUnavailable(
            "Could not get video duration for {}: {}".format(video_id, exc)
        ) from exc

    lines = [line for line in output.splitlines() if line.strip()]
    if not lines:
        raise DurationUnavailable("yt-dlp printed no duration for {}".format(video_id))
    return parse_duration(lines[0])


def build_download_command(video_id: str, window: ClipWindow, output: Path) -> list:
    downloader_args = "ffmpeg_i:-ss {} -to {} -hide_banner -loglevel error".format(
        window.start_s, window.end_s,
    )
    return [
        YTDLP_BIN,
        "--force-ipv4",
        "--quiet",
        "--no-warnings",
        "--downloader", "ffmpeg",
        "--downloader-args", downloader_args,
        "-f", STREAM_FORMAT,
        "-o", str(output),
        video_url(video_id),
    ]


def download_segment(video_id: str, window: ClipWindow, output: Path) -> Path:
    """Download one clip window to ``output``.

    Raises:
        ToolError: yt-dlp failed, or exited cleanly without writing the file.
    """
    command = build_download_command(video_id, window, output)
    run_tool(command)
    if not Path(output).exists():
        raise ToolError(command, 0, message="yt-dlp produced no file at {}".format(output))
    return Path(output)


def update_ytdlp() -> str:
    """Run yt-dlp's self-update and return its output."""
    logger.info("Updating yt-dlp")
    return run_tool([YTDLP_BIN, "-U"]).strip()
