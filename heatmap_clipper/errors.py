"""Typed exceptions shared across the clipper.

WHY: The orchestrator has to tell three kinds of failure apart: those that
end the whole run, those that only skip one candidate clip, and those that
merely drop the captions. Typed exceptions make that decision a matter of
which class was raised rather than string matching on messages.

HOW: One base class (ClipperError) and a flat set of subclasses. Lower layers
raise them; ClipPipeline and process_video decide what each one means.

RULES:
- Fatal-to-run: InvalidSourceError, NoMarkersFound (and NoHighlightsFound),
  DurationUnavailable, HeatmapFetchError, MissingDependencyError
- Fatal-to-candidate: ToolError raised by download or crop
- Degradable: CaptionError, TranscriptUnreadable, ToolError raised by
  recognition or burn-in
"""

from __future__ import annotations

from typing import Sequence


class ClipperError(Exception):
    """Base class for every error raised by heatmap_clipper."""


class InvalidSourceError(ClipperError):
    """The source reference is not a recognizable YouTube video URL."""


class NoMarkersFound(ClipperError):
    """The watch page carries no recognizable heatmap marker array.

    RULES:
    - Fatal to the whole run, never raised per marker
    """


class NoHighlightsFound(NoMarkersFound):
    """Markers were found, but none passed the engagement threshold."""


class DurationUnavailable(ClipperError):
    """The duration lookup tool failed for this video."""


class HeatmapFetchError(ClipperError):
    """The watch page could not be fetched (network or HTTP error)."""


class MissingDependencyError(ClipperError):
    """A required external binary (ffmpeg, yt-dlp) is not on PATH."""


class TranscriptUnreadable(ClipperError):
    """A recognition artifact could not be parsed as structured data at all.

    RULES:
    - Raised only for a malformed container; individual unmatched entries
      are skipped silently by the parser
    """


class CaptionError(ClipperError):
    """Caption generation failed; the clip is kept without captions."""


class ToolError(ClipperError):
    """An external command exited non-zero, or could not be started.

    WHY: Callers need the command, exit status, and stderr tail to log a
    useful message, but they only decide policy on the exception type.

    RULES:
    - returncode is None when the binary could not be executed at all
    - stderr is the captured standard error text (may be empty)
    """

    def __init__(
        self,
        command: Sequence[str],
        returncode: int | None,
        stderr: str = "",
        message: str | None = None,
    ) -> None:
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        program = self.command[0] if self.command else "<empty>"
        if message is None:
            if returncode is None:
                message = f"{program} could not be started"
            else:
                message = f"{program} exited with status {returncode}"
            tail = stderr.strip().splitlines()[-1:] if stderr else []
            if tail:
                message = f"{message}: {tail[0]}"
        self.message = message
        super().__init__(message)
