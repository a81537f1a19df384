"""Clip pipeline: walk ranked highlight candidates into finished clips.

WHY: A run touches the network once and external tools many times, and
each of those can fail in its own way. Whether a failure ends the run,
skips one candidate, or only drops the captions is a policy decision. This
module is where that policy lives, in one place, as an explicit per-clip
state machine.

HOW: process_video() does the once-per-run work (video id, heatmap fetch,
duration lookup, tool probing) and then hands the ranked segments to
ClipPipeline.run(), which advances candidates one at a time:

  WINDOWED → DOWNLOADED → CROPPED ─┬─ captions off ─────────────────────→ FINALIZED
                                   ├─ CAPTIONED ────────────────────────→ FINALIZED
                                   └─ CAPTION_FAILED ───→ FINALIZED_WITHOUT_CAPTION
  window too short / download failed / crop failed ─────────────────────→ SKIPPED

RULES:
- Candidates are processed in rank order, one at a time, never revisited
- Stops once max_clips (default 10) clips are finalized, or candidates run out
- FINALIZED and FINALIZED_WITHOUT_CAPTION count toward the quota; SKIPPED does not
- Output index n = successes so far + 1, so clip numbers have no gaps
- temp_<n>.mp4, temp_cropped_<n>.mp4 and temp_<n>.ass are removed on every path
- Only process_video() raises to the caller, and only fatal-to-run errors
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from heatmap_clipper.core.crop import build_crop_filter
from heatmap_clipper.core.heatmap import extract_video_id
from heatmap_clipper.core.models import ClipWindow, HighlightSegment
from heatmap_clipper.core.window import MIN_WINDOW, compute_window
from heatmap_clipper.errors import ClipperError, InvalidSourceError, NoHighlightsFound, ToolError
from heatmap_clipper.options import ProcessOptions
from heatmap_clipper.subtitles import CaptionStage
from heatmap_clipper.tools.heatmap_client import HeatmapClient
from heatmap_clipper.tools.toolchain import Toolchain

logger = logging.getLogger(__name__)


class ClipState(str, enum.Enum):
    """Where one candidate clip is in its lifecycle."""

    WINDOWED = "windowed"
    DOWNLOADED = "downloaded"
    CROPPED = "cropped"
    CAPTIONED = "captioned"
    CAPTION_FAILED = "caption_failed"
    FINALIZED = "finalized"
    FINALIZED_WITHOUT_CAPTION = "finalized_without_caption"
    SKIPPED = "skipped"


@dataclass
class ClipResult:
    """Outcome of one candidate.

    Attributes:
        segment: The highlight segment this candidate came from.
        index: The output number this candidate would have used.
        state: The terminal state reached.
        history: Every state visited, in order.
        window: The clip window, when one was computed.
        file: Output filename (relative to the output dir) when finalized.
        captioned: True only when captions were burned in.
        note: Human-readable reason for a skip or a missing caption.
    """

    segment: HighlightSegment
    index: int
    state: Optional[ClipState] = None
    history: List[ClipState] = field(default_factory=list)
    window: Optional[ClipWindow] = None
    file: Optional[str] = None
    captioned: bool = False
    note: str = ""

    def advance(self, state: ClipState, note: str = "") -> None:
        self.state = state
        self.history.append(state)
        if note:
            self.note = note

    @property
    def succeeded(self) -> bool:
        return self.state in (ClipState.FINALIZED, ClipState.FINALIZED_WITHOUT_CAPTION)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "file": self.file,
            "state": self.state.value if self.state else None,
            "captioned": self.captioned,
            "note": self.note,
            "score": self.segment.score,
            "start_s": self.window.start_s if self.window else None,
            "end_s": self.window.end_s if self.window else None,
        }


@dataclass
class RunReport:
    """What a run produced, and what it considered to produce it."""

    video_id: str
    options: ProcessOptions
    results: List[ClipResult] = field(default_factory=list)

    @property
    def clips(self) -> List[ClipResult]:
        return [r for r in self.results if r.succeeded]

    @property
    def files(self) -> List[str]:
        return [r.file for r in self.clips if r.file]

    @property
    def success_count(self) -> int:
        return len(self.clips)

    @property
    def candidates_considered(self) -> int:
        return len(self.results)


def _remove(*paths: Path) -> None:
    for path in paths:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not remove %s: %s", path, exc)


class ClipPipeline:
    """Sequential per-candidate processing for one video.

    RULES:
    - Blocking: every step is a synchronous external tool call
    - Single-flight per output directory; temp names are index-based
    """

    def __init__(
        self,
        toolchain: Toolchain,
        options: ProcessOptions,
        on_status: Callable[[str], None] | None = None,
    ) -> None:
        self.toolchain = toolchain
        self.options = options
        self.on_status = on_status
        self.crop = build_crop_filter(options.crop_mode)
        self.captions = CaptionStage(toolchain, options.subtitle)

    def _status(self, msg: str) -> None:
        if self.on_status:
            self.on_status(msg)

    def process_candidate(
        self,
        video_id: str,
        segment: HighlightSegment,
        index: int,
        total_duration: float,
    ) -> ClipResult:
        """Take one candidate as far as it will go; never raises ClipperError."""
        result = ClipResult(segment=segment, index=index)

        window = compute_window(segment, total_duration)
        if window is None:
            logger.warning(
                "Segment at %.1fs skipped: window shorter than %.0fs", segment.start_s, MIN_WINDOW
            )
            result.advance(ClipState.SKIPPED, "window shorter than {:.0f}s".format(MIN_WINDOW))
            return result
        result.window = window
        result.advance(ClipState.WINDOWED)

        out = self.options.output_dir
        temp = out / "temp_{}.mp4".format(index)
        cropped = out / "temp_cropped_{}.mp4".format(index)
        script = out / "temp_{}.ass".format(index)
        final_name = "clip_{}.mp4".format(index)
        final = out / final_name

        try:
            self._status("Downloading {:.0f}s-{:.0f}s (score {:.2f})...".format(
                window.start_s, window.end_s, segment.score,
            ))
            try:
                self.toolchain.download(video_id, window, temp)
            except ToolError as exc:
                logger.warning("Clip %d: download failed: %s", index, exc)
                result.advance(ClipState.SKIPPED, "download failed: {}".format(exc))
                return result
            result.advance(ClipState.DOWNLOADED)

            self._status("Cropping ({})...".format(self.options.crop_mode.description))
            try:
                self.toolchain.crop(temp, cropped, self.crop)
            except ToolError as exc:
                logger.warning("Clip %d: crop failed: %s", index, exc)
                result.advance(ClipState.SKIPPED, "crop failed: {}".format(exc))
                return result
            result.advance(ClipState.CROPPED)
            _remove(temp)

            if not self.options.subtitle.enabled:
                cropped.replace(final)
                result.file = final_name
                result.advance(ClipState.FINALIZED)
                return result

            try:
                self._status("Generating captions...")
                caption = self.captions.generate(cropped, script)
                self._status("Burning captions ({})...".format(caption.style))
                self.toolchain.burn(cropped, caption.path, final)
            except (ClipperError, OSError) as exc:
                logger.warning("Clip %d: captions dropped: %s", index, exc)
                result.advance(ClipState.CAPTION_FAILED, "captions skipped: {}".format(exc))
                cropped.replace(final)
                result.file = final_name
                result.advance(ClipState.FINALIZED_WITHOUT_CAPTION)
                return result

            result.advance(ClipState.CAPTIONED)
            result.captioned = True
            result.file = final_name
            result.advance(ClipState.FINALIZED)
            return result
        finally:
            _remove(temp, cropped, script)

    def run(
        self,
        video_id: str,
        segments: Sequence[HighlightSegment],
        total_duration: float,
    ) -> RunReport:
        """Advance ranked candidates until the quota is met or they run out."""
        report = RunReport(video_id=video_id, options=self.options)
        successes = 0
        for segment in segments:
            if successes >= self.options.max_clips:
                break
            index = successes + 1
            self._status("Processing clip {} (segment at {:.0f}s, score {:.2f})".format(
                index, segment.start_s, segment.score,
            ))
            result = self.process_candidate(video_id, segment, index, total_duration)
            report.results.append(result)
            if result.succeeded:
                successes += 1
                logger.info("Clip %d saved: %s (%s)", index, result.file, result.state.value)
        return report


async def process_video(
    url: str,
    options: ProcessOptions,
    toolchain: Optional[Toolchain] = None,
    client: Optional[HeatmapClient] = None,
    on_status: Callable[[str], None] | None = None,
) -> RunReport:
    """Run the whole clip generation for one video URL.

    HOW: The heatmap fetch is awaited; everything else blocks, so tool
    probing, the duration lookup and the pipeline itself run in a worker
    thread (asyncio.to_thread) and never stall the event loop.

    Raises:
        InvalidSourceError: The URL is not a YouTube video URL.
        HeatmapFetchError: The watch page could not be fetched.
        NoMarkersFound: The page has no heatmap.
        NoHighlightsFound: No marker passed the engagement threshold.
        DurationUnavailable: yt-dlp could not report the duration.
    """
    video_id = extract_video_id(url)
    if not video_id:
        raise InvalidSourceError("Invalid YouTube URL: {}".format(url))

    if on_status:
        on_status("Fetching heatmap for {}".format(video_id))
    if client is None:
        async with HeatmapClient() as owned:
            segments = await owned.fetch_segments(video_id)
    else:
        segments = await client.fetch_segments(video_id)
    if not segments:
        raise NoHighlightsFound("No high-engagement segments found")

    def _prepare():
        tools = toolchain or Toolchain.detect(options.hw_accel, on_status=on_status)
        return tools, tools.get_duration(video_id)

    tools, duration = await asyncio.to_thread(_prepare)
    if on_status:
        on_status("Found {} segment(s), video is {}s long".format(len(segments), duration))

    subtitle = options.subtitle
    if subtitle.enabled and subtitle.backend is None:
        subtitle = replace(subtitle, backend=tools.backend())
        if subtitle.backend is None:
            logger.warning("No speech recognition engine found; clips will have no captions")
    effective = replace(
        options,
        subtitle=subtitle,
        hw_accel=options.hw_accel and tools.encoder.is_hardware,
    )
    effective.output_dir.mkdir(parents=True, exist_ok=True)

    pipeline = ClipPipeline(tools, effective, on_status=on_status)
    return await asyncio.to_thread(pipeline.run, video_id, segments, duration)
