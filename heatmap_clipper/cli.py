"""Command-line interface for Heatmap Clipper.

WHY: Most runs are one-offs from a terminal: paste a URL, pick a layout,
get a folder of clips. The same entry point also starts the HTTP service,
so one installed command covers both uses.

HOW: argparse collects the options; --interactive (or a missing --url)
falls back to prompts. The required binaries are checked first. The async
run is driven with asyncio.run(). Progress goes to stderr through the
_status callback; the produced clip paths go to stdout, one per line, so
the command can be piped.

RULES:
- Dependency check runs before anything else; failure exits 1
- --update runs yt-dlp's self-update first and never aborts the run
- --server starts uvicorn on --port and ignores the clip options
- Unrecognized --crop / --model values fall back to the defaults
- Fatal-to-run errors print "Error: ..." to stderr and exit 1
- Ctrl-C exits 130
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional, Tuple

from heatmap_clipper import __version__
from heatmap_clipper.config import (
    API_HOST,
    API_PORT,
    DEFAULT_CROP_MODE,
    DEFAULT_LANGUAGE,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_WHISPER_MODEL,
)
from heatmap_clipper.core.crop import CropMode
from heatmap_clipper.core.models import WhisperModel
from heatmap_clipper.errors import ClipperError, ToolError
from heatmap_clipper.options import ProcessOptions
from heatmap_clipper.pipeline import RunReport, process_video
from heatmap_clipper.tools.toolchain import check_dependencies
from heatmap_clipper.tools.whisper import backend_status
from heatmap_clipper.tools.ytdlp import update_ytdlp

logger = logging.getLogger(__name__)


def _status(msg: str) -> None:
    """Print a status message to stderr, flushed immediately."""
    print(msg, file=sys.stderr, flush=True)


# ---------------------------------------------------------------------------
# Interactive prompts
# ---------------------------------------------------------------------------


def prompt_crop_mode() -> CropMode:
    _status("\n=== Crop Mode ===")
    for number, mode in enumerate(CropMode, start=1):
        _status("{}. {}".format(number, mode.description))
    while True:
        mode = CropMode.from_input(input("\nSelect crop mode (1-3): "))
        if mode is not None:
            _status("Selected: {}".format(mode.description))
            return mode
        _status("Invalid choice. Please enter 1, 2, or 3.")


def prompt_subtitle() -> Tuple[bool, WhisperModel]:
    """Ask whether to caption; a model name typed directly also means yes."""
    _status("\n=== Auto Subtitle ===")
    _status("Available models:")
    for model in WhisperModel:
        marker = " [recommended]" if model is WhisperModel.SMALL else ""
        _status("  - {:<6} ({}){}".format(model.value, model.size_display, marker))

    answer = input("\nEnable subtitle? (y/n or model name): ").strip().lower()
    model = WhisperModel.from_input(answer)
    if model is not None:
        _status("Subtitle enabled with model: {} ({})".format(model.value, model.size_display))
        return True, model
    if answer not in ("y", "yes"):
        _status("Subtitle disabled.")
        return False, WhisperModel.SMALL

    choice = input("Select model (tiny/base/small/medium/large) [small]: ").strip()
    model = WhisperModel.from_input(choice) if choice else None
    model = model or WhisperModel.SMALL
    _status("Subtitle enabled with model: {} ({})".format(model.value, model.size_display))
    return True, model


def prompt_url() -> str:
    return input("\nEnter YouTube URL: ").strip()


# ---------------------------------------------------------------------------
# Run
# ---------------------------------------------------------------------------


def _options_from_args(args: argparse.Namespace) -> Tuple[ProcessOptions, str]:
    if args.interactive:
        mode = prompt_crop_mode()
        subtitle, model = prompt_subtitle()
        url = prompt_url()
        crop, model_name = mode.value, model.value
    else:
        crop, subtitle, model_name = args.crop, args.subtitle, args.model
        url = args.url or prompt_url()

    options = ProcessOptions.from_inputs(
        crop_mode=crop,
        subtitle=subtitle,
        model=model_name,
        language=args.language,
        output_dir=args.output,
        hw_accel=args.hw_accel,
    )
    return options, url


def _print_summary(url: str, options: ProcessOptions) -> None:
    _status("\n=== Processing ===")
    _status("URL: {}".format(url))
    _status("Crop mode: {}".format(options.crop_mode.description))
    if options.subtitle.enabled:
        _status("Subtitle: enabled ({}, {})".format(
            options.subtitle.model.value, options.subtitle.language,
        ))
    else:
        _status("Subtitle: disabled")
    _status("Output: {}".format(options.output_dir))
    _status("")


def _print_report(report: RunReport) -> None:
    for clip in report.results:
        if clip.succeeded:
            suffix = "" if clip.captioned or not report.options.subtitle.enabled else " (no captions)"
            _status("  {}{}".format(clip.file, suffix))
        else:
            _status("  skipped segment at {:.0f}s: {}".format(clip.segment.start_s, clip.note))
    _status("\nFinished processing. {} clip(s) successfully saved to '{}'.".format(
        report.success_count, report.options.output_dir,
    ))
    _status("Candidates considered: {}".format(report.candidates_considered))
    for name in report.files:
        print(report.options.output_dir / name)


def _run_server(port: int) -> None:
    import uvicorn

    from heatmap_clipper.server.app import app

    _status("Starting server on http://{}:{}".format(API_HOST, port))
    uvicorn.run(app, host=API_HOST, port=port)


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="heatmap-clipper",
        description="YouTube Heatmap Clipper - generate vertical clips from the "
                    "most replayed moments of a YouTube video.",
    )
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument(
        "--server",
        action="store_true",
        help="Run the HTTP service instead of processing a URL.",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=API_PORT,
        help="Port for --server (default: %(default)s).",
    )
    parser.add_argument(
        "-u", "--url",
        default=None,
        help="YouTube URL (prompted for if not given).",
    )
    parser.add_argument(
        "-c", "--crop",
        default=DEFAULT_CROP_MODE,
        help="Crop mode: default, split-left, split-right (default: %(default)s).",
    )
    parser.add_argument(
        "-s", "--subtitle",
        action="store_true",
        help="Burn in automatic captions.",
    )
    parser.add_argument(
        "--model",
        default=DEFAULT_WHISPER_MODEL,
        help="Whisper model size: tiny, base, small, medium, large (default: %(default)s).",
    )
    parser.add_argument(
        "--language",
        default=DEFAULT_LANGUAGE,
        help="Caption language code, e.g. id, en, ja (default: %(default)s).",
    )
    parser.add_argument(
        "-o", "--output",
        default=DEFAULT_OUTPUT_DIR,
        help="Output directory for clips (default: %(default)s).",
    )
    parser.add_argument(
        "--hw-accel",
        action="store_true",
        help="Encode with the hardware encoder when ffmpeg supports it.",
    )
    parser.add_argument(
        "--update",
        action="store_true",
        help="Update yt-dlp before processing.",
    )
    parser.add_argument(
        "--subtitle-status",
        action="store_true",
        help="Show which speech recognition engines and models are installed, then exit.",
    )
    parser.add_argument(
        "-i", "--interactive",
        action="store_true",
        help="Prompt for crop mode, captions and URL.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log tool invocations and pipeline decisions.",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI and ``python -m heatmap_clipper``.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.subtitle_status:
        print(json.dumps(backend_status(), indent=2))
        return

    try:
        check_dependencies()
    except ClipperError as e:
        print("Error checking dependencies: {}".format(e), file=sys.stderr)
        sys.exit(1)

    if args.update:
        try:
            _status(update_ytdlp())
        except ToolError as e:
            _status("yt-dlp update failed: {}".format(e))

    if args.server:
        _run_server(args.port)
        return

    try:
        options, url = _options_from_args(args)
    except (EOFError, KeyboardInterrupt):
        _status("\nCancelled by user.")
        sys.exit(130)

    if not url:
        _status("Invalid input. No URL provided.")
        sys.exit(1)

    _print_summary(url, options)
    try:
        report = asyncio.run(process_video(url, options, on_status=_status))
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        sys.exit(130)
    except ClipperError as e:
        print("Error: {}".format(e), file=sys.stderr)
        sys.exit(1)

    _print_report(report)


if __name__ == "__main__":
    main()
