"""External tool adapters — the only code that shells out or talks HTTP.

WHY: yt-dlp, ffmpeg, whisper.cpp and the YouTube watch page are all outside
the process. Keeping every call behind a small wrapper here means core/
stays pure and the pipeline can be tested with a fake Toolchain.

HOW: One module per collaborator (heatmap_client, ytdlp, ffmpeg, whisper),
a shared subprocess runner, and Toolchain, which bundles the per-run
choices (encoder, whisper.cpp binary) behind one object.

RULES:
- Subprocess failures surface as ToolError, never CalledProcessError
- HTTP failures surface as HeatmapFetchError (page) or ToolError (model)
"""

from heatmap_clipper.tools.heatmap_client import HeatmapClient
from heatmap_clipper.tools.toolchain import Toolchain, check_dependencies

__all__ = ["HeatmapClient", "Toolchain", "check_dependencies"]
