"""Heatmap Clipper — vertical highlight clips from YouTube "Most Replayed" data.

WHY: Long-form videos hide their best moments. YouTube already knows where
viewers rewind: the watch page carries an engagement heatmap. This package
turns those peaks into short 9:16 clips ready for social distribution, with
optional animated word-by-word captions.

HOW: Four stages: select (rank heatmap markers into highlight segments),
window (pad and clamp each segment), render (download, crop into one of three
vertical layouts, caption), report. The heavy lifting is delegated to
external tools (yt-dlp, ffmpeg, whisper.cpp / faster-whisper); this package
decides what to extract and how to draw it.

RULES:
- core/ is pure logic with no subprocesses or network
- tools/ is the only place that shells out or talks HTTP
- pipeline.py owns every skip / degrade / abort decision
"""

__version__ = "0.1.0"
