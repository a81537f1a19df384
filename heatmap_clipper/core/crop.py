"""Vertical crop layouts and their ffmpeg filter expressions.

WHY: Landscape sources have to become 720x1280 portrait clips. A plain
center crop works for talking heads, but gameplay and screen-share streams
put the streamer's facecam in a bottom corner that a center crop would cut
off. The split layouts keep both: the center of the frame on top, the
facecam corner underneath.

HOW: CropMode is a closed enum. build_crop_filter() matches it exhaustively
and returns a CropFilter: the expression text plus whether ffmpeg must
receive it as a filter graph (-filter_complex) rather than a simple chain
(-vf).

The split modes scale first and split second: both crops are taken from the
same scaled, uncropped frame, so the geometry never depends on the source
aspect ratio.

  scale=-2:1280 ─[scaled]─ split ─[s1]─ crop 720x960 centered ───[top]──┐
                                 └[s2]─ crop 720x350 corner ───[bottom]─┴─ vstack ─[out]

RULES:
- Split modes stack TOP_HEIGHT + BOTTOM_HEIGHT rows (1310), not OUTPUT_HEIGHT;
  the stacked frame is 720x1310
- Pure: the same mode always yields byte-identical text
- SplitLeft and SplitRight differ only in the bottom crop's x offset
- Graph modes emit their video on the [out] label; audio is not carried by
  the graph, so the caller maps it explicitly
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

OUTPUT_WIDTH = 720
OUTPUT_HEIGHT = 1280
TOP_HEIGHT = 960
BOTTOM_HEIGHT = 350

GRAPH_OUTPUT_LABEL = "out"


class CropMode(str, enum.Enum):
    """Vertical layout strategy for a clip."""

    DEFAULT = "default"
    SPLIT_LEFT = "split-left"
    SPLIT_RIGHT = "split-right"

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]

    @property
    def is_complex(self) -> bool:
        """True when the filter must be passed as a graph (-filter_complex)."""
        return self in (CropMode.SPLIT_LEFT, CropMode.SPLIT_RIGHT)

    @classmethod
    def from_input(cls, text: str) -> Optional[CropMode]:
        """Parse a crop mode from a menu number or a name.

        RULES:
        - "1" / "default"
        - "2" / "split-left" / "split_left" / "splitleft"
        - "3" / "split-right" / "split_right" / "splitright"
        - Anything else → None
        """
        return _INPUT_ALIASES.get(text.strip().lower())


_DESCRIPTIONS = {
    CropMode.DEFAULT: "Default (center crop)",
    CropMode.SPLIT_LEFT: "Split (top: center, bottom: bottom-left facecam)",
    CropMode.SPLIT_RIGHT: "Split (top: center, bottom: bottom-right facecam)",
}

_INPUT_ALIASES = {
    "1": CropMode.DEFAULT,
    "default": CropMode.DEFAULT,
    "2": CropMode.SPLIT_LEFT,
    "split-left": CropMode.SPLIT_LEFT,
    "split_left": CropMode.SPLIT_LEFT,
    "splitleft": CropMode.SPLIT_LEFT,
    "3": CropMode.SPLIT_RIGHT,
    "split-right": CropMode.SPLIT_RIGHT,
    "split_right": CropMode.SPLIT_RIGHT,
    "splitright": CropMode.SPLIT_RIGHT,
}


@dataclass(frozen=True)
class CropFilter:
    """An ffmpeg video filter expression and how to pass it.

    RULES:
    - is_complex=False: pass with -vf; output_label is None
    - is_complex=True: pass with -filter_complex and map [output_label]
    """

    expression: str
    is_complex: bool
    output_label: Optional[str] = None


def _center_crop() -> str:
    # Scale to cover 720x1280 (both dimensions >= target), then crop the center.
    return "scale={w}:{h}:force_original_aspect_ratio=increase,crop={w}:{h}".format(
        w=OUTPUT_WIDTH, h=OUTPUT_HEIGHT,
    )


def _split_graph(bottom_x: str) -> str:
    nodes = [
        "scale=-2:{h}[scaled]".format(h=OUTPUT_HEIGHT),
        "[scaled]split=2[s1][s2]",
        "[s1]crop={w}:{top}:(iw-{w})/2:(ih-{top})/2[top]".format(
            w=OUTPUT_WIDTH, top=TOP_HEIGHT,
        ),
        "[s2]crop={w}:{bottom}:{x}:ih-{bottom}[bottom]".format(
            w=OUTPUT_WIDTH, bottom=BOTTOM_HEIGHT, x=bottom_x,
        ),
        "[top][bottom]vstack=inputs=2[{label}]".format(label=GRAPH_OUTPUT_LABEL),
    ]
    return ";".join(nodes)


def build_crop_filter(mode: CropMode) -> CropFilter:
    """Return the filter expression for a crop mode."""
    if mode is CropMode.DEFAULT:
        return CropFilter(expression=_center_crop(), is_complex=False)
    if mode is CropMode.SPLIT_LEFT:
        return CropFilter(
            expression=_split_graph("0"),
            is_complex=True,
            output_label=GRAPH_OUTPUT_LABEL,
        )
    if mode is CropMode.SPLIT_RIGHT:
        return CropFilter(
            expression=_split_graph("iw-{w}".format(w=OUTPUT_WIDTH)),
            is_complex=True,
            output_label=GRAPH_OUTPUT_LABEL,
        )
    raise ValueError("Unhandled crop mode: {!r}".format(mode))
