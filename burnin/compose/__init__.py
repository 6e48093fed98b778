"""
Frame Composition Module

Resolves which overlays and subtitle are visible at a point in time, turns
them into draw operations, and paints those onto frames.
"""

from .compositor import (
    DrawKind,
    DrawOp,
    FrameComposition,
    Paint,
    RenderedOverlay,
    compose_frame,
    select_subtitle,
)
from .fonts import FontResolver, FontSpec, TextMeasurer, TextMetrics
from .raster import rasterize, rasterize_file

__all__ = [
    "DrawKind",
    "DrawOp",
    "FrameComposition",
    "Paint",
    "RenderedOverlay",
    "compose_frame",
    "select_subtitle",
    "FontResolver",
    "FontSpec",
    "TextMeasurer",
    "TextMetrics",
    "rasterize",
    "rasterize_file",
]
