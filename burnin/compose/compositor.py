"""
Frame Compositor - resolve what is visible at time T and how to draw it.

compose_frame() is a pure function of its inputs (plus the measurement
cache): it returns an ordered list of draw operations and the bounding box
of every rendered overlay. The preview surface and both export strategies
use it, so a frame looks the same everywhere.

Each draw op carries its own immutable Paint. Nothing depends on state left
behind by a previous op.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from ..models import Box, SubtitleSegment, TextOverlay
from ..overlays.geometry import to_pixels
from ..overlays.timeline import active_at
from .fonts import FontSpec, TextMeasurer


BACKGROUND_PADDING = 4          # px at scale 1.0

# Baseline-to-baseline distance for multi-line text, in font sizes
LINE_HEIGHT = 1.2

SUBTITLE_MIN_FONT_SIZE = 16
SUBTITLE_WIDTH_RATIO = 0.03
SUBTITLE_BOTTOM_MARGIN = 20     # px at scale 1.0
SUBTITLE_STROKE_WIDTH = 2
SUBTITLE_FONT_FAMILY = "Arial, sans-serif"
SUBTITLE_FILL = "#ffffff"
SUBTITLE_STROKE = "#000000"


class DrawKind(str, Enum):
    FILL_RECT = "fill_rect"
    SHADOW_TEXT = "shadow_text"
    STROKE_TEXT = "stroke_text"
    FILL_TEXT = "fill_text"


@dataclass(frozen=True)
class Paint:
    """Everything a draw primitive needs besides geometry."""
    color: str
    opacity: float = 1.0
    font: Optional[FontSpec] = None
    line_width: float = 0.0     # stroke ops
    blur: float = 0.0           # shadow ops


@dataclass(frozen=True)
class DrawOp:
    """
    One draw instruction in compositing space (video pixels × scale factor).

    Text ops are positioned by the top-left corner of their text box and
    cover every line of `text`; `align` places shorter lines inside that box.
    Rect ops use width/height.
    """
    kind: DrawKind
    x: float
    y: float
    paint: Paint
    text: str = ""
    width: float = 0.0
    height: float = 0.0
    align: str = "left"


@dataclass(frozen=True)
class RenderedOverlay:
    overlay: TextOverlay
    bounds: Box                 # video pixel space


@dataclass(frozen=True)
class FrameComposition:
    ops: tuple[DrawOp, ...]
    rendered: tuple[RenderedOverlay, ...]
    subtitle: Optional[SubtitleSegment] = None
    subtitle_bounds: Optional[Box] = None   # video pixel space

    @property
    def empty(self) -> bool:
        return not self.ops


def font_spec_for(overlay: TextOverlay, scale_factor: float = 1.0) -> FontSpec:
    style = overlay.style
    return FontSpec(
        family=style.font_family,
        size=max(1, round(style.font_size * scale_factor)),
        weight=style.font_weight or "normal",
        style=style.font_style or "normal",
    )


def line_step(font: FontSpec) -> float:
    return font.size * LINE_HEIGHT


def text_lines(text: str) -> list[str]:
    return text.splitlines() or [""]


def measure_block(text: str, font: FontSpec, measurer: TextMeasurer) -> tuple[float, float]:
    """Width of the widest line and height of all lines of `text`."""
    lines = text_lines(text)
    width = max(measurer.measure(line, font).width for line in lines)
    height = font.size + line_step(font) * (len(lines) - 1)
    return width, height


def _anchor_left(x: float, width: float, align: str) -> float:
    if align == "center":
        return x - width / 2
    if align == "right":
        return x - width
    return x


def compose_overlay(
    overlay: TextOverlay,
    frame_width: float,
    frame_height: float,
    measurer: TextMeasurer,
    scale_factor: float = 1.0,
) -> tuple[list[DrawOp], Box]:
    """
    Draw ops for one overlay (assumed active) and its video-space bounds.

    Order: background, shadow, stroke, fill.
    """
    style = overlay.style
    anchor = to_pixels(overlay.position, frame_width, frame_height)
    x = anchor.x * scale_factor
    y = anchor.y * scale_factor

    font = font_spec_for(overlay, scale_factor)
    text_width, text_height = measure_block(overlay.text, font, measurer)
    left = _anchor_left(x, text_width, style.text_align)

    opacity = style.opacity
    ops: list[DrawOp] = []

    if style.background_color:
        pad = BACKGROUND_PADDING * scale_factor
        ops.append(DrawOp(
            kind=DrawKind.FILL_RECT,
            x=left - pad,
            y=y - pad,
            width=text_width + pad * 2,
            height=text_height + pad * 2,
            paint=Paint(color=style.background_color, opacity=opacity),
        ))

    if style.text_shadow:
        shadow = style.text_shadow
        ops.append(DrawOp(
            kind=DrawKind.SHADOW_TEXT,
            x=left + shadow.offset_x * scale_factor,
            y=y + shadow.offset_y * scale_factor,
            text=overlay.text,
            width=text_width,
            height=text_height,
            align=style.text_align,
            paint=Paint(
                color=shadow.color,
                opacity=opacity,
                font=font,
                blur=shadow.blur * scale_factor,
            ),
        ))

    if style.border_color and style.border_width and style.border_width > 0:
        ops.append(DrawOp(
            kind=DrawKind.STROKE_TEXT,
            x=left,
            y=y,
            text=overlay.text,
            width=text_width,
            height=text_height,
            align=style.text_align,
            paint=Paint(
                color=style.border_color,
                opacity=opacity,
                font=font,
                line_width=style.border_width * scale_factor,
            ),
        ))

    ops.append(DrawOp(
        kind=DrawKind.FILL_TEXT,
        x=left,
        y=y,
        text=overlay.text,
        width=text_width,
        height=text_height,
        align=style.text_align,
        paint=Paint(color=style.color, opacity=opacity, font=font),
    ))

    bounds = Box(
        x=left / scale_factor,
        y=y / scale_factor,
        width=text_width / scale_factor,
        height=text_height / scale_factor,
    )
    return ops, bounds


def select_subtitle(segments: Iterable[SubtitleSegment], t: float) -> Optional[SubtitleSegment]:
    """The segment containing t; if several do, the earliest start (then input order) wins."""
    containing = [s for s in segments if s.start <= t <= s.end]
    if not containing:
        return None
    return min(containing, key=lambda s: s.start)


def subtitle_font_size(frame_width: float) -> float:
    return max(SUBTITLE_MIN_FONT_SIZE, frame_width * SUBTITLE_WIDTH_RATIO)


def compose_subtitle(
    segment: SubtitleSegment,
    frame_width: float,
    frame_height: float,
    measurer: TextMeasurer,
    scale_factor: float = 1.0,
) -> tuple[list[DrawOp], Box]:
    """Fixed subtitle look: bold white text, 2px black outline, bottom centre."""
    font = FontSpec(
        family=SUBTITLE_FONT_FAMILY,
        size=max(1, round(subtitle_font_size(frame_width) * scale_factor)),
        weight="bold",
    )
    text = "\n".join(line.strip() for line in text_lines(segment.text.strip()))
    width, height = measure_block(text, font, measurer)

    center_x = frame_width / 2 * scale_factor
    bottom = (frame_height - SUBTITLE_BOTTOM_MARGIN) * scale_factor
    left = center_x - width / 2
    top = bottom - height

    ops = [
        DrawOp(
            kind=DrawKind.STROKE_TEXT,
            x=left,
            y=top,
            text=text,
            width=width,
            height=height,
            align="center",
            paint=Paint(
                color=SUBTITLE_STROKE,
                font=font,
                line_width=SUBTITLE_STROKE_WIDTH * scale_factor,
            ),
        ),
        DrawOp(
            kind=DrawKind.FILL_TEXT,
            x=left,
            y=top,
            text=text,
            width=width,
            height=height,
            align="center",
            paint=Paint(color=SUBTITLE_FILL, font=font),
        ),
    ]
    bounds = Box(
        x=left / scale_factor,
        y=top / scale_factor,
        width=width / scale_factor,
        height=height / scale_factor,
    )
    return ops, bounds


def compose_frame(
    frame_width: float,
    frame_height: float,
    t: float,
    overlays: Iterable[TextOverlay],
    subtitles: Iterable[SubtitleSegment] = (),
    scale_factor: float = 1.0,
    measurer: Optional[TextMeasurer] = None,
) -> FrameComposition:
    """
    Everything to draw at time `t`.

    Overlays draw in ascending z-order (ties in input order); the active
    subtitle, if any, draws last. Ops are in compositing space (video pixels
    multiplied by `scale_factor`); bounds are in video pixels.
    """
    if scale_factor <= 0:
        raise ValueError(f"scale_factor must be positive, got {scale_factor}")
    measurer = measurer or TextMeasurer()

    ops: list[DrawOp] = []
    rendered: list[RenderedOverlay] = []

    for overlay in active_at(overlays, t):
        overlay_ops, bounds = compose_overlay(
            overlay, frame_width, frame_height, measurer, scale_factor
        )
        ops.extend(overlay_ops)
        rendered.append(RenderedOverlay(overlay=overlay, bounds=bounds))

    subtitle = select_subtitle(subtitles, t)
    subtitle_bounds = None
    if subtitle is not None:
        sub_ops, subtitle_bounds = compose_subtitle(
            subtitle, frame_width, frame_height, measurer, scale_factor
        )
        ops.extend(sub_ops)

    return FrameComposition(
        ops=tuple(ops),
        rendered=tuple(rendered),
        subtitle=subtitle,
        subtitle_bounds=subtitle_bounds,
    )
