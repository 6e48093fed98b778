"""
Rasterize compositor draw ops onto Pillow images.

Each op is drawn on its own transparent layer cropped to the op's
neighbourhood, faded by the paint opacity, optionally blurred, and
alpha-composited onto the frame.
"""

import math
from pathlib import Path
from typing import Iterable

from PIL import Image, ImageDraw, ImageFilter

from ..overlays.colors import parse_color
from .compositor import DrawKind, DrawOp, line_step, text_lines
from .fonts import TextMeasurer


def _composite_clipped(image: Image.Image, layer: Image.Image, left: int, top: int):
    """alpha_composite that tolerates layers hanging off any edge of the image."""
    src_left = max(0, -left)
    src_top = max(0, -top)
    dst_left = max(0, left)
    dst_top = max(0, top)
    width = min(layer.width - src_left, image.width - dst_left)
    height = min(layer.height - src_top, image.height - dst_top)
    if width <= 0 or height <= 0:
        return
    image.alpha_composite(
        layer,
        dest=(dst_left, dst_top),
        source=(src_left, src_top, src_left + width, src_top + height),
    )


def _draw_rect(image: Image.Image, op: DrawOp):
    fill = parse_color(op.paint.color).to_pillow(op.paint.opacity)
    left = math.floor(op.x)
    top = math.floor(op.y)
    w = max(1, round(op.width))
    h = max(1, round(op.height))
    layer = Image.new("RGBA", (w, h), fill)
    _composite_clipped(image, layer, left, top)


def _align_offset(box_width: float, line_width: float, align: str) -> float:
    if align == "center":
        return (box_width - line_width) / 2
    if align == "right":
        return box_width - line_width
    return 0.0


def _draw_text(image: Image.Image, op: DrawOp, measurer: TextMeasurer):
    paint = op.paint
    font = measurer.font(paint.font)
    stroke = max(1, round(paint.line_width / 2)) if op.kind == DrawKind.STROKE_TEXT else 0
    margin = stroke + math.ceil(paint.blur * 3) + math.ceil(paint.font.size * 0.5) + 2

    left = math.floor(op.x) - margin
    top = math.floor(op.y) - margin
    w = math.ceil(op.width) + margin * 2
    h = math.ceil(op.height) + margin * 2
    layer = Image.new("RGBA", (max(1, w), max(1, h)), (0, 0, 0, 0))
    draw = ImageDraw.Draw(layer)

    color = parse_color(paint.color).to_pillow(paint.opacity)
    stroke_args = {"stroke_width": stroke, "stroke_fill": color} if stroke else {}

    # One draw call per line: Pillow rejects "lt" anchors on multiline text
    step = line_step(paint.font)
    for i, line in enumerate(text_lines(op.text)):
        if not line:
            continue
        line_left = op.x + _align_offset(op.width, measurer.measure(line, paint.font).width, op.align)
        origin = (line_left - left, op.y + i * step - top)
        draw.text(origin, line, font=font, fill=color, anchor="lt", **stroke_args)

    if op.kind == DrawKind.SHADOW_TEXT and paint.blur > 0:
        layer = layer.filter(ImageFilter.GaussianBlur(radius=paint.blur))

    _composite_clipped(image, layer, left, top)


def rasterize(image: Image.Image, ops: Iterable[DrawOp], measurer: TextMeasurer) -> Image.Image:
    """
    Paint `ops` in order onto `image` and return it.

    Non-RGBA images are converted first, so use the return value.
    """
    if image.mode != "RGBA":
        image = image.convert("RGBA")

    for op in ops:
        if op.kind == DrawKind.FILL_RECT:
            _draw_rect(image, op)
        else:
            _draw_text(image, op, measurer)

    return image


def rasterize_file(frame_path: Path, ops: list[DrawOp], measurer: TextMeasurer) -> bool:
    """
    Read-modify-write one frame image in place.

    Returns False (and leaves the file untouched) when there is nothing to draw.
    """
    if not ops:
        return False
    frame_path = Path(frame_path)
    with Image.open(frame_path) as src:
        src.load()
        original_mode = src.mode
        image = rasterize(src.convert("RGBA"), ops, measurer)
    if original_mode != "RGBA":
        image = image.convert("RGB")
    image.save(frame_path)
    return True
