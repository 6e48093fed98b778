"""
FFmpeg filter construction for the single-pass export.

Each visible overlay becomes one drawtext filter; subtitles are burned with
the libass `subtitles` filter from an SRT file. The builders are pure so the
same timeline always produces the same filter strings.
"""

from pathlib import Path
from typing import Iterable, Optional

from loguru import logger

from ..compose.compositor import BACKGROUND_PADDING, font_spec_for
from ..compose.fonts import FALLBACK_FONT_FILES, FontResolver
from ..models import TextOverlay
from ..overlays.colors import parse_color
from ..overlays.geometry import to_pixels


SUBTITLE_FORCE_STYLE = "FontSize=24,PrimaryColour=&Hffffff,OutlineColour=&H000000,Outline=2"

# Characters special to option parsing, then to filtergraph parsing
_OPTION_SPECIAL = "\\':"
_GRAPH_SPECIAL = "\\'[],;"


def _escape(value: str, special: str) -> str:
    # backslash leads both sets and must be escaped first
    for ch in special:
        value = value.replace(ch, "\\" + ch)
    return value


def escape_filter_value(value: str) -> str:
    """Escape a string so it survives both levels of filtergraph parsing unquoted."""
    return _escape(_escape(value, _OPTION_SPECIAL), _GRAPH_SPECIAL)


def _num(value: float) -> str:
    """Compact, stable number formatting for filter expressions."""
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def _x_expression(px: int, align: str) -> str:
    if align == "center":
        return f"{px}-text_w/2"
    if align == "right":
        return f"{px}-text_w"
    return str(px)


def _font_file(overlay: TextOverlay, resolver: FontResolver) -> Optional[Path]:
    path = resolver.find(font_spec_for(overlay))
    if path is not None:
        return path
    for candidate in FALLBACK_FONT_FILES:
        if Path(candidate).is_file():
            return Path(candidate)
    return None


def drawtext_filter(
    overlay: TextOverlay,
    width: int,
    height: int,
    resolver: Optional[FontResolver] = None,
) -> str:
    """
    drawtext for one overlay, in absolute pixels of a `width`x`height` frame.

    The anchor is the top of the text; horizontal alignment is relative to
    it, matching the frame compositor.
    """
    resolver = resolver or FontResolver()
    style = overlay.style
    anchor = to_pixels(overlay.position, width, height)
    px = round(anchor.x)
    py = round(anchor.y)

    parts = [
        f"text={escape_filter_value(overlay.text)}",
        "expansion=none",
        f"x={_x_expression(px, style.text_align)}",
        f"y={py}",
        f"fontsize={max(1, round(style.font_size))}",
        f"fontcolor={parse_color(style.color).to_ffmpeg(style.opacity)}",
    ]

    font_file = _font_file(overlay, resolver)
    if font_file is not None:
        parts.append(f"fontfile={escape_filter_value(font_file.as_posix())}")

    if style.background_color:
        parts += [
            "box=1",
            f"boxcolor={parse_color(style.background_color).to_ffmpeg(style.opacity)}",
            f"boxborderw={BACKGROUND_PADDING}",
        ]

    if style.border_color and style.border_width and style.border_width > 0:
        parts += [
            f"borderw={max(1, round(style.border_width))}",
            f"bordercolor={parse_color(style.border_color).to_ffmpeg(style.opacity)}",
        ]

    if style.text_shadow:
        shadow = style.text_shadow
        parts += [
            f"shadowx={round(shadow.offset_x)}",
            f"shadowy={round(shadow.offset_y)}",
            f"shadowcolor={parse_color(shadow.color).to_ffmpeg(style.opacity)}",
        ]

    parts.append(
        f"enable=between(t\\,{_num(overlay.timing.start)}\\,{_num(overlay.timing.end)})"
    )
    return "drawtext=" + ":".join(parts)


def subtitles_filter(srt_path: Path) -> str:
    """libass subtitles filter with the fixed burn-in style."""
    return (
        f"subtitles=filename={escape_filter_value(Path(srt_path).as_posix())}"
        f":force_style={escape_filter_value(SUBTITLE_FORCE_STYLE)}"
    )


def build_filter_chain(
    overlays: Iterable[TextOverlay],
    width: int,
    height: int,
    srt_path: Optional[Path] = None,
    resolver: Optional[FontResolver] = None,
) -> list[str]:
    """
    Ordered video filters for one export.

    Visible overlays are drawn lowest z_index first (ties keep timeline
    order); subtitles go last so they sit on top, as in the compositor.
    """
    resolver = resolver or FontResolver()
    visible = sorted((o for o in overlays if o.visible), key=lambda o: o.z_index)

    filters = [drawtext_filter(o, width, height, resolver) for o in visible]
    if srt_path is not None:
        filters.append(subtitles_filter(srt_path))

    logger.debug(f"Filter chain: {','.join(filters)}")
    return filters
