"""
Color parsing shared by validation, the compositor and the filter graph.

Accepted forms: #RGB, #RRGGBB, rgb(r, g, b), rgba(r, g, b, a).
"""

import re
from typing import NamedTuple


_HEX_RE = re.compile(r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$")
_RGBA_RE = re.compile(
    r"^rgba?\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*(?:,\s*([\d.]+)\s*)?\)$"
)


class RGBA(NamedTuple):
    r: int
    g: int
    b: int
    a: float   # 0-1

    def to_pillow(self, opacity: float = 1.0) -> tuple[int, int, int, int]:
        """RGBA tuple for Pillow with the extra opacity multiplied in."""
        alpha = max(0.0, min(1.0, self.a * opacity))
        return (self.r, self.g, self.b, round(alpha * 255))

    def to_ffmpeg(self, opacity: float = 1.0) -> str:
        """FFmpeg color syntax, e.g. 0xFFCC00@0.70."""
        alpha = max(0.0, min(1.0, self.a * opacity))
        return f"0x{self.r:02X}{self.g:02X}{self.b:02X}@{alpha:.2f}"


def is_valid_color(value: str) -> bool:
    if not isinstance(value, str):
        return False
    return bool(_HEX_RE.match(value) or _RGBA_RE.match(value))


def parse_color(value: str) -> RGBA:
    """
    Parse a CSS-style color string.

    Raises:
        ValueError: if the string is not one of the accepted forms
    """
    m = _HEX_RE.match(value or "")
    if m:
        digits = m.group(1)
        if len(digits) == 3:
            digits = "".join(c * 2 for c in digits)
        return RGBA(
            int(digits[0:2], 16),
            int(digits[2:4], 16),
            int(digits[4:6], 16),
            1.0,
        )

    m = _RGBA_RE.match(value or "")
    if m:
        r, g, b = (min(255, int(m.group(i))) for i in (1, 2, 3))
        a = float(m.group(4)) if m.group(4) is not None else 1.0
        return RGBA(r, g, b, max(0.0, min(1.0, a)))

    raise ValueError(f"Invalid color: {value!r}")
