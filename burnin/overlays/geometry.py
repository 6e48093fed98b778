"""Conversion between normalized overlay space and video pixels."""

from ..models import Point, Position


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def to_normalized(pixel: Point, width: float, height: float) -> Position:
    """Pixel position → normalized position, clamped to [0, 1]."""
    return Position(x=_clamp01(pixel.x / width), y=_clamp01(pixel.y / height))


def to_pixels(position: Position, width: float, height: float) -> Point:
    """Normalized position → pixel position (0 → 0, 1 → width/height)."""
    return Point(x=position.x * width, y=position.y * height)
