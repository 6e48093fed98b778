"""
Overlay Model

Validation, active-time resolution, pure edits and coordinate conversion
for timed text overlays.
"""

from .colors import RGBA, is_valid_color, parse_color
from .geometry import to_normalized, to_pixels
from .timeline import (
    Timeline,
    active_at,
    clone_overlay,
    create_overlay,
    is_active,
    merge_style,
    with_position,
    with_style,
    with_text,
    with_timing,
    with_visibility,
    with_z_index,
)
from .validation import (
    validate_overlay,
    validate_overlays,
    validate_subtitle_tracks,
    validate_trim,
)

__all__ = [
    "RGBA",
    "is_valid_color",
    "parse_color",
    "to_normalized",
    "to_pixels",
    "Timeline",
    "active_at",
    "clone_overlay",
    "create_overlay",
    "is_active",
    "merge_style",
    "with_position",
    "with_style",
    "with_text",
    "with_timing",
    "with_visibility",
    "with_z_index",
    "validate_overlay",
    "validate_overlays",
    "validate_subtitle_tracks",
    "validate_trim",
]
