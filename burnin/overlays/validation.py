"""
Validation of overlays, subtitle tracks and trim windows.

Every validator collects all violated rules instead of stopping at the
first one, so a UI can show the complete list at once.
"""

from typing import Optional

from ..models import (
    BatchValidation,
    SubtitleTrack,
    TextOverlay,
    TrimBounds,
    ValidationResult,
)
from .colors import is_valid_color


MAX_TEXT_LENGTH = 500
MIN_DURATION = 0.1
MAX_FONT_SIZE = 200
MAX_BORDER_WIDTH = 20

# Absorbs float error in differences like 5.1 - 5.0
_EPSILON = 1e-9

# Probed durations are rounded; an end this close past them still fits
DURATION_TOLERANCE = 0.001


def validate_overlay(overlay: TextOverlay, media_duration: float) -> ValidationResult:
    errors: list[str] = []

    # Text
    if not overlay.text or not overlay.text.strip():
        errors.append("Text content cannot be empty")
    if overlay.text and len(overlay.text) > MAX_TEXT_LENGTH:
        errors.append(f"Text content cannot exceed {MAX_TEXT_LENGTH} characters")

    # Timing
    timing = overlay.timing
    if timing.start < 0:
        errors.append("Start time cannot be negative")
    if timing.end > media_duration + DURATION_TOLERANCE:
        errors.append("End time cannot exceed video duration")
    if timing.start >= timing.end:
        errors.append("Start time must be less than end time")
    if timing.end - timing.start < MIN_DURATION - _EPSILON:
        errors.append(f"Minimum overlay duration is {MIN_DURATION} seconds")

    # Position (normalized)
    if not 0 <= overlay.position.x <= 1:
        errors.append("X position must be between 0 and 1")
    if not 0 <= overlay.position.y <= 1:
        errors.append("Y position must be between 0 and 1")

    # Style
    style = overlay.style
    if style.font_size <= 0 or style.font_size > MAX_FONT_SIZE:
        errors.append(f"Font size must be between 1 and {MAX_FONT_SIZE} pixels")
    if not 0 <= style.opacity <= 1:
        errors.append("Opacity must be between 0 and 1")
    if not 0 <= style.border_width <= MAX_BORDER_WIDTH:
        errors.append(f"Border width must be between 0 and {MAX_BORDER_WIDTH} pixels")

    if not is_valid_color(style.color):
        errors.append("Text color must be a valid hex color or rgba value")
    if style.background_color and not is_valid_color(style.background_color):
        errors.append("Background color must be a valid hex color or rgba value")
    if style.border_color and not is_valid_color(style.border_color):
        errors.append("Border color must be a valid hex color or rgba value")
    if style.text_shadow and not is_valid_color(style.text_shadow.color):
        errors.append("Shadow color must be a valid hex color or rgba value")

    return ValidationResult(valid=not errors, errors=errors)


def validate_overlays(overlays: list[TextOverlay], media_duration: float) -> BatchValidation:
    """Validate a batch; only failing overlays appear in the error map."""
    overlay_errors: dict[str, list[str]] = {}
    for overlay in overlays:
        result = validate_overlay(overlay, media_duration)
        if not result.valid:
            overlay_errors.setdefault(overlay.id, []).extend(result.errors)
    return BatchValidation(valid=not overlay_errors, overlay_errors=overlay_errors)


def validate_subtitle_tracks(
    tracks: list[SubtitleTrack],
    media_duration: Optional[float] = None,
) -> list[str]:
    """
    Segment rules for every track. With `media_duration`, segments must also
    end inside the clip they will be burned into.
    """
    errors: list[str] = []
    for ti, track in enumerate(tracks):
        if not track.id:
            errors.append(f"Subtitle track {ti} must have an ID")
        for si, seg in enumerate(track.segments):
            where = f"Subtitle track {ti}, segment {si}"
            if seg.start < 0:
                errors.append(f"{where}: start time must be non-negative")
            if seg.end <= seg.start:
                errors.append(f"{where}: end time must be greater than start time")
            if media_duration is not None and seg.end > media_duration + DURATION_TOLERANCE:
                errors.append(f"{where}: end time cannot exceed video duration")
            if not seg.text or not seg.text.strip():
                errors.append(f"{where}: text cannot be empty")
    return errors


def validate_trim(trim: TrimBounds, media_duration: Optional[float] = None) -> list[str]:
    errors: list[str] = []
    if trim.start < 0:
        errors.append("Trim start time must be a non-negative number")
    if trim.end <= 0:
        errors.append("Trim end time must be a positive number")
    if trim.start >= trim.end:
        errors.append("Trim start time must be less than end time")
    if trim.end - trim.start < MIN_DURATION - _EPSILON:
        errors.append(f"Minimum clip duration is {MIN_DURATION} seconds")
    if media_duration is not None and trim.end > media_duration:
        errors.append(f"Trim end time cannot exceed video duration of {media_duration} seconds")
    return errors
