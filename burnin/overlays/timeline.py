"""
Overlay timeline operations.

Pure functions over TextOverlay values plus an immutable Timeline that keeps
an ordered collection of overlays for an editing session. Nothing here
mutates its input: every operation returns a new value and leaves unrelated
fields untouched.
"""

import random
import string
import time
from typing import Iterable, Optional

from ..models import (
    BatchValidation,
    Position,
    StylePatch,
    TextOverlay,
    TextShadow,
    TextStyle,
    Timing,
)
from .validation import validate_overlays


# ============================================================================
# ACTIVE-TIME RESOLUTION
# ============================================================================

def is_active(overlay: TextOverlay, t: float) -> bool:
    """Visible and start <= t <= end (closed interval)."""
    return overlay.visible and overlay.timing.start <= t <= overlay.timing.end


def active_at(overlays: Iterable[TextOverlay], t: float) -> list[TextOverlay]:
    """Active overlays sorted by z-index; sorted() is stable so ties keep input order."""
    return sorted(
        (o for o in overlays if is_active(o, t)),
        key=lambda o: o.z_index,
    )


# ============================================================================
# PURE MUTATORS
# ============================================================================

def merge_style(style: TextStyle, patch: StylePatch) -> TextStyle:
    """Apply only the fields present in `patch`; the shadow is merged field by field."""
    updates = {}
    for name in patch.model_fields_set:
        value = getattr(patch, name)
        if name == "text_shadow" and value is not None:
            base = style.text_shadow or TextShadow()
            value = base.model_copy(
                update={k: getattr(value, k) for k in value.model_fields_set}
            )
        updates[name] = value
    return style.model_copy(update=updates)


def with_position(overlay: TextOverlay, position: Position) -> TextOverlay:
    return overlay.model_copy(update={"position": position})


def with_timing(overlay: TextOverlay, timing: Timing) -> TextOverlay:
    return overlay.model_copy(update={"timing": timing})


def with_style(overlay: TextOverlay, patch: StylePatch) -> TextOverlay:
    return overlay.model_copy(update={"style": merge_style(overlay.style, patch)})


def with_text(overlay: TextOverlay, text: str) -> TextOverlay:
    return overlay.model_copy(update={"text": text})


def with_visibility(overlay: TextOverlay, visible: bool) -> TextOverlay:
    return overlay.model_copy(update={"visible": visible})


def with_z_index(overlay: TextOverlay, z_index: int) -> TextOverlay:
    return overlay.model_copy(update={"z_index": z_index})


# ============================================================================
# FACTORIES
# ============================================================================

def new_overlay_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"overlay-{int(time.time() * 1000)}-{suffix}"


def create_overlay(
    text: str = "New Text Overlay",
    position: Optional[Position] = None,
    timing: Optional[Timing] = None,
    style: Optional[StylePatch] = None,
) -> TextOverlay:
    """New overlay on the default style, z-index 1, visible."""
    base_style = TextStyle()
    if style is not None:
        base_style = merge_style(base_style, style)
    return TextOverlay(
        id=new_overlay_id(),
        text=text,
        position=position or Position(x=0.5, y=0.5),
        timing=timing or Timing(start=0, end=5),
        style=base_style,
    )


def clone_overlay(overlay: TextOverlay) -> TextOverlay:
    """Same content under a fresh id."""
    return overlay.model_copy(update={"id": new_overlay_id()})


# ============================================================================
# TIMELINE
# ============================================================================

class Timeline:
    """
    Ordered, immutable collection of overlays for an editing session.

    List order is the stacking tie-breaker for equal z-index, so move/reorder
    operations change what draws on top when z-indexes match.

    Usage:
        timeline = Timeline()
        timeline = timeline.add(create_overlay("Hello"))
        visible = timeline.active_at(3.0)
    """

    __slots__ = ("_overlays",)

    def __init__(self, overlays: Iterable[TextOverlay] = ()):
        self._overlays = tuple(overlays)

    @property
    def overlays(self) -> list[TextOverlay]:
        return list(self._overlays)

    def __len__(self) -> int:
        return len(self._overlays)

    def __iter__(self):
        return iter(self._overlays)

    def __eq__(self, other) -> bool:
        return isinstance(other, Timeline) and self._overlays == other._overlays

    def __repr__(self) -> str:
        return f"Timeline({len(self._overlays)} overlays)"

    def _index(self, overlay_id: str) -> int:
        for i, overlay in enumerate(self._overlays):
            if overlay.id == overlay_id:
                return i
        return -1

    def get(self, overlay_id: str) -> Optional[TextOverlay]:
        i = self._index(overlay_id)
        return self._overlays[i] if i >= 0 else None

    def add(self, overlay: TextOverlay) -> "Timeline":
        return Timeline(self._overlays + (overlay,))

    def remove(self, overlay_id: str) -> "Timeline":
        return Timeline(o for o in self._overlays if o.id != overlay_id)

    def clear(self) -> "Timeline":
        return Timeline()

    def update(self, overlay_id: str, fn) -> "Timeline":
        """Replace the overlay with `fn(overlay)`; unknown ids leave the timeline unchanged."""
        return Timeline(fn(o) if o.id == overlay_id else o for o in self._overlays)

    def duplicate(self, overlay_id: str) -> tuple["Timeline", Optional[str]]:
        """
        Append a copy nudged 5% right/down (clamped) with " (Copy)" appended.

        Returns the new timeline and the copy's id, or (self, None) when the
        id is unknown.
        """
        source = self.get(overlay_id)
        if source is None:
            return self, None
        copy = clone_overlay(source).model_copy(update={
            "position": Position(
                x=min(1.0, source.position.x + 0.05),
                y=min(1.0, source.position.y + 0.05),
            ),
            "text": f"{source.text} (Copy)",
        })
        return self.add(copy), copy.id

    def move_up(self, overlay_id: str) -> "Timeline":
        i = self._index(overlay_id)
        if i <= 0:
            return self
        return self.reorder(i, i - 1)

    def move_down(self, overlay_id: str) -> "Timeline":
        i = self._index(overlay_id)
        if i < 0 or i >= len(self._overlays) - 1:
            return self
        return self.reorder(i, i + 1)

    def reorder(self, from_index: int, to_index: int) -> "Timeline":
        n = len(self._overlays)
        if not (0 <= from_index < n and 0 <= to_index < n):
            return self
        items = list(self._overlays)
        item = items.pop(from_index)
        items.insert(to_index, item)
        return Timeline(items)

    def active_at(self, t: float) -> list[TextOverlay]:
        return active_at(self._overlays, t)

    def is_active(self, overlay_id: str, t: float) -> bool:
        overlay = self.get(overlay_id)
        return overlay is not None and is_active(overlay, t)

    def validate(self, media_duration: float) -> BatchValidation:
        return validate_overlays(list(self._overlays), media_duration)
