"""
Interactive Preview Module

Letterbox projection, hit-testing and drag handling for a live preview
surface.
"""

from .projector import (
    DragSession,
    PreviewSurface,
    Viewport,
    box_to_screen,
    hit_test,
    letterbox,
    project_to_screen,
    project_to_video,
)

__all__ = [
    "DragSession",
    "PreviewSurface",
    "Viewport",
    "box_to_screen",
    "hit_test",
    "letterbox",
    "project_to_screen",
    "project_to_video",
]
