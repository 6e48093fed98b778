"""
Interactive preview projection.

A preview surface shows the video scaled uniformly and centred
(letterboxed). This module maps pointer positions between surface space and
video pixel space, hit-tests the boxes the compositor produced, and turns
drags into new normalized overlay positions.
"""

import dataclasses
from dataclasses import dataclass
from typing import Iterable, Optional

from PIL import Image
from loguru import logger

from ..compose.compositor import DrawOp, FrameComposition, RenderedOverlay, compose_frame
from ..compose.fonts import TextMeasurer
from ..compose.raster import rasterize
from ..models import Box, Point, Size, SubtitleSegment, TextOverlay
from ..overlays.geometry import to_normalized, to_pixels
from ..overlays.timeline import with_position


@dataclass(frozen=True)
class Viewport:
    """Uniform scale and centring offsets of the video inside a surface."""
    scale: float
    offset_x: float
    offset_y: float


def letterbox(surface: Size, video: Size) -> Viewport:
    scale = min(surface.width / video.width, surface.height / video.height)
    return Viewport(
        scale=scale,
        offset_x=(surface.width - video.width * scale) / 2,
        offset_y=(surface.height - video.height * scale) / 2,
    )


def project_to_video(point: Point, surface: Size, video: Size) -> Point:
    """Surface point → video pixel point (may fall outside the frame in the bars)."""
    vp = letterbox(surface, video)
    return Point(
        x=(point.x - vp.offset_x) / vp.scale,
        y=(point.y - vp.offset_y) / vp.scale,
    )


def project_to_screen(point: Point, surface: Size, video: Size) -> Point:
    vp = letterbox(surface, video)
    return Point(
        x=point.x * vp.scale + vp.offset_x,
        y=point.y * vp.scale + vp.offset_y,
    )


def box_to_screen(box: Box, surface: Size, video: Size) -> Box:
    vp = letterbox(surface, video)
    return Box(
        x=box.x * vp.scale + vp.offset_x,
        y=box.y * vp.scale + vp.offset_y,
        width=box.width * vp.scale,
        height=box.height * vp.scale,
    )


def hit_test(point: Point, rendered: Iterable[RenderedOverlay]) -> Optional[TextOverlay]:
    """
    Topmost overlay whose box contains `point`, or None.

    `rendered` is in draw order, so it is searched back to front. Box and
    point must be in the same space; edges count as inside.
    """
    for item in reversed(list(rendered)):
        if item.bounds.contains(point):
            return item.overlay
    return None


class DragSession:
    """
    Tracks one pointer drag of an overlay.

    Usage:
        session = DragSession.begin(overlay, pointer, surface, video)
        moved = session.move(new_pointer)   # overlay with new position
    """

    def __init__(self, overlay: TextOverlay, grab_offset: Point, surface: Size, video: Size):
        self.overlay = overlay
        self.grab_offset = grab_offset
        self.surface = surface
        self.video = video

    @classmethod
    def begin(cls, overlay: TextOverlay, pointer: Point, surface: Size, video: Size) -> "DragSession":
        pointer_video = project_to_video(pointer, surface, video)
        anchor = to_pixels(overlay.position, video.width, video.height)
        offset = Point(x=pointer_video.x - anchor.x, y=pointer_video.y - anchor.y)
        return cls(overlay, offset, surface, video)

    def move(self, pointer: Point) -> TextOverlay:
        """Overlay moved so the grab point follows the pointer, clamped to the frame."""
        pointer_video = project_to_video(pointer, self.surface, self.video)
        anchor = Point(
            x=pointer_video.x - self.grab_offset.x,
            y=pointer_video.y - self.grab_offset.y,
        )
        position = to_normalized(anchor, self.video.width, self.video.height)
        return with_position(self.overlay, position)


class PreviewSurface:
    """
    Live preview state for one source video.

    Owns a text measurer and the last composition so pointer events can be
    hit-tested against exactly what was drawn.
    """

    def __init__(self, surface: Size, video: Size, measurer: Optional[TextMeasurer] = None):
        self.surface = surface
        self.video = video
        self.measurer = measurer or TextMeasurer()
        self.last: Optional[FrameComposition] = None

    @property
    def viewport(self) -> Viewport:
        return letterbox(self.surface, self.video)

    def resize(self, surface: Size):
        self.surface = surface
        self.last = None

    def switch_source(self, video: Size):
        """New source video: forget the last frame and drop cached measurements."""
        self.video = video
        self.last = None
        self.measurer.clear()
        logger.debug(f"Preview switched to {video.width:.0f}x{video.height:.0f}")

    def render(
        self,
        t: float,
        overlays: Iterable[TextOverlay],
        subtitles: Iterable[SubtitleSegment] = (),
    ) -> list[DrawOp]:
        """Compose at the viewport scale; returned ops are in surface coordinates."""
        vp = self.viewport
        self.last = compose_frame(
            self.video.width,
            self.video.height,
            t,
            overlays,
            subtitles,
            scale_factor=vp.scale,
            measurer=self.measurer,
        )
        return [
            dataclasses.replace(op, x=op.x + vp.offset_x, y=op.y + vp.offset_y)
            for op in self.last.ops
        ]

    def render_image(
        self,
        t: float,
        overlays: Iterable[TextOverlay],
        subtitles: Iterable[SubtitleSegment] = (),
        frame: Optional[Image.Image] = None,
    ) -> Image.Image:
        """Surface-sized RGBA snapshot: letterboxed frame (black if None) plus overlays."""
        vp = self.viewport
        canvas = Image.new(
            "RGBA",
            (round(self.surface.width), round(self.surface.height)),
            (0, 0, 0, 255),
        )
        if frame is not None:
            scaled = frame.convert("RGBA").resize(
                (round(self.video.width * vp.scale), round(self.video.height * vp.scale))
            )
            canvas.alpha_composite(scaled, dest=(round(vp.offset_x), round(vp.offset_y)))
        return rasterize(canvas, self.render(t, overlays, subtitles), self.measurer)

    def screen_boxes(self) -> list[tuple[TextOverlay, Box]]:
        if self.last is None:
            return []
        return [
            (item.overlay, box_to_screen(item.bounds, self.surface, self.video))
            for item in self.last.rendered
        ]

    def pick(self, pointer: Point) -> Optional[TextOverlay]:
        """Overlay under a surface-space pointer in the last rendered frame."""
        if self.last is None:
            return None
        return hit_test(project_to_video(pointer, self.surface, self.video), self.last.rendered)

    def begin_drag(self, pointer: Point) -> Optional[DragSession]:
        overlay = self.pick(pointer)
        if overlay is None:
            return None
        return DragSession.begin(overlay, pointer, self.surface, self.video)
