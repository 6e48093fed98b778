"""
Core data models for the burn-in engine.
These define timed text overlays, subtitle tracks, trims and export jobs.

Models are frozen: every edit goes through model_copy() and produces a new
value. Range rules are checked by burnin.overlays.validation rather than at
construction so that a caller always gets the complete list of problems.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Literal, Optional
from enum import Enum
from pathlib import Path


FontWeight = Literal[
    "normal", "bold", "100", "200", "300", "400", "500", "600", "700", "800", "900"
]
FontStyle = Literal["normal", "italic"]
TextAlign = Literal["left", "center", "right"]
Quality = Literal["low", "medium", "high"]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class Point(_Frozen):
    """A pixel-space point (screen or video)."""
    x: float
    y: float


class Size(_Frozen):
    width: float
    height: float


class Box(_Frozen):
    """Axis-aligned rectangle; x/y is the top-left corner."""
    x: float
    y: float
    width: float
    height: float

    def contains(self, point: Point) -> bool:
        # Closed rectangle: edges count as inside
        return (
            self.x <= point.x <= self.x + self.width
            and self.y <= point.y <= self.y + self.height
        )


# ============================================================================
# STYLE
# ============================================================================

class TextShadow(_Frozen):
    offset_x: float = 1
    offset_y: float = 1
    blur: float = 2
    color: str = "rgba(0, 0, 0, 0.8)"


class TextStyle(_Frozen):
    """Visual style of an overlay's text."""
    font_size: float = 24                       # px, 1-200
    font_family: str = "Arial, sans-serif"
    color: str = "#ffffff"
    background_color: Optional[str] = "rgba(0, 0, 0, 0.7)"
    border_color: Optional[str] = "#000000"
    border_width: float = 0                     # px, 0-20
    opacity: float = 1.0                        # 0-1
    font_weight: FontWeight = "bold"
    font_style: FontStyle = "normal"
    text_align: TextAlign = "center"
    text_shadow: Optional[TextShadow] = Field(default_factory=TextShadow)


DEFAULT_TEXT_STYLE = TextStyle()


class ShadowPatch(_Frozen):
    offset_x: Optional[float] = None
    offset_y: Optional[float] = None
    blur: Optional[float] = None
    color: Optional[str] = None


class StylePatch(_Frozen):
    """
    Partial style update. Only fields that were explicitly set are applied,
    so a patch can also clear an optional field by setting it to None.
    """
    font_size: Optional[float] = None
    font_family: Optional[str] = None
    color: Optional[str] = None
    background_color: Optional[str] = None
    border_color: Optional[str] = None
    border_width: Optional[float] = None
    opacity: Optional[float] = None
    font_weight: Optional[FontWeight] = None
    font_style: Optional[FontStyle] = None
    text_align: Optional[TextAlign] = None
    text_shadow: Optional[ShadowPatch] = None


# ============================================================================
# OVERLAYS & SUBTITLES
# ============================================================================

class Position(_Frozen):
    """Normalized position: (0, 0) is the top-left of the video frame."""
    x: float = 0.5
    y: float = 0.5


class Timing(_Frozen):
    """Visibility window in seconds, closed on both ends."""
    start: float = 0.0
    end: float = 5.0

    @property
    def duration(self) -> float:
        return self.end - self.start


class TextOverlay(_Frozen):
    """A timed, positioned, styled piece of text drawn over the video."""
    id: str
    text: str
    position: Position = Field(default_factory=Position)
    timing: Timing = Field(default_factory=Timing)
    style: TextStyle = Field(default_factory=TextStyle)
    z_index: int = 1
    visible: bool = True


class SubtitleSegment(_Frozen):
    start: float
    end: float
    text: str
    confidence: Optional[float] = None   # passed through from transcription


class SubtitleTrack(_Frozen):
    id: str
    segments: list[SubtitleSegment] = Field(default_factory=list)


class TrimBounds(_Frozen):
    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start


class ValidationResult(_Frozen):
    valid: bool
    errors: list[str] = Field(default_factory=list)


class BatchValidation(_Frozen):
    valid: bool
    overlay_errors: dict[str, list[str]] = Field(default_factory=dict)


# ============================================================================
# EXPORT
# ============================================================================

class OutputFormat(str, Enum):
    MP4 = "mp4"
    WEBM = "webm"


class ExportStrategy(str, Enum):
    FILTERGRAPH = "filtergraph"   # single ffmpeg pass with drawtext/subtitles
    RASTER = "raster"             # extract frames, composite, re-encode


class ExportStage(str, Enum):
    """Stage reported on the progress channel."""
    INITIALIZING = "initializing"
    EXTRACTING_METADATA = "extracting_metadata"
    PREPARING_SUBTITLES = "preparing_subtitles"
    PREPARING_OVERLAYS = "preparing_overlays"
    EXTRACTING_FRAMES = "extracting_frames"
    EXTRACTING_AUDIO = "extracting_audio"
    COMPOSITING_FRAMES = "compositing_frames"
    PROCESSING_VIDEO = "processing_video"
    ENCODING = "encoding"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ERROR = "error"


class ProgressUpdate(_Frozen):
    job_id: str
    stage: ExportStage
    percent: float = 0.0    # 0-100, non-decreasing per job
    message: str = ""


class ExportRequest(_Frozen):
    """Everything an exporter needs for one job."""
    source: Path
    output: Path
    trim: Optional[TrimBounds] = None
    subtitle_tracks: list[SubtitleTrack] = Field(default_factory=list)
    overlays: list[TextOverlay] = Field(default_factory=list)
    # Plain strings so unsupported values reach validation instead of failing parsing
    output_format: str = OutputFormat.MP4.value
    quality: str = "medium"
    strategy: ExportStrategy = ExportStrategy.FILTERGRAPH
    fps: Optional[float] = None     # raster strategy; settings.default_fps when None
    workers: Optional[int] = None   # raster strategy frame threads; settings.frame_workers when None

    @property
    def subtitle_segments(self) -> list[SubtitleSegment]:
        """All segments of all tracks in timeline order."""
        return [seg for track in self.subtitle_tracks for seg in track.segments]


class ExportResult(_Frozen):
    output: Path
    strategy: ExportStrategy
    processing_time: float
    file_size: int
    duration: float                 # output duration (trim length, or source duration)
    width: int
    height: int
    output_format: OutputFormat
    frames_rendered: Optional[int] = None
