"""
burnin - timed text overlays and subtitles burned into video.

Quick start:
    from pathlib import Path
    from burnin import ExportRequest, Timing, TrimBounds, create_overlay, export_video

    overlay = create_overlay("Hello", timing=Timing(start=1, end=4))
    result = export_video(ExportRequest(
        source=Path("input.mp4"),
        output=Path("output.mp4"),
        trim=TrimBounds(start=10, end=30),
        overlays=[overlay],
    ))
"""

__version__ = "0.1.0"

from .config import Settings, get_settings
from .core import CancelToken, VideoInfo, get_video_info, mime_type_for
from .errors import (
    BurnInError,
    EncodeError,
    ExportCancelled,
    MediaProbeError,
    ResourceError,
    ValidationError,
)
from .models import (
    ExportRequest,
    ExportResult,
    ExportStage,
    ExportStrategy,
    OutputFormat,
    Position,
    ProgressUpdate,
    SubtitleSegment,
    SubtitleTrack,
    TextOverlay,
    TextStyle,
    Timing,
    TrimBounds,
)
from .overlays import Timeline, active_at, create_overlay, validate_overlay
from .pipeline import JobStore, ProgressChannel, export_video, trim_clip
from .subtitles import build_srt, parse_srt
from .visual import PreviewSurface

__all__ = [
    "__version__",
    "Settings",
    "get_settings",
    "CancelToken",
    "VideoInfo",
    "get_video_info",
    "mime_type_for",
    "BurnInError",
    "EncodeError",
    "ExportCancelled",
    "MediaProbeError",
    "ResourceError",
    "ValidationError",
    "ExportRequest",
    "ExportResult",
    "ExportStage",
    "ExportStrategy",
    "OutputFormat",
    "Position",
    "ProgressUpdate",
    "SubtitleSegment",
    "SubtitleTrack",
    "TextOverlay",
    "TextStyle",
    "Timing",
    "TrimBounds",
    "Timeline",
    "active_at",
    "create_overlay",
    "validate_overlay",
    "JobStore",
    "ProgressChannel",
    "export_video",
    "trim_clip",
    "build_srt",
    "parse_srt",
    "PreviewSurface",
]
