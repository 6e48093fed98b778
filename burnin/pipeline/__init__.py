"""
Pipeline Module

Export orchestration: filter construction, the two export strategies and
in-process job tracking.
"""

from .exporter import (
    BaseExporter,
    FilterGraphExporter,
    FrameRasterExporter,
    export_video,
    trim_clip,
    validate_export,
)
from .filtergraph import build_filter_chain, drawtext_filter, escape_filter_value, subtitles_filter
from .jobs import JobStore, ProgressChannel

__all__ = [
    "BaseExporter",
    "FilterGraphExporter",
    "FrameRasterExporter",
    "export_video",
    "trim_clip",
    "validate_export",
    "build_filter_chain",
    "drawtext_filter",
    "escape_filter_value",
    "subtitles_filter",
    "JobStore",
    "ProgressChannel",
]
