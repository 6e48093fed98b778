"""
Subtitle Module

SRT generation for the burn-in filter, plus parsing and clip re-timing of
transcription output.
"""

from .srt import (
    build_srt,
    format_srt_time,
    parse_srt,
    parse_srt_time,
    shift_to_clip,
    shift_track_to_clip,
    split_segment,
    write_srt,
)

__all__ = [
    "build_srt",
    "format_srt_time",
    "parse_srt",
    "parse_srt_time",
    "shift_to_clip",
    "shift_track_to_clip",
    "split_segment",
    "write_srt",
]
