"""Core media utilities: probing, FFmpeg invocation and cancellation."""

from .cancel import CancelToken
from .ffmpeg_utils import (
    FFmpegProcessor,
    get_video_encoding_args,
    mime_type_for,
    run_ffmpeg,
)
from .video_info import VideoInfo, get_video_info

__all__ = [
    "CancelToken",
    "FFmpegProcessor",
    "VideoInfo",
    "get_video_encoding_args",
    "get_video_info",
    "mime_type_for",
    "run_ffmpeg",
]
