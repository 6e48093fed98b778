"""
Video information extraction using ffprobe.

This is the foundation - exports validate every overlay, subtitle and trim
window against the duration and frame size reported here before any
encode work starts.
"""

import subprocess
import json
from pathlib import Path
from dataclasses import dataclass
from typing import Optional

from loguru import logger

from ..config import get_settings
from ..errors import MediaProbeError


@dataclass
class VideoInfo:
    """Complete information about a video file."""
    duration: float          # Total duration in seconds
    width: int               # Frame width
    height: int              # Frame height
    fps: float               # Frames per second
    video_codec: str         # e.g., "h264"
    audio_codec: Optional[str]  # e.g., "aac", None if no audio
    audio_sample_rate: Optional[int]  # e.g., 44100
    bitrate: Optional[int]   # Overall bitrate in bits/sec
    format_name: str         # e.g., "mov,mp4,m4a,3gp,3g2,mj2"
    path: Path

    @property
    def has_audio(self) -> bool:
        return self.audio_codec is not None


def _parse_rate(rate: Optional[str]) -> float:
    """Parse ffprobe frame rates, which can be fractional like "30000/1001"."""
    if not rate:
        return 0.0
    if "/" in rate:
        num, den = rate.split("/", 1)
        try:
            return float(num) / float(den) if float(den) else 0.0
        except ValueError:
            return 0.0
    try:
        return float(rate)
    except ValueError:
        return 0.0


def get_video_info(video_path: str | Path, timeout: Optional[float] = None) -> VideoInfo:
    """
    Extract complete video information using ffprobe.

    Raises:
        MediaProbeError: file missing, ffprobe failing or timing out, or no video stream
    """
    video_path = Path(video_path)
    settings = get_settings()
    timeout = settings.probe_timeout if timeout is None else timeout

    if not video_path.exists():
        raise MediaProbeError(f"Video not found: {video_path}")

    cmd = [
        settings.ffprobe_binary,
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(video_path)
    ]

    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except subprocess.TimeoutExpired:
        raise MediaProbeError(f"ffprobe timed out after {timeout:.0f}s for {video_path}")
    except OSError as e:
        raise MediaProbeError(f"Could not run ffprobe: {e}")

    if result.returncode != 0:
        file_size = video_path.stat().st_size
        raise MediaProbeError(f"ffprobe failed for {video_path} (size={file_size}): {result.stderr}")

    try:
        data = json.loads(result.stdout or "{}")
    except json.JSONDecodeError as e:
        raise MediaProbeError(f"ffprobe returned invalid JSON for {video_path}: {e}")

    format_info = data.get("format", {})

    video_stream = None
    audio_stream = None
    for stream in data.get("streams", []):
        if stream.get("codec_type") == "video" and video_stream is None:
            video_stream = stream
        elif stream.get("codec_type") == "audio" and audio_stream is None:
            audio_stream = stream

    if video_stream is None:
        raise MediaProbeError(f"No video stream found in {video_path}")

    duration = float(format_info.get("duration") or video_stream.get("duration") or 0)
    bitrate = int(format_info["bit_rate"]) if format_info.get("bit_rate") else None

    fps = _parse_rate(video_stream.get("r_frame_rate")) or _parse_rate(video_stream.get("avg_frame_rate")) or 30.0

    audio_codec = None
    audio_sample_rate = None
    if audio_stream:
        audio_codec = audio_stream.get("codec_name")
        audio_sample_rate = int(audio_stream.get("sample_rate", 44100))

    info = VideoInfo(
        duration=duration,
        width=int(video_stream.get("width", 0)),
        height=int(video_stream.get("height", 0)),
        fps=fps,
        video_codec=video_stream.get("codec_name", "unknown"),
        audio_codec=audio_codec,
        audio_sample_rate=audio_sample_rate,
        bitrate=bitrate,
        format_name=format_info.get("format_name", "unknown"),
        path=video_path,
    )
    logger.debug(
        f"Probed {video_path.name}: {info.width}x{info.height} @ {info.fps:.2f}fps, "
        f"{info.duration:.2f}s, audio={info.audio_codec}"
    )
    return info
