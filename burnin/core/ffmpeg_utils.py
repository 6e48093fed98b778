"""
FFmpeg utilities for video processing.

All encode work goes through here. Every run is bounded by a timeout,
can be cancelled mid-encode, and reports progress parsed from FFmpeg's
`-progress` output.
"""

import subprocess
import tempfile
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from loguru import logger

from ..config import get_settings
from ..errors import EncodeError, ExportCancelled
from .cancel import CancelToken


# Per-format encoder settings. CRF is lower-is-better; quality names map onto it.
ENCODING_PRESETS = {
    "mp4": {
        "video": ["-c:v", "libx264", "-preset", "fast", "-pix_fmt", "yuv420p"],
        "audio": ["-c:a", "aac"],
        "container": ["-movflags", "+faststart"],
        "muxer": "mp4",
        "crf": {"low": 28, "medium": 23, "high": 18},
        "copyable_audio": {"aac", "mp3", "alac"},
    },
    "webm": {
        "video": ["-c:v", "libvpx-vp9", "-b:v", "0", "-pix_fmt", "yuv420p"],
        "audio": ["-c:a", "libopus"],
        "container": [],
        "muxer": "webm",
        "crf": {"low": 35, "medium": 30, "high": 25},
        "copyable_audio": {"opus", "vorbis"},
    },
}

MIME_TYPES = {
    "mp4": "video/mp4",
    "webm": "video/webm",
}

STDERR_TAIL_CHARS = 2000


def mime_type_for(output_format: str) -> str:
    """Content type of an exported file, e.g. "video/mp4"."""
    try:
        return MIME_TYPES[output_format]
    except KeyError:
        raise ValueError(f"Unsupported output format: {output_format}")


def get_video_encoding_args(output_format: str = "mp4", quality: str = "medium") -> list[str]:
    """
    Encoder arguments for an output format and quality preset.

    Args:
        output_format: "mp4" (H.264/AAC) or "webm" (VP9/Opus)
        quality: "low", "medium" or "high"

    Returns:
        FFmpeg arguments for video and audio encoding plus container flags
    """
    preset = ENCODING_PRESETS.get(output_format)
    if preset is None:
        raise ValueError(f"Unsupported output format: {output_format}")
    if quality not in preset["crf"]:
        raise ValueError(f"Unsupported quality: {quality}")

    return [
        *preset["video"],
        "-crf", str(preset["crf"][quality]),
        *preset["audio"],
        *preset["container"],
        "-f", preset["muxer"],
    ]


def audio_args_for_mux(output_format: str, audio_codec: Optional[str]) -> list[str]:
    """Copy the audio stream when the container accepts its codec, else re-encode it."""
    preset = ENCODING_PRESETS[output_format]
    if audio_codec in preset["copyable_audio"]:
        return ["-c:a", "copy"]
    return list(preset["audio"])


def _parse_progress_seconds(line: str) -> Optional[float]:
    # out_time_ms is microseconds too, despite the name
    for key in ("out_time_us=", "out_time_ms="):
        if line.startswith(key):
            value = line[len(key):]
            try:
                return max(0.0, int(value) / 1_000_000)
            except ValueError:
                return None
    return None


class _Watchdog(threading.Thread):
    """Kills an FFmpeg process on timeout or cancellation."""

    POLL_INTERVAL = 0.1

    def __init__(self, process: subprocess.Popen, timeout: float, cancel: Optional[CancelToken]):
        super().__init__(daemon=True)
        self.process = process
        self.deadline = time.monotonic() + timeout
        self.cancel = cancel
        self.timed_out = False
        self.cancelled = False
        self._done = threading.Event()

    def run(self):
        while not self._done.wait(self.POLL_INTERVAL):
            if self.process.poll() is not None:
                return
            if self.cancel is not None and self.cancel.cancelled:
                self.cancelled = True
                self.process.kill()
                return
            if time.monotonic() > self.deadline:
                self.timed_out = True
                self.process.kill()
                return

    def stop(self):
        self._done.set()


def run_ffmpeg(
    args: list[str],
    description: str = "FFmpeg operation",
    timeout: Optional[float] = None,
    cancel: Optional[CancelToken] = None,
    on_progress: Optional[Callable[[float], None]] = None,
) -> str:
    """
    Run an FFmpeg command with proper error handling.

    Args:
        args: Arguments after the global flags
        description: Used in log lines and error messages
        timeout: Seconds before the process is killed (default from settings)
        cancel: Token that kills the process when set
        on_progress: Called with the output timestamp in seconds as encoding advances

    Returns:
        Non-progress stdout on success

    Raises:
        EncodeError: FFmpeg missing, failed or timed out
        ExportCancelled: cancel token was set
    """
    settings = get_settings()
    timeout = settings.ffmpeg_timeout if timeout is None else timeout

    cmd = [settings.ffmpeg_binary, "-y", "-hide_banner", "-nostdin", "-nostats", "-progress", "pipe:1"] + args

    if cancel is not None:
        cancel.raise_if_cancelled(description)

    logger.debug(f"Running: {' '.join(cmd)}")

    stdout_lines = []
    with tempfile.TemporaryFile() as stderr_file:
        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=stderr_file,
                stdin=subprocess.DEVNULL,
                text=True,
            )
        except OSError as e:
            raise EncodeError(f"{description} could not start FFmpeg: {e}")

        watchdog = _Watchdog(process, timeout, cancel)
        watchdog.start()
        try:
            for raw in process.stdout:
                line = raw.strip()
                seconds = _parse_progress_seconds(line)
                if seconds is not None:
                    if on_progress is not None:
                        on_progress(seconds)
                elif "=" not in line:
                    stdout_lines.append(line)
            process.wait()
        finally:
            watchdog.stop()
            if process.poll() is None:
                process.kill()
                process.wait()
            process.stdout.close()

        stderr_file.seek(0)
        stderr = stderr_file.read().decode("utf-8", errors="replace")

    if watchdog.cancelled:
        logger.info(f"{description} cancelled")
        raise ExportCancelled(f"{description} cancelled")

    if watchdog.timed_out:
        logger.error(f"{description} timed out after {timeout:.0f}s")
        raise EncodeError(f"{description} timed out after {timeout:.0f}s", stderr)

    if process.returncode != 0:
        tail = stderr[-STDERR_TAIL_CHARS:]
        logger.error(f"FFmpeg failed: {tail}")
        raise EncodeError(f"{description} failed: {tail}", stderr)

    return "\n".join(stdout_lines)


def _trim_args(start: Optional[float], duration: Optional[float]) -> tuple[list[str], list[str]]:
    """Input-side seek and output-side duration, millisecond precision."""
    before = ["-ss", f"{start:.3f}"] if start else []
    after = ["-t", f"{duration:.3f}"] if duration is not None else []
    return before, after


class FFmpegProcessor:
    """
    High-level FFmpeg operations for burning text into video.

    All methods are stateless - input files in, output files out.
    """

    @staticmethod
    def burn_in(
        video_path: Path,
        output_path: Path,
        filters: list[str],
        output_format: str = "mp4",
        quality: str = "medium",
        start_time: Optional[float] = None,
        duration: Optional[float] = None,
        on_progress: Optional[Callable[[float], None]] = None,
        cancel: Optional[CancelToken] = None,
    ) -> Path:
        """
        Single-pass trim plus filter chain plus re-encode.

        With no filters this is a plain trim. Audio is carried along when the
        source has it.
        """
        before, after = _trim_args(start_time, duration)

        args = [*before, "-i", str(video_path), *after]
        if filters:
            args += ["-vf", ",".join(filters)]
        args += [
            "-map", "0:v:0",
            "-map", "0:a:0?",
            *get_video_encoding_args(output_format, quality),
            str(output_path),
        ]

        run_ffmpeg(args, "Burn in overlays", cancel=cancel, on_progress=on_progress)
        logger.info(f"Encoded {output_path.name} with {len(filters)} filter(s)")
        return output_path

    @staticmethod
    def extract_frames(
        video_path: Path,
        frames_dir: Path,
        fps: float,
        start_time: Optional[float] = None,
        duration: Optional[float] = None,
        on_progress: Optional[Callable[[float], None]] = None,
        cancel: Optional[CancelToken] = None,
    ) -> list[Path]:
        """
        Decode the (trimmed) video into numbered PNG frames at a fixed rate.

        Frame i is the picture at clip time i / fps.

        Returns:
            Frame paths sorted by index
        """
        frames_dir.mkdir(parents=True, exist_ok=True)
        before, after = _trim_args(start_time, duration)

        args = [
            *before,
            "-i", str(video_path),
            *after,
            "-vf", f"fps={fps}",
            "-start_number", "0",
            str(frames_dir / "frame_%06d.png"),
        ]

        run_ffmpeg(args, "Extract frames", cancel=cancel, on_progress=on_progress)

        frames = sorted(frames_dir.glob("frame_*.png"))
        logger.info(f"Extracted {len(frames)} frames at {fps:g}fps")
        return frames

    @staticmethod
    def extract_audio(
        video_path: Path,
        output_path: Path,
        start_time: Optional[float] = None,
        duration: Optional[float] = None,
        cancel: Optional[CancelToken] = None,
    ) -> Path:
        """
        Copy the (trimmed) audio stream out without re-encoding.

        Matroska audio holds any codec, so `output_path` should end in .mka.
        """
        before, after = _trim_args(start_time, duration)

        args = [
            *before,
            "-i", str(video_path),
            *after,
            "-vn",
            "-map", "0:a:0",
            "-c:a", "copy",
            str(output_path),
        ]

        run_ffmpeg(args, "Extract audio", cancel=cancel)
        return output_path

    @staticmethod
    def encode_frames(
        frames_dir: Path,
        fps: float,
        output_path: Path,
        output_format: str = "mp4",
        quality: str = "medium",
        audio_path: Optional[Path] = None,
        audio_codec: Optional[str] = None,
        on_progress: Optional[Callable[[float], None]] = None,
        cancel: Optional[CancelToken] = None,
    ) -> Path:
        """Re-encode a numbered PNG sequence, muxing in an extracted audio track."""
        args = [
            "-framerate", f"{fps:g}",
            "-start_number", "0",
            "-i", str(frames_dir / "frame_%06d.png"),
        ]
        if audio_path is not None:
            args += ["-i", str(audio_path)]

        args += ["-map", "0:v:0"]
        encoding = get_video_encoding_args(output_format, quality)
        if audio_path is not None:
            args += ["-map", "1:a:0"]
            # drop the preset's audio codec in favour of copy-or-transcode
            audio_flag = encoding.index("-c:a")
            encoding = encoding[:audio_flag] + encoding[audio_flag + 2:]
            encoding += audio_args_for_mux(output_format, audio_codec)

        args += [*encoding, str(output_path)]

        run_ffmpeg(args, "Encode frames", cancel=cancel, on_progress=on_progress)
        logger.info(f"Encoded frame sequence to {output_path.name}")
        return output_path
