"""
Export pipeline.

Turns a source video plus a timeline (trim, subtitle tracks, overlays) into
a finished file. Two strategies share the same lifecycle:

    FilterGraphExporter  - one FFmpeg pass: trim + drawtext + subtitles
    FrameRasterExporter  - extract frames, composite each with Pillow,
                           re-encode and mux the original audio

Every job runs in its own temp directory, writes to a partial file next to
the destination, and renames it into place only after success. On failure
or cancellation every artifact is removed.
"""

import os
import shutil
import tempfile
import time
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, Optional

from loguru import logger

from ..compose.compositor import compose_frame
from ..compose.fonts import FontResolver, TextMeasurer
from ..compose.raster import rasterize_file
from ..config import get_settings
from ..core.cancel import CancelToken
from ..core.ffmpeg_utils import ENCODING_PRESETS, FFmpegProcessor
from ..core.video_info import VideoInfo, get_video_info
from ..errors import EncodeError, ExportCancelled, ResourceError, ValidationError
from ..models import (
    ExportRequest,
    ExportResult,
    ExportStage,
    ExportStrategy,
    OutputFormat,
    TrimBounds,
)
from ..overlays.validation import validate_overlays, validate_subtitle_tracks, validate_trim
from ..subtitles.srt import write_srt
from .filtergraph import build_filter_chain
from .jobs import JobStore, ProgressChannel


QUALITIES = ("low", "medium", "high")


def validate_format(request: ExportRequest) -> list[str]:
    errors = []
    if request.output_format not in ENCODING_PRESETS:
        errors.append("Output format must be mp4 or webm")
    if request.quality not in QUALITIES:
        errors.append("Quality must be low, medium, or high")
    return errors


def validate_export(request: ExportRequest, info: VideoInfo):
    """
    Check a request against probed source metadata.

    Overlay and subtitle timing is clip-local, so both are bounded by the
    trim duration when a trim is set and by the source duration otherwise.

    Raises:
        ValidationError: with every problem found
    """
    errors = validate_format(request)

    if request.trim is not None:
        errors += validate_trim(request.trim, info.duration)

    clip_duration = request.trim.duration if request.trim is not None else info.duration
    batch = validate_overlays(request.overlays, clip_duration)
    for overlay_id, overlay_errors in batch.overlay_errors.items():
        errors += [f"Overlay {overlay_id}: {e}" for e in overlay_errors]

    errors += validate_subtitle_tracks(request.subtitle_tracks, clip_duration)

    if errors:
        raise ValidationError(errors)


class BaseExporter:
    """
    Shared export lifecycle. Subclasses implement _export().

    Usage:
        exporter = FilterGraphExporter(request, progress=channel, cancel=token)
        result = exporter.run()
    """

    strategy: ExportStrategy

    def __init__(
        self,
        request: ExportRequest,
        progress: Optional[ProgressChannel] = None,
        cancel: Optional[CancelToken] = None,
    ):
        self.request = request
        self.progress = progress or ProgressChannel(uuid.uuid4().hex)
        self.cancel = cancel or CancelToken()
        self.settings = get_settings()
        self.workdir: Optional[Path] = None
        self.frames_rendered: Optional[int] = None

    @property
    def job_id(self) -> str:
        return self.progress.job_id

    @property
    def clip_start(self) -> Optional[float]:
        return self.request.trim.start if self.request.trim else None

    @property
    def clip_duration(self) -> Optional[float]:
        return self.request.trim.duration if self.request.trim else None

    def _publish(self, stage: ExportStage, percent: Optional[float] = None, message: str = ""):
        self.progress.publish(stage, percent, message)

    def _ffmpeg_progress(
        self,
        stage: ExportStage,
        total: float,
        low: float,
        high: float,
        label: str = "",
    ) -> Callable[[float], None]:
        """Map FFmpeg's output timestamp onto the [low, high] percent band."""
        def report(seconds: float):
            fraction = min(1.0, seconds / total) if total > 0 else 0.0
            message = f"{label}... {round(fraction * 100)}%" if label else ""
            self._publish(stage, low + (high - low) * fraction, message)
        return report

    def _make_workdir(self) -> Path:
        try:
            self.settings.temp_dir.mkdir(parents=True, exist_ok=True)
            return Path(tempfile.mkdtemp(prefix=f"burnin-{self.job_id[:8]}-", dir=self.settings.temp_dir))
        except OSError as e:
            raise ResourceError(f"Could not create temp directory in {self.settings.temp_dir}: {e}")

    def _partial_path(self) -> Path:
        output = self.request.output
        try:
            output.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ResourceError(f"Could not create output directory {output.parent}: {e}")
        return output.with_name(f".{output.stem}.{self.job_id[:8]}.partial.{self.request.output_format}")

    def _cleanup(self, partial: Optional[Path]):
        """Remove the workdir and any partial output. Never raises."""
        if partial is not None and partial.exists():
            try:
                partial.unlink()
            except OSError as e:
                logger.warning(f"Could not remove partial output {partial}: {e}")

        if self.workdir is not None and self.workdir.exists():
            try:
                shutil.rmtree(self.workdir)
            except OSError as e:
                logger.warning(f"Could not remove temp directory {self.workdir}: {e}")
        self.workdir = None

    def run(self) -> ExportResult:
        request = self.request
        started = time.time()
        partial: Optional[Path] = None

        self._publish(ExportStage.INITIALIZING, 0, "Initializing processing...")
        logger.info(f"Export {self.job_id}: {request.source.name} -> {request.output} ({self.strategy.value})")

        try:
            format_errors = validate_format(request)
            if format_errors:
                raise ValidationError(format_errors)
            self.cancel.raise_if_cancelled()

            self._publish(ExportStage.EXTRACTING_METADATA, 5, "Extracting video metadata...")
            info = get_video_info(request.source)
            validate_export(request, info)
            self.cancel.raise_if_cancelled()

            self.workdir = self._make_workdir()
            partial = self._partial_path()

            self._export(info, partial)
            self.cancel.raise_if_cancelled()

            if not partial.exists():
                raise EncodeError(f"FFmpeg produced no output at {partial}")

            self._publish(ExportStage.FINALIZING, 95, "Finalizing...")
            os.replace(partial, request.output)
            partial = None
        except ExportCancelled:
            logger.info(f"Export {self.job_id} cancelled")
            self._publish(ExportStage.CANCELLED, None, "Export cancelled")
            raise
        except Exception as e:
            logger.error(f"Export {self.job_id} failed: {e}")
            self._publish(ExportStage.ERROR, None, str(e))
            raise
        finally:
            self._cleanup(partial)

        result = ExportResult(
            output=request.output,
            strategy=self.strategy,
            processing_time=time.time() - started,
            file_size=request.output.stat().st_size,
            duration=self.clip_duration if request.trim is not None else info.duration,
            width=info.width,
            height=info.height,
            output_format=OutputFormat(request.output_format),
            frames_rendered=self.frames_rendered,
        )
        self._publish(ExportStage.COMPLETED, 100, "Processing completed successfully")
        logger.info(
            f"Export {self.job_id} done in {result.processing_time:.1f}s "
            f"({result.file_size / 1024 / 1024:.1f} MB)"
        )
        return result

    def _export(self, info: VideoInfo, partial: Path):
        raise NotImplementedError


class FilterGraphExporter(BaseExporter):
    """Single FFmpeg pass with drawtext and subtitles filters."""

    strategy = ExportStrategy.FILTERGRAPH

    def __init__(self, request, progress=None, cancel=None, resolver: Optional[FontResolver] = None):
        super().__init__(request, progress, cancel)
        self.resolver = resolver

    def _export(self, info: VideoInfo, partial: Path):
        request = self.request

        srt_path = None
        if request.subtitle_segments:
            self._publish(ExportStage.PREPARING_SUBTITLES, 20, "Preparing subtitles...")
            srt_path = write_srt(request.subtitle_tracks, self.workdir / "subtitles.srt")

        self._publish(ExportStage.PREPARING_OVERLAYS, 30, "Preparing text overlays...")
        filters = build_filter_chain(
            request.overlays,
            info.width,
            info.height,
            srt_path=srt_path,
            resolver=self.resolver,
        )

        self._publish(ExportStage.PROCESSING_VIDEO, 40, "Processing video...")
        FFmpegProcessor.burn_in(
            request.source,
            partial,
            filters,
            output_format=request.output_format,
            quality=request.quality,
            start_time=self.clip_start,
            duration=self.clip_duration,
            on_progress=self._ffmpeg_progress(
                ExportStage.PROCESSING_VIDEO,
                self.clip_duration or info.duration,
                40, 90,
                "Processing video",
            ),
            cancel=self.cancel,
        )


class FrameRasterExporter(BaseExporter):
    """
    Per-frame compositing.

    Frame i of the trimmed clip is composed at t = i / fps with the same
    compositor the preview uses, so exported pixels match the preview.
    """

    strategy = ExportStrategy.RASTER

    def __init__(self, request, progress=None, cancel=None, measurer: Optional[TextMeasurer] = None):
        super().__init__(request, progress, cancel)
        self.measurer = measurer or TextMeasurer()

    @property
    def fps(self) -> float:
        return self.request.fps or self.settings.default_fps

    def _export(self, info: VideoInfo, partial: Path):
        request = self.request
        fps = self.fps
        clip_duration = self.clip_duration or info.duration

        self._publish(ExportStage.EXTRACTING_FRAMES, 10, "Extracting frames...")
        frames = FFmpegProcessor.extract_frames(
            request.source,
            self.workdir / "frames",
            fps,
            start_time=self.clip_start,
            duration=self.clip_duration,
            on_progress=self._ffmpeg_progress(ExportStage.EXTRACTING_FRAMES, clip_duration, 10, 25),
            cancel=self.cancel,
        )
        if not frames:
            raise EncodeError(f"No frames extracted from {request.source}")

        audio_path = None
        if info.has_audio:
            self._publish(ExportStage.EXTRACTING_AUDIO, 25, "Extracting audio...")
            audio_path = FFmpegProcessor.extract_audio(
                request.source,
                self.workdir / "audio.mka",
                start_time=self.clip_start,
                duration=self.clip_duration,
                cancel=self.cancel,
            )
        else:
            logger.info(f"{request.source.name} has no audio stream, exporting video only")

        self._publish(ExportStage.COMPOSITING_FRAMES, 30, "Compositing frames...")
        self.frames_rendered = self._composite(frames, info, fps)

        self._publish(ExportStage.ENCODING, 80, "Encoding video...")
        FFmpegProcessor.encode_frames(
            self.workdir / "frames",
            fps,
            partial,
            output_format=request.output_format,
            quality=request.quality,
            audio_path=audio_path,
            audio_codec=info.audio_codec,
            on_progress=self._ffmpeg_progress(ExportStage.ENCODING, len(frames) / fps, 80, 95),
            cancel=self.cancel,
        )

    def _render_frame(self, index: int, path: Path, info: VideoInfo, fps: float) -> bool:
        self.cancel.raise_if_cancelled()
        composition = compose_frame(
            info.width,
            info.height,
            index / fps,
            self.request.overlays,
            self.request.subtitle_segments,
            measurer=self.measurer,
        )
        return rasterize_file(path, composition.ops, self.measurer)

    def _report_frame(self, done: int, total: int):
        frame_percent = round(done / total * 100)
        self._publish(
            ExportStage.COMPOSITING_FRAMES,
            30 + 50 * done / total,
            f"Compositing frame {done}/{total} ({frame_percent}%)",
        )

    def _composite(self, frames: list[Path], info: VideoInfo, fps: float) -> int:
        """Composite every frame in place. Returns the number of frames processed."""
        total = len(frames)
        workers = max(1, self.request.workers or self.settings.frame_workers)

        if workers == 1:
            for index, path in enumerate(frames):
                self._render_frame(index, path, info, fps)
                self._report_frame(index + 1, total)
            return total

        done = 0
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [
                executor.submit(self._render_frame, index, path, info, fps)
                for index, path in enumerate(frames)
            ]
            try:
                for future in as_completed(futures):
                    future.result()
                    done += 1
                    self._report_frame(done, total)
            except BaseException:
                for future in futures:
                    future.cancel()
                raise
        return total


EXPORTERS = {
    ExportStrategy.FILTERGRAPH: FilterGraphExporter,
    ExportStrategy.RASTER: FrameRasterExporter,
}


def export_video(
    request: ExportRequest,
    progress: Optional[Callable] = None,
    cancel: Optional[CancelToken] = None,
    store: Optional[JobStore] = None,
    job_id: Optional[str] = None,
) -> ExportResult:
    """
    Export with the strategy named in the request.

    Args:
        request: What to export
        progress: Callback receiving each ProgressUpdate
        cancel: Token the caller can set to abort
        store: JobStore that should track this job
        job_id: Id used for progress updates (random when omitted)

    Raises:
        ValidationError, MediaProbeError, EncodeError, ResourceError, ExportCancelled
    """
    channel = ProgressChannel(job_id or uuid.uuid4().hex, store=store, callback=progress)
    exporter = EXPORTERS[request.strategy](request, progress=channel, cancel=cancel)
    return exporter.run()


def trim_clip(
    source: Path,
    output: Path,
    trim: TrimBounds,
    output_format: str = "mp4",
    quality: str = "medium",
    progress: Optional[Callable] = None,
    cancel: Optional[CancelToken] = None,
) -> ExportResult:
    """Re-trim from the original source with no overlays or subtitles."""
    request = ExportRequest(
        source=Path(source),
        output=Path(output),
        trim=trim,
        output_format=output_format,
        quality=quality,
        strategy=ExportStrategy.FILTERGRAPH,
    )
    return export_video(request, progress=progress, cancel=cancel)
