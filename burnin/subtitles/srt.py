"""
SubRip (.srt) reading and writing.

The writer output is consumed by FFmpeg's `subtitles` filter, so the exact
layout matters: numbered blocks, `HH:MM:SS,mmm --> HH:MM:SS,mmm`, the text,
and a blank line after every block.
"""

import math
import re
from pathlib import Path
from typing import Iterable

from loguru import logger

from ..models import SubtitleSegment, SubtitleTrack, TrimBounds


_TIME_RE = re.compile(r"(\d+):(\d{1,2}):(\d{1,2})[,.](\d{1,3})")


def format_srt_time(seconds: float) -> str:
    """Seconds → HH:MM:SS,mmm (milliseconds truncated, negatives clamp to 0)."""
    # The small bias keeps values like 1.001 from truncating to 1.000
    total_ms = max(0, int(math.floor(seconds * 1000 + 1e-6)))
    hours, rem = divmod(total_ms, 3_600_000)
    minutes, rem = divmod(rem, 60_000)
    secs, ms = divmod(rem, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{ms:03d}"


def parse_srt_time(value: str) -> float:
    m = _TIME_RE.search(value.strip())
    if not m:
        raise ValueError(f"Invalid SRT timestamp: {value!r}")
    h, mi, s, ms = m.groups()
    return int(h) * 3600 + int(mi) * 60 + int(s) + int(ms.ljust(3, "0")) / 1000


def build_srt(tracks: Iterable[SubtitleTrack]) -> str:
    """
    Render every segment of every track, in timeline order, as one SRT document.

    Numbering is continuous across tracks. The same input always yields the
    same bytes.
    """
    blocks = []
    index = 1
    for track in tracks:
        for segment in track.segments:
            blocks.append(
                f"{index}\n"
                f"{format_srt_time(segment.start)} --> {format_srt_time(segment.end)}\n"
                f"{segment.text.strip()}\n\n"
            )
            index += 1
    return "".join(blocks)


def write_srt(tracks: Iterable[SubtitleTrack], output_path: Path) -> Path:
    output_path = Path(output_path)
    content = build_srt(tracks)
    # newline="" keeps "\n" on every platform
    with open(output_path, "w", encoding="utf-8", newline="") as f:
        f.write(content)
    logger.debug(f"Wrote subtitle file: {output_path} ({len(content)} bytes)")
    return output_path


def parse_srt(content: str) -> list[SubtitleSegment]:
    """
    Parse SRT text into segments.

    Multi-line cue text is joined with single spaces. Malformed blocks are
    skipped with a warning.
    """
    segments = []
    normalized = content.replace("\r\n", "\n").replace("\r", "\n").strip()
    if not normalized:
        return segments

    for block in re.split(r"\n\s*\n+", normalized):
        lines = [line for line in block.split("\n") if line.strip()]
        # Index line is optional in some hand-written files
        if lines and "-->" not in lines[0]:
            lines = lines[1:]
        if len(lines) < 2 or "-->" not in lines[0]:
            logger.warning(f"Skipping malformed SRT block: {block[:40]!r}")
            continue

        start_raw, end_raw = lines[0].split("-->", 1)
        try:
            start = parse_srt_time(start_raw)
            end = parse_srt_time(end_raw)
        except ValueError as e:
            logger.warning(f"Skipping SRT block: {e}")
            continue

        text = re.sub(r"\s+", " ", " ".join(lines[1:])).strip()
        segments.append(SubtitleSegment(start=start, end=end, text=text))

    return segments


def split_segment(segment: SubtitleSegment, words_per_line: int = 5) -> list[SubtitleSegment]:
    """Split a long cue into chunks of `words_per_line` words sharing its time evenly."""
    words = segment.text.split()
    if len(words) <= words_per_line:
        return [segment]

    chunks = [
        " ".join(words[i:i + words_per_line])
        for i in range(0, len(words), words_per_line)
    ]
    total = max(segment.end - segment.start, 0.01)
    step = total / len(chunks)
    return [
        SubtitleSegment(
            start=segment.start + i * step,
            end=segment.start + (i + 1) * step,
            text=chunk,
            confidence=segment.confidence,
        )
        for i, chunk in enumerate(chunks)
    ]


def shift_to_clip(segments: Iterable[SubtitleSegment], trim: TrimBounds) -> list[SubtitleSegment]:
    """
    Map source-time segments onto a trimmed clip's local time.

    Segments entirely outside the window are dropped; segments that cross a
    boundary are clipped to it.
    """
    shifted = []
    for seg in segments:
        start = max(seg.start, trim.start) - trim.start
        end = min(seg.end, trim.end) - trim.start
        if end > start:
            shifted.append(seg.model_copy(update={"start": start, "end": end}))
    return shifted


def shift_track_to_clip(track: SubtitleTrack, trim: TrimBounds) -> SubtitleTrack:
    return track.model_copy(update={"segments": shift_to_clip(track.segments, trim)})
