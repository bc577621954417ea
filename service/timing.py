"""Segment duration resolution: probing, trimming and caching."""

from __future__ import annotations

import logging
import math
import os
from typing import Callable, Dict, Sequence, Tuple

from domain.demo_video import Segment, TimedSegment, UpstreamError
from service.ffmpeg_runner import FFMPEG_PROBE_CODE, CommandRunner, run_command

PROBE_MISSING_FILE_CODE = "demo_video.probe.missing_file"
PROBE_INVALID_OUTPUT_CODE = "demo_video.probe.invalid_output"

LOGGER = logging.getLogger("record_demo_video")

DurationProbe = Callable[[str], float]


def resolve_duration(raw_duration: float, trim_seconds: float) -> float:
    """Return the usable duration after trimming, floored at zero."""
    return max(0.0, raw_duration - trim_seconds)


def probe_duration(video_path: str, runner: CommandRunner = run_command) -> float:
    """Return a media file's duration in seconds using ffprobe."""
    if not os.path.isfile(video_path):
        raise UpstreamError(
            PROBE_MISSING_FILE_CODE, f"recording not found: {video_path}", retryable=False
        )
    result = runner(
        [
            "ffprobe",
            "-v",
            "error",
            "-show_entries",
            "format=duration",
            "-of",
            "default=noprint_wrappers=1:nokey=1",
            video_path,
        ]
    )
    if result.returncode != 0:
        raise UpstreamError(
            FFMPEG_PROBE_CODE,
            f"ffprobe failed for {video_path}: {(result.stderr or '').strip()}",
            retryable=False,
        )
    try:
        duration_seconds = float(result.stdout.strip())
    except ValueError as exc:
        raise UpstreamError(
            PROBE_INVALID_OUTPUT_CODE,
            f"ffprobe returned no duration for {video_path}: {result.stdout.strip()!r}",
            retryable=False,
        ) from exc
    if not math.isfinite(duration_seconds) or duration_seconds < 0:
        raise UpstreamError(
            PROBE_INVALID_OUTPUT_CODE,
            f"ffprobe returned an invalid duration for {video_path}: {duration_seconds}",
            retryable=False,
        )
    return duration_seconds


class DurationCache:
    """Raw durations keyed by path, invalidated when the file changes.

    The pipeline owns one instance per run; nothing is shared across runs.
    """

    def __init__(self, probe: DurationProbe) -> None:
        self._probe = probe
        self._entries: Dict[str, Tuple[Tuple[int, int], float]] = {}

    def _stamp(self, video_path: str) -> Tuple[int, int] | None:
        try:
            stat_result = os.stat(video_path)
        except OSError:
            return None
        return (stat_result.st_size, stat_result.st_mtime_ns)

    def raw_duration(self, video_path: str) -> float:
        stamp = self._stamp(video_path)
        cached = self._entries.get(video_path)
        if stamp is not None and cached is not None and cached[0] == stamp:
            return cached[1]
        duration_seconds = self._probe(video_path)
        if stamp is not None:
            self._entries[video_path] = (stamp, duration_seconds)
        else:
            self._entries.pop(video_path, None)
        return duration_seconds

    def __len__(self) -> int:
        return len(self._entries)


def resolve_segment_timing(segment: Segment, cache: DurationCache) -> TimedSegment:
    """Resolve a segment's clean duration, flagging probe failures as zero."""
    try:
        raw_duration = cache.raw_duration(segment.video_path)
    except UpstreamError as exc:
        LOGGER.warning(
            "record_demo_video.segment.degenerate: %s: %s: %s",
            segment.name,
            exc.code,
            str(exc).strip(),
        )
        return TimedSegment(segment=segment, duration=0.0, error_code=exc.code)
    duration = resolve_duration(raw_duration, segment.trim_seconds)
    if duration <= 0:
        LOGGER.warning(
            "record_demo_video.segment.degenerate: %s: trim %.3fs covers the %.3fs recording",
            segment.name,
            segment.trim_seconds,
            raw_duration,
        )
    return TimedSegment(segment=segment, duration=duration)


def resolve_timed_segments(
    segments: Sequence[Segment], cache: DurationCache
) -> Tuple[TimedSegment, ...]:
    return tuple(resolve_segment_timing(segment, cache) for segment in segments)
