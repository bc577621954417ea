"""Encode plan assembly and per-format ffmpeg encoding."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
import os
from typing import Callable, Dict, Sequence, Tuple

from domain.demo_video import (
    CursorOptions,
    DemoPipelineError,
    OutputArtifact,
    OutputConfig,
    OutputFormat,
    OverlaySpec,
    Size,
    SubtitleStyle,
    ThemeOptions,
    TimedSegment,
    TransitionSpec,
)
from service.cursor import build_cursor_highlight
from service.ffmpeg_runner import CommandRunner, run_command
from service.filter_graph import (
    FINAL_AUDIO_LABEL,
    FINAL_VIDEO_LABEL,
    MERGED_LABEL,
    SCALED_LABEL,
    THEMED_LABEL,
    FilterGraph,
    compose,
    filter_op,
    input_stream,
    node,
    round_half_up,
    single_node_graph,
)
from service.overlays import build_overlay
from service.subtitles import build_burn_filter
from service.theme import build_theme
from service.transitions import build_merge, compute_segment_start_times, compute_total_duration

ENCODE_FAILED_CODE = "demo_video.ffmpeg.encode_failed"
EMPTY_TIMELINE_CODE = "demo_video.input.empty_timeline"

PIXEL_FORMAT = "yuv420p"
H264_CODEC = "libx264"
H264_PRESET = "slow"
H264_PROFILE = "high"
VP9_CODEC = "libvpx-vp9"
VP9_BITRATE = "1200k"
VP9_CRF_FACTOR = 1.18

LOGGER = logging.getLogger("record_demo_video")


@dataclass(frozen=True)
class VideoEncodingSpec:
    """Encoder settings for one output format."""

    codec: str
    args_builder: Callable[[OutputConfig], Tuple[str, ...]]
    audio_codec: str
    audio_bitrate: str


def build_h264_args(output: OutputConfig) -> Tuple[str, ...]:
    return (
        "-preset",
        H264_PRESET,
        "-crf",
        str(output.crf),
        "-profile:v",
        H264_PROFILE,
        "-movflags",
        "+faststart",
    )


def compute_vp9_crf(crf: int) -> int:
    """VP9 needs a higher CRF than H.264 for a similar size."""
    return round_half_up(crf * VP9_CRF_FACTOR)


def build_vp9_args(output: OutputConfig) -> Tuple[str, ...]:
    return ("-crf", str(compute_vp9_crf(output.crf)), "-b:v", VP9_BITRATE)


ENCODING_SPECS: Dict[OutputFormat, VideoEncodingSpec] = {
    OutputFormat.MP4: VideoEncodingSpec(
        codec=H264_CODEC,
        args_builder=build_h264_args,
        audio_codec="aac",
        audio_bitrate="128k",
    ),
    OutputFormat.WEBM: VideoEncodingSpec(
        codec=VP9_CODEC,
        args_builder=build_vp9_args,
        audio_codec="libopus",
        audio_bitrate="96k",
    ),
}


@dataclass(frozen=True)
class EncodeInput:
    """One ``-i`` input; ``loop_framerate`` marks a looped still image."""

    path: str
    trim_seconds: float = 0.0
    loop_framerate: int | None = None

    def to_args(self) -> Tuple[str, ...]:
        if self.loop_framerate is not None:
            return ("-loop", "1", "-framerate", str(self.loop_framerate), "-i", self.path)
        return ("-ss", f"{self.trim_seconds:.3f}", "-i", self.path)


@dataclass(frozen=True)
class EncodeEffects:
    """Everything applied on top of the segment recordings."""

    viewport: Size
    output: OutputConfig
    transition: TransitionSpec | None = None
    overlays: OverlaySpec | None = None
    subtitles_path: str | None = None
    subtitle_style: SubtitleStyle | None = None
    theme: ThemeOptions | None = None
    cursor: CursorOptions | None = None
    audio_track: str | None = None
    wallpaper_path: str | None = None

    @property
    def output_size(self) -> Size:
        return self.output.size or self.viewport


@dataclass(frozen=True)
class EncodePlan:
    """Inputs and the composed graph shared by every output format."""

    inputs: Tuple[EncodeInput, ...]
    graph: FilterGraph
    video_label: str
    audio_label: str | None
    total_duration: float

    @property
    def filter_complex(self) -> str:
        return self.graph.serialize()


@dataclass(frozen=True)
class FormatFailure:
    format: OutputFormat
    returncode: int
    stderr: str


class EncodeError(DemoPipelineError):
    """One or more formats failed; successful artifacts are kept."""

    def __init__(
        self, failures: Sequence[FormatFailure], artifacts: Sequence[OutputArtifact]
    ) -> None:
        message = "; ".join(
            f"{failure.format.value} encode failed (exit {failure.returncode}): "
            f"{failure.stderr.strip()}"
            for failure in failures
        )
        super().__init__(ENCODE_FAILED_CODE, message)
        self.failures = tuple(failures)
        self.artifacts = tuple(artifacts)


class EncodeState(str, Enum):
    PENDING = "pending"
    GRAPH_BUILT = "graph_built"
    ENCODING = "encoding"
    RECORDED = "recorded"
    FAILED = "failed"


def select_timeline(segments: Sequence[TimedSegment]) -> Tuple[TimedSegment, ...]:
    """Drop segments without clean content; they add nothing to the video."""
    kept = []
    for timed in segments:
        if not timed.is_degenerate:
            kept.append(timed)
        else:
            LOGGER.warning(
                "record_demo_video.segment.skipped: %s: %s",
                timed.segment.name,
                timed.error_code or "no clean content",
            )
    if not kept:
        raise DemoPipelineError(EMPTY_TIMELINE_CODE, "no segment has clean content to encode")
    return tuple(kept)


def build_encode_plan(
    segments: Sequence[TimedSegment], effects: EncodeEffects
) -> EncodePlan:
    """Compose merge, scale, cursor, subtitles, overlay and theme stages.

    Input order is the kept segments, then the audio track, then the
    wallpaper image.
    """
    timeline = select_timeline(segments)
    durations = [timed.duration for timed in timeline]
    per_boundary = [timed.segment.transition for timed in timeline[:-1]]
    output_size = effects.output_size
    fps = effects.output.fps

    inputs = [
        EncodeInput(path=timed.segment.video_path, trim_seconds=timed.segment.trim_seconds)
        for timed in timeline
    ]
    fragments: list[FilterGraph] = []

    audio_label = None
    if effects.audio_track:
        audio_index = len(inputs)
        inputs.append(EncodeInput(path=effects.audio_track))
        fragments.append(
            single_node_graph(
                node((input_stream(audio_index, "a"),), FINAL_AUDIO_LABEL, filter_op("anull"))
            )
        )
        audio_label = FINAL_AUDIO_LABEL

    fragments.append(build_merge(durations, effects.transition, per_boundary))
    fragments.append(
        single_node_graph(
            node(
                (MERGED_LABEL,),
                SCALED_LABEL,
                filter_op("fps", fps),
                filter_op("scale", output_size.width, output_size.height),
                filter_op("format", PIXEL_FORMAT),
            )
        )
    )
    current_label = SCALED_LABEL

    highlight = build_cursor_highlight(
        current_label,
        [timed.segment.cursor_events for timed in timeline],
        compute_segment_start_times(durations, effects.transition, per_boundary),
        durations,
        effects.viewport,
        output_size,
        effects.cursor,
    )
    if highlight is not None:
        fragments.append(highlight)
        current_label = highlight.output

    if effects.subtitles_path:
        burn = build_burn_filter(effects.subtitles_path, current_label, effects.subtitle_style)
        fragments.append(burn)
        current_label = burn.output

    fragments.append(build_overlay(effects.overlays, current_label))
    current_label = FINAL_VIDEO_LABEL

    if effects.theme is not None:
        background_label = None
        if effects.wallpaper_path:
            background_label = input_stream(len(inputs))
            inputs.append(EncodeInput(path=effects.wallpaper_path, loop_framerate=fps))
        fragments.append(
            build_theme(
                current_label,
                output_size.width,
                output_size.height,
                effects.theme,
                fps=fps,
                background_label=background_label,
            )
        )
        current_label = THEMED_LABEL

    return EncodePlan(
        inputs=tuple(inputs),
        graph=compose(*fragments),
        video_label=current_label,
        audio_label=audio_label,
        total_duration=compute_total_duration(durations, effects.transition, per_boundary),
    )


def output_path_for(output: OutputConfig, output_format: OutputFormat) -> str:
    return os.path.join(output.directory, f"{output.name}.{output_format.value}")


def build_encode_command(
    plan: EncodePlan,
    output_format: OutputFormat,
    output: OutputConfig,
    output_path: str,
    filter_script_path: str | None = None,
) -> list[str]:
    """Build the ffmpeg argv for one format.

    With ``filter_script_path`` the graph is read from that file instead of
    being passed inline.
    """
    encoding = ENCODING_SPECS[output_format]
    command = ["ffmpeg", "-y"]
    for encode_input in plan.inputs:
        command.extend(encode_input.to_args())
    if filter_script_path is None:
        command.extend(["-filter_complex", plan.filter_complex])
    else:
        command.extend(["-filter_complex_script", filter_script_path])
    command.extend(["-map", f"[{plan.video_label}]"])
    if plan.audio_label is not None:
        command.extend(
            [
                "-map",
                f"[{plan.audio_label}]",
                "-c:a",
                encoding.audio_codec,
                "-b:a",
                encoding.audio_bitrate,
                "-shortest",
            ]
        )
    else:
        command.append("-an")
    command.extend(["-c:v", encoding.codec])
    command.extend(encoding.args_builder(output))
    command.append(output_path)
    return command


class EncodeSession:
    """Builds the graph once, then encodes each requested format on its own.

    A failed format does not stop the others; failures are raised together
    after every format has been attempted.
    """

    def __init__(
        self,
        segments: Sequence[TimedSegment],
        effects: EncodeEffects,
        runner: CommandRunner = run_command,
    ) -> None:
        self._segments = tuple(segments)
        self._effects = effects
        self._runner = runner
        self._plan: EncodePlan | None = None
        self.state = EncodeState.PENDING
        self.artifacts: list[OutputArtifact] = []
        self.failures: list[FormatFailure] = []

    def build_graph(self) -> EncodePlan:
        if self._plan is None:
            self._plan = build_encode_plan(self._segments, self._effects)
            self.state = EncodeState.GRAPH_BUILT
            LOGGER.info(
                "record_demo_video.encode.plan: %d inputs, %.3fs expected",
                len(self._plan.inputs),
                self._plan.total_duration,
            )
        return self._plan

    def encode_format(self, output_format: OutputFormat) -> OutputArtifact | None:
        """Encode one format; returns None and records the failure on error."""
        plan = self.build_graph()
        output = self._effects.output
        output_path = output_path_for(output, output_format)
        os.makedirs(output.directory, exist_ok=True)
        self.state = EncodeState.ENCODING
        LOGGER.info("record_demo_video.encode.start: %s", output_path)
        result = self._runner(build_encode_command(plan, output_format, output, output_path))
        if result.returncode == 0 and not os.path.isfile(output_path):
            failure = FormatFailure(
                output_format, result.returncode, f"output file was not created: {output_path}"
            )
        elif result.returncode != 0:
            failure = FormatFailure(output_format, result.returncode, result.stderr or "")
        else:
            artifact = OutputArtifact(
                path=output_path,
                format=output_format.value,
                size_bytes=os.path.getsize(output_path),
            )
            self.artifacts.append(artifact)
            self.state = EncodeState.RECORDED
            LOGGER.info(
                "record_demo_video.encode.done: %s (%.2f MB)", output_path, artifact.size_mb
            )
            return artifact
        LOGGER.error(
            "record_demo_video.encode.failed: %s: %s",
            output_format.value,
            failure.stderr.strip(),
        )
        self.failures.append(failure)
        self.state = EncodeState.FAILED
        return None

    def run(self) -> Tuple[OutputArtifact, ...]:
        self.build_graph()
        for output_format in self._effects.output.formats:
            self.encode_format(output_format)
        if self.failures:
            self.state = EncodeState.FAILED
            raise EncodeError(self.failures, self.artifacts)
        return tuple(self.artifacts)


def encode(
    segments: Sequence[TimedSegment],
    effects: EncodeEffects,
    runner: CommandRunner = run_command,
) -> Tuple[OutputArtifact, ...]:
    """Encode every requested format and return the produced artifacts."""
    return EncodeSession(segments, effects, runner).run()
