"""Narration scripts and the narration audio track."""

from __future__ import annotations

from dataclasses import dataclass, replace
import logging
import os
import re
import tempfile
from typing import Callable, Protocol, Sequence, Tuple

from domain.demo_video import (
    NarrationConfig,
    Segment,
    TimedSegment,
    TransitionSpec,
    UpstreamError,
)
from service.ffmpeg_runner import CommandRunner, run_command, run_ffmpeg
from service.transitions import plan_timeline

TTS_MAX_CHARS = 1500
SILENCE_SOURCE = "anullsrc=r=24000:cl=mono"
FRAME_OFFSET_SECONDS = 2.0
NARRATION_FILE_NAME = "narration-full.mp3"
EMPTY_SCRIPT_CODE = "demo_video.narration.empty_script"
EMPTY_AUDIO_CODE = "demo_video.narration.empty_audio"

SCRIPT_SENTENCE_BREAK_PATTERN = re.compile(r"(?<=[.!?])\s+")

LOGGER = logging.getLogger("record_demo_video")

FrameExtractor = Callable[[str, float], bytes]


@dataclass(frozen=True)
class NarrationContext:
    """Where a segment sits in the video, for narration prompts."""

    segment_name: str
    segment_index: int
    total_segments: int
    previous_name: str | None = None
    next_name: str | None = None
    app_name: str | None = None

    @property
    def position_hint(self) -> str:
        if self.total_segments <= 1:
            return ""
        if self.segment_index == 0:
            return f'This is the opening segment. The next segment will show "{self.next_name}".'
        if self.segment_index == self.total_segments - 1:
            return f'This is the final segment. The previous segment showed "{self.previous_name}".'
        return f'Previous segment: "{self.previous_name}". Next: "{self.next_name}".'


class SpeechSynthesizer(Protocol):
    def synthesize(self, text_value: str, config: NarrationConfig) -> bytes:
        """Return encoded MP3 audio for ``text_value``."""


class NarrationTextGenerator(Protocol):
    def generate(self, image_jpeg: bytes, context: NarrationContext) -> str:
        """Return a short voiceover script for a screenshot."""


def split_script(text_value: str, max_chars: int = TTS_MAX_CHARS) -> Tuple[str, ...]:
    """Group sentences into chunks of at most ``max_chars`` characters.

    A single sentence longer than the limit is kept whole.
    """
    if len(text_value) <= max_chars:
        return (text_value,)
    sentences = [
        sentence for sentence in SCRIPT_SENTENCE_BREAK_PATTERN.split(text_value.strip()) if sentence
    ]

    chunks: list[str] = []
    current = ""
    for sentence in sentences:
        if current and len(current) + 1 + len(sentence) > max_chars:
            chunks.append(current)
            current = sentence
        else:
            current = f"{current} {sentence}" if current else sentence
    if current:
        chunks.append(current)
    return tuple(chunks)


def _quote_concat_path(path_value: str) -> str:
    return "'" + path_value.replace("'", "'\\''") + "'"


def concat_audio(
    part_paths: Sequence[str], output_path: str, runner: CommandRunner = run_command
) -> None:
    """Join audio files with the ffmpeg concat demuxer."""
    list_path = f"{output_path}.txt"
    with open(list_path, "w", encoding="utf-8") as list_file:
        list_file.write(
            "\n".join(f"file {_quote_concat_path(os.path.abspath(path))}" for path in part_paths)
        )
    try:
        run_ffmpeg(
            ["ffmpeg", "-y", "-f", "concat", "-safe", "0", "-i", list_path, "-c", "copy", output_path],
            runner,
            f"concatenating audio into {output_path}",
        )
    finally:
        os.remove(list_path)


def generate_silence(
    output_path: str, duration_seconds: float, runner: CommandRunner = run_command
) -> None:
    run_ffmpeg(
        [
            "ffmpeg",
            "-y",
            "-f",
            "lavfi",
            "-i",
            SILENCE_SOURCE,
            "-t",
            f"{duration_seconds:.3f}",
            "-c:a",
            "libmp3lame",
            "-q:a",
            "9",
            output_path,
        ],
        runner,
        f"generating {duration_seconds:.3f}s of silence",
    )


def synthesize_segment(
    script: str,
    synthesizer: SpeechSynthesizer,
    config: NarrationConfig,
    output_path: str,
    runner: CommandRunner = run_command,
) -> None:
    """Synthesize a script chunk by chunk into one MP3 file."""
    audio_parts = [synthesizer.synthesize(chunk, config) for chunk in split_script(script)]
    for audio_bytes in audio_parts:
        if not audio_bytes:
            raise UpstreamError(
                EMPTY_AUDIO_CODE, "speech synthesizer returned no audio", retryable=True
            )
    if len(audio_parts) == 1:
        with open(output_path, "wb") as audio_file:
            audio_file.write(audio_parts[0])
        return

    chunk_paths = []
    for chunk_index, audio_bytes in enumerate(audio_parts):
        chunk_path = f"{os.path.splitext(output_path)[0]}-chunk-{chunk_index}.mp3"
        with open(chunk_path, "wb") as chunk_file:
            chunk_file.write(audio_bytes)
        chunk_paths.append(chunk_path)
    try:
        concat_audio(chunk_paths, output_path, runner)
    finally:
        for chunk_path in chunk_paths:
            os.remove(chunk_path)


def fit_audio(
    input_path: str,
    output_path: str,
    duration_seconds: float,
    runner: CommandRunner = run_command,
) -> None:
    """Pad with silence or cut so the audio lasts exactly ``duration_seconds``."""
    run_ffmpeg(
        [
            "ffmpeg",
            "-y",
            "-i",
            input_path,
            "-af",
            "apad",
            "-t",
            f"{duration_seconds:.3f}",
            "-c:a",
            "libmp3lame",
            "-q:a",
            "4",
            output_path,
        ],
        runner,
        f"fitting {input_path} to {duration_seconds:.3f}s",
    )


def compute_narration_slots(
    segments: Sequence[TimedSegment], transition: TransitionSpec | None = None
) -> Tuple[Tuple[TimedSegment, float], ...]:
    """Pair each segment with clean content with its share of the output timeline.

    A segment's slot runs from its start until the next segment starts, so a
    cross-fade shortens the outgoing segment's slot by the overlap. The slots
    add up to the encoded video's length.
    """
    kept = [timed for timed in segments if timed.duration > 0]
    if not kept:
        return ()
    durations = [timed.duration for timed in kept]
    per_boundary = [timed.segment.transition for timed in kept[:-1]]
    timeline = plan_timeline(durations, transition, per_boundary)
    starts = timeline.segment_starts
    ends = starts[1:] + (timeline.total_duration,)
    return tuple(
        (timed, max(0.0, end - start)) for timed, start, end in zip(kept, starts, ends)
    )


def build_narration_track(
    segments: Sequence[TimedSegment],
    synthesizer: SpeechSynthesizer,
    config: NarrationConfig,
    work_dir: str,
    runner: CommandRunner = run_command,
    transition: TransitionSpec | None = None,
) -> str | None:
    """Build one audio track: speech for scripted segments, silence elsewhere.

    Every part lasts exactly as long as its segment's slot on the video
    timeline, so narration stays aligned across cross-fades. Segments without
    clean duration contribute nothing. Returns None when no segment carries a
    script.
    """
    if not any(timed.segment.narration_script for timed in segments):
        return None
    os.makedirs(work_dir, exist_ok=True)
    part_paths: list[str] = []
    for index, (timed, slot_seconds) in enumerate(compute_narration_slots(segments, transition)):
        if slot_seconds <= 0:
            LOGGER.warning(
                "record_demo_video.narration.no_slot: %s is covered by its transitions",
                timed.segment.name,
            )
            continue
        part_path = os.path.join(work_dir, f"narration-{index}.mp3")
        script = timed.segment.narration_script
        if script:
            LOGGER.info(
                "record_demo_video.narration.tts: %s: %.3fs slot", timed.segment.name, slot_seconds
            )
            speech_path = os.path.join(work_dir, f"narration-{index}-speech.mp3")
            synthesize_segment(script, synthesizer, config, speech_path, runner)
            try:
                fit_audio(speech_path, part_path, slot_seconds, runner)
            finally:
                os.remove(speech_path)
        else:
            LOGGER.info(
                "record_demo_video.narration.silence: %s: %.3fs",
                timed.segment.name,
                slot_seconds,
            )
            generate_silence(part_path, slot_seconds, runner)
        part_paths.append(part_path)
    if not part_paths:
        return None

    track_path = os.path.join(work_dir, NARRATION_FILE_NAME)
    concat_audio(part_paths, track_path, runner)
    return track_path


def extract_frame_jpeg(
    video_path: str, timestamp_seconds: float, runner: CommandRunner = run_command
) -> bytes:
    """Grab one downscaled JPEG frame from a recording."""
    with tempfile.TemporaryDirectory(prefix="demo-frame-") as temp_dir:
        frame_path = os.path.join(temp_dir, "frame.jpg")
        run_ffmpeg(
            [
                "ffmpeg",
                "-y",
                "-ss",
                f"{timestamp_seconds:.3f}",
                "-i",
                video_path,
                "-frames:v",
                "1",
                "-vf",
                "scale='min(720,iw)':-1",
                "-q:v",
                "4",
                frame_path,
            ],
            runner,
            f"extracting a frame from {video_path}",
        )
        with open(frame_path, "rb") as frame_file:
            return frame_file.read()


def needs_auto_narration(segment: Segment, auto_all: bool) -> bool:
    if segment.narration_script:
        return False
    return segment.auto_narrate or auto_all


def auto_narrate_segments(
    segments: Sequence[TimedSegment],
    generator: NarrationTextGenerator,
    frame_extractor: FrameExtractor,
    auto_all: bool,
    app_name: str | None = None,
) -> Tuple[TimedSegment, ...]:
    """Fill in missing narration scripts from a frame of each segment.

    Segments with a script, or without clean duration, are returned as-is.
    """
    names = [timed.segment.name for timed in segments]
    result: list[TimedSegment] = []
    for index, timed in enumerate(segments):
        segment = timed.segment
        if not needs_auto_narration(segment, auto_all) or timed.duration <= 0:
            result.append(timed)
            continue
        LOGGER.info("record_demo_video.narration.auto: %s", segment.name)
        timestamp = segment.trim_seconds + min(FRAME_OFFSET_SECONDS, timed.duration / 2)
        context = NarrationContext(
            segment_name=segment.name,
            segment_index=index,
            total_segments=len(segments),
            previous_name=names[index - 1] if index > 0 else None,
            next_name=names[index + 1] if index < len(names) - 1 else None,
            app_name=app_name,
        )
        script = generator.generate(frame_extractor(segment.video_path, timestamp), context)
        if not script or not script.strip():
            raise UpstreamError(
                EMPTY_SCRIPT_CODE,
                f"narration generator returned an empty script for {segment.name!r}",
                retryable=True,
            )
        result.append(
            replace(timed, segment=replace(segment, narration_script=script.strip()))
        )
    return tuple(result)
