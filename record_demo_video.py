#!/usr/bin/env -S uv run
# /// script
# requires-python = ">=3.11"
# dependencies = [
#   "pillow>=10",
#   "numpy>=1.26",
#   "openai>=1.68"
# ]
# ///
"""Assemble recorded demo segments into finished MP4/WebM demo videos."""

from __future__ import annotations

import argparse
from dataclasses import replace
import json
import logging
import os
import sys
from typing import Sequence, Tuple

from domain.demo_video import (
    AUDIO_FILE_CODE,
    INPUT_FILE_CODE,
    INVALID_CONFIG_CODE,
    DemoConfig,
    DemoPipelineError,
    DemoValidationError,
    NarrationConfig,
    OutputArtifact,
    RendererKind,
    TimedSegment,
    parse_demo_config,
    parse_output_formats,
    parse_renderer_kind,
)
from service.encode import EncodeEffects
from service.ffmpeg_runner import (
    CommandRunner,
    ensure_ffmpeg_available,
    ensure_ffprobe_available,
    run_command,
)
from service.narration import (
    FrameExtractor,
    NarrationTextGenerator,
    SpeechSynthesizer,
    auto_narrate_segments,
    build_narration_track,
    extract_frame_jpeg,
    needs_auto_narration,
)
from service.openai_client import API_KEY_ENV, OpenAIClient
from service.renderers import select_renderer
from service.subtitles import build_entries, generate_srt
from service.theme import WallpaperCache, needs_wallpaper
from service.timing import DurationCache, DurationProbe, probe_duration, resolve_timed_segments

LOGGER = logging.getLogger("record_demo_video")
LARGE_FILE_BYTES = 4 * 1024 * 1024


def configure_logging() -> None:
    """Configure logging for CLI output."""
    logging.basicConfig(level=logging.INFO, format="%(message)s")


def read_utf8_text_strict(file_path: str) -> str:
    """Read a UTF-8 file with strict decoding."""
    try:
        with open(file_path, "rb") as file_handle:
            file_bytes = file_handle.read()
    except FileNotFoundError as exc:
        raise DemoValidationError(
            INPUT_FILE_CODE, f"config file not found: {file_path}"
        ) from exc

    try:
        return file_bytes.decode("utf-8", errors="strict")
    except UnicodeDecodeError as exc:
        raise DemoValidationError(
            INPUT_FILE_CODE,
            f"config file is not valid UTF-8 at byte offset {exc.start}",
        ) from exc


def load_config(config_path: str) -> DemoConfig:
    """Load and validate a JSON config; relative paths follow the file."""
    text_value = read_utf8_text_strict(config_path)
    try:
        payload = json.loads(text_value)
    except json.JSONDecodeError as exc:
        raise DemoValidationError(
            INVALID_CONFIG_CODE,
            f"config is not valid JSON at line {exc.lineno} column {exc.colno}: {exc.msg}",
        ) from exc
    return parse_demo_config(payload, os.path.dirname(os.path.abspath(config_path)))


def parse_args(argv: Sequence[str]) -> DemoConfig:
    """Parse CLI arguments into a DemoConfig with overrides applied."""
    parser = argparse.ArgumentParser(prog="record_demo_video.py", add_help=True)
    parser.add_argument("--config", required=True, help="JSON config file")
    parser.add_argument("--format", default=None, help="mp4, webm or both")
    parser.add_argument("--output-dir", default=None)
    parser.add_argument("--renderer", default=None, help="ffmpeg (default) or script")
    parser.add_argument("--audio-track", default=None)

    parsed = parser.parse_args(argv)
    config = load_config(parsed.config)

    output = config.output
    if parsed.format is not None:
        output = replace(output, formats=parse_output_formats(parsed.format))
    if parsed.output_dir is not None:
        output = replace(output, directory=os.path.abspath(parsed.output_dir))
    config = replace(config, output=output)
    if parsed.renderer is not None:
        config = replace(config, renderer=parse_renderer_kind(parsed.renderer))
    if parsed.audio_track is not None:
        config = replace(config, audio_track=os.path.abspath(parsed.audio_track))
    if config.audio_track is not None and not os.path.isfile(config.audio_track):
        raise DemoValidationError(
            AUDIO_FILE_CODE, f"audio track not found: {config.audio_track}"
        )
    return config


def write_subtitles(config: DemoConfig, segments: Sequence[TimedSegment]) -> str | None:
    """Write ``<name>.srt`` next to the outputs when there is anything to caption."""
    if config.subtitles is None or not config.subtitles.enabled:
        return None
    entries = build_entries(
        [timed.segment for timed in segments], [timed.duration for timed in segments]
    )
    if not entries:
        return None
    srt_path = os.path.join(config.output.directory, f"{config.output.name}.srt")
    with open(srt_path, "w", encoding="utf-8") as srt_file:
        srt_file.write(generate_srt(entries))
    LOGGER.info("record_demo_video.subtitles.written: %d entries -> %s", len(entries), srt_path)
    return srt_path


def run_pipeline(
    config: DemoConfig,
    runner: CommandRunner = run_command,
    probe: DurationProbe | None = None,
    synthesizer: SpeechSynthesizer | None = None,
    generator: NarrationTextGenerator | None = None,
    frame_extractor: FrameExtractor | None = None,
) -> Tuple[OutputArtifact, ...]:
    """Resolve timing, narrate, caption and render the configured demo."""
    cache = DurationCache(probe or (lambda video_path: probe_duration(video_path, runner)))
    segments = resolve_timed_segments(config.segments, cache)

    auto_all = config.narration is not None and config.narration.auto
    if any(needs_auto_narration(timed.segment, auto_all) for timed in segments):
        if generator is None:
            raise DemoValidationError(
                INVALID_CONFIG_CODE, f"auto narration requires {API_KEY_ENV} to be set"
            )
        segments = auto_narrate_segments(
            segments,
            generator,
            frame_extractor
            or (lambda video_path, timestamp: extract_frame_jpeg(video_path, timestamp, runner)),
            auto_all,
            config.app_name,
        )

    os.makedirs(config.output.directory, exist_ok=True)
    subtitles_path = write_subtitles(config, segments)

    audio_track = config.audio_track
    has_scripts = any(timed.segment.narration_script for timed in segments)
    if audio_track is None and (config.narration is not None or has_scripts):
        if synthesizer is not None:
            audio_track = build_narration_track(
                segments,
                synthesizer,
                config.narration or NarrationConfig(),
                os.path.join(config.output.directory, "narration"),
                runner,
                transition=config.transition,
            )
        elif config.narration is not None:
            raise DemoValidationError(
                INVALID_CONFIG_CODE, f"narration requires {API_KEY_ENV} to be set"
            )
        else:
            LOGGER.warning(
                "record_demo_video.narration.skipped: %s is not set; encoding without narration",
                API_KEY_ENV,
            )

    wallpaper_path = None
    if needs_wallpaper(config.theme):
        wallpaper_cache = WallpaperCache(os.path.join(config.output.directory, ".wallpaper"))
        wallpaper_path = wallpaper_cache.get(
            config.theme.background, config.output_size.width, config.output_size.height
        )

    effects = EncodeEffects(
        viewport=config.viewport,
        output=config.output,
        transition=config.transition,
        overlays=config.overlays,
        subtitles_path=subtitles_path if config.subtitles and config.subtitles.burn else None,
        subtitle_style=config.subtitles.style if config.subtitles else None,
        theme=config.theme,
        cursor=config.cursor,
        audio_track=audio_track,
        wallpaper_path=wallpaper_path,
    )
    artifacts = select_renderer(config.renderer, runner).render(segments, effects)
    for artifact in artifacts:
        LOGGER.info(
            "record_demo_video.artifact: %s %s (%.2f MB)",
            artifact.format,
            artifact.path,
            artifact.size_mb,
        )
        if config.renderer is RendererKind.FFMPEG and artifact.size_bytes > LARGE_FILE_BYTES:
            LOGGER.info(
                "record_demo_video.artifact.large: %s is over 4 MB; consider raising crf by 2-3",
                artifact.path,
            )
    return artifacts


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entrypoint."""
    configure_logging()

    try:
        config = parse_args(sys.argv[1:] if argv is None else argv)
        ensure_ffprobe_available()
        ensure_ffmpeg_available()
        client = OpenAIClient.from_environment()
        run_pipeline(config, synthesizer=client, generator=client)
        return 0
    except DemoValidationError as exc:
        LOGGER.error("%s: %s", exc.code, str(exc).strip())
        return 1
    except DemoPipelineError as exc:
        LOGGER.error("%s: %s", exc.code, str(exc).strip())
        return 1
    except Exception as exc:
        LOGGER.error("record_demo_video.unhandled_error: %s", str(exc).strip())
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
