"""Render backends selected by configuration."""

from __future__ import annotations

import json
import logging
import os
from typing import Protocol, Sequence, Tuple

from domain.demo_video import OutputArtifact, RendererKind, TimedSegment
from service.encode import (
    EncodeEffects,
    build_encode_command,
    build_encode_plan,
    encode,
    output_path_for,
)
from service.ffmpeg_runner import CommandRunner, run_command

LOGGER = logging.getLogger("record_demo_video")


class Renderer(Protocol):
    def render(
        self, segments: Sequence[TimedSegment], effects: EncodeEffects
    ) -> Tuple[OutputArtifact, ...]:
        """Produce output artifacts for the segments."""


class FfmpegRenderer:
    """Encodes every format with a local ffmpeg."""

    def __init__(self, runner: CommandRunner = run_command) -> None:
        self._runner = runner

    def render(
        self, segments: Sequence[TimedSegment], effects: EncodeEffects
    ) -> Tuple[OutputArtifact, ...]:
        return encode(segments, effects, self._runner)


class ScriptRenderer:
    """Writes the filter graph and ffmpeg argv per format instead of encoding.

    The graph goes to ``<name>.<format>.filtergraph`` and the argv, which
    reads it through ``-filter_complex_script``, to
    ``<name>.<format>.command.json``.
    """

    def render(
        self, segments: Sequence[TimedSegment], effects: EncodeEffects
    ) -> Tuple[OutputArtifact, ...]:
        plan = build_encode_plan(segments, effects)
        output = effects.output
        os.makedirs(output.directory, exist_ok=True)
        artifacts = []
        for output_format in output.formats:
            stem = os.path.join(output.directory, f"{output.name}.{output_format.value}")
            script_path = f"{stem}.filtergraph"
            command_path = f"{stem}.command.json"
            with open(script_path, "w", encoding="utf-8") as script_file:
                script_file.write(plan.filter_complex)
            command = build_encode_command(
                plan,
                output_format,
                output,
                output_path_for(output, output_format),
                filter_script_path=script_path,
            )
            with open(command_path, "w", encoding="utf-8") as command_file:
                json.dump(command, command_file, indent=2)
                command_file.write("\n")
            LOGGER.info("record_demo_video.script.written: %s", command_path)
            artifacts.append(
                OutputArtifact(
                    path=command_path,
                    format=output_format.value,
                    size_bytes=os.path.getsize(command_path),
                )
            )
        return tuple(artifacts)


def select_renderer(kind: RendererKind, runner: CommandRunner = run_command) -> Renderer:
    if kind is RendererKind.SCRIPT:
        return ScriptRenderer()
    return FfmpegRenderer(runner)
