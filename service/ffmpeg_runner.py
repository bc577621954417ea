"""External ffmpeg/ffprobe process helpers."""

from __future__ import annotations

import shutil
import subprocess
from typing import Callable, Sequence

from domain.demo_video import DemoPipelineError

FFMPEG_NOT_FOUND_CODE = "demo_video.ffmpeg.not_found"
FFMPEG_EXEC_CODE = "demo_video.ffmpeg.exec_error"
FFMPEG_PROCESS_CODE = "demo_video.ffmpeg.process_failed"
FFMPEG_PROBE_CODE = "demo_video.ffmpeg.probe_error"

CommandRunner = Callable[[Sequence[str]], "subprocess.CompletedProcess[str]"]


def run_command(args: Sequence[str]) -> subprocess.CompletedProcess[str]:
    """Run a command to completion, capturing stdout and stderr as text."""
    try:
        return subprocess.run(
            list(args),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            check=False,
        )
    except FileNotFoundError as exc:
        raise DemoPipelineError(FFMPEG_NOT_FOUND_CODE, f"{args[0]} not found") from exc


def ensure_tool_available(tool_name: str) -> None:
    """Ensure an ffmpeg suite binary is installed and executable."""
    tool_path = shutil.which(tool_name)
    if not tool_path:
        raise DemoPipelineError(FFMPEG_NOT_FOUND_CODE, f"{tool_name} not on PATH")
    try:
        subprocess.run(
            [tool_path, "-version"],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=True,
        )
    except Exception as exc:
        raise DemoPipelineError(
            FFMPEG_EXEC_CODE, f"{tool_name} exists but could not be executed"
        ) from exc


def ensure_ffmpeg_available() -> None:
    ensure_tool_available("ffmpeg")


def ensure_ffprobe_available() -> None:
    ensure_tool_available("ffprobe")


def run_ffmpeg(args: Sequence[str], runner: CommandRunner, context: str) -> None:
    """Run an ffmpeg command and raise with its stderr on a nonzero exit."""
    result = runner(args)
    if result.returncode != 0:
        raise DemoPipelineError(
            FFMPEG_PROCESS_CODE,
            f"ffmpeg failed while {context}: {(result.stderr or '').strip()}",
        )
