"""Unit tests for config parsing and domain validation."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict

import pytest

from domain.demo_video import (
    INVALID_CONFIG_CODE,
    INVALID_FORMAT_CODE,
    INVALID_THEME_CODE,
    INVALID_TRANSITION_CODE,
    CursorOptions,
    DemoValidationError,
    OutputFormat,
    RendererKind,
    Size,
    SubtitlePosition,
    ThemeOptions,
    TransitionSpec,
    TransitionType,
    parse_demo_config,
    parse_output_formats,
    parse_transition,
    resolve_cursor_config,
    resolve_theme,
)


def minimal_payload(**overrides: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "segments": [{"name": "intro", "video_path": "recordings/intro.webm"}],
    }
    payload.update(overrides)
    return payload


def test_parse_minimal_config_defaults(tmp_path: Path) -> None:
    """Defaults fill every optional field and paths follow the config dir."""
    config = parse_demo_config(minimal_payload(), str(tmp_path))
    assert config.viewport == Size(1280, 800)
    assert config.output.formats == (OutputFormat.MP4,)
    assert config.output.fps == 30
    assert config.output.crf == 28
    assert config.output.name == "demo"
    assert config.output.directory == os.path.join(str(tmp_path), "videos")
    assert config.segments[0].video_path == os.path.join(str(tmp_path), "recordings", "intro.webm")
    assert config.transition is None
    assert config.theme is None
    assert config.cursor is None
    assert config.renderer is RendererKind.FFMPEG
    assert config.output_size == config.viewport


def test_parse_full_config(tmp_path: Path) -> None:
    """Every section parses into its typed form."""
    config = parse_demo_config(
        minimal_payload(
            viewport={"width": 1440, "height": 900},
            output={"format": "both", "fps": 24, "crf": 30, "name": "tour", "dir": "/abs/out",
                    "size": {"width": 1280, "height": 800}},
            transitions={"type": "slideleft", "duration": 0.8},
            overlays={"top": {"text": "Shop"}, "bottom": {"text": "Orders", "height": 90}},
            subtitles={"burn": True, "style": {"position": "top", "font_size": 22}},
            theme="showcase",
            cursor={"size": 24},
            narration={"auto": True, "voice": "nova"},
            renderer="script",
            app_name="Shop",
            segments=[
                {
                    "name": "intro",
                    "video_path": "/abs/intro.webm",
                    "trim_seconds": 1.5,
                    "narration": {"script": "Hello."},
                    "transition": {"type": "wipeup", "duration": 1},
                    "cursor_events": [{"type": "click", "time": 1.0, "x": 5, "y": 6}],
                },
                {"name": "orders", "video_path": "/abs/orders.webm", "narration": {"auto": True}},
            ],
        ),
        str(tmp_path),
    )
    assert config.output.formats == (OutputFormat.MP4, OutputFormat.WEBM)
    assert config.output.directory == "/abs/out"
    assert config.output_size == Size(1280, 800)
    assert config.transition == TransitionSpec(TransitionType.SLIDELEFT, 0.8)
    assert config.overlays.top.height == 120
    assert config.overlays.top.font_size == 42
    assert config.overlays.bottom.height == 90
    assert config.subtitles.burn is True
    assert config.subtitles.style.position is SubtitlePosition.TOP
    assert config.theme.window_chrome is True
    assert config.cursor == CursorOptions(size=24)
    assert config.narration.voice == "nova"
    assert config.renderer is RendererKind.SCRIPT
    assert config.segments[0].transition == TransitionSpec(TransitionType.WIPEUP, 1.0)
    assert config.segments[1].transition is None
    assert config.segments[0].narration_script == "Hello."
    assert config.segments[0].cursor_events[0].x == 5.0
    assert config.segments[1].auto_narrate is True


def test_unknown_transition_type_rejected() -> None:
    """Only named xfade transitions are accepted."""
    with pytest.raises(DemoValidationError) as exc_info:
        parse_transition({"type": "dissolve", "duration": 0.5}, "transitions")
    assert exc_info.value.code == INVALID_TRANSITION_CODE


@pytest.mark.parametrize("duration", [0.05, 5.5])
def test_transition_duration_bounds(duration: float) -> None:
    """Durations must lie in [0.1, 5] seconds."""
    with pytest.raises(DemoValidationError) as exc_info:
        parse_transition({"type": "fade", "duration": duration}, "transitions")
    assert exc_info.value.code == INVALID_TRANSITION_CODE


def test_transition_bounds_inclusive() -> None:
    assert parse_transition({"duration": 0.1}, "t").duration == 0.1
    assert parse_transition({"duration": 5}, "t").duration == 5.0
    assert parse_transition({}, "t") == TransitionSpec()


def test_unknown_keys_rejected(tmp_path: Path) -> None:
    """Typos in config keys fail fast."""
    with pytest.raises(DemoValidationError) as exc_info:
        parse_demo_config(minimal_payload(transition={"type": "fade"}), str(tmp_path))
    assert exc_info.value.code == INVALID_CONFIG_CODE
    assert "transition" in str(exc_info.value)


def test_output_formats() -> None:
    """mp4, webm and both are the only choices."""
    assert parse_output_formats("both") == (OutputFormat.MP4, OutputFormat.WEBM)
    assert parse_output_formats(" WEBM ") == (OutputFormat.WEBM,)
    with pytest.raises(DemoValidationError) as exc_info:
        parse_output_formats("gif")
    assert exc_info.value.code == INVALID_FORMAT_CODE


@pytest.mark.parametrize(
    "payload",
    [
        {"segments": []},
        {"segments": [{"name": "a", "video_path": "a.webm"}, {"name": "a", "video_path": "b.webm"}]},
        {"segments": [{"name": "a", "video_path": "a.webm", "trim_seconds": -1}]},
        {"segments": [{"name": "a", "video_path": "a.webm"}], "output": {"crf": 60}},
        {"segments": [{"name": "a", "video_path": "a.webm"}], "viewport": {"width": 1281, "height": 800}},
        {"segments": [{"name": "a", "video_path": "a.webm"}], "output": {"fps": "30"}},
        {"segments": [{"name": "a"}]},
        [],
    ],
)
def test_invalid_configs(payload: Any, tmp_path: Path) -> None:
    """Structural and range errors are validation failures."""
    with pytest.raises(DemoValidationError):
        parse_demo_config(payload, str(tmp_path))


def test_resolve_theme() -> None:
    """Presets, custom mappings and validation."""
    assert resolve_theme(None) is None
    assert resolve_theme("raw") is None
    showcase = resolve_theme("showcase")
    assert showcase is not None and showcase.background.startswith("linear-gradient(")
    custom = resolve_theme({"background": "#112233", "padding": 0.2})
    assert custom == ThemeOptions(background="#112233", padding=0.2)
    for invalid in ({"background": "red"}, {"padding": 0.5}, {"radius": -1}, "neon"):
        with pytest.raises(DemoValidationError) as exc_info:
            resolve_theme(invalid)
        assert exc_info.value.code == INVALID_THEME_CODE


def test_resolve_cursor_config() -> None:
    """Booleans toggle defaults; mappings merge over them."""
    assert resolve_cursor_config(None) is None
    assert resolve_cursor_config(False) is None
    assert resolve_cursor_config(True) == CursorOptions()
    merged = resolve_cursor_config({"color": "red@0.5", "click_effect": False})
    assert merged == CursorOptions(color="red@0.5", click_effect=False)
