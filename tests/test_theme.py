"""Unit tests for the window-frame theme and gradient wallpapers."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from domain.demo_video import (
    SHOWCASE_BACKGROUND,
    DemoValidationError,
    ThemeOptions,
    resolve_theme,
)
from service.filter_graph import compose, passthrough
from service.theme import (
    WallpaperCache,
    build_corner_predicate,
    build_theme,
    compute_window_geometry,
    extract_solid_color,
    is_gradient,
    needs_wallpaper,
    parse_gradient,
    render_gradient,
)


def test_window_geometry_is_centered_and_even() -> None:
    """Padding shrinks the window symmetrically and keeps even sizes."""
    geometry = compute_window_geometry(1280, 800, ThemeOptions(padding=0.1))
    assert geometry.window_width == 1024
    assert geometry.content_height == 640
    assert geometry.window_height == 640
    assert geometry.offset_x == 128
    assert geometry.offset_y == 80


def test_window_geometry_with_chrome() -> None:
    """The title bar adds to the window height."""
    geometry = compute_window_geometry(1280, 800, ThemeOptions(padding=0.1, window_chrome=True))
    assert geometry.bar_height == 36
    assert geometry.window_height == 676
    assert geometry.offset_y == 62


def test_build_theme_solid_background_graph() -> None:
    """A solid theme frames the content and ends in [themed]."""
    graph = build_theme("outv", 1280, 800, ThemeOptions(), fps=30)
    assert graph.output == "themed"
    assert graph.inputs == ("outv",)
    serialized = graph.serialize()
    assert "[outv]scale=1024:640[_tcontent]" in serialized
    assert "color=#0a0a0a:s=1280x800:r=30[_tbg]" in serialized
    assert "boxblur=18:10[_tshadow]" in serialized
    assert "[_tbg][_tshadow]overlay=132:88[_tshadowed]" in serialized
    assert serialized.endswith("[_tshadowed][_trounded]overlay=128:80:shortest=1[themed]")
    compose(passthrough("0:v", "outv"), graph)


def test_build_theme_chrome_and_wallpaper() -> None:
    """Window chrome stacks a title bar; a wallpaper stream replaces the color source."""
    theme = resolve_theme("showcase")
    assert theme is not None
    graph = build_theme("outv", 1280, 800, theme, fps=25, background_label="2:v")
    serialized = graph.serialize()
    assert "color=#2d2d2d:s=" in serialized
    assert "[_tbar][_tcontent]vstack=inputs=2:shortest=1[_twindow]" in serialized
    assert "[2:v]scale=1280:800,setsar=1[_tbg]" in serialized
    assert graph.inputs == ("outv", "2:v")


def test_build_theme_without_shadow() -> None:
    """Without a shadow the window overlays the background directly."""
    graph = build_theme("outv", 1280, 800, ThemeOptions(shadow=False))
    assert graph.count("boxblur") == 0
    assert graph.nodes[-1].inputs == ("_tbg", "_trounded")


def test_corner_predicate_mentions_radius() -> None:
    """The predicate is parameterized by the radius."""
    predicate = build_corner_predicate(12)
    assert "pow(12,2)" in predicate
    assert predicate.count("gt(") == 4


def test_extract_solid_color() -> None:
    """Gradients fall back to their first stop."""
    assert extract_solid_color("#123456") == "#123456"
    assert extract_solid_color(SHOWCASE_BACKGROUND) == "#0f0c29"


def test_parse_gradient() -> None:
    """Angles and stop positions follow CSS."""
    gradient = parse_gradient(SHOWCASE_BACKGROUND)
    assert gradient.angle_degrees == 135.0
    assert gradient.stops[0] == ((15, 12, 41), 0.0)
    assert gradient.stops[1][1] == 0.5
    evenly = parse_gradient("linear-gradient(#000000, #ffffff, #ff0000)")
    assert evenly.angle_degrees == 180.0
    assert [position for _, position in evenly.stops] == [0.0, 0.5, 1.0]
    with pytest.raises(DemoValidationError):
        parse_gradient("linear-gradient(90deg, #000000)")


def test_render_gradient_is_deterministic() -> None:
    """The same gradient renders the same pixels."""
    gradient = parse_gradient("linear-gradient(90deg, #000000 0%, #ffffff 100%)")
    first = np.asarray(render_gradient(gradient, 64, 16))
    second = np.asarray(render_gradient(gradient, 64, 16))
    assert first.shape == (16, 64, 3)
    assert np.array_equal(first, second)
    assert first[:, :4].mean() < 20
    assert first[:, -4:].mean() > 235


def test_wallpaper_cache_renders_once(tmp_path: Path) -> None:
    """A wallpaper is rendered once and re-rendered only when its file is gone."""
    cache = WallpaperCache(str(tmp_path / "wallpaper"))
    first = cache.get(SHOWCASE_BACKGROUND, 64, 40)
    second = cache.get(SHOWCASE_BACKGROUND, 64, 40)
    assert first == second
    assert cache.render_count == 1
    with Image.open(first) as image:
        assert image.size == (64, 40)
    Path(first).unlink()
    cache.get(SHOWCASE_BACKGROUND, 64, 40)
    assert cache.render_count == 2


def test_needs_wallpaper() -> None:
    """Only gradient backgrounds need a rendered wallpaper."""
    assert needs_wallpaper(resolve_theme("showcase"))
    assert not needs_wallpaper(ThemeOptions())
    assert not needs_wallpaper(None)
    assert is_gradient(SHOWCASE_BACKGROUND)
