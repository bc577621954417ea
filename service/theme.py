"""Window-frame theme: chrome, rounded corners, shadow and wallpaper."""

from __future__ import annotations

from dataclasses import dataclass
import hashlib
import math
import os
import re
from typing import Dict, Tuple

import numpy as np
from PIL import Image, ImageColor

from domain.demo_video import (
    GRADIENT_PREFIX,
    HEX_COLOR_PATTERN,
    INVALID_THEME_CODE,
    DemoValidationError,
    ThemeOptions,
)
from service.filter_graph import (
    THEMED_LABEL,
    FilterGraph,
    FilterNode,
    filter_op,
    node,
    round_half_up,
)

TITLE_BAR_HEIGHT = 36
TITLE_BAR_COLOR = "#2d2d2d"
TITLE_BAR_SEPARATOR_COLOR = "#1a1a1a"
TRAFFIC_LIGHTS = (("#ff5f57", 16), ("#febc2e", 36), ("#28c840", 56))
TRAFFIC_LIGHT_FONT_SIZE = 12
SHADOW_COLOR = "black@0.45"
SHADOW_BLUR = "18:10"
SHADOW_OFFSET = (4, 8)
FALLBACK_BACKGROUND = "#0a0a0a"
DITHER_SEED = 0

GRADIENT_PATTERN = re.compile(
    r"^linear-gradient\(\s*(?:(?P<angle>-?\d+(?:\.\d+)?)deg\s*,)?(?P<stops>.*)\)$"
)
GRADIENT_STOP_PATTERN = re.compile(
    r"(?P<color>#[0-9a-fA-F]{6})(?:\s+(?P<position>\d+(?:\.\d+)?)%)?"
)


@dataclass(frozen=True)
class WindowGeometry:
    """Placement of the framed window inside the output frame."""

    window_width: int
    content_height: int
    window_height: int
    bar_height: int
    offset_x: int
    offset_y: int


@dataclass(frozen=True)
class GradientSpec:
    angle_degrees: float
    stops: Tuple[Tuple[Tuple[int, int, int], float], ...]


def compute_window_geometry(
    output_width: int, output_height: int, theme: ThemeOptions
) -> WindowGeometry:
    """Size the window from the padding; content keeps the output aspect ratio."""
    bar_height = TITLE_BAR_HEIGHT if theme.window_chrome else 0
    window_width = round_half_up(output_width * (1 - 2 * theme.padding))
    if window_width % 2:
        window_width -= 1
    content_height = round_half_up(window_width * (output_height / output_width))
    if content_height % 2:
        content_height -= 1
    window_height = content_height + bar_height
    if window_height % 2:
        window_height += 1
    return WindowGeometry(
        window_width=window_width,
        content_height=content_height,
        window_height=window_height,
        bar_height=bar_height,
        offset_x=round_half_up((output_width - window_width) / 2),
        offset_y=round_half_up((output_height - window_height) / 2),
    )


def extract_solid_color(background: str) -> str:
    """Return the background's color, or the first color of a gradient."""
    if HEX_COLOR_PATTERN.fullmatch(background):
        return background
    match = re.search(r"#[0-9a-fA-F]{6}", background)
    return match.group(0) if match else FALLBACK_BACKGROUND


def build_corner_predicate(radius: int) -> str:
    """geq expression true for pixels outside any rounded corner."""
    r = radius
    return (
        f"lt(X,{r})*lt(Y,{r})*gt(pow(X-{r},2)+pow(Y-{r},2),pow({r},2))"
        f"+lt(W-X,{r}+1)*lt(Y,{r})*gt(pow(W-X-1-{r},2)+pow(Y-{r},2),pow({r},2))"
        f"+lt(X,{r})*lt(H-Y,{r}+1)*gt(pow(X-{r},2)+pow(H-Y-1-{r},2),pow({r},2))"
        f"+lt(W-X,{r}+1)*lt(H-Y,{r}+1)*gt(pow(W-X-1-{r},2)+pow(H-Y-1-{r},2),pow({r},2))"
    )


def _title_bar_node(geometry: WindowGeometry, fps: int) -> FilterNode:
    dots = [
        filter_op(
            "drawtext",
            text="'●'",
            fontcolor=color,
            fontsize=TRAFFIC_LIGHT_FONT_SIZE,
            x=x_position,
            y="(h-text_h)/2",
        )
        for color, x_position in TRAFFIC_LIGHTS
    ]
    return node(
        (),
        "_tbar",
        filter_op(
            "color",
            TITLE_BAR_COLOR,
            s=f"{geometry.window_width}x{geometry.bar_height}",
            r=fps,
        ),
        filter_op(
            "drawbox",
            x=0,
            y=geometry.bar_height - 1,
            w="iw",
            h=1,
            color=TITLE_BAR_SEPARATOR_COLOR,
            t="fill",
        ),
        *dots,
    )


def build_theme(
    input_label: str,
    output_width: int,
    output_height: int,
    theme: ThemeOptions,
    fps: int = 30,
    background_label: str | None = None,
) -> FilterGraph:
    """Frame ``input_label`` as a floating window over a background.

    ``background_label`` names a pre-rendered wallpaper stream; without it a
    solid color source is used. Infinite sources end with the content through
    ``shortest=1``.
    """
    geometry = compute_window_geometry(output_width, output_height, theme)
    nodes: list[FilterNode] = [
        node(
            (input_label,),
            "_tcontent",
            filter_op("scale", geometry.window_width, geometry.content_height),
        )
    ]

    if geometry.bar_height > 0:
        nodes.append(_title_bar_node(geometry, fps))
        nodes.append(
            node(("_tbar", "_tcontent"), "_twindow", filter_op("vstack", inputs=2, shortest=1))
        )
    else:
        nodes.append(node(("_tcontent",), "_twindow", filter_op("copy")))

    nodes.append(
        node(
            ("_twindow",),
            "_trounded",
            filter_op("format", "rgba"),
            filter_op(
                "geq",
                r="'r(X,Y)'",
                g="'g(X,Y)'",
                b="'b(X,Y)'",
                a=f"'if({build_corner_predicate(theme.radius)},0,255)'",
            ),
        )
    )

    if background_label is None:
        nodes.append(
            node(
                (),
                "_tbg",
                filter_op(
                    "color",
                    extract_solid_color(theme.background),
                    s=f"{output_width}x{output_height}",
                    r=fps,
                ),
            )
        )
    else:
        nodes.append(
            node(
                (background_label,),
                "_tbg",
                filter_op("scale", output_width, output_height),
                filter_op("setsar", 1),
            )
        )

    canvas_label = "_tbg"
    if theme.shadow:
        shadow_x, shadow_y = SHADOW_OFFSET
        nodes.append(
            node(
                (),
                "_tshadow",
                filter_op(
                    "color",
                    SHADOW_COLOR,
                    s=f"{geometry.window_width}x{geometry.window_height}",
                    r=fps,
                ),
                filter_op("boxblur", SHADOW_BLUR),
            )
        )
        nodes.append(
            node(
                ("_tbg", "_tshadow"),
                "_tshadowed",
                filter_op(
                    "overlay",
                    geometry.offset_x + shadow_x,
                    geometry.offset_y + shadow_y,
                ),
            )
        )
        canvas_label = "_tshadowed"

    nodes.append(
        node(
            (canvas_label, "_trounded"),
            THEMED_LABEL,
            filter_op("overlay", geometry.offset_x, geometry.offset_y, shortest=1),
        )
    )
    return FilterGraph(nodes=tuple(nodes), output=THEMED_LABEL)


def is_gradient(background: str) -> bool:
    return background.strip().startswith(GRADIENT_PREFIX)


def parse_gradient(background: str) -> GradientSpec:
    """Parse ``linear-gradient(<angle>deg, #rrggbb <pos>%, ...)``.

    Stops without a position are spread evenly, as CSS does.
    """
    match = GRADIENT_PATTERN.fullmatch(background.strip())
    if not match:
        raise DemoValidationError(INVALID_THEME_CODE, f"invalid gradient: {background!r}")
    stop_matches = list(GRADIENT_STOP_PATTERN.finditer(match.group("stops")))
    if len(stop_matches) < 2:
        raise DemoValidationError(
            INVALID_THEME_CODE, f"gradient needs at least two color stops: {background!r}"
        )
    angle = float(match.group("angle")) if match.group("angle") else 180.0
    last_index = len(stop_matches) - 1
    stops = []
    for index, stop_match in enumerate(stop_matches):
        position_text = stop_match.group("position")
        position = float(position_text) / 100 if position_text else index / last_index
        stops.append((ImageColor.getrgb(stop_match.group("color"))[:3], position))
    return GradientSpec(angle_degrees=angle, stops=tuple(stops))


def render_gradient(gradient: GradientSpec, width: int, height: int) -> Image.Image:
    """Render a dithered multi-stop linear gradient.

    The angle follows CSS: 0deg points up, 90deg right. Noise in
    [-0.5, 0.5) per channel hides banding; the seed is fixed so the same
    gradient always produces the same pixels.
    """
    radians = math.radians(gradient.angle_degrees)
    direction_x = math.sin(radians)
    direction_y = -math.cos(radians)
    line_length = abs(width * direction_x) + abs(height * direction_y)
    if line_length == 0:
        line_length = 1.0

    yy, xx = np.mgrid[0:height, 0:width].astype(np.float32)
    projected = ((xx + 0.5 - width / 2) * direction_x + (yy + 0.5 - height / 2) * direction_y)
    alpha = np.clip(projected / line_length + 0.5, 0.0, 1.0)

    positions = np.array([position for _, position in gradient.stops], dtype=np.float32)
    colors = np.array([color for color, _ in gradient.stops], dtype=np.float32)
    gradient_array = np.zeros((height, width, 3), dtype=np.float32)
    for channel in range(3):
        gradient_array[:, :, channel] = np.interp(alpha, positions, colors[:, channel])

    rng = np.random.default_rng(DITHER_SEED)
    gradient_array += rng.random((height, width, 3), dtype=np.float32) - 0.5
    np.clip(gradient_array, 0, 255, out=gradient_array)
    return Image.fromarray(gradient_array.astype(np.uint8))


class WallpaperCache:
    """Gradient wallpapers rendered once per (background, size).

    Owned by the pipeline; an entry is re-rendered when its file disappears.
    """

    def __init__(self, directory: str) -> None:
        self._directory = directory
        self._entries: Dict[Tuple[str, int, int], str] = {}
        self.render_count = 0

    def get(self, background: str, width: int, height: int) -> str:
        key = (background.strip(), width, height)
        cached = self._entries.get(key)
        if cached is not None and os.path.isfile(cached):
            return cached
        os.makedirs(self._directory, exist_ok=True)
        digest = hashlib.sha1(key[0].encode("utf-8")).hexdigest()[:12]
        image_path = os.path.join(
            self._directory, f"wallpaper-{digest}-{width}x{height}.png"
        )
        render_gradient(parse_gradient(background), width, height).save(image_path)
        self.render_count += 1
        self._entries[key] = image_path
        return image_path


def needs_wallpaper(theme: ThemeOptions | None) -> bool:
    return theme is not None and is_gradient(theme.background)
