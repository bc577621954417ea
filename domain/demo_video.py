"""Domain types and config parsing for record_demo_video."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import math
import os
import re
from typing import Any, Mapping, Sequence, Tuple

INVALID_CONFIG_CODE = "demo_video.input.invalid_config"
INVALID_TRANSITION_CODE = "demo_video.input.invalid_transition"
INVALID_FORMAT_CODE = "demo_video.input.invalid_format"
INVALID_SEGMENT_CODE = "demo_video.input.invalid_segment"
INVALID_THEME_CODE = "demo_video.input.invalid_theme"
INVALID_CURSOR_CODE = "demo_video.input.invalid_cursor"
INVALID_SUBTITLE_CODE = "demo_video.input.invalid_subtitles"
INVALID_SRT_CODE = "demo_video.input.invalid_srt"
INVALID_RENDERER_CODE = "demo_video.input.invalid_renderer"
INPUT_FILE_CODE = "demo_video.input.file_error"
AUDIO_FILE_CODE = "demo_video.input.audio_track"

TRANSITION_MIN_SECONDS = 0.1
TRANSITION_MAX_SECONDS = 5.0
DEFAULT_TRANSITION_SECONDS = 0.5
CRF_MIN = 0
CRF_MAX = 51
THEME_PADDING_MAX = 0.4
HEX_COLOR_PATTERN = re.compile(r"^#[0-9a-fA-F]{6}$")
GRADIENT_PREFIX = "linear-gradient("
SHOWCASE_BACKGROUND = "linear-gradient(135deg, #0f0c29 0%, #302b63 50%, #24243e 100%)"


class DemoValidationError(ValueError):
    """Validation error with a stable error code."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


class DemoPipelineError(RuntimeError):
    """Runtime error with a stable error code."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


class UpstreamError(DemoPipelineError):
    """Failure reported by an external data source.

    ``retryable`` is True for transient conditions (timeouts, throttling,
    network errors) and False when repeating the call cannot succeed.
    """

    def __init__(self, code: str, message: str, retryable: bool) -> None:
        super().__init__(code, message)
        self.retryable = retryable


class TransitionType(str, Enum):
    """Named cross-fade styles understood by the xfade filter."""

    FADE = "fade"
    FADEBLACK = "fadeblack"
    FADEWHITE = "fadewhite"
    SLIDELEFT = "slideleft"
    SLIDERIGHT = "slideright"
    SLIDEUP = "slideup"
    SLIDEDOWN = "slidedown"
    SMOOTHLEFT = "smoothleft"
    SMOOTHRIGHT = "smoothright"
    SMOOTHUP = "smoothup"
    SMOOTHDOWN = "smoothdown"
    WIPELEFT = "wipeleft"
    WIPERIGHT = "wiperight"
    WIPEUP = "wipeup"
    WIPEDOWN = "wipedown"


class OutputFormat(str, Enum):
    """Supported container/codec pairs."""

    MP4 = "mp4"
    WEBM = "webm"


class SubtitlePosition(str, Enum):
    """Vertical anchor for burned-in captions."""

    BOTTOM = "bottom"
    TOP = "top"


class RendererKind(str, Enum):
    """Available render backends."""

    FFMPEG = "ffmpeg"
    SCRIPT = "script"


class CursorEventType(str, Enum):
    """Recorded cursor interaction kinds."""

    MOVE = "move"
    CLICK = "click"
    SCROLL = "scroll"
    IDLE = "idle"


@dataclass(frozen=True)
class Size:
    """Pixel dimensions."""

    width: int
    height: int

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise DemoValidationError(
                INVALID_CONFIG_CODE, "width and height must be positive"
            )


@dataclass(frozen=True)
class TransitionSpec:
    """Cross-fade applied at one segment boundary."""

    type: TransitionType = TransitionType.FADE
    duration: float = DEFAULT_TRANSITION_SECONDS

    def __post_init__(self) -> None:
        if not isinstance(self.type, TransitionType):
            raise DemoValidationError(
                INVALID_TRANSITION_CODE, f"transition type is invalid: {self.type!r}"
            )
        if not TRANSITION_MIN_SECONDS <= self.duration <= TRANSITION_MAX_SECONDS:
            raise DemoValidationError(
                INVALID_TRANSITION_CODE,
                "transition duration must be between "
                f"{TRANSITION_MIN_SECONDS} and {TRANSITION_MAX_SECONDS} seconds",
            )


@dataclass(frozen=True)
class CursorEvent:
    """Cursor interaction, timed in seconds since clean content start."""

    type: CursorEventType
    time: float
    x: float
    y: float
    target_width: float | None = None
    target_height: float | None = None

    def __post_init__(self) -> None:
        if self.time < 0:
            raise DemoValidationError(
                INVALID_CURSOR_CODE, "cursor event time must be non-negative"
            )


@dataclass(frozen=True)
class Segment:
    """One recorded view and the portion of it to keep.

    ``transition`` is the outgoing transition into the next segment.
    """

    name: str
    video_path: str
    trim_seconds: float = 0.0
    narration_script: str | None = None
    auto_narrate: bool = False
    transition: TransitionSpec | None = None
    cursor_events: Tuple[CursorEvent, ...] = ()

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise DemoValidationError(INVALID_SEGMENT_CODE, "segment name must be non-empty")
        if not self.video_path.strip():
            raise DemoValidationError(
                INVALID_SEGMENT_CODE, f"segment {self.name!r}: video_path must be non-empty"
            )
        if self.trim_seconds < 0:
            raise DemoValidationError(
                INVALID_SEGMENT_CODE,
                f"segment {self.name!r}: trim_seconds must be non-negative",
            )


@dataclass(frozen=True)
class TimedSegment:
    """Segment paired with its resolved clean duration.

    ``error_code`` is set when the duration could not be probed; the duration
    is then zero and the segment contributes nothing to the timeline.
    """

    segment: Segment
    duration: float
    error_code: str | None = None

    @property
    def is_degenerate(self) -> bool:
        return self.duration <= 0


@dataclass(frozen=True)
class OverlayBand:
    """Text band drawn across the full width of the video."""

    text: str
    height: int
    font_size: int

    def __post_init__(self) -> None:
        if self.height <= 0:
            raise DemoValidationError(INVALID_CONFIG_CODE, "overlay height must be positive")
        if self.font_size <= 0:
            raise DemoValidationError(
                INVALID_CONFIG_CODE, "overlay font_size must be positive"
            )


@dataclass(frozen=True)
class OverlaySpec:
    top: OverlayBand | None = None
    bottom: OverlayBand | None = None


@dataclass(frozen=True)
class SubtitleStyle:
    """Caption style; colors use the ASS &HAABBGGRR notation."""

    font_size: int = 18
    font_color: str = "&H00FFFFFF"
    bg_color: str = "&H80000000"
    position: SubtitlePosition = SubtitlePosition.BOTTOM

    def __post_init__(self) -> None:
        if self.font_size <= 0:
            raise DemoValidationError(
                INVALID_SUBTITLE_CODE, "subtitle font_size must be positive"
            )


@dataclass(frozen=True)
class SubtitlesConfig:
    enabled: bool = True
    burn: bool = False
    style: SubtitleStyle = field(default_factory=SubtitleStyle)


@dataclass(frozen=True)
class ThemeOptions:
    """Resolved window-frame theme."""

    background: str = "#0a0a0a"
    padding: float = 0.10
    radius: int = 16
    shadow: bool = True
    window_chrome: bool = False

    def __post_init__(self) -> None:
        background = self.background.strip()
        if not (
            HEX_COLOR_PATTERN.fullmatch(background)
            or background.startswith(GRADIENT_PREFIX)
        ):
            raise DemoValidationError(
                INVALID_THEME_CODE,
                f"theme background must be #RRGGBB or linear-gradient(...): {self.background!r}",
            )
        if not 0 <= self.padding <= THEME_PADDING_MAX:
            raise DemoValidationError(
                INVALID_THEME_CODE, f"theme padding must be between 0 and {THEME_PADDING_MAX}"
            )
        if self.radius < 0:
            raise DemoValidationError(INVALID_THEME_CODE, "theme radius must be non-negative")


@dataclass(frozen=True)
class CursorOptions:
    """Cursor highlight appearance."""

    size: int = 20
    color: str = "black@0.8"
    click_effect: bool = True
    highlight_seconds: float = 0.6

    def __post_init__(self) -> None:
        if self.size <= 0:
            raise DemoValidationError(INVALID_CURSOR_CODE, "cursor size must be positive")
        if self.highlight_seconds <= 0:
            raise DemoValidationError(
                INVALID_CURSOR_CODE, "cursor highlight_seconds must be positive"
            )


@dataclass(frozen=True)
class NarrationConfig:
    auto: bool = False
    voice: str = "coral"
    speed: float = 1.0
    model: str = "gpt-4o-mini-tts"
    instructions: str | None = None

    def __post_init__(self) -> None:
        if not 0.25 <= self.speed <= 4.0:
            raise DemoValidationError(
                INVALID_CONFIG_CODE, "narration speed must be between 0.25 and 4.0"
            )


@dataclass(frozen=True)
class OutputConfig:
    """Where and how the final video is encoded."""

    formats: Tuple[OutputFormat, ...] = (OutputFormat.MP4,)
    fps: int = 30
    crf: int = 28
    name: str = "demo"
    directory: str = "./videos"
    size: Size | None = None

    def __post_init__(self) -> None:
        if not self.formats:
            raise DemoValidationError(INVALID_FORMAT_CODE, "at least one output format is required")
        for output_format in self.formats:
            if not isinstance(output_format, OutputFormat):
                raise DemoValidationError(
                    INVALID_FORMAT_CODE, f"output format is invalid: {output_format!r}"
                )
        if self.fps <= 0:
            raise DemoValidationError(INVALID_CONFIG_CODE, "output fps must be positive")
        if not CRF_MIN <= self.crf <= CRF_MAX:
            raise DemoValidationError(
                INVALID_CONFIG_CODE, f"output crf must be between {CRF_MIN} and {CRF_MAX}"
            )
        if not self.name.strip() or os.sep in self.name:
            raise DemoValidationError(
                INVALID_CONFIG_CODE, "output name must be a non-empty file stem"
            )
        if not self.directory.strip():
            raise DemoValidationError(INVALID_CONFIG_CODE, "output dir must be non-empty")


@dataclass(frozen=True)
class DemoConfig:
    """Validated configuration for record_demo_video."""

    segments: Tuple[Segment, ...]
    viewport: Size = Size(1280, 800)
    output: OutputConfig = field(default_factory=OutputConfig)
    transition: TransitionSpec | None = None
    overlays: OverlaySpec | None = None
    subtitles: SubtitlesConfig | None = None
    theme: ThemeOptions | None = None
    cursor: CursorOptions | None = None
    narration: NarrationConfig | None = None
    audio_track: str | None = None
    renderer: RendererKind = RendererKind.FFMPEG
    app_name: str | None = None

    def __post_init__(self) -> None:
        if not self.segments:
            raise DemoValidationError(INVALID_CONFIG_CODE, "at least one segment is required")
        names = [segment.name for segment in self.segments]
        if len(set(names)) != len(names):
            raise DemoValidationError(INVALID_SEGMENT_CODE, "segment names must be unique")

    @property
    def output_size(self) -> Size:
        return self.output.size or self.viewport


@dataclass(frozen=True)
class SubtitleEntry:
    """Caption on the whole output timeline; indices start at 1."""

    index: int
    start_seconds: float
    end_seconds: float
    text: str

    def __post_init__(self) -> None:
        if self.index < 1:
            raise DemoValidationError(INVALID_SRT_CODE, "subtitle index must start at 1")
        if self.start_seconds < 0:
            raise DemoValidationError(
                INVALID_SRT_CODE, "subtitle start time must be non-negative"
            )
        if self.end_seconds <= self.start_seconds:
            raise DemoValidationError(
                INVALID_SRT_CODE, "subtitle end time must be after start time"
            )
        if not self.text.strip():
            raise DemoValidationError(INVALID_SRT_CODE, "subtitle text must be non-empty")


@dataclass(frozen=True)
class OutputArtifact:
    """One encoded output file."""

    path: str
    format: str
    size_bytes: int

    @property
    def size_mb(self) -> float:
        return self.size_bytes / 1024 / 1024


def resolve_theme(value: Any) -> ThemeOptions | None:
    """Resolve a theme value: None/"raw", "showcase" or a custom mapping."""
    if value is None or value == "raw":
        return None
    if value == "showcase":
        return ThemeOptions(
            background=SHOWCASE_BACKGROUND,
            padding=0.08,
            radius=12,
            shadow=True,
            window_chrome=True,
        )
    if isinstance(value, ThemeOptions):
        return value
    if not isinstance(value, Mapping):
        raise DemoValidationError(
            INVALID_THEME_CODE, f"theme must be 'raw', 'showcase' or an object: {value!r}"
        )
    _reject_unknown_keys(
        value, {"background", "padding", "radius", "shadow", "window_chrome"}, "theme"
    )
    return ThemeOptions(
        background=_read_str(value, "background", "theme", "#0a0a0a"),
        padding=_read_number(value, "padding", "theme", 0.10),
        radius=_read_int(value, "radius", "theme", 16),
        shadow=_read_bool(value, "shadow", "theme", True),
        window_chrome=_read_bool(value, "window_chrome", "theme", False),
    )


def resolve_cursor_config(value: Any) -> CursorOptions | None:
    """Resolve a cursor value: bool or a mapping merged with defaults."""
    if value is None or value is False:
        return None
    if value is True:
        return CursorOptions()
    if not isinstance(value, Mapping):
        raise DemoValidationError(
            INVALID_CURSOR_CODE, f"cursor must be a boolean or an object: {value!r}"
        )
    _reject_unknown_keys(
        value, {"size", "color", "click_effect", "highlight_seconds"}, "cursor"
    )
    defaults = CursorOptions()
    return CursorOptions(
        size=_read_int(value, "size", "cursor", defaults.size),
        color=_read_str(value, "color", "cursor", defaults.color),
        click_effect=_read_bool(value, "click_effect", "cursor", defaults.click_effect),
        highlight_seconds=_read_number(
            value, "highlight_seconds", "cursor", defaults.highlight_seconds
        ),
    )


def parse_transition(value: Any, field_name: str) -> TransitionSpec:
    """Parse a {type, duration} mapping into a TransitionSpec."""
    if not isinstance(value, Mapping):
        raise DemoValidationError(
            INVALID_TRANSITION_CODE, f"{field_name} must be an object"
        )
    _reject_unknown_keys(value, {"type", "duration"}, field_name)
    type_value = _read_str(value, "type", field_name, TransitionType.FADE.value)
    try:
        transition_type = TransitionType(type_value.strip().lower())
    except ValueError as exc:
        allowed = ", ".join(item.value for item in TransitionType)
        raise DemoValidationError(
            INVALID_TRANSITION_CODE,
            f"{field_name}.type must be one of {allowed}: {type_value!r}",
        ) from exc
    duration = _read_number(value, "duration", field_name, DEFAULT_TRANSITION_SECONDS)
    if not TRANSITION_MIN_SECONDS <= duration <= TRANSITION_MAX_SECONDS:
        raise DemoValidationError(
            INVALID_TRANSITION_CODE,
            f"{field_name}.duration must be between {TRANSITION_MIN_SECONDS} "
            f"and {TRANSITION_MAX_SECONDS}: {duration!r}",
        )
    return TransitionSpec(type=transition_type, duration=duration)


def parse_output_formats(value: str) -> Tuple[OutputFormat, ...]:
    """Parse "mp4", "webm" or "both" into output formats."""
    normalized = value.strip().lower()
    if normalized == "both":
        return (OutputFormat.MP4, OutputFormat.WEBM)
    try:
        return (OutputFormat(normalized),)
    except ValueError as exc:
        raise DemoValidationError(
            INVALID_FORMAT_CODE, f"output.format must be mp4, webm or both: {value!r}"
        ) from exc


def parse_renderer_kind(value: str) -> RendererKind:
    normalized = value.strip().lower()
    try:
        return RendererKind(normalized)
    except ValueError as exc:
        raise DemoValidationError(
            INVALID_RENDERER_CODE, f"invalid renderer: {value!r}"
        ) from exc


def parse_demo_config(payload: Any, base_dir: str) -> DemoConfig:
    """Parse a decoded JSON document into a DemoConfig.

    Relative paths resolve against ``base_dir``. Every field is checked here so
    that an invalid document is rejected before any media work starts.
    """
    if not isinstance(payload, Mapping):
        raise DemoValidationError(INVALID_CONFIG_CODE, "config must be a JSON object")
    _reject_unknown_keys(
        payload,
        {
            "viewport",
            "output",
            "transitions",
            "overlays",
            "subtitles",
            "theme",
            "cursor",
            "narration",
            "audio_track",
            "renderer",
            "app_name",
            "segments",
        },
        "config",
    )

    viewport = Size(1280, 800)
    if payload.get("viewport") is not None:
        viewport = _parse_size(payload["viewport"], "viewport")

    transition = None
    if payload.get("transitions") is not None:
        transition = parse_transition(payload["transitions"], "transitions")

    segments_value = payload.get("segments")
    if not isinstance(segments_value, Sequence) or isinstance(segments_value, str):
        raise DemoValidationError(INVALID_CONFIG_CODE, "segments must be a list")
    segments = tuple(
        _parse_segment(item, f"segments[{index}]", base_dir)
        for index, item in enumerate(segments_value)
    )

    audio_track = payload.get("audio_track")
    if audio_track is not None:
        audio_track = _resolve_path(_require_str(audio_track, "audio_track"), base_dir)

    renderer = RendererKind.FFMPEG
    if payload.get("renderer") is not None:
        renderer = parse_renderer_kind(_require_str(payload["renderer"], "renderer"))

    app_name = payload.get("app_name")
    if app_name is not None:
        app_name = _require_str(app_name, "app_name")

    return DemoConfig(
        segments=segments,
        viewport=viewport,
        output=_parse_output(payload.get("output"), base_dir),
        transition=transition,
        overlays=_parse_overlays(payload.get("overlays")),
        subtitles=_parse_subtitles(payload.get("subtitles")),
        theme=resolve_theme(payload.get("theme")),
        cursor=resolve_cursor_config(payload.get("cursor")),
        narration=_parse_narration(payload.get("narration")),
        audio_track=audio_track,
        renderer=renderer,
        app_name=app_name,
    )


def _parse_segment(value: Any, field_name: str, base_dir: str) -> Segment:
    if not isinstance(value, Mapping):
        raise DemoValidationError(INVALID_SEGMENT_CODE, f"{field_name} must be an object")
    _reject_unknown_keys(
        value,
        {"name", "video_path", "trim_seconds", "narration", "transition", "cursor_events"},
        field_name,
    )
    name = _require_str(value.get("name"), f"{field_name}.name")
    video_path = _resolve_path(
        _require_str(value.get("video_path"), f"{field_name}.video_path"), base_dir
    )
    trim_seconds = _read_number(value, "trim_seconds", field_name, 0.0)

    narration_script = None
    auto_narrate = False
    narration = value.get("narration")
    if narration is not None:
        if not isinstance(narration, Mapping):
            raise DemoValidationError(
                INVALID_SEGMENT_CODE, f"{field_name}.narration must be an object"
            )
        _reject_unknown_keys(narration, {"script", "auto"}, f"{field_name}.narration")
        script = narration.get("script")
        if script is not None:
            narration_script = _require_str(script, f"{field_name}.narration.script")
        auto_narrate = _read_bool(narration, "auto", f"{field_name}.narration", False)

    transition = None
    if value.get("transition") is not None:
        transition = parse_transition(value["transition"], f"{field_name}.transition")

    events_value = value.get("cursor_events") or []
    if not isinstance(events_value, Sequence) or isinstance(events_value, str):
        raise DemoValidationError(
            INVALID_CURSOR_CODE, f"{field_name}.cursor_events must be a list"
        )
    cursor_events = tuple(
        _parse_cursor_event(item, f"{field_name}.cursor_events[{index}]")
        for index, item in enumerate(events_value)
    )

    return Segment(
        name=name,
        video_path=video_path,
        trim_seconds=trim_seconds,
        narration_script=narration_script,
        auto_narrate=auto_narrate,
        transition=transition,
        cursor_events=cursor_events,
    )


def _parse_cursor_event(value: Any, field_name: str) -> CursorEvent:
    if not isinstance(value, Mapping):
        raise DemoValidationError(INVALID_CURSOR_CODE, f"{field_name} must be an object")
    _reject_unknown_keys(
        value, {"type", "time", "x", "y", "target_width", "target_height"}, field_name
    )
    type_value = _require_str(value.get("type"), f"{field_name}.type")
    try:
        event_type = CursorEventType(type_value.strip().lower())
    except ValueError as exc:
        raise DemoValidationError(
            INVALID_CURSOR_CODE, f"{field_name}.type is invalid: {type_value!r}"
        ) from exc
    target_width = value.get("target_width")
    target_height = value.get("target_height")
    return CursorEvent(
        type=event_type,
        time=_read_number(value, "time", field_name, None),
        x=_read_number(value, "x", field_name, None),
        y=_read_number(value, "y", field_name, None),
        target_width=None
        if target_width is None
        else _read_number(value, "target_width", field_name, None),
        target_height=None
        if target_height is None
        else _read_number(value, "target_height", field_name, None),
    )


def _parse_output(value: Any, base_dir: str) -> OutputConfig:
    if value is None:
        return OutputConfig(directory=_resolve_path("./videos", base_dir))
    if not isinstance(value, Mapping):
        raise DemoValidationError(INVALID_CONFIG_CODE, "output must be an object")
    _reject_unknown_keys(value, {"format", "fps", "crf", "name", "dir", "size"}, "output")
    size = None
    if value.get("size") is not None:
        size = _parse_size(value["size"], "output.size")
    return OutputConfig(
        formats=parse_output_formats(_read_str(value, "format", "output", "mp4")),
        fps=_read_int(value, "fps", "output", 30),
        crf=_read_int(value, "crf", "output", 28),
        name=_read_str(value, "name", "output", "demo"),
        directory=_resolve_path(_read_str(value, "dir", "output", "./videos"), base_dir),
        size=size,
    )


def _parse_overlays(value: Any) -> OverlaySpec | None:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise DemoValidationError(INVALID_CONFIG_CODE, "overlays must be an object")
    _reject_unknown_keys(value, {"top", "bottom"}, "overlays")
    return OverlaySpec(
        top=_parse_band(value.get("top"), "overlays.top", 120, 42),
        bottom=_parse_band(value.get("bottom"), "overlays.bottom", 100, 32),
    )


def _parse_band(
    value: Any, field_name: str, default_height: int, default_font_size: int
) -> OverlayBand | None:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise DemoValidationError(INVALID_CONFIG_CODE, f"{field_name} must be an object")
    _reject_unknown_keys(value, {"text", "height", "font_size"}, field_name)
    return OverlayBand(
        text=_require_str(value.get("text"), f"{field_name}.text"),
        height=_read_int(value, "height", field_name, default_height),
        font_size=_read_int(value, "font_size", field_name, default_font_size),
    )


def _parse_subtitles(value: Any) -> SubtitlesConfig | None:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise DemoValidationError(INVALID_SUBTITLE_CODE, "subtitles must be an object")
    _reject_unknown_keys(value, {"enabled", "burn", "style"}, "subtitles")
    style = SubtitleStyle()
    style_value = value.get("style")
    if style_value is not None:
        if not isinstance(style_value, Mapping):
            raise DemoValidationError(
                INVALID_SUBTITLE_CODE, "subtitles.style must be an object"
            )
        _reject_unknown_keys(
            style_value,
            {"font_size", "font_color", "bg_color", "position"},
            "subtitles.style",
        )
        position_value = _read_str(style_value, "position", "subtitles.style", "bottom")
        try:
            position = SubtitlePosition(position_value.strip().lower())
        except ValueError as exc:
            raise DemoValidationError(
                INVALID_SUBTITLE_CODE,
                f"subtitles.style.position must be top or bottom: {position_value!r}",
            ) from exc
        style = SubtitleStyle(
            font_size=_read_int(style_value, "font_size", "subtitles.style", 18),
            font_color=_read_str(
                style_value, "font_color", "subtitles.style", "&H00FFFFFF"
            ),
            bg_color=_read_str(style_value, "bg_color", "subtitles.style", "&H80000000"),
            position=position,
        )
    return SubtitlesConfig(
        enabled=_read_bool(value, "enabled", "subtitles", True),
        burn=_read_bool(value, "burn", "subtitles", False),
        style=style,
    )


def _parse_narration(value: Any) -> NarrationConfig | None:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise DemoValidationError(INVALID_CONFIG_CODE, "narration must be an object")
    _reject_unknown_keys(
        value, {"auto", "voice", "speed", "model", "instructions"}, "narration"
    )
    instructions = value.get("instructions")
    if instructions is not None:
        instructions = _require_str(instructions, "narration.instructions")
    return NarrationConfig(
        auto=_read_bool(value, "auto", "narration", False),
        voice=_read_str(value, "voice", "narration", "coral"),
        speed=_read_number(value, "speed", "narration", 1.0),
        model=_read_str(value, "model", "narration", "gpt-4o-mini-tts"),
        instructions=instructions,
    )


def _parse_size(value: Any, field_name: str) -> Size:
    if not isinstance(value, Mapping):
        raise DemoValidationError(INVALID_CONFIG_CODE, f"{field_name} must be an object")
    _reject_unknown_keys(value, {"width", "height"}, field_name)
    width = _read_int(value, "width", field_name, None)
    height = _read_int(value, "height", field_name, None)
    if width % 2 or height % 2:
        raise DemoValidationError(
            INVALID_CONFIG_CODE, f"{field_name} width and height must be even"
        )
    return Size(width, height)


def _resolve_path(path_value: str, base_dir: str) -> str:
    expanded = os.path.expanduser(path_value)
    if os.path.isabs(expanded):
        return expanded
    return os.path.normpath(os.path.join(base_dir, expanded))


def _reject_unknown_keys(
    value: Mapping[str, Any], allowed: set[str], field_name: str
) -> None:
    unknown = sorted(set(value) - allowed)
    if unknown:
        raise DemoValidationError(
            INVALID_CONFIG_CODE, f"{field_name} has unknown keys: {', '.join(unknown)}"
        )


def _require_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise DemoValidationError(
            INVALID_CONFIG_CODE, f"{field_name} must be a non-empty string"
        )
    return value


def _read_str(
    value: Mapping[str, Any], key: str, field_name: str, default: str
) -> str:
    if value.get(key) is None:
        return default
    return _require_str(value[key], f"{field_name}.{key}")


def _read_bool(
    value: Mapping[str, Any], key: str, field_name: str, default: bool
) -> bool:
    raw_value = value.get(key)
    if raw_value is None:
        return default
    if not isinstance(raw_value, bool):
        raise DemoValidationError(
            INVALID_CONFIG_CODE, f"{field_name}.{key} must be a boolean"
        )
    return raw_value


def _read_number(
    value: Mapping[str, Any], key: str, field_name: str, default: float | None
) -> float:
    raw_value = value.get(key)
    if raw_value is None:
        if default is None:
            raise DemoValidationError(
                INVALID_CONFIG_CODE, f"{field_name}.{key} is required"
            )
        return default
    if isinstance(raw_value, bool) or not isinstance(raw_value, (int, float)):
        raise DemoValidationError(
            INVALID_CONFIG_CODE, f"{field_name}.{key} must be a number"
        )
    if not math.isfinite(raw_value):
        raise DemoValidationError(
            INVALID_CONFIG_CODE, f"{field_name}.{key} must be finite"
        )
    return float(raw_value)


def _read_int(
    value: Mapping[str, Any], key: str, field_name: str, default: int | None
) -> int:
    raw_value = value.get(key)
    if raw_value is None:
        if default is None:
            raise DemoValidationError(
                INVALID_CONFIG_CODE, f"{field_name}.{key} is required"
            )
        return default
    if isinstance(raw_value, bool) or not isinstance(raw_value, int):
        raise DemoValidationError(
            INVALID_CONFIG_CODE, f"{field_name}.{key} must be an integer"
        )
    return raw_value
