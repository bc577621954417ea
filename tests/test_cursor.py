"""Unit tests for cursor events and the click highlight."""

from __future__ import annotations

from domain.demo_video import CursorEvent, CursorEventType, CursorOptions, Size
from service.cursor import build_cursor_highlight

VIEWPORT = Size(1280, 800)


def click(time_seconds: float, x: float = 100, y: float = 200) -> CursorEvent:
    return CursorEvent(CursorEventType.CLICK, time_seconds, x, y)


def test_highlight_draws_one_ring_per_click() -> None:
    """Clicks are placed on the output timeline via their segment start."""
    graph = build_cursor_highlight(
        "scaled",
        [[click(1.0)], [CursorEvent(CursorEventType.MOVE, 0.5, 0, 0), click(0.5, 640, 400)]],
        [0.0, 4.5],
        [5.0, 4.0],
        VIEWPORT,
        VIEWPORT,
        CursorOptions(),
    )
    assert graph is not None
    assert graph.output == "cursored"
    serialized = graph.serialize()
    assert serialized.startswith("[scaled]drawbox=x=70:y=170:w=60:h=60:color=black@0.8:t=3:")
    assert "enable='between(t,1.000,1.600)'" in serialized
    assert "enable='between(t,5.000,5.600)'" in serialized
    assert serialized.count("drawbox") == 2


def test_highlight_scales_to_output_size() -> None:
    """Coordinates and ring size follow the viewport-to-output scale."""
    graph = build_cursor_highlight(
        "scaled",
        [[click(0.0, 640, 400)]],
        [0.0],
        [3.0],
        VIEWPORT,
        Size(640, 400),
        CursorOptions(size=20),
    )
    assert graph is not None
    assert "x=305:y=185:w=30:h=30" in graph.serialize()


def test_highlight_drops_clicks_past_duration() -> None:
    """Clicks after the clean content ends draw nothing."""
    assert (
        build_cursor_highlight(
            "scaled", [[click(3.0)]], [0.0], [3.0], VIEWPORT, VIEWPORT, CursorOptions()
        )
        is None
    )


def test_highlight_disabled() -> None:
    """No options or a disabled click effect means no stage."""
    events = [[click(1.0)]]
    assert build_cursor_highlight("scaled", events, [0.0], [5.0], VIEWPORT, VIEWPORT, None) is None
    assert (
        build_cursor_highlight(
            "scaled",
            events,
            [0.0],
            [5.0],
            VIEWPORT,
            VIEWPORT,
            CursorOptions(click_effect=False),
        )
        is None
    )
