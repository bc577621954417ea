"""Click-highlight rings drawn from recorded cursor events."""

from __future__ import annotations

import logging
from typing import Sequence

from domain.demo_video import (
    CursorEvent,
    CursorEventType,
    CursorOptions,
    Size,
)
from service.filter_graph import (
    CURSOR_LABEL,
    FilterGraph,
    FilterOp,
    filter_op,
    node,
    round_half_up,
    single_node_graph,
)

RING_SCALE = 3
RING_THICKNESS = 3

LOGGER = logging.getLogger("record_demo_video")


def _ring_op(
    event: CursorEvent,
    start_seconds: float,
    viewport: Size,
    output_size: Size,
    options: CursorOptions,
) -> FilterOp:
    scale_x = output_size.width / viewport.width
    scale_y = output_size.height / viewport.height
    side = max(1, round_half_up(options.size * RING_SCALE * scale_x))
    center_x = event.x * scale_x
    center_y = event.y * scale_y
    left = max(0, round_half_up(center_x - side / 2))
    top = max(0, round_half_up(center_y - side / 2))
    end_seconds = start_seconds + options.highlight_seconds
    return filter_op(
        "drawbox",
        x=left,
        y=top,
        w=side,
        h=side,
        color=options.color,
        t=RING_THICKNESS,
        enable=f"'between(t,{start_seconds:.3f},{end_seconds:.3f})'",
    )


def build_cursor_highlight(
    input_label: str,
    segment_events: Sequence[Sequence[CursorEvent]],
    segment_starts: Sequence[float],
    segment_durations: Sequence[float],
    viewport: Size,
    output_size: Size,
    options: CursorOptions | None,
) -> FilterGraph | None:
    """Draw a ring around every click, on the output timeline.

    Clicks outside their segment's clean duration are dropped. Returns None
    when nothing would be drawn.
    """
    if options is None or not options.click_effect:
        return None
    ops: list[FilterOp] = []
    for index, events in enumerate(segment_events):
        duration = segment_durations[index]
        for event in events:
            if event.type is not CursorEventType.CLICK:
                continue
            if event.time >= duration:
                LOGGER.warning(
                    "record_demo_video.cursor.dropped: segment %d click at %.3fs is past %.3fs",
                    index,
                    event.time,
                    duration,
                )
                continue
            ops.append(
                _ring_op(event, segment_starts[index] + event.time, viewport, output_size, options)
            )
    if not ops:
        return None
    return single_node_graph(node((input_label,), CURSOR_LABEL, *ops))
