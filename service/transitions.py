"""Cross-fade planning between consecutive segments."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

from domain.demo_video import TransitionSpec
from service.filter_graph import (
    MERGED_LABEL,
    FilterGraph,
    FilterNode,
    filter_op,
    input_stream,
    node,
    passthrough,
    single_node_graph,
)


@dataclass(frozen=True)
class Boundary:
    """Resolved join between segment ``index`` and ``index + 1``.

    ``offset`` is where the next segment starts on the output timeline.
    """

    index: int
    transition: TransitionSpec | None
    offset: float


@dataclass(frozen=True)
class TimelinePlan:
    boundaries: Tuple[Boundary, ...]
    total_duration: float

    @property
    def segment_starts(self) -> Tuple[float, ...]:
        return (0.0,) + tuple(boundary.offset for boundary in self.boundaries)


def transition_at(
    index: int,
    global_spec: TransitionSpec | None,
    per_boundary: Sequence[TransitionSpec | None] | None,
) -> TransitionSpec | None:
    """Effective transition after segment ``index``; overrides win."""
    if per_boundary is not None and index < len(per_boundary):
        override = per_boundary[index]
        if override is not None:
            return override
    return global_spec


def plan_timeline(
    durations: Sequence[float],
    global_spec: TransitionSpec | None = None,
    per_boundary: Sequence[TransitionSpec | None] | None = None,
) -> TimelinePlan:
    """Walk the boundaries once with a single running total.

    The running total is the sum of durations minus every overlap applied so
    far. It is not clamped, so a segment shorter than its outgoing transition
    still has the transition consumed from the next segment's share; only the
    reported offsets and the final total are floored at zero.
    """
    if not durations:
        return TimelinePlan(boundaries=(), total_duration=0.0)
    running = float(durations[0])
    boundaries: list[Boundary] = []
    for index in range(len(durations) - 1):
        spec = transition_at(index, global_spec, per_boundary)
        if spec is None:
            offset = max(0.0, running)
            running += durations[index + 1]
        else:
            offset = max(0.0, running - spec.duration)
            running += durations[index + 1] - spec.duration
        boundaries.append(Boundary(index=index, transition=spec, offset=offset))
    return TimelinePlan(boundaries=tuple(boundaries), total_duration=max(0.0, running))


def compute_total_duration(
    durations: Sequence[float],
    global_spec: TransitionSpec | None = None,
    per_boundary: Sequence[TransitionSpec | None] | None = None,
) -> float:
    """Output length after transition overlaps, floored at zero."""
    return plan_timeline(durations, global_spec, per_boundary).total_duration


def compute_segment_start_times(
    durations: Sequence[float],
    global_spec: TransitionSpec | None = None,
    per_boundary: Sequence[TransitionSpec | None] | None = None,
) -> Tuple[float, ...]:
    """Start of each segment on the output timeline."""
    if not durations:
        return ()
    return plan_timeline(durations, global_spec, per_boundary).segment_starts


def plan_transitions(
    durations: Sequence[float],
    global_spec: TransitionSpec | None = None,
    per_boundary: Sequence[TransitionSpec | None] | None = None,
) -> FilterGraph | None:
    """Build the xfade/concat chain ending in the merged-video label.

    Returns None with fewer than two segments or when no boundary has a
    transition; the caller then concatenates everything at once.
    """
    segment_count = len(durations)
    if segment_count < 2:
        return None
    timeline = plan_timeline(durations, global_spec, per_boundary)
    if all(boundary.transition is None for boundary in timeline.boundaries):
        return None

    nodes: list[FilterNode] = []
    previous_label = input_stream(0)
    for boundary in timeline.boundaries:
        is_last = boundary.index == segment_count - 2
        inputs = (previous_label, input_stream(boundary.index + 1))
        if boundary.transition is None:
            output_label = MERGED_LABEL if is_last else f"ct{boundary.index}"
            nodes.append(node(inputs, output_label, filter_op("concat", n=2, v=1)))
        else:
            output_label = MERGED_LABEL if is_last else f"xf{boundary.index}"
            nodes.append(
                node(
                    inputs,
                    output_label,
                    filter_op(
                        "xfade",
                        transition=boundary.transition.type.value,
                        duration=f"{boundary.transition.duration:g}",
                        offset=f"{boundary.offset:.3f}",
                    ),
                )
            )
        previous_label = output_label
    return FilterGraph(nodes=tuple(nodes), output=MERGED_LABEL)


def build_concat(segment_count: int) -> FilterGraph:
    """Hard-cut every segment into the merged-video label."""
    if segment_count == 1:
        return passthrough(input_stream(0), MERGED_LABEL)
    return single_node_graph(
        node(
            (input_stream(index) for index in range(segment_count)),
            MERGED_LABEL,
            filter_op("concat", n=segment_count, v=1),
        )
    )


def build_merge(
    durations: Sequence[float],
    global_spec: TransitionSpec | None = None,
    per_boundary: Sequence[TransitionSpec | None] | None = None,
) -> FilterGraph:
    """Transitions when any are configured, otherwise plain concatenation."""
    planned = plan_transitions(durations, global_spec, per_boundary)
    if planned is not None:
        return planned
    return build_concat(len(durations))
