"""In-memory ffmpeg filter graph with a single serialization step."""

from __future__ import annotations

from dataclasses import dataclass
import math
import re
from typing import Iterable, Tuple

from domain.demo_video import DemoPipelineError

GRAPH_LABEL_CODE = "demo_video.internal.graph_label"

MERGED_LABEL = "mid"
SCALED_LABEL = "scaled"
CURSOR_LABEL = "cursored"
SUBTITLED_LABEL = "subtitled"
FINAL_VIDEO_LABEL = "outv"
THEMED_LABEL = "themed"
FINAL_AUDIO_LABEL = "outa"

STREAM_SPECIFIER_PATTERN = re.compile(r"^\d+:[va]$")


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def input_stream(index: int, kind: str = "v") -> str:
    """Label of an input file's stream, e.g. ``0:v``."""
    return f"{index}:{kind}"


@dataclass(frozen=True)
class FilterOp:
    """One filter with ordered parameters; a ``None`` key is positional."""

    name: str
    params: Tuple[Tuple[str | None, str], ...] = ()

    def serialize(self) -> str:
        if not self.params:
            return self.name
        rendered = ":".join(
            value if key is None else f"{key}={value}" for key, value in self.params
        )
        return f"{self.name}={rendered}"


def filter_op(name: str, *positional: object, **named: object) -> FilterOp:
    """Build a FilterOp; positional values precede named ones."""
    params: list[Tuple[str | None, str]] = [(None, str(value)) for value in positional]
    params.extend((key, str(value)) for key, value in named.items())
    return FilterOp(name=name, params=tuple(params))


@dataclass(frozen=True)
class FilterNode:
    """A linear filter chain from zero or more input labels to one output label."""

    inputs: Tuple[str, ...]
    chain: Tuple[FilterOp, ...]
    output: str

    def __post_init__(self) -> None:
        if not self.chain:
            raise DemoPipelineError(GRAPH_LABEL_CODE, "filter node has no operations")
        if not self.output:
            raise DemoPipelineError(GRAPH_LABEL_CODE, "filter node has no output label")

    @property
    def kind(self) -> str:
        return self.chain[0].name

    def serialize(self) -> str:
        sources = "".join(f"[{label}]" for label in self.inputs)
        body = ",".join(op.serialize() for op in self.chain)
        return f"{sources}{body}[{self.output}]"


def node(inputs: Iterable[str], output: str, *chain: FilterOp) -> FilterNode:
    return FilterNode(inputs=tuple(inputs), chain=tuple(chain), output=output)


@dataclass(frozen=True)
class FilterGraph:
    """A composable fragment: nodes in execution order plus its output label."""

    nodes: Tuple[FilterNode, ...]
    output: str

    def __post_init__(self) -> None:
        if not self.nodes:
            raise DemoPipelineError(GRAPH_LABEL_CODE, "filter graph has no nodes")
        if self.nodes[-1].output != self.output:
            raise DemoPipelineError(
                GRAPH_LABEL_CODE,
                f"graph output {self.output!r} is not produced by its last node",
            )

    @property
    def inputs(self) -> Tuple[str, ...]:
        """Labels consumed from outside this fragment, in first-use order."""
        produced: set[str] = set()
        external: list[str] = []
        for graph_node in self.nodes:
            for label in graph_node.inputs:
                if label not in produced and label not in external:
                    external.append(label)
            produced.add(graph_node.output)
        return tuple(external)

    def count(self, kind: str) -> int:
        """Number of nodes whose first operation is ``kind``."""
        return sum(1 for graph_node in self.nodes if graph_node.kind == kind)

    def find(self, kind: str) -> Tuple[FilterNode, ...]:
        return tuple(graph_node for graph_node in self.nodes if graph_node.kind == kind)

    def serialize(self) -> str:
        return ";".join(graph_node.serialize() for graph_node in self.nodes)


def single_node_graph(graph_node: FilterNode) -> FilterGraph:
    return FilterGraph(nodes=(graph_node,), output=graph_node.output)


def passthrough(input_label: str, output_label: str) -> FilterGraph:
    """Identity fragment so callers never special-case a missing stage."""
    return single_node_graph(node((input_label,), output_label, filter_op("null")))


def compose(*fragments: FilterGraph) -> FilterGraph:
    """Join fragments into one graph and check label discipline.

    Every label may be produced once and consumed once; every consumed label
    is either an input stream specifier (``N:v``/``N:a``) or produced by an
    earlier node.
    """
    if not fragments:
        raise DemoPipelineError(GRAPH_LABEL_CODE, "nothing to compose")
    produced: set[str] = set()
    consumed: set[str] = set()
    nodes: list[FilterNode] = []
    for fragment in fragments:
        for graph_node in fragment.nodes:
            for label in graph_node.inputs:
                if label in consumed:
                    raise DemoPipelineError(
                        GRAPH_LABEL_CODE, f"label consumed twice: {label!r}"
                    )
                if label not in produced and not STREAM_SPECIFIER_PATTERN.fullmatch(label):
                    raise DemoPipelineError(
                        GRAPH_LABEL_CODE, f"label consumed before it is produced: {label!r}"
                    )
                consumed.add(label)
            if graph_node.output in produced:
                raise DemoPipelineError(
                    GRAPH_LABEL_CODE, f"label produced twice: {graph_node.output!r}"
                )
            produced.add(graph_node.output)
            nodes.append(graph_node)
    return FilterGraph(nodes=tuple(nodes), output=fragments[-1].output)
