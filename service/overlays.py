"""Top and bottom text bands drawn over the scaled video."""

from __future__ import annotations

from domain.demo_video import OverlayBand, OverlaySpec
from service.filter_graph import (
    FINAL_VIDEO_LABEL,
    FilterGraph,
    FilterOp,
    filter_op,
    node,
    passthrough,
    round_half_up,
)

BAND_COLOR = "black@0.65"
TEXT_COLOR = "white"
TOP_BAND_LABEL = "_otop"


def escape_drawtext_text(text_value: str) -> str:
    """Escape text for a quoted drawtext ``text=`` value.

    Apostrophes become a typographic quote so they cannot end the literal.
    """
    return (
        text_value.replace("\\", "\\\\\\\\")
        .replace("'", "\u2019")
        .replace(":", "\\:")
        .replace("[", "\\[")
        .replace("]", "\\]")
        .replace(";", "\\;")
        .replace("%", "%%")
    )


def _band_ops(band: OverlayBand, at_top: bool) -> tuple[FilterOp, FilterOp]:
    half_height = round_half_up(band.height / 2)
    box_y = "0" if at_top else f"ih-{band.height}"
    text_y = f"{half_height}-text_h/2" if at_top else f"h-{half_height}-text_h/2"
    return (
        filter_op("drawbox", x=0, y=box_y, w="iw", h=band.height, color=BAND_COLOR, t="fill"),
        filter_op(
            "drawtext",
            text=f"'{escape_drawtext_text(band.text)}'",
            fontsize=band.font_size,
            fontcolor=TEXT_COLOR,
            x="(w-text_w)/2",
            y=text_y,
        ),
    )


def build_overlay(spec: OverlaySpec | None, input_label: str) -> FilterGraph:
    """Draw the configured bands; always ends in the final-video label."""
    if spec is None or (spec.top is None and spec.bottom is None):
        return passthrough(input_label, FINAL_VIDEO_LABEL)

    nodes = []
    current_label = input_label
    if spec.top is not None:
        output_label = FINAL_VIDEO_LABEL if spec.bottom is None else TOP_BAND_LABEL
        nodes.append(node((current_label,), output_label, *_band_ops(spec.top, True)))
        current_label = output_label
    if spec.bottom is not None:
        nodes.append(
            node((current_label,), FINAL_VIDEO_LABEL, *_band_ops(spec.bottom, False))
        )
    return FilterGraph(nodes=tuple(nodes), output=FINAL_VIDEO_LABEL)
