"""Caption timing, SRT documents and the burn-in filter."""

from __future__ import annotations

import logging
import math
import re
from typing import Sequence, Tuple

from domain.demo_video import (
    INVALID_SRT_CODE,
    INVALID_SUBTITLE_CODE,
    DemoValidationError,
    Segment,
    SubtitleEntry,
    SubtitlePosition,
    SubtitleStyle,
)
from service.filter_graph import SUBTITLED_LABEL, FilterGraph, filter_op, node, single_node_graph

DEFAULT_MAX_WORDS = 10
SENTENCE_BREAK_PATTERN = re.compile(r"(?<=[.!?])\s+")
MIN_CHUNK_SECONDS = 0.001
SRT_TIME_RANGE_PATTERN = re.compile(
    r"^(?P<start>\d{2,}:\d{2}:\d{2},\d{3})\s*-->\s*(?P<end>\d{2,}:\d{2}:\d{2},\d{3})$"
)
SRT_TIMECODE_PATTERN = re.compile(r"^(\d{2,}):(\d{2}):(\d{2}),(\d{3})$")

# ASS alignment codes: 2 bottom-center, 6 top-center.
POSITION_LAYOUT = {
    SubtitlePosition.BOTTOM: (2, 40),
    SubtitlePosition.TOP: (6, 30),
}

LOGGER = logging.getLogger("record_demo_video")


def format_srt_timestamp(seconds: float) -> str:
    """Format seconds as ``HH:MM:SS,mmm`` with milliseconds rounded."""
    total_millis = int(math.floor(max(0.0, seconds) * 1000 + 0.5))
    hours, remainder = divmod(total_millis, 3_600_000)
    minutes, remainder = divmod(remainder, 60_000)
    whole_seconds, millis = divmod(remainder, 1000)
    return f"{hours:02d}:{minutes:02d}:{whole_seconds:02d},{millis:03d}"


def parse_timecode(timecode_value: str) -> float:
    """Parse an SRT timecode into seconds."""
    match = SRT_TIMECODE_PATTERN.fullmatch(timecode_value.strip())
    if not match:
        raise DemoValidationError(INVALID_SRT_CODE, f"invalid timecode: {timecode_value!r}")
    hours, minutes, seconds, millis = (int(part) for part in match.groups())
    return hours * 3600 + minutes * 60 + seconds + millis / 1000.0


def split_into_chunks(text_value: str, max_words: int = DEFAULT_MAX_WORDS) -> Tuple[str, ...]:
    """Split narration into caption-sized chunks.

    A sentence ends at ``.``, ``!`` or ``?`` followed by whitespace, so URLs,
    decimals and abbreviations stay whole. Sentences are kept whole when they
    fit; longer ones are cut into consecutive groups of ``max_words`` words.
    Word order is preserved and no chunk is empty.
    """
    if max_words < 1:
        raise DemoValidationError(INVALID_SUBTITLE_CODE, "max_words must be at least 1")
    chunks: list[str] = []
    for sentence in SENTENCE_BREAK_PATTERN.split(text_value.strip()):
        words = sentence.split()
        for start in range(0, len(words), max_words):
            chunks.append(" ".join(words[start : start + max_words]))
    return tuple(chunk for chunk in chunks if chunk)


def build_entries(
    segments: Sequence[Segment], durations: Sequence[float]
) -> Tuple[SubtitleEntry, ...]:
    """Spread each narrated segment's chunks evenly over its duration.

    Times are cumulative across the whole output. Segments without a script,
    or too short to give each chunk a millisecond, only advance the cursor.
    """
    if len(durations) != len(segments):
        raise DemoValidationError(
            INVALID_SUBTITLE_CODE, "one duration is required per segment"
        )
    entries: list[SubtitleEntry] = []
    cumulative_seconds = 0.0
    for segment, duration in zip(segments, durations):
        script = segment.narration_script
        chunks = split_into_chunks(script) if script else ()
        chunk_seconds = duration / len(chunks) if chunks else 0.0
        if chunks and 0 < chunk_seconds < MIN_CHUNK_SECONDS:
            LOGGER.warning(
                "record_demo_video.subtitles.skipped: %s: %.6fs is too short for %d captions",
                segment.name,
                duration,
                len(chunks),
            )
        elif chunks and chunk_seconds > 0:
            for chunk_index, chunk in enumerate(chunks):
                start_seconds = cumulative_seconds + chunk_index * chunk_seconds
                if chunk_index == len(chunks) - 1:
                    end_seconds = cumulative_seconds + duration
                else:
                    end_seconds = cumulative_seconds + (chunk_index + 1) * chunk_seconds
                entries.append(
                    SubtitleEntry(
                        index=len(entries) + 1,
                        start_seconds=start_seconds,
                        end_seconds=end_seconds,
                        text=chunk,
                    )
                )
        cumulative_seconds += duration
    return tuple(entries)


def generate_srt(entries: Sequence[SubtitleEntry]) -> str:
    """Render entries as an SRT document."""
    blocks = [
        f"{entry.index}\n"
        f"{format_srt_timestamp(entry.start_seconds)} --> "
        f"{format_srt_timestamp(entry.end_seconds)}\n"
        f"{entry.text}"
        for entry in entries
    ]
    return "\n\n".join(blocks) + "\n"


def parse_srt(text_value: str) -> Tuple[SubtitleEntry, ...]:
    """Parse an SRT document back into entries."""
    normalized = text_value.replace("\ufeff", "").replace("\r\n", "\n").strip()
    if not normalized:
        return ()

    entries: list[SubtitleEntry] = []
    for block in re.split(r"\n\s*\n", normalized):
        lines = [line.strip() for line in block.splitlines() if line.strip()]
        if not lines:
            continue
        if not lines[0].isdigit():
            raise DemoValidationError(INVALID_SRT_CODE, f"SRT block missing index: {lines[0]!r}")
        index = int(lines[0])
        if len(lines) < 2:
            raise DemoValidationError(INVALID_SRT_CODE, "SRT block missing timecode")
        match = SRT_TIME_RANGE_PATTERN.fullmatch(lines[1])
        if not match:
            raise DemoValidationError(INVALID_SRT_CODE, f"invalid time range: {lines[1]!r}")
        if len(lines) < 3:
            raise DemoValidationError(INVALID_SRT_CODE, "SRT block missing text")
        entries.append(
            SubtitleEntry(
                index=index,
                start_seconds=parse_timecode(match.group("start")),
                end_seconds=parse_timecode(match.group("end")),
                text="\n".join(lines[2:]),
            )
        )
    return tuple(entries)


def escape_filter_path(path_value: str) -> str:
    """Escape a file path for use inside a filter argument."""
    return path_value.replace("\\", "/").replace(":", "\\:")


def build_force_style(style: SubtitleStyle) -> str:
    alignment, margin_v = POSITION_LAYOUT[style.position]
    return ",".join(
        (
            "FontName=Arial",
            f"FontSize={style.font_size}",
            f"PrimaryColour={style.font_color}",
            f"BackColour={style.bg_color}",
            "BorderStyle=4",
            "Outline=0",
            "Shadow=0",
            f"Alignment={alignment}",
            f"MarginV={margin_v}",
            "MarginL=60",
            "MarginR=60",
        )
    )


def build_burn_filter(
    srt_path: str, input_label: str, style: SubtitleStyle | None = None
) -> FilterGraph:
    """Burn an SRT file into ``input_label``."""
    resolved_style = style or SubtitleStyle()
    return single_node_graph(
        node(
            (input_label,),
            SUBTITLED_LABEL,
            filter_op(
                "subtitles",
                f"'{escape_filter_path(srt_path)}'",
                force_style=f"'{build_force_style(resolved_style)}'",
            ),
        )
    )
