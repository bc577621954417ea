"""Unit tests for caption timing, SRT documents and subtitle burn-in."""

from __future__ import annotations

import pytest

from domain.demo_video import (
    INVALID_SRT_CODE,
    DemoValidationError,
    Segment,
    SubtitleEntry,
    SubtitlePosition,
    SubtitleStyle,
)
from service.subtitles import (
    build_burn_filter,
    build_entries,
    build_force_style,
    escape_filter_path,
    format_srt_timestamp,
    generate_srt,
    parse_srt,
    parse_timecode,
    split_into_chunks,
)


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [
        (0.0, "00:00:00,000"),
        (1.5, "00:00:01,500"),
        (65.25, "00:01:05,250"),
        (3661.1, "01:01:01,100"),
        (0.0004, "00:00:00,000"),
        (0.0005, "00:00:00,001"),
    ],
)
def test_format_srt_timestamp(seconds: float, expected: str) -> None:
    """Timestamps round to the nearest millisecond."""
    assert format_srt_timestamp(seconds) == expected


def test_parse_timecode() -> None:
    """SRT timecodes parse back to seconds."""
    assert parse_timecode("01:01:01,100") == pytest.approx(3661.1)
    with pytest.raises(DemoValidationError):
        parse_timecode("1:01:01.100")


def test_split_into_chunks_keeps_sentences() -> None:
    """Short sentences stay whole."""
    assert split_into_chunks("Hello world. This is a test!") == (
        "Hello world.",
        "This is a test!",
    )


def test_split_into_chunks_cuts_long_sentences() -> None:
    """Sentences longer than the word limit are grouped by word count."""
    text_value = " ".join(f"w{index}" for index in range(12))
    chunks = split_into_chunks(text_value)
    assert len(chunks) == 2
    assert chunks[0].split() == [f"w{index}" for index in range(10)]
    assert chunks[1] == "w10 w11"
    assert split_into_chunks("   ") == ()


def test_build_entries_spreads_chunks_over_durations(tmp_path) -> None:
    """Entries run on the cumulative timeline; unscripted segments only advance it."""
    segments = [
        Segment(name="a", video_path=str(tmp_path / "a.webm"), narration_script="One. Two."),
        Segment(name="b", video_path=str(tmp_path / "b.webm")),
        Segment(name="c", video_path=str(tmp_path / "c.webm"), narration_script="Three."),
    ]
    entries = build_entries(segments, [4.0, 3.0, 2.0])
    assert [(entry.index, entry.start_seconds, entry.end_seconds, entry.text) for entry in entries] == [
        (1, 0.0, 2.0, "One."),
        (2, 2.0, 4.0, "Two."),
        (3, 7.0, 9.0, "Three."),
    ]


def test_build_entries_skips_zero_duration(tmp_path) -> None:
    """A segment without clean content gets no captions."""
    segments = [Segment(name="a", video_path=str(tmp_path / "a.webm"), narration_script="Hi.")]
    assert build_entries(segments, [0.0]) == ()


def test_generate_and_parse_srt() -> None:
    """Generated documents parse back to the same entries."""
    entries = (
        SubtitleEntry(1, 0.0, 1.5, "First."),
        SubtitleEntry(2, 1.5, 3.0, "Second."),
    )
    document = generate_srt(entries)
    assert document == (
        "1\n00:00:00,000 --> 00:00:01,500\nFirst.\n\n"
        "2\n00:00:01,500 --> 00:00:03,000\nSecond.\n"
    )
    assert parse_srt(document) == entries
    assert parse_srt("") == ()


def test_parse_srt_rejects_bad_blocks() -> None:
    """Malformed blocks fail with the SRT error code."""
    with pytest.raises(DemoValidationError) as exc_info:
        parse_srt("1\nnot a time\nText\n")
    assert exc_info.value.code == INVALID_SRT_CODE


def test_subtitle_entry_validation() -> None:
    """Entries need increasing times and text."""
    with pytest.raises(DemoValidationError):
        SubtitleEntry(1, 2.0, 2.0, "x")
    with pytest.raises(DemoValidationError):
        SubtitleEntry(0, 0.0, 1.0, "x")


def test_burn_filter_uses_style_and_position() -> None:
    """The subtitles filter carries the force_style and ends in [subtitled]."""
    graph = build_burn_filter(
        "/tmp/out/demo.srt", "cursored", SubtitleStyle(position=SubtitlePosition.TOP)
    )
    serialized = graph.serialize()
    assert serialized.startswith("[cursored]subtitles='/tmp/out/demo.srt':force_style='")
    assert serialized.endswith("[subtitled]")
    assert "Alignment=6" in serialized
    assert "MarginV=30" in serialized


def test_force_style_defaults() -> None:
    """Default style anchors captions at the bottom."""
    style = build_force_style(SubtitleStyle())
    assert "FontSize=18" in style
    assert "PrimaryColour=&H00FFFFFF" in style
    assert "Alignment=2" in style
    assert "MarginV=40" in style


def test_escape_filter_path() -> None:
    """Colons and backslashes are made filter-safe."""
    assert escape_filter_path("C:\\videos\\demo.srt") == "C\\:/videos/demo.srt"


def test_split_into_chunks_preserves_word_order() -> None:
    """Joining every chunk's words gives back the original words."""
    text_value = (
        "This first sentence is deliberately long enough to need two chunks of words. "
        "Short one! And a question with no end"
    )
    chunks = split_into_chunks(text_value, max_words=5)
    assert all(1 <= len(chunk.split()) <= 5 for chunk in chunks)
    assert " ".join(chunks).split() == text_value.split()


@pytest.mark.parametrize(
    "text_value",
    [
        "Visit demotape.dev to start. It is 3.5x faster, e.g. for teams.",
        "Version 2.0.1 ships today! Read docs.example.com/start?ref=demo now.",
        "Dr. Smith approved it... Really? Yes.",
    ],
)
def test_split_into_chunks_keeps_dotted_words_whole(text_value: str) -> None:
    """Punctuation inside a word never ends a sentence."""
    chunks = split_into_chunks(text_value, max_words=4)
    assert all(1 <= len(chunk.split()) <= 4 for chunk in chunks)
    assert " ".join(chunks).split() == text_value.split()


def test_split_into_chunks_breaks_after_sentence_end() -> None:
    """URLs and decimals stay in their sentence."""
    assert split_into_chunks("Visit demotape.dev to start. It is 3.5x faster.") == (
        "Visit demotape.dev to start.",
        "It is 3.5x faster.",
    )


def test_build_entries_skips_segments_too_short_for_captions(
    tmp_path, caplog: pytest.LogCaptureFixture
) -> None:
    """Chunks shorter than a millisecond are dropped instead of failing late in the timeline."""
    segments = [
        Segment(name="a", video_path=str(tmp_path / "a.webm"), narration_script="One."),
        Segment(name="b", video_path=str(tmp_path / "b.webm"), narration_script="Two. Three."),
        Segment(name="c", video_path=str(tmp_path / "c.webm"), narration_script="Four."),
    ]
    entries = build_entries(segments, [3600.0, 1e-9, 2.0])
    assert [(entry.index, entry.text) for entry in entries] == [(1, "One."), (2, "Four.")]
    assert entries[1].start_seconds == pytest.approx(3600.0)
    assert "record_demo_video.subtitles.skipped: b" in caplog.text
