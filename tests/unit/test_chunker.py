"""Unit tests for the chunker module."""

from __future__ import annotations

import random
import string

import pytest

from docchat.ingestion.chunker import ChunkSpan, chunk, chunk_with_offsets


def _sample_text(sentences: int = 200) -> str:
    return " ".join(
        f"Sentence number {i} covers topic {i * 7 % 13} with detail {i * i}." for i in range(sentences)
    )


def _reconstruct(spans: list[ChunkSpan]) -> str:
    """Concatenate chunks after dropping the part each shares with the previous one."""
    out = ""
    covered = 0
    for span in spans:
        out += span.text[covered - span.start :]
        covered = span.end
    return out


def test_chunk_splits_long_text() -> None:
    """A text longer than the chunk size should be split."""
    chunks = chunk(_sample_text(), 1000, 200)
    assert len(chunks) > 1


def test_chunks_reconstruct_input() -> None:
    text = _sample_text()
    spans = chunk_with_offsets(text, 1000, 200)
    assert _reconstruct(spans) == text


def test_chunks_respect_size_bound() -> None:
    # One separator unit (". ") of slack.
    assert all(len(c) <= 1000 + 2 for c in chunk(_sample_text(), 1000, 200))


def test_offsets_point_at_chunk_text() -> None:
    text = _sample_text()
    for span in chunk_with_offsets(text, 1000, 200):
        assert 0 <= span.start <= span.end <= len(text)
        assert text[span.start : span.end] == span.text


def test_consecutive_chunks_overlap_without_gaps() -> None:
    spans = chunk_with_offsets(_sample_text(), 500, 100)
    assert [s.index for s in spans] == list(range(len(spans)))
    for prev, cur in zip(spans, spans[1:]):
        assert cur.start <= prev.end
        assert prev.end - cur.start <= 100


def test_zero_overlap() -> None:
    text = _sample_text(50)
    spans = chunk_with_offsets(text, 300, 0)
    assert "".join(s.text for s in spans) == text


def test_prefers_sentence_boundaries() -> None:
    """With room for whole sentences, chunks end on a sentence break."""
    text = _sample_text(40)
    for c in chunk(text, 400, 0)[:-1]:
        assert c.endswith(". ")


def test_text_without_separators_falls_back_to_characters() -> None:
    rng = random.Random(1234)
    text = "".join(rng.choice(string.ascii_lowercase) for _ in range(2500))
    spans = chunk_with_offsets(text, 1000, 200)
    assert all(len(s.text) <= 1000 for s in spans)
    assert _reconstruct(spans) == text


def test_short_text_is_single_chunk() -> None:
    assert chunk("Short text.") == ["Short text."]


def test_empty_input() -> None:
    """An empty text should return an empty list."""
    assert chunk("") == []
    assert chunk_with_offsets("") == []


@pytest.mark.parametrize(
    ("size", "overlap"),
    [(100, 100), (100, 150), (0, 0), (-5, 0), (100, -1)],
)
def test_invalid_parameters(size: int, overlap: int) -> None:
    with pytest.raises(ValueError):
        chunk("some text", size, overlap)


@pytest.mark.parametrize(
    "text",
    [
        ("word " * 2000).strip(),
        "a" * 5000,
        "| id | name | total |\n" * 300,
    ],
    ids=["repeated-words", "single-character", "repeated-rows"],
)
def test_repetitive_text_is_located(text: str) -> None:
    spans = chunk_with_offsets(text, 1000, 200)
    assert len(spans) > 1
    assert _reconstruct(spans) == text
    for prev, cur in zip(spans, spans[1:]):
        assert cur.start <= prev.end
        assert prev.end - cur.start <= 200
    for span in spans:
        assert text[span.start : span.end] == span.text
