"""Text chunking with a prioritised separator cascade and overlap."""

from __future__ import annotations

from dataclasses import dataclass

from langchain_text_splitters import RecursiveCharacterTextSplitter

# Paragraph, line, sentence, word, character.
DEFAULT_SEPARATORS = ["\n\n", "\n", ". ", " ", ""]


@dataclass(frozen=True)
class ChunkSpan:
    """A chunk and where it sits in the text it was cut from.

    Attributes
    ----------
    index:
        Ordinal position of the chunk.
    text:
        The chunk content; always equal to ``source[start:end]``.
    start / end:
        Character offsets into the source text.
    """

    index: int
    text: str
    start: int
    end: int


def _build_splitter(size: int, overlap: int) -> RecursiveCharacterTextSplitter:
    if size <= 0:
        raise ValueError(f"chunk size ({size}) must be > 0")
    if overlap < 0 or overlap >= size:
        raise ValueError(f"chunk overlap ({overlap}) must be >= 0 and < chunk size ({size})")
    # Separators stay attached to the end of their fragment and nothing is
    # stripped, so every chunk is an exact substring of the input.
    return RecursiveCharacterTextSplitter(
        chunk_size=size,
        chunk_overlap=overlap,
        length_function=len,
        separators=DEFAULT_SEPARATORS,
        keep_separator="end",
        strip_whitespace=False,
    )


def chunk_with_offsets(text: str, size: int = 1000, overlap: int = 200) -> list[ChunkSpan]:
    """Split *text* into overlapping chunks and locate each one.

    Consecutive chunks cover the text without gaps: chunk ``i`` starts at
    or before the end of chunk ``i - 1``, and the shared prefix is at most
    *overlap* characters long. Dropping that prefix from every chunk but the
    first and concatenating the rest gives back *text*.

    Parameters
    ----------
    text:
        Normalised document text.
    size:
        Maximum number of characters per chunk.
    overlap:
        Maximum number of trailing characters of a chunk repeated at the
        head of the next one.

    Returns
    -------
    list[ChunkSpan]
        Ordered chunks; empty for empty input.
    """
    splitter = _build_splitter(size, overlap)
    if not text:
        return []

    spans: list[ChunkSpan] = []
    covered = 0
    for index, piece in enumerate(splitter.split_text(text)):
        # The piece starts at most ``overlap`` characters behind what is
        # already covered; take the left-most match from there.
        start = text.find(piece, max(0, covered - overlap))
        if start < 0:
            raise RuntimeError(f"chunk {index} is not a substring of its source text")
        end = start + len(piece)
        spans.append(ChunkSpan(index=index, text=piece, start=start, end=end))
        covered = max(covered, end)
    return spans


def chunk(text: str, size: int = 1000, overlap: int = 200) -> list[str]:
    """Split *text* into overlapping chunks of at most *size* characters."""
    return [span.text for span in chunk_with_offsets(text, size=size, overlap=overlap)]
