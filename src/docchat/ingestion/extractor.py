"""Text extraction from uploaded bytes, keyed by mime type."""

from __future__ import annotations

import io
import logging
import re
from collections.abc import Callable

from docchat.errors import UnsupportedFormat

logger = logging.getLogger(__name__)

PDF = "application/pdf"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_whitespace(text: str) -> str:
    """Collapse every run of whitespace to one space and trim the ends."""
    return _WHITESPACE_RE.sub(" ", text).strip()


def _decode_text(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def _extract_html(data: bytes) -> str:
    from bs4 import BeautifulSoup

    soup = BeautifulSoup(_decode_text(data), "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    return soup.get_text(separator=" ")


def _extract_pdf(data: bytes) -> str:
    from pypdf import PdfReader

    reader = PdfReader(io.BytesIO(data))
    return "\n\n".join(page.extract_text() or "" for page in reader.pages)


def _extract_docx(data: bytes) -> str:
    from docx import Document

    doc = Document(io.BytesIO(data))
    return "\n".join(p.text for p in doc.paragraphs)


# MIME type to extractor mapping
EXTRACTORS: dict[str, Callable[[bytes], str]] = {
    "text/plain": _decode_text,
    "text/markdown": _decode_text,
    "text/html": _extract_html,
    PDF: _extract_pdf,
    DOCX: _extract_docx,
}


def supported_mime_types() -> list[str]:
    return sorted(EXTRACTORS)


def extract(data: bytes, mime_type: str) -> str:
    """Return the whitespace-normalised text of *data*.

    Parameters
    ----------
    data:
        Raw uploaded bytes.
    mime_type:
        Declared content type. Parameters such as ``; charset=utf-8`` are
        ignored.

    Raises
    ------
    UnsupportedFormat
        When *mime_type* is not in :data:`EXTRACTORS`, or when the bytes
        cannot be parsed as that type.
    """
    base_type = (mime_type or "").split(";", 1)[0].strip().lower()
    extractor = EXTRACTORS.get(base_type)
    if extractor is None:
        raise UnsupportedFormat(mime_type)

    if not data:
        return ""

    try:
        raw = extractor(data)
    except Exception as exc:
        logger.warning("Could not parse %d bytes as %s", len(data), base_type, exc_info=True)
        raise UnsupportedFormat(mime_type, detail=str(exc)) from exc

    return normalize_whitespace(raw)
