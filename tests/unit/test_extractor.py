"""Unit tests for text extraction."""

from __future__ import annotations

import io

import docx
import pytest

from docchat.errors import UnsupportedFormat
from docchat.ingestion.extractor import DOCX, PDF, extract, normalize_whitespace, supported_mime_types


def _minimal_pdf(text: str) -> bytes:
    """Build a one-page PDF showing *text* in Helvetica."""
    stream = f"BT /F1 24 Tf 72 720 Td ({text}) Tj ET".encode("latin-1")
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        b"/Contents 4 0 R /Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length " + str(len(stream)).encode() + b" >>\nstream\n" + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    out = io.BytesIO()
    out.write(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, 1):
        offsets.append(out.tell())
        out.write(f"{number} 0 obj\n".encode() + body + b"\nendobj\n")
    xref_at = out.tell()
    out.write(f"xref\n0 {len(objects) + 1}\n".encode())
    out.write(b"0000000000 65535 f \n")
    for offset in offsets:
        out.write(f"{offset:010d} 00000 n \n".encode())
    out.write(f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\nstartxref\n{xref_at}\n%%EOF\n".encode())
    return out.getvalue()


def _minimal_docx(*paragraphs: str) -> bytes:
    document = docx.Document()
    for p in paragraphs:
        document.add_paragraph(p)
    buf = io.BytesIO()
    document.save(buf)
    return buf.getvalue()


# ── normalize_whitespace ────────────────────────────────────────────────


class TestNormalizeWhitespace:
    def test_collapses_runs_and_trims(self) -> None:
        assert normalize_whitespace("  a\n\n b\t\tc  ") == "a b c"

    def test_empty(self) -> None:
        assert normalize_whitespace("") == ""


# ── extract ─────────────────────────────────────────────────────────────


class TestExtract:
    def test_plain_text(self) -> None:
        assert extract(b"Hello,\n\n  world!", "text/plain") == "Hello, world!"

    def test_markdown(self) -> None:
        assert extract(b"# Title\n\nSome *body* text.", "text/markdown") == "# Title Some *body* text."

    def test_mime_parameters_and_case_are_ignored(self) -> None:
        assert extract(b"caf\xc3\xa9", "Text/Plain; charset=utf-8") == "café"

    def test_latin1_fallback(self) -> None:
        assert extract(b"caf\xe9", "text/plain") == "café"

    def test_html_drops_markup_and_scripts(self) -> None:
        html = b"<html><head><style>p{}</style><script>alert(1)</script></head><body><h1>Hi</h1><p>there</p></body></html>"
        text = extract(html, "text/html")
        assert text == "Hi there"

    def test_pdf(self) -> None:
        text = extract(_minimal_pdf("Quarterly revenue grew"), PDF)
        assert "Quarterly revenue grew" in text

    def test_docx(self) -> None:
        text = extract(_minimal_docx("First paragraph.", "Second   paragraph."), DOCX)
        assert text == "First paragraph. Second paragraph."

    def test_every_supported_type_yields_text(self) -> None:
        samples = {
            "text/plain": b"sample text",
            "text/markdown": b"sample *text*",
            "text/html": b"<p>sample text</p>",
            PDF: _minimal_pdf("sample text"),
            DOCX: _minimal_docx("sample text"),
        }
        assert set(samples) == set(supported_mime_types())
        for mime_type, data in samples.items():
            text = extract(data, mime_type)
            assert text
            assert text == normalize_whitespace(text)

    def test_empty_input_returns_empty_string(self) -> None:
        for mime_type in supported_mime_types():
            assert extract(b"", mime_type) == ""

    def test_unsupported_mime_type(self) -> None:
        with pytest.raises(UnsupportedFormat, match="image/png"):
            extract(b"\x89PNG", "image/png")

    def test_corrupt_pdf_is_unsupported(self) -> None:
        with pytest.raises(UnsupportedFormat) as excinfo:
            extract(b"definitely not a pdf", PDF)
        assert excinfo.value.mime_type == PDF
        assert excinfo.value.__cause__ is not None

    def test_corrupt_docx_is_unsupported(self) -> None:
        with pytest.raises(UnsupportedFormat):
            extract(b"PK\x03\x04 broken zip", DOCX)
