"""Tests for PDFExtractorPlugin."""

import io

import pytest
from PyPDF2 import PdfWriter

from aiva.plugins.pdf_extractor import PDFExtractorPlugin


def _blank_pdf(pages=1):
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=200, height=200)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


@pytest.fixture
def extractor():
    return PDFExtractorPlugin(max_pages=2)


def test_empty_input(extractor):
    with pytest.raises(ValueError):
        extractor.extract_text(b"")


def test_scanned_pdf_has_no_text(extractor):
    assert extractor.extract_text(_blank_pdf()).strip() == ""


def test_corrupt_pdf(extractor):
    with pytest.raises(RuntimeError):
        extractor.extract_text(b"%PDF-1.4 this is not really a pdf")


def test_render_is_capped_at_max_pages(extractor):
    pages = extractor.render_pages_png(_blank_pdf(pages=3), resolution=20)

    assert len(pages) == 2
    assert all(page.startswith(b"\x89PNG") for page in pages)
