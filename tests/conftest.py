"""
Pytest fixtures for PDF Parser tests.
"""

import fitz
import pytest

from pdf_parser import ParseOptions

from fakes import (
    MINIMAL_TEXT,
    FakeOCREngine,
    FakeRenderer,
    line,
    make_pdf_bytes,
)


@pytest.fixture
def pdf_bytes():
    """Byte-level valid PDF for use with fake decoders."""
    return make_pdf_bytes()


@pytest.fixture
def minimal_pdf():
    """A real one-page PDF with one line of text."""
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), MINIMAL_TEXT, fontsize=11)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def minimal_pdf_file(tmp_path, minimal_pdf):
    path = tmp_path / "minimal.pdf"
    path.write_bytes(minimal_pdf)
    return path


@pytest.fixture
def text_page():
    """Decoder items for a page with plenty of native text."""
    return [
        line("Quarterly results improved across every region this year.", y=100),
        line("Revenue growth was driven by new customers and renewals.", y=115),
    ]


@pytest.fixture
def scanned_page():
    """Decoder items for a page whose text layer is nearly empty."""
    return [line("x", y=100)]


@pytest.fixture
def fake_engine():
    return FakeOCREngine()


@pytest.fixture
def fake_renderer():
    return FakeRenderer()


@pytest.fixture
def ocr_options():
    return ParseOptions(perform_ocr=True)
