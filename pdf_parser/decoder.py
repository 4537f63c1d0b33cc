"""
Document decoders - the pluggable low-level PDF readers.

A decoder turns PDF bytes into a flat list of positioned text items plus
the page count and document info. Everything above this layer (row
grouping, tables, OCR) works on those items only, so decoders can be
swapped without touching the rest of the pipeline.

Implementations:
    PyMuPDFDecoder      text spans from page.get_text("dict")  (default)
    PdfPlumberDecoder   words from page.extract_words()

Usage:
    from pdf_parser.decoder import get_decoder

    decoder = get_decoder("pdfplumber")
    decoded = decoder.decode(data)
    print(decoded.page_count, len(decoded.items))
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import fitz  # PyMuPDF
import pdfplumber
from pdfminer.pdfdocument import PDFPasswordIncorrect

from .exceptions import DecodeCorruptError, DecodeUnsupportedError

logger = logging.getLogger(__name__)


@dataclass
class DecodedItem:
    """One positioned run of text, in decoder coordinates (y grows down)."""

    page_index: int
    text: Optional[str]
    x: Optional[float]
    y: Optional[float]
    width: float = 0.0
    height: float = 0.0


@dataclass
class DecodedDocument:
    page_count: int
    items: list[DecodedItem] = field(default_factory=list)
    info: dict[str, Any] = field(default_factory=dict)


class DocumentDecoder(Protocol):
    """
    Anything that can turn PDF bytes into positioned text items.

    decode() raises DecodeCorruptError for unreadable input and
    DecodeUnsupportedError for features it cannot handle.
    """

    name: str

    def decode(self, data: bytes) -> DecodedDocument:
        ...


class PyMuPDFDecoder:
    """Decoder backed by PyMuPDF text spans."""

    name = "pymupdf"

    def decode(self, data: bytes) -> DecodedDocument:
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as e:
            raise DecodeCorruptError(original_error=e) from e

        with doc:
            if doc.needs_pass:
                raise DecodeUnsupportedError("password protection")

            items: list[DecodedItem] = []
            try:
                for page_index, page in enumerate(doc):
                    items.extend(self._page_items(page, page_index))
            except Exception as e:
                raise DecodeCorruptError("Failed to read page content", e) from e

            info = self._document_info(doc.metadata or {})
            page_count = doc.page_count

        logger.debug(f"PyMuPDF decoded {page_count} pages, {len(items)} spans")
        return DecodedDocument(page_count=page_count, items=items, info=info)

    @staticmethod
    def _page_items(page, page_index: int) -> list[DecodedItem]:
        items = []
        content = page.get_text("dict")
        for block in content.get("blocks", []):
            if block.get("type", 0) != 0:
                continue
            for line in block.get("lines", []):
                for span in line.get("spans", []):
                    x0, y0, x1, y1 = span["bbox"]
                    items.append(DecodedItem(
                        page_index=page_index,
                        text=span.get("text"),
                        x=x0,
                        y=y0,
                        width=x1 - x0,
                        height=y1 - y0,
                    ))
        return items

    @staticmethod
    def _document_info(metadata: dict[str, Any]) -> dict[str, Any]:
        version = None
        fmt = metadata.get("format") or ""
        if fmt.startswith("PDF "):
            version = fmt[4:]
        return {
            "title": metadata.get("title") or None,
            "author": metadata.get("author") or None,
            "subject": metadata.get("subject") or None,
            "creator": metadata.get("creator") or None,
            "producer": metadata.get("producer") or None,
            "creation_date": metadata.get("creationDate") or None,
            "modification_date": metadata.get("modDate") or None,
            "pdf_version": version,
        }


class PdfPlumberDecoder:
    """Decoder backed by pdfplumber word extraction."""

    name = "pdfplumber"

    def __init__(self, extract_words_options: Optional[dict[str, Any]] = None):
        self.extract_words_options = extract_words_options or {}

    def decode(self, data: bytes) -> DecodedDocument:
        try:
            pdf = pdfplumber.open(io.BytesIO(data))
        except Exception as e:
            if isinstance(e, PDFPasswordIncorrect):
                raise DecodeUnsupportedError("password protection", e) from e
            raise DecodeCorruptError(original_error=e) from e

        with pdf:
            items: list[DecodedItem] = []
            try:
                for page_index, page in enumerate(pdf.pages):
                    for word in page.extract_words(**self.extract_words_options):
                        items.append(DecodedItem(
                            page_index=page_index,
                            text=word.get("text"),
                            x=word.get("x0"),
                            y=word.get("top"),
                            width=word["x1"] - word["x0"],
                            height=word["bottom"] - word["top"],
                        ))
            except Exception as e:
                raise DecodeCorruptError("Failed to read page content", e) from e

            metadata = pdf.metadata or {}
            info = {
                "title": _as_text(metadata.get("Title")),
                "author": _as_text(metadata.get("Author")),
                "subject": _as_text(metadata.get("Subject")),
                "creator": _as_text(metadata.get("Creator")),
                "producer": _as_text(metadata.get("Producer")),
                "creation_date": _as_text(metadata.get("CreationDate")),
                "modification_date": _as_text(metadata.get("ModDate")),
                "pdf_version": None,
            }
            page_count = len(pdf.pages)

        logger.debug(f"pdfplumber decoded {page_count} pages, {len(items)} words")
        return DecodedDocument(page_count=page_count, items=items, info=info)


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("latin-1", errors="replace")
    value = str(value).strip()
    return value or None


_DECODERS = {
    PyMuPDFDecoder.name: PyMuPDFDecoder,
    PdfPlumberDecoder.name: PdfPlumberDecoder,
}


def get_decoder(name: str = "pymupdf") -> DocumentDecoder:
    """Create a decoder by name ('pymupdf' or 'pdfplumber')."""
    try:
        return _DECODERS[name.lower()]()
    except KeyError:
        raise ValueError(
            f"Unknown decoder '{name}'. Available: {sorted(_DECODERS)}"
        ) from None
