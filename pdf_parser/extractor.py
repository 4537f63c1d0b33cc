"""
Positioned-Text Extractor.

Wraps a DocumentDecoder and normalizes its output into per-page lists of
PositionedFragment objects plus document metadata.

Guarantees:
    - items with no text or no position are dropped
    - every page the decoder reports is present, even with zero fragments,
      so empty pages still reach the OCR fallback
    - decoder failures surface as typed DecodeError subclasses
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from .decoder import DecodedDocument, DocumentDecoder, PyMuPDFDecoder
from .exceptions import (
    DecodeCorruptError,
    DecodeError,
    DecodeTimeoutError,
)
from .models import PDFMetadata, PositionedFragment
from .timeouts import call_with_timeout

logger = logging.getLogger(__name__)


@dataclass
class ExtractedDocument:
    """Fragments grouped by 0-indexed page, plus document metadata."""

    pages: list[list[PositionedFragment]] = field(default_factory=list)
    metadata: PDFMetadata = field(default_factory=PDFMetadata)

    @property
    def page_count(self) -> int:
        return len(self.pages)


class PositionedTextExtractor:
    """
    Turns PDF bytes into positioned fragments using a pluggable decoder.

    Usage:
        extractor = PositionedTextExtractor(timeout_seconds=30)
        extracted = extractor.extract(data)
        for index, fragments in enumerate(extracted.pages):
            print(index + 1, len(fragments))
    """

    def __init__(
        self,
        decoder: Optional[DocumentDecoder] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.decoder = decoder or PyMuPDFDecoder()
        self.timeout_seconds = timeout_seconds

    def extract(self, data: bytes) -> ExtractedDocument:
        """
        Decode the document and collect fragments per page.

        Raises:
            DecodeCorruptError: The decoder could not read the document
            DecodeTimeoutError: Decoding exceeded timeout_seconds
            DecodeUnsupportedError: The document uses an unsupported feature
        """
        decoded = self._decode(data)

        page_count = max(decoded.page_count, 0)
        pages: list[list[PositionedFragment]] = [[] for _ in range(page_count)]
        dropped = 0

        for item in decoded.items:
            if not item.text or item.x is None or item.y is None:
                dropped += 1
                continue
            if item.page_index < 0 or item.page_index >= page_count:
                dropped += 1
                continue
            pages[item.page_index].append(PositionedFragment(
                text=item.text,
                x=float(item.x),
                y=float(item.y),
                width=float(item.width or 0.0),
                height=float(item.height or 0.0),
                page_index=item.page_index,
            ))

        if dropped:
            logger.debug(f"Dropped {dropped} items without text or position")

        metadata = PDFMetadata(
            page_count=page_count,
            file_size=len(data),
            **{k: v for k, v in decoded.info.items() if k in _INFO_FIELDS},
        )
        return ExtractedDocument(pages=pages, metadata=metadata)

    def _decode(self, data: bytes) -> DecodedDocument:
        name = getattr(self.decoder, "name", type(self.decoder).__name__)
        try:
            return call_with_timeout(
                self.decoder.decode,
                data,
                timeout=self.timeout_seconds,
            )
        except DecodeError:
            raise
        except TimeoutError as e:
            logger.error(f"Decoder '{name}' timed out after {self.timeout_seconds}s")
            raise DecodeTimeoutError(self.timeout_seconds) from e
        except Exception as e:
            logger.error(f"Decoder '{name}' failed: {e}")
            raise DecodeCorruptError(original_error=e) from e


_INFO_FIELDS = {
    "title",
    "author",
    "subject",
    "creator",
    "producer",
    "creation_date",
    "modification_date",
    "pdf_version",
}
