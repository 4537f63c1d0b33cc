"""
PDF Parser - Structured ingestion of PDF documents

Converts raw PDF bytes into per-page text, inferred tables and
token-bounded semantic chunks for retrieval-augmented querying.

Features:
- Byte-level structural validation before any decoding
- Pluggable decoders (PyMuPDF spans or pdfplumber words)
- Row and table reconstruction from positioned text
- Tesseract OCR fallback for image-based or empty pages
- Paragraph-aligned chunking with approximate page provenance
- Batched page processing with cancellation and timeouts

Quick Start:
    from pdf_parser import parse_document, ParseOptions

    with open("document.pdf", "rb") as f:
        result = parse_document(f.read(), ParseOptions(perform_ocr=True))

    if result.success:
        print(f"Pages: {len(result.pages)}")
        print(f"Tables: {len(result.tables)}")
        for chunk in result.chunks:
            print(chunk.page, chunk.type.value, chunk.text[:80])
    else:
        print(f"{result.error_code.value}: {result.error}")

    result.save("output.json")

Environment:
    TESSERACT_CMD: Optional path to the tesseract binary for OCR
"""

__version__ = "1.0.0"

# Main entry points
from .pipeline import PDFParser, parse_document

# Components
from .validator import PDFValidator
from .decoder import (
    DecodedDocument,
    DecodedItem,
    DocumentDecoder,
    PdfPlumberDecoder,
    PyMuPDFDecoder,
    get_decoder,
)
from .extractor import ExtractedDocument, PositionedTextExtractor
from .layout import LayoutReconstructor
from .ocr import (
    OCREngine,
    OCRFallbackController,
    OCRResult,
    PageRenderer,
    PyMuPDFPageRenderer,
    TesseractEngine,
)

# Data models
from .models import (
    BoundingBox,
    Complexity,
    ErrorCode,
    LayoutConfig,
    ParsedPage,
    ParsedTable,
    ParseOptions,
    ParseResult,
    PDFMetadata,
    PositionedFragment,
    ValidationMetadata,
    ValidationResult,
)
from chunking.models import ChunkType, PageMatch, TextChunk

# Exceptions
from .exceptions import (
    ParsingError,
    InvalidDocumentError,
    NoTextError,
    DecodeError,
    DecodeCorruptError,
    DecodeTimeoutError,
    DecodeUnsupportedError,
    OCRError,
    OCREngineUnavailableError,
    OCRTimeoutError,
    PageRenderError,
    is_retryable,
    format_error_chain,
)

__all__ = [
    "__version__",
    # Entry points
    "PDFParser",
    "parse_document",
    # Components
    "PDFValidator",
    "DocumentDecoder",
    "DecodedDocument",
    "DecodedItem",
    "PyMuPDFDecoder",
    "PdfPlumberDecoder",
    "get_decoder",
    "PositionedTextExtractor",
    "ExtractedDocument",
    "LayoutReconstructor",
    "OCREngine",
    "OCRResult",
    "PageRenderer",
    "TesseractEngine",
    "PyMuPDFPageRenderer",
    "OCRFallbackController",
    # Models
    "BoundingBox",
    "Complexity",
    "ErrorCode",
    "LayoutConfig",
    "ParsedPage",
    "ParsedTable",
    "ParseOptions",
    "ParseResult",
    "PDFMetadata",
    "PositionedFragment",
    "ValidationMetadata",
    "ValidationResult",
    "ChunkType",
    "PageMatch",
    "TextChunk",
    # Exceptions
    "ParsingError",
    "InvalidDocumentError",
    "NoTextError",
    "DecodeError",
    "DecodeCorruptError",
    "DecodeTimeoutError",
    "DecodeUnsupportedError",
    "OCRError",
    "OCREngineUnavailableError",
    "OCRTimeoutError",
    "PageRenderError",
    "is_retryable",
    "format_error_chain",
]
