"""
Data Models for the PDF Parsing Pipeline.

The pipeline turns raw PDF bytes into pages, tables and chunks:

    bytes → [Validate]     → ValidationResult
          → [Decode]       → PositionedFragment[] per page
          → [Reconstruct]  → ParsedPage (text, tables, image flag)
          → [OCR fallback] → ParsedPage with ocr_text
          → [Chunk]        → TextChunk[]
                                ↓
                           ParseResult

Design Principles:
    - Pydantic v2 for validation, serialization, and JSON Schema generation
    - Immutable value objects (fragments, tables, chunks) are frozen
    - One canonical shape per artifact; legacy field names only appear in
      ParseResult.to_records()

Usage:
    from pdf_parser import parse_document, ParseOptions

    result = parse_document(pdf_bytes, ParseOptions(perform_ocr=True))
    for page in result.pages:
        print(f"Page {page.page_number}: {len(page.tables)} tables")
"""

from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, computed_field

from chunking.models import TextChunk


# =============================================================================
# ENUMS
# =============================================================================


class Complexity(str, Enum):
    """Structural complexity estimate produced by the validator."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ErrorCode(str, Enum):
    """
    Document-level failure codes reported on ParseResult.

    INVALID_PDF: rejected by the structural validator
    DECODE_FAILED: the decoder could not read the document
    DECODE_TIMEOUT: the decoder did not finish in time
    UNSUPPORTED_FEATURE: e.g. password protection, with no OCR fallback
    NO_PDF_TEXT: valid PDF, but no text after extraction and OCR
    CANCELLED: stopped before any text was recovered; safe to retry
    PARSE_FAILED: unexpected internal failure
    """

    INVALID_PDF = "INVALID_PDF"
    DECODE_FAILED = "DECODE_FAILED"
    DECODE_TIMEOUT = "DECODE_TIMEOUT"
    UNSUPPORTED_FEATURE = "UNSUPPORTED_FEATURE"
    NO_PDF_TEXT = "NO_PDF_TEXT"
    CANCELLED = "CANCELLED"
    PARSE_FAILED = "PARSE_FAILED"


# =============================================================================
# VALIDATION MODELS
# =============================================================================


class ValidationMetadata(BaseModel):
    """Facts the validator learned from a byte-level scan."""

    version: Optional[str] = Field(None, description="PDF header version, e.g. '1.7'")
    page_count_estimate: Optional[int] = Field(
        None,
        description="Number of '/Type /Page' objects found"
    )
    has_text: bool = False
    has_images: bool = False
    is_encrypted: bool = False
    file_size: int = 0
    complexity: Complexity = Complexity.LOW
    security_flags: list[str] = Field(
        default_factory=list,
        description="Scripting, auto-action, launch, URI and embedded-file markers found"
    )


class ValidationResult(BaseModel):
    """
    Verdict of the structural validator.

    Errors make the document unusable; warnings are informational.
    """

    is_valid: bool = True
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    metadata: ValidationMetadata = Field(default_factory=ValidationMetadata)

    @property
    def should_prefer_ocr(self) -> bool:
        """Encrypted or text-less documents are better served by OCR."""
        return self.metadata.is_encrypted or not self.metadata.has_text


# =============================================================================
# LAYOUT MODELS
# =============================================================================


class PositionedFragment(BaseModel):
    """
    One positioned run of text as reported by the document decoder.

    Coordinates are in PDF user-space units with y growing downwards.
    """

    text: str
    x: float
    y: float
    width: float = 0.0
    height: float = 0.0
    page_index: int = Field(0, ge=0, description="0-indexed page")

    model_config = {"frozen": True}

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height


class BoundingBox(BaseModel):
    x: float
    y: float
    width: float
    height: float

    model_config = {"frozen": True}


class ParsedTable(BaseModel):
    """
    A table inferred from column-aligned rows.

    The first row of the detected region becomes the headers.
    """

    page: int = Field(..., ge=1)
    headers: Optional[list[str]] = None
    rows: list[list[str]] = Field(default_factory=list)
    bounding_box: BoundingBox

    model_config = {"frozen": True}


class LayoutConfig(BaseModel):
    """
    Empirically tuned layout heuristics.

    Units are PDF user-space units (points) unless noted.
    """

    same_line_tolerance: float = Field(
        2.0,
        ge=0.0,
        description="Max vertical distance for two fragments to sort as one line"
    )
    row_tolerance: float = Field(
        3.0,
        ge=0.0,
        description="Max vertical span of a row used for table detection"
    )
    gap_variance_threshold: float = Field(
        100.0,
        ge=0.0,
        description="Column gaps with a variance below this make a row table-like"
    )
    min_table_rows: int = Field(
        2,
        ge=2,
        description="Consecutive table-like rows needed to form a table region"
    )
    min_data_rows: int = Field(
        1,
        ge=1,
        description="Data rows (after the header row) a table needs to be kept"
    )
    image_min_chars: int = Field(
        50,
        ge=0,
        description="Pages with fewer extracted characters are image-based"
    )
    image_min_avg_chars: float = Field(
        3.0,
        ge=0.0,
        description="Average characters per fragment below which text looks garbled"
    )
    image_min_fragments: int = Field(
        10,
        ge=0,
        description="Fragment count above which the average-length rule applies"
    )


class ParsedPage(BaseModel):
    """
    Structured output for one page.

    Created by the layout reconstructor; the OCR fallback may replace
    text with ocr_text.
    """

    page_number: int = Field(..., ge=1, description="1-indexed page number")
    text: str = ""
    structured_text: list[PositionedFragment] = Field(default_factory=list)
    tables: list[ParsedTable] = Field(default_factory=list)
    is_image_based: bool = False
    ocr_text: Optional[str] = None
    ocr_confidence: Optional[float] = Field(
        None,
        description="Mean recognition confidence (0-100) when OCR ran"
    )
    ocr_low_confidence: bool = Field(
        False,
        description="True when OCR confidence fell below the configured threshold"
    )
    error: Optional[str] = Field(
        None,
        description="Page-level failure note; the page is degraded, not dropped"
    )


# =============================================================================
# OPTIONS
# =============================================================================


class ParseOptions(BaseModel):
    """
    Per-document parsing options.
    """

    extract_tables: bool = Field(True, description="Run table detection")
    perform_ocr: bool = Field(False, description="OCR image-based or empty pages")
    auto_ocr: bool = Field(
        False,
        description="Also enable OCR when the validator finds encryption or no text"
    )
    ocr_confidence_threshold: float = Field(
        70.0,
        ge=0.0,
        le=100.0,
        description="Minimum mean OCR confidence considered trustworthy"
    )
    ocr_low_confidence_policy: Literal["accept", "flag", "discard"] = Field(
        "flag",
        description="accept: use as-is; flag: use and mark the page; discard: keep native text"
    )
    chunk_token_budget: int = Field(4000, ge=1, description="Max tokens per chunk")
    preserve_formatting: bool = Field(
        True,
        description="Join fragments with spaces (True) or newlines (False)"
    )
    max_pages: Optional[int] = Field(None, ge=1, description="Process at most this many pages")
    page_batch_size: int = Field(5, ge=1, le=64, description="Pages processed concurrently")
    decode_timeout_seconds: Optional[float] = Field(
        120.0,
        gt=0,
        description="Timeout for decoding the whole document (None disables)"
    )
    ocr_timeout_seconds: Optional[float] = Field(
        60.0,
        gt=0,
        description="Timeout for rendering and recognizing one page (None disables)"
    )
    layout: LayoutConfig = Field(default_factory=LayoutConfig)


# =============================================================================
# FINAL RESULT
# =============================================================================


class PDFMetadata(BaseModel):
    """Document-level metadata from the decoder and the pipeline."""

    page_count: int = 0
    file_size: int = 0
    title: Optional[str] = None
    author: Optional[str] = None
    subject: Optional[str] = None
    creator: Optional[str] = None
    producer: Optional[str] = None
    creation_date: Optional[str] = None
    modification_date: Optional[str] = None
    pdf_version: Optional[str] = None
    word_count: int = 0
    pages_processed: int = 0


class ParseResult(BaseModel):
    """
    Complete result of parsing one document.

    Ready for downstream processing (embedding, storage, context assembly).
    """

    success: bool
    metadata: PDFMetadata = Field(default_factory=PDFMetadata)
    pages: list[ParsedPage] = Field(default_factory=list)
    full_text: str = ""
    tables: list[ParsedTable] = Field(default_factory=list)
    chunks: list[TextChunk] = Field(default_factory=list)
    processing_time_ms: float = 0.0
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    validation: Optional[ValidationResult] = None
    warnings: list[str] = Field(default_factory=list)
    incomplete: bool = Field(
        False,
        description="True when cancellation stopped processing before all pages ran"
    )
    parsed_at: datetime = Field(default_factory=datetime.utcnow)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: ErrorCode,
        file_size: int = 0,
        validation: Optional[ValidationResult] = None,
        processing_time_ms: float = 0.0,
    ) -> "ParseResult":
        """Build a fatal result: no pages, no chunks."""
        warnings = list(validation.warnings) if validation else []
        return cls(
            success=False,
            metadata=PDFMetadata(file_size=file_size),
            error=error,
            error_code=error_code,
            validation=validation,
            warnings=warnings,
            processing_time_ms=processing_time_ms,
        )

    # --- Statistics ---

    @computed_field
    @property
    def image_based_pages(self) -> list[int]:
        """Page numbers flagged as lacking a usable text layer."""
        return [p.page_number for p in self.pages if p.is_image_based]

    def get_page(self, page_number: int) -> Optional[ParsedPage]:
        for page in self.pages:
            if page.page_number == page_number:
                return page
        return None

    def get_statistics(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "pages": len(self.pages),
            "image_based_pages": len(self.image_based_pages),
            "ocr_pages": sum(1 for p in self.pages if p.ocr_text),
            "failed_pages": sum(1 for p in self.pages if p.error),
            "tables": len(self.tables),
            "chunks": len(self.chunks),
            "words": self.metadata.word_count,
            "processing_time_ms": round(self.processing_time_ms, 1),
            "warnings": len(self.warnings),
            "incomplete": self.incomplete,
        }

    # --- Export Methods ---

    def to_dict(self) -> dict[str, Any]:
        """Export as dictionary for serialization."""
        return self.model_dump(mode="json")

    def to_json(self, indent: int = 2) -> str:
        """Export as formatted JSON string."""
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=indent)

    def save(self, path: str) -> None:
        """Save parse result to a JSON file."""
        Path(path).write_text(self.to_json(), encoding="utf-8")

    @classmethod
    def load(cls, path: str) -> "ParseResult":
        """Load parse result from a JSON file."""
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls.model_validate(data)

    def to_records(self) -> dict[str, list[dict[str, Any]]]:
        """
        Row-shaped export for storage layers.

        Chunk rows carry the legacy column names next to the canonical ones.
        """
        return {
            "chunks": [chunk.to_record() for chunk in self.chunks],
            "tables": [
                {
                    "page_number": table.page,
                    "headers": table.headers,
                    "table_data": table.rows,
                    "position": table.bounding_box.model_dump(),
                }
                for table in self.tables
            ],
        }


# =============================================================================
# API MODELS
# =============================================================================


class ParseRequest(BaseModel):
    pdf_path: str
    options: Optional[ParseOptions] = Field(
        None,
        description="Defaults to the service settings when omitted"
    )


class ValidateRequest(BaseModel):
    pdf_path: str


class ParseResponse(BaseModel):
    success: bool
    page_count: int
    tables: int
    chunks: int
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    warnings: list[str] = Field(default_factory=list)
    incomplete: bool = False
    output_path: Optional[str] = None
