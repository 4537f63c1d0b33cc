"""
Custom Exceptions for the PDF Parsing Pipeline.

This module defines a hierarchy of exceptions for precise error handling
across validation, decoding, and OCR stages.

Exception Hierarchy:
    ParsingError (base)
    ├── InvalidDocumentError
    ├── NoTextError
    ├── DecodeError
    │   ├── DecodeCorruptError
    │   ├── DecodeTimeoutError
    │   └── DecodeUnsupportedError
    └── OCRError
        ├── OCREngineUnavailableError
        ├── OCRTimeoutError
        └── PageRenderError

Usage:
    from pdf_parser.exceptions import (
        ParsingError,
        DecodeCorruptError,
        DecodeTimeoutError,
    )

    try:
        extracted = extractor.extract(data)
    except DecodeTimeoutError as e:
        print(f"Decoder timed out after {e.timeout_seconds}s")
    except DecodeCorruptError as e:
        print(f"Unreadable document: {e}")
    except ParsingError as e:
        print(f"Parsing failed: {e}")
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .models import ValidationResult


# =============================================================================
# BASE EXCEPTION
# =============================================================================


class ParsingError(Exception):
    """
    Base exception for all parsing-related errors.

    Attributes:
        message: Human-readable error description
        details: Additional technical details (optional)
    """

    def __init__(
        self,
        message: str = "A parsing error occurred",
        details: Optional[str] = None,
    ):
        self.message = message
        self.details = details

        full_message = message
        if details:
            full_message = f"{message} | Details: {details}"

        super().__init__(full_message)


# =============================================================================
# DOCUMENT ERRORS
# =============================================================================


class InvalidDocumentError(ParsingError):
    """
    Raised when the structural validator rejects the input bytes.

    Attributes:
        errors: Validation errors that made the document unusable
        validation: The full ValidationResult, warnings included (optional)
    """

    def __init__(
        self,
        errors: Optional[list[str]] = None,
        validation: Optional[ValidationResult] = None,
    ):
        self.errors = errors or []
        self.validation = validation
        message = "Invalid PDF document"
        if self.errors:
            message = f"{message}: {'; '.join(self.errors)}"
        super().__init__(message)


class NoTextError(ParsingError):
    """
    Raised when a structurally valid document yields no recoverable text.

    Distinct from corruption: retrying the same document the same way
    will not help.
    """

    def __init__(
        self,
        page_count: int = 0,
        ocr_attempted: bool = False,
    ):
        self.page_count = page_count
        self.ocr_attempted = ocr_attempted
        message = f"No extractable text found in {page_count} page(s)"
        if not ocr_attempted:
            message = f"{message}; OCR was not attempted"
        super().__init__(message)


# =============================================================================
# DECODE ERRORS
# =============================================================================


class DecodeError(ParsingError):
    """
    Base class for document decoder failures.

    Attributes:
        original_error: The underlying error from the decoding library
    """

    def __init__(
        self,
        message: str = "Document decoding failed",
        original_error: Optional[Exception] = None,
    ):
        self.original_error = original_error
        details = str(original_error) if original_error else None
        super().__init__(message, details)


class DecodeCorruptError(DecodeError):
    """Raised when the decoder cannot read the document at all."""

    def __init__(
        self,
        message: str = "PDF is corrupted or unreadable",
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, original_error)


class DecodeTimeoutError(DecodeError):
    """
    Raised when the decoder does not finish within the allowed time.

    Attributes:
        timeout_seconds: The timeout that was exceeded
    """

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"PDF decoding timed out after {timeout_seconds}s")


class DecodeUnsupportedError(DecodeError):
    """
    Raised when the document uses a feature the decoder cannot handle.

    Password protection is the common case.

    Attributes:
        feature: Short name of the unsupported feature
    """

    def __init__(
        self,
        feature: str,
        original_error: Optional[Exception] = None,
    ):
        self.feature = feature
        super().__init__(f"Unsupported PDF feature: {feature}", original_error)


# =============================================================================
# OCR ERRORS
# =============================================================================


class OCRError(ParsingError):
    """
    Base class for optical recognition failures.

    Attributes:
        page_number: The page being recognized (1-indexed), if known
        original_error: The underlying engine error
    """

    def __init__(
        self,
        message: str = "OCR failed",
        page_number: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        self.page_number = page_number
        self.original_error = original_error
        if page_number is not None:
            message = f"{message} (page {page_number})"
        details = str(original_error) if original_error else None
        super().__init__(message, details)


class OCREngineUnavailableError(OCRError):
    """Raised when the OCR engine cannot be found or initialized."""

    def __init__(
        self,
        message: str = "OCR engine is not available",
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, original_error=original_error)


class OCRTimeoutError(OCRError):
    """Raised when recognition of a page exceeds its timeout."""

    def __init__(self, page_number: int, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"OCR timed out after {timeout_seconds}s",
            page_number=page_number,
        )


class PageRenderError(OCRError):
    """Raised when a page cannot be rendered to an image for OCR."""

    def __init__(
        self,
        page_number: int,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            "Failed to render page",
            page_number=page_number,
            original_error=original_error,
        )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """
    Check if an error might succeed on a later attempt.

    Only timeouts qualify. Corrupt input, unsupported features and
    text-less documents fail the same way every time.
    """
    return isinstance(error, (DecodeTimeoutError, OCRTimeoutError))


def format_error_chain(error: Exception) -> str:
    """
    Format an exception and its chain for logging.

    Returns a multi-line string showing the error hierarchy.
    """
    lines = []
    current = error
    depth = 0

    while current is not None:
        prefix = "  " * depth + ("└─ " if depth > 0 else "")
        lines.append(f"{prefix}{type(current).__name__}: {current}")

        if getattr(current, "original_error", None):
            current = current.original_error
            depth += 1
        elif current.__cause__:
            current = current.__cause__
            depth += 1
        else:
            break

    return "\n".join(lines)
