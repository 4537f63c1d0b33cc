"""
Structural PDF validation.

Cheap byte-level checks that run before any decoding. The validator never
decrypts or repairs a document; it only reports what it sees.

Fatal problems (reported as errors, short-circuiting everything else):
    - file smaller than MIN_FILE_SIZE or larger than MAX_FILE_SIZE
    - missing %PDF magic prefix

Everything else is a warning: version oddities, missing structural
markers, scripting and auto-action markers, corruption indicators.

Usage:
    from pdf_parser.validator import PDFValidator

    result = PDFValidator().validate(data, filename="report.pdf")
    if not result.is_valid:
        print(result.errors)
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from .exceptions import InvalidDocumentError
from .models import Complexity, ValidationMetadata, ValidationResult

logger = logging.getLogger(__name__)


_VERSION = re.compile(r"%PDF-(\d\.\d)")
_PAGE_OBJECT = re.compile(r"/Type\s*/Page(?!s)")
_ENCRYPT = re.compile(r"/Encrypt\s+\d+\s+\d+\s+R")
_FONT = re.compile(r"/Type\s*/Font")
_TEXT_BLOCK = re.compile(r"BT\s+.*?ET", re.DOTALL)
_XOBJECT = re.compile(r"/Type\s*/XObject")
_IMAGE_MARKERS = [
    re.compile(r"/Type\s*/XObject\s*/Subtype\s*/Image"),
    re.compile(r"/Filter\s*/DCTDecode"),
    re.compile(r"/Filter\s*/FlateDecode"),
]

_STRUCTURE_MARKERS = [
    ("trailer", re.compile(r"trailer\s*<<")),
    ("xref", re.compile(r"xref\s*\n")),
    ("startxref", re.compile(r"startxref\s*\n?\d+")),
]

# (flag, pattern, warning)
_SECURITY_MARKERS = [
    ("javascript", re.compile(r"/JavaScript\s*<<"), "PDF contains JavaScript code"),
    ("open_action", re.compile(r"/OpenAction\s*<<"), "PDF has automatic action triggers"),
    ("launch", re.compile(r"/Launch\s*<<"), "PDF can launch external applications"),
    ("external_uri", re.compile(r"/URI\s*\([^)]*\)"), "PDF contains external URI links"),
    ("embedded_file", re.compile(r"/EmbeddedFile\s*<<"), "PDF contains embedded files"),
]

_CORRUPTION_MARKERS = [
    (re.compile(r"obj\s*<<\s*>>"), "Empty object definitions found"),
    (re.compile(r"/Length\s+0\s*>>"), "Zero-length streams detected"),
    (re.compile(r"/Type\s*/Catalog.*?/Type\s*/Catalog", re.DOTALL), "Duplicate catalog objects"),
]


class PDFValidator:
    """
    Byte-level structural validator.

    Thresholds are class attributes so callers can subclass or patch them.
    """

    MAGIC = b"%PDF"
    MIN_FILE_SIZE = 100
    MAX_FILE_SIZE = 50 * 1024 * 1024
    MIN_VERSION = 1.0
    MAX_VERSION = 2.0
    MAX_PAGES = 1000
    NULL_BYTE_RATIO = 0.1
    LOW_COMPLEXITY = 3
    MEDIUM_COMPLEXITY = 7

    def validate(self, data: bytes, filename: Optional[str] = None) -> ValidationResult:
        """
        Validate raw document bytes.

        Args:
            data: The complete document
            filename: Optional original filename (extension check only)

        Returns:
            ValidationResult; is_valid is False iff errors is non-empty.
        """
        result = ValidationResult(metadata=ValidationMetadata(file_size=len(data)))

        try:
            self._check_basic(data, filename, result)
            if result.errors:
                result.is_valid = False
                return result

            text = data.decode("latin-1")
            self._check_structure(text, result)
            self._check_security(text, result)
            self._analyze_content(text, result)
        except Exception as e:
            logger.error(f"Validation failed unexpectedly: {e}")
            result.errors.append(f"Validation failed: {e}")

        result.is_valid = not result.errors
        if result.warnings:
            logger.debug(f"Validation warnings: {result.warnings}")
        return result

    def require_valid(self, data: bytes, filename: Optional[str] = None) -> ValidationResult:
        """
        Validate and raise if the document is unusable.

        Raises:
            InvalidDocumentError: The validation produced errors; the
                full result is attached as error.validation
        """
        result = self.validate(data, filename)
        if not result.is_valid:
            raise InvalidDocumentError(result.errors, validation=result)
        return result

    def quick_validate(
        self,
        data: bytes,
        filename: Optional[str] = None,
    ) -> tuple[bool, Optional[str]]:
        """
        Fast gate for upload endpoints: size, magic bytes and extension.

        Unlike validate(), a wrong extension is an error here.
        """
        if len(data) < self.MIN_FILE_SIZE:
            return False, "File too small"
        if len(data) > self.MAX_FILE_SIZE:
            return False, "File too large"
        if not data.startswith(self.MAGIC):
            return False, "Not a valid PDF file"
        if filename and not filename.lower().endswith(".pdf"):
            return False, "File must have .pdf extension"
        return True, None

    @staticmethod
    def is_text_extraction_friendly(result: ValidationResult) -> bool:
        """True if native text extraction is likely to work without OCR."""
        if not result.is_valid:
            return False
        meta = result.metadata
        if meta.is_encrypted or not meta.has_text:
            return False
        return meta.complexity != Complexity.HIGH

    # -------------------------------------------------------------------------
    # Checks
    # -------------------------------------------------------------------------

    def _check_basic(
        self,
        data: bytes,
        filename: Optional[str],
        result: ValidationResult,
    ) -> None:
        if len(data) < self.MIN_FILE_SIZE:
            result.errors.append("File is too small to be a valid PDF")
            return

        if len(data) > self.MAX_FILE_SIZE:
            limit_mb = self.MAX_FILE_SIZE // (1024 * 1024)
            result.errors.append(f"File size exceeds maximum allowed size of {limit_mb}MB")
            return

        if filename and not filename.lower().endswith(".pdf"):
            result.warnings.append("File extension is not .pdf")

        if not data.startswith(self.MAGIC):
            result.errors.append("File does not start with PDF magic bytes (%PDF)")
            return

        match = _VERSION.search(data[:20].decode("ascii", errors="replace"))
        if not match:
            result.warnings.append("Could not determine PDF version")
            return

        result.metadata.version = match.group(1)
        version = float(match.group(1))
        if version < self.MIN_VERSION or version > self.MAX_VERSION:
            result.warnings.append(f"Unusual PDF version: {version}")

    def _check_structure(self, text: str, result: ValidationResult) -> None:
        for name, pattern in _STRUCTURE_MARKERS:
            if not pattern.search(text):
                result.warnings.append(f"Missing PDF structure element: {name}")

        page_count = len(_PAGE_OBJECT.findall(text))
        result.metadata.page_count_estimate = page_count
        if page_count == 0:
            result.warnings.append("PDF appears to have no pages")
        elif page_count > self.MAX_PAGES:
            result.warnings.append("PDF has an unusually high number of pages")

        for pattern, warning in _CORRUPTION_MARKERS:
            if pattern.search(text):
                result.warnings.append(warning)

        if not text.rstrip().endswith("%%EOF"):
            result.warnings.append("PDF may be truncated - missing proper EOF marker")

        if text.count("\x00") > len(text) * self.NULL_BYTE_RATIO:
            result.warnings.append("High number of null bytes detected - possible corruption")

    def _check_security(self, text: str, result: ValidationResult) -> None:
        if _ENCRYPT.search(text):
            result.metadata.is_encrypted = True
            result.warnings.append("PDF is encrypted - may require password for processing")

        for flag, pattern, warning in _SECURITY_MARKERS:
            if pattern.search(text):
                result.metadata.security_flags.append(flag)
                result.warnings.append(warning)

    def _analyze_content(self, text: str, result: ValidationResult) -> None:
        fonts = len(_FONT.findall(text))
        text_blocks = len(_TEXT_BLOCK.findall(text))
        xobjects = len(_XOBJECT.findall(text))

        result.metadata.has_text = fonts > 0 or text_blocks > 0
        result.metadata.has_images = any(p.search(text) for p in _IMAGE_MARKERS)

        score = 0.0
        score += min(text_blocks / 10, 3)
        score += min(xobjects / 5, 4)
        score += min(fonts / 3, 2)
        if "/AcroForm" in text:
            score += 2

        if score < self.LOW_COMPLEXITY:
            result.metadata.complexity = Complexity.LOW
        elif score < self.MEDIUM_COMPLEXITY:
            result.metadata.complexity = Complexity.MEDIUM
        else:
            result.metadata.complexity = Complexity.HIGH
            result.warnings.append("Complex PDF may require longer processing time")
