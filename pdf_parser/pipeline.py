"""
PDF Parser - the per-document pipeline coordinator.

Runs the stages in order and turns every document-level problem into a
ParseResult instead of an exception:

    validate → decode → (per page, in batches) layout + OCR → chunk

Pages are processed concurrently in fixed-size batches; every page of a
batch finishes before the next batch starts. A failing page is degraded
(empty text, marked image-based, error noted), never fatal. Cancellation
is checked between batches and yields a partial, incomplete result.

Usage:
    from pdf_parser import parse_document, ParseOptions

    with open("report.pdf", "rb") as f:
        result = parse_document(f.read(), ParseOptions(perform_ocr=True))

    if result.success:
        for chunk in result.chunks:
            print(chunk.page, chunk.type.value, chunk.token_count)
    else:
        print(result.error_code, result.error)
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

from chunking import ChunkingConfig, SemanticChunker

from .decoder import DocumentDecoder, PyMuPDFDecoder
from .exceptions import (
    DecodeError,
    DecodeTimeoutError,
    DecodeUnsupportedError,
    InvalidDocumentError,
    NoTextError,
    format_error_chain,
)
from .extractor import ExtractedDocument, PositionedTextExtractor
from .layout import LayoutReconstructor
from .models import (
    ErrorCode,
    ParsedPage,
    ParseOptions,
    ParseResult,
    PDFMetadata,
    PositionedFragment,
    ValidationResult,
)
from .ocr import (
    OCREngine,
    OCRFallbackController,
    PageRenderer,
    PyMuPDFPageRenderer,
    TesseractEngine,
)
from .validator import PDFValidator

logger = logging.getLogger(__name__)


class PDFParser:
    """
    Coordinates validation, extraction, layout, OCR and chunking.

    Collaborators are injectable; defaults are PyMuPDF for decoding and
    rendering and Tesseract for OCR.

    Every document that needs OCR gets its own engine from
    ocr_engine_factory, so one parser can serve concurrent documents. An
    explicit ocr_engine is shared by all documents instead and must
    tolerate overlapping sessions (TesseractEngine does).
    """

    def __init__(
        self,
        decoder: Optional[DocumentDecoder] = None,
        ocr_engine: Optional[OCREngine] = None,
        renderer: Optional[PageRenderer] = None,
        validator: Optional[PDFValidator] = None,
        chunking_config: Optional[ChunkingConfig] = None,
        ocr_engine_factory: Optional[Callable[[], OCREngine]] = None,
    ):
        self.decoder = decoder or PyMuPDFDecoder()
        self.ocr_engine = ocr_engine
        self.ocr_engine_factory = ocr_engine_factory or TesseractEngine
        self.renderer = renderer
        self.validator = validator or PDFValidator()
        self.chunking_config = chunking_config or ChunkingConfig()

    def parse(
        self,
        data: bytes,
        options: Optional[ParseOptions] = None,
        filename: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ParseResult:
        """
        Parse one document.

        Never raises for problems with the document itself; check
        result.success and result.error_code instead.
        """
        options = options or ParseOptions()
        started = time.perf_counter()
        try:
            result = self._parse(bytes(data), options, filename, cancel_event)
        except Exception as e:
            logger.error(f"Unexpected parsing failure:\n{format_error_chain(e)}")
            result = ParseResult.failure(
                f"Parsing failed: {e}",
                ErrorCode.PARSE_FAILED,
                file_size=len(data or b""),
            )
        result.processing_time_ms = (time.perf_counter() - started) * 1000
        return result

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    def _parse(
        self,
        data: bytes,
        options: ParseOptions,
        filename: Optional[str],
        cancel_event: Optional[threading.Event],
    ) -> ParseResult:
        try:
            validation = self.validator.require_valid(data, filename)
        except InvalidDocumentError as e:
            logger.info(f"Rejected invalid PDF: {e.errors}")
            return ParseResult.failure(
                str(e),
                ErrorCode.INVALID_PDF,
                file_size=len(data),
                validation=e.validation,
            )

        warnings = list(validation.warnings)
        perform_ocr = options.perform_ocr
        if not perform_ocr and options.auto_ocr and validation.should_prefer_ocr:
            logger.info("Enabling OCR: document is encrypted or has no text objects")
            perform_ocr = True

        extracted = self._extract(data, options, validation, perform_ocr, warnings)
        if isinstance(extracted, ParseResult):
            return extracted

        page_fragments = extracted.pages
        if options.max_pages is not None:
            page_fragments = page_fragments[:options.max_pages]

        controller = OCRFallbackController(
            engine=self._ocr_engine() if perform_ocr else None,
            renderer=self._renderer() if perform_ocr else None,
            enabled=perform_ocr,
            confidence_threshold=options.ocr_confidence_threshold,
            low_confidence_policy=options.ocr_low_confidence_policy,
            timeout_seconds=options.ocr_timeout_seconds,
        )
        layout = LayoutReconstructor(options.layout)

        with controller.session():
            pages, incomplete = self._process_pages(
                data, page_fragments, options, layout, controller, cancel_event
            )

        cancelled = None
        if incomplete:
            cancelled = f"Processing cancelled after {len(pages)} of {len(page_fragments)} pages"
            warnings.append(cancelled)
        warnings.extend(controller.warnings)
        warnings.extend(f"Page {p.page_number}: {p.error}" for p in pages if p.error)

        full_text = "\n\n".join(p.text for p in pages if p.text.strip())
        metadata = extracted.metadata.model_copy(update={
            "word_count": len(full_text.split()),
            "pages_processed": len(pages),
        })
        tables = [table for page in pages for table in page.tables]

        if not full_text.strip():
            # Unprocessed pages may still hold text.
            if incomplete:
                error, code = cancelled, ErrorCode.CANCELLED
            else:
                error = str(NoTextError(len(pages), ocr_attempted=controller.attempted))
                code = ErrorCode.NO_PDF_TEXT
            logger.info(error)
            return ParseResult(
                success=False,
                metadata=metadata,
                pages=pages,
                tables=tables,
                error=error,
                error_code=code,
                validation=validation,
                warnings=warnings,
                incomplete=incomplete,
            )

        chunker = SemanticChunker(self.chunking_config)
        chunks = chunker.chunk(full_text, options.chunk_token_budget, pages)

        logger.info(
            f"Parsed {len(pages)} pages: {len(tables)} tables, {len(chunks)} chunks"
        )
        return ParseResult(
            success=True,
            metadata=metadata,
            pages=pages,
            full_text=full_text,
            tables=tables,
            chunks=chunks,
            validation=validation,
            warnings=warnings,
            incomplete=incomplete,
        )

    def _extract(
        self,
        data: bytes,
        options: ParseOptions,
        validation: ValidationResult,
        perform_ocr: bool,
        warnings: list[str],
    ) -> ExtractedDocument | ParseResult:
        """Decode the document, or return the fatal ParseResult."""
        extractor = PositionedTextExtractor(self.decoder, options.decode_timeout_seconds)
        try:
            return extractor.extract(data)
        except DecodeUnsupportedError as e:
            estimate = validation.metadata.page_count_estimate or 0
            if perform_ocr and estimate > 0:
                logger.warning(f"{e.message}; falling back to OCR for {estimate} pages")
                warnings.append(f"{e.message}; pages recovered with OCR only")
                return ExtractedDocument(
                    pages=[[] for _ in range(estimate)],
                    metadata=PDFMetadata(
                        page_count=estimate,
                        file_size=len(data),
                        pdf_version=validation.metadata.version,
                    ),
                )
            return self._decode_failure(e, ErrorCode.UNSUPPORTED_FEATURE, data, validation)
        except DecodeTimeoutError as e:
            return self._decode_failure(e, ErrorCode.DECODE_TIMEOUT, data, validation)
        except DecodeError as e:
            return self._decode_failure(e, ErrorCode.DECODE_FAILED, data, validation)

    @staticmethod
    def _decode_failure(
        error: DecodeError,
        code: ErrorCode,
        data: bytes,
        validation: ValidationResult,
    ) -> ParseResult:
        logger.error(f"Decoding failed ({code.value}): {error}")
        return ParseResult.failure(
            str(error),
            code,
            file_size=len(data),
            validation=validation,
        )

    def _process_pages(
        self,
        data: bytes,
        page_fragments: list[list[PositionedFragment]],
        options: ParseOptions,
        layout: LayoutReconstructor,
        controller: OCRFallbackController,
        cancel_event: Optional[threading.Event],
    ) -> tuple[list[ParsedPage], bool]:
        pages: list[ParsedPage] = []
        batch_size = options.page_batch_size

        with ThreadPoolExecutor(max_workers=batch_size) as executor:
            for start in range(0, len(page_fragments), batch_size):
                if cancel_event is not None and cancel_event.is_set():
                    logger.info(f"Cancelled before page {start + 1}")
                    return pages, True

                batch = page_fragments[start:start + batch_size]
                futures = [
                    executor.submit(
                        self._process_page,
                        data, fragments, start + offset + 1, options, layout, controller,
                    )
                    for offset, fragments in enumerate(batch)
                ]
                for offset, future in enumerate(futures):
                    page_number = start + offset + 1
                    try:
                        pages.append(future.result())
                    except Exception as e:
                        logger.error(f"Page {page_number} failed: {e}")
                        pages.append(ParsedPage(
                            page_number=page_number,
                            text="",
                            is_image_based=True,
                            error=str(e),
                        ))

        return pages, False

    @staticmethod
    def _process_page(
        data: bytes,
        fragments: list[PositionedFragment],
        page_number: int,
        options: ParseOptions,
        layout: LayoutReconstructor,
        controller: OCRFallbackController,
    ) -> ParsedPage:
        page = layout.reconstruct(
            fragments,
            page_number,
            preserve_formatting=options.preserve_formatting,
            extract_tables=options.extract_tables,
        )
        return controller.maybe_recognize(page, data)

    def _ocr_engine(self) -> OCREngine:
        if self.ocr_engine is not None:
            return self.ocr_engine
        return self.ocr_engine_factory()

    def _renderer(self) -> PageRenderer:
        if self.renderer is None:
            self.renderer = PyMuPDFPageRenderer()
        return self.renderer


def parse_document(
    data: bytes,
    options: Optional[ParseOptions] = None,
    *,
    filename: Optional[str] = None,
    cancel_event: Optional[threading.Event] = None,
    decoder: Optional[DocumentDecoder] = None,
    ocr_engine: Optional[OCREngine] = None,
    renderer: Optional[PageRenderer] = None,
    ocr_engine_factory: Optional[Callable[[], OCREngine]] = None,
) -> ParseResult:
    """
    Parse PDF bytes into pages, tables and chunks.

    Args:
        data: The complete PDF document
        options: Parsing options (defaults: tables on, OCR off, 4000-token chunks)
        filename: Original filename, only used for the extension check
        cancel_event: Set it to stop before the next page batch
        decoder: Document decoder (default: PyMuPDF)
        ocr_engine: OCR engine to use as-is
        renderer: Page renderer for OCR (default: PyMuPDF)
        ocr_engine_factory: Builds the engine when ocr_engine is not given
            (default: a new TesseractEngine when OCR runs)

    Returns:
        ParseResult; success is False with an error_code on failure.
    """
    parser = PDFParser(
        decoder=decoder,
        ocr_engine=ocr_engine,
        renderer=renderer,
        ocr_engine_factory=ocr_engine_factory,
    )
    return parser.parse(data, options, filename=filename, cancel_event=cancel_event)
