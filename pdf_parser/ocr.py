"""
OCR fallback for pages without a usable text layer.

Components:
    TesseractEngine        pytesseract wrapper (line text + mean confidence)
    PyMuPDFPageRenderer    renders one page to PNG bytes for the engine
    OCRFallbackController  decides when to OCR and merges the result

The controller owns the engine lifecycle for one document: session()
initializes the engine once and terminates it on every exit path. If the
engine cannot be initialized OCR is disabled for that document and a
warning is recorded; parsing continues with native text.

Usage:
    controller = OCRFallbackController(TesseractEngine(), PyMuPDFPageRenderer())
    with controller.session():
        page = controller.maybe_recognize(page, data)
"""

from __future__ import annotations

import io
import logging
import os
import shlex
import shutil
import string
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Literal, Optional, Protocol

import fitz  # PyMuPDF
import pytesseract
from PIL import Image
from pytesseract import Output, TesseractNotFoundError

from chunking.paragraph_splitter import clean_text

from .exceptions import (
    OCREngineUnavailableError,
    OCRError,
    OCRTimeoutError,
    PageRenderError,
)
from .models import ParsedPage
from .timeouts import call_with_timeout

logger = logging.getLogger(__name__)

# Digits, letters, currency and common punctuation found in business documents.
DEFAULT_WHITELIST = string.digits + string.ascii_letters + "$€£.,:;%&()/+-'\"#@!?"

LowConfidencePolicy = Literal["accept", "flag", "discard"]


@dataclass
class OCRResult:
    text: str
    confidence: float  # mean word confidence, 0-100


class OCREngine(Protocol):
    """
    Optical character recognition engine with an explicit lifecycle.

    initialize() is called once per document before any recognize();
    terminate() is always called afterwards. Sessions of different
    documents may overlap when an engine is shared.
    """

    def initialize(self) -> None:
        ...

    def recognize(
        self,
        image: bytes,
        confidence_threshold: float,
        timeout: Optional[float] = None,
    ) -> OCRResult:
        """Recognize one image; raise TimeoutError after `timeout` seconds."""
        ...

    def terminate(self) -> None:
        ...


class PageRenderer(Protocol):
    def render(self, data: bytes, page_number: int) -> bytes:
        """Render a 1-indexed page of the document to PNG bytes."""
        ...


# =============================================================================
# TESSERACT
# =============================================================================


class TesseractEngine:
    """
    Tesseract via pytesseract.

    The binary is taken from tesseract_cmd, then TESSERACT_CMD, then PATH.

    initialize() and terminate() are counted, so overlapping document
    sessions can share one engine; it stays usable until the last
    session ends.
    """

    def __init__(
        self,
        language: str = "eng",
        oem: int = 3,
        psm: int = 6,
        whitelist: Optional[str] = DEFAULT_WHITELIST,
        tesseract_cmd: Optional[str] = None,
    ):
        self.language = language
        self.oem = oem
        self.psm = psm
        self.whitelist = whitelist
        self.tesseract_cmd = tesseract_cmd
        self._sessions = 0
        self._lock = threading.Lock()

    @property
    def initialized(self) -> bool:
        return self._sessions > 0

    @property
    def tesseract_config(self) -> str:
        config = f"--oem {self.oem} --psm {self.psm} -c preserve_interword_spaces=1"
        if self.whitelist:
            config += f" -c {shlex.quote('tessedit_char_whitelist=' + self.whitelist)}"
        return config

    def initialize(self) -> None:
        with self._lock:
            if self._sessions == 0:
                self._start()
            self._sessions += 1

    def _start(self) -> None:
        cmd = (
            self.tesseract_cmd
            or os.environ.get("TESSERACT_CMD")
            or shutil.which("tesseract")
        )
        if not cmd:
            raise OCREngineUnavailableError("Tesseract binary not found")
        pytesseract.pytesseract.tesseract_cmd = cmd

        try:
            version = pytesseract.get_tesseract_version()
        except (TesseractNotFoundError, OSError) as e:
            raise OCREngineUnavailableError(original_error=e) from e

        logger.debug(f"Tesseract {version} initialized ({cmd})")

    def recognize(
        self,
        image: bytes,
        confidence_threshold: float,
        timeout: Optional[float] = None,
    ) -> OCRResult:
        """
        Recognize text in a PNG/JPEG image.

        The threshold is only logged here; the controller applies the
        low-confidence policy. On timeout pytesseract kills the tesseract
        process and TimeoutError is raised.
        """
        if not self.initialized:
            raise OCRError("Tesseract engine used before initialize()")

        with Image.open(io.BytesIO(image)) as pil_image:
            try:
                data = pytesseract.image_to_data(
                    pil_image,
                    lang=self.language,
                    config=self.tesseract_config,
                    output_type=Output.DICT,
                    timeout=timeout or 0,
                )
            except RuntimeError as e:
                # pytesseract signals a killed process with a plain RuntimeError
                if timeout and "timeout" in str(e).lower():
                    raise TimeoutError(f"Tesseract timed out after {timeout}s") from e
                raise

        lines: dict[tuple[int, int, int], list[str]] = {}
        confidences: list[float] = []
        for i, word in enumerate(data.get("text", [])):
            conf = float(data["conf"][i])
            if not word or not word.strip() or conf < 0:
                continue
            key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
            lines.setdefault(key, []).append(word.strip())
            confidences.append(conf)

        text = "\n".join(" ".join(words) for _, words in sorted(lines.items()))
        confidence = sum(confidences) / len(confidences) if confidences else 0.0
        if confidences and confidence < confidence_threshold:
            logger.debug(f"OCR confidence {confidence:.1f} below {confidence_threshold}")
        return OCRResult(text=text, confidence=confidence)

    def terminate(self) -> None:
        with self._lock:
            if self._sessions > 0:
                self._sessions -= 1


# =============================================================================
# RENDERING
# =============================================================================


class PyMuPDFPageRenderer:
    """
    Renders pages with PyMuPDF.

    PyMuPDF documents are not safe for concurrent use, so rendering is
    serialized with a lock.
    """

    def __init__(self, dpi: int = 300):
        self.dpi = dpi
        self.zoom = dpi / 72  # 72 is the default PDF DPI
        self._lock = threading.Lock()

    def render(self, data: bytes, page_number: int) -> bytes:
        with self._lock:
            try:
                with fitz.open(stream=data, filetype="pdf") as doc:
                    if page_number < 1 or page_number > len(doc):
                        raise ValueError(f"Page {page_number} out of range (1-{len(doc)})")
                    page = doc[page_number - 1]
                    pixmap = page.get_pixmap(matrix=fitz.Matrix(self.zoom, self.zoom))
                    return pixmap.tobytes("png")
            except Exception as e:
                raise PageRenderError(page_number, e) from e


# =============================================================================
# CONTROLLER
# =============================================================================


class OCRFallbackController:
    """
    Runs OCR on pages that are image-based or have no native text.

    Low-confidence policy (confidence below confidence_threshold):
        accept   use the OCR text as-is
        flag     use the OCR text and set ocr_low_confidence (default)
        discard  keep the native text; only record the confidence
    """

    def __init__(
        self,
        engine: Optional[OCREngine],
        renderer: Optional[PageRenderer],
        enabled: bool = True,
        confidence_threshold: float = 70.0,
        low_confidence_policy: LowConfidencePolicy = "flag",
        timeout_seconds: Optional[float] = None,
    ):
        self.engine = engine
        self.renderer = renderer
        self.enabled = enabled and engine is not None and renderer is not None
        self.confidence_threshold = confidence_threshold
        self.low_confidence_policy = low_confidence_policy
        self.timeout_seconds = timeout_seconds
        self.warnings: list[str] = []
        self.attempted = False
        self._active = False
        self._lock = threading.Lock()

    @property
    def active(self) -> bool:
        return self._active

    @contextmanager
    def session(self) -> Iterator["OCRFallbackController"]:
        """Initialize the engine for one document and always terminate it."""
        initialized = False
        if self.enabled:
            try:
                self.engine.initialize()
                initialized = True
                self._active = True
            except Exception as e:
                logger.warning(f"OCR engine unavailable, continuing without OCR: {e}")
                self._warn(f"OCR disabled: {e}")
        try:
            yield self
        finally:
            self._active = False
            if initialized:
                try:
                    self.engine.terminate()
                except Exception as e:
                    logger.warning(f"OCR engine terminate failed: {e}")

    @staticmethod
    def needs_ocr(page: ParsedPage) -> bool:
        return page.is_image_based or not page.text.strip()

    def maybe_recognize(self, page: ParsedPage, data: bytes) -> ParsedPage:
        """
        Return the page with OCR text merged in, or unchanged.

        Failures are logged and recorded in warnings; they never propagate.
        """
        if not self._active or not self.needs_ocr(page):
            return page

        self.attempted = True
        try:
            result = self._recognize_page(data, page.page_number)
        except TimeoutError:
            error = OCRTimeoutError(page.page_number, self.timeout_seconds)
            logger.warning(str(error))
            self._warn(str(error))
            return page
        except Exception as e:
            logger.warning(f"OCR failed for page {page.page_number}: {e}")
            self._warn(f"OCR failed for page {page.page_number}: {e}")
            return page

        text = "\n".join(
            line for line in map(clean_text, result.text.splitlines()) if line
        )
        if not text:
            logger.debug(f"Page {page.page_number}: OCR produced no text")
            return page

        low_confidence = result.confidence < self.confidence_threshold
        if low_confidence and self.low_confidence_policy == "discard":
            logger.info(
                f"Page {page.page_number}: discarded OCR text "
                f"(confidence {result.confidence:.1f})"
            )
            return page.model_copy(update={
                "ocr_confidence": result.confidence,
                "ocr_low_confidence": True,
            })

        return page.model_copy(update={
            "text": text,
            "ocr_text": text,
            "ocr_confidence": result.confidence,
            "ocr_low_confidence": low_confidence and self.low_confidence_policy == "flag",
        })

    def _recognize_page(self, data: bytes, page_number: int) -> OCRResult:
        # Rendering has no native timeout; recognition is bounded by the engine.
        image = call_with_timeout(
            self.renderer.render,
            data,
            page_number,
            timeout=self.timeout_seconds,
        )
        return self.engine.recognize(
            image,
            self.confidence_threshold,
            timeout=self.timeout_seconds,
        )

    def _warn(self, message: str) -> None:
        with self._lock:
            self.warnings.append(message)
