from dataclasses import dataclass
import os
from typing import Optional

from .models import ParseOptions


@dataclass
class ParserSettings:
    data_dir: str = "data/pdf_parser"
    decoder: str = "pymupdf"
    ocr_language: str = "eng"
    ocr_dpi: int = 300
    ocr_oem: int = 3
    ocr_psm: int = 6
    tesseract_cmd: Optional[str] = None
    perform_ocr: bool = False
    page_batch_size: int = 5
    chunk_token_budget: int = 4000
    decode_timeout_seconds: float = 120.0
    ocr_timeout_seconds: float = 60.0

    @classmethod
    def from_env(cls) -> "ParserSettings":
        def _int(name: str, default: int) -> int:
            value = os.environ.get(name)
            return int(value) if value else default

        def _float(name: str, default: float) -> float:
            value = os.environ.get(name)
            return float(value) if value else default

        def _bool(name: str, default: bool) -> bool:
            value = os.environ.get(name)
            if not value:
                return default
            return value.strip().lower() in {"1", "true", "yes", "on"}

        return cls(
            data_dir=os.environ.get("PDF_PARSER_DATA_DIR", cls.data_dir),
            decoder=os.environ.get("PDF_PARSER_DECODER", cls.decoder),
            ocr_language=os.environ.get("PDF_PARSER_OCR_LANGUAGE", cls.ocr_language),
            ocr_dpi=_int("PDF_PARSER_OCR_DPI", cls.ocr_dpi),
            ocr_oem=_int("PDF_PARSER_OCR_OEM", cls.ocr_oem),
            ocr_psm=_int("PDF_PARSER_OCR_PSM", cls.ocr_psm),
            tesseract_cmd=os.environ.get("TESSERACT_CMD") or None,
            perform_ocr=_bool("PDF_PARSER_PERFORM_OCR", cls.perform_ocr),
            page_batch_size=_int("PDF_PARSER_PAGE_BATCH_SIZE", cls.page_batch_size),
            chunk_token_budget=_int("PDF_PARSER_CHUNK_TOKEN_BUDGET", cls.chunk_token_budget),
            decode_timeout_seconds=_float("PDF_PARSER_DECODE_TIMEOUT", cls.decode_timeout_seconds),
            ocr_timeout_seconds=_float("PDF_PARSER_OCR_TIMEOUT", cls.ocr_timeout_seconds),
        )

    def default_options(self) -> ParseOptions:
        return ParseOptions(
            perform_ocr=self.perform_ocr,
            page_batch_size=self.page_batch_size,
            chunk_token_budget=self.chunk_token_budget,
            decode_timeout_seconds=self.decode_timeout_seconds,
            ocr_timeout_seconds=self.ocr_timeout_seconds,
        )
