import functools
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from .config import ParserSettings
from .decoder import get_decoder
from .models import ParseOptions, ParseResult, ValidationResult
from .ocr import PyMuPDFPageRenderer, TesseractEngine
from .pipeline import PDFParser


@dataclass
class ParsePaths:
    document_id: str
    parse_dir: Path
    parse_file: Path


class ParseStorage:
    def __init__(self, data_dir: str):
        self.data_dir = Path(data_dir)

    def build_paths(self, source_file: str) -> ParsePaths:
        document_id = Path(source_file).stem
        timestamp = datetime.utcnow().strftime("%Y%m%d_%H%M%S")
        parse_dir = self.data_dir / document_id / "parse"
        parse_dir.mkdir(parents=True, exist_ok=True)
        parse_file = parse_dir / f"{document_id}_{timestamp}.json"
        return ParsePaths(
            document_id=document_id,
            parse_dir=parse_dir,
            parse_file=parse_file,
        )

    def save(self, result: ParseResult, source_file: str) -> ParsePaths:
        paths = self.build_paths(source_file)
        result.save(str(paths.parse_file))
        return paths


class ParsingService:
    def __init__(self, settings: ParserSettings | None = None):
        self.settings = settings or ParserSettings()
        self.parser = PDFParser(
            decoder=get_decoder(self.settings.decoder),
            ocr_engine_factory=functools.partial(
                TesseractEngine,
                language=self.settings.ocr_language,
                oem=self.settings.ocr_oem,
                psm=self.settings.ocr_psm,
                tesseract_cmd=self.settings.tesseract_cmd,
            ),
            renderer=PyMuPDFPageRenderer(dpi=self.settings.ocr_dpi),
        )
        self.storage = ParseStorage(self.settings.data_dir)

    def validate_file(self, pdf_path: str) -> ValidationResult:
        path = Path(pdf_path)
        return self.parser.validator.validate(path.read_bytes(), filename=path.name)

    def parse_file(
        self,
        pdf_path: str,
        options: Optional[ParseOptions] = None,
    ) -> ParseResult:
        path = Path(pdf_path)
        options = options or self.settings.default_options()
        return self.parser.parse(path.read_bytes(), options, filename=path.name)

    def parse_and_save(
        self,
        pdf_path: str,
        options: Optional[ParseOptions] = None,
    ) -> tuple[ParseResult, str, str]:
        result = self.parse_file(pdf_path, options)
        paths = self.storage.save(result, pdf_path)
        return result, paths.document_id, str(paths.parse_file)
