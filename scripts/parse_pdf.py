import argparse
import logging
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from dotenv import load_dotenv

load_dotenv(ROOT / ".env")

from pdf_parser.app import create_app
from pdf_parser.config import ParserSettings
from pdf_parser.logging_config import setup_logging
from pdf_parser.service import ParsingService
import uvicorn


def run_parse(
    pdf_path: str,
    output_path: str | None = None,
    perform_ocr: bool = False,
    max_pages: int | None = None,
) -> int:
    settings = ParserSettings.from_env()
    service = ParsingService(settings)
    options = settings.default_options().model_copy(update={
        "perform_ocr": perform_ocr or settings.perform_ocr,
        "max_pages": max_pages,
    })
    result, document_id, stored_path = service.parse_and_save(pdf_path, options)

    stats = result.get_statistics()
    print(f"document_id: {document_id}")
    print(f"output_path: {stored_path}")
    print(f"success: {result.success}")
    print(f"pages: {stats['pages']} (image-based: {stats['image_based_pages']}, ocr: {stats['ocr_pages']})")
    print(f"tables: {stats['tables']}")
    print(f"chunks: {stats['chunks']}")
    print(f"time_ms: {stats['processing_time_ms']}")
    if result.error:
        print(f"error: [{result.error_code.value}] {result.error}")
    for warning in result.warnings:
        print(f"warning: {warning}")
    if output_path:
        result.save(output_path)
        print(f"saved_copy: {output_path}")
    return 0 if result.success else 1


def run_server(host: str, port: int) -> None:
    app = create_app(ParserSettings.from_env())
    uvicorn.run(app, host=host, port=port)


def main() -> None:
    parser = argparse.ArgumentParser(
        description="PDF Parser runner (CLI parsing or API server)."
    )
    parser.add_argument("--serve", action="store_true", help="Run FastAPI server")
    parser.add_argument("--host", default="0.0.0.0", help="Server host")
    parser.add_argument("--port", type=int, default=8002, help="Server port")
    parser.add_argument("--pdf", help="Path to a PDF to parse")
    parser.add_argument("--output", help="Optional output path for the parse JSON")
    parser.add_argument("--ocr", action="store_true", help="OCR image-based pages")
    parser.add_argument("--max-pages", type=int, help="Only parse the first N pages")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args()

    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    if args.serve:
        run_server(args.host, args.port)
        return

    if not args.pdf:
        parser.error("Provide --pdf or use --serve to run the API.")
    sys.exit(run_parse(args.pdf, args.output, args.ocr, args.max_pages))


if __name__ == "__main__":
    main()
