from fastapi import FastAPI, HTTPException

from .config import ParserSettings
from .models import ParseRequest, ParseResponse, ValidateRequest, ValidationResult
from .service import ParsingService


def create_app(settings: ParserSettings | None = None) -> FastAPI:
    service = ParsingService(settings=settings)
    app = FastAPI(
        title="PDF Parser Service",
        version="1.0.0",
        description="PDF validation, text and table extraction, OCR fallback and chunking.",
    )

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.post("/validate", response_model=ValidationResult)
    def validate(request: ValidateRequest) -> ValidationResult:
        try:
            return service.validate_file(request.pdf_path)
        except FileNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except Exception as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc

    @app.post("/parse", response_model=ParseResponse)
    def parse(request: ParseRequest) -> ParseResponse:
        try:
            result, _, output_path = service.parse_and_save(
                request.pdf_path, request.options
            )
        except FileNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except Exception as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc

        return ParseResponse(
            success=result.success,
            page_count=result.metadata.page_count,
            tables=len(result.tables),
            chunks=len(result.chunks),
            error=result.error,
            error_code=result.error_code,
            warnings=result.warnings,
            incomplete=result.incomplete,
            output_path=output_path,
        )

    return app
