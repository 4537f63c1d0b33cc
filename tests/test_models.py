"""
Tests for pdf_parser data models.
"""

import json

import pytest
from pydantic import ValidationError

from pdf_parser import (
    BoundingBox,
    ChunkType,
    ErrorCode,
    LayoutConfig,
    ParsedPage,
    ParsedTable,
    ParseOptions,
    ParseResult,
    PDFMetadata,
    PositionedFragment,
    TextChunk,
    ValidationMetadata,
    ValidationResult,
)


def _make_table(page: int = 1) -> ParsedTable:
    return ParsedTable(
        page=page,
        headers=["Unit", "Rent"],
        rows=[["101", "1200"]],
        bounding_box=BoundingBox(x=72, y=100, width=200, height=30),
    )


def _make_result(**overrides) -> ParseResult:
    pages = [
        ParsedPage(page_number=1, text="Native text on page one.", tables=[_make_table()]),
        ParsedPage(
            page_number=2,
            text="Scanned words.",
            is_image_based=True,
            ocr_text="Scanned words.",
            ocr_confidence=85.0,
        ),
        ParsedPage(page_number=3, text="", is_image_based=True, error="render failed"),
    ]
    defaults = dict(
        success=True,
        metadata=PDFMetadata(page_count=3, file_size=2048, word_count=6, pages_processed=3),
        pages=pages,
        full_text="Native text on page one.\n\nScanned words.",
        tables=[_make_table()],
        chunks=[
            TextChunk(id="c1", text="Native text on page one.", page=1, chunk_index=0, token_count=6),
            TextChunk(
                id="c2", text="Scanned words.", page=2, chunk_index=1, token_count=4,
                type=ChunkType.HEADER,
            ),
        ],
        processing_time_ms=12.5,
        warnings=["Page 3: render failed"],
    )
    defaults.update(overrides)
    return ParseResult(**defaults)


class TestParseOptions:
    def test_defaults(self):
        options = ParseOptions()
        assert options.extract_tables is True
        assert options.perform_ocr is False
        assert options.auto_ocr is False
        assert options.ocr_confidence_threshold == 70.0
        assert options.ocr_low_confidence_policy == "flag"
        assert options.chunk_token_budget == 4000
        assert options.preserve_formatting is True
        assert options.max_pages is None
        assert options.page_batch_size == 5
        assert isinstance(options.layout, LayoutConfig)

    def test_threshold_bounds(self):
        with pytest.raises(ValidationError):
            ParseOptions(ocr_confidence_threshold=101)
        with pytest.raises(ValidationError):
            ParseOptions(ocr_confidence_threshold=-1)

    def test_policy_values(self):
        with pytest.raises(ValidationError):
            ParseOptions(ocr_low_confidence_policy="ignore")

    def test_max_pages_positive(self):
        with pytest.raises(ValidationError):
            ParseOptions(max_pages=0)

    def test_timeouts_can_be_disabled(self):
        options = ParseOptions(decode_timeout_seconds=None, ocr_timeout_seconds=None)
        assert options.decode_timeout_seconds is None


class TestLayoutConfig:
    def test_defaults(self):
        config = LayoutConfig()
        assert config.same_line_tolerance == 2.0
        assert config.row_tolerance == 3.0
        assert config.gap_variance_threshold == 100.0
        assert config.min_table_rows == 2
        assert config.min_data_rows == 1
        assert config.image_min_chars == 50
        assert config.image_min_avg_chars == 3.0
        assert config.image_min_fragments == 10

    def test_min_table_rows_at_least_two(self):
        with pytest.raises(ValidationError):
            LayoutConfig(min_table_rows=1)


class TestValueObjects:
    def test_fragment_frozen(self):
        frag = PositionedFragment(text="a", x=1, y=2, width=3, height=4)
        with pytest.raises(ValidationError):
            frag.x = 10
        assert frag.right == 4
        assert frag.bottom == 6

    def test_page_number_one_indexed(self):
        with pytest.raises(ValidationError):
            ParsedPage(page_number=0)

    def test_validation_prefers_ocr(self):
        assert ValidationResult().should_prefer_ocr
        result = ValidationResult(metadata=ValidationMetadata(has_text=True))
        assert not result.should_prefer_ocr
        result = ValidationResult(metadata=ValidationMetadata(has_text=True, is_encrypted=True))
        assert result.should_prefer_ocr


class TestParseResult:
    def test_failure(self):
        validation = ValidationResult(is_valid=False, errors=["bad"], warnings=["odd"])
        result = ParseResult.failure("bad", ErrorCode.INVALID_PDF, file_size=10, validation=validation)

        assert not result.success
        assert result.error_code == ErrorCode.INVALID_PDF
        assert result.pages == []
        assert result.chunks == []
        assert result.warnings == ["odd"]
        assert result.metadata.file_size == 10

    def test_image_based_pages(self):
        assert _make_result().image_based_pages == [2, 3]

    def test_get_page(self):
        result = _make_result()
        assert result.get_page(2).ocr_text == "Scanned words."
        assert result.get_page(9) is None

    def test_statistics(self):
        stats = _make_result().get_statistics()
        assert stats["pages"] == 3
        assert stats["image_based_pages"] == 2
        assert stats["ocr_pages"] == 1
        assert stats["failed_pages"] == 1
        assert stats["tables"] == 1
        assert stats["chunks"] == 2
        assert stats["warnings"] == 1

    def test_to_json(self):
        data = json.loads(_make_result().to_json())
        assert data["success"] is True
        assert data["chunks"][1]["type"] == "header"
        assert data["image_based_pages"] == [2, 3]

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "result.json"
        original = _make_result(error_code=None)
        original.save(str(path))

        loaded = ParseResult.load(str(path))
        assert loaded.full_text == original.full_text
        assert loaded.pages == original.pages
        assert loaded.chunks == original.chunks
        assert loaded.tables == original.tables

    def test_to_records(self):
        records = _make_result().to_records()

        chunk = records["chunks"][0]
        assert chunk["content"] == chunk["text"]
        assert chunk["page_number"] == 1
        assert chunk["tokens"] == 6
        assert chunk["chunk_type"] == "paragraph"

        table = records["tables"][0]
        assert table["page_number"] == 1
        assert table["headers"] == ["Unit", "Rent"]
        assert table["table_data"] == [["101", "1200"]]
        assert table["position"] == {"x": 72.0, "y": 100.0, "width": 200.0, "height": 30.0}
