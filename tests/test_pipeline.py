"""
End-to-end tests for PDFParser and parse_document.

Most tests use the in-memory fakes from tests/fakes.py; the first class
runs against a real PDF through PyMuPDF.
"""

import threading
import time
from unittest.mock import Mock

import pytest

from pdf_parser import (
    ChunkType,
    DecodeUnsupportedError,
    ErrorCode,
    LayoutReconstructor,
    OCREngineUnavailableError,
    ParseOptions,
    PDFParser,
    parse_document,
)

from fakes import FakeDecoder, FakeOCREngine, FakeRenderer, MINIMAL_TEXT, line, make_pdf_bytes


def _section_page(number: int) -> list:
    return [
        line(f"Section {number} reviews the leasing activity for the building.", y=100),
        line(f"Occupancy in section {number} stayed above ninety percent.", y=115),
    ]


def _table_page() -> list:
    return [
        line("The rent roll below lists the units that are currently leased.", y=80),
        line("Unit", y=100, x=72, width=40),
        line("Rent", y=100, x=200, width=40),
        line("101", y=120, x=72, width=40),
        line("1200", y=120, x=200, width=40),
    ]


def _parser(pages, engine=None, renderer=None, **decoder_kwargs) -> PDFParser:
    return PDFParser(
        decoder=FakeDecoder(pages=pages, **decoder_kwargs),
        ocr_engine=engine or FakeOCREngine(),
        renderer=renderer or FakeRenderer(),
    )


class TestRealDocument:
    def test_minimal_pdf(self, minimal_pdf):
        result = parse_document(minimal_pdf)

        assert result.success, result.error
        assert result.error_code is None
        assert len(result.pages) == 1
        assert not result.pages[0].is_image_based
        assert MINIMAL_TEXT in result.full_text
        assert len(result.chunks) == 1
        assert result.chunks[0].page == 1
        assert result.chunks[0].type == ChunkType.PARAGRAPH
        assert result.metadata.page_count == 1
        assert result.processing_time_ms > 0


class TestTextDocuments:
    def test_native_text(self, pdf_bytes, text_page):
        result = _parser([text_page]).parse(pdf_bytes)

        assert result.success
        assert result.pages[0].text.startswith("Quarterly results improved")
        assert result.full_text == result.pages[0].text
        assert result.metadata.word_count == len(result.full_text.split())
        assert result.metadata.pages_processed == 1

    def test_table_detected(self, pdf_bytes):
        result = _parser([_table_page()]).parse(pdf_bytes)

        assert result.success
        assert len(result.tables) == 1
        table = result.tables[0]
        assert table.page == 1
        assert table.headers == ["Unit", "Rent"]
        assert table.rows == [["101", "1200"]]
        assert result.pages[0].tables == result.tables

    def test_tables_disabled(self, pdf_bytes):
        result = _parser([_table_page()]).parse(pdf_bytes, ParseOptions(extract_tables=False))
        assert result.tables == []

    def test_full_text_joins_pages(self, pdf_bytes):
        result = _parser([_section_page(1), [], _section_page(3)]).parse(pdf_bytes)

        assert result.success
        assert len(result.pages) == 3
        assert result.full_text == f"{result.pages[0].text}\n\n{result.pages[2].text}"

    def test_chunks_respect_budget_and_pages(self, pdf_bytes):
        pages = [_section_page(n) for n in (1, 2, 3)]
        result = _parser(pages).parse(pdf_bytes, ParseOptions(chunk_token_budget=40))

        assert [c.page for c in result.chunks] == [1, 2, 3]
        assert [c.chunk_index for c in result.chunks] == [0, 1, 2]
        assert all(c.token_count <= 40 for c in result.chunks)

    def test_max_pages(self, pdf_bytes):
        pages = [_section_page(n) for n in (1, 2, 3)]
        result = _parser(pages).parse(pdf_bytes, ParseOptions(max_pages=2))

        assert [p.page_number for p in result.pages] == [1, 2]
        assert result.metadata.page_count == 3
        assert result.metadata.pages_processed == 2

    def test_metadata_from_decoder(self, pdf_bytes, text_page):
        parser = _parser([text_page], info={"title": "Offering Memo", "author": "Analyst"})
        result = parser.parse(pdf_bytes)

        assert result.metadata.title == "Offering Memo"
        assert result.metadata.author == "Analyst"
        assert result.metadata.file_size == len(pdf_bytes)

    def test_idempotent(self, pdf_bytes):
        parser = _parser([_section_page(1), _table_page()])
        first = parser.parse(pdf_bytes)
        second = parser.parse(pdf_bytes)

        assert first.pages == second.pages
        assert first.full_text == second.full_text
        assert first.tables == second.tables
        assert [(c.text, c.page, c.type) for c in first.chunks] == [
            (c.text, c.page, c.type) for c in second.chunks
        ]


class TestFailures:
    def test_empty_input(self):
        decoder = FakeDecoder()
        result = PDFParser(decoder=decoder).parse(b"")

        assert not result.success
        assert result.error_code == ErrorCode.INVALID_PDF
        assert result.pages == []
        assert result.chunks == []
        assert decoder.calls == 0

    def test_not_a_pdf(self):
        decoder = FakeDecoder()
        result = PDFParser(decoder=decoder).parse(b"<html>" + b"x" * 200)

        assert result.error_code == ErrorCode.INVALID_PDF
        assert result.error.startswith("Invalid PDF document: ")
        assert "magic bytes" in result.error
        assert result.validation is not None
        assert not result.validation.is_valid
        assert decoder.calls == 0

    def test_no_text(self, pdf_bytes):
        result = _parser([[], []]).parse(pdf_bytes)

        assert not result.success
        assert result.error_code == ErrorCode.NO_PDF_TEXT
        assert len(result.pages) == 2
        assert result.chunks == []
        assert "OCR was not attempted" in result.error

    def test_no_text_after_ocr(self, pdf_bytes):
        engine = FakeOCREngine(text="")
        result = _parser([[]], engine=engine).parse(pdf_bytes, ParseOptions(perform_ocr=True))

        assert result.error_code == ErrorCode.NO_PDF_TEXT
        assert "OCR was not attempted" not in result.error
        assert engine.recognized == [1]

    def test_decode_failure(self, pdf_bytes):
        result = _parser([], error=RuntimeError("broken xref table")).parse(pdf_bytes)

        assert not result.success
        assert result.error_code == ErrorCode.DECODE_FAILED
        assert "broken xref table" in result.error

    def test_decode_timeout(self, pdf_bytes, text_page):
        parser = _parser([text_page], delay=0.5)
        result = parser.parse(pdf_bytes, ParseOptions(decode_timeout_seconds=0.05))

        assert not result.success
        assert result.error_code == ErrorCode.DECODE_TIMEOUT

    def test_unsupported_without_ocr(self, pdf_bytes):
        parser = _parser([], error=DecodeUnsupportedError("password protection"))
        result = parser.parse(pdf_bytes)

        assert result.error_code == ErrorCode.UNSUPPORTED_FEATURE
        assert "password protection" in result.error

    def test_unsupported_falls_back_to_ocr(self, pdf_bytes):
        engine = FakeOCREngine()
        parser = _parser([], engine=engine, error=DecodeUnsupportedError("password protection"))
        result = parser.parse(pdf_bytes, ParseOptions(perform_ocr=True))

        assert result.success
        assert len(result.pages) == 5
        assert sorted(engine.recognized) == [1, 2, 3, 4, 5]
        assert all(p.ocr_text for p in result.pages)
        assert any("recovered with OCR" in w for w in result.warnings)

    def test_unexpected_error_is_reported(self, pdf_bytes, text_page, monkeypatch):
        def explode(self, *args, **kwargs):
            raise RuntimeError("chunker exploded")

        monkeypatch.setattr("chunking.chunker.SemanticChunker.chunk", explode)
        result = _parser([text_page]).parse(pdf_bytes)

        assert not result.success
        assert result.error_code == ErrorCode.PARSE_FAILED
        assert "chunker exploded" in result.error


class TestOCRFallback:
    def test_image_page_recognized(self, pdf_bytes, scanned_page, fake_engine, ocr_options):
        result = _parser([scanned_page], engine=fake_engine).parse(pdf_bytes, ocr_options)

        page = result.pages[0]
        assert result.success
        assert page.is_image_based
        assert page.ocr_text == fake_engine.text
        assert page.text == page.ocr_text
        assert page.ocr_confidence == 92.0
        assert not page.ocr_low_confidence
        assert result.image_based_pages == [1]

    def test_text_pages_not_recognized(self, pdf_bytes, text_page, fake_engine, ocr_options):
        result = _parser([text_page, text_page], engine=fake_engine).parse(pdf_bytes, ocr_options)

        assert fake_engine.recognized == []
        assert all(p.ocr_text is None for p in result.pages)

    def test_ocr_disabled_by_default(self, pdf_bytes, scanned_page, fake_engine):
        result = _parser([scanned_page], engine=fake_engine).parse(pdf_bytes)

        assert fake_engine.initialize_calls == 0
        assert result.pages[0].ocr_text is None
        assert result.pages[0].text == "x"

    def test_low_confidence_flagged(self, pdf_bytes, scanned_page, ocr_options):
        engine = FakeOCREngine(confidence=40.0)
        result = _parser([scanned_page], engine=engine).parse(pdf_bytes, ocr_options)

        assert result.pages[0].ocr_low_confidence
        assert result.pages[0].text == engine.text

    def test_low_confidence_discarded(self, pdf_bytes, scanned_page):
        engine = FakeOCREngine(confidence=40.0)
        options = ParseOptions(perform_ocr=True, ocr_low_confidence_policy="discard")
        result = _parser([scanned_page], engine=engine).parse(pdf_bytes, options)

        assert result.pages[0].text == "x"
        assert result.pages[0].ocr_text is None
        assert result.pages[0].ocr_confidence == 40.0

    def test_auto_ocr_for_documents_without_text(self, pdf_bytes, scanned_page, fake_engine):
        result = _parser([scanned_page], engine=fake_engine).parse(
            pdf_bytes, ParseOptions(auto_ocr=True)
        )
        assert result.pages[0].ocr_text == fake_engine.text

    def test_auto_ocr_skipped_when_text_objects_exist(self, scanned_page, fake_engine):
        data = make_pdf_bytes(extra=b"<< /Type /Font /Subtype /Type1 >>\n")
        result = _parser([scanned_page], engine=fake_engine).parse(
            data, ParseOptions(auto_ocr=True)
        )

        assert fake_engine.initialize_calls == 0
        assert result.pages[0].ocr_text is None

    def test_engine_lifecycle(self, pdf_bytes, scanned_page, fake_engine, ocr_options):
        _parser([scanned_page] * 3, engine=fake_engine).parse(pdf_bytes, ocr_options)

        assert fake_engine.initialize_calls == 1
        assert fake_engine.terminate_calls == 1

    def test_engine_terminated_after_page_failure(
        self, pdf_bytes, scanned_page, fake_engine, ocr_options, monkeypatch
    ):
        def broken(self, fragments, page_number, **kwargs):
            raise RuntimeError("layout exploded")

        monkeypatch.setattr(LayoutReconstructor, "reconstruct", broken)
        result = _parser([scanned_page], engine=fake_engine).parse(pdf_bytes, ocr_options)

        assert result.pages[0].error == "layout exploded"
        assert fake_engine.terminate_calls == 1

    def test_engine_init_failure(self, pdf_bytes, text_page, scanned_page, ocr_options):
        engine = FakeOCREngine(init_error=OCREngineUnavailableError())
        result = _parser([text_page, scanned_page], engine=engine).parse(pdf_bytes, ocr_options)

        assert result.success
        assert engine.recognized == []
        assert engine.terminate_calls == 0
        assert result.pages[1].ocr_text is None
        assert any(w.startswith("OCR disabled") for w in result.warnings)

    def test_render_failure_keeps_page(self, pdf_bytes, text_page, scanned_page, ocr_options):
        renderer = FakeRenderer(error=RuntimeError("no pixmap"))
        result = _parser([text_page, scanned_page], renderer=renderer).parse(
            pdf_bytes, ocr_options
        )

        assert result.success
        assert result.pages[1].text == "x"
        assert result.pages[1].ocr_text is None
        assert any("OCR failed for page 2" in w for w in result.warnings)


class TestBatching:
    def test_degraded_page(self, pdf_bytes, monkeypatch):
        original = LayoutReconstructor.reconstruct

        def flaky(self, fragments, page_number, **kwargs):
            if page_number == 2:
                raise RuntimeError("bad content stream")
            return original(self, fragments, page_number, **kwargs)

        monkeypatch.setattr(LayoutReconstructor, "reconstruct", flaky)
        pages = [_section_page(n) for n in (1, 2, 3)]
        result = _parser(pages).parse(pdf_bytes)

        assert result.success
        assert [p.page_number for p in result.pages] == [1, 2, 3]
        degraded = result.pages[1]
        assert degraded.text == ""
        assert degraded.is_image_based
        assert degraded.error == "bad content stream"
        assert "Page 2: bad content stream" in result.warnings
        assert "Section 3" in result.full_text

    def test_batches_run_in_order(self, pdf_bytes, monkeypatch):
        original = LayoutReconstructor.reconstruct
        events = []
        lock = threading.Lock()

        def recording(self, fragments, page_number, **kwargs):
            with lock:
                events.append(("start", page_number))
            time.sleep(0.01)
            page = original(self, fragments, page_number, **kwargs)
            with lock:
                events.append(("end", page_number))
            return page

        monkeypatch.setattr(LayoutReconstructor, "reconstruct", recording)
        pages = [_section_page(n) for n in range(1, 8)]
        result = _parser(pages).parse(pdf_bytes, ParseOptions(page_batch_size=3))

        assert [p.page_number for p in result.pages] == list(range(1, 8))
        batches = [{1, 2, 3}, {4, 5, 6}, {7}]
        for current, following in zip(batches, batches[1:]):
            last_end = max(
                i for i, (kind, page) in enumerate(events) if kind == "end" and page in current
            )
            first_start = min(
                i for i, (kind, page) in enumerate(events) if kind == "start" and page in following
            )
            assert last_end < first_start

    def test_cancel_between_batches(self, pdf_bytes, scanned_page, ocr_options):
        cancel = threading.Event()

        def cancel_on_first_page(page_number):
            if page_number == 1:
                cancel.set()

        engine = FakeOCREngine(on_recognize=cancel_on_first_page)
        parser = _parser([scanned_page] * 10, engine=engine)
        result = parser.parse(pdf_bytes, ocr_options, cancel_event=cancel)

        assert result.success
        assert result.incomplete
        assert [p.page_number for p in result.pages] == [1, 2, 3, 4, 5]
        assert sorted(engine.recognized) == [1, 2, 3, 4, 5]
        assert "Processing cancelled after 5 of 10 pages" in result.warnings
        assert engine.terminate_calls == 1

    def test_cancelled_before_start(self, pdf_bytes, text_page):
        cancel = threading.Event()
        cancel.set()
        result = _parser([text_page, text_page]).parse(pdf_bytes, cancel_event=cancel)

        assert not result.success
        assert result.incomplete
        assert result.pages == []
        assert result.error_code == ErrorCode.CANCELLED
        assert result.error == "Processing cancelled after 0 of 2 pages"
        assert result.chunks == []


class TestConcurrentDocuments:
    def test_each_document_gets_its_own_engine(self, pdf_bytes, scanned_page, ocr_options):
        engines = []
        nested = []

        def parse_second_document(page_number):
            nested.append(parser.parse(pdf_bytes, ocr_options))

        def make_engine():
            # Only the first document starts a second one mid-OCR.
            engine = FakeOCREngine(on_recognize=None if engines else parse_second_document)
            engines.append(engine)
            return engine

        parser = PDFParser(
            decoder=FakeDecoder(pages=[scanned_page]),
            renderer=FakeRenderer(),
            ocr_engine_factory=make_engine,
        )
        result = parser.parse(pdf_bytes, ocr_options)

        assert len(engines) == 2
        assert [(e.initialize_calls, e.terminate_calls) for e in engines] == [(1, 1), (1, 1)]
        assert result.success
        assert not any("OCR" in w for w in result.warnings + nested[0].warnings)
        assert result.pages[0].ocr_text == engines[0].text
        assert nested[0].pages[0].ocr_text == engines[1].text

    def test_no_engine_built_without_ocr(self, pdf_bytes, text_page):
        make_engine = Mock(side_effect=FakeOCREngine)
        parser = PDFParser(
            decoder=FakeDecoder(pages=[text_page]),
            ocr_engine_factory=make_engine,
        )
        assert parser.parse(pdf_bytes).success
        make_engine.assert_not_called()


class TestParseDocument:
    def test_wrapper_uses_collaborators(self, pdf_bytes, scanned_page, fake_engine, fake_renderer):
        result = parse_document(
            pdf_bytes,
            ParseOptions(perform_ocr=True),
            decoder=FakeDecoder(pages=[scanned_page]),
            ocr_engine=fake_engine,
            renderer=fake_renderer,
        )

        assert result.success
        assert fake_renderer.rendered == [1]
        assert result.pages[0].ocr_text == fake_engine.text

    @pytest.mark.parametrize("data", [b"", b"%PDF"])
    def test_wrapper_rejects_invalid(self, data):
        result = parse_document(data, decoder=FakeDecoder())
        assert result.error_code == ErrorCode.INVALID_PDF
