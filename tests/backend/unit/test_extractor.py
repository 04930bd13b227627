import asyncio
import time
from types import SimpleNamespace

import httpx
import pytest

from studyhub.core.domain.analysis import ExtractedTable, FileKind
from studyhub.core.domain.errors import (
    ExtractionError,
    ExtractionTimeoutError,
    FileFetchError,
    SourceNotFoundError,
    UnsupportedFileTypeError,
)
from studyhub.infrastructure.extraction import extractor as extractor_module
from studyhub.infrastructure.extraction.documentai import StructuredDocument
from studyhub.infrastructure.extraction.extractor import (
    OCR_FAILED_PLACEHOLDER,
    OCR_TIMEOUT_PLACEHOLDER,
    TextExtractor,
)
from studyhub.infrastructure.extraction.pdf_text import OpenedPdf
from studyhub.infrastructure.extraction.sources import SourceFetcher, classify_file_type, mime_type_for


class StubOcr:
    def __init__(self, text="1) Define a graph.", available=True, delay=0.0, error=None):
        self.text = text
        self.available = available
        self.delay = delay
        self.error = error

    def bytes_to_text(self, data):
        if self.delay:
            time.sleep(self.delay)
        if self.error:
            raise self.error
        return self.text

    def image_to_text(self, image):
        return self.bytes_to_text(image)


class StubPage:
    width = 600

    def __init__(self, text):
        self.text = text

    def extract_words(self, **kwargs):
        return [
            {"text": word, "x0": 10 + 40 * i, "x1": 40 + 40 * i, "top": 10}
            for i, word in enumerate(self.text.split())
        ]

    def extract_text(self):
        return ""

    def to_image(self, resolution):
        return SimpleNamespace(original=b"page-image")


class StubHandle:
    closed = False

    def close(self):
        self.closed = True


def _patch_pdf(monkeypatch, pages, delay=0.0):
    handle = StubHandle()

    def fake_open(data, max_pages=None):
        if delay:
            time.sleep(delay)
        return OpenedPdf(handle=handle, pages=list(pages[:max_pages] if max_pages else pages))

    monkeypatch.setattr(extractor_module, "open_pdf", fake_open)
    return handle


class StubDocumentAI:
    def __init__(self, structured=None, text=None, configured=True):
        self.structured = structured
        self.text = text
        self.configured = configured
        self.calls = []

    def is_configured(self):
        return self.configured

    def extract_structured(self, data, mime_type):
        self.calls.append(("structured", mime_type))
        if isinstance(self.structured, Exception):
            raise self.structured
        return self.structured

    def extract_text(self, data, mime_type):
        self.calls.append(("text", mime_type))
        if isinstance(self.text, Exception):
            raise self.text
        return self.text


@pytest.fixture
def image_file(tmp_path):
    path = tmp_path / "paper.png"
    path.write_bytes(b"\x89PNG fake")
    return path


@pytest.fixture
def pdf_file(tmp_path):
    path = tmp_path / "paper.pdf"
    path.write_bytes(b"%PDF-1.4 fake")
    return path


@pytest.mark.parametrize(
    "hint,kind",
    [
        ("pdf", FileKind.PDF),
        ("application/pdf", FileKind.PDF),
        (".PNG", FileKind.IMAGE),
        ("image/jpeg", FileKind.IMAGE),
        ("tif", FileKind.IMAGE),
    ],
)
def test_classify_file_type(hint, kind):
    assert classify_file_type(hint) is kind


def test_mime_type_for_extensions_and_mime_hints():
    assert mime_type_for("jpg") == "image/jpeg"
    assert mime_type_for("application/pdf") == "application/pdf"
    assert mime_type_for("docx") == "application/octet-stream"


def test_unsupported_type_fails_before_any_fetch():
    class ExplodingFetcher:
        async def fetch(self, path):
            raise AssertionError("fetch must not be called")

    extractor = TextExtractor(ExplodingFetcher())

    with pytest.raises(UnsupportedFileTypeError, match="Unsupported file type for question extraction: docx"):
        asyncio.run(extractor.extract("/tmp/whatever.docx", "docx"))


def test_missing_local_file_is_fatal(tmp_path):
    extractor = TextExtractor(SourceFetcher())

    with pytest.raises(SourceNotFoundError, match="File not found"):
        asyncio.run(extractor.extract(str(tmp_path / "missing.pdf"), "pdf"))


def test_remote_download_error_is_fatal():
    transport = httpx.MockTransport(lambda request: httpx.Response(404))
    extractor = TextExtractor(SourceFetcher(transport=transport), ocr=StubOcr())

    with pytest.raises(FileFetchError, match="Failed to download file"):
        asyncio.run(extractor.extract("https://files.example.com/paper.png", "png"))


def test_declared_oversized_download_is_rejected():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"x" * 20))
    fetcher = SourceFetcher(max_bytes=10, transport=transport)

    with pytest.raises(FileFetchError, match="20 bytes exceeds the 10 byte limit"):
        asyncio.run(fetcher.fetch("https://files.example.com/paper.pdf"))


def test_streamed_download_stops_once_over_the_limit():
    async def body():
        for _ in range(4):
            yield b"x" * 8

    transport = httpx.MockTransport(lambda request: httpx.Response(200, content=body()))
    fetcher = SourceFetcher(max_bytes=20, transport=transport)

    with pytest.raises(FileFetchError, match="24 bytes exceeds the 20 byte limit"):
        asyncio.run(fetcher.fetch("https://files.example.com/paper.pdf"))


def test_remote_image_is_downloaded_and_ocred():
    seen = []

    def handler(request):
        seen.append(str(request.url))
        return httpx.Response(200, content=b"image-bytes")

    extractor = TextExtractor(SourceFetcher(transport=httpx.MockTransport(handler)), ocr=StubOcr(text="1) Hello"))

    result = asyncio.run(extractor.extract("https://files.example.com/paper.png", "image/png"))

    assert seen == ["https://files.example.com/paper.png"]
    assert result.text == "1) Hello"
    assert result.method == "ocr"
    assert result.degraded is False


def test_image_ocr_timeout_uses_placeholder(image_file):
    extractor = TextExtractor(SourceFetcher(), ocr=StubOcr(delay=0.3), ocr_timeout=0.05)

    result = asyncio.run(extractor.extract(str(image_file), "png"))

    assert result.text == OCR_TIMEOUT_PLACEHOLDER
    assert result.degraded is True


def test_image_ocr_error_uses_failure_placeholder(image_file):
    extractor = TextExtractor(SourceFetcher(), ocr=StubOcr(error=RuntimeError("bad image")))

    result = asyncio.run(extractor.extract(str(image_file), "jpg"))

    assert result.text == OCR_FAILED_PLACEHOLDER
    assert result.degraded is True


def test_missing_ocr_engine_uses_failure_placeholder(image_file):
    extractor = TextExtractor(SourceFetcher(), ocr=StubOcr(available=False))

    result = asyncio.run(extractor.extract(str(image_file), "png"))

    assert result.text == OCR_FAILED_PLACEHOLDER
    assert result.degraded is True


def test_pdf_uses_local_parser(monkeypatch, pdf_file):
    handle = _patch_pdf(monkeypatch, [StubPage("1) Define a set."), StubPage("2) Define a map.")])
    extractor = TextExtractor(SourceFetcher(), max_pages=1)

    result = asyncio.run(extractor.extract(str(pdf_file), "pdf"))

    assert result.text == "1) Define a set."
    assert result.method == "pdf_text"
    assert result.page_count == 1
    assert handle.closed is True


def test_pdf_load_timeout_is_fatal(monkeypatch, pdf_file):
    _patch_pdf(monkeypatch, [StubPage("late")], delay=0.3)
    extractor = TextExtractor(SourceFetcher(), pdf_timeout=0.05)

    with pytest.raises(ExtractionTimeoutError, match="PDF loading timeout"):
        asyncio.run(extractor.extract(str(pdf_file), "pdf"))


def test_unreadable_pdf_is_fatal(monkeypatch, pdf_file):
    def broken_open(data, max_pages=None):
        raise ValueError("No /Root object")

    monkeypatch.setattr(extractor_module, "open_pdf", broken_open)
    extractor = TextExtractor(SourceFetcher())

    with pytest.raises(ExtractionError, match="PDF processing failed: No /Root object"):
        asyncio.run(extractor.extract(str(pdf_file), "pdf"))


def test_scanned_pdf_ocr_time_does_not_count_against_loading(monkeypatch, pdf_file):
    handle = _patch_pdf(monkeypatch, [StubPage(""), StubPage(""), StubPage(""), StubPage("")])
    extractor = TextExtractor(SourceFetcher(), ocr=StubOcr(text="1) Scanned", delay=0.1), pdf_timeout=0.2)

    result = asyncio.run(extractor.extract(str(pdf_file), "pdf"))

    assert result.text.splitlines() == ["1) Scanned"] * 4
    assert result.method == "pdf_text_ocr"
    assert result.page_count == 4
    assert handle.closed is True


def test_slow_page_ocr_leaves_only_that_page_empty(monkeypatch, pdf_file):
    _patch_pdf(monkeypatch, [StubPage("1) Typed question"), StubPage("")])
    extractor = TextExtractor(SourceFetcher(), ocr=StubOcr(delay=0.3), ocr_timeout=0.05)

    result = asyncio.run(extractor.extract(str(pdf_file), "pdf"))

    assert result.text == "1) Typed question"
    assert result.method == "pdf_text"
    assert result.page_count == 2


def test_page_ocr_error_leaves_page_empty(monkeypatch, pdf_file):
    _patch_pdf(monkeypatch, [StubPage(""), StubPage("2) Typed")])
    extractor = TextExtractor(SourceFetcher(), ocr=StubOcr(error=RuntimeError("bad scan")))

    result = asyncio.run(extractor.extract(str(pdf_file), "pdf"))

    assert result.text == "2) Typed"


def test_document_ai_structured_result_wins(pdf_file):
    table = ExtractedTable(rows=1, columns=2, content=[["a", "b"], ["1", "2"]])
    document_ai = StubDocumentAI(structured=StructuredDocument(text="1) From cloud", page_count=1, tables=[table]))
    extractor = TextExtractor(SourceFetcher(), document_ai=document_ai)

    result = asyncio.run(extractor.extract(str(pdf_file), "pdf"))

    assert result.method == "document_ai_structured"
    assert result.tables == [table]
    assert document_ai.calls == [("structured", "application/pdf")]


def test_document_ai_falls_back_to_plain_text(pdf_file):
    document_ai = StubDocumentAI(structured=RuntimeError("quota"), text="1) Plain text")
    extractor = TextExtractor(SourceFetcher(), document_ai=document_ai)

    result = asyncio.run(extractor.extract(str(pdf_file), "pdf"))

    assert result.method == "document_ai_text"
    assert result.text == "1) Plain text"


def test_document_ai_failures_fall_through_to_local(monkeypatch, pdf_file):
    _patch_pdf(monkeypatch, [StubPage("local")])
    document_ai = StubDocumentAI(structured=RuntimeError("down"), text=RuntimeError("down"))
    extractor = TextExtractor(SourceFetcher(), document_ai=document_ai)

    result = asyncio.run(extractor.extract(str(pdf_file), "pdf"))

    assert result.method == "pdf_text"
    assert [kind for kind, _ in document_ai.calls] == ["structured", "text"]


def test_unconfigured_document_ai_is_skipped(monkeypatch, pdf_file):
    _patch_pdf(monkeypatch, [StubPage("local")])
    document_ai = StubDocumentAI(configured=False)
    extractor = TextExtractor(SourceFetcher(), document_ai=document_ai)

    asyncio.run(extractor.extract(str(pdf_file), "pdf"))

    assert document_ai.calls == []
