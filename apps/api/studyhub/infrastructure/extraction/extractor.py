import asyncio
import logging
from typing import List, Optional

from studyhub.core.domain.analysis import ExtractionResult, FileKind
from studyhub.core.domain.errors import ExtractionError, ExtractionTimeoutError
from studyhub.infrastructure.extraction.documentai import DocumentAIClient
from studyhub.infrastructure.extraction.ocr import TesseractOcr
from studyhub.infrastructure.extraction.pdf_text import OpenedPdf, PdfText, assemble, open_pdf, page_texts, render_page
from studyhub.infrastructure.extraction.sources import SourceFetcher, classify_file_type, mime_type_for

logger = logging.getLogger(__name__)

# Image OCR never blocks the pipeline: these replace the text and the job goes on.
OCR_TIMEOUT_PLACEHOLDER = (
    "Image file processed. OCR extraction timed out before any text was recognised. "
    "Please try again with a smaller or clearer image."
)
OCR_FAILED_PLACEHOLDER = (
    "Image file processed. OCR extraction failed. This may be due to poor image quality, "
    "an unsupported format, or an unavailable OCR engine. Please try with a clearer image or different format."
)


class TextExtractor:
    """
    Turns a stored document into raw text.

    Order: Document AI (when configured) -> pdfplumber for PDFs / tesseract for
    images. Fetch failures and PDF load failures are fatal to the job. OCR
    problems never are: an image degrades to a fixed placeholder and a scanned
    PDF page is left empty.
    """

    def __init__(
        self,
        fetcher: SourceFetcher,
        ocr: Optional[TesseractOcr] = None,
        document_ai: Optional[DocumentAIClient] = None,
        *,
        pdf_timeout: float = 60.0,
        ocr_timeout: float = 300.0,
        document_ai_timeout: float = 120.0,
        max_pages: Optional[int] = None,
    ):
        self.fetcher = fetcher
        self.ocr = ocr
        self.document_ai = document_ai
        self.pdf_timeout = pdf_timeout
        self.ocr_timeout = ocr_timeout
        self.document_ai_timeout = document_ai_timeout
        self.max_pages = max_pages

    async def extract(self, file_path: str, file_type: str) -> ExtractionResult:
        kind = classify_file_type(file_type)
        data = await self.fetcher.fetch(file_path)

        if self.document_ai is not None and self.document_ai.is_configured():
            result = await self._extract_with_document_ai(data, mime_type_for(file_type))
            if result is not None:
                return result

        if kind is FileKind.PDF:
            return await self._extract_pdf(data)
        return await self._extract_image(data)

    async def _extract_with_document_ai(self, data: bytes, mime_type: str) -> Optional[ExtractionResult]:
        try:
            structured = await asyncio.wait_for(
                asyncio.to_thread(self.document_ai.extract_structured, data, mime_type),
                timeout=self.document_ai_timeout,
            )
            return ExtractionResult(
                text=structured.text,
                method="document_ai_structured",
                page_count=structured.page_count,
                tables=structured.tables,
                form_fields=structured.form_fields,
            )
        except Exception as exc:
            logger.warning("Document AI structured extraction failed, trying plain text: %s", exc)

        try:
            text = await asyncio.wait_for(
                asyncio.to_thread(self.document_ai.extract_text, data, mime_type),
                timeout=self.document_ai_timeout,
            )
            return ExtractionResult(text=text, method="document_ai_text")
        except Exception as exc:
            logger.warning("Document AI text extraction failed, using local extraction: %s", exc)
        return None

    async def _extract_pdf(self, data: bytes) -> ExtractionResult:
        # Only loading is bound by pdf_timeout; scanned pages get their own OCR budget.
        try:
            document = await asyncio.wait_for(
                asyncio.to_thread(open_pdf, data, self.max_pages),
                timeout=self.pdf_timeout,
            )
        except asyncio.TimeoutError:
            raise ExtractionTimeoutError(f"PDF loading timeout after {self.pdf_timeout:g}s") from None
        except Exception as exc:
            raise ExtractionError(f"PDF processing failed: {exc}") from exc

        try:
            parsed = await self._read_pages(document)
        except ExtractionError:
            raise
        except Exception as exc:
            raise ExtractionError(f"PDF processing failed: {exc}") from exc
        finally:
            document.close()

        method = "pdf_text_ocr" if parsed.ocr_pages else "pdf_text"
        logger.info("PDF extraction complete: %s characters from %s pages", len(parsed.text), parsed.page_count)
        return ExtractionResult(text=parsed.text, method=method, page_count=parsed.page_count)

    async def _read_pages(self, document: OpenedPdf) -> PdfText:
        texts = await asyncio.to_thread(page_texts, document.pages)
        ocr_pages: List[int] = []
        if self.ocr is None or not self.ocr.available:
            return assemble(texts)

        for index, text in enumerate(texts):
            if text:
                continue
            number = index + 1
            recognised = await self._ocr_pdf_page(document.pages[index], number)
            if recognised is not None:
                texts[index] = recognised
                ocr_pages.append(number)
        return assemble(texts, ocr_pages)

    async def _ocr_pdf_page(self, page, number: int) -> Optional[str]:
        try:
            image = await asyncio.to_thread(render_page, page)
            text = await asyncio.wait_for(
                asyncio.to_thread(self.ocr.image_to_text, image),
                timeout=self.ocr_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("OCR timed out on PDF page %s after %ss; page left empty", number, self.ocr_timeout)
            return None
        except Exception as exc:
            logger.warning("OCR failed on PDF page %s: %s", number, exc)
            return None
        return (text or "").strip()

    async def _extract_image(self, data: bytes) -> ExtractionResult:
        if self.ocr is None or not self.ocr.available:
            logger.warning("No OCR engine available; using placeholder text for image")
            return ExtractionResult(text=OCR_FAILED_PLACEHOLDER, method="ocr", page_count=1, degraded=True)

        try:
            text = await asyncio.wait_for(
                asyncio.to_thread(self.ocr.bytes_to_text, data),
                timeout=self.ocr_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("OCR timed out after %ss; using placeholder text", self.ocr_timeout)
            return ExtractionResult(text=OCR_TIMEOUT_PLACEHOLDER, method="ocr", page_count=1, degraded=True)
        except Exception as exc:
            logger.warning("OCR failed (%s); using placeholder text", exc)
            return ExtractionResult(text=OCR_FAILED_PLACEHOLDER, method="ocr", page_count=1, degraded=True)

        logger.info("OCR complete: %s characters", len(text))
        return ExtractionResult(text=text, method="ocr", page_count=1)
