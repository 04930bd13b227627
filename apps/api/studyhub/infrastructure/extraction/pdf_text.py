"""
Text-layer extraction for PDFs with pdfplumber.

The work is split into steps so callers can bound each one separately:
`open_pdf` parses the document and its page tree, `page_texts` reads the text
layer of every page, and `render_page` rasterises a scanned page for OCR.
Words are regrouped into lines by vertical position and split into two columns
when a clear gutter exists, which keeps numbered exam questions on their own
lines.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any, Dict, List, Optional

import pdfplumber

logger = logging.getLogger(__name__)

Word = Dict[str, Any]

SOFT_HYPHEN = "\u00ad"
LINE_Y_TOLERANCE = 2.5
OCR_RESOLUTION = 300


@dataclass
class PdfText:
    text: str
    page_count: int
    ocr_pages: List[int] = field(default_factory=list)
    empty_pages: List[int] = field(default_factory=list)


def _clean(token: str) -> str:
    return " ".join(token.replace(SOFT_HYPHEN, "").split())


def _words_to_lines(words: List[Word]) -> List[str]:
    lines: List[str] = []
    current: List[Word] = []
    current_top: Optional[float] = None

    def flush() -> None:
        if not current:
            return
        ordered = sorted(current, key=lambda w: float(w["x0"]))
        text = " ".join(t for t in (_clean(str(w.get("text", ""))) for w in ordered) if t)
        if text:
            lines.append(text)

    for word in sorted(words, key=lambda w: (float(w["top"]), float(w["x0"]))):
        top = float(word["top"])
        if current_top is not None and abs(top - current_top) > LINE_Y_TOLERANCE:
            flush()
            current = []
            current_top = None
        if current_top is None:
            current_top = top
        current.append(word)
    flush()
    return lines


def _column_split(words: List[Word], page_width: float) -> Optional[float]:
    """Return the x coordinate of a two-column gutter, if the page has one."""
    xs = sorted({float(w["x0"]) for w in words})
    if len(xs) < 2:
        return None

    gap, boundary = max(((right - left, left + (right - left) / 2.0) for left, right in zip(xs, xs[1:])))
    if gap < max(page_width * 0.12, 40.0):
        return None
    if not (page_width * 0.2 < boundary < page_width * 0.8):
        return None

    left_share = sum(1 for w in words if float(w["x1"]) <= boundary) / len(words)
    if not 0.25 <= left_share <= 0.75:
        return None
    return boundary


def page_text(page) -> str:
    words = page.extract_words(x_tolerance=1.0, y_tolerance=3.0, keep_blank_chars=False, use_text_flow=True)
    if not words:
        raw = page.extract_text() or ""
        return "\n".join(ln.strip() for ln in raw.splitlines() if ln.strip())

    boundary = _column_split(words, float(page.width))
    if boundary is None:
        return "\n".join(_words_to_lines(words))

    left = [w for w in words if (float(w["x0"]) + float(w["x1"])) / 2.0 < boundary]
    right = [w for w in words if (float(w["x0"]) + float(w["x1"])) / 2.0 >= boundary]
    return "\n".join(_words_to_lines(left) + _words_to_lines(right))


@dataclass
class OpenedPdf:
    handle: Any
    pages: List[Any]

    def close(self) -> None:
        self.handle.close()


def open_pdf(data: bytes, max_pages: Optional[int] = None) -> OpenedPdf:
    """Parse the document and enumerate its pages (capped at max_pages)."""
    pdf = pdfplumber.open(BytesIO(data))
    try:
        pages = list(pdf.pages[:max_pages] if max_pages else pdf.pages)
    except Exception:
        pdf.close()
        raise
    return OpenedPdf(handle=pdf, pages=pages)


def page_texts(pages: List[Any]) -> List[str]:
    return [page_text(page).strip() for page in pages]


def render_page(page) -> Any:
    return page.to_image(resolution=OCR_RESOLUTION).original


def assemble(texts: List[str], ocr_pages: Optional[List[int]] = None) -> PdfText:
    """Join per-page text in page order; blank pages are recorded, not emitted."""
    parts: List[str] = []
    empty_pages: List[int] = []
    for number, text in enumerate(texts, start=1):
        if text.strip():
            parts.append(text.strip())
        else:
            empty_pages.append(number)

    ocr_pages = list(ocr_pages or [])
    logger.info(
        "Parsed %s PDF pages (%s via OCR, %s empty)", len(texts), len(ocr_pages), len(empty_pages)
    )
    return PdfText(text="\n".join(parts), page_count=len(texts), ocr_pages=ocr_pages, empty_pages=empty_pages)
