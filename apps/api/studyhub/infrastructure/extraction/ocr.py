import logging
from io import BytesIO
from typing import Optional

import pytesseract
from PIL import Image

logger = logging.getLogger(__name__)


class TesseractOcr:
    """Thin wrapper around pytesseract; the tesseract binary is probed once."""

    def __init__(self, lang: str = "eng"):
        self.lang = lang
        self._available: Optional[bool] = None

    @property
    def available(self) -> bool:
        if self._available is None:
            try:
                pytesseract.get_tesseract_version()
                self._available = True
            except (pytesseract.TesseractNotFoundError, OSError) as exc:
                logger.warning("Tesseract OCR unavailable: %s", exc)
                self._available = False
        return self._available

    def image_to_text(self, image: Image.Image) -> str:
        # Grayscale gives tesseract noticeably cleaner input for scanned papers.
        return (pytesseract.image_to_string(image.convert("L"), lang=self.lang) or "").strip()

    def bytes_to_text(self, data: bytes) -> str:
        with Image.open(BytesIO(data)) as image:
            return self.image_to_text(image)
