"""Local receipt recognition using Tesseract."""

from __future__ import annotations

import asyncio
import io
import logging
import re
from typing import List, Optional

import pytesseract
from pdf2image import convert_from_bytes
from PIL import Image, ImageFilter, ImageOps, UnidentifiedImageError

from splitcheck.models.receipt import ReceiptData
from splitcheck.ocr.base import ProgressCallback
from splitcheck.ocr.errors import ReceiptExtractionError, UnsupportedReceiptError
from splitcheck.ocr.parser import ReceiptTextParser
from splitcheck.ocr.sanitize import mask_card_numbers, sanitize_text

logger = logging.getLogger(__name__)

_PDF_MAGIC = b"%PDF"


class TesseractReceiptProvider:
    """Recognize text on-device and hand it to the receipt text parser."""

    name = "tesseract"

    def __init__(
        self,
        *,
        lang: str = "eng",
        parser: Optional[ReceiptTextParser] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        self._lang = lang
        self._parser = parser or ReceiptTextParser()
        self._progress = progress

    async def extract_receipt(self, image: bytes) -> ReceiptData:
        text = await asyncio.to_thread(self._recognize, image)
        logger.debug("Tesseract recognized %s characters", len(text))
        parsed = self._parser.parse(text)
        # Items come from the unmasked text; only the returned raw copy is masked.
        return parsed.model_copy(update={"provider": self.name, "raw": mask_card_numbers(text)})

    def _recognize(self, image: bytes) -> str:
        pages = self._load_images(image)
        if not pages:
            raise UnsupportedReceiptError(
                "Receipt does not contain any decodable pages.", provider=self.name
            )

        self._report(0.0)
        page_texts: List[str] = []
        for page_number, page in enumerate(pages, start=1):
            processed = self._preprocess_image(page)
            try:
                raw_text = pytesseract.image_to_string(processed, lang=self._lang)
            except pytesseract.TesseractError as exc:
                raise ReceiptExtractionError(
                    f"Tesseract failed on page {page_number}: {exc}", provider=self.name
                ) from exc
            page_texts.append(raw_text.strip())
            self._report(page_number / len(pages))

        return sanitize_text("\n".join(text for text in page_texts if text))

    def _load_images(self, blob: bytes) -> List[Image.Image]:
        if blob.lstrip()[:4] == _PDF_MAGIC:
            try:
                return convert_from_bytes(blob, fmt="png")
            except Exception as exc:
                raise UnsupportedReceiptError(
                    "Unable to convert PDF for OCR. Ensure poppler utilities are installed.",
                    provider=self.name,
                ) from exc

        try:
            image = Image.open(io.BytesIO(blob))
            image.load()
        except (UnidentifiedImageError, OSError) as exc:
            raise UnsupportedReceiptError(
                "Receipt is not an image format supported by OCR.", provider=self.name
            ) from exc
        return [image]

    def _preprocess_image(self, image: Image.Image) -> Image.Image:
        processed = ImageOps.exif_transpose(image) or image
        processed = ImageOps.grayscale(processed)
        processed = ImageOps.autocontrast(processed)
        processed = processed.filter(ImageFilter.MedianFilter(size=3))

        try:
            osd = pytesseract.image_to_osd(processed, lang=self._lang)
        except pytesseract.TesseractError as exc:
            # OSD needs enough text to guess orientation; small crops routinely fail.
            logger.debug("Orientation detection skipped: %s", exc)
            return processed
        rotation = _parse_rotation_from_osd(osd)
        if rotation:
            processed = processed.rotate(-rotation, expand=True, fillcolor=255)
        return processed

    def _report(self, fraction: float) -> None:
        if self._progress is None:
            return
        try:
            self._progress(fraction)
        except Exception:  # pragma: no cover - listeners must not break recognition
            logger.exception("OCR progress listener raised")


def _parse_rotation_from_osd(osd: str) -> int:
    match = re.search(r"Rotate: (\d+)", osd)
    if not match:
        return 0
    return int(match.group(1)) % 360


__all__ = ["TesseractReceiptProvider"]
