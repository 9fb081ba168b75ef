# ============================================================================
# src/medical_docintel/pipeline/preprocessing.py
# ============================================================================
"""
Document Preprocessing

Images:
- EXIF orientation applied
- Upscaled toward the target DPI (at most 2x, Lanczos)
- Autocontrast
- Re-encoded as PNG
- Quality score from dimensions and DPI

PDFs pass through unchanged with their page count and a fixed quality score.
"""

import asyncio
import io
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import fitz  # PyMuPDF
from PIL import Image, ImageOps, UnidentifiedImageError

from ..config import ExtractionSettings
from ..ocr.base import PDF_MIME_TYPE
from ..utils.exceptions import InvalidDocumentError

logger = logging.getLogger(__name__)

PNG_MIME_TYPE = "image/png"
DEFAULT_DPI = 72
MAX_UPSCALE = 2.0
PDF_QUALITY_SCORE = 0.8

SUPPORTED_MIME_TYPES = (
    PDF_MIME_TYPE,
    "image/png",
    "image/jpeg",
    "image/jpg",
    "image/tiff",
    "image/webp",
)

_EXIF_ORIENTATION_TAG = 0x0112


@dataclass
class PreprocessedDocument:
    content: bytes
    mime_type: str
    page_count: int
    quality_score: float
    dpi: Optional[int] = None
    was_rotated: bool = False
    was_deskewed: bool = False


def calculate_quality_score(width: int, height: int, dpi: float) -> float:
    """
    1.0 minus penalties for small dimensions and low DPI, clamped to [0, 1].

    Shorter side < 500px: -0.3, < 1000px: -0.1.
    DPI < 150: -0.2, < 200: -0.1.
    """
    score = 1.0

    min_dimension = min(width or 0, height or 0)
    if min_dimension < 500:
        score -= 0.3
    elif min_dimension < 1000:
        score -= 0.1

    if dpi < 150:
        score -= 0.2
    elif dpi < 200:
        score -= 0.1

    return max(0.0, min(1.0, score))


def _image_dpi(image: Image.Image) -> float:
    dpi = image.info.get("dpi")
    if isinstance(dpi, tuple) and dpi and dpi[0]:
        return float(dpi[0])
    return float(DEFAULT_DPI)


def get_pdf_page_count(content: bytes) -> int:
    with fitz.open(stream=content, filetype="pdf") as doc:
        return doc.page_count


def extract_pdf_pages(content: bytes, start: int = 0, end: Optional[int] = None) -> List[bytes]:
    """Split pages [start, end) of a PDF into single-page PDFs."""
    pages: List[bytes] = []
    with fitz.open(stream=content, filetype="pdf") as src:
        stop = min(end if end is not None else src.page_count, src.page_count)
        for i in range(start, stop):
            with fitz.open() as single:
                single.insert_pdf(src, from_page=i, to_page=i)
                pages.append(single.tobytes())
    return pages


class DocumentPreprocessor:
    """
    Prepares uploaded documents for OCR.

    Args:
        settings: AUTO_ROTATE / ENHANCE_CONTRAST / TARGET_DPI switches
    """

    def __init__(self, settings: ExtractionSettings):
        self.settings = settings
        self.logger = logging.getLogger(self.__class__.__name__)

    async def preprocess(self, content: bytes, mime_type: str) -> PreprocessedDocument:
        if mime_type == PDF_MIME_TYPE:
            return await asyncio.to_thread(self._preprocess_pdf, content)
        if not mime_type.startswith("image/"):
            raise InvalidDocumentError(f"Unsupported document type: {mime_type}")
        return await asyncio.to_thread(self._preprocess_image, content)

    def _preprocess_pdf(self, content: bytes) -> PreprocessedDocument:
        page_count = 1
        try:
            page_count = get_pdf_page_count(content)
        except (RuntimeError, ValueError) as e:
            self.logger.warning(f"Could not parse PDF for page count: {e}")

        self.logger.info(f"PDF preprocessing complete: pages={page_count}, size={len(content)}")
        return PreprocessedDocument(
            content=content,
            mime_type=PDF_MIME_TYPE,
            page_count=page_count,
            quality_score=PDF_QUALITY_SCORE,
        )

    def _preprocess_image(self, content: bytes) -> PreprocessedDocument:
        try:
            image = Image.open(io.BytesIO(content))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            raise InvalidDocumentError(f"Could not decode image: {e}") from e

        original_size: Tuple[int, int] = image.size
        current_dpi = _image_dpi(image)
        target_dpi = self.settings.TARGET_DPI

        was_rotated = False
        if self.settings.AUTO_ROTATE:
            orientation = image.getexif().get(_EXIF_ORIENTATION_TAG, 1)
            image = ImageOps.exif_transpose(image)
            was_rotated = orientation not in (None, 1)

        if current_dpi < target_dpi:
            scale = min(target_dpi / current_dpi, MAX_UPSCALE)
            new_size = (round(image.width * scale), round(image.height * scale))
            image = image.resize(new_size, Image.LANCZOS)
            self.logger.info(
                f"Upscaled image for OCR: dpi {current_dpi:.0f} -> {target_dpi} (scale={scale:.2f})"
            )

        if image.mode not in ("L", "RGB"):
            image = image.convert("RGB")

        if self.settings.ENHANCE_CONTRAST:
            image = ImageOps.autocontrast(image)

        buffer = io.BytesIO()
        image.save(buffer, format="PNG", dpi=(target_dpi, target_dpi))

        return PreprocessedDocument(
            content=buffer.getvalue(),
            mime_type=PNG_MIME_TYPE,
            page_count=1,
            quality_score=calculate_quality_score(original_size[0], original_size[1], current_dpi),
            dpi=target_dpi,
            was_rotated=was_rotated,
        )
