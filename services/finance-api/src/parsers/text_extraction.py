"""Turn uploaded PDFs and receipt images into plain text."""

from __future__ import annotations

import logging
from io import BytesIO

import pdfplumber
import pytesseract
from PIL import Image

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
OCR_LANGUAGE = "eng"


class TextExtractionError(RuntimeError):
    """Raised when a document cannot be read at all (corrupt file, missing OCR engine)."""


def extract_pdf_text(file_bytes: bytes) -> str:
    """Concatenate the text layer of every page, one page per line block."""

    try:
        with pdfplumber.open(BytesIO(file_bytes)) as pdf:
            pages = [page.extract_text() or "" for page in pdf.pages]
    except Exception as exc:  # pdfplumber surfaces several unrelated parser exceptions
        logger.error({"event": "pdf_text_extraction_failed", "error_type": type(exc).__name__})
        raise TextExtractionError("Failed to parse PDF file") from exc

    logger.info({"event": "pdf_text_extracted", "page_count": len(pages)})
    return "\n".join(pages)


def extract_image_text(file_bytes: bytes) -> str:
    """Run OCR over a receipt photo or scan."""

    try:
        with Image.open(BytesIO(file_bytes)) as image:
            text = pytesseract.image_to_string(image.convert("L"), lang=OCR_LANGUAGE)
    except Exception as exc:  # covers unreadable images and a missing tesseract binary
        logger.error({"event": "ocr_text_extraction_failed", "error_type": type(exc).__name__})
        raise TextExtractionError("Failed to process image with OCR") from exc

    logger.info({"event": "ocr_text_extracted", "char_count": len(text)})
    return text


def extract_document_text(file_bytes: bytes, content_type: str | None) -> str:
    if (content_type or "").lower() == PDF_CONTENT_TYPE:
        return extract_pdf_text(file_bytes)
    return extract_image_text(file_bytes)
