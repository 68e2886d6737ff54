"""
extractor.py — Extract text content from PDF, Word and plain-text resume files.
"""

from typing import Callable, Dict

from PyPDF2 import PdfReader
from docx import Document

from errors import AppError, ErrorKind
from utils import logger

PDF = "application/pdf"
DOC = "application/msword"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
TXT = "text/plain"


def extract_text_from_pdf(filepath: str) -> str:
    """Extract all text from a PDF file."""
    logger.info("Extracting text from PDF: %s", filepath)
    try:
        reader = PdfReader(filepath)
        text_parts = []
        for page in reader.pages:
            page_text = page.extract_text()
            if page_text:
                text_parts.append(page_text)
        return "\n".join(text_parts)
    except Exception as e:
        logger.error("PDF extraction failed for %s: %s", filepath, e)
        raise AppError("Failed to extract text from PDF", ErrorKind.EXTRACTION_FAILED) from e


def extract_text_from_word(filepath: str) -> str:
    """Extract all text from a Word document."""
    logger.info("Extracting text from Word document: %s", filepath)
    try:
        doc = Document(filepath)
        return "\n".join(para.text for para in doc.paragraphs)
    except Exception as e:
        logger.error("Word extraction failed for %s: %s", filepath, e)
        raise AppError("Failed to extract text from Word document", ErrorKind.EXTRACTION_FAILED) from e


def extract_text_from_txt(filepath: str) -> str:
    logger.info("Reading plain-text resume: %s", filepath)
    try:
        with open(filepath, "r", encoding="utf-8", errors="ignore") as fh:
            return fh.read()
    except OSError as e:
        logger.error("Plain-text read failed for %s: %s", filepath, e)
        raise AppError("Failed to read uploaded file", ErrorKind.STORAGE_ERROR) from e


EXTRACTORS: Dict[str, Callable[[str], str]] = {
    PDF: extract_text_from_pdf,
    DOC: extract_text_from_word,
    DOCX: extract_text_from_word,
    TXT: extract_text_from_txt,
}

SUPPORTED_MIME_TYPES = frozenset(EXTRACTORS)


def is_supported(mime_type: str) -> bool:
    return mime_type in EXTRACTORS


def ensure_supported(mime_type: str) -> None:
    """Reject a MIME type before anything is written or sent upstream."""
    if not is_supported(mime_type):
        raise AppError(
            "Invalid file type. Only PDF, DOC, DOCX, and TXT files are allowed.",
            ErrorKind.UNSUPPORTED_MEDIA_TYPE,
        )


def extract_text(filepath: str, mime_type: str) -> str:
    """Dispatch to the correct extractor based on the document MIME type."""
    ensure_supported(mime_type)
    return EXTRACTORS[mime_type](filepath)
