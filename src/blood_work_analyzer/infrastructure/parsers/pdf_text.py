"""
PDF text extraction for lab reports.

Reads the text layer of a PDF with pdfplumber. Scanned pages without a text
layer are skipped; no OCR is attempted.
"""

import logging
from pathlib import Path

import pdfplumber
from pydantic import BaseModel

from blood_work_analyzer.utils.exceptions import ParsingError
from blood_work_analyzer.utils.hashing import compute_file_hash

logger = logging.getLogger(__name__)


class ExtractedDocument(BaseModel):
    """Text of a PDF together with basic provenance."""

    text: str
    page_count: int
    pages_with_text: int
    file_hash: str


def extract_document(file_path: str | Path) -> ExtractedDocument:
    """
    Extract the text of every page of a PDF.

    Args:
        file_path: Path to the PDF file.

    Returns:
        Extracted document; page texts are joined with newlines.

    Raises:
        ParsingError: If the file cannot be opened or read as a PDF.
    """
    path = Path(file_path)
    if not path.exists():
        raise ParsingError(f"PDF file not found: {path}")

    page_texts: list[str] = []

    try:
        with pdfplumber.open(path) as pdf:
            page_count = len(pdf.pages)
            for number, page in enumerate(pdf.pages, start=1):
                text = page.extract_text() or ""
                if not text.strip():
                    logger.warning(f"Page {number} of {path.name} has no text layer, skipping")
                    continue
                page_texts.append(text)

    except Exception as e:
        raise ParsingError(f"Failed to read PDF {path}: {e}") from e

    logger.info(f"Read {len(page_texts)}/{page_count} pages from {path.name}")

    return ExtractedDocument(
        text="\n".join(page_texts),
        page_count=page_count,
        pages_with_text=len(page_texts),
        file_hash=compute_file_hash(str(path)),
    )


def extract_text(file_path: str | Path) -> str:
    """
    Extract the plain text of a PDF.

    Args:
        file_path: Path to the PDF file.

    Returns:
        Text of all pages with a text layer, joined with newlines.

    Raises:
        ParsingError: If the file cannot be read as a PDF.
    """
    return extract_document(file_path).text
