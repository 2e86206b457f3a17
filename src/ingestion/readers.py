"""Text extraction for ingestion sources (PDF and CSV)."""

import csv
import json
import logging
from pathlib import Path

import fitz  # PyMuPDF

from src.errors import EmptyDocumentError, InvalidInputError
from src.models.enums import SourceType

logger = logging.getLogger(__name__)


def _pages_text(doc: fitz.Document) -> str:
    return "\n".join(page.get_text() for page in doc)


def read_pdf(path: Path) -> str:
    """Extract the text of every page of a PDF file, joined by newlines."""
    if not path.exists():
        raise InvalidInputError(f"PDF file not found: {path}")

    logger.info("Reading PDF: %s", path)
    with fitz.open(path) as doc:
        if doc.page_count == 0:
            raise EmptyDocumentError(f"No content found in PDF: {path}")
        content = _pages_text(doc)

    if not content.strip():
        raise EmptyDocumentError(f"PDF appears to be empty: {path}")

    logger.info("PDF content length: %d characters", len(content))
    return content


def read_pdf_bytes(data: bytes, name: str = "upload.pdf") -> str:
    """Extract text from an in-memory PDF (e.g. an uploaded file)."""
    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except (fitz.FileDataError, RuntimeError, ValueError) as e:
        raise InvalidInputError(f"Could not open PDF {name}: {e}") from e

    with doc:
        if doc.page_count == 0:
            raise EmptyDocumentError(f"No content found in PDF: {name}")
        content = _pages_text(doc)

    if not content.strip():
        raise EmptyDocumentError(f"PDF appears to be empty: {name}")
    return content


def read_csv(path: Path) -> str:
    """Serialize every CSV row as a JSON object, one row per line."""
    if not path.exists():
        raise InvalidInputError(f"CSV file not found: {path}")

    logger.info("Reading CSV: %s", path)
    with path.open(newline="", encoding="utf-8-sig") as f:
        rows = [json.dumps(row, ensure_ascii=False) for row in csv.DictReader(f)]

    if not rows:
        raise EmptyDocumentError(f"No data found in CSV: {path}")

    logger.info("CSV rows processed: %d", len(rows))
    return "\n".join(rows)


def source_type_of(path: Path) -> SourceType:
    suffix = path.suffix.lower().lstrip(".")
    try:
        return SourceType(suffix)
    except ValueError:
        raise InvalidInputError(f"Unsupported source type: {path.name}") from None


def read_source(path: Path) -> str:
    """Read a PDF or CSV source file as plain text."""
    if source_type_of(path) is SourceType.PDF:
        return read_pdf(path)
    return read_csv(path)
