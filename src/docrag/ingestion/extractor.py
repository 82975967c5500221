"""Text extraction for uploaded documents.

PDFs are read with PyMuPDF (fitz), DOCX files with python-docx, plain text is
decoded as UTF-8. Extraction never raises for malformed input: parse failures
produce empty or partial text flagged as ``degraded``.
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Callable, Dict, Iterator, Optional

import fitz  # PyMuPDF
from docx import Document

from docrag.models import ExtractedText
from docrag.utils.text import collapse_whitespace, normalize_whitespace

LOGGER = logging.getLogger(__name__)

PDF_META_FIELDS = ("title", "author", "subject", "keywords")

_CONTENT_TYPES = {
    "text/plain": ".txt",
    "application/pdf": ".pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
}


def detect_kind(filename: str, content_type: str | None = None) -> str:
    """Return the extension used for dispatch, preferring the file name."""
    suffix = Path(filename).suffix.lower()
    if suffix in (".txt", ".pdf", ".docx"):
        return suffix
    if content_type:
        return _CONTENT_TYPES.get(content_type.split(";")[0].strip().lower(), suffix)
    return suffix


def iter_pdf_pages(doc: "fitz.Document", name: str) -> Iterator[Optional[str]]:
    """Yield normalized page text, or ``None`` for a page that failed to read."""
    for index in range(len(doc)):
        try:
            text = doc[index].get_text() or ""
        except Exception as exc:
            LOGGER.warning("Failed to read page %s in %s: %s", index, name, exc)
            yield None
            continue
        yield collapse_whitespace(text)


def get_pdf_metadata(doc: "fitz.Document") -> Dict[str, str]:
    metadata = doc.metadata or {}
    return {
        key: str(metadata[key]).strip()
        for key in PDF_META_FIELDS
        if metadata.get(key) and str(metadata[key]).strip()
    }


def extract_pdf(data: bytes, name: str = "document.pdf") -> ExtractedText:
    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except Exception as exc:
        LOGGER.error("Failed to open PDF %s: %s", name, exc)
        return ExtractedText(text="", degraded=True)

    degraded = False
    parts = []
    meta: Optional[Dict[str, str]] = None
    try:
        for page_text in iter_pdf_pages(doc, name):
            if page_text is None:
                degraded = True
            else:
                parts.append(page_text + "\n\n")
        try:
            meta = get_pdf_metadata(doc) or None
        except Exception as exc:
            LOGGER.warning("Failed to read metadata for %s: %s", name, exc)
    finally:
        doc.close()

    return ExtractedText(text="".join(parts), meta=meta, degraded=degraded)


def extract_docx(data: bytes, name: str = "document.docx") -> ExtractedText:
    try:
        document = Document(io.BytesIO(data))
    except Exception as exc:
        LOGGER.error("Failed to open DOCX %s: %s", name, exc)
        return ExtractedText(text="", degraded=True)

    text = normalize_whitespace(paragraph.text for paragraph in document.paragraphs)
    core = document.core_properties
    meta = {key: value for key, value in (("title", core.title), ("author", core.author)) if value}
    return ExtractedText(text=text, meta=meta or None)


def extract_plain(data: bytes, name: str = "document.txt") -> ExtractedText:
    try:
        return ExtractedText(text=data.decode("utf-8"))
    except UnicodeDecodeError:
        LOGGER.warning("Could not decode %s as UTF-8", name)
        return ExtractedText(text="", degraded=True)


_EXTRACTORS: Dict[str, Callable[[bytes, str], ExtractedText]] = {
    ".pdf": extract_pdf,
    ".docx": extract_docx,
    ".txt": extract_plain,
}


def extract(data: bytes, filename: str, content_type: str | None = None) -> ExtractedText:
    """Convert raw file bytes into text plus optional document metadata.

    Unknown types fall back to a UTF-8 decode of the raw bytes.
    """
    kind = detect_kind(filename, content_type)
    extractor = _EXTRACTORS.get(kind, extract_plain)
    result = extractor(data, filename)
    if result.degraded:
        LOGGER.warning("Extraction of %s degraded (%d characters recovered)", filename, len(result.text))
    return result


def extract_path(path: Path) -> ExtractedText:
    return extract(path.read_bytes(), path.name)
