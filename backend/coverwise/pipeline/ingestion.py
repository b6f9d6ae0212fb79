"""Policy document text extraction: PDF, scanned image, or plain text.

Strategy:
  1. PDFs (magic bytes or MIME) → pdfplumber page text, tables appended as
     pipe-separated rows so schedule tables survive into the prompt.
  2. Images → LLM transcription (llm_client.transcribe_image).
  3. text/plain → UTF-8 decode.
Anything else is an UnsupportedFileError; no text at all is an EmptyDocumentError.
"""

import asyncio
import io
import logging
import re

import pdfplumber

from coverwise.errors import EmptyDocumentError, UnsupportedFileError
from coverwise.pipeline.llm_client import transcribe_image

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF"
MIN_CHARS_PER_PAGE = 50          # Pages with fewer chars are probably scanned
CID_RATIO_THRESHOLD = 0.15      # >15% (cid:XX) placeholders → broken font encoding


def _assess_page_quality(text: str) -> str | None:
    """Return a reason string when a page's text looks unusable, else None."""
    char_count = len(text.strip())
    if char_count < MIN_CHARS_PER_PAGE:
        return f"too few characters ({char_count})"
    cid_chars = sum(len(m) for m in re.findall(r"\(cid:\d+\)", text))
    cid_ratio = cid_chars / max(char_count, 1)
    if cid_ratio > CID_RATIO_THRESHOLD:
        return f"high (cid:) ratio ({cid_ratio:.0%})"
    return None


def _table_lines(table: list[list]) -> list[str]:
    lines = []
    for row in table:
        cells = [cell.strip() if isinstance(cell, str) else "" for cell in row]
        if any(cells):
            lines.append(" | ".join(cells))
    return lines


def extract_pdf_text(content: bytes, filename: str = "") -> str:
    """Extract all page text (plus table rows) from PDF bytes with pdfplumber."""
    parts = []
    low_quality = []
    try:
        with pdfplumber.open(io.BytesIO(content)) as pdf:
            for i, page in enumerate(pdf.pages):
                page_text = page.extract_text() or ""
                reason = _assess_page_quality(page_text)
                if reason:
                    low_quality.append(f"p{i + 1}: {reason}")
                parts.append(page_text)
                for table in page.extract_tables() or []:
                    parts.extend(_table_lines(table))
    except Exception as e:
        logger.error(f"pdfplumber failed on {filename or 'upload'}: {e}")
        raise EmptyDocumentError(f"Could not read PDF {filename!r}", {"reason": str(e)}) from e

    if low_quality:
        logger.warning(f"{filename or 'PDF'}: {len(low_quality)} low-quality page(s) — {', '.join(low_quality[:5])}")
    return "\n".join(p for p in parts if p)


def _is_pdf(content: bytes, mime_type: str) -> bool:
    return content[:4] == PDF_MAGIC or mime_type == "application/pdf"


async def extract_document_text(content: bytes, filename: str, mime_type: str) -> str:
    """Turn an uploaded policy document into text for the extraction prompt."""
    mime_type = (mime_type or "").split(";")[0].strip().lower()

    if _is_pdf(content, mime_type):
        text = await asyncio.to_thread(extract_pdf_text, content, filename)
        method = "pdfplumber"
    elif mime_type.startswith("image/"):
        text = await transcribe_image(content, mime_type)
        method = "llm-transcription"
    elif mime_type == "text/plain":
        text = content.decode("utf-8", errors="replace")
        method = "text"
    else:
        raise UnsupportedFileError(
            f"Unsupported file type {mime_type or 'unknown'!r} for {filename!r}",
            {"mime_type": mime_type},
        )

    if not text or not text.strip():
        raise EmptyDocumentError(f"No text could be extracted from {filename!r}")
    logger.info(f"Extracted {len(text):,} chars from {filename} via {method}")
    return text
