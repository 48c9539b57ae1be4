# services/api/core/pdfium_support.py
"""
Shared PDFium plumbing.

PDFium is not thread-safe: all calls in this process go through PDFIUM_LOCK.
Requests themselves share nothing else.
"""
from __future__ import annotations

import io
import threading

import pypdfium2 as pdfium

from core.errors import PdfParseError

PDFIUM_LOCK = threading.RLock()


def open_pdf(pdf_bytes: bytes) -> pdfium.PdfDocument:
    """
    Open PDF bytes, mapping every load failure to PdfParseError.
    Caller must hold PDFIUM_LOCK.
    """
    if not pdf_bytes:
        raise PdfParseError("Error processing PDF: empty file")

    try:
        doc = pdfium.PdfDocument(pdf_bytes)
    except pdfium.PdfiumError as e:
        raise PdfParseError(f"Error processing PDF: {e}") from e

    if len(doc) == 0:
        doc.close()
        raise PdfParseError("Error processing PDF: document has no pages")
    return doc


def save_pdf(doc: pdfium.PdfDocument) -> bytes:
    """Serialize a document to bytes. Caller must hold PDFIUM_LOCK."""
    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()
