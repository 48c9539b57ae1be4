"""
Error taxonomy for PDF composition.

Two families reach the caller:
- invalid_input      → the request itself is wrong (fix and resend)
- processing_failed  → we could not produce a PDF (re-upload / retry)

ImagePayloadError never reaches the caller: the compositor catches it per
paste region and skips that overlay.
"""
from __future__ import annotations


class CompositionError(Exception):
    """Base class for errors surfaced by the composition endpoints."""

    status_code: int = 500
    error_kind: str = "processing_failed"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class SelectionInputError(CompositionError):
    """Malformed selectionData, missing file, or rejected region geometry."""

    status_code = 400
    error_kind = "invalid_input"


class PdfParseError(CompositionError):
    """The uploaded bytes are not a readable PDF."""


class OutputValidationError(CompositionError):
    """Composition finished but produced an implausibly small buffer."""


class ImagePayloadError(ValueError):
    """A pasted image data URL could not be decoded."""
