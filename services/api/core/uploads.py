# services/api/core/uploads.py
"""
Upload / output file handling for the composition endpoints.

- incoming PDFs are spooled to a temp file and read back once per request
  (the temp file is never modified, cleanup is best-effort)
- composed PDFs are written atomically into the upload dir, so a failed
  request never leaves a partial file behind
"""
from __future__ import annotations

import logging
import os
import shutil
import uuid
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Tuple

from fastapi import UploadFile

from core.errors import SelectionInputError

logger = logging.getLogger(__name__)

UPLOADS_URL_PREFIX = "/uploads"


def spool_upload(upload: UploadFile, max_bytes: int) -> Tuple[str, bytes]:
    """
    Copy an uploaded file to a temp path and return (path, bytes).

    Raises:
        SelectionInputError: the upload is larger than max_bytes
    """
    upload.file.seek(0)
    with NamedTemporaryFile(delete=False, suffix=".pdf") as tmp:
        shutil.copyfileobj(upload.file, tmp)
        tmp_path = tmp.name

    size = os.path.getsize(tmp_path)
    if size > max_bytes:
        cleanup_temp_file(tmp_path)
        raise SelectionInputError(
            f"PDF is too large: {size} bytes (limit {max_bytes} bytes)"
        )

    with open(tmp_path, "rb") as f:
        data = f.read()
    return tmp_path, data


def cleanup_temp_file(path: str) -> None:
    """Delete a temp upload. Failures are logged, never raised."""
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.error(f"Error deleting temporary file {path}: {e}")


def store_output(pdf_bytes: bytes, upload_dir: str, original_name: str = "") -> str:
    """
    Write composed PDF bytes into `upload_dir` and return its URL path
    (/uploads/<file>).
    """
    target_dir = Path(upload_dir)
    target_dir.mkdir(parents=True, exist_ok=True)

    stem = Path(original_name or "test").stem
    safe_stem = "".join(c if c.isalnum() or c in "-_" else "_" for c in stem)[:60] or "test"
    filename = f"{uuid.uuid4().hex}-{safe_stem}.pdf"

    final_path = target_dir / filename
    tmp_path = final_path.with_suffix(".tmp")
    with open(tmp_path, "wb") as f:
        f.write(pdf_bytes)
    tmp_path.replace(final_path)

    logger.info(f"[uploads] stored composed PDF {final_path} ({len(pdf_bytes)} bytes)")
    return f"{UPLOADS_URL_PREFIX}/{filename}"
