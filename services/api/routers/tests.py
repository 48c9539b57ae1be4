# services/api/routers/tests.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, Request, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response

from adapters.base import StorageAdapter
from core.compositor import CompositionResult, compose_selection
from core.errors import SelectionInputError
from core.page_render import render_pages
from core.uploads import cleanup_temp_file, spool_upload, store_output
from models.converters import row_to_test
from schemas.page import RenderedPageOut
from schemas.region import SelectionData, parse_selection_data
from schemas.test import TestCreate, TestOut
from settings import get_settings

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/tests", tags=["tests"])


def get_storage(request: Request) -> StorageAdapter:
    """Dependency to get storage adapter from app state."""
    adapter = getattr(request.app.state, "storage_adapter", None)
    if adapter is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Storage adapter not configured on app.state.storage_adapter",
        )
    return adapter


def _test_out(row: Dict[str, Any]) -> Dict[str, Any]:
    return TestOut.model_validate(row_to_test(row)).model_dump(by_alias=True)


def _require_pdf(pdf: Optional[UploadFile]) -> UploadFile:
    if pdf is None or not pdf.filename:
        raise SelectionInputError("No PDF file provided")
    return pdf


# ---------- Composition helpers ----------

async def _compose(request: Request, pdf_bytes: bytes, selection: SelectionData) -> CompositionResult:
    """
    Run the compositor in the threadpool, bounded by
    app.state.composition_semaphore when one is configured.
    """
    settings = get_settings()
    options = dict(
        draw_labels=settings.mask_labels,
        bounds_policy=settings.region_bounds_policy,
        min_output_bytes=settings.min_output_bytes,
    )

    sem = getattr(request.app.state, "composition_semaphore", None)
    if sem is None:
        return await run_in_threadpool(compose_selection, pdf_bytes, selection, **options)

    async with sem:
        return await run_in_threadpool(compose_selection, pdf_bytes, selection, **options)


async def _spool_and_compose(
    request: Request,
    background_tasks: BackgroundTasks,
    pdf: UploadFile,
    selection_data: Optional[str],
) -> CompositionResult:
    """
    Parse selectionData, spool the upload and compose it.

    The temp file is removed after the response; on failure it is removed
    right away since no response body will carry the background task.
    """
    selection = parse_selection_data(selection_data)

    tmp_path, pdf_bytes = await run_in_threadpool(
        spool_upload, pdf, get_settings().max_upload_bytes
    )
    logger.info(f"[tests.compose] received {pdf.filename} ({len(pdf_bytes)} bytes)")

    try:
        result = await _compose(request, pdf_bytes, selection)
    except Exception:
        cleanup_temp_file(tmp_path)
        raise

    background_tasks.add_task(cleanup_temp_file, tmp_path)
    return result


# ---------- Composition endpoints ----------

@router.post("/preview")
async def preview_pdf(
    request: Request,
    background_tasks: BackgroundTasks,
    pdf: Optional[UploadFile] = File(None),
    selection_data: Optional[str] = Form(None, alias="selectionData"),
):
    """
    Compose the uploaded PDF with the given masks/pastes and return it inline.

    Paste regions that could not be drawn are listed (comma-separated ids)
    in the X-Skipped-Regions header.
    """
    pdf = _require_pdf(pdf)
    result = await _spool_and_compose(request, background_tasks, pdf, selection_data)

    headers = {"Content-Disposition": "inline; filename=preview.pdf"}
    if result.skipped_regions:
        headers["X-Skipped-Regions"] = ",".join(result.skipped_regions)

    return Response(content=result.pdf_bytes, media_type="application/pdf", headers=headers)


@router.post("/pages", status_code=status.HTTP_200_OK)
async def render_pdf_pages(
    background_tasks: BackgroundTasks,
    pdf: Optional[UploadFile] = File(None),
):
    """Render every page of the uploaded PDF for the selection editor."""
    pdf = _require_pdf(pdf)
    settings = get_settings()

    tmp_path, pdf_bytes = await run_in_threadpool(spool_upload, pdf, settings.max_upload_bytes)
    try:
        pages = await run_in_threadpool(render_pages, pdf_bytes, settings.render_scale)
    except Exception:
        cleanup_temp_file(tmp_path)
        raise
    background_tasks.add_task(cleanup_temp_file, tmp_path)

    data: List[Dict[str, Any]] = [
        RenderedPageOut.model_validate(p.to_wire()).model_dump(by_alias=True) for p in pages
    ]
    logger.info(f"[tests.pages] rendered {len(data)} pages of {pdf.filename}")
    return {"success": True, "data": data}


# ---------- Test records ----------

@router.post("", status_code=status.HTTP_201_CREATED)
def create_test(payload: TestCreate, storage: StorageAdapter = Depends(get_storage)):
    test_id = storage.create_test(
        title=payload.title,
        description=payload.description,
        questions=[q.model_dump(by_alias=True) for q in payload.questions],
    )
    logger.info(f"[tests.create] created test {test_id}")
    return {"success": True, "data": _test_out(storage.get_test(test_id))}


@router.get("", status_code=status.HTTP_200_OK)
def list_tests(storage: StorageAdapter = Depends(get_storage)):
    return {"success": True, "data": [_test_out(row) for row in storage.list_tests()]}


@router.get("/{test_id}", status_code=status.HTTP_200_OK)
def get_test(test_id: str, storage: StorageAdapter = Depends(get_storage)):
    row = storage.get_test(test_id)
    if not row:
        raise HTTPException(status_code=404, detail="Test not found")
    return {"success": True, "data": _test_out(row)}


@router.post("/{test_id}/upload-pdf", status_code=status.HTTP_200_OK)
async def upload_pdf(
    test_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    pdf: Optional[UploadFile] = File(None),
    selection_data: Optional[str] = Form(None, alias="selectionData"),
    storage: StorageAdapter = Depends(get_storage),
):
    """
    Compose the uploaded PDF, save it under the upload dir and point the
    test's pdfUrl at it. Nothing is written when composition fails.
    """
    pdf = _require_pdf(pdf)
    if not storage.get_test(test_id):
        raise HTTPException(status_code=404, detail="Test not found")

    result = await _spool_and_compose(request, background_tasks, pdf, selection_data)

    upload_dir = getattr(request.app.state, "upload_dir", None) or get_settings().upload_dir
    pdf_url = await run_in_threadpool(store_output, result.pdf_bytes, upload_dir, pdf.filename or "")
    storage.update_test(test_id, {"pdf_url": pdf_url})

    if result.skipped_regions:
        logger.warning(
            f"[tests.upload] test {test_id} saved with skipped regions: {result.skipped_regions}"
        )

    return {
        "success": True,
        "message": "PDF uploaded successfully",
        "data": {"pdfUrl": pdf_url, "skippedRegions": result.skipped_regions},
    }
