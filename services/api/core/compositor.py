# services/api/core/compositor.py
"""
PDF region compositor.

Builds a new PDF from an uploaded one:
  - every original page is imported as-is (content streams kept, no raster),
  - mask regions are painted over with opaque white,
  - paste regions get an embedded image scaled to fill the rectangle.

Masks are drawn before pastes on each page, so pasted content can sit on top
of a mask but never the other way round.

Regions are normalized against the page as displayed: its visible box turned
by /Rotate, the same view the editor renders.
"""
from __future__ import annotations

import ctypes
import io
import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import pypdfium2 as pdfium
import pypdfium2.raw as pdfium_c
from PIL import Image

from core.errors import ImagePayloadError, OutputValidationError, SelectionInputError
from core.geometry import Matrix, PdfRect, fit_to_page, region_out_of_bounds, to_pdf_matrix, to_pdf_rect
from core.image_payload import DecodedImage, ImageFormat, decode_data_url
from core.pdfium_support import PDFIUM_LOCK, open_pdf, save_pdf
from schemas.region import MaskRegion, PasteRegion, Region, SelectionData

logger = logging.getLogger(__name__)

MASK_LABEL = "[Masked]"
MASK_LABEL_FONT = b"Helvetica"
MASK_LABEL_SIZE = 10.0
MASK_LABEL_GRAY = round(0.7 * 255)
MASK_LABEL_MIN_W = 50  # points
MASK_LABEL_MIN_H = 20  # points

BOUNDS_POLICIES = ("clamp", "reject")

# visual width, visual height, /Rotate, bottom-left of the visible box
PageFrame = Tuple[float, float, int, Tuple[float, float]]


@dataclass
class CompositionResult:
    pdf_bytes: bytes
    page_count: int
    masks_applied: int = 0
    pastes_applied: int = 0
    skipped_regions: List[str] = field(default_factory=list)


# ---------- Grouping / bounds ------------------------------------------------

def group_by_page(regions: Sequence[Region]) -> Dict[int, List[Region]]:
    """
    Map 0-based page index -> regions on that page, keeping list order.
    Built fresh per request.
    """
    by_page: Dict[int, List[Region]] = defaultdict(list)
    for region in regions:
        by_page[region.page_index].append(region)
    return dict(by_page)


def _reject_out_of_bounds(regions_by_page: Mapping[int, Sequence[Region]]) -> None:
    for regions in regions_by_page.values():
        for r in regions:
            if region_out_of_bounds(r.left, r.top, r.width, r.height):
                raise SelectionInputError(
                    f"Region {r.id} on page {r.page_number} is outside the page: "
                    f"left={r.left}, top={r.top}, width={r.width}, height={r.height}"
                )


def _page_frame(page: pdfium.PdfPage) -> PageFrame:
    """
    How the page is displayed. get_size() is the rotated visible size and
    get_bbox() the visible box (crop box within media box) in user space.
    """
    page_w, page_h = page.get_size()
    box_left, box_bottom, _, _ = page.get_bbox()
    return page_w, page_h, page.get_rotation(), (box_left, box_bottom)


def _place(region: Region, frame: PageFrame) -> Optional[Tuple[PdfRect, Matrix]]:
    """
    Clamp the region to the page. Returns its PDF rectangle and the matrix
    placing the unit square on it upright, or None when nothing is left.
    """
    fitted = fit_to_page(region.left, region.top, region.width, region.height)
    if fitted is None:
        return None
    return to_pdf_rect(*fitted, *frame), to_pdf_matrix(*fitted, *frame)


# ---------- Drawing ----------------------------------------------------------

def _draw_mask(
    pdf: pdfium.PdfDocument,
    page: pdfium.PdfPage,
    rect: PdfRect,
    matrix: Matrix,
    label: bool,
) -> None:
    obj = pdfium_c.FPDFPageObj_CreateNewRect(rect.x, rect.y, rect.width, rect.height)
    pdfium_c.FPDFPageObj_SetFillColor(obj, 255, 255, 255, 255)
    # fill, no stroke
    pdfium_c.FPDFPath_SetDrawMode(obj, pdfium_c.FPDF_FILLMODE_WINDING, False)
    pdfium_c.FPDFPage_InsertObject(page.raw, obj)

    # label thresholds apply to the size as displayed
    a, b, c, d, _, _ = matrix
    if label and math.hypot(a, b) > MASK_LABEL_MIN_W and math.hypot(c, d) > MASK_LABEL_MIN_H:
        _draw_mask_label(pdf, page, matrix)


def _draw_mask_label(pdf: pdfium.PdfDocument, page: pdfium.PdfPage, matrix: Matrix) -> None:
    text_obj = pdfium_c.FPDFPageObj_NewTextObj(pdf.raw, MASK_LABEL_FONT, MASK_LABEL_SIZE)
    if not text_obj:
        logger.warning("[compositor.label] could not create text object, label skipped")
        return

    enc_text = (MASK_LABEL + "\x00").encode("utf-16-le")
    pdfium_c.FPDFText_SetText(text_obj, ctypes.cast(enc_text, pdfium_c.FPDF_WIDESTRING))
    g = MASK_LABEL_GRAY
    pdfium_c.FPDFPageObj_SetFillColor(text_obj, g, g, g, 255)
    # baseline along the visual x axis, starting a little left of the center
    a, b, c, d, e, f = matrix
    w, h = math.hypot(a, b), math.hypot(c, d)
    ax, ay = a / w, b / w
    pdfium_c.FPDFPageObj_Transform(
        text_obj, ax, ay, c / h, d / h,
        e + (a + c) / 2 - 20 * ax,
        f + (b + d) / 2 - 20 * ay,
    )
    pdfium_c.FPDFPage_InsertObject(page.raw, text_obj)


def _bitmap_source(img: Image.Image) -> Image.Image:
    """Pillow image in a mode PdfBitmap.from_pil accepts, alpha kept."""
    has_alpha = img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info)
    return img.convert("RGBA" if has_alpha else "RGB")


def _draw_paste(
    pdf: pdfium.PdfDocument,
    page: pdfium.PdfPage,
    matrix: Matrix,
    decoded: DecodedImage,
) -> None:
    image = pdfium.PdfImage.new(pdf)
    try:
        if decoded.format is ImageFormat.JPEG:
            image.load_jpeg(io.BytesIO(decoded.data), inline=True)
        else:
            bitmap = pdfium.PdfBitmap.from_pil(_bitmap_source(decoded.image))
            image.set_bitmap(bitmap)
        image.set_matrix(pdfium.PdfMatrix(*matrix))
    except pdfium.PdfiumError:
        image.close()
        raise
    page.insert_obj(image)


# ---------- Public API -------------------------------------------------------

def compose_pdf(
    pdf_bytes: bytes,
    masks_by_page: Mapping[int, Sequence[MaskRegion]],
    pastes_by_page: Mapping[int, Sequence[PasteRegion]],
    *,
    draw_labels: bool = True,
    bounds_policy: str = "clamp",
    min_output_bytes: int = 100,
) -> CompositionResult:
    """
    Copy every page of `pdf_bytes` into a new document, applying masks and
    pastes keyed by 0-based page index.

    Raises:
        SelectionInputError: bounds_policy="reject" and a region leaves its page
        PdfParseError: source bytes are not a readable PDF
        OutputValidationError: result is smaller than `min_output_bytes`

    A paste whose image cannot be decoded is skipped and reported in
    `skipped_regions`; the rest of the page and request continue.
    """
    if bounds_policy not in BOUNDS_POLICIES:
        raise ValueError(f"Unknown bounds policy: {bounds_policy}")
    if bounds_policy == "reject":
        _reject_out_of_bounds(masks_by_page)
        _reject_out_of_bounds(pastes_by_page)

    result = CompositionResult(pdf_bytes=b"", page_count=0)

    with PDFIUM_LOCK:
        src = open_pdf(pdf_bytes)
        out = pdfium.PdfDocument.new()
        try:
            page_count = len(src)
            result.page_count = page_count

            for idx in sorted(set(masks_by_page) | set(pastes_by_page)):
                if idx < 0 or idx >= page_count:
                    logger.warning(
                        "[compositor] regions reference page %d but the PDF has %d pages; ignored",
                        idx + 1,
                        page_count,
                    )

            for page_index in range(page_count):
                out.import_pages(src, pages=[page_index])
                masks = masks_by_page.get(page_index) or ()
                pastes = pastes_by_page.get(page_index) or ()
                if not masks and not pastes:
                    continue

                page = out[page_index]
                try:
                    _compose_page(out, page, page_index, masks, pastes, draw_labels, result)
                    page.gen_content()
                finally:
                    page.close()

            pdf_out = save_pdf(out)
        finally:
            out.close()
            src.close()

    if len(pdf_out) < min_output_bytes:
        raise OutputValidationError("Failed to generate valid PDF content")

    result.pdf_bytes = pdf_out
    logger.info(
        "[compositor] composed %d pages: %d masks, %d pastes, %d skipped",
        result.page_count,
        result.masks_applied,
        result.pastes_applied,
        len(result.skipped_regions),
    )
    return result


def _compose_page(
    pdf: pdfium.PdfDocument,
    page: pdfium.PdfPage,
    page_index: int,
    masks: Sequence[MaskRegion],
    pastes: Sequence[PasteRegion],
    draw_labels: bool,
    result: CompositionResult,
) -> None:
    frame = _page_frame(page)

    # 1) masks
    for mask in masks:
        placed = _place(mask, frame)
        if placed is None:
            logger.warning(
                "[compositor.mask] region %s on page %d has no area on the page; skipped",
                mask.id,
                page_index + 1,
            )
            result.skipped_regions.append(mask.id)
            continue

        rect, matrix = placed
        logger.debug(
            "Masking area on page %d at (%.2f, %.2f) with size %.2fx%.2f",
            page_index + 1, rect.x, rect.y, rect.width, rect.height,
        )
        _draw_mask(pdf, page, rect, matrix, draw_labels)
        result.masks_applied += 1

    # 2) pastes
    for paste in pastes:
        placed = _place(paste, frame)
        if placed is None:
            logger.warning(
                "[compositor.paste] region %s on page %d has no area on the page; skipped",
                paste.id,
                page_index + 1,
            )
            result.skipped_regions.append(paste.id)
            continue

        rect, matrix = placed
        try:
            decoded = decode_data_url(paste.content)
            _draw_paste(pdf, page, matrix, decoded)
        except (ImagePayloadError, pdfium.PdfiumError) as e:
            logger.warning(
                "[compositor.paste] skipping region %s on page %d: %s",
                paste.id,
                page_index + 1,
                e,
            )
            result.skipped_regions.append(paste.id)
            continue

        logger.debug(
            "Pasting content on page %d at (%.2f, %.2f) with size %.2fx%.2f",
            page_index + 1, rect.x, rect.y, rect.width, rect.height,
        )
        result.pastes_applied += 1


def compose_selection(
    pdf_bytes: bytes,
    selection: SelectionData,
    **options,
) -> CompositionResult:
    """Group a parsed SelectionData by page and compose."""
    logger.info(
        "[compositor] custom selections: %d, pasted selections: %d",
        len(selection.custom_selections),
        len(selection.pasted_selections),
    )
    return compose_pdf(
        pdf_bytes,
        group_by_page(selection.custom_selections),
        group_by_page(selection.pasted_selections),
        **options,
    )
