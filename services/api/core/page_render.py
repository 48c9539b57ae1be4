# services/api/core/page_render.py
"""
Page bitmaps for the selection editor (pypdfium2 → Pillow).

Each page is rendered once; selection geometry is normalized against the
bitmap size, so the render scale never leaks into region coordinates.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List

from PIL import Image

from core.image_payload import to_data_url
from core.pdfium_support import PDFIUM_LOCK, open_pdf


@dataclass
class RenderedPage:
    page_number: int  # 1-based
    width: int        # pixels
    height: int       # pixels
    image: Image.Image

    def data_url(self) -> str:
        return to_data_url(self.image)

    def to_wire(self) -> dict:
        return {
            "pageNumber": self.page_number,
            "width": self.width,
            "height": self.height,
            "dataUrl": self.data_url(),
        }


def render_pages(pdf_bytes: bytes, scale: float = 1.5) -> List[RenderedPage]:
    """
    Render every page at `scale` (1.0 ≈ 72 DPI).

    Raises:
        PdfParseError: bytes are not a readable PDF
    """
    pages: List[RenderedPage] = []
    with PDFIUM_LOCK:
        doc = open_pdf(pdf_bytes)
        try:
            for idx in range(len(doc)):
                page = doc[idx]
                try:
                    pil_page: Image.Image = page.render(scale=scale).to_pil().convert("RGB")
                finally:
                    page.close()
                w, h = pil_page.size
                pages.append(RenderedPage(page_number=idx + 1, width=w, height=h, image=pil_page))
        finally:
            doc.close()
    return pages


def crop_region(
    image: Image.Image,
    left: float,
    top: float,
    width: float,
    height: float,
) -> Image.Image:
    """
    Crop a normalized rectangle out of a page bitmap.
    Pixel edges are rounded and clamped to the bitmap.
    """
    W, H = image.size

    x0 = max(0, min(W, int(round(left * W))))
    y0 = max(0, min(H, int(round(top * H))))
    x1 = max(0, min(W, int(round((left + width) * W))))
    y1 = max(0, min(H, int(round((top + height) * H))))

    if x1 <= x0 or y1 <= y0:
        raise ValueError(
            f"Crop has no area: ({left}, {top}, {width}, {height}) on {W}x{H}"
        )
    return image.crop((x0, y0, x1, y1))
