"""
Editing session for the test builder: owns the region lists that the
per-page selection tools report into.

- mask regions per target page (replaced wholesale on RegionAdded/RegionRemoved)
- a clipboard of crops taken from source pages in copy mode
- paste regions created or repositioned by drops
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from core.geometry import center_rect_at
from core.image_payload import to_data_url
from core.page_render import RenderedPage, crop_region
from core.selection import (
    ContentDropped,
    CopyRequested,
    PageSelectionTool,
    RegionAdded,
    RegionRemoved,
    SelectionEvent,
)
from schemas.region import MaskRegion, PasteRegion, SelectionData, new_region_id

logger = logging.getLogger(__name__)


@dataclass
class ClipboardItem:
    id: str
    content: str          # PNG data URL
    width: float          # normalized, relative to the source page
    height: float
    source_page_number: int

    def drag_payload(self) -> dict:
        """What a drag of this item carries to a paste target."""
        return {
            "content": self.content,
            "width": self.width,
            "height": self.height,
            "sourcePageNumber": self.source_page_number,
        }


class TestBuilderSession:
    """
    In-memory editing state. Nothing here is persisted; `selection_data()`
    is what gets sent to preview / export.
    """

    # not a pytest test class
    __test__ = False

    def __init__(
        self,
        target_pages: Iterable[RenderedPage],
        source_pages: Iterable[RenderedPage] = (),
    ):
        self.target_pages: Dict[int, RenderedPage] = {p.page_number: p for p in target_pages}
        self.source_pages: Dict[int, RenderedPage] = {p.page_number: p for p in source_pages}

        self._masks: Dict[int, List[MaskRegion]] = {}
        self._pastes: List[PasteRegion] = []
        self.clipboard: List[ClipboardItem] = []

    # ----- tools -----

    def tool(self, page_number: int, *, copy_mode: bool = False, allow_drop: bool = False) -> PageSelectionTool:
        """A selection tool for a target page, or a source page when copy_mode is set."""
        pages = self.source_pages if copy_mode else self.target_pages
        page = pages.get(page_number)
        if page is None:
            raise KeyError(f"No {'source' if copy_mode else 'target'} page {page_number}")

        return PageSelectionTool(
            page_number=page_number,
            container_width=page.width,
            container_height=page.height,
            emit=self.handle,
            existing=() if copy_mode else self.masks_for(page_number),
            copy_mode=copy_mode,
            allow_drop=allow_drop,
        )

    # ----- views -----

    def masks_for(self, page_number: int) -> List[MaskRegion]:
        return list(self._masks.get(page_number, ()))

    @property
    def custom_selections(self) -> List[MaskRegion]:
        return [r for page in sorted(self._masks) for r in self._masks[page]]

    @property
    def pasted_selections(self) -> List[PasteRegion]:
        return list(self._pastes)

    def selection_data(self) -> SelectionData:
        return SelectionData(
            custom_selections=self.custom_selections,
            pasted_selections=self.pasted_selections,
        )

    def remove_paste(self, region_id: str) -> None:
        self._pastes = [p for p in self._pastes if p.id != region_id]

    # ----- event handling -----

    def handle(self, event: SelectionEvent) -> None:
        if isinstance(event, (RegionAdded, RegionRemoved)):
            self._masks[event.page_number] = list(event.regions)
        elif isinstance(event, CopyRequested):
            self._copy(event)
        elif isinstance(event, ContentDropped):
            self._drop(event)
        else:
            raise TypeError(f"Unknown selection event: {event!r}")

    def _copy(self, event: CopyRequested) -> Optional[ClipboardItem]:
        page = self.source_pages.get(event.page_number)
        if page is None:
            logger.error("[session.copy] no source page %d to copy from", event.page_number)
            return None

        crop = crop_region(page.image, event.left, event.top, event.width, event.height)
        item = ClipboardItem(
            id=event.id,
            content=to_data_url(crop),
            width=event.width,
            height=event.height,
            source_page_number=event.page_number,
        )
        self.clipboard.append(item)
        logger.info(
            "[session.copy] copied %.3fx%.3f from source page %d",
            event.width, event.height, event.page_number,
        )
        return item

    def _drop(self, event: ContentDropped) -> Optional[PasteRegion]:
        payload = event.payload
        left, top, width, height = center_rect_at(event.x, event.y, payload.width, payload.height)

        # reposition an existing paste
        if payload.id:
            for i, existing in enumerate(self._pastes):
                if existing.id == payload.id:
                    moved = existing.model_copy(update={
                        "page_number": event.page_number,
                        "left": left,
                        "top": top,
                        "width": width,
                        "height": height,
                    })
                    self._pastes[i] = moved
                    return moved

        if not payload.content:
            logger.error(
                "[session.drop] drop on page %d has no content and matches no paste (id=%s)",
                event.page_number,
                payload.id,
            )
            return None

        paste = PasteRegion(
            id=new_region_id(),
            page_number=event.page_number,
            left=left,
            top=top,
            width=width,
            height=height,
            content=payload.content,
        )
        self._pastes.append(paste)
        return paste
