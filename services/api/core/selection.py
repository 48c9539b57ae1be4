"""
Selection capture model for one rendered page.

Turns pointer interaction over a page bitmap into normalized regions:

    Idle --begin--> Selecting{start, current} --complete / leave--> Idle

The tool never touches the bitmap and never writes to the owner's data: it
reports changes as events through `emit`. Copy mode and drop handling reuse
the same drag mechanics and are switched on by flags.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Mapping, Optional, Tuple, Union

from core.geometry import Point, clamp_point, normalize_selection
from schemas.region import DropPayload, MaskRegion, new_region_id

logger = logging.getLogger(__name__)

# Drags must exceed this many container pixels in both directions.
MIN_SELECTION_PX = 10


# ---------- Drag states ------------------------------------------------------

@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Selecting:
    start: Point
    current: Point


IDLE = Idle()
DragState = Union[Idle, Selecting]


# ---------- Events -----------------------------------------------------------

@dataclass(frozen=True)
class RegionAdded:
    page_number: int
    region: MaskRegion
    regions: Tuple[MaskRegion, ...]


@dataclass(frozen=True)
class RegionRemoved:
    page_number: int
    region_id: str
    regions: Tuple[MaskRegion, ...]


@dataclass(frozen=True)
class CopyRequested:
    """A rectangle drawn in copy mode: crop it from this (source) page."""
    id: str
    page_number: int
    left: float
    top: float
    width: float
    height: float


@dataclass(frozen=True)
class ContentDropped:
    """Something was dropped at normalized (x, y) on this page."""
    page_number: int
    x: float
    y: float
    payload: DropPayload


SelectionEvent = Union[RegionAdded, RegionRemoved, CopyRequested, ContentDropped]
EventSink = Callable[[SelectionEvent], None]


class PageSelectionTool:
    """
    Per-page drag state machine.

    Args:
        page_number: 1-based page this tool sits on
        container_width, container_height: displayed bitmap size in pixels
        emit: receives every SelectionEvent
        existing: regions already stored for this page
        copy_mode: hand accepted rectangles to the copy flow instead of storing them
        allow_drop: accept dropped content (paste targets)
    """

    def __init__(
        self,
        page_number: int,
        container_width: float,
        container_height: float,
        emit: EventSink,
        existing: Iterable[MaskRegion] = (),
        copy_mode: bool = False,
        allow_drop: bool = False,
    ):
        if container_width <= 0 or container_height <= 0:
            raise ValueError("container size must be positive")

        self.page_number = page_number
        self.container_width = container_width
        self.container_height = container_height
        self.copy_mode = copy_mode
        self.allow_drop = allow_drop
        self._emit = emit
        self._regions: List[MaskRegion] = list(existing)
        self.state: DragState = IDLE

    @property
    def regions(self) -> Tuple[MaskRegion, ...]:
        return tuple(self._regions)

    @property
    def is_selecting(self) -> bool:
        return isinstance(self.state, Selecting)

    def sync(self, regions: Iterable[MaskRegion]) -> None:
        """Take the owner's current list for this page."""
        self._regions = list(regions)

    # ----- drag -----

    def begin_selection(self, pos: Point, on_control: bool = False) -> bool:
        """
        Pointer down. `on_control` is True when the pointer landed on an
        existing control (e.g. a region's delete button): no drag starts.
        """
        if on_control:
            return False
        start = clamp_point(Point(float(pos[0]), float(pos[1])), self.container_width, self.container_height)
        self.state = Selecting(start=start, current=start)
        return True

    def update_selection(self, pos: Point) -> None:
        if not isinstance(self.state, Selecting):
            return
        current = clamp_point(Point(float(pos[0]), float(pos[1])), self.container_width, self.container_height)
        self.state = Selecting(start=self.state.start, current=current)

    def complete_selection(self) -> Optional[SelectionEvent]:
        """Pointer up: accept or discard the drag, always back to Idle."""
        state = self.state
        if not isinstance(state, Selecting):
            return None
        self.state = IDLE

        start, end = state.start, state.current
        if not (
            abs(end.x - start.x) > MIN_SELECTION_PX
            and abs(end.y - start.y) > MIN_SELECTION_PX
        ):
            # click, not a selection
            return None

        left, top, width, height = normalize_selection(
            start.x, start.y, end.x, end.y,
            self.container_width, self.container_height,
        )

        if self.copy_mode:
            event: SelectionEvent = CopyRequested(
                id=new_region_id(),
                page_number=self.page_number,
                left=left, top=top, width=width, height=height,
            )
        else:
            region = MaskRegion(
                id=new_region_id(),
                page_number=self.page_number,
                left=left, top=top, width=width, height=height,
            )
            self._regions.append(region)
            event = RegionAdded(self.page_number, region, self.regions)

        self._emit(event)
        return event

    def pointer_leave(self) -> Optional[SelectionEvent]:
        return self.complete_selection()

    # ----- edits -----

    def remove_selection(self, region_id: str) -> RegionRemoved:
        """Drop a region by id and report the page's remaining list (maybe empty)."""
        self._regions = [r for r in self._regions if r.id != region_id]
        regions = self.regions
        foreign = [r.id for r in regions if r.page_number != self.page_number]
        if foreign:
            logger.warning(
                "[selection.remove] page %d holds regions of other pages: %s", self.page_number, foreign
            )
        event = RegionRemoved(self.page_number, region_id, regions)
        self._emit(event)
        return event

    def drop_content(
        self,
        pos: Point,
        payload: Union[str, bytes, Mapping[str, Any]],
    ) -> Optional[ContentDropped]:
        """
        Content dropped at container position `pos`.

        `payload` is the drag data (JSON text or an already-decoded mapping).
        Malformed payloads are logged and ignored.
        """
        if not self.allow_drop:
            return None

        try:
            data = json.loads(payload) if isinstance(payload, (str, bytes)) else payload
            drop = DropPayload.model_validate(data)
        except (ValueError, TypeError) as e:
            logger.error("[selection.drop] error parsing drag data on page %d: %s", self.page_number, e)
            return None

        event = ContentDropped(
            page_number=self.page_number,
            x=float(pos[0]) / self.container_width,
            y=float(pos[1]) / self.container_height,
            payload=drop,
        )
        self._emit(event)
        return event
