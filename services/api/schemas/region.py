"""
Pydantic schemas for masked / pasted page regions.

Wire format (camelCase, shared with the editor):
  MaskRegion:  { id, pageNumber, left, top, width, height }
  PasteRegion: { id, pageNumber, left, top, width, height, content }

Coordinates are fractions of the rendered page, origin top-left.
Out-of-page geometry is NOT rejected here; the compositor applies the
configured bounds policy with the actual page in hand.
"""
from __future__ import annotations

import json
import uuid
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from core.errors import SelectionInputError


def new_region_id() -> str:
    return uuid.uuid4().hex


class Region(BaseModel):
    """Base region: a normalized rectangle on one page."""

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        allow_inf_nan=False,
    )

    id: str = Field(default_factory=new_region_id, description="Opaque region id")
    page_number: int = Field(..., ge=1, alias="pageNumber", description="1-based page number")

    left: float = Field(..., description="Fraction of page width from the left edge")
    top: float = Field(..., description="Fraction of page height from the top edge")
    width: float = Field(..., description="Fraction of page width")
    height: float = Field(..., description="Fraction of page height")

    @property
    def page_index(self) -> int:
        """0-based page index in the source PDF."""
        return self.page_number - 1

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


class MaskRegion(Region):
    """Paint this rectangle opaque white."""


class PasteRegion(Region):
    """Draw `content` (an image data URL) scaled into this rectangle."""

    content: str = Field(..., description='"data:<mime>;base64,<data>"')


class SelectionData(BaseModel):
    """The `selectionData` form field of preview / export requests."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    custom_selections: List[MaskRegion] = Field(default_factory=list, alias="customSelections")
    pasted_selections: List[PasteRegion] = Field(default_factory=list, alias="pastedSelections")

    @property
    def is_empty(self) -> bool:
        return not self.custom_selections and not self.pasted_selections


class DropPayload(BaseModel):
    """
    Data carried by a drag-and-drop onto a paste target.

    Either a fresh crop (content + size) or an existing paste region being
    repositioned (id + size).
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", allow_inf_nan=False)

    id: Optional[str] = None
    content: Optional[str] = None
    width: float = Field(..., gt=0.0)
    height: float = Field(..., gt=0.0)
    source_page_number: Optional[int] = Field(default=None, alias="sourcePageNumber")


def parse_selection_data(raw: Optional[str]) -> SelectionData:
    """
    Parse the raw `selectionData` form value.

    Empty / missing → empty selection. Anything that is not JSON, or does not
    match the region schema, is a client input error.
    """
    if raw is None or not raw.strip():
        return SelectionData()

    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise SelectionInputError("Invalid selection data format") from e

    if not isinstance(payload, dict):
        raise SelectionInputError("Invalid selection data format: expected a JSON object")

    try:
        return SelectionData.model_validate(payload)
    except ValidationError as e:
        first = e.errors()[0]
        loc = ".".join(str(p) for p in first.get("loc", ()))
        raise SelectionInputError(
            f"Invalid selection data format: {loc}: {first.get('msg')}"
        ) from e
