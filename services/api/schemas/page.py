"""
Pydantic schemas for rendered pages.
"""
from pydantic import BaseModel, ConfigDict, Field


class RenderedPageOut(BaseModel):
    """A page bitmap for the selection editor."""
    model_config = ConfigDict(populate_by_name=True)

    page_number: int = Field(..., ge=1, alias="pageNumber", description="1-based page number")
    width: int = Field(..., gt=0, description="Bitmap width in pixels")
    height: int = Field(..., gt=0, description="Bitmap height in pixels")
    data_url: str = Field(..., alias="dataUrl", description="PNG data URL")
