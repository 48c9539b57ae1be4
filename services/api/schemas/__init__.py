"""
Pydantic schemas for API request/response validation.
"""
from .page import RenderedPageOut
from .region import (
    DropPayload,
    MaskRegion,
    PasteRegion,
    Region,
    SelectionData,
    parse_selection_data,
)
from .test import QuestionIn, SubQuestionIn, TestCreate, TestOut

__all__ = [
    "DropPayload",
    "MaskRegion",
    "PasteRegion",
    "QuestionIn",
    "Region",
    "RenderedPageOut",
    "SelectionData",
    "SubQuestionIn",
    "TestCreate",
    "TestOut",
    "parse_selection_data",
]
