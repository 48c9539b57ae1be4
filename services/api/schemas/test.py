"""
Pydantic schemas for Test records (the parent record a composed PDF is saved under).
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SubQuestionIn(BaseModel):
    """A sub-question such as (a), (b), (ii)."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1, description="e.g. 'a', 'b', 'i', 'ii'")
    content: str = ""
    is_selected: bool = Field(True, alias="isSelected")
    page_number: Optional[int] = Field(None, ge=1, alias="pageNumber")
    marks: float = Field(0, ge=0)


class QuestionIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    question_number: int = Field(..., ge=0, alias="questionNumber")
    content: str = ""
    is_selected: bool = Field(True, alias="isSelected")
    page_number: Optional[int] = Field(None, ge=1, alias="pageNumber")
    sub_questions: List[SubQuestionIn] = Field(default_factory=list, alias="subQuestions")


class TestCreate(BaseModel):
    """Schema for creating a test."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=2000)
    questions: List[QuestionIn] = Field(default_factory=list)


class TestOut(BaseModel):
    """Schema for test output."""
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: str
    title: str
    description: str = ""
    questions: List[QuestionIn] = Field(default_factory=list)
    pdf_url: Optional[str] = Field(None, alias="pdfUrl")
    created_at: str = Field("", alias="createdAt")
    updated_at: str = Field("", alias="updatedAt")
