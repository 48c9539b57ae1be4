from __future__ import annotations

from typing import Any, Dict

from . import Test


def row_to_test(row: Dict[str, Any]) -> Test:
    """Convert a raw stored dict into a Test model."""
    questions = row.get("questions") or []
    if not isinstance(questions, list):
        questions = []

    return Test(
        id=row.get("id", ""),
        title=row.get("title") or "",
        description=row.get("description") or "",
        questions=questions,
        pdf_url=row.get("pdf_url") or None,
        created_at=row.get("created_at") or "",
        updated_at=row.get("updated_at") or "",
    )
