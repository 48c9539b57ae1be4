# services/api/models/test.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Test:
    """
    Domain model for a test built from an uploaded PDF.

    `pdf_url` points at the composed PDF under /uploads once exported.
    """
    __test__ = False

    id: str
    title: str
    description: str = ""
    questions: List[Dict[str, Any]] = field(default_factory=list)
    pdf_url: Optional[str] = None

    created_at: str = ""
    updated_at: str = ""
