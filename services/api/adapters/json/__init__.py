"""
JSON file storage adapter for test records.
Simple file-based storage for local use and testing.
Writes are serialized inside the process; not suitable for several processes
sharing one data directory.
"""
import json
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Dict, Any, Optional

from fastapi import HTTPException

# Keys a caller may overwrite through update_test
_UPDATABLE = {"title", "description", "questions", "pdf_url"}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class JsonAdapter:
    """
    JSON file-based storage adapter.
    All tests live in <data_dir>/tests.json, rewritten atomically.
    """

    def __init__(self, data_dir: str = "data"):
        """
        Initialize the JSON adapter.

        Args:
            data_dir: Directory to store JSON files
        """
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

        self.tests_file = self.data_dir / "tests.json"
        self._lock = threading.Lock()

        if not self.tests_file.exists():
            self._write_file(self.tests_file, [])

    def _read_file(self, filepath: Path) -> List[Dict[str, Any]]:
        """Read and parse a JSON file."""
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                return json.load(f)
        except (FileNotFoundError, json.JSONDecodeError):
            return []

    def _write_file(self, filepath: Path, data: List[Dict[str, Any]]) -> None:
        """Write data to a JSON file atomically."""
        tmp_file = filepath.with_suffix(".tmp")
        with open(tmp_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False, default=str)

        tmp_file.replace(filepath)

    def create_test(
        self,
        title: str,
        description: str = "",
        questions: Optional[List[Dict[str, Any]]] = None,
        pdf_url: Optional[str] = None,
    ) -> str:
        """Create a new test."""
        test_id = str(uuid.uuid4())
        now = _now()

        with self._lock:
            tests = self._read_file(self.tests_file)
            tests.append({
                "id": test_id,
                "title": title,
                "description": description or "",
                "questions": list(questions or []),
                "pdf_url": pdf_url,
                "created_at": now,
                "updated_at": now,
            })
            self._write_file(self.tests_file, tests)

        return test_id

    def list_tests(self) -> List[Dict[str, Any]]:
        """List all tests, newest first."""
        tests = self._read_file(self.tests_file)
        return sorted(tests, key=lambda t: t.get("created_at") or "", reverse=True)

    def get_test(self, test_id: str) -> Optional[Dict[str, Any]]:
        """Get a test by id."""
        tests = self._read_file(self.tests_file)
        return next((t for t in tests if t.get("id") == test_id), None)

    def update_test(self, test_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        """Update a test and return the stored row."""
        with self._lock:
            tests = self._read_file(self.tests_file)
            row = next((t for t in tests if t.get("id") == test_id), None)
            if not row:
                raise HTTPException(status_code=404, detail=f"Test {test_id} not found")

            for key, value in updates.items():
                if key in _UPDATABLE:
                    row[key] = value
            row["updated_at"] = _now()

            self._write_file(self.tests_file, tests)
            return dict(row)
