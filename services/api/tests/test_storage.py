"""
Tests for the JSON test store.

Run with: pytest tests/test_storage.py -v
"""
import json

import pytest
from fastapi import HTTPException

from adapters.json import JsonAdapter
from models.converters import row_to_test


@pytest.fixture
def store(tmp_path):
    return JsonAdapter(data_dir=str(tmp_path))


class TestJsonAdapter:
    def test_creates_empty_file(self, store, tmp_path):
        assert json.loads((tmp_path / "tests.json").read_text()) == []

    def test_create_and_get(self, store):
        test_id = store.create_test("Midterm", "Chapter 1-3", questions=[{"questionNumber": 1}])
        row = store.get_test(test_id)
        assert row["title"] == "Midterm"
        assert row["questions"] == [{"questionNumber": 1}]
        assert row["pdf_url"] is None
        assert row["created_at"] == row["updated_at"]

    def test_missing(self, store):
        assert store.get_test("nope") is None

    def test_list(self, store):
        store.create_test("A")
        store.create_test("B")
        assert {r["title"] for r in store.list_tests()} == {"A", "B"}

    def test_update_pdf_url(self, store):
        test_id = store.create_test("A")
        row = store.update_test(test_id, {"pdf_url": "/uploads/x.pdf", "id": "hijack"})
        assert row["pdf_url"] == "/uploads/x.pdf"
        assert row["id"] == test_id
        assert store.get_test(test_id)["pdf_url"] == "/uploads/x.pdf"

    def test_update_missing(self, store):
        with pytest.raises(HTTPException) as exc:
            store.update_test("nope", {"title": "x"})
        assert exc.value.status_code == 404

    def test_no_tmp_left_behind(self, store, tmp_path):
        store.create_test("A")
        assert not (tmp_path / "tests.tmp").exists()


class TestConverters:
    def test_row_defaults(self):
        test = row_to_test({"id": "t1", "title": "T", "questions": "bad"})
        assert test.id == "t1"
        assert test.questions == []
        assert test.pdf_url is None
        assert test.description == ""
