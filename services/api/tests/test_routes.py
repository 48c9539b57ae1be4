"""
End-to-end tests for the /tests endpoints.

Run with: pytest tests/test_routes.py -v
"""
import json
import os

import pypdfium2 as pdfium
import pytest


def selection(masks=(), pastes=()):
    return json.dumps({"customSelections": list(masks), "pastedSelections": list(pastes)})


MASK = {"id": "m1", "pageNumber": 1, "left": 0.1, "top": 0.1, "width": 0.3, "height": 0.1}


def pdf_file(data, name="exam.pdf"):
    return {"pdf": (name, data, "application/pdf")}


def uploaded_files(client):
    import main

    upload_dir = main.app.state.upload_dir
    if not os.path.isdir(upload_dir):
        return []
    return os.listdir(upload_dir)


class TestPreview:
    """POST /tests/preview"""

    def test_returns_inline_pdf(self, client, two_page_pdf):
        res = client.post(
            "/tests/preview",
            files=pdf_file(two_page_pdf),
            data={"selectionData": selection([MASK])},
        )
        assert res.status_code == 200
        assert res.headers["content-type"] == "application/pdf"
        assert res.headers["content-disposition"] == "inline; filename=preview.pdf"
        assert "x-request-id" in res.headers

        doc = pdfium.PdfDocument(res.content)
        assert len(doc) == 2
        doc.close()

    def test_without_selection_data(self, client, letter_pdf):
        res = client.post("/tests/preview", files=pdf_file(letter_pdf))
        assert res.status_code == 200
        assert res.content.startswith(b"%PDF")

    def test_missing_file(self, client):
        res = client.post("/tests/preview", data={"selectionData": selection([MASK])})
        assert res.status_code == 400
        assert res.json() == {
            "success": False,
            "message": "No PDF file provided",
            "error": "invalid_input",
        }

    def test_bad_selection_json(self, client, letter_pdf):
        res = client.post("/tests/preview", files=pdf_file(letter_pdf), data={"selectionData": "{oops"})
        assert res.status_code == 400
        body = res.json()
        assert body["success"] is False
        assert body["error"] == "invalid_input"
        assert body["message"].startswith("Invalid selection data format")

    def test_garbage_pdf(self, client):
        res = client.post("/tests/preview", files=pdf_file(b"this is not a pdf"))
        assert res.status_code == 500
        body = res.json()
        assert body["error"] == "processing_failed"
        assert body["message"].startswith("Error processing PDF")

    def test_skipped_regions_header(self, client, letter_pdf, png_data_url):
        pastes = [
            {"id": "ok", "pageNumber": 1, "left": 0, "top": 0, "width": 0.2, "height": 0.2, "content": png_data_url},
            {"id": "broken", "pageNumber": 1, "left": 0.5, "top": 0.5, "width": 0.2, "height": 0.2,
             "content": "data:image/png;base64"},
        ]
        res = client.post(
            "/tests/preview",
            files=pdf_file(letter_pdf),
            data={"selectionData": selection(pastes=pastes)},
        )
        assert res.status_code == 200
        assert res.headers["x-skipped-regions"] == "broken"

    def test_reject_policy(self, client, letter_pdf, monkeypatch):
        from settings import get_settings

        monkeypatch.setattr(get_settings(), "region_bounds_policy", "reject")
        wide = dict(MASK, left=0.9, width=0.5)
        res = client.post("/tests/preview", files=pdf_file(letter_pdf), data={"selectionData": selection([wide])})
        assert res.status_code == 400
        assert res.json()["error"] == "invalid_input"


class TestPages:
    """POST /tests/pages"""

    def test_renders_each_page(self, client, two_page_pdf):
        res = client.post("/tests/pages", files=pdf_file(two_page_pdf))
        assert res.status_code == 200
        body = res.json()
        assert body["success"] is True
        assert [p["pageNumber"] for p in body["data"]] == [1, 2]
        assert body["data"][0]["dataUrl"].startswith("data:image/png;base64,")

    def test_missing_file(self, client):
        res = client.post("/tests/pages")
        assert res.status_code == 400


class TestRecords:
    """Test record CRUD needed by export."""

    def test_create_list_get(self, client):
        res = client.post("/tests", json={"title": "Quiz 1", "questions": [{"questionNumber": 1}]})
        assert res.status_code == 201
        created = res.json()["data"]
        assert created["title"] == "Quiz 1"
        assert created["pdfUrl"] is None
        assert created["questions"][0]["questionNumber"] == 1

        listed = client.get("/tests").json()["data"]
        assert [t["id"] for t in listed] == [created["id"]]

        fetched = client.get(f"/tests/{created['id']}").json()
        assert fetched["success"] is True
        assert fetched["data"]["id"] == created["id"]

    def test_get_missing(self, client):
        res = client.get("/tests/does-not-exist")
        assert res.status_code == 404
        assert res.json()["success"] is False

    def test_title_required(self, client):
        res = client.post("/tests", json={"title": ""})
        assert res.status_code == 422
        assert res.json()["error"] == "invalid_input"


class TestUploadPdf:
    """POST /tests/{id}/upload-pdf"""

    def _create(self, client):
        return client.post("/tests", json={"title": "Final"}).json()["data"]["id"]

    def test_export_writes_file_and_sets_url(self, client, two_page_pdf):
        test_id = self._create(client)
        res = client.post(
            f"/tests/{test_id}/upload-pdf",
            files=pdf_file(two_page_pdf, "final exam.pdf"),
            data={"selectionData": selection([MASK])},
        )
        assert res.status_code == 200
        body = res.json()
        assert body["success"] is True
        assert body["message"] == "PDF uploaded successfully"

        pdf_url = body["data"]["pdfUrl"]
        assert pdf_url.startswith("/uploads/")
        assert uploaded_files(client) == [pdf_url.rsplit("/", 1)[1]]
        assert client.get(f"/tests/{test_id}").json()["data"]["pdfUrl"] == pdf_url

    def test_garbage_pdf_writes_nothing(self, client):
        test_id = self._create(client)
        res = client.post(f"/tests/{test_id}/upload-pdf", files=pdf_file(b"\x00\x01garbage"))
        assert res.status_code == 500
        assert res.json()["error"] == "processing_failed"
        assert uploaded_files(client) == []
        assert client.get(f"/tests/{test_id}").json()["data"]["pdfUrl"] is None

    def test_missing_file(self, client):
        test_id = self._create(client)
        res = client.post(f"/tests/{test_id}/upload-pdf", data={"selectionData": "{}"})
        assert res.status_code == 400
        assert res.json()["message"] == "No PDF file provided"

    def test_unknown_test(self, client, letter_pdf):
        res = client.post("/tests/nope/upload-pdf", files=pdf_file(letter_pdf))
        assert res.status_code == 404
        assert uploaded_files(client) == []


class TestHealth:
    def test_healthz(self, client):
        assert client.get("/healthz").json()["status"] == "ok"

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"
