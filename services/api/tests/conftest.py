"""
Shared fixtures: small PDFs built with fpdf2, image data URLs, and a
TestClient wired to temporary data / upload directories.
"""
import base64
import io
import os
import sys
import tempfile

import pytest
from fpdf import FPDF
from PIL import Image

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# main.py reads settings at import time; keep its files out of the source tree.
_RUNTIME_DIR = tempfile.mkdtemp(prefix="testbuilder-")
os.environ.setdefault("DATA_DIR", os.path.join(_RUNTIME_DIR, "data"))
os.environ.setdefault("UPLOAD_DIR", os.path.join(_RUNTIME_DIR, "uploads"))


def build_pdf(*sizes, fill=(0, 0, 0)):
    """
    PDF with one page per (width, height) in points.
    Each page is filled with `fill` so drawn overlays are easy to spot.
    """
    sizes = sizes or ((612, 792),)
    pdf = FPDF(unit="pt", format=sizes[0])
    pdf.set_auto_page_break(False)
    pdf.set_font("Helvetica", size=12)
    for n, (w, h) in enumerate(sizes, start=1):
        pdf.add_page(format=(w, h))
        pdf.set_fill_color(*fill)
        pdf.rect(0, 0, w, h, style="F")
        pdf.set_text_color(128, 128, 128)
        pdf.text(10, 20, f"Page {n}")
    return bytes(pdf.output())


def image_data_url(size=(1, 1), color=(255, 0, 0), fmt="PNG", mime=None):
    img = Image.new("RGB", size, color)
    bio = io.BytesIO()
    img.save(bio, format=fmt)
    mime = mime or ("image/jpeg" if fmt == "JPEG" else "image/png")
    return f"data:{mime};base64,{base64.b64encode(bio.getvalue()).decode('ascii')}"


@pytest.fixture
def letter_pdf():
    return build_pdf((612, 792))


@pytest.fixture
def two_page_pdf():
    return build_pdf((612, 792), (612, 792))


@pytest.fixture
def png_data_url():
    """1x1 red PNG."""
    return image_data_url()


@pytest.fixture
def jpeg_data_url():
    return image_data_url(size=(8, 8), color=(0, 0, 255), fmt="JPEG")


@pytest.fixture
def client(tmp_path):
    """TestClient with a fresh JSON store and upload dir per test."""
    from fastapi.testclient import TestClient

    import main
    from adapters.json import JsonAdapter

    main.app.state.storage_adapter = JsonAdapter(data_dir=str(tmp_path / "data"))
    main.app.state.upload_dir = str(tmp_path / "uploads")

    with TestClient(main.app, raise_server_exceptions=False) as c:
        yield c
