import io

import pytest
from reportlab.pdfgen import canvas

from pdf_stamper import BatchStamper, TemplateStamperService
from pdf_stamper import pdf_utils

PAGE_WIDTH = 600
PAGE_HEIGHT = 800


def make_pdf(width=PAGE_WIDTH, height=PAGE_HEIGHT, pages=1, label="TEMPLATE"):
    buffer = io.BytesIO()
    canv = canvas.Canvas(buffer, pagesize=(width, height))
    for i in range(pages):
        canv.setFont("Helvetica", 10)
        canv.drawString(20, 20, f"{label} page {i + 1}")
        canv.showPage()
    canv.save()
    return buffer.getvalue()


def page_text(pdf_bytes, index=0):
    from pypdf import PdfReader

    return PdfReader(io.BytesIO(pdf_bytes)).pages[index].extract_text()


@pytest.fixture
def template_bytes():
    return make_pdf()


@pytest.fixture
def stamper():
    return BatchStamper()


@pytest.fixture
def service(monkeypatch):
    monkeypatch.delenv("PDF_STAMPER_S3_BUCKET", raising=False)
    monkeypatch.delenv("PDF_STAMPER_OUTPUT_DIR", raising=False)
    return TemplateStamperService()


@pytest.fixture
def drawn(monkeypatch, template_bytes):
    """Record every (x, y, text) drawn after the template fixture is built."""
    calls = []
    original = canvas.Canvas.drawString

    def record(self, x, y, text, *args, **kwargs):
        calls.append((x, y, text))
        return original(self, x, y, text, *args, **kwargs)

    monkeypatch.setattr(pdf_utils.canvas.Canvas, "drawString", record)
    return calls
