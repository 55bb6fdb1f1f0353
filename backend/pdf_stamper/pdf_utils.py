"""
Low-level PDF utilities for stamping text onto single-page templates.

Text is drawn on a transparent reportlab overlay sized like the template's
first page and merged onto a freshly loaded copy of the template, so each
generated document starts from the original bytes.
"""

from __future__ import annotations

import io
import logging
from typing import Iterable, List, NamedTuple, Sequence, Tuple

import fitz  # PyMuPDF
from pypdf import PageObject, PdfReader, PdfWriter
from reportlab.pdfgen import canvas

from .models import Row, TemplateField

logger = logging.getLogger(__name__)

DEFAULT_FONT = "Helvetica"
DEFAULT_FONT_SIZE = 12


class Placement(NamedTuple):
    """Text resolved for one field, in PDF user space (bottom-left origin)."""

    field_name: str
    text: str
    x: float
    y: float


def page_size(page: PageObject) -> Tuple[float, float]:
    box = page.mediabox
    return float(box.width), float(box.height)


def field_position(field: TemplateField, width: float, height: float) -> Tuple[float, float]:
    """Convert a top-left percentage anchor to absolute bottom-left coordinates."""
    x = (field.x / 100) * width
    y = height - (field.y / 100) * height
    return x, y


def layout_row(
    fields: Sequence[TemplateField],
    row: Row,
    width: float,
    height: float,
) -> List[Placement]:
    placements = []
    for template_field in fields:
        # missing or empty columns stamp as blank text
        text = row.get(template_field.field_name) or ""
        x, y = field_position(template_field, width, height)
        placements.append(Placement(template_field.field_name, str(text), x, y))
    return placements


def build_overlay(
    placements: Iterable[Placement],
    width: float,
    height: float,
    font_name: str = DEFAULT_FONT,
    font_size: float = DEFAULT_FONT_SIZE,
) -> PdfReader:
    """Draw every placement on a one-page transparent PDF of the given size."""
    buffer = io.BytesIO()
    canv = canvas.Canvas(buffer, pagesize=(width, height))
    canv.setFont(font_name, font_size)
    canv.setFillColorRGB(0, 0, 0)
    for placement in placements:
        canv.drawString(placement.x, placement.y, placement.text)
    canv.showPage()
    canv.save()
    buffer.seek(0)
    return PdfReader(buffer)


def load_template(template_bytes: bytes) -> PdfWriter:
    """Load a fresh, independent writable copy of the template."""
    reader = PdfReader(io.BytesIO(template_bytes), strict=False)
    if not reader.pages:
        raise ValueError("Template PDF has no pages.")
    return PdfWriter(clone_from=reader)


def serialize(writer: PdfWriter) -> bytes:
    buffer = io.BytesIO()
    writer.write(buffer)
    buffer.seek(0)
    return buffer.getvalue()


def stamp_document(
    template_bytes: bytes,
    fields: Sequence[TemplateField],
    row: Row,
    font_name: str = DEFAULT_FONT,
    font_size: float = DEFAULT_FONT_SIZE,
) -> bytes:
    """
    Stamp one row onto a new copy of the template.

    Only the first page receives text; any further pages are copied through
    untouched.

    Returns:
        Bytes of the generated PDF.
    """
    writer = load_template(template_bytes)
    page = writer.pages[0]
    width, height = page_size(page)

    placements = layout_row(fields, row, width, height)
    overlay = build_overlay(placements, width, height, font_name=font_name, font_size=font_size)
    page.merge_page(overlay.pages[0])

    result = serialize(writer)
    logger.debug("Stamped %d fields onto %.0fx%.0f page (%d bytes)", len(placements), width, height, len(result))
    return result


def count_pages(pdf_bytes: bytes) -> int:
    return len(PdfReader(io.BytesIO(pdf_bytes), strict=False).pages)


def render_page_png(pdf_bytes: bytes, zoom: float = 1.5) -> Tuple[bytes, int, int]:
    """
    Rasterize the first page for the click surface.

    Returns:
        (png_bytes, pixel_width, pixel_height)
    """
    pdf_doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    try:
        page = pdf_doc[0]
        pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)
        return pix.tobytes("png"), pix.width, pix.height
    finally:
        pdf_doc.close()
