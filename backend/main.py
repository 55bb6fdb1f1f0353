import base64
import binascii
import logging

from dotenv import load_dotenv

load_dotenv(".env.local"); load_dotenv()  # also loads .env if present

import os  # noqa: E402
from typing import Optional  # noqa: E402
from urllib.parse import quote  # noqa: E402

from fastapi import FastAPI, HTTPException, Response  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from pydantic import BaseModel  # noqa: E402

from pdf_stamper import (  # noqa: E402
    DocumentProcessingError,
    GenerationInProgressError,
    PageBox,
    PDFStamperError,
    PreconditionError,
    SessionNotFoundError,
    TemplateStamperService,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

GENERATION_FAILED_MESSAGE = "Error generating PDFs. Please check the logs for details."

app = FastAPI(title="PDF Template Stamper")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:8501",
        "http://127.0.0.1:8501",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

stamper_service = TemplateStamperService()


class TemplateModeRequest(BaseModel):
    enabled: bool


class DocumentUploadRequest(BaseModel):
    pdf_base64: str
    filename: Optional[str] = None


class FieldAddRequest(BaseModel):
    click_x: float
    click_y: float
    box_left: float = 0.0
    box_top: float = 0.0
    box_width: float
    box_height: float
    field_name: Optional[str] = None


class RowsUploadRequest(BaseModel):
    csv_base64: Optional[str] = None
    csv_text: Optional[str] = None
    delimiter: Optional[str] = None


def _session_or_404(session_id: str):
    try:
        return stamper_service.get_session(session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


def _decode_b64(value: str, what: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise HTTPException(status_code=400, detail=f"Invalid base64 {what}") from exc


@app.get("/hello")
def hello():
    return {"ok": True}


# --- Sessions -----------------------------------------------------------------


@app.post("/sessions")
def create_session():
    session = stamper_service.create_session()
    return {"session_id": session.session_id}


@app.get("/sessions/{session_id}")
def get_session(session_id: str):
    return _session_or_404(session_id).state()


@app.delete("/sessions/{session_id}")
def drop_session(session_id: str):
    stamper_service.drop_session(session_id)
    return {"ok": True}


@app.post("/sessions/{session_id}/template-mode")
def set_template_mode(session_id: str, req: TemplateModeRequest):
    session = _session_or_404(session_id)
    session.set_template_mode(req.enabled)
    return session.state()


# --- Template document --------------------------------------------------------


@app.post("/sessions/{session_id}/document")
def upload_document(session_id: str, req: DocumentUploadRequest):
    _session_or_404(session_id)
    pdf_bytes = _decode_b64(req.pdf_base64, "PDF")
    try:
        result = stamper_service.upload_document(session_id, pdf_bytes, filename=req.filename)
    except PDFStamperError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return result


@app.get("/sessions/{session_id}/preview")
def preview(session_id: str, zoom: float = 1.5):
    _session_or_404(session_id)
    try:
        png, width, height = stamper_service.preview(session_id, zoom=zoom)
    except PreconditionError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    headers = {"X-Page-Width": str(width), "X-Page-Height": str(height)}
    return Response(content=png, media_type="image/png", headers=headers)


# --- Fields -------------------------------------------------------------------


@app.post("/sessions/{session_id}/fields")
def add_field(session_id: str, req: FieldAddRequest):
    session = _session_or_404(session_id)
    box = PageBox(left=req.box_left, top=req.box_top, width=req.box_width, height=req.box_height)
    field = session.add_field((req.click_x, req.click_y), box, req.field_name)
    return {
        "field": field.to_dict() if field else None,
        "fields": [f.to_dict() for f in session.list_fields()],
    }


@app.get("/sessions/{session_id}/fields")
def list_fields(session_id: str):
    session = _session_or_404(session_id)
    return {"fields": [f.to_dict() for f in session.list_fields()]}


@app.delete("/sessions/{session_id}/fields/{index}")
def remove_field(session_id: str, index: int):
    session = _session_or_404(session_id)
    try:
        removed = session.registry.remove_field(index)
    except IndexError as exc:
        raise HTTPException(status_code=404, detail=f"No field at index {index}") from exc
    return {"removed": removed.to_dict(), "fields": [f.to_dict() for f in session.list_fields()]}


@app.delete("/sessions/{session_id}/fields")
def clear_fields(session_id: str):
    session = _session_or_404(session_id)
    session.registry.clear()
    return {"fields": []}


# --- Rows ---------------------------------------------------------------------


@app.post("/sessions/{session_id}/rows")
def upload_rows(session_id: str, req: RowsUploadRequest):
    _session_or_404(session_id)
    if req.csv_base64 is not None:
        source = _decode_b64(req.csv_base64, "CSV")
    elif req.csv_text is not None:
        source = req.csv_text
    else:
        raise HTTPException(status_code=400, detail="Provide csv_base64 or csv_text")

    try:
        return stamper_service.load_rows(session_id, source, delimiter=req.delimiter)
    except PDFStamperError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


# --- Generation ---------------------------------------------------------------


@app.post("/sessions/{session_id}/generate")
def generate(session_id: str):
    _session_or_404(session_id)
    try:
        documents = stamper_service.generate(session_id)
    except PreconditionError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except GenerationInProgressError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except DocumentProcessingError as exc:
        logger.error("Generation failed for session %s: %s", session_id, exc)
        raise HTTPException(status_code=500, detail=GENERATION_FAILED_MESSAGE) from exc

    return {
        "documents": [
            {
                **document.metadata(),
                "pdf_base64": base64.b64encode(document.data).decode("ascii"),
            }
            for document in documents
        ]
    }


@app.get("/pdf/{pdf_id}")
def get_pdf(pdf_id: str):
    """Download a generated PDF by ID"""
    document = stamper_service.get_document(pdf_id)
    if not document:
        raise HTTPException(status_code=404, detail="PDF not found")
    headers = {"Content-Disposition": f"attachment; filename*=UTF-8''{quote(document.filename)}"}
    return Response(content=document.data, media_type="application/pdf", headers=headers)
