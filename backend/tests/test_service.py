import pytest

from pdf_stamper import (
    DocumentProcessingError,
    GenerationInProgressError,
    InvalidDocumentError,
    PageBox,
    PreconditionError,
    SessionNotFoundError,
    TemplateStamperService,
)
from pdf_stamper import stamper as stamper_module

from .conftest import page_text

BOX = PageBox(0, 0, 200, 400)


def _prepare(service, template_bytes, csv="name,email\nAlice,a@x\nBob,b@x\n"):
    sid = service.create_session().session_id
    service.set_template_mode(sid, True)
    service.upload_document(sid, template_bytes, "template.pdf")
    service.add_field(sid, (20, 40), BOX, "name")
    service.load_rows(sid, csv)
    return sid


def test_unknown_session(service):
    with pytest.raises(SessionNotFoundError):
        service.get_session("nope")


def test_drop_session(service):
    sid = service.create_session().session_id
    service.drop_session(sid)
    with pytest.raises(SessionNotFoundError):
        service.get_session(sid)


def test_sessions_are_isolated(service, template_bytes):
    sid = _prepare(service, template_bytes)
    other = service.create_session().session_id
    assert service.get_session(other).list_fields() == []
    assert len(service.get_session(sid).list_fields()) == 1


def test_upload_reports_page_count(service, template_bytes):
    sid = service.create_session().session_id
    result = service.upload_document(sid, template_bytes, "template.pdf")
    assert result == {"retained_as_template": False, "page_count": 1}


def test_upload_rejects_non_pdf(service):
    sid = service.create_session().session_id
    with pytest.raises(InvalidDocumentError):
        service.upload_document(sid, b"hello", "notes.txt")


def test_load_rows_reports_columns(service, template_bytes):
    sid = service.create_session().session_id
    assert service.load_rows(sid, b"name,email\nAlice,a@x\n") == {"row_count": 1, "columns": ["name", "email"]}


def test_generate_registers_documents(service, template_bytes):
    sid = _prepare(service, template_bytes)
    documents = service.generate(sid)

    assert [d.filename for d in documents] == ["generated_Alice.pdf", "generated_Bob.pdf"]
    assert all(d.pdf_id for d in documents)
    assert service.get_document(documents[0].pdf_id) is documents[0]
    assert "Alice" in page_text(documents[0].data)


def test_generate_without_inputs(service):
    sid = service.create_session().session_id
    with pytest.raises(PreconditionError):
        service.generate(sid)


def test_concurrent_generation_is_rejected(service, template_bytes):
    sid = _prepare(service, template_bytes)
    with service.get_session(sid).generating():
        with pytest.raises(GenerationInProgressError):
            service.generate(sid)


def test_failed_batch_returns_nothing_and_releases_guard(service, template_bytes, monkeypatch):
    sid = _prepare(service, template_bytes)

    def broken(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(stamper_module, "stamp_document", broken)
    with pytest.raises(DocumentProcessingError):
        service.generate(sid)

    session = service.get_session(sid)
    assert not session.busy
    assert session.can_generate
    assert len(service._pdf_cache) == 0


def test_preview_requires_template(service, template_bytes):
    sid = service.create_session().session_id
    with pytest.raises(PreconditionError):
        service.preview(sid)

    service.set_template_mode(sid, True)
    service.upload_document(sid, template_bytes, "template.pdf")
    png, width, height = service.preview(sid, zoom=1.0)
    assert png.startswith(b"\x89PNG")
    assert (width, height) == (600, 800)


def test_generated_documents_persist_to_output_dir(tmp_path, template_bytes):
    service = TemplateStamperService(output_dir=tmp_path)
    sid = _prepare(service, template_bytes)
    documents = service.generate(sid)
    pdf_id = documents[0].pdf_id
    assert (tmp_path / f"{pdf_id}.pdf").exists()

    fresh = TemplateStamperService(output_dir=tmp_path)
    restored = fresh.get_document(pdf_id)
    assert restored.filename == "generated_Alice.pdf"
    assert restored.data == documents[0].data


def test_missing_document(service):
    assert service.get_document("missing") is None


class FakeS3:
    def __init__(self):
        self.objects = {}

    def put_object(self, Bucket, Key, Body, ContentType, Metadata):
        self.objects[(Bucket, Key)] = (Body, Metadata)

    def get_object(self, Bucket, Key):
        import io

        body, metadata = self.objects[(Bucket, Key)]
        return {"Body": io.BytesIO(body), "Metadata": metadata}


def test_generated_documents_persist_to_s3(monkeypatch, template_bytes):
    monkeypatch.setenv("PDF_STAMPER_S3_BUCKET", "bucket")
    monkeypatch.setenv("PDF_STAMPER_S3_PREFIX", "out/")
    s3 = FakeS3()
    service = TemplateStamperService(s3_client=s3)
    sid = _prepare(service, template_bytes)
    documents = service.generate(sid)
    assert ("bucket", f"out/{documents[0].pdf_id}.pdf") in s3.objects

    fresh = TemplateStamperService(s3_client=s3)
    restored = fresh.get_document(documents[1].pdf_id)
    assert restored.filename == "generated_Bob.pdf"
