"""
High-level service that exposes template stamping to the FastAPI layer.

Responsibilities
----------------
* keep one `TemplateSession` per client, expiring idle sessions
* route uploads, clicks and row data into the right session
* run the batch stamper behind the session's busy guard
* keep a small in-memory cache of generated PDFs and optionally persist them
"""

from __future__ import annotations

import json
import logging
import os
import threading
import uuid
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import boto3
from cachetools import LRUCache, TTLCache
from pypdf.errors import PdfReadError

from .errors import DocumentProcessingError, InvalidDocumentError, PreconditionError, SessionNotFoundError
from .models import GeneratedDocument, PageBox, TemplateField
from .pdf_utils import DEFAULT_FONT, DEFAULT_FONT_SIZE, count_pages, render_page_png
from .rows import parse_rows
from .session import TemplateSession
from .stamper import FILENAME_PREFIX, BatchStamper

logger = logging.getLogger(__name__)


class TemplateStamperService:
    def __init__(
        self,
        stamper: Optional[BatchStamper] = None,
        output_dir: Optional[Path] = None,
        session_ttl: Optional[int] = None,
        s3_client=None,
    ):
        self.stamper = stamper or BatchStamper(
            font_name=os.getenv("PDF_STAMPER_FONT", DEFAULT_FONT),
            font_size=float(os.getenv("PDF_STAMPER_FONT_SIZE", str(DEFAULT_FONT_SIZE))),
            filename_prefix=os.getenv("PDF_STAMPER_FILENAME_PREFIX", FILENAME_PREFIX),
            max_workers=int(os.getenv("PDF_STAMPER_MAX_WORKERS", "1")),
        )

        ttl = session_ttl or int(os.getenv("SESSION_TTL", "3600"))  # 1 hour default
        self._sessions: TTLCache = TTLCache(maxsize=int(os.getenv("SESSION_MAX", "1000")), ttl=ttl)
        self._pdf_cache: LRUCache = LRUCache(maxsize=int(os.getenv("DOCUMENT_CACHE_SIZE", "256")))
        self._lock = threading.RLock()

        output_dir = output_dir or os.getenv("PDF_STAMPER_OUTPUT_DIR")
        self.output_dir = Path(output_dir) if output_dir else None
        if self.output_dir:
            self.output_dir.mkdir(parents=True, exist_ok=True)

        self.s3_bucket = os.getenv("PDF_STAMPER_S3_BUCKET")
        self.s3_prefix = os.getenv("PDF_STAMPER_S3_PREFIX", "pdf-stamper/")
        self.s3 = s3_client
        if self.s3_bucket and self.s3 is None:
            self.s3 = boto3.client("s3")

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------
    def create_session(self) -> TemplateSession:
        session = TemplateSession()
        with self._lock:
            self._sessions[session.session_id] = session
        logger.info("Created session %s", session.session_id)
        return session

    def get_session(self, session_id: str) -> TemplateSession:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(f"Session '{session_id}' not found or expired.")
            # re-insert to refresh the TTL on every access
            self._sessions[session_id] = session
        return session

    def drop_session(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    # ------------------------------------------------------------------
    # Session operations
    # ------------------------------------------------------------------
    def set_template_mode(self, session_id: str, enabled: bool) -> TemplateSession:
        session = self.get_session(session_id)
        session.set_template_mode(enabled)
        return session

    def upload_document(self, session_id: str, pdf_bytes: bytes, filename: Optional[str] = None) -> Dict:
        session = self.get_session(session_id)
        try:
            page_count = count_pages(pdf_bytes)
        except (PdfReadError, ValueError) as exc:
            raise InvalidDocumentError(f"Could not read PDF '{filename}': {exc}") from exc
        retained = session.upload_document(pdf_bytes, filename)
        return {"retained_as_template": retained, "page_count": page_count}

    def preview(self, session_id: str, zoom: float = 1.5) -> Tuple[bytes, int, int]:
        session = self.get_session(session_id)
        if not session.template_bytes:
            raise PreconditionError("No template uploaded for this session.")
        return render_page_png(session.template_bytes, zoom=zoom)

    def add_field(
        self,
        session_id: str,
        click: Tuple[float, float],
        box: PageBox,
        field_name: Optional[str],
    ) -> Optional[TemplateField]:
        return self.get_session(session_id).add_field(click, box, field_name)

    def load_rows(self, session_id: str, source: Union[bytes, str], delimiter: Optional[str] = None) -> Dict:
        session = self.get_session(session_id)
        rows = parse_rows(source, delimiter=delimiter)
        session.load_rows(rows)
        return {"row_count": len(rows), "columns": session.columns()}

    # ------------------------------------------------------------------
    # PDF generation / storage
    # ------------------------------------------------------------------
    def generate(self, session_id: str) -> List[GeneratedDocument]:
        """
        Run the batch for a session.

        Raises:
            PreconditionError: template, fields or rows missing.
            GenerationInProgressError: a batch is already running.
            DocumentProcessingError: any row failed; nothing is returned.
        """
        session = self.get_session(session_id)
        with session.generating():
            try:
                documents = list(
                    self.stamper.generate(session.template_bytes, session.list_fields(), session.rows)
                )
            except DocumentProcessingError:
                logger.error("Batch for session %s aborted", session_id)
                raise

        for document in documents:
            document.pdf_id = str(uuid.uuid4())
            self._register(document)
        return documents

    def get_document(self, pdf_id: str) -> Optional[GeneratedDocument]:
        with self._lock:
            document = self._pdf_cache.get(pdf_id)
        if document:
            return document

        if self.output_dir:
            file_path = self.output_dir / f"{pdf_id}.pdf"
            if file_path.exists():
                with file_path.open("rb") as f:
                    pdf_bytes = f.read()
                metadata_path = file_path.with_suffix(".json")
                metadata = {}
                if metadata_path.exists():
                    with metadata_path.open("r", encoding="utf-8") as f:
                        metadata = json.load(f)
                document = GeneratedDocument(
                    filename=metadata.get("filename", f"{pdf_id}.pdf"),
                    data=pdf_bytes,
                    pdf_id=pdf_id,
                )
                self._cache(document)
                return document

        if self.s3_bucket:
            key = f"{self.s3_prefix}{pdf_id}.pdf"
            try:
                obj = self.s3.get_object(Bucket=self.s3_bucket, Key=key)
            except self.s3.exceptions.NoSuchKey:
                return None
            metadata = obj.get("Metadata", {})
            document = GeneratedDocument(
                filename=metadata.get("filename", f"{pdf_id}.pdf"),
                data=obj["Body"].read(),
                pdf_id=pdf_id,
            )
            self._cache(document)
            return document
        return None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _cache(self, document: GeneratedDocument) -> None:
        with self._lock:
            self._pdf_cache[document.pdf_id] = document

    def _register(self, document: GeneratedDocument) -> None:
        self._cache(document)
        if self.output_dir or self.s3_bucket:
            self._store_pdf(document)

    def _store_pdf(self, document: GeneratedDocument) -> Dict:
        storage_meta: Dict[str, str] = {}
        if self.s3_bucket:
            key = f"{self.s3_prefix}{document.pdf_id}.pdf"
            self.s3.put_object(
                Bucket=self.s3_bucket,
                Key=key,
                Body=document.data,
                ContentType="application/pdf",
                Metadata={"filename": document.filename},
            )
            storage_meta.update({"s3_bucket": self.s3_bucket, "s3_key": key})
        else:
            target = self.output_dir / f"{document.pdf_id}.pdf"
            with target.open("wb") as f:
                f.write(document.data)
            metadata_path = target.with_suffix(".json")
            with metadata_path.open("w", encoding="utf-8") as f:
                json.dump(document.metadata(), f, indent=2)
            storage_meta.update({"file_path": str(target)})
        logger.info("Stored %s as %s", document.filename, storage_meta)
        return storage_meta
