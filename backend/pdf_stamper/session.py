"""
Per-session template state: mode flag, retained template bytes, field
registry, uploaded rows and the busy guard for generation.
"""

from __future__ import annotations

import logging
import threading
import uuid
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Tuple

from .errors import GenerationInProgressError
from .models import PageBox, Row, TemplateField
from .registry import FieldRegistry

logger = logging.getLogger(__name__)


class TemplateSession:
    def __init__(self, session_id: Optional[str] = None):
        self.session_id = session_id or str(uuid.uuid4())
        self.template_mode = False
        self.document_name: Optional[str] = None
        self.template_bytes: Optional[bytes] = None
        self.registry = FieldRegistry()
        self.rows: List[Row] = []
        self._busy = threading.Lock()

    # ------------------------------------------------------------------
    # User controls
    # ------------------------------------------------------------------
    def set_template_mode(self, enabled: bool) -> None:
        self.template_mode = bool(enabled)
        logger.info("Session %s template mode %s", self.session_id[:8], "on" if self.template_mode else "off")

    def upload_document(self, data: bytes, filename: Optional[str] = None) -> bool:
        """
        Record the document being viewed.

        The bytes are kept as the template only while template mode is on.
        Returns True when they were retained.
        """
        self.document_name = filename
        if not self.template_mode:
            return False
        self.template_bytes = bytes(data)
        logger.info("Session %s retained template %s (%d bytes)", self.session_id[:8], filename, len(data))
        return True

    def add_field(self, click: Tuple[float, float], box: PageBox, field_name: Optional[str]) -> Optional[TemplateField]:
        return self.registry.add_field(click, box, field_name, template_mode=self.template_mode)

    def list_fields(self) -> List[TemplateField]:
        return self.registry.list_fields()

    def load_rows(self, rows: List[Row]) -> None:
        self.rows = list(rows)

    # ------------------------------------------------------------------
    # Generation guard
    # ------------------------------------------------------------------
    @property
    def busy(self) -> bool:
        return self._busy.locked()

    @property
    def has_inputs(self) -> bool:
        return bool(self.template_bytes) and bool(self.registry) and bool(self.rows)

    @property
    def can_generate(self) -> bool:
        return self.has_inputs and not self.busy

    @contextmanager
    def generating(self) -> Iterator["TemplateSession"]:
        if not self._busy.acquire(blocking=False):
            raise GenerationInProgressError("A batch is already being generated for this session.")
        try:
            yield self
        finally:
            self._busy.release()

    def columns(self) -> List[str]:
        return list(self.rows[0].keys()) if self.rows else []

    def state(self) -> Dict:
        return {
            "session_id": self.session_id,
            "template_mode": self.template_mode,
            "document_name": self.document_name,
            "has_template": bool(self.template_bytes),
            "fields": [f.to_dict() for f in self.list_fields()],
            "row_count": len(self.rows),
            "columns": self.columns(),
            "busy": self.busy,
            "can_generate": self.can_generate,
        }
