"""
Batch stamper: one generated document per input row.

Each row runs through the same pipeline (load template -> draw fields ->
serialize) against its own freshly loaded copy of the template, so values
stamped for one row can never appear in another. Rows are processed in input
order; with `max_workers > 1` they are stamped on a thread pool but results
are still yielded in input order.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Iterator, List, Optional, Sequence, Tuple

from .errors import DocumentProcessingError, PreconditionError
from .models import GeneratedDocument, Row, TemplateField
from .pdf_utils import DEFAULT_FONT, DEFAULT_FONT_SIZE, stamp_document

logger = logging.getLogger(__name__)

FILENAME_PREFIX = "generated_"
FILENAME_EXTENSION = ".pdf"

PRECONDITION_MESSAGE = "Please ensure you have a template PDF, CSV data, and template fields set"


def output_filename(row: Row, prefix: str = FILENAME_PREFIX) -> str:
    """Name a generated document after the row's first column value."""
    first_value = next(iter(row.values()), "")
    return f"{prefix}{first_value}{FILENAME_EXTENSION}"


def check_preconditions(
    template_bytes: Optional[bytes],
    fields: Sequence[TemplateField],
    rows: Sequence[Row],
) -> None:
    if not template_bytes or not fields or not rows:
        raise PreconditionError(PRECONDITION_MESSAGE)


class BatchStamper:
    """Stateless transform from (template, fields, rows) to generated documents."""

    def __init__(
        self,
        font_name: str = DEFAULT_FONT,
        font_size: float = DEFAULT_FONT_SIZE,
        filename_prefix: str = FILENAME_PREFIX,
        max_workers: int = 1,
    ):
        self.font_name = font_name
        self.font_size = font_size
        self.filename_prefix = filename_prefix
        self.max_workers = max(1, int(max_workers))

    def generate(
        self,
        template_bytes: Optional[bytes],
        fields: Sequence[TemplateField],
        rows: Sequence[Row],
    ) -> Iterator[GeneratedDocument]:
        """
        Stamp every row onto the template.

        Preconditions are checked before any work starts. Documents are
        yielded one at a time so the caller can deliver them as they are
        produced; the first failing row raises `DocumentProcessingError` and
        nothing after it is produced.
        """
        check_preconditions(template_bytes, fields, rows)
        # snapshot so later registry edits do not affect a running batch
        fields = tuple(fields)
        rows = list(rows)
        logger.info("Generating %d documents from %d fields", len(rows), len(fields))
        return self._run(template_bytes, fields, rows)

    def generate_all(
        self,
        template_bytes: Optional[bytes],
        fields: Sequence[TemplateField],
        rows: Sequence[Row],
    ) -> List[GeneratedDocument]:
        return list(self.generate(template_bytes, fields, rows))

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    def _run(
        self,
        template_bytes: bytes,
        fields: Tuple[TemplateField, ...],
        rows: List[Row],
    ) -> Iterator[GeneratedDocument]:
        jobs = list(enumerate(rows))
        if self.max_workers == 1:
            for job in jobs:
                yield self._stamp_row(template_bytes, fields, job)
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                # map() yields in submission order
                results = pool.map(lambda job: self._stamp_row(template_bytes, fields, job), jobs)
                for document in results:
                    yield document
        logger.info("Generated %d documents", len(rows))

    def _stamp_row(
        self,
        template_bytes: bytes,
        fields: Tuple[TemplateField, ...],
        job: Tuple[int, Row],
    ) -> GeneratedDocument:
        index, row = job
        try:
            data = stamp_document(
                template_bytes,
                fields,
                row,
                font_name=self.font_name,
                font_size=self.font_size,
            )
        except Exception as exc:
            logger.error("Stamping row %d failed: %s", index, exc, exc_info=True)
            raise DocumentProcessingError(f"Failed to generate document for row {index + 1}: {exc}", row_index=index) from exc
        return GeneratedDocument(filename=output_filename(row, self.filename_prefix), data=data)
