"""
Template stamping package.

This module bundles reusable utilities for:
  - placing named fields on a template page by clicking it
  - parsing uploaded CSV data into rows
  - stamping each row onto a fresh copy of the template PDF
"""

from .errors import (
    DocumentProcessingError,
    GenerationInProgressError,
    InvalidDocumentError,
    PDFStamperError,
    PreconditionError,
    RowParseError,
    SessionNotFoundError,
)
from .models import GeneratedDocument, PageBox, TemplateField
from .registry import FieldRegistry
from .service import TemplateStamperService
from .session import TemplateSession
from .stamper import BatchStamper, output_filename

__all__ = [
    "BatchStamper",
    "DocumentProcessingError",
    "FieldRegistry",
    "GeneratedDocument",
    "GenerationInProgressError",
    "InvalidDocumentError",
    "PDFStamperError",
    "PageBox",
    "PreconditionError",
    "RowParseError",
    "SessionNotFoundError",
    "TemplateField",
    "TemplateSession",
    "TemplateStamperService",
    "output_filename",
]
