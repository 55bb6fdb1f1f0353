"""
Exception hierarchy for the PDF stamper package.

Every error raised by the core derives from `PDFStamperError` so the HTTP
layer can translate it into a single user-facing notice.
"""


class PDFStamperError(RuntimeError):
    """Domain-specific exception for stamper errors."""


class PreconditionError(PDFStamperError):
    """Generation was requested without a template, fields, or rows."""


class DocumentProcessingError(PDFStamperError):
    """Loading, drawing on, or serializing a document failed; the batch is aborted."""

    def __init__(self, message: str, row_index: int | None = None):
        super().__init__(message)
        self.row_index = row_index


class GenerationInProgressError(PDFStamperError):
    """A batch is already running for this session."""


class SessionNotFoundError(PDFStamperError):
    """Unknown or expired session id."""


class RowParseError(PDFStamperError):
    """The uploaded tabular file could not be parsed into rows."""


class InvalidDocumentError(PDFStamperError):
    """The uploaded bytes are not a readable PDF."""
