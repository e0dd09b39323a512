"""Exception hierarchy shared by the ingestion and answer pipelines.

Validation and not-found errors are raised synchronously to the caller
before any state mutation. Embedding and generation errors are raised
inside background runs, where the orchestrators turn them into a Failed
document status or an error event.
"""

from __future__ import annotations


class QuarryError(Exception):
    """Base class for all Quarry errors."""


class ValidationError(QuarryError, ValueError):
    """Raised when caller input is rejected (bad file type, empty upload)."""


class UnsupportedFileTypeError(ValidationError):
    """Raised for a file extension outside the supported set."""

    def __init__(self, file_type: str) -> None:
        self.file_type = file_type
        super().__init__(f"Unsupported file type: {file_type!r}")


class NotFoundError(QuarryError, LookupError):
    """Raised when a referenced area, document or chat does not exist."""

    def __init__(self, kind: str, ident: object) -> None:
        self.kind = kind
        self.ident = ident
        super().__init__(f"{kind.capitalize()} {ident} not found")


class AlreadyProcessingError(QuarryError):
    """Raised when ingestion is triggered for a document already Processing."""

    def __init__(self, document_id: int) -> None:
        self.document_id = document_id
        super().__init__(f"Document {document_id} is already being analyzed.")


class EmbeddingError(QuarryError):
    """Raised when an embedding request fails or returns a malformed vector."""


class GenerationError(QuarryError):
    """Raised when the LLM stream fails or terminates before completion."""
