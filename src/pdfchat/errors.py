"""
Error taxonomy for load and query operations.
Each error carries the user-visible status message and the status kind it maps to.
"""
from __future__ import annotations

from .models import SessionStatus, StatusKind


class PdfChatError(Exception):
    status_kind: StatusKind = "error"
    default_message = "Something went wrong."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_status(self) -> SessionStatus:
        return SessionStatus(kind=self.status_kind, message=self.message)


# --- Validation ---

class ValidationError(PdfChatError):
    pass


class NoFileChosen(ValidationError):
    default_message = "Please choose a PDF first!"


class AlreadyLoaded(ValidationError):
    # Informational: the requested document is already the current one.
    status_kind: StatusKind = "success"
    default_message = "That PDF is already loaded!"


class TooLarge(ValidationError):
    def __init__(self, size_mb: float, limit_mb: int):
        self.size_mb = float(size_mb)
        self.limit_mb = int(limit_mb)
        super().__init__(f"PDF is too large :( Max size is {self.limit_mb} MB")


class LoadInProgress(ValidationError):
    default_message = "A PDF is already loading. Please wait for it to finish."


# --- Transport ---

class TransportError(PdfChatError):
    def __init__(self, message: str, *, status_code: int | None = None, body: str | None = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


# --- Chunking ---

class ChunkError(PdfChatError):
    pass


class UnsupportedType(ChunkError):
    def __init__(self, declared_type: str | None):
        self.declared_type = declared_type or ""
        super().__init__(f"Only PDF documents are supported (got '{self.declared_type or 'unknown'}').")


class NoExtractableText(ChunkError):
    default_message = "No text could be extracted from this PDF. Is it a scanned document?"


class UnreadableDocument(ChunkError):
    default_message = "The PDF could not be read."


# --- Query ---

class QueryError(PdfChatError):
    pass


class NoDocumentLoaded(QueryError):
    default_message = "Please load a PDF before asking a question."


class MissingCredential(QueryError):
    default_message = "Please enter an API key before asking a question."


class EmptyQuestion(QueryError):
    default_message = "Please type a question first."


class QueryInProgress(QueryError):
    default_message = "Still answering the previous question."


class StaleAnswer(QueryError):
    default_message = "The PDF changed while answering. Please ask again."


class GenerationFailed(QueryError):
    def __init__(self, diagnostic: str):
        self.diagnostic = str(diagnostic or "").strip()
        super().__init__(f"Could not generate an answer: {self.diagnostic or 'unknown error'}")
