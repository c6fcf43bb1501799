"""Exception hierarchy shared by the registry, renderer and HTTP layer."""

from __future__ import annotations

import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import Any

__all__ = [
    "CompilationError",
    "CompilationErrorDetail",
    "DocumentNotFoundError",
    "DuplicateDocumentError",
    "HtmldocsError",
    "NotFoundError",
    "RenderError",
    "ValidationError",
]


class HtmldocsError(Exception):
    """Base class for every error raised by the document server."""


@dataclass(frozen=True)
class CompilationErrorDetail:
    """Structured description of a build or execution failure."""

    message: str
    stack: str
    name: str
    cause: Any = None

    @classmethod
    def from_exception(cls, exc: BaseException) -> "CompilationErrorDetail":
        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return cls(
            message=str(exc),
            stack=stack,
            name=type(exc).__name__,
            cause=exc.__cause__,
        )


class CompilationError(HtmldocsError):
    """Raised when a template source fails to build or to execute."""

    def __init__(
        self,
        message: str,
        error: CompilationErrorDetail,
        *,
        path: Path | None = None,
    ) -> None:
        self.error = error
        self.path = path
        super().__init__(message)

    def __str__(self) -> str:
        base = super().__str__()
        location = f" ({self.path})" if self.path is not None else ""
        return f"{base}{location}: {self.error.message}"


class DuplicateDocumentError(CompilationError):
    """Two template files resolved to the same logical document id."""

    def __init__(self, document_id: str, first: str, second: str) -> None:
        self.document_id = document_id
        self.slugs = (first, second)
        message = f"Document id '{document_id}' is declared by both '{first}' and '{second}'"
        detail = CompilationErrorDetail(
            message=message,
            stack="",
            name=type(self).__name__,
        )
        super().__init__("Duplicate document id", detail)


class NotFoundError(HtmldocsError):
    """Lookup of a document or download token came back empty."""


class DocumentNotFoundError(NotFoundError):
    def __init__(self, document_id: str) -> None:
        self.document_id = document_id
        super().__init__(f"Unknown document id: {document_id}")


class RenderError(HtmldocsError):
    """Raised when a compiled document fails while producing markup."""

    def __init__(self, document_id: str, message: str, *, lineno: int | None = None) -> None:
        self.document_id = document_id
        self.lineno = lineno
        location = f" (line {lineno})" if lineno is not None else ""
        super().__init__(f"Failed to render document '{document_id}'{location}: {message}")


class ValidationError(HtmldocsError, ValueError):
    """Raised for malformed page sizes or unsupported configuration."""
