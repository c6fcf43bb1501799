"""HTTP surface for rendering documents and fetching downloads."""

from .app import create_document_app, register_exception_handlers
from .models import DocumentRequest

__all__ = ["DocumentRequest", "create_document_app", "register_exception_handlers"]
