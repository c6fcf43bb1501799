"""Serve Jinja2 document templates as rendered PDFs over HTTP."""

from .config import ServerSettings, get_settings
from .errors import (
    CompilationError,
    DocumentNotFoundError,
    HtmldocsError,
    NotFoundError,
    RenderError,
    ValidationError,
)
from .page_config import PageConfig, resolve_page_config

__version__ = "0.1.0"

__all__ = [
    "CompilationError",
    "DocumentNotFoundError",
    "HtmldocsError",
    "NotFoundError",
    "PageConfig",
    "RenderError",
    "ServerSettings",
    "ValidationError",
    "get_settings",
    "resolve_page_config",
]
