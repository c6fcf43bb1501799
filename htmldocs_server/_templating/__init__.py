"""Internal templating helpers used by the document registry."""

from .compiler import (
    DOCUMENT_EXTENSIONS,
    CompiledDocument,
    DocumentCompiler,
    build_environment,
    inject_stylesheet,
    rewrite_static_urls,
)
from .formatters import TemplateFilterError, register_filters

__all__ = [
    "DOCUMENT_EXTENSIONS",
    "CompiledDocument",
    "DocumentCompiler",
    "TemplateFilterError",
    "build_environment",
    "inject_stylesheet",
    "register_filters",
    "rewrite_static_urls",
]
