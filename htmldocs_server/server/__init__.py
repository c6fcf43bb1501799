"""Document registry, renderer, binarizer and download cache."""

from .downloads import DEFAULT_DOWNLOAD_TTL, DownloadCache, DownloadEntry
from .pdf import PdfRenderer, PlaywrightPdfRenderer, build_pdf_options
from .registry import (
    DocumentEntry,
    DocumentRegistry,
    RegistryIndex,
    RegistryState,
    list_template_files,
)
from .rendering import DocumentRenderer, RenderResult

__all__ = [
    "DEFAULT_DOWNLOAD_TTL",
    "DocumentEntry",
    "DocumentRegistry",
    "DocumentRenderer",
    "DownloadCache",
    "DownloadEntry",
    "PdfRenderer",
    "PlaywrightPdfRenderer",
    "RegistryIndex",
    "RegistryState",
    "RenderResult",
    "build_pdf_options",
    "list_template_files",
]
