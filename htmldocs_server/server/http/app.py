"""HTTP application wiring for the document registry and download cache."""

from __future__ import annotations

import base64
import logging
import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse, PlainTextResponse, Response

from ..._templating import DocumentCompiler
from ...config import ServerSettings, get_settings
from ...errors import CompilationError, NotFoundError, RenderError, ValidationError
from ...page_config import PageConfig, resolve_page_config
from ..downloads import DownloadCache
from ..pdf import PdfRenderer, PlaywrightPdfRenderer
from ..registry import DocumentEntry, DocumentRegistry
from ..rendering import DocumentRenderer
from .models import (
    PDF_MIME_TYPE,
    Base64DocumentResponse,
    DocumentListResponse,
    DocumentRequest,
    DocumentSummary,
    DownloadLinkResponse,
    ServerInfoResponse,
)

logger = logging.getLogger(__name__)

_NO_STORE = {"cache-control": "no-store"}


@dataclass(frozen=True)
class DocumentRuntimeState:
    """Objects shared across HTTP handlers."""

    registry: DocumentRegistry
    renderer: DocumentRenderer
    pdf_renderer: PdfRenderer
    downloads: DownloadCache
    default_page_config: PageConfig
    static_dir: Path
    templates_dir: Path


def create_document_app(
    settings: ServerSettings | None = None,
    *,
    registry: DocumentRegistry | None = None,
    renderer: DocumentRenderer | None = None,
    pdf_renderer: PdfRenderer | None = None,
    downloads: DownloadCache | None = None,
) -> FastAPI:
    """Create a FastAPI app serving rendered documents and download links."""

    settings = settings or get_settings()
    templates_dir = settings.templates_dir
    if registry is None:
        compiler = DocumentCompiler(templates_dir, rewrite_static=settings.rewrite_static_urls)
        registry = DocumentRegistry(templates_dir, compiler=compiler)
    if renderer is None:
        renderer = DocumentRenderer(registry)
    if downloads is None:
        downloads = DownloadCache(ttl=settings.download_ttl)
    if pdf_renderer is None:
        pdf_renderer = PlaywrightPdfRenderer()

    app = FastAPI(title="htmldocs-server")
    app.state.document_state = DocumentRuntimeState(
        registry=registry,
        renderer=renderer,
        pdf_renderer=pdf_renderer,
        downloads=downloads,
        default_page_config=settings.default_page_config,
        static_dir=settings.static_dir,
        templates_dir=templates_dir,
    )
    register_exception_handlers(app)
    _install_api_key_guard(app, settings.api_key)
    app.include_router(_DOCUMENT_ROUTER)
    return app


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain errors onto HTTP responses."""

    @app.exception_handler(RequestValidationError)
    async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("Invalid request on %s", request.url.path)
        return JSONResponse(
            status_code=400,
            content={"detail": "Invalid request", "errors": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(ValidationError)
    async def _validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"detail": "Invalid request", "errors": [{"msg": str(exc)}]},
        )

    @app.exception_handler(NotFoundError)
    async def _not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(CompilationError)
    async def _compilation_handler(request: Request, exc: CompilationError) -> JSONResponse:
        logger.error("Document compilation failed: %s\n%s", exc, exc.error.stack)
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Document compilation failed",
                "error": {"name": exc.error.name, "message": exc.error.message},
            },
        )

    @app.exception_handler(RenderError)
    async def _render_handler(request: Request, exc: RenderError) -> JSONResponse:
        logger.error("%s", exc)
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    @app.exception_handler(Exception)
    async def _unexpected_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unexpected error on %s", request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


def _install_api_key_guard(app: FastAPI, api_key: str | None) -> None:
    if not api_key:
        return

    @app.middleware("http")
    async def _require_api_key(request: Request, call_next):
        if not _is_public_request(request):
            provided = request.headers.get("authorization", "")
            if not secrets.compare_digest(provided.encode(), api_key.encode()):
                return JSONResponse(status_code=401, content={"detail": "Unauthorized"})
        return await call_next(request)


def _is_public_request(request: Request) -> bool:
    path = request.url.path
    if path.startswith("/static/") or path.startswith("/api/downloads"):
        return True
    return request.method == "GET" and path in ("/", "/health")


_DOCUMENT_ROUTER = APIRouter()


def _get_runtime_state(request: Request) -> DocumentRuntimeState:
    state = getattr(request.app.state, "document_state", None)
    if state is None:
        raise RuntimeError("Document runtime state is not configured")
    return state


@_DOCUMENT_ROUTER.get("/", name="server-info", response_model=ServerInfoResponse)
def server_info(state: DocumentRuntimeState = Depends(_get_runtime_state)) -> ServerInfoResponse:
    return ServerInfoResponse(templates_root=str(state.templates_dir))


@_DOCUMENT_ROUTER.get("/health", name="health", response_class=PlainTextResponse)
def health() -> str:
    return "ok"


@_DOCUMENT_ROUTER.get("/static/{relative:path}", name="static-file")
def static_file(
    relative: str, state: DocumentRuntimeState = Depends(_get_runtime_state)
) -> FileResponse:
    return FileResponse(resolve_static_path(state.static_dir, relative))


@_DOCUMENT_ROUTER.get(
    "/api/documents",
    name="document-list",
    response_model=DocumentListResponse,
    summary="List discovered document templates",
)
async def list_documents(
    state: DocumentRuntimeState = Depends(_get_runtime_state),
) -> DocumentListResponse:
    return _summarise(await state.registry.entries())


@_DOCUMENT_ROUTER.post(
    "/api/registry/refresh",
    name="registry-refresh",
    response_model=DocumentListResponse,
    summary="Re-discover and recompile every document template",
)
async def refresh_registry(
    state: DocumentRuntimeState = Depends(_get_runtime_state),
) -> DocumentListResponse:
    index = await state.registry.refresh()
    return _summarise(index.by_id.values())


@_DOCUMENT_ROUTER.post(
    "/api/documents/{document_id}",
    name="document-render",
    summary="Render a document to PDF, base64 JSON, or a download link",
)
async def render_document(
    document_id: str,
    payload: DocumentRequest,
    request: Request,
    state: DocumentRuntimeState = Depends(_get_runtime_state),
) -> Response:
    page_config = resolve_page_config(
        payload.size, payload.orientation, defaults=state.default_page_config
    )
    result = await state.renderer.render(document_id, payload.props)
    pdf_bytes = await state.pdf_renderer.render(
        base_url=str(request.base_url),
        html=result.markup,
        page_config=page_config,
    )

    if payload.format == "base64":
        body = Base64DocumentResponse(
            document_id=document_id,
            data=base64.b64encode(pdf_bytes).decode("ascii"),
            size=len(pdf_bytes),
        )
        return JSONResponse(body.model_dump(by_alias=True))

    if payload.format == "json":
        token = state.downloads.issue(pdf_bytes, PDF_MIME_TYPE)
        body = DownloadLinkResponse(
            document_id=document_id,
            url=str(request.url_for("document-download", token=token)),
            expires_in_ms=int(state.downloads.ttl.total_seconds() * 1000),
        )
        return JSONResponse(body.model_dump(by_alias=True))

    return Response(pdf_bytes, media_type=PDF_MIME_TYPE, headers=_NO_STORE)


@_DOCUMENT_ROUTER.get(
    "/api/downloads/{token}",
    name="document-download",
    summary="Fetch a rendered document once through its download token",
)
def download_document(
    token: str, state: DocumentRuntimeState = Depends(_get_runtime_state)
) -> Response:
    state.downloads.prune_expired()
    entry = state.downloads.consume(token)
    if entry is None:
        raise HTTPException(status_code=404, detail="Download expired")
    return Response(entry.payload, media_type=entry.mime_type, headers=_NO_STORE)


def resolve_static_path(static_dir: Path, relative: str) -> Path:
    """Resolve ``relative`` inside ``static_dir`` or raise an HTTP error."""

    root = static_dir.resolve()
    candidate = (root / relative).resolve()
    if not candidate.is_relative_to(root):
        raise HTTPException(status_code=403, detail="Forbidden")
    if not candidate.is_file():
        raise HTTPException(status_code=404, detail="Not Found")
    return candidate


def _summarise(entries: Iterable[DocumentEntry]) -> DocumentListResponse:
    documents = sorted(
        (DocumentSummary(id=entry.id, slug=entry.slug) for entry in entries),
        key=lambda summary: summary.id,
    )
    return DocumentListResponse(documents=documents)


__all__ = [
    "DocumentRuntimeState",
    "create_document_app",
    "register_exception_handlers",
    "resolve_static_path",
]
