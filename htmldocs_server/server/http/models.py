"""Pydantic request and response models for the document HTTP API."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...errors import ValidationError
from ...page_config import Orientation, validate_size

PDF_MIME_TYPE = "application/pdf"


class DocumentRequest(BaseModel):
    """Body accepted by ``POST /api/documents/{document_id}``."""

    model_config = ConfigDict(extra="forbid")

    props: dict[str, Any]
    format: Literal["pdf", "base64", "json"] = "pdf"
    size: str | None = None
    orientation: Orientation | None = None

    @field_validator("size")
    @classmethod
    def _check_size(cls, value: str | None) -> str | None:
        if value is None:
            return value
        try:
            return validate_size(value)
        except ValidationError as exc:
            raise ValueError(str(exc)) from exc


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class Base64DocumentResponse(_CamelModel):
    document_id: str = Field(..., alias="documentId")
    format: Literal["base64"] = "base64"
    data: str
    mime: str = PDF_MIME_TYPE
    size: int


class DownloadLinkResponse(_CamelModel):
    document_id: str = Field(..., alias="documentId")
    format: Literal["json"] = "json"
    url: str
    expires_in_ms: int = Field(..., alias="expiresInMs")


class DocumentSummary(BaseModel):
    id: str
    slug: str


class DocumentListResponse(BaseModel):
    documents: list[DocumentSummary]


class ServerInfoResponse(_CamelModel):
    name: str = "htmldocs-server"
    status: str = "ok"
    templates_root: str = Field(..., alias="templatesRoot")


__all__ = [
    "PDF_MIME_TYPE",
    "Base64DocumentResponse",
    "DocumentListResponse",
    "DocumentRequest",
    "DocumentSummary",
    "DownloadLinkResponse",
    "ServerInfoResponse",
]
