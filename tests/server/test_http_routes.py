from __future__ import annotations

import base64
from datetime import timedelta
from pathlib import Path

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from htmldocs_server.config import ServerSettings
from htmldocs_server.errors import ValidationError
from htmldocs_server.page_config import PageConfig
from htmldocs_server.server.downloads import DownloadCache
from htmldocs_server.server.http.app import create_document_app, resolve_static_path


class _FakePdfRenderer:
    def __init__(self) -> None:
        self.calls: list[dict] = []

    async def render(self, *, base_url: str, html: str, page_config: PageConfig) -> bytes:
        self.calls.append({"base_url": base_url, "html": html, "page_config": page_config})
        return b"%PDF-1.7\n" + html.encode("utf-8")


@pytest.fixture
def project(tmp_path, write_document) -> Path:
    templates = tmp_path / "documents" / "templates"
    write_document(
        templates,
        "invoice.html",
        """
        {% set document_id = "invoice" %}
        {% set preview_props = {"customer": "Preview"} %}
        <html><head></head><body><p>Bill {{ props.customer }}</p></body></html>
        """,
    )
    write_document(
        templates,
        "reports/ledger.html",
        """
        <p>{{ props.name }}</p>
        <p>{{ props.total // props.divisor }}</p>
        """,
    )
    (templates / "invoice.css").write_text("p { color: navy; }", encoding="utf-8")
    static = tmp_path / "documents" / "static"
    static.mkdir(parents=True)
    (static / "logo.txt").write_text("logo", encoding="utf-8")
    return tmp_path


def _client(project: Path, **overrides) -> tuple[TestClient, _FakePdfRenderer]:
    downloads = overrides.pop("downloads", None)
    settings = ServerSettings(templates_root=project, **overrides)
    pdf = _FakePdfRenderer()
    app = create_document_app(settings, pdf_renderer=pdf, downloads=downloads)
    return TestClient(app), pdf


def test_server_info_and_health(project):
    client, _ = _client(project)

    info = client.get("/")
    assert info.status_code == 200
    assert info.json() == {
        "name": "htmldocs-server",
        "status": "ok",
        "templatesRoot": str(project.resolve() / "documents" / "templates"),
    }

    health = client.get("/health")
    assert health.status_code == 200
    assert health.text == "ok"


def test_render_returns_pdf_bytes_by_default(project):
    client, pdf = _client(project)

    response = client.post("/api/documents/invoice", json={"props": {"customer": "Ada"}})

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["cache-control"] == "no-store"
    assert response.content.startswith(b"%PDF-1.7")
    assert b"<p>Bill Ada</p>" in response.content
    assert b"<style>p { color: navy; }</style></head>" in response.content

    call = pdf.calls[0]
    assert call["base_url"] == "http://testserver/"
    assert call["page_config"] == PageConfig("A4", "portrait")


def test_empty_props_render_the_preview(project):
    client, _ = _client(project)

    response = client.post("/api/documents/invoice", json={"props": {}})

    assert response.status_code == 200
    assert b"<p>Bill Preview</p>" in response.content


def test_page_size_and_orientation_are_forwarded(project):
    client, pdf = _client(project, default_orientation="landscape")

    client.post("/api/documents/invoice", json={"props": {}, "size": "Letter"})
    client.post(
        "/api/documents/invoice",
        json={"props": {}, "size": "210mm 297mm", "orientation": "portrait"},
    )

    assert pdf.calls[0]["page_config"] == PageConfig("Letter", "landscape")
    assert pdf.calls[1]["page_config"] == PageConfig("210mm 297mm", "portrait")


def test_base64_format_wraps_the_pdf(project):
    client, _ = _client(project)

    response = client.post(
        "/api/documents/invoice", json={"props": {"customer": "Ada"}, "format": "base64"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["documentId"] == "invoice"
    assert body["format"] == "base64"
    assert body["mime"] == "application/pdf"
    data = base64.b64decode(body["data"])
    assert body["size"] == len(data)
    assert b"<p>Bill Ada</p>" in data


def test_json_format_issues_a_single_use_download_link(project):
    client, _ = _client(project)

    response = client.post(
        "/api/documents/invoice", json={"props": {"customer": "Ada"}, "format": "json"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["documentId"] == "invoice"
    assert body["format"] == "json"
    assert body["expiresInMs"] == 300_000
    assert body["url"].startswith("http://testserver/api/downloads/")

    first = client.get(body["url"])
    assert first.status_code == 200
    assert first.headers["content-type"] == "application/pdf"
    assert b"<p>Bill Ada</p>" in first.content

    second = client.get(body["url"])
    assert second.status_code == 404
    assert second.json() == {"detail": "Download expired"}


def test_expired_download_links_are_gone(project):
    client, _ = _client(project, downloads=DownloadCache(ttl=timedelta(0)))

    body = client.post(
        "/api/documents/invoice", json={"props": {}, "format": "json"}
    ).json()

    assert body["expiresInMs"] == 0
    assert client.get(body["url"]).status_code == 404


def test_unknown_documents_are_404(project):
    client, pdf = _client(project)

    response = client.post("/api/documents/receipt", json={"props": {}})

    assert response.status_code == 404
    assert response.json() == {"detail": "Unknown document id: receipt"}
    assert pdf.calls == []


@pytest.mark.parametrize(
    "payload",
    [
        {"props": {}, "size": "B52"},
        {"props": {}, "orientation": "sideways"},
        {"props": {}, "format": "docx"},
        {"props": {}, "unexpected": True},
        {"size": "A4"},
        {"props": ["not", "an", "object"]},
    ],
)
def test_invalid_requests_are_400(project, payload):
    client, pdf = _client(project)

    response = client.post("/api/documents/invoice", json=payload)

    assert response.status_code == 400
    body = response.json()
    assert set(body) == {"detail", "errors"}
    assert body["detail"] == "Invalid request"
    assert isinstance(body["errors"], list) and body["errors"]
    assert pdf.calls == []


def test_domain_validation_errors_share_the_400_body(project):
    class _RejectingPdfRenderer:
        async def render(self, *, base_url, html, page_config):
            raise ValidationError("Invalid page size 'B52'")

    settings = ServerSettings(templates_root=project)
    app = create_document_app(settings, pdf_renderer=_RejectingPdfRenderer())

    response = TestClient(app).post("/api/documents/invoice", json={"props": {}})

    assert response.status_code == 400
    assert response.json() == {
        "detail": "Invalid request",
        "errors": [{"msg": "Invalid page size 'B52'"}],
    }


def test_render_failures_are_500(project):
    client, _ = _client(project)

    response = client.post(
        "/api/documents/ledger", json={"props": {"name": "x", "total": 1, "divisor": 0}}
    )

    assert response.status_code == 500
    assert "Failed to render document 'ledger' (line 2)" in response.json()["detail"]


def test_compilation_failures_are_500(project, write_document):
    write_document(project / "documents" / "templates", "broken.html", "{% if %}")
    client, _ = _client(project)

    response = client.get("/api/documents")

    assert response.status_code == 500
    body = response.json()
    assert body["detail"] == "Document compilation failed"
    assert body["error"]["name"] == "TemplateSyntaxError"


def test_documents_are_listed_and_refreshed(project, write_document):
    client, _ = _client(project)

    listed = client.get("/api/documents")
    assert listed.status_code == 200
    assert listed.json() == {
        "documents": [
            {"id": "invoice", "slug": "invoice.html"},
            {"id": "ledger", "slug": "reports/ledger.html"},
        ]
    }

    write_document(project / "documents" / "templates", "receipt.html", "<p>r</p>")
    assert len(client.get("/api/documents").json()["documents"]) == 2

    refreshed = client.post("/api/registry/refresh")
    assert refreshed.status_code == 200
    assert [doc["id"] for doc in refreshed.json()["documents"]] == [
        "invoice",
        "ledger",
        "receipt",
    ]
    assert client.post("/api/documents/receipt", json={"props": {}}).status_code == 200


def test_static_files_are_served(project):
    client, _ = _client(project)

    response = client.get("/static/logo.txt")
    assert response.status_code == 200
    assert response.text == "logo"

    assert client.get("/static/missing.png").status_code == 404


def test_static_paths_cannot_escape_the_static_root(project):
    static = project / "documents" / "static"
    (project / "secret.txt").write_text("nope", encoding="utf-8")

    with pytest.raises(HTTPException) as excinfo:
        resolve_static_path(static, "../../secret.txt")

    assert excinfo.value.status_code == 403
    assert resolve_static_path(static, "logo.txt") == (static / "logo.txt").resolve()


def test_api_key_guards_everything_but_public_routes(project):
    client, _ = _client(project, api_key="s3cret")

    assert client.get("/api/documents").status_code == 401
    denied = client.post("/api/documents/invoice", json={"props": {}})
    assert denied.status_code == 401
    assert denied.json() == {"detail": "Unauthorized"}
    wrong = client.post(
        "/api/documents/invoice", json={"props": {}}, headers={"Authorization": "nope"}
    )
    assert wrong.status_code == 401

    assert client.get("/").status_code == 200
    assert client.get("/health").status_code == 200
    assert client.get("/static/logo.txt").status_code == 200

    allowed = client.post(
        "/api/documents/invoice",
        json={"props": {}, "format": "json"},
        headers={"Authorization": "s3cret"},
    )
    assert allowed.status_code == 200
    assert client.get(allowed.json()["url"]).status_code == 200
