"""Server configuration loaded from ``HTMDOCS_*`` environment variables."""

from __future__ import annotations

import logging
from datetime import timedelta
from pathlib import Path
from typing import Annotated

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ValidationError
from .page_config import Orientation, PageConfig, validate_size

__all__ = ["ServerSettings", "configure_logging", "get_settings", "reset_settings"]


class ServerSettings(BaseSettings):
    """Settings for the document server.

    Priority (highest to lowest):
      1. Explicit constructor arguments
      2. Environment variables (HTMDOCS_TEMPLATES_ROOT, HTMDOCS_API_KEY, ...)
      3. .env file in the current directory
    """

    model_config = SettingsConfigDict(
        env_prefix="HTMDOCS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    templates_root: Annotated[
        Path, Field(description="Project holding the documents directory")
    ] = Path("../templates")
    documents_dir: Annotated[
        Path | None,
        Field(description="Directory with templates/ and static/ (defaults under templates_root)"),
    ] = None

    api_key: Annotated[
        str | None, Field(description="Shared secret expected in the Authorization header", repr=False)
    ] = None

    host: str = "0.0.0.0"
    port: Annotated[
        int, Field(validation_alias=AliasChoices("port", "HTMDOCS_PORT", "PORT"))
    ] = 4000

    default_page_size: str = "A4"
    default_orientation: Orientation = "portrait"
    download_ttl_seconds: Annotated[int, Field(gt=0)] = 300
    rewrite_static_urls: Annotated[
        bool, Field(description="Rewrite /static references for packaged deployments")
    ] = False
    log_level: str = "INFO"

    @field_validator("default_page_size")
    @classmethod
    def _check_page_size(cls, value: str) -> str:
        try:
            return validate_size(value)
        except ValidationError as exc:
            raise ValueError(str(exc)) from exc

    @property
    def resolved_templates_root(self) -> Path:
        return self.templates_root.expanduser().resolve()

    @property
    def resolved_documents_dir(self) -> Path:
        if self.documents_dir is not None:
            return self.documents_dir.expanduser().resolve()
        return self.resolved_templates_root / "documents"

    @property
    def templates_dir(self) -> Path:
        return self.resolved_documents_dir / "templates"

    @property
    def static_dir(self) -> Path:
        return self.resolved_documents_dir / "static"

    @property
    def download_ttl(self) -> timedelta:
        return timedelta(seconds=self.download_ttl_seconds)

    @property
    def default_page_config(self) -> PageConfig:
        return PageConfig(size=self.default_page_size, orientation=self.default_orientation)


_settings: ServerSettings | None = None


def get_settings() -> ServerSettings:
    """Return the process-wide settings, loading them on first use."""

    global _settings
    if _settings is None:
        _settings = ServerSettings()
    return _settings


def reset_settings() -> None:
    global _settings
    _settings = None


def configure_logging(level: str | int = "INFO") -> None:
    """Configure root logging once; later calls only adjust the level."""

    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )
    root.setLevel(level.upper() if isinstance(level, str) else level)
