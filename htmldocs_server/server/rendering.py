"""Turn a document id and caller properties into markup."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from ..errors import DocumentNotFoundError, RenderError
from .registry import DocumentRegistry

__all__ = ["DocumentRenderer", "RenderResult"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderResult:
    markup: str
    css: str | None = None


class DocumentRenderer:
    """Resolve registry entries and invoke their compiled render entry point."""

    def __init__(self, registry: DocumentRegistry) -> None:
        self._registry = registry

    @property
    def registry(self) -> DocumentRegistry:
        return self._registry

    async def render(
        self, document_id: str, props: Mapping[str, Any] | None = None
    ) -> RenderResult:
        entry = await self._registry.get(document_id)
        if entry is None:
            raise DocumentNotFoundError(document_id)

        # caller props replace the preview props wholesale, they are never merged
        render_props = props if props else entry.preview_props
        compiled = entry.compiled
        try:
            markup = await compiled.render(render_props)
        except Exception as exc:
            lineno = compiled.error_lineno(exc)
            logger.error(
                "Rendering %s failed at %s:%s", document_id, entry.slug, lineno or "?"
            )
            raise RenderError(document_id, str(exc), lineno=lineno) from exc
        return RenderResult(markup=markup, css=compiled.css)
