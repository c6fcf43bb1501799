"""Compile Jinja2 document sources into executable render artifacts."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType, TracebackType
from typing import Any, Mapping

from fastapi.concurrency import run_in_threadpool
from jinja2 import Environment, FileSystemLoader, Template, TemplateSyntaxError, nodes

from ..errors import CompilationError, CompilationErrorDetail
from .formatters import register_filters

__all__ = [
    "DOCUMENT_EXTENSIONS",
    "CompiledDocument",
    "DocumentCompiler",
    "build_environment",
    "inject_stylesheet",
    "rewrite_static_urls",
]

logger = logging.getLogger(__name__)

DOCUMENT_EXTENSIONS: tuple[str, ...] = (".html", ".htm", ".jinja", ".jinja2", ".j2")

_METADATA_NAMES = ("document_id", "preview_props")
_HEAD_CLOSE = re.compile(r"</head\s*>", re.IGNORECASE)
_STATIC_PREFIX = re.compile(r"(?<![\w.])/static")


class _MetadataError(ValueError):
    """Template metadata could not be evaluated to a usable constant."""


@dataclass(frozen=True)
class CompiledDocument:
    """Executable output of compiling one template source file."""

    template: Template
    source_path: Path
    css: str | None = None
    document_id: str | None = None
    preview_props: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    async def render(self, props: Mapping[str, Any]) -> str:
        """Render markup with ``props`` and inline the stylesheet."""

        context = {**props, "props": dict(props)}
        markup = await self.template.render_async(context)
        return inject_stylesheet(markup, self.css)

    def source_lineno(self, generated_lineno: int) -> int:
        """Map a line of the compiled module back to the template source."""

        return self.template.get_corresponding_lineno(generated_lineno)

    def error_lineno(self, exc: BaseException) -> int | None:
        """Return the template line at which ``exc`` was raised, if known."""

        lineno: int | None = None
        tb: TracebackType | None = exc.__traceback__
        while tb is not None:
            frame = tb.tb_frame
            if frame.f_globals.get("__jinja_template__") is self.template:
                lineno = self.source_lineno(tb.tb_lineno)
            elif frame.f_code.co_filename == str(self.source_path):
                lineno = tb.tb_lineno
            tb = tb.tb_next
        return lineno


def build_environment(template_root: Path) -> Environment:
    environment = Environment(
        loader=FileSystemLoader(str(template_root)),
        autoescape=True,
        enable_async=True,
        keep_trailing_newline=True,
    )
    return register_filters(environment)


def inject_stylesheet(markup: str, css: str | None) -> str:
    if not css:
        return markup
    style = f"<style>{css}</style>"
    match = _HEAD_CLOSE.search(markup)
    if match is None:
        return style + markup
    return f"{markup[:match.start()]}{style}{markup[match.start():]}"


def rewrite_static_urls(source: str) -> str:
    """Point absolute ``/static`` references at the packaged relative folder."""

    return _STATIC_PREFIX.sub("./static", source)


class DocumentCompiler:
    """Compilation unit producer backed by a shared Jinja2 environment.

    Includes and ``{% extends %}`` resolve against ``template_root`` so
    documents may share partials kept in hidden directories.
    """

    def __init__(
        self,
        template_root: Path,
        *,
        rewrite_static: bool = False,
        environment: Environment | None = None,
    ) -> None:
        self._root = Path(template_root)
        self._rewrite_static = rewrite_static
        self._environment = environment or build_environment(self._root)

    @property
    def environment(self) -> Environment:
        return self._environment

    async def compile(self, path: Path) -> CompiledDocument:
        return await run_in_threadpool(self.compile_sync, path)

    def compile_sync(self, path: Path) -> CompiledDocument:
        source_path = Path(path).resolve()
        name = self._template_name(source_path)
        environment = self._environment

        try:
            source = source_path.read_text(encoding="utf-8")
            css = self._read_stylesheet(source_path)
            if self._rewrite_static:
                source = rewrite_static_urls(source)
                css = rewrite_static_urls(css) if css is not None else None
            tree = environment.parse(source, name, str(source_path))
            code = environment.compile(tree, name, str(source_path))
        except (OSError, UnicodeDecodeError, TemplateSyntaxError) as exc:
            raise CompilationError(
                "Failed to compile document",
                CompilationErrorDetail.from_exception(exc),
                path=source_path,
            ) from exc

        try:
            template = environment.template_class.from_code(
                environment, code, environment.make_globals(None), None
            )
            metadata = _read_metadata(tree, nodes.EvalContext(environment, name))
        except Exception as exc:
            raise CompilationError(
                "Failed to execute compiled document",
                CompilationErrorDetail.from_exception(exc),
                path=source_path,
            ) from exc

        logger.debug("Compiled %s (document_id=%s)", name, metadata.get("document_id"))
        return CompiledDocument(
            template=template,
            source_path=source_path,
            css=css,
            document_id=metadata.get("document_id"),
            preview_props=MappingProxyType(dict(metadata.get("preview_props") or {})),
        )

    def _template_name(self, source_path: Path) -> str:
        try:
            return source_path.relative_to(self._root.resolve()).as_posix()
        except ValueError:
            return source_path.name

    @staticmethod
    def _read_stylesheet(source_path: Path) -> str | None:
        stem = source_path.name.split(".", 1)[0]
        stylesheet = source_path.with_name(f"{stem}.css")
        if not stylesheet.is_file():
            return None
        return stylesheet.read_text(encoding="utf-8")


def _read_metadata(tree: nodes.Template, eval_ctx: nodes.EvalContext) -> dict[str, Any]:
    metadata: dict[str, Any] = {}
    for node in tree.body:
        match node:
            case nodes.Assign(target=nodes.Name(name=name)) if name in _METADATA_NAMES:
                pass
            case _:
                continue
        try:
            value = node.node.as_const(eval_ctx)
        except nodes.Impossible as exc:
            raise _MetadataError(
                f"'{name}' on line {node.lineno} must be a constant expression"
            ) from exc
        metadata[name] = value

    document_id = metadata.get("document_id")
    if document_id is not None and (not isinstance(document_id, str) or not document_id):
        raise _MetadataError("'document_id' must be a non-empty string")
    preview_props = metadata.get("preview_props")
    if preview_props is not None and not isinstance(preview_props, Mapping):
        raise _MetadataError("'preview_props' must be a mapping")
    return metadata
