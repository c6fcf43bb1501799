"""Discovery and compilation cache for document templates.

The registry owns two lookup indexes, by logical id and by absolute path.
Both live in a single immutable :class:`RegistryIndex` snapshot; a refresh
builds a fresh snapshot and swaps it in with one assignment, so readers
always observe a consistent pair.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Protocol

from fastapi.concurrency import run_in_threadpool

from .._templating import DOCUMENT_EXTENSIONS, CompiledDocument, DocumentCompiler
from ..errors import CompilationError, DuplicateDocumentError

__all__ = [
    "DocumentCompilerProtocol",
    "DocumentEntry",
    "DocumentRegistry",
    "RegistryIndex",
    "RegistryState",
    "list_template_files",
]

logger = logging.getLogger(__name__)


class DocumentCompilerProtocol(Protocol):
    async def compile(self, path: Path) -> CompiledDocument:  # pragma: no cover - protocol
        ...


@dataclass(frozen=True)
class DocumentEntry:
    """One compiled template addressable by its logical id."""

    id: str
    slug: str
    absolute_path: Path
    compiled: CompiledDocument
    preview_props: Mapping[str, Any]


@dataclass(frozen=True)
class RegistryIndex:
    """Matching by-id and by-path views over one refresh generation."""

    by_id: Mapping[str, DocumentEntry] = field(default_factory=lambda: MappingProxyType({}))
    by_path: Mapping[Path, DocumentEntry] = field(default_factory=lambda: MappingProxyType({}))
    generation: int = 0


class RegistryState(enum.Enum):
    EMPTY = "empty"
    REFRESHING = "refreshing"
    POPULATED = "populated"


class DocumentRegistry:
    """In-memory registry of compiled documents under ``template_root``."""

    def __init__(
        self,
        template_root: Path,
        *,
        compiler: DocumentCompilerProtocol | None = None,
    ) -> None:
        self._root = Path(template_root)
        self._compiler = compiler or DocumentCompiler(self._root)
        self._index = RegistryIndex()
        self._state = RegistryState.EMPTY
        self._in_flight: asyncio.Future[RegistryIndex] | None = None
        self._generation = 0

    @property
    def template_root(self) -> Path:
        return self._root

    @property
    def state(self) -> RegistryState:
        return self._state

    @property
    def snapshot(self) -> RegistryIndex:
        return self._index

    async def ensure_populated(self) -> None:
        """Populate once, sharing a single in-flight refresh among callers."""

        if self._state is RegistryState.POPULATED:
            return
        if self._in_flight is None:
            self._start_refresh()
        assert self._in_flight is not None
        await asyncio.shield(self._in_flight)

    async def refresh(self) -> RegistryIndex:
        """Re-discover and recompile every template, then swap the indexes."""

        return await asyncio.shield(self._start_refresh())

    async def get(self, document_id: str) -> DocumentEntry | None:
        await self.ensure_populated()
        return self._index.by_id.get(document_id)

    async def get_by_path(self, path: Path | str) -> DocumentEntry | None:
        await self.ensure_populated()
        return self._index.by_path.get(Path(path).resolve())

    async def list_ids(self) -> list[str]:
        await self.ensure_populated()
        return list(self._index.by_id)

    async def entries(self) -> list[DocumentEntry]:
        await self.ensure_populated()
        return list(self._index.by_id.values())

    def _start_refresh(self) -> asyncio.Future[RegistryIndex]:
        self._generation += 1
        task = asyncio.ensure_future(self._rebuild(self._generation))
        self._in_flight = task
        if self._state is not RegistryState.POPULATED:
            self._state = RegistryState.REFRESHING
        task.add_done_callback(self._finish_refresh)
        return task

    def _finish_refresh(self, task: asyncio.Future[RegistryIndex]) -> None:
        if task is not self._in_flight:
            return
        self._in_flight = None
        if task.cancelled() or task.exception() is not None:
            # an earlier generation may already have been installed
            populated = self._index.generation > 0
            self._state = RegistryState.POPULATED if populated else RegistryState.EMPTY
            return
        self._state = RegistryState.POPULATED

    async def _rebuild(self, generation: int) -> RegistryIndex:
        started = time.perf_counter()
        files = await run_in_threadpool(list_template_files, self._root)
        logger.info("Discovered %d document template(s) under %s", len(files), self._root)

        by_id: dict[str, DocumentEntry] = {}
        by_path: dict[Path, DocumentEntry] = {}
        for file in files:
            try:
                entry = await self._compile_entry(file)
            except CompilationError as exc:
                logger.error(
                    "Compilation of %s failed (%s): %s",
                    file,
                    exc.error.name,
                    exc.error.message,
                )
                raise
            existing = by_id.get(entry.id)
            if existing is not None:
                raise DuplicateDocumentError(entry.id, existing.slug, entry.slug)
            by_id[entry.id] = entry
            by_path[entry.absolute_path] = entry

        index = RegistryIndex(
            by_id=MappingProxyType(by_id),
            by_path=MappingProxyType(by_path),
            generation=generation,
        )
        if generation > self._index.generation:
            self._index = index
            self._state = RegistryState.POPULATED
        else:
            logger.debug("Discarding stale registry generation %d", generation)
        logger.info(
            "Registry generation %d ready with %d document(s) in %.3fs",
            generation,
            len(by_id),
            time.perf_counter() - started,
        )
        return self._index

    async def _compile_entry(self, file: Path) -> DocumentEntry:
        compiled = await self._compiler.compile(file)
        absolute_path = file.resolve()
        return DocumentEntry(
            id=compiled.document_id or _base_name(file),
            slug=_slug_for(absolute_path, self._root),
            absolute_path=absolute_path,
            compiled=compiled,
            preview_props=compiled.preview_props,
        )


def list_template_files(root: Path) -> list[Path]:
    """Return document sources under ``root``, skipping hidden entries and symlinks."""

    if not root.is_dir():
        return []

    found: list[Path] = []
    pending = [root]
    while pending:
        current = pending.pop()
        with os.scandir(current) as iterator:
            for dirent in iterator:
                if dirent.name.startswith("."):
                    continue
                path = Path(dirent.path)
                if dirent.is_dir(follow_symlinks=False):
                    pending.append(path)
                elif dirent.is_file(follow_symlinks=False) and _looks_like_document(dirent.name):
                    found.append(path)
    return sorted(found)


def _looks_like_document(name: str) -> bool:
    return name.lower().endswith(DOCUMENT_EXTENSIONS)


def _base_name(path: Path) -> str:
    return path.name.split(".", 1)[0]


def _slug_for(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root.resolve()).as_posix()
    except ValueError:
        return path.name
