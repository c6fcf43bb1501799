#!/usr/bin/env python3
"""Generate a markdown catalog of every discovered document template."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Mapping

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from htmldocs_server.config import ServerSettings
from htmldocs_server.server.registry import DocumentEntry, DocumentRegistry
from htmldocs_server.server.rendering import DocumentRenderer

OUTPUT_DIR = Path("document_catalog")


def render_entry_markdown(entry: DocumentEntry, markup: str) -> str:
    lines = [
        f"# {entry.id}",
        "",
        f"Source: `{entry.slug}`",
        "",
        "## Preview props",
        "",
        "```json",
        _format_json(entry.preview_props),
        "```",
        "",
        "## Preview markup",
        "",
        "```html",
        markup.strip(),
        "```",
        "",
    ]
    return "\n".join(lines)


def _format_json(value: Mapping[str, Any]) -> str:
    def default(obj):
        if hasattr(obj, "isoformat"):
            return obj.isoformat()
        return str(obj)

    return json.dumps(dict(value), default=default, indent=2, sort_keys=True)


async def write_catalog(templates_dir: Path, output_dir: Path) -> list[Path]:
    registry = DocumentRegistry(templates_dir)
    renderer = DocumentRenderer(registry)
    output_dir.mkdir(parents=True, exist_ok=True)

    written: list[Path] = []
    for entry in sorted(await registry.entries(), key=lambda item: item.id):
        result = await renderer.render(entry.id)
        path = output_dir / f"{entry.id}.md"
        path.write_text(render_entry_markdown(entry, result.markup), encoding="utf-8")
        written.append(path)
    return written


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--output", type=Path, default=OUTPUT_DIR)
    parser.add_argument("--templates-root", type=Path, default=None)
    args = parser.parse_args(argv)

    settings = (
        ServerSettings(templates_root=args.templates_root)
        if args.templates_root is not None
        else ServerSettings()
    )
    for path in asyncio.run(write_catalog(settings.templates_dir, args.output)):
        print(path)


if __name__ == "__main__":
    main()
