"""Run the document server with uvicorn."""

from __future__ import annotations

import argparse
from pathlib import Path

import uvicorn

from .config import ServerSettings, configure_logging
from .server.http import create_document_app


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="htmldocs-server", description=__doc__)
    parser.add_argument("--templates-root", type=Path, default=None)
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", type=int, default=None)
    args = parser.parse_args(argv)

    overrides = {
        name: value
        for name, value in (
            ("templates_root", args.templates_root),
            ("host", args.host),
            ("port", args.port),
        )
        if value is not None
    }
    settings = ServerSettings(**overrides)
    configure_logging(settings.log_level)
    app = create_document_app(settings)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
