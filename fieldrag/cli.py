"""Command line entry for FieldRAG."""

from __future__ import annotations

import argparse
from typing import List, Optional

import uvicorn

from fieldrag.core.config import settings


def run_server(host: str, port: int, reload: bool = False) -> None:
    uvicorn.run("fieldrag.api.main:app", host=host, port=port, reload=reload, log_level=settings.LOG_LEVEL.lower())


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="fieldrag", description="Run the FieldRAG retrieval API.")
    parser.add_argument("--host", default=settings.API_HOST)
    parser.add_argument("--port", type=int, default=settings.API_PORT)
    parser.add_argument("--reload", action="store_true", help="Reload on code changes (development only)")
    args = parser.parse_args(argv)
    run_server(args.host, args.port, reload=args.reload)


if __name__ == "__main__":
    main()
