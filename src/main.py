# src/main.py — v1
"""CLI entry point: inspect and imports commands.

Usage:
    copilens inspect <file> [--symbol Outer.method] [--format json|text]
    copilens imports <file> --source-root <dir> [--format json|text]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from copilens.config.settings import ConfigurationError, Settings, load_settings
from copilens.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        settings = load_settings(workspace_root=None)
    except (ConfigurationError, ValidationError) as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2
    _setup_logging(args.verbose, settings)

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="copilens",
        description=f"copilens v{__version__} - cached code inspections and import context",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command")

    p_inspect = subparsers.add_parser("inspect", help="Inspect a Java file")
    p_inspect.add_argument("file", type=Path, help="Path to a .java file")
    p_inspect.add_argument(
        "--symbol", default=None,
        help="Qualified name of the class or method to inspect (default: whole file)",
    )
    p_inspect.add_argument(
        "--format", dest="output_format", choices=("json", "text"), default="text",
        help="Output format (default: text)",
    )
    p_inspect.set_defaults(func=_cmd_inspect)

    p_imports = subparsers.add_parser("imports", help="List local types imported by a file")
    p_imports.add_argument("file", type=Path, help="Path to a .java file")
    p_imports.add_argument(
        "--source-root", type=Path, required=True,
        help="Root of the source tree that packages are resolved against",
    )
    p_imports.add_argument(
        "--format", dest="output_format", choices=("json", "text"), default="text",
        help="Output format (default: text)",
    )
    p_imports.set_defaults(func=_cmd_imports)

    return parser


async def _cmd_inspect(args: argparse.Namespace, settings: Settings) -> int:
    from copilens.api.session import EditorSession
    from copilens.backend.llm_backend import LLMInspectionBackend
    from copilens.core.document import TextDocument
    from copilens.core.symbols import find_symbol
    from copilens.llm.client_factory import create_from_settings

    if not args.file.is_file():
        logger.error("File not found: %s", args.file)
        return 1

    backend = LLMInspectionBackend.from_settings(create_from_settings(settings), settings)
    document = TextDocument.from_path(args.file)

    async with EditorSession(settings, inspection_backend=backend) as session:
        if args.symbol:
            symbol = find_symbol(session.navigator.list_symbols(document), args.symbol)
            if symbol is None:
                logger.error("Symbol not found in %s: %s", args.file, args.symbol)
                return 1
            findings = await session.inspections.inspect_symbol(document, symbol)
        else:
            findings = await session.inspections.inspect_document(document)

    if args.output_format == "json":
        print(json.dumps([f.model_dump(mode="json") for f in findings], indent=2))
    else:
        for f in findings:
            print(f"{args.file}:{f.start_line + 1}: [{f.severity}] {f.description} -> {f.solution}")
        print(f"{len(findings)} suggestion(s)")
    return 0


async def _cmd_imports(args: argparse.Namespace, settings: Settings) -> int:
    from copilens.api.session import EditorSession
    from copilens.backend.source_imports import SourceImportBackend
    from copilens.core.document import TextDocument

    if not args.file.is_file():
        logger.error("File not found: %s", args.file)
        return 1
    if not args.source_root.is_dir():
        logger.error("Not a directory: %s", args.source_root)
        return 1

    document = TextDocument.from_path(args.file)
    async with EditorSession(
        settings, import_backend=SourceImportBackend(args.source_root)
    ) as session:
        imports = await session.imports.resolve(document)

    if args.output_format == "json":
        print(json.dumps([i.model_dump(mode="json", by_alias=True) for i in imports], indent=2))
    else:
        for i in imports:
            print(f"{i.class_name}\t{i.uri}")
    return 0


def _setup_logging(verbose: bool, settings: Settings) -> None:
    from copilens.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
    # quiet SDK transport logs
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


if __name__ == "__main__":
    sys.exit(main())
