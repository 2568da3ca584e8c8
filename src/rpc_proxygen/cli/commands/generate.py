"""Generate command: write proxy interfaces and the routing-key map."""
from __future__ import annotations

import argparse
import sys
from typing import Final, TextIO

from rpc_proxygen.codegen.pipeline import GenerationResult, run_generation
from rpc_proxygen.config.loader import ConfigError, load_workspace_config, resolve_workspace_root

__all__ = ["execute", "print_diagnostics", "register_parser", "run"]

EXIT_SUCCESS: Final = 0
EXIT_ERROR: Final = 1


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser(
        "generate",
        help="Scan service modules and write proxy interfaces and the routing-key map.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  rpc-proxygen generate
  rpc-proxygen --root ./backend generate --output-dir generated
  WORKSPACE_ROOT=./backend rpc-proxygen generate
        """,
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=None,
        help="Directory of the routing-key map, relative to the workspace root.",
    )
    parser.set_defaults(handler=run)


def print_diagnostics(result: GenerationResult, stream: TextIO | None = None) -> None:
    out = stream or sys.stderr
    for diagnostic in result.diagnostics:
        print(f"error: {diagnostic.message}", file=out)
    if result.diagnostics:
        print(f"{len(result.diagnostics)} error(s) found.", file=out)


def execute(args: argparse.Namespace, *, write: bool) -> int:
    try:
        root = resolve_workspace_root(getattr(args, "root", None))
        config = load_workspace_config(root, getattr(args, "config", None))
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_ERROR
    output_dir = getattr(args, "output_dir", None)
    if output_dir:
        config.generator.output_dir = output_dir
    result = run_generation(root, config.generator, write=write)
    print_diagnostics(result)
    return result.exit_code


def run(args: argparse.Namespace) -> int:
    return execute(args, write=True)
