from __future__ import annotations

import argparse

from rpc_proxygen.cli.commands.generate import EXIT_SUCCESS, execute

__all__ = ["register_parser", "run"]


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser(
        "check",
        help="Run the full scan and report diagnostics without writing any file.",
    )
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace) -> int:
    code = execute(args, write=False)
    if code == EXIT_SUCCESS:
        print("No problems found.")
    return code
