"""CLI entry point for riakcs-client.

Subcommands:
    list-operations  Print the operations in a catalog file.
    call             Execute one operation and print the result as JSON.
"""

from __future__ import annotations

import argparse
import base64
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from riakcs_client.errors import CallError, ConfigurationError, ProgrammerError


@dataclass
class ListOperationsArgs:
    """Parsed arguments for list-operations mode."""

    catalog: Path


@dataclass
class CallArgs:
    """Parsed arguments for call mode."""

    config: Path
    catalog: Path
    operation: str
    args: dict[str, str]
    timeout: float | None
    debug: bool


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with list-operations and call subcommands."""
    parser = argparse.ArgumentParser(
        prog="riakcs",
        description="Signed query API client driven by a declarative operation catalog.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True, help="Command")

    list_ops_parser = subparsers.add_parser(
        "list-operations",
        help="List all operations in a catalog file",
    )
    list_ops_parser.add_argument(
        "--catalog",
        type=Path,
        required=True,
        help="Path to operation catalog (YAML)",
    )

    call_parser = subparsers.add_parser(
        "call",
        help="Execute one operation and print the decoded result as JSON",
    )
    call_parser.add_argument("operation", help="Operation name from the catalog")
    call_parser.add_argument(
        "--config",
        type=Path,
        required=True,
        help="Path to client config (YAML, supports ${ENV_VAR})",
    )
    call_parser.add_argument(
        "--catalog",
        type=Path,
        required=True,
        help="Path to operation catalog (YAML)",
    )
    call_parser.add_argument(
        "--arg",
        type=str,
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Call argument (can be repeated)",
    )
    call_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Request timeout in seconds (overrides config)",
    )
    call_parser.add_argument(
        "--debug",
        action="store_true",
        help="Log the string-to-sign and signature to stderr",
    )

    return parser


def parse_call_arg_pairs(pairs: list[str]) -> dict[str, str]:
    """Parse NAME=VALUE strings into a dict. Later duplicates win."""
    result: dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise argparse.ArgumentTypeError(f"Invalid --arg {pair!r}: expected NAME=VALUE")
        result[name] = value
    return result


def parse_list_ops_args(namespace: argparse.Namespace) -> ListOperationsArgs:
    return ListOperationsArgs(catalog=namespace.catalog)


def parse_call_args(namespace: argparse.Namespace) -> CallArgs:
    return CallArgs(
        config=namespace.config,
        catalog=namespace.catalog,
        operation=namespace.operation,
        args=parse_call_arg_pairs(namespace.arg),
        timeout=namespace.timeout,
        debug=namespace.debug,
    )


def parse_args(args: list[str] | None = None) -> ListOperationsArgs | CallArgs:
    """Parse command-line arguments and return typed args dataclass.

    Raises:
        SystemExit: If arguments are invalid (argparse behavior).
    """
    parser = build_parser()
    namespace = parser.parse_args(args)

    if namespace.command == "list-operations":
        return parse_list_ops_args(namespace)
    elif namespace.command == "call":
        try:
            return parse_call_args(namespace)
        except argparse.ArgumentTypeError as e:
            parser.error(str(e))
    else:
        # Should not happen with required=True on subparsers
        parser.error(f"Unknown command: {namespace.command}")


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    try:
        parsed = parse_args(argv)

        if isinstance(parsed, ListOperationsArgs):
            return run_list_operations(parsed)
        else:
            return run_call(parsed)

    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 1


def run_list_operations(args: ListOperationsArgs) -> int:
    from riakcs_client.config_loader import load_catalog

    try:
        catalog = load_catalog(args.catalog)
    except ProgrammerError as e:
        print(f"Error loading catalog: {e}", file=sys.stderr)
        return 1

    for name in sorted(catalog):
        op = catalog[name]
        method = op.method if isinstance(op.method, str) else "<computed>"
        path = op.path if isinstance(op.path, str) else "<computed>"
        print(name)
        print(f"  {method} {path}")
        required = [arg for arg, spec in op.arg_specs.items() if spec.required]
        if required:
            print(f"  Required: {', '.join(required)}")
        print()

    print(f"Total: {len(catalog)} operations")
    return 0


def run_call(args: CallArgs) -> int:
    from riakcs_client.client import RiakCS
    from riakcs_client.config_loader import load_catalog, load_client_config

    try:
        config = load_client_config(args.config)
    except ConfigurationError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    try:
        catalog = load_catalog(args.catalog)
    except ProgrammerError as e:
        print(f"Error loading catalog: {e}", file=sys.stderr)
        return 1

    if args.debug:
        config = config.model_copy(update={"debug": True})
        logging.basicConfig(level=logging.DEBUG, stream=sys.stderr)

    options: dict[str, Any] = {}
    if args.timeout is not None:
        options["timeout"] = args.timeout

    with RiakCS(config, catalog) as client:
        try:
            result = client.execute(args.operation, args.args, options)
        except ProgrammerError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        except CallError as e:
            print(json.dumps(_jsonable(e.to_error_result().model_dump()), indent=2))
            return 1

    print(json.dumps(_jsonable(result.model_dump()), indent=2))
    return 0


def _jsonable(value: Any) -> Any:
    """Make a dumped Result/ErrorResult printable as JSON."""
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("ascii")
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, BaseException):
        return f"{type(value).__name__}: {value}"
    return value


if __name__ == "__main__":
    sys.exit(main())
