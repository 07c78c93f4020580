from __future__ import annotations

import argparse
import json
import sys

from .config import load_config
from .errors import ConfigError
from .log import configure_logging
from .mcp_server import serve
from .tools import TOOLS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vision-mcp",
        description="MCP server exposing image-analysis tools backed by a vision model.",
    )
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser(
        "serve",
        help="Run the MCP server over stdio (default when no command is given).",
    )
    subparsers.add_parser(
        "config",
        help="Print the resolved configuration with the API key masked.",
    )
    subparsers.add_parser("tools", help="List the exposed tools.")
    return parser


def serve_command() -> int:
    try:
        config = load_config()
    except ConfigError as exc:
        sys.stderr.write(f"Configuration error: {exc}\n")
        return 1
    configure_logging(config.log_level, config.log_path)
    serve(config)
    return 0


def config_command() -> int:
    try:
        config = load_config()
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1
    print(json.dumps(config.redacted(), indent=2))
    return 0


def tools_command() -> int:
    for spec in TOOLS.values():
        print(f"{spec.name}\n    {spec.description}")
    return 0


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command in (None, "serve"):
        sys.exit(serve_command())
    if args.command == "config":
        sys.exit(config_command())
    if args.command == "tools":
        sys.exit(tools_command())
    parser.print_help()
    sys.exit(2)


if __name__ == "__main__":
    main()
