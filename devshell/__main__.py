"""Entry point for devshell.

Resolves the project's dev environment and prints it. Intended to be run as
a module from the flake root:

    python -m devshell                          # JSON for the current system
    python -m devshell --system all             # JSON for every platform
    python -m devshell --format shell > shell.nix
    python -m devshell --format package > package.nix

Configuration defaults come from DevshellSettings (env vars / .env file);
--project-root overrides DEVSHELL_PROJECT_ROOT.

Exit codes: 0 on success, 1 when the configuration is invalid, a declaration
file is malformed, or the system is unsupported or cannot be discovered.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

import logfire
from pydantic import ValidationError

from devshell.config import get_settings
from devshell.resolver.discovery import SystemDiscoveryError, discover_system
from devshell.resolver.environment import resolve_all_systems, resolve_environment
from devshell.resolver.generator import generate_package_expr, generate_shell_expr
from devshell.resolver.models import SUPPORTED_SYSTEMS, UnsupportedSystemError
from devshell.resolver.toolchain import ToolchainDeclarationError

logger = logging.getLogger(__name__)

FORMATS = ("json", "shell", "package")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="devshell",
        description="Resolve the Rust toolchain and dev shell for a Nix flake project.",
    )
    parser.add_argument(
        "--project-root",
        default=None,
        help="directory containing rust-toolchain.toml / rust-toolchain "
        "(default: DEVSHELL_PROJECT_ROOT or the current directory)",
    )
    parser.add_argument(
        "--system",
        default="auto",
        choices=("auto", "all", *SUPPORTED_SYSTEMS),
        help="platform to resolve; 'auto' asks nix, 'all' resolves every platform",
    )
    parser.add_argument(
        "--format",
        default="json",
        choices=FORMATS,
        help="json descriptor, mkShell expression, or naersk package expression",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def render(args: argparse.Namespace) -> str:
    """Resolve according to parsed arguments and return the text to print."""
    if args.system == "all":
        environments = resolve_all_systems(args.project_root)
        payload = {system: env.model_dump(mode="json") for system, env in environments.items()}
        return json.dumps(payload, indent=2, sort_keys=True)

    system = args.system
    if system == "auto":
        system = asyncio.run(discover_system())

    env = resolve_environment(system, args.project_root)
    if args.format == "shell":
        return generate_shell_expr(env)
    if args.format == "package":
        return generate_package_expr(env)
    return env.model_dump_json(indent=2)


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, resolve, print. Returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.system == "all" and args.format != "json":
        parser.error("--system all only supports --format json")

    logging.basicConfig(
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        level=logging.DEBUG if args.verbose else logging.INFO,
        stream=sys.stderr,
    )

    try:
        settings = get_settings()
    except ValidationError as e:
        logger.error("Invalid configuration: %s", e)
        return 1

    # Token is optional; without one logfire stays local. stdout carries the
    # rendered output, so the console exporter stays off.
    logfire_token = settings.logfire_token
    logfire.configure(
        token=logfire_token.get_secret_value() if logfire_token else None,
        service_name="devshell",
        send_to_logfire="if-token-present",
        console=False,
    )

    try:
        output = render(args)
    except (
        ToolchainDeclarationError,
        UnsupportedSystemError,
        SystemDiscoveryError,
        ValidationError,
    ) as e:
        logger.error("%s", e)
        return 1

    sys.stdout.write(output if output.endswith("\n") else output + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
