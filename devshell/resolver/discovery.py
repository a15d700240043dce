"""System discovery — asks Nix which platform the current machine is.

`--system auto` on the command line needs the Nix platform identifier of
the host (e.g. "aarch64-darwin"). Python's own platform strings do not map
cleanly onto Nix's, so the answer comes from Nix itself:

    nix eval --impure --raw --expr builtins.currentSystem

The result never changes for the lifetime of a process, so it is cached
after the first successful call.
"""

from __future__ import annotations

import logfire

from devshell.resolver.models import UnsupportedSystemError, validate_system
from devshell.tools.cli import CommandResult, run_command

_cache: str | None = None


class SystemDiscoveryError(Exception):
    """Raised when the current system cannot be determined."""


async def run_nix_current_system() -> CommandResult:
    """Run the `nix eval` query for builtins.currentSystem.

    Separated from discover_system for testability — tests mock this function.
    --impure is required: currentSystem is not available in pure evaluation.
    """
    return await run_command(
        "nix",
        "eval",
        "--impure",
        "--raw",
        "--expr",
        "builtins.currentSystem",
    )


async def discover_system(*, use_cache: bool = True) -> str:
    """Return the Nix platform identifier of the current machine.

    Args:
        use_cache: If True (default), reuse the result of a previous call.

    Raises:
        SystemDiscoveryError: nix is missing, times out, fails, or reports a
            platform outside SUPPORTED_SYSTEMS.
    """
    global _cache  # noqa: PLW0603

    if use_cache and _cache is not None:
        return _cache

    with logfire.span("system.discover"):
        try:
            result = await run_nix_current_system()
        except FileNotFoundError as e:
            msg = "nix is not installed or not on PATH"
            raise SystemDiscoveryError(msg) from e
        except TimeoutError as e:
            raise SystemDiscoveryError(str(e)) from e

        if not result.success:
            msg = f"nix eval failed (exit {result.returncode}): {result.stderr}"
            raise SystemDiscoveryError(msg)

        try:
            system = validate_system(result.stdout)
        except UnsupportedSystemError as e:
            raise SystemDiscoveryError(str(e)) from e

        logfire.info("Discovered system {system}", system=system)

    if use_cache:
        _cache = system

    return system


def clear_cache() -> None:
    """Forget the discovered system (tests)."""
    global _cache  # noqa: PLW0603
    _cache = None
