"""Async subprocess runner for devshell.

The resolver itself never shells out. The only external call is the
read-only `nix eval` used by system discovery, and it goes through this
module so that tests can patch a single seam.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# `nix eval` of a builtin is instant once the daemon is up; a cold store
# may still need to download the nix registry, so leave some headroom.
DEFAULT_TIMEOUT_SECONDS = 30


@dataclass
class CommandResult:
    """Outcome of a single CLI invocation, with whitespace-stripped output."""

    stdout: str
    stderr: str
    returncode: int

    def __post_init__(self) -> None:
        self.stdout = self.stdout.strip()
        self.stderr = self.stderr.strip()

    @property
    def success(self) -> bool:
        return self.returncode == 0


async def run_command(*args: str, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> CommandResult:
    """Run a command and collect its output.

    Raises:
        TimeoutError: The command ran longer than timeout_seconds; the child
            is killed first.
        FileNotFoundError: The program is not on PATH.
    """
    command = " ".join(args)
    logger.debug("Running %s", command)
    proc = await asyncio.create_subprocess_exec(
        *args,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )

    try:
        out, err = await asyncio.wait_for(proc.communicate(), timeout=timeout_seconds)
    except TimeoutError:
        proc.kill()
        await proc.wait()
        msg = f"Command timed out after {timeout_seconds}s: {command}"
        raise TimeoutError(msg) from None

    result = CommandResult(
        stdout=(out or b"").decode(),
        stderr=(err or b"").decode(),
        returncode=proc.returncode or 0,
    )
    if not result.success:
        logger.debug("%s exited %d: %s", args[0], result.returncode, result.stderr)
    return result
