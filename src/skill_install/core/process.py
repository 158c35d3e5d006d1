"""Bounded subprocess execution for installer commands.

Every installer subprocess goes through run_command_with_timeout: argv only
(never a shell), stdin closed, output captured, and a hard timeout after
which the child is killed and reaped.
"""

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable, Mapping, Sequence

from skill_install.models import CommandResult

logger = logging.getLogger("skill-install.process")

CommandRunner = Callable[..., Awaitable[CommandResult]]


async def run_command_with_timeout(
    argv: Sequence[str],
    *,
    timeout_ms: int,
    env: Mapping[str, str] | None = None,
) -> CommandResult:
    """Run argv and wait at most timeout_ms.

    Never raises for spawn failures or timeouts: both come back with
    code=None and the reason in stderr.
    """
    if not argv:
        return CommandResult(code=None, stderr="empty command")

    proc_env = None
    if env:
        # Inherit host env + overrides (e.g. GOBIN)
        proc_env = {**os.environ, **env}

    logger.debug("Running: %s", " ".join(argv))
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            stdin=asyncio.subprocess.DEVNULL,
            env=proc_env,
        )
    except OSError as e:
        logger.debug("Spawn failed for %s: %s", argv[0], e)
        return CommandResult(code=None, stderr=str(e))

    try:
        stdout, stderr = await asyncio.wait_for(
            process.communicate(),
            timeout=timeout_ms / 1000,
        )
    except asyncio.TimeoutError:
        logger.warning("Command timed out after %dms: %s", timeout_ms, argv[0])
        return CommandResult(code=None, stderr=f"Command timed out after {timeout_ms}ms")
    finally:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()

    logger.debug("Exit %s: %s", process.returncode, argv[0])
    return CommandResult(
        code=process.returncode,
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
    )
