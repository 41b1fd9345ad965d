"""Async subprocess runner for external media tools.

Each command runs as its own OS process. ``communicate()`` reads stdout and
stderr concurrently while waiting for exit, so a chatty tool can't fill a pipe
and stall. Only the awaiting request is suspended; the event loop keeps
serving everything else.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional, Sequence

from tubely.core.metrics import MEDIA_COMMAND_DURATION_SECONDS, MEDIA_COMMANDS_TOTAL

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of a finished external command."""
    args: list[str]
    exit_code: int
    stdout: str
    stderr: str
    duration: float

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class CommandError(Exception):
    """Raised when a command can't be started or doesn't finish in time."""

    def __init__(self, message: str, args: Sequence[str]):
        super().__init__(message)
        self.message = message
        self.command = list(args)


class CommandTimeout(CommandError):
    """Raised when a command exceeds its time budget."""


class CommandSpawnError(CommandError):
    """Raised when the executable can't be launched."""


async def run_command(
    args: Sequence[str],
    timeout: Optional[float] = None,
    name: Optional[str] = None,
) -> CommandResult:
    """Run ``args`` to completion and collect both output streams.

    A non-zero exit is reported through ``CommandResult.exit_code``; only
    launch failures and timeouts raise.

    Args:
        args: Executable followed by its arguments
        timeout: Seconds to wait before killing the process
        name: Label for metrics (defaults to the executable)

    Returns:
        CommandResult with decoded stdout/stderr

    Raises:
        CommandSpawnError: If the executable can't be started
        CommandTimeout: If the process outlives ``timeout``
    """
    argv = [str(a) for a in args]
    label = name or argv[0]
    start = time.perf_counter()

    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        MEDIA_COMMANDS_TOTAL.labels(command=label, outcome="spawn_error").inc()
        raise CommandSpawnError(f"{label} could not be started: {e}", argv) from e

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        await _terminate(proc)
        MEDIA_COMMANDS_TOTAL.labels(command=label, outcome="timeout").inc()
        raise CommandTimeout(f"{label} timed out after {timeout}s", argv)
    except asyncio.CancelledError:
        # Client went away; don't leave the tool running.
        await _terminate(proc)
        raise

    duration = time.perf_counter() - start
    MEDIA_COMMAND_DURATION_SECONDS.labels(command=label).observe(duration)
    MEDIA_COMMANDS_TOTAL.labels(
        command=label, outcome="success" if proc.returncode == 0 else "failed"
    ).inc()

    logger.debug(
        f"{label} exited with {proc.returncode}",
        extra={"command": label, "exit_code": proc.returncode, "duration_s": round(duration, 3)},
    )

    return CommandResult(
        args=argv,
        exit_code=proc.returncode,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
        duration=duration,
    )


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    """Kill ``proc`` if still running and reap it."""
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    await proc.wait()
