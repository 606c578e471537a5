"""Run an external command with a hard wall-clock limit.

WHY: Whisper and ffmpeg are separate executables. A hung process must
not hold a request open forever, and their stderr must never reach a
client response.

HOW: asyncio.create_subprocess_exec with both pipes captured, bounded
by asyncio.wait_for. On timeout the process is killed and reaped before
returning. The outcome is a CommandResult value; spawn failures (tool
not installed) are reported the same way with returncode 127.

RULES:
- Never raises for tool failures; callers inspect CommandResult
- A timed-out or cancelled process is always killed and awaited (no zombies)
- stdout/stderr are decoded as UTF-8 with replacement
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

logger = logging.getLogger(__name__)

NOT_FOUND_RETURNCODE = 127


@dataclass(frozen=True)
class CommandResult:
    returncode: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out


CommandRunner = Callable[[Sequence[str], float], Awaitable[CommandResult]]
"""Signature shared by run_command and test doubles."""


async def run_command(args: Sequence[str], timeout: float) -> CommandResult:
    """Execute ``args`` and wait at most ``timeout`` seconds for it to exit."""
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError:
        return CommandResult(
            returncode=NOT_FOUND_RETURNCODE,
            stderr="{} not found".format(args[0]),
        )
    except OSError as exc:
        return CommandResult(returncode=1, stderr=str(exc))

    try:
        stdout_b, stderr_b = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
        await proc.wait()
        logger.warning("%s killed after %.0fs timeout", args[0], timeout)
        return CommandResult(returncode=-1, timed_out=True)
    except asyncio.CancelledError:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
        await proc.wait()
        raise

    return CommandResult(
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=(stdout_b or b"").decode("utf-8", errors="replace"),
        stderr=(stderr_b or b"").decode("utf-8", errors="replace"),
    )
