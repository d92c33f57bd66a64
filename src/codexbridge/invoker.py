"""Run one Codex CLI invocation and classify how it ended."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
import time
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from codexbridge.resolver import ResolvedCommand

logger = logging.getLogger("codexbridge.invoker")

_READ_CHUNK_BYTES = 64 * 1024
_TERMINATE_GRACE_SECONDS = 5.0


class FailureKind(str, Enum):
    NON_ZERO_EXIT = "non_zero_exit"
    LAUNCH_ERROR = "launch_error"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class InvocationResult:
    """Outcome of a single agent process."""

    status: str
    output: str
    duration_ms: int
    kind: FailureKind | None = None
    message: str | None = None
    exit_code: int | None = None
    stderr: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "success"

    @classmethod
    def success(
        cls, output: str, *, duration_ms: int, stderr: str | None = None, exit_code: int = 0
    ) -> InvocationResult:
        return cls(
            status="success",
            output=output,
            duration_ms=duration_ms,
            exit_code=exit_code,
            stderr=stderr,
        )

    @classmethod
    def failure(
        cls,
        kind: FailureKind,
        message: str,
        *,
        duration_ms: int,
        output: str = "",
        exit_code: int | None = None,
        stderr: str | None = None,
    ) -> InvocationResult:
        return cls(
            status="error",
            output=output,
            duration_ms=duration_ms,
            kind=kind,
            message=message,
            exit_code=exit_code,
            stderr=stderr,
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "status": self.status,
            "output": self.output,
            "duration_ms": self.duration_ms,
        }
        if self.kind is not None:
            payload["kind"] = self.kind.value
        if self.message is not None:
            payload["message"] = self.message
        if self.exit_code is not None:
            payload["exit_code"] = self.exit_code
        if self.stderr is not None:
            payload["stderr"] = self.stderr
        return payload


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _decode(chunks: list[bytes]) -> str:
    return b"".join(chunks).decode("utf-8", errors="replace")


async def _drain(stream: asyncio.StreamReader | None, chunks: list[bytes]) -> None:
    if stream is None:
        return
    while True:
        chunk = await stream.read(_READ_CHUNK_BYTES)
        if not chunk:
            return
        chunks.append(chunk)


def _signal_group(proc: asyncio.subprocess.Process, sig: int) -> None:
    if sys.platform == "win32":
        if sig == signal.SIGTERM:
            proc.terminate()
        else:
            proc.kill()
        return
    os.killpg(proc.pid, sig)


async def _terminate_process(proc: asyncio.subprocess.Process) -> None:
    """SIGTERM the child's process group, escalating to SIGKILL, then reap it."""
    if proc.returncode is not None:
        return
    try:
        _signal_group(proc, signal.SIGTERM)
    except ProcessLookupError:
        await proc.wait()
        return
    try:
        await asyncio.wait_for(proc.wait(), _TERMINATE_GRACE_SECONDS)
        return
    except asyncio.TimeoutError:
        pass
    try:
        _signal_group(proc, getattr(signal, "SIGKILL", signal.SIGTERM))
    except ProcessLookupError:
        pass
    await proc.wait()


async def invoke(
    command: ResolvedCommand,
    args: list[str] | tuple[str, ...],
    *,
    cwd: str | None = None,
    timeout: float | None = None,
    env: Mapping[str, str] | None = None,
) -> InvocationResult:
    """Launch ``command`` with ``args`` and wait for it to exit.

    ``fixed_args`` always precede ``args``. The child gets an empty stdin and
    runs in ``cwd`` without touching this process's working directory.
    Process outcomes are returned, never raised; task cancellation terminates
    the child and propagates.

    Args:
        command: How to launch the agent.
        args: Caller-built arguments, passed through verbatim and in order.
        cwd: Working directory for the child. ``None`` inherits ours.
        timeout: Seconds before the child is terminated. ``None`` waits forever.
        env: Full child environment. ``None`` inherits ours.
    """
    argv = command.argv(args)
    start = time.monotonic()
    logger.debug("Spawning %s (cwd=%s, %d args)", command.executable, cwd, len(argv) - 1)
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            env=dict(env) if env is not None else None,
            start_new_session=sys.platform != "win32",
        )
    except OSError as exc:
        logger.error("Failed to start %s: %s", command.executable, exc)
        return InvocationResult.failure(
            FailureKind.LAUNCH_ERROR,
            str(exc),
            duration_ms=_elapsed_ms(start),
        )

    stdout_chunks: list[bytes] = []
    stderr_chunks: list[bytes] = []

    async def _communicate() -> int:
        await asyncio.gather(
            _drain(proc.stdout, stdout_chunks),
            _drain(proc.stderr, stderr_chunks),
        )
        return await proc.wait()

    try:
        returncode = await asyncio.wait_for(_communicate(), timeout)
    except asyncio.TimeoutError:
        await _terminate_process(proc)
        duration_ms = _elapsed_ms(start)
        stdout = _decode(stdout_chunks)
        stderr = _decode(stderr_chunks)
        logger.warning(
            "%s timed out after %ss (captured %d chars stdout, %d chars stderr)",
            command.executable,
            timeout,
            len(stdout),
            len(stderr),
        )
        return InvocationResult.failure(
            FailureKind.TIMEOUT,
            f"{command.executable} timed out after {timeout}s",
            duration_ms=duration_ms,
            output=stdout,
            stderr=stderr or None,
        )
    finally:
        # Covers cancellation as well as timeout; a no-op once the child exited.
        await _terminate_process(proc)

    duration_ms = _elapsed_ms(start)
    stdout = _decode(stdout_chunks)
    stderr = _decode(stderr_chunks)
    if returncode == 0:
        if stderr:
            logger.debug("%s wrote to stderr on success: %s", command.executable, stderr[:500])
        logger.info("%s completed in %dms", command.executable, duration_ms)
        return InvocationResult.success(stdout, duration_ms=duration_ms, stderr=stderr or None)

    logger.info("%s exited with code %s", command.executable, returncode)
    return InvocationResult.failure(
        FailureKind.NON_ZERO_EXIT,
        f"{command.executable} exited with code {returncode}: {stderr}",
        duration_ms=duration_ms,
        output=stdout,
        exit_code=returncode,
        stderr=stderr,
    )
