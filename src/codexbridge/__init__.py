"""MCP server that runs the Codex CLI on behalf of coding assistants."""

from __future__ import annotations

__version__ = "0.1.0"

from .invoker import FailureKind, InvocationResult, invoke
from .resolver import InstallPolicy, NotFoundError, ProbeError, ResolvedCommand, resolve
from .server import main, run, server

__all__ = [
    "__version__",
    "FailureKind",
    "InstallPolicy",
    "InvocationResult",
    "NotFoundError",
    "ProbeError",
    "ResolvedCommand",
    "invoke",
    "main",
    "resolve",
    "run",
    "server",
]
