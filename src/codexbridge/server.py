"""MCP server exposing the Codex CLI as tools."""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from codexbridge import tool_handlers
from codexbridge.agent import CODEX
from codexbridge.invoker import InvocationResult, invoke
from codexbridge.params import MAX_TIMEOUT_SECONDS, MIN_TIMEOUT_SECONDS, validate_model
from codexbridge.resolver import (
    PACKAGE_NAME,
    CodexBridgeError,
    CommandSource,
    InstallError,
    InstallPolicy,
    ResolvedCommand,
    resolve,
)
from codexbridge.telemetry import trace_span
from codexbridge.tools import build_tools

server = Server("codexbridge")

logger = logging.getLogger("codexbridge")


def _timeout_from_env(value: str | None) -> int | None:
    seconds = int(value or "600")
    if seconds == 0:
        return None
    if seconds < MIN_TIMEOUT_SECONDS or seconds > MAX_TIMEOUT_SECONDS:
        raise ValueError(
            f"CODEXBRIDGE_TIMEOUT must be 0 or between {MIN_TIMEOUT_SECONDS} "
            f"and {MAX_TIMEOUT_SECONDS}, got {seconds}"
        )
    return seconds


INSTALL_POLICY = InstallPolicy.parse(os.environ.get("CODEXBRIDGE_INSTALL_POLICY"))
DEFAULT_MODEL = validate_model(os.environ.get("CODEXBRIDGE_MODEL")) or CODEX.default_model
DEFAULT_TIMEOUT = _timeout_from_env(os.environ.get("CODEXBRIDGE_TIMEOUT"))
INSTALL_TIMEOUT = 600
STATUS_TIMEOUT = 30
STRICT_MODE = os.environ.get("CODEXBRIDGE_STRICT", "").strip().lower() in {"1", "true"}
_ALLOWED_DIRS_ENV = os.environ.get("CODEXBRIDGE_ALLOWED_DIRS")
ALLOWED_DIRS = [
    os.path.realpath(path)
    for path in (_ALLOWED_DIRS_ENV.split(os.pathsep) if _ALLOWED_DIRS_ENV else [])
    if path
]
MAX_RESPONSE_BYTES = int(os.environ.get("CODEXBRIDGE_MAX_RESPONSE_BYTES", "5000000"))
if MAX_RESPONSE_BYTES < 1_000 or MAX_RESPONSE_BYTES > 50_000_000:
    raise ValueError("CODEXBRIDGE_MAX_RESPONSE_BYTES must be between 1000 and 50000000")

_install_lock = asyncio.Lock()


def _configure_logging() -> None:
    level = os.environ.get("CODEXBRIDGE_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def _warn_if_unrestricted() -> None:
    if ALLOWED_DIRS:
        return
    message = (
        "CODEXBRIDGE_ALLOWED_DIRS is not set. workingDir may point anywhere. "
        f"Set CODEXBRIDGE_ALLOWED_DIRS=/path1{os.pathsep}/path2 to restrict."
    )
    if STRICT_MODE:
        logger.error(message)
        print(message, file=sys.stderr)
        sys.exit(1)
        return
    logger.warning(message)


def _policy_from_argv(argv: list[str], default: InstallPolicy) -> InstallPolicy:
    if "--allow-install" in argv:
        return InstallPolicy.INSTALL
    if "--allow-npx" in argv:
        return InstallPolicy.NPX
    return default


def _validate_cwd(cwd: str | None) -> str:
    resolved = os.path.realpath(os.path.expanduser(cwd) if cwd else os.getcwd())
    if not os.path.isdir(resolved):
        raise ValueError(f"workingDir is not a directory: {cwd}")
    if not ALLOWED_DIRS:
        return resolved
    for allowed in ALLOWED_DIRS:
        allowed_real = os.path.realpath(allowed)
        if os.path.commonpath([resolved, allowed_real]) == allowed_real:
            return resolved
    raise ValueError("workingDir is not in CODEXBRIDGE_ALLOWED_DIRS")


def _resolve_model(model_param: str | None) -> str:
    """Resolve model: param > CODEXBRIDGE_MODEL > CLI default."""
    return validate_model(model_param) or DEFAULT_MODEL


def _resolve_timeout(timeout_seconds: int | None) -> int | None:
    if timeout_seconds is not None:
        return timeout_seconds
    return DEFAULT_TIMEOUT


async def _resolve_agent() -> ResolvedCommand:
    """Resolve the agent command, running a global install first if the policy asks for one."""
    command = await resolve(INSTALL_POLICY)
    if not command.is_install:
        return command

    async with _install_lock:
        # Another request may have finished the install while this one waited.
        command = await resolve(INSTALL_POLICY)
        if not command.is_install:
            return command
        logger.warning("codex not found; installing %s", PACKAGE_NAME)
        with trace_span("install", attributes={"executable": command.executable}):
            result = await invoke(command, [], timeout=INSTALL_TIMEOUT)
        if not result.ok:
            raise InstallError(f"Failed to install {PACKAGE_NAME}: {result.message}")
        logger.info("Installed %s", PACKAGE_NAME)
        return await resolve(InstallPolicy.FORBID)


async def _run_agent(
    command: ResolvedCommand,
    args: list[str],
    cwd: str,
    timeout_seconds: int | None,
) -> InvocationResult:
    logger.debug("Running codex with prompt: %s...", args[-1][:100] if args else "")
    with trace_span(
        "agent",
        attributes={
            "executable": command.executable,
            "source": command.source.value,
            "timeout_seconds": timeout_seconds,
        },
    ):
        return await invoke(command, args, cwd=cwd, timeout=timeout_seconds)


def _config_summary() -> dict[str, Any]:
    return {
        "install_policy": INSTALL_POLICY.value,
        "default_model": DEFAULT_MODEL,
        "timeout_seconds": DEFAULT_TIMEOUT,
        "strict_mode": STRICT_MODE,
        "allowed_dirs": ALLOWED_DIRS or None,
        "unrestricted": not ALLOWED_DIRS,
    }


async def _status_check() -> dict[str, Any]:
    config = _config_summary()
    try:
        command = await resolve(INSTALL_POLICY)
    except CodexBridgeError as exc:
        return {"status": "error", "kind": exc.kind, "message": str(exc), "config": config}

    payload: dict[str, Any] = {"command": command.to_dict(), "config": config}
    if command.source is not CommandSource.PATH:
        payload["status"] = "success"
        payload["message"] = (
            f"codex not on PATH; will run via {command.executable} ({command.source.value})"
        )
        return payload

    result = await invoke(command, ["--version"], timeout=STATUS_TIMEOUT)
    if not result.ok:
        payload["status"] = "error"
        payload["message"] = "codex CLI error"
        payload["details"] = result.to_dict()
        return payload
    payload["status"] = "success"
    payload["message"] = "codex CLI available"
    payload["version"] = result.output.strip()
    return payload


@server.list_tools()
async def list_tools() -> list[Tool]:
    """Build MCP tool metadata."""
    return build_tools(
        default_model=DEFAULT_MODEL,
        default_timeout=DEFAULT_TIMEOUT,
        known_models=CODEX.known_models,
    )


def _build_tool_handler_deps() -> tool_handlers.ToolHandlerDeps:
    """Collect orchestration callbacks for protocol-layer dispatch."""
    return tool_handlers.ToolHandlerDeps(
        validate_cwd=_validate_cwd,
        resolve_model=_resolve_model,
        resolve_timeout=_resolve_timeout,
        resolve_agent=_resolve_agent,
        run_agent=_run_agent,
        status_check=_status_check,
    )


async def handle_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Dispatch a tool invocation with validation and stable error payloads.

    Separated from ``call_tool`` so tests can invoke tool logic without the
    MCP decorator.
    """
    return await tool_handlers.handle_tool(
        name,
        arguments,
        deps=_build_tool_handler_deps(),
        logger=logger,
    )


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """MCP tool handler -- delegates to ``handle_tool`` with response limit."""
    return tool_handlers.enforce_response_limit(
        await handle_tool(name, arguments),
        name,
        max_response_bytes=MAX_RESPONSE_BYTES,
        logger=logger,
    )


async def run() -> None:
    """Run the MCP server over stdio until the client disconnects."""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )


def main() -> None:
    """CLI entry point that checks codex can be launched, then starts the server."""
    global INSTALL_POLICY

    _configure_logging()
    _warn_if_unrestricted()
    INSTALL_POLICY = _policy_from_argv(sys.argv[1:], INSTALL_POLICY)
    try:
        command = asyncio.run(resolve(INSTALL_POLICY))
    except CodexBridgeError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    logger.info("Resolved codex command: %s", " ".join(command.argv()))
    asyncio.run(run())


if __name__ == "__main__":
    main()
