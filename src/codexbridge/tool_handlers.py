"""MCP protocol-layer tool dispatch for codexbridge.server."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from mcp.types import TextContent

from codexbridge.agent import build_args
from codexbridge.invoker import InvocationResult
from codexbridge.params import parse_request
from codexbridge.resolver import CodexBridgeError, ResolvedCommand
from codexbridge.telemetry import generate_request_id, set_attributes, trace_span

RunAgentFn = Callable[
    [ResolvedCommand, list[str], str, int | None],
    Awaitable[InvocationResult],
]


@dataclass(frozen=True)
class ToolHandlerDeps:
    """Protocol-facing dependencies from the orchestration layer."""

    validate_cwd: Callable[[str | None], str]
    resolve_model: Callable[[str | None], str]
    resolve_timeout: Callable[[int | None], int | None]
    resolve_agent: Callable[[], Awaitable[ResolvedCommand]]
    run_agent: RunAgentFn
    status_check: Callable[[], Awaitable[dict[str, Any]]]


def json_text(payload: Any) -> list[TextContent]:
    """Serialize payload into the MCP text transport format."""
    return [TextContent(type="text", text=json.dumps(payload, ensure_ascii=True))]


def enforce_response_limit(
    content: list[TextContent],
    tool_name: str,
    *,
    max_response_bytes: int,
    logger: logging.Logger,
) -> list[TextContent]:
    """Replace oversized MCP responses with a compact error payload."""
    serialized = json.dumps(
        [{"type": item.type, "text": item.text} for item in content],
        ensure_ascii=True,
    )
    total_bytes = len(serialized)
    if total_bytes <= max_response_bytes:
        return content

    logger.warning(
        "Response payload exceeded limit for %s: %d bytes (max %d)",
        tool_name,
        total_bytes,
        max_response_bytes,
    )
    return json_text(
        {
            "status": "error",
            "message": "Response payload too large",
            "circuit_breaker": {
                "triggered": True,
                "original_bytes": total_bytes,
                "max_bytes": max_response_bytes,
                "tool": tool_name[:200],
            },
        }
    )


async def _run_agent_tool(
    name: str,
    arguments: dict[str, Any],
    *,
    deps: ToolHandlerDeps,
    request_id: str,
    span: Any,
) -> dict[str, Any]:
    request, options = parse_request(name, arguments)
    cwd = deps.validate_cwd(options.working_dir)
    model = deps.resolve_model(options.model)
    timeout_seconds = deps.resolve_timeout(options.timeout_seconds)
    args = build_args(request.build_prompt(cwd), model, request.approval_level)
    set_attributes(
        span,
        {
            "model": model,
            "approval_level": request.approval_level.value,
            "timeout_seconds": timeout_seconds,
        },
    )

    command = await deps.resolve_agent()
    try:
        result = await deps.run_agent(command, args, cwd, timeout_seconds)
    except asyncio.CancelledError:
        return {"status": "cancelled", "output": "", "request_id": request_id}

    set_attributes(span, {"status": result.status, "duration_ms": result.duration_ms})
    return {**result.to_dict(), "request_id": request_id}


async def handle_tool(
    name: str,
    arguments: dict[str, Any],
    *,
    deps: ToolHandlerDeps,
    logger: logging.Logger,
) -> list[TextContent]:
    """Dispatch MCP tool calls while delegating execution to orchestration deps."""
    request_id = generate_request_id()
    try:
        with trace_span(
            f"handle_tool/{name}",
            attributes={"tool": name, "request_id": request_id},
        ) as span:
            if name == "checkStatus":
                return json_text(await deps.status_check())
            payload = await _run_agent_tool(
                name, arguments or {}, deps=deps, request_id=request_id, span=span
            )
            return json_text(payload)
    except CodexBridgeError as exc:
        logger.error("Cannot launch codex: %s", exc)
        return json_text(
            {"status": "error", "kind": exc.kind, "message": str(exc), "request_id": request_id}
        )
    except ValueError as exc:
        logger.warning("Validation error: %s", exc)
        return json_text({"status": "error", "message": str(exc), "request_id": request_id})
    except Exception as exc:
        logger.error("Unhandled error: %s", exc)
        return json_text({"status": "error", "message": str(exc), "request_id": request_id})
