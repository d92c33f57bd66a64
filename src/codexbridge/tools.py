"""Tool schema definitions for the codexbridge MCP server.

Parameters are declared once as ``ParameterDef`` values and assembled into
MCP ``Tool`` objects by ``build_tools``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from mcp.types import Tool

from codexbridge.agent import CLIENT_APPROVAL_LEVELS
from codexbridge.params import MAX_TIMEOUT_SECONDS, MIN_TIMEOUT_SECONDS


@dataclass(frozen=True)
class ParameterDef:
    """Definition for a JSON Schema parameter."""

    type: str  # "string", "integer", "boolean"
    description: str
    default: Any = None
    enum: tuple[str, ...] | None = None
    minimum: int | None = None
    maximum: int | None = None


@dataclass(frozen=True)
class ToolDef:
    """Definition for an MCP tool."""

    name: str
    description: str
    parameters: tuple[tuple[str, ParameterDef], ...]  # Ordered (name, param) pairs
    required: tuple[str, ...] = ()


# =============================================================================
# Reusable parameter definitions
# =============================================================================

PROMPT_PARAM = ParameterDef(
    type="string",
    description="The task description to execute.",
)

APPROVAL_LEVEL_PARAM = ParameterDef(
    type="string",
    description=(
        "Approval level: auto-edit (read/write files, requires approval for commands), "
        "full-auto (fully autonomous). Default: auto-edit."
    ),
    enum=CLIENT_APPROVAL_LEVELS,
)

# Note: MODEL_PARAM description names the default, filled in by _build_model_param()
MODEL_PARAM_BASE = ParameterDef(
    type="string",
    description="The model to use.",
)

WORKING_DIR_PARAM = ParameterDef(
    type="string",
    description="The working directory for the task execution.",
)

# Note: TIMEOUT_PARAM default is populated dynamically
TIMEOUT_PARAM_BASE = ParameterDef(
    type="integer",
    description=(
        f"Max execution time ({MIN_TIMEOUT_SECONDS}-{MAX_TIMEOUT_SECONDS}s). "
        "The agent is terminated when it runs longer."
    ),
    minimum=MIN_TIMEOUT_SECONDS,
    maximum=MAX_TIMEOUT_SECONDS,
)

FILE_PATH_PARAM = ParameterDef(
    type="string",
    description="The path to the file to analyze.",
)

CODE_SNIPPET_PARAM = ParameterDef(
    type="string",
    description="Direct code snippet to analyze (alternative to filePath).",
)

QUERY_PARAM = ParameterDef(
    type="string",
    description="The analysis query or question about the code.",
)

ERROR_MESSAGE_PARAM = ParameterDef(
    type="string",
    description="The error message to debug.",
)

DEBUG_FILE_PATH_PARAM = ParameterDef(
    type="string",
    description="The path to the file with the issue.",
)

CONTEXT_PARAM = ParameterDef(
    type="string",
    description="Additional context about the debugging scenario.",
)

DESCRIPTION_PARAM = ParameterDef(
    type="string",
    description="Description of the code to generate.",
)

LANGUAGE_PARAM = ParameterDef(
    type="string",
    description="Programming language for the generated code.",
)

OUTPUT_PATH_PARAM = ParameterDef(
    type="string",
    description="Path where the generated code should be saved.",
)

FRAMEWORK_PARAM = ParameterDef(
    type="string",
    description="Framework or library to use in the generated code.",
)

_COMMON_PARAMS: tuple[tuple[str, ParameterDef], ...] = (
    ("model", MODEL_PARAM_BASE),
    ("workingDir", WORKING_DIR_PARAM),
    ("timeoutSeconds", TIMEOUT_PARAM_BASE),
)


# =============================================================================
# Tool definitions
# =============================================================================

CHAT_TOOL = ToolDef(
    name="chat",
    description=(
        "Chat with Codex CLI in non-interactive mode. Can perform code generation, "
        "refactoring, and various development tasks."
    ),
    parameters=(
        ("prompt", PROMPT_PARAM),
        ("approvalLevel", APPROVAL_LEVEL_PARAM),
        *_COMMON_PARAMS,
    ),
    required=("prompt",),
)

ANALYZE_CODE_TOOL = ToolDef(
    name="analyzeCode",
    description=(
        "Analyze code using Codex CLI in a read-only sandbox. "
        "Provide either filePath or codeSnippet."
    ),
    parameters=(
        ("filePath", FILE_PATH_PARAM),
        ("codeSnippet", CODE_SNIPPET_PARAM),
        ("query", QUERY_PARAM),
        *_COMMON_PARAMS,
    ),
    required=("query",),
)

DEBUG_CODE_TOOL = ToolDef(
    name="debugCode",
    description=(
        "Debug code issues using Codex CLI. Provide an errorMessage, a filePath, or both."
    ),
    parameters=(
        ("errorMessage", ERROR_MESSAGE_PARAM),
        ("filePath", DEBUG_FILE_PATH_PARAM),
        ("context", CONTEXT_PARAM),
        *_COMMON_PARAMS,
    ),
)

GENERATE_CODE_TOOL = ToolDef(
    name="generateCode",
    description=(
        "Generate code using Codex CLI. Files are only written when outputPath is given."
    ),
    parameters=(
        ("description", DESCRIPTION_PARAM),
        ("language", LANGUAGE_PARAM),
        ("outputPath", OUTPUT_PATH_PARAM),
        ("framework", FRAMEWORK_PARAM),
        *_COMMON_PARAMS,
    ),
    required=("description",),
)

CHECK_STATUS_TOOL = ToolDef(
    name="checkStatus",
    description=(
        "Report whether the Codex CLI can be launched under the configured install policy."
    ),
    parameters=(),
)

AGENT_TOOLS: tuple[ToolDef, ...] = (
    CHAT_TOOL,
    ANALYZE_CODE_TOOL,
    DEBUG_CODE_TOOL,
    GENERATE_CODE_TOOL,
)


# =============================================================================
# Schema generation functions
# =============================================================================


def _build_model_param(default_model: str, known_models: tuple[str, ...]) -> ParameterDef:
    others = [model for model in known_models if model != default_model]
    description = f'{MODEL_PARAM_BASE.description} Default: "{default_model}".'
    if others:
        description += " Other options: " + ", ".join(f'"{model}"' for model in others) + "."
    return ParameterDef(type="string", description=description)


def _build_timeout_param(default_timeout: int | None) -> ParameterDef:
    """Create timeout parameter with dynamic default.

    Raises:
        ValueError: If default_timeout is outside the valid range.
    """
    if default_timeout is None:
        return TIMEOUT_PARAM_BASE
    min_timeout = TIMEOUT_PARAM_BASE.minimum
    max_timeout = TIMEOUT_PARAM_BASE.maximum
    if min_timeout is not None and default_timeout < min_timeout:
        raise ValueError(f"default_timeout must be >= {min_timeout}, got {default_timeout}")
    if max_timeout is not None and default_timeout > max_timeout:
        raise ValueError(f"default_timeout must be <= {max_timeout}, got {default_timeout}")
    return ParameterDef(
        type="integer",
        description=TIMEOUT_PARAM_BASE.description,
        default=default_timeout,
        minimum=min_timeout,
        maximum=max_timeout,
    )


def _param_to_schema(param: ParameterDef) -> dict[str, Any]:
    """Convert a ParameterDef to a JSON Schema dict."""
    schema: dict[str, Any] = {"type": param.type}

    if param.description:
        schema["description"] = param.description
    if param.default is not None:
        schema["default"] = param.default
    if param.enum is not None:
        schema["enum"] = list(param.enum)
    if param.minimum is not None:
        schema["minimum"] = param.minimum
    if param.maximum is not None:
        schema["maximum"] = param.maximum

    return schema


def build_input_schema(
    tool: ToolDef,
    default_model: str,
    default_timeout: int | None,
    known_models: tuple[str, ...] = (),
) -> dict[str, Any]:
    """Convert ToolDef to MCP inputSchema dict.

    Args:
        tool: The tool definition to convert.
        default_model: Model used when a request omits one.
        default_timeout: Default timeout in seconds, or None when unbounded.
        known_models: Other model names worth advertising.

    Returns:
        A JSON Schema dict suitable for MCP Tool.inputSchema.
    """
    properties: dict[str, Any] = {}

    for name, param in tool.parameters:
        if name == "model":
            param = _build_model_param(default_model, known_models)
        elif name == "timeoutSeconds":
            param = _build_timeout_param(default_timeout)

        properties[name] = _param_to_schema(param)

    schema: dict[str, Any] = {
        "type": "object",
        "properties": properties,
    }

    if tool.required:
        schema["required"] = list(tool.required)

    return schema


def build_tools(
    default_model: str,
    default_timeout: int | None,
    known_models: tuple[str, ...] = (),
) -> list[Tool]:
    """Build all MCP Tool objects from definitions."""
    return [
        Tool(
            name=tool.name,
            description=tool.description,
            inputSchema=build_input_schema(tool, default_model, default_timeout, known_models),
        )
        for tool in (*AGENT_TOOLS, CHECK_STATUS_TOOL)
    ]


__all__ = ["AGENT_TOOLS", "CHECK_STATUS_TOOL", "build_tools"]
