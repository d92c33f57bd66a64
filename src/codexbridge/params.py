"""Validated tool requests and the prompts they produce."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from codexbridge.agent import CLIENT_APPROVAL_LEVELS, ApprovalLevel

MAX_PROMPT_LENGTH = 100_000
MIN_TIMEOUT_SECONDS = 1
MAX_TIMEOUT_SECONDS = 3600


def _optional_str(arguments: Mapping[str, Any], key: str) -> str | None:
    value = arguments.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string")
    return value.strip() or None


def _required_str(arguments: Mapping[str, Any], key: str) -> str:
    if key not in arguments:
        raise ValueError(f"{key} is required")
    value = arguments[key]
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string")
    if not value.strip():
        raise ValueError(f"{key} cannot be empty")
    return value


def validate_prompt(prompt: str) -> str:
    if not prompt or not prompt.strip():
        raise ValueError("prompt cannot be empty")
    if len(prompt) > MAX_PROMPT_LENGTH:
        raise ValueError(f"prompt exceeds {MAX_PROMPT_LENGTH} characters")
    return prompt


def validate_model(model: str | None) -> str | None:
    """Normalize a model name.

    - Strips whitespace
    - Returns None for empty/whitespace-only strings
    - Rejects models starting with '-' (flag injection prevention)
    """
    if not model:
        return None
    model = model.strip()
    if not model:
        return None
    if model.startswith("-"):
        raise ValueError(f"model cannot start with '-': {model}")
    return model


def parse_approval_level(value: Any) -> ApprovalLevel:
    if value is None:
        return ApprovalLevel.AUTO_EDIT
    if value not in CLIENT_APPROVAL_LEVELS:
        allowed = ", ".join(CLIENT_APPROVAL_LEVELS)
        raise ValueError(f"Invalid approvalLevel: {value!r}. Expected one of: {allowed}")
    return ApprovalLevel(value)


def parse_timeout(value: Any) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError("timeoutSeconds must be an integer")
    if value < MIN_TIMEOUT_SECONDS or value > MAX_TIMEOUT_SECONDS:
        raise ValueError(
            f"timeoutSeconds must be between {MIN_TIMEOUT_SECONDS} and {MAX_TIMEOUT_SECONDS}"
        )
    return value


@dataclass(frozen=True)
class InvocationOptions:
    """Settings shared by every agent-backed tool."""

    model: str | None = None
    working_dir: str | None = None
    timeout_seconds: int | None = None

    @classmethod
    def from_arguments(cls, arguments: Mapping[str, Any]) -> InvocationOptions:
        return cls(
            model=validate_model(_optional_str(arguments, "model")),
            working_dir=_optional_str(arguments, "workingDir"),
            timeout_seconds=parse_timeout(arguments.get("timeoutSeconds")),
        )


def _resolve_path(path: str, base_dir: str | None) -> Path:
    candidate = Path(os.path.expanduser(path))
    if not candidate.is_absolute() and base_dir:
        candidate = Path(base_dir) / candidate
    return candidate


def _read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8", errors="replace")


@dataclass(frozen=True)
class ChatRequest:
    prompt: str
    approval_level: ApprovalLevel = ApprovalLevel.AUTO_EDIT

    @classmethod
    def from_arguments(cls, arguments: Mapping[str, Any]) -> ChatRequest:
        return cls(
            prompt=validate_prompt(_required_str(arguments, "prompt")),
            approval_level=parse_approval_level(arguments.get("approvalLevel")),
        )

    def build_prompt(self, base_dir: str | None = None) -> str:
        return self.prompt


@dataclass(frozen=True)
class AnalyzeCodeRequest:
    query: str
    file_path: str | None = None
    code_snippet: str | None = None
    approval_level: ApprovalLevel = ApprovalLevel.READ_ONLY

    @classmethod
    def from_arguments(cls, arguments: Mapping[str, Any]) -> AnalyzeCodeRequest:
        query = _required_str(arguments, "query")
        file_path = _optional_str(arguments, "filePath")
        code_snippet = arguments.get("codeSnippet")
        if code_snippet is not None and not isinstance(code_snippet, str):
            raise ValueError("codeSnippet must be a string")
        if not file_path and not code_snippet:
            raise ValueError("Either filePath or codeSnippet must be provided")
        return cls(query=query, file_path=file_path, code_snippet=code_snippet or None)

    def build_prompt(self, base_dir: str | None = None) -> str:
        if self.file_path:
            path = _resolve_path(self.file_path, base_dir)
            if not path.is_file():
                raise ValueError(f"File not found: {self.file_path}")
            code = _read_text(path)
        else:
            code = self.code_snippet or ""
        return validate_prompt(
            f"Analyze the following code and answer this query: {self.query}\n\n"
            f"Code:\n```\n{code}\n```"
        )


@dataclass(frozen=True)
class DebugCodeRequest:
    error_message: str | None = None
    file_path: str | None = None
    context: str | None = None
    approval_level: ApprovalLevel = ApprovalLevel.AUTO_EDIT

    @classmethod
    def from_arguments(cls, arguments: Mapping[str, Any]) -> DebugCodeRequest:
        error_message = _optional_str(arguments, "errorMessage")
        file_path = _optional_str(arguments, "filePath")
        if not error_message and not file_path:
            raise ValueError("Either errorMessage or filePath must be provided")
        return cls(
            error_message=error_message,
            file_path=file_path,
            context=_optional_str(arguments, "context"),
        )

    def build_prompt(self, base_dir: str | None = None) -> str:
        prompt = "Debug the following issue:\n\n"
        if self.error_message:
            prompt += f"Error Message:\n{self.error_message}\n\n"
        if self.file_path:
            path = _resolve_path(self.file_path, base_dir)
            if path.is_file():
                prompt += f"File ({self.file_path}):\n```\n{_read_text(path)}\n```\n\n"
            else:
                prompt += f"File path: {self.file_path} (file not found)\n\n"
        if self.context:
            prompt += f"Additional Context:\n{self.context}\n"
        prompt += "\nPlease identify the issue and provide a solution."
        return validate_prompt(prompt)


@dataclass(frozen=True)
class GenerateCodeRequest:
    description: str
    language: str | None = None
    framework: str | None = None
    output_path: str | None = None

    @classmethod
    def from_arguments(cls, arguments: Mapping[str, Any]) -> GenerateCodeRequest:
        return cls(
            description=_required_str(arguments, "description"),
            language=_optional_str(arguments, "language"),
            framework=_optional_str(arguments, "framework"),
            output_path=_optional_str(arguments, "outputPath"),
        )

    @property
    def approval_level(self) -> ApprovalLevel:
        # Writing a file needs edit rights; otherwise the code is only returned.
        if self.output_path:
            return ApprovalLevel.AUTO_EDIT
        return ApprovalLevel.READ_ONLY

    def build_prompt(self, base_dir: str | None = None) -> str:
        prompt = f"Generate code with the following requirements:\n\n{self.description}"
        if self.language:
            prompt += f"\n\nProgramming Language: {self.language}"
        if self.framework:
            prompt += f"\nFramework/Library: {self.framework}"
        if self.output_path:
            prompt += f"\n\nSave the generated code to: {self.output_path}"
        return validate_prompt(prompt)


REQUEST_TYPES: dict[str, type[Any]] = {
    "chat": ChatRequest,
    "analyzeCode": AnalyzeCodeRequest,
    "debugCode": DebugCodeRequest,
    "generateCode": GenerateCodeRequest,
}


def parse_request(tool_name: str, arguments: Mapping[str, Any]) -> tuple[Any, InvocationOptions]:
    """Validate ``arguments`` for ``tool_name``.

    Raises:
        ValueError: On unknown tools or invalid arguments.
    """
    try:
        request_type = REQUEST_TYPES[tool_name]
    except KeyError:
        raise ValueError(f"Unknown tool: {tool_name}") from None
    return request_type.from_arguments(arguments), InvocationOptions.from_arguments(arguments)
