"""Codex CLI configuration and argument vectors."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ApprovalLevel(str, Enum):
    """How autonomously Codex may act without confirmation."""

    READ_ONLY = "read-only"
    AUTO_EDIT = "auto-edit"
    FULL_AUTO = "full-auto"


# Levels a client may request; READ_ONLY is only chosen by the server itself.
CLIENT_APPROVAL_LEVELS: tuple[str, ...] = (
    ApprovalLevel.AUTO_EDIT.value,
    ApprovalLevel.FULL_AUTO.value,
)


@dataclass(frozen=True)
class AgentConfig:
    """Codex CLI contract: flag spellings and defaults."""

    name: str
    default_model: str
    exec_subcommand: str
    model_flag: str
    bypass_flags: tuple[str, ...]
    approval_flags: dict[ApprovalLevel, tuple[str, ...]]
    known_models: tuple[str, ...] = ()


CODEX = AgentConfig(
    name="codex",
    default_model="gpt-5",
    exec_subcommand="exec",
    model_flag="-m",
    bypass_flags=("--skip-git-repo-check",),
    approval_flags={
        ApprovalLevel.READ_ONLY: ("-s", "read-only"),
        ApprovalLevel.AUTO_EDIT: ("-a", "on-failure", "-s", "workspace-write"),
        ApprovalLevel.FULL_AUTO: ("--full-auto",),
    },
    known_models=("gpt-5", "gpt-5-codex", "gpt-4.1", "gpt-4.1-mini", "o3", "o4-mini"),
)


def build_args(
    prompt: str,
    model: str | None = None,
    approval_level: ApprovalLevel = ApprovalLevel.AUTO_EDIT,
    config: AgentConfig = CODEX,
) -> list[str]:
    """Build the Codex argument vector, excluding the executable.

    Args:
        prompt: Task prompt; always the final positional argument.
        model: Model to use. Falls back to ``config.default_model``.
        approval_level: Approval policy to translate into CLI flags.
        config: CLI contract to build against.

    Returns:
        ``["-m", model, <approval flags>, "exec", "--skip-git-repo-check", prompt]``

    Raises:
        ValueError: If model starts with '-' (flag injection prevention).
    """
    model = model or config.default_model
    if model.startswith("-"):
        raise ValueError(f"model cannot start with '-': {model}")
    args = [config.model_flag, model]
    args.extend(config.approval_flags[approval_level])
    args.append(config.exec_subcommand)
    args.extend(config.bypass_flags)
    args.append(prompt)
    return args
