"""Locate the Codex CLI and decide how to launch it."""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger("codexbridge.resolver")

CLI_NAME = "codex"
PACKAGE_NAME = "@openai/codex"


class CodexBridgeError(Exception):
    """Base error for codexbridge."""

    kind = "error"


class NotFoundError(CodexBridgeError):
    """Codex CLI is missing and the install policy does not permit acquiring it."""

    kind = "not_found"


class ProbeError(CodexBridgeError):
    """The PATH lookup tool itself could not be run."""

    kind = "probe_error"


class InstallError(CodexBridgeError):
    """Running the install command returned by ``resolve`` failed."""

    kind = "install_failed"


class InstallPolicy(str, Enum):
    """What to do when ``codex`` is not on PATH."""

    FORBID = "forbid"
    INSTALL = "install"
    NPX = "npx"

    @classmethod
    def parse(cls, value: str | None) -> InstallPolicy:
        """Parse a policy name, accepting a few descriptive aliases."""
        normalized = (value or "").strip().lower()
        if not normalized:
            return cls.FORBID
        normalized = _POLICY_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            available = ", ".join(policy.value for policy in cls)
            raise ValueError(f"Unknown install policy: {value}. Available: {available}") from None


_POLICY_ALIASES = {
    "installglobally": "install",
    "global": "install",
    "runephemeral": "npx",
    "ephemeral": "npx",
}


class CommandSource(str, Enum):
    """How a ResolvedCommand was obtained."""

    PATH = "path"
    INSTALL = "install"
    EPHEMERAL = "ephemeral"


@dataclass(frozen=True)
class ResolvedCommand:
    """Executable plus the fixed arguments that precede every call."""

    executable: str
    fixed_args: tuple[str, ...] = ()
    source: CommandSource = CommandSource.PATH

    def argv(self, args: list[str] | tuple[str, ...] = ()) -> list[str]:
        return [self.executable, *self.fixed_args, *args]

    @property
    def is_install(self) -> bool:
        return self.source is CommandSource.INSTALL

    def to_dict(self) -> dict[str, object]:
        return {
            "executable": self.executable,
            "fixed_args": list(self.fixed_args),
            "source": self.source.value,
        }


def _is_windows() -> bool:
    return sys.platform == "win32"


def _lookup_command(name: str) -> list[str]:
    """Platform lookup command for ``name``; only its exit status is used."""
    return ["where" if _is_windows() else "which", name]


def _package_manager(tool: str) -> str:
    # npm and npx ship as .cmd shims on Windows.
    return f"{tool}.cmd" if _is_windows() else tool


def install_hint() -> str:
    return (
        f"Install it with: npm install -g {PACKAGE_NAME}, or start the server with "
        "CODEXBRIDGE_INSTALL_POLICY=install (or npx) to provision it automatically."
    )


async def _probe(name: str) -> bool:
    """Return True when the lookup command exits 0 for ``name``.

    Raises:
        ProbeError: If the lookup command cannot be started.
    """
    lookup = _lookup_command(name)
    try:
        proc = await asyncio.create_subprocess_exec(
            *lookup,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError as exc:
        raise ProbeError(f"Failed to run {lookup[0]} to locate {name}: {exc}") from exc
    returncode = await proc.wait()
    logger.debug("%s exited with %s", " ".join(lookup), returncode)
    return returncode == 0


async def resolve(policy: InstallPolicy = InstallPolicy.FORBID) -> ResolvedCommand:
    """Decide how to launch the Codex CLI under ``policy``.

    Spawns exactly one lookup process. An ``install`` resolution is a command
    for the caller to run once; this function does not run it or probe again.

    Raises:
        NotFoundError: ``codex`` is not on PATH and policy is ``forbid``.
        ProbeError: The lookup tool could not be started.
    """
    if await _probe(CLI_NAME):
        return ResolvedCommand(CLI_NAME)

    if policy is InstallPolicy.INSTALL:
        logger.info("%s not found on PATH; resolving to a global npm install", CLI_NAME)
        return ResolvedCommand(
            _package_manager("npm"),
            ("install", "-g", PACKAGE_NAME),
            CommandSource.INSTALL,
        )
    if policy is InstallPolicy.NPX:
        logger.info("%s not found on PATH; running it through npx", CLI_NAME)
        return ResolvedCommand(
            _package_manager("npx"),
            ("--yes", PACKAGE_NAME),
            CommandSource.EPHEMERAL,
        )
    raise NotFoundError(f"{CLI_NAME} CLI not found on PATH. {install_hint()}")
