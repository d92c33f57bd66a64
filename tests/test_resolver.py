"""Tests for codexbridge.resolver."""

import sys
from typing import Any

import pytest

from codexbridge import resolver
from codexbridge.resolver import (
    CommandSource,
    InstallPolicy,
    NotFoundError,
    ProbeError,
    ResolvedCommand,
    resolve,
)


def _fake_probe(found: bool, calls: list[str]) -> Any:
    async def probe(name: str) -> bool:
        calls.append(name)
        return found

    return probe


class TestInstallPolicyParse:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (None, InstallPolicy.FORBID),
            ("", InstallPolicy.FORBID),
            ("forbid", InstallPolicy.FORBID),
            ("install", InstallPolicy.INSTALL),
            ("installGlobally", InstallPolicy.INSTALL),
            (" NPX ", InstallPolicy.NPX),
            ("runEphemeral", InstallPolicy.NPX),
        ],
    )
    def test_accepts_names_and_aliases(self, value: str | None, expected: InstallPolicy) -> None:
        assert InstallPolicy.parse(value) is expected

    def test_rejects_unknown(self) -> None:
        with pytest.raises(ValueError, match="Unknown install policy: sometimes"):
            InstallPolicy.parse("sometimes")


class TestResolvedCommand:
    def test_argv_puts_fixed_args_first(self) -> None:
        command = ResolvedCommand("npx", ("--yes", "@openai/codex"), CommandSource.EPHEMERAL)
        assert command.argv(["exec", "hi"]) == ["npx", "--yes", "@openai/codex", "exec", "hi"]

    def test_to_dict(self) -> None:
        command = ResolvedCommand("codex")
        assert command.to_dict() == {"executable": "codex", "fixed_args": [], "source": "path"}
        assert command.is_install is False


class TestLookupCommand:
    def test_uses_which_on_posix(self, monkeypatch: Any) -> None:
        monkeypatch.setattr(resolver, "_is_windows", lambda: False)
        assert resolver._lookup_command("codex") == ["which", "codex"]

    def test_uses_where_on_windows(self, monkeypatch: Any) -> None:
        monkeypatch.setattr(resolver, "_is_windows", lambda: True)
        assert resolver._lookup_command("codex") == ["where", "codex"]


class TestResolve:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("policy", list(InstallPolicy))
    async def test_found_on_path_ignores_policy(self, monkeypatch: Any, policy: InstallPolicy) -> None:
        calls: list[str] = []
        monkeypatch.setattr(resolver, "_probe", _fake_probe(True, calls))

        command = await resolve(policy)

        assert command == ResolvedCommand("codex", ())
        assert calls == ["codex"]

    @pytest.mark.asyncio
    async def test_forbid_raises_not_found(self, monkeypatch: Any) -> None:
        calls: list[str] = []
        monkeypatch.setattr(resolver, "_probe", _fake_probe(False, calls))

        with pytest.raises(NotFoundError, match="npm install -g @openai/codex"):
            await resolve(InstallPolicy.FORBID)
        assert calls == ["codex"]

    @pytest.mark.asyncio
    async def test_install_returns_install_command(self, monkeypatch: Any) -> None:
        calls: list[str] = []
        monkeypatch.setattr(resolver, "_probe", _fake_probe(False, calls))
        monkeypatch.setattr(resolver, "_is_windows", lambda: False)

        command = await resolve(InstallPolicy.INSTALL)

        assert command.executable == "npm"
        assert command.fixed_args[0] == "install"
        assert command.fixed_args == ("install", "-g", "@openai/codex")
        assert command.is_install
        # No second probe: the caller runs the install and re-resolves.
        assert calls == ["codex"]

    @pytest.mark.asyncio
    async def test_npx_returns_ephemeral_runner(self, monkeypatch: Any) -> None:
        monkeypatch.setattr(resolver, "_probe", _fake_probe(False, []))
        monkeypatch.setattr(resolver, "_is_windows", lambda: False)

        command = await resolve(InstallPolicy.NPX)

        assert command == ResolvedCommand(
            "npx", ("--yes", "@openai/codex"), CommandSource.EPHEMERAL
        )

    @pytest.mark.asyncio
    async def test_windows_uses_cmd_shims(self, monkeypatch: Any) -> None:
        monkeypatch.setattr(resolver, "_probe", _fake_probe(False, []))
        monkeypatch.setattr(resolver, "_is_windows", lambda: True)

        assert (await resolve(InstallPolicy.INSTALL)).executable == "npm.cmd"
        assert (await resolve(InstallPolicy.NPX)).executable == "npx.cmd"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("found", [True, False])
    async def test_idempotent(self, monkeypatch: Any, found: bool) -> None:
        monkeypatch.setattr(resolver, "_probe", _fake_probe(found, []))

        first = await resolve(InstallPolicy.NPX)
        second = await resolve(InstallPolicy.NPX)

        assert first == second


class TestProbe:
    @pytest.mark.asyncio
    async def test_exit_zero_means_found(self, monkeypatch: Any) -> None:
        monkeypatch.setattr(
            resolver,
            "_lookup_command",
            lambda name: [sys.executable, "-c", "import sys; sys.exit(0)", name],
        )
        assert await resolver._probe("codex") is True

    @pytest.mark.asyncio
    async def test_nonzero_exit_means_missing(self, monkeypatch: Any) -> None:
        monkeypatch.setattr(
            resolver,
            "_lookup_command",
            lambda name: [sys.executable, "-c", "import sys; sys.exit(1)", name],
        )
        assert await resolver._probe("codex") is False

    @pytest.mark.asyncio
    async def test_output_is_ignored(self, monkeypatch: Any) -> None:
        monkeypatch.setattr(
            resolver,
            "_lookup_command",
            lambda name: [sys.executable, "-c", "print('/usr/bin/codex'); raise SystemExit(1)"],
        )
        assert await resolver._probe("codex") is False

    @pytest.mark.asyncio
    async def test_unrunnable_lookup_raises_probe_error(self, monkeypatch: Any) -> None:
        monkeypatch.setattr(
            resolver,
            "_lookup_command",
            lambda name: ["/nonexistent/codexbridge-which", name],
        )
        with pytest.raises(ProbeError, match="Failed to run /nonexistent/codexbridge-which"):
            await resolve(InstallPolicy.INSTALL)
