import sys
from collections.abc import Callable

import pytest

from codexbridge.resolver import ResolvedCommand


@pytest.fixture
def python_command() -> Callable[..., ResolvedCommand]:
    """Build a ResolvedCommand that runs ``script`` with the test interpreter."""

    def _build(script: str, *fixed_args: str) -> ResolvedCommand:
        return ResolvedCommand(sys.executable, ("-c", script, *fixed_args))

    return _build
