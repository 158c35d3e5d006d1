"""Bounded process runner against real subprocesses (the Python interpreter)."""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from skill_install.core.process import run_command_with_timeout


def test_captures_output_and_exit_code():
    argv = [sys.executable, "-c", "import sys; print('hi'); print('oops', file=sys.stderr); sys.exit(3)"]
    result = asyncio.run(run_command_with_timeout(argv, timeout_ms=10_000))
    assert result.code == 3
    assert result.stdout.strip() == "hi"
    assert result.stderr.strip() == "oops"


def test_timeout_kills_and_returns_null_code():
    argv = [sys.executable, "-c", "import time; time.sleep(30)"]
    result = asyncio.run(run_command_with_timeout(argv, timeout_ms=300))
    assert result.code is None
    assert result.stderr == "Command timed out after 300ms"


def test_spawn_failure_returns_null_code():
    result = asyncio.run(run_command_with_timeout(["definitely-not-a-binary-xyz"], timeout_ms=1_000))
    assert result.code is None
    assert result.stderr


def test_env_overrides_are_added_to_host_env():
    argv = [sys.executable, "-c", "import os; print(os.environ['GOBIN'], 'PATH' in os.environ)"]
    result = asyncio.run(run_command_with_timeout(argv, timeout_ms=10_000, env={"GOBIN": "/opt/bin"}))
    assert result.code == 0
    assert result.stdout.strip() == "/opt/bin True"


def test_empty_argv():
    result = asyncio.run(run_command_with_timeout([], timeout_ms=1_000))
    assert result.code is None
    assert result.stderr == "empty command"
