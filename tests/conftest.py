# conftest.py - Shared pytest fixtures for all tests
"""Shared pytest fixtures for the Codex runner test suite.

This module provides:
- A HostContext with an explicit env, platform and temp root
- A recording publisher standing in for the step-output sink
- A fake codex process (patched subprocess.Popen)
- A fake sudo helper (patched subprocess.run)

No test spawns a real codex or sudo.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import Mock

import pytest

from codex_runner.core.models import ExecutionRequest, InlinePrompt
from codex_runner.sandbox.executor import HostContext


# =============================================================================
# Host and Request Fixtures
# =============================================================================


@pytest.fixture
def scratch_root(tmp_path: Path) -> Path:
    """Directory used as the temp root for managed scratch dirs."""
    root = tmp_path / "scratch"
    root.mkdir()
    return root


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Directory passed to codex via --cd."""
    ws = tmp_path / "workspace"
    ws.mkdir()
    return ws


@pytest.fixture
def host(scratch_root: Path) -> HostContext:
    """HostContext with a small, explicit environment."""
    return HostContext(
        env={
            "PATH": "/usr/local/bin:/usr/bin:/bin",
            "GH_TOKEN": "gh-secret",
            "SENTRY_AUTH_TOKEN": "sentry-secret",
        },
        platform="linux",
        tmp_root=scratch_root,
    )


@pytest.fixture
def make_request(workspace: Path):
    """Factory for ExecutionRequest with sensible defaults.

    Example:
        def test_something(make_request):
            request = make_request(model="o4-mini")
    """

    def _make(**overrides: Any) -> ExecutionRequest:
        fields: dict[str, Any] = {
            "prompt": InlinePrompt(content="Summarize the diff"),
            "working_directory": workspace,
        }
        fields.update(overrides)
        return ExecutionRequest(**fields)

    return _make


# =============================================================================
# Collaborator Fakes
# =============================================================================


class RecordingPublisher:
    """ResultPublisher that keeps outputs in memory."""

    def __init__(self) -> None:
        self.outputs: dict[str, str] = {}

    def set_output(self, name: str, value: str) -> None:
        self.outputs[name] = value


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


class FakeCodex:
    """Stand-in for subprocess.Popen running codex.

    On communicate() it records stdin, snapshots the schema file (if any)
    and writes `message` to the --output-last-message file when its parent
    directory exists and the exit code is 0.
    """

    def __init__(self, exit_code: int = 0, message: str | None = "final answer"):
        self.exit_code = exit_code
        self.message = message
        self.command: list[str] | None = None
        self.env: dict[str, str] | None = None
        self.stdin: str | None = None
        self.output_path: Path | None = None
        self.schema_path: Path | None = None
        self.schema_content: str | None = None

    def _flag(self, flag: str) -> Path | None:
        assert self.command is not None
        if flag not in self.command:
            return None
        return Path(self.command[self.command.index(flag) + 1])

    def __call__(self, command: list[str], **kwargs: Any) -> Mock:
        self.command = list(command)
        self.env = dict(kwargs.get("env") or {})
        self.output_path = self._flag("--output-last-message")
        self.schema_path = self._flag("--output-schema")

        process = Mock()

        def communicate(input: str | None = None) -> tuple[None, None]:
            self.stdin = input
            if self.schema_path is not None and self.schema_path.exists():
                self.schema_content = self.schema_path.read_text()
            writable = self.output_path is not None and self.output_path.parent.exists()
            if self.exit_code == 0 and self.message is not None and writable:
                self.output_path.write_text(self.message)
            process.returncode = self.exit_code
            return None, None

        process.communicate.side_effect = communicate
        return process


@pytest.fixture
def patch_codex(mocker):
    """Factory patching subprocess.Popen with a configured FakeCodex.

    Example:
        def test_failure(patch_codex):
            fake = patch_codex(exit_code=1)
    """

    def _patch(**kwargs: Any) -> FakeCodex:
        fake = FakeCodex(**kwargs)
        mocker.patch("subprocess.Popen", side_effect=fake)
        return fake

    return _patch


@pytest.fixture
def fake_codex(patch_codex) -> FakeCodex:
    """Patch subprocess.Popen with a successful FakeCodex."""
    return patch_codex()


class FakeSudo:
    """Stand-in for subprocess.run handling `sudo ...` helper calls.

    mktemp returns a directory under `root`, which it also creates so the
    fake codex can write into it. cat returns `cat_output`. Verbs listed in
    `failing` exit with code 1.
    """

    def __init__(self, root: Path, cat_output: str = "elevated answer"):
        self.root = root
        self.cat_output = cat_output
        self.failing: set[str] = set()
        self.calls: list[list[str]] = []
        self.inputs: list[str | None] = []
        self._counter = 0

    @staticmethod
    def verb(cmd: list[str]) -> str:
        return cmd[3] if cmd[1] == "-u" else cmd[1]

    def calls_for(self, verb: str) -> list[list[str]]:
        return [cmd for cmd in self.calls if self.verb(cmd) == verb]

    def __call__(self, cmd: list[str], input: str | None = None, **kwargs: Any) -> Mock:
        self.calls.append(list(cmd))
        self.inputs.append(input)
        verb = self.verb(cmd)

        if verb in self.failing:
            return Mock(returncode=1, stdout="", stderr=f"{verb}: permission denied")
        if verb == "mktemp":
            self._counter += 1
            template = cmd[-1].replace("XXXXXX", f"{self._counter:06d}")
            directory = self.root / template
            directory.mkdir()
            return Mock(returncode=0, stdout=f"{directory}\n", stderr="")
        if verb == "cat":
            return Mock(returncode=0, stdout=self.cat_output, stderr="")
        return Mock(returncode=0, stdout="", stderr="")


@pytest.fixture
def fake_sudo(mocker, scratch_root: Path) -> FakeSudo:
    """Patch subprocess.run with a FakeSudo rooted in the scratch dir."""
    fake = FakeSudo(scratch_root)
    mocker.patch("subprocess.run", side_effect=fake)
    return fake
