"""Tests for step output publishers."""

from __future__ import annotations

import uuid

import pytest
from rich.console import Console

from codex_runner.core.models import FinalizationError
from codex_runner.core.outputs import (
    FINAL_MESSAGE_OUTPUT,
    ConsolePublisher,
    GithubOutputPublisher,
    publisher_from_env,
)

FIXED_UUID = uuid.UUID("12345678-1234-5678-1234-567812345678")
DELIMITER = f"ghadelimiter_{FIXED_UUID}"


class TestGithubOutputPublisher:
    """Tests for $GITHUB_OUTPUT file writes."""

    def test_heredoc_format(self, mocker, tmp_path):
        mocker.patch("uuid.uuid4", return_value=FIXED_UUID)
        output = tmp_path / "github_output"

        GithubOutputPublisher(output).set_output(FINAL_MESSAGE_OUTPUT, "line one\nline two")

        assert output.read_text() == (
            f"final-message<<{DELIMITER}\nline one\nline two\n{DELIMITER}\n"
        )

    def test_appends(self, tmp_path):
        output = tmp_path / "github_output"
        output.write_text("existing=1\n")
        publisher = GithubOutputPublisher(output)

        publisher.set_output("a", "1")
        publisher.set_output("b", "2")

        text = output.read_text()
        assert text.startswith("existing=1\n")
        assert text.count("<<ghadelimiter_") == 2

    def test_rejects_delimiter_in_value(self, mocker, tmp_path):
        mocker.patch("uuid.uuid4", return_value=FIXED_UUID)
        output = tmp_path / "github_output"

        with pytest.raises(FinalizationError, match="value should not contain the delimiter"):
            GithubOutputPublisher(output).set_output("x", f"evil\n{DELIMITER}\ninjected=1")

        assert not output.exists()

    def test_unwritable_path(self, tmp_path):
        output = tmp_path / "missing-dir" / "github_output"

        with pytest.raises(FinalizationError, match="Could not write output 'final-message'"):
            GithubOutputPublisher(output).set_output(FINAL_MESSAGE_OUTPUT, "done")


class TestConsolePublisher:
    def test_prints_value(self):
        console = Console(record=True, width=80)

        ConsolePublisher(console).set_output(FINAL_MESSAGE_OUTPUT, "All tests pass")

        text = console.export_text()
        assert "final-message" in text
        assert "All tests pass" in text


class TestPublisherFromEnv:
    def test_github_output_set(self, tmp_path):
        publisher = publisher_from_env({"GITHUB_OUTPUT": str(tmp_path / "out")})

        assert isinstance(publisher, GithubOutputPublisher)
        assert publisher.path == tmp_path / "out"

    @pytest.mark.parametrize("env", [{}, {"GITHUB_OUTPUT": ""}])
    def test_falls_back_to_console(self, env):
        assert isinstance(publisher_from_env(env), ConsolePublisher)
