"""Tests for env var name parsing and deny-by-default forwarding."""

from __future__ import annotations

import pytest

from codex_runner.core.env import forward_selected_env_vars, parse_pass_through_env


class TestParsePassThroughEnv:
    """Tests for parse_pass_through_env."""

    def test_splits_trims_and_deduplicates(self):
        parsed = parse_pass_through_env("GH_TOKEN, SENTRY_AUTH_TOKEN\nGH_TOKEN\n9BAD\n_ANOTHER")

        assert parsed.names == ["GH_TOKEN", "SENTRY_AUTH_TOKEN", "_ANOTHER"]
        assert parsed.invalid_names == ["9BAD"]

    def test_ignores_empty_input(self):
        parsed = parse_pass_through_env("\n, ,\n")

        assert parsed.names == []
        assert parsed.invalid_names == []

    def test_crlf_separators(self):
        parsed = parse_pass_through_env("A_TOKEN\r\nB_TOKEN\r\n")

        assert parsed.names == ["A_TOKEN", "B_TOKEN"]

    def test_invalid_names_reported_once(self):
        parsed = parse_pass_through_env("lower,lower,WITH-DASH,OK")

        assert parsed.names == ["OK"]
        assert parsed.invalid_names == ["lower", "WITH-DASH"]


class TestForwardSelectedEnvVars:
    """Tests for forward_selected_env_vars."""

    def test_adds_values_and_leaves_protected_keys_alone(self):
        target_env = {"EXISTING": "keep", "SENTRY_AUTH_TOKEN": "prefilled"}
        source_env = {"GH_TOKEN": "gh", "SENTRY_AUTH_TOKEN": "sentry"}

        result = forward_selected_env_vars(
            ["GH_TOKEN", "SENTRY_AUTH_TOKEN", "MISSING_TOKEN"],
            source_env=source_env,
            target_env=target_env,
            protected_keys={"EXISTING", "SENTRY_AUTH_TOKEN"},
        )

        assert result.forwarded == ("GH_TOKEN",)
        assert result.missing == ("MISSING_TOKEN",)
        assert target_env["GH_TOKEN"] == "gh"
        assert target_env["SENTRY_AUTH_TOKEN"] == "prefilled"
        assert target_env["EXISTING"] == "keep"

    def test_tolerates_empty_config(self):
        target_env: dict[str, str] = {}

        result = forward_selected_env_vars([], source_env={}, target_env=target_env)

        assert result.forwarded == ()
        assert result.missing == ()
        assert target_env == {}

    def test_source_not_mutated(self):
        source_env = {"A": "1"}

        forward_selected_env_vars(["A", "B"], source_env=source_env, target_env={})

        assert source_env == {"A": "1"}

    def test_empty_string_value_is_forwarded(self):
        target_env: dict[str, str] = {}

        result = forward_selected_env_vars(["EMPTY"], source_env={"EMPTY": ""}, target_env=target_env)

        assert result.forwarded == ("EMPTY",)
        assert target_env["EMPTY"] == ""

    @pytest.mark.parametrize(
        "raw",
        [
            "A,B,C,A,B",
            "A\nlower\nB\n9X\nA",
            "PROTECTED,A,PROTECTED,MISSING",
            "MISSING,MISSING_TOO",
        ],
    )
    def test_no_name_in_both_lists_and_no_protected_names(self, raw):
        names = parse_pass_through_env(raw).names
        source_env = {"A": "a", "B": "b", "C": "c", "PROTECTED": "source"}
        target_env = {"PROTECTED": "pinned"}

        result = forward_selected_env_vars(names, source_env, target_env, protected_keys={"PROTECTED"})

        assert not set(result.forwarded) & set(result.missing)
        assert "PROTECTED" not in result.forwarded
        assert "PROTECTED" not in result.missing
        assert target_env["PROTECTED"] == "pinned"
        # Order follows the request
        assert list(result.forwarded) == [n for n in names if n in result.forwarded]
