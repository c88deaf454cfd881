"""Build an ExecutionRequest from a YAML config file plus CLI options.

Config file keys use the CLI's dashed option names, e.g.:

    prompt-file: .github/codex/prompts/review.md
    codex-args: '["--full-auto"]'
    safety-strategy: unprivileged-user
    codex-user: codex
    pass-through-env: |
      GH_TOKEN
      SENTRY_AUTH_TOKEN

Values given on the command line override the file.
"""

import json
import shlex
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import pydantic
import yaml

from codex_runner.core.env import parse_pass_through_env
from codex_runner.core.models import (
    ConfigurationError,
    ExecutionRequest,
    InlinePrompt,
    InlineSchema,
    PromptFile,
    SchemaFile,
)

CONFIG_KEYS = frozenset(
    {
        "prompt",
        "prompt-file",
        "working-directory",
        "codex-args",
        "output-file",
        "output-schema",
        "output-schema-file",
        "model",
        "effort",
        "safety-strategy",
        "codex-user",
        "sandbox",
        "pass-through-env",
        "codex-home",
    }
)


def load_config_file(path: Path) -> dict[str, Any]:
    """Load a runner config file. An empty file yields an empty dict."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Could not read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in config file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping, got {type(data).__name__}")

    unknown = sorted(set(data) - CONFIG_KEYS)
    if unknown:
        raise ConfigurationError(f"Unknown keys in config file {path}: {', '.join(unknown)}")
    return data


def parse_codex_args(raw: str | list[str] | None) -> tuple[str, ...]:
    """Parse extra codex arguments.

    A value starting with '[' is a JSON array of strings; anything else is
    split with shell quoting rules. YAML lists are accepted as-is.
    """
    if raw is None:
        return ()
    if isinstance(raw, list):
        values: Any = raw
    elif not isinstance(raw, str):
        raise ConfigurationError(
            f"codex-args must be a string or a list of strings, got {type(raw).__name__}"
        )
    else:
        text = raw.strip()
        if not text:
            return ()
        if text.startswith("["):
            try:
                values = json.loads(text)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"codex-args is not a valid JSON array: {e}") from e
        else:
            try:
                return tuple(shlex.split(text))
            except ValueError as e:
                raise ConfigurationError(f"Could not parse codex-args: {e}") from e

    if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
        raise ConfigurationError("codex-args must be an array of strings")
    return tuple(values)


def parse_env_names(raw: str | list[str] | None) -> tuple[str, ...]:
    """Parse pass-through-env, rejecting invalid variable names."""
    if raw is None:
        return ()
    if isinstance(raw, list) and all(isinstance(v, str) for v in raw):
        text = "\n".join(raw)
    elif isinstance(raw, str):
        text = raw
    else:
        raise ConfigurationError("pass-through-env must be a string or a list of strings")
    parsed = parse_pass_through_env(text)
    if parsed.invalid_names:
        raise ConfigurationError(
            f"Invalid environment variable name(s) in pass-through-env: {', '.join(parsed.invalid_names)}"
        )
    return tuple(parsed.names)


def merge_values(file_values: Mapping[str, Any], cli_values: Mapping[str, Any]) -> dict[str, Any]:
    """CLI values win over file values unless they are None."""
    merged = dict(file_values)
    merged.update({key: value for key, value in cli_values.items() if value is not None})
    return merged


def build_request(values: Mapping[str, Any], cwd: Path) -> ExecutionRequest:
    """Validate merged option values into an ExecutionRequest.

    Raises:
        ConfigurationError: On missing/conflicting options or invalid values.
    """
    prompt, prompt_file = values.get("prompt"), values.get("prompt-file")
    if prompt and prompt_file:
        raise ConfigurationError("Only one of prompt or prompt-file may be specified.")
    if not prompt and not prompt_file:
        raise ConfigurationError("Either prompt or prompt-file must be specified.")

    schema, schema_file = values.get("output-schema"), values.get("output-schema-file")
    if schema and schema_file:
        raise ConfigurationError("Only one of output-schema or output-schema-file may be specified.")

    extra_args = parse_codex_args(values.get("codex-args"))
    pass_through_env = parse_env_names(values.get("pass-through-env"))

    try:
        # Paths are left to pydantic so non-string YAML values fail validation
        prompt_source: InlinePrompt | PromptFile = (
            InlinePrompt(content=prompt) if prompt else PromptFile(path=prompt_file)
        )
        schema_source: InlineSchema | SchemaFile | None = None
        if schema:
            schema_source = InlineSchema(content=schema)
        elif schema_file:
            schema_source = SchemaFile(path=schema_file)

        fields: dict[str, Any] = {
            "prompt": prompt_source,
            "working_directory": values.get("working-directory") or cwd,
            "extra_args": extra_args,
            "output_file": values.get("output-file") or None,
            "output_schema": schema_source,
            "model": values.get("model") or None,
            "effort": values.get("effort") or None,
            "codex_user": values.get("codex-user") or None,
            "pass_through_env": pass_through_env,
            "codex_home": values.get("codex-home") or None,
        }
        # Leave unset enums to the model defaults
        for key, field_name in (("safety-strategy", "safety_strategy"), ("sandbox", "sandbox")):
            if values.get(key):
                fields[field_name] = values[key]

        return ExecutionRequest(**fields)
    except pydantic.ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
