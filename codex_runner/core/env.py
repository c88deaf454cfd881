"""Environment variable forwarding for the codex process.

Forwarding is deny-by-default: only names the pipeline explicitly lists are
copied, and names the runner pins itself (protected keys) are never
overwritten by a caller request.
"""

import re
from collections.abc import Iterable, Mapping, MutableMapping
from dataclasses import dataclass, field

from codex_runner.core.models import ForwardResult

ENV_VAR_NAME_PATTERN = re.compile(r"^[A-Z_][A-Z0-9_]*$")

# Splits on newlines (LF or CRLF) and commas
_SEPARATORS = re.compile(r"\r?\n|,")


@dataclass
class ParsedEnvNames:
    """Result of parsing a raw pass-through list."""

    names: list[str] = field(default_factory=list)
    invalid_names: list[str] = field(default_factory=list)


def parse_pass_through_env(raw: str) -> ParsedEnvNames:
    """Split a comma/newline separated list of env var names.

    Entries are trimmed and empty ones dropped. Valid names are deduplicated
    keeping the first occurrence; each invalid entry is reported once.
    """
    parsed = ParsedEnvNames()
    seen: set[str] = set()

    for entry in (value.strip() for value in _SEPARATORS.split(raw)):
        if not entry:
            continue
        if not ENV_VAR_NAME_PATTERN.match(entry):
            if entry not in parsed.invalid_names:
                parsed.invalid_names.append(entry)
            continue
        if entry in seen:
            continue
        seen.add(entry)
        parsed.names.append(entry)

    return parsed


def forward_selected_env_vars(
    names: Iterable[str],
    source_env: Mapping[str, str],
    target_env: MutableMapping[str, str],
    protected_keys: Iterable[str] | None = None,
) -> ForwardResult:
    """Copy the requested names from source_env into target_env.

    Protected names are skipped without being reported. Names absent from
    source_env are reported as missing. target_env is mutated in place.

    Args:
        names: Names to forward, already validated and deduplicated.
        source_env: Environment to read values from (not modified).
        target_env: Environment handed to the codex process.
        protected_keys: Names the caller has already pinned in target_env.

    Returns:
        ForwardResult listing forwarded and missing names in request order.
    """
    protected = frozenset(protected_keys or ())
    forwarded: list[str] = []
    missing: list[str] = []

    for name in names:
        if name in protected:
            continue
        value = source_env.get(name)
        if value is None:
            missing.append(name)
            continue
        target_env[name] = value
        forwarded.append(name)

    return ForwardResult(forwarded=tuple(forwarded), missing=tuple(missing))
