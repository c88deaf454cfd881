"""Materialize the Codex auth.json credentials file."""

import base64
import binascii
import json
import logging
import sys
from pathlib import Path

from codex_runner.core.models import ConfigurationError, CredentialsError, SafetyStrategy
from codex_runner.core.policy import ensure_elevation_supported
from codex_runner.sandbox.fileops import DirectFileOps, FileOps, SudoFileOps

logger = logging.getLogger(__name__)

AUTH_FILE_NAME = "auth.json"
AUTH_FILE_MODE = 0o600


def decode_auth_json(auth_json_b64: str) -> str:
    """Decode a base64 auth.json payload and check it parses as JSON.

    The decoded text is returned unchanged; it is never re-serialized.

    Raises:
        CredentialsError: If the payload is empty, not base64, or not JSON.
    """
    trimmed = auth_json_b64.strip()
    if not trimmed:
        raise CredentialsError(
            "Empty CODEX_AUTH_JSON_B64 provided. Expected base64-encoded auth.json contents."
        )

    # `base64` wraps its output at 76 columns by default
    compact = "".join(trimmed.split())
    try:
        decoded = base64.b64decode(compact, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise CredentialsError(f"Failed to decode CODEX_AUTH_JSON_B64 as base64: {e}") from e

    try:
        json.loads(decoded)
    except json.JSONDecodeError as e:
        raise CredentialsError(f"Decoded auth.json is not valid JSON: {e}") from e

    return decoded


def write_auth_json(
    codex_home: Path,
    safety_strategy: SafetyStrategy,
    codex_user: str | None,
    auth_json_b64: str,
    *,
    platform: str | None = None,
    tmp_root: Path | None = None,
    local_ops: FileOps | None = None,
    elevated_ops: FileOps | None = None,
) -> Path:
    """Write `<codex_home>/auth.json` readable only by its owner.

    Under the unprivileged-user strategy the file is staged in a private temp
    directory first, then moved into place, re-owned and chmod-ed through
    sudo, since the target user's home may not be writable by us.

    Returns:
        Path of the written auth.json.
    """
    decoded = decode_auth_json(auth_json_b64)
    codex_home = Path(codex_home)
    dest = codex_home / AUTH_FILE_NAME
    local = local_ops or DirectFileOps(tmp_root)

    if safety_strategy.requires_elevation:
        ensure_elevation_supported(platform or sys.platform)
        if not codex_user:
            raise ConfigurationError(
                "codex-user must be specified when using the "
                f"'{SafetyStrategy.UNPRIVILEGED_USER.value}' safety strategy."
            )
        elevated = elevated_ops or SudoFileOps(codex_user)

        staging_dir = local.make_temp_dir("codex-auth-")
        staged = staging_dir / AUTH_FILE_NAME
        try:
            local.write_text(staged, decoded)
            elevated.move(staged, dest)
            elevated.chown(dest, codex_user)
            elevated.chmod(dest, AUTH_FILE_MODE)
        finally:
            local.remove_tree(staging_dir)
    else:
        codex_home.mkdir(parents=True, exist_ok=True)
        local.write_text(dest, decoded)
        local.chmod(dest, AUTH_FILE_MODE)

    logger.info("Wrote credentials to %s", dest)
    return dest
