"""Sandbox and elevation policy decisions. No I/O."""

from codex_runner.core.models import ConfigurationError, SafetyStrategy, SandboxMode

# Platforms without a sudo-style user separation model
UNSUPPORTED_ELEVATION_PLATFORMS = frozenset({"win32"})


def effective_sandbox(strategy: SafetyStrategy, requested: SandboxMode) -> SandboxMode:
    """Return the sandbox mode to pass to codex.

    The read-only strategy always wins over the requested mode.
    """
    if strategy.forces_read_only:
        return SandboxMode.READ_ONLY
    return requested


def ensure_elevation_supported(platform: str) -> None:
    """Raise ConfigurationError if sudo-based elevation can't work here."""
    if platform in UNSUPPORTED_ELEVATION_PLATFORMS:
        raise ConfigurationError(
            f"the '{SafetyStrategy.UNPRIVILEGED_USER.value}' safety strategy "
            f"is not supported on {platform}."
        )
