"""Core models and policy for the Codex runner."""

from codex_runner.core.models import (
    CodexRunnerError,
    ConfigurationError,
    ExecutionReport,
    ExecutionRequest,
    ExecutionState,
    ForwardResult,
    SafetyStrategy,
    SandboxMode,
)

__all__ = [
    "CodexRunnerError",
    "ConfigurationError",
    "ExecutionReport",
    "ExecutionRequest",
    "ExecutionState",
    "ForwardResult",
    "SafetyStrategy",
    "SandboxMode",
]
