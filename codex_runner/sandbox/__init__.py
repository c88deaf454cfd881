"""Execution of codex and management of its scratch files."""

from codex_runner.sandbox.executor import CodexExecutor, HostContext

__all__ = ["CodexExecutor", "HostContext"]
