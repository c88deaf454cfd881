"""Codex runner - launch `codex exec` on behalf of CI pipelines.

Builds the invocation, drops privileges via sudo when asked, captures the final message.
"""

__version__ = "0.1.0"
