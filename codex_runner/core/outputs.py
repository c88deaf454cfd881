"""Publishing step outputs back to the automation platform."""

import logging
import uuid
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol

from rich.console import Console
from rich.panel import Panel

from codex_runner.core.models import FinalizationError

logger = logging.getLogger(__name__)

FINAL_MESSAGE_OUTPUT = "final-message"


class ResultPublisher(Protocol):
    """Key/value sink for step outputs."""

    def set_output(self, name: str, value: str) -> None: ...


class GithubOutputPublisher:
    """Append outputs to the file named by $GITHUB_OUTPUT.

    Uses the multi-line heredoc form:
        name<<ghadelimiter_<uuid>
        value
        ghadelimiter_<uuid>
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def set_output(self, name: str, value: str) -> None:
        """Append one output. Raises FinalizationError if it can't be written."""
        delimiter = f"ghadelimiter_{uuid.uuid4()}"
        # A delimiter inside the payload would let it inject extra outputs
        if delimiter in name:
            raise FinalizationError(f"Unexpected input: name should not contain the delimiter \"{delimiter}\"")
        if delimiter in value:
            raise FinalizationError(f"Unexpected input: value should not contain the delimiter \"{delimiter}\"")

        try:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")
        except OSError as e:
            raise FinalizationError(f"Could not write output '{name}' to {self.path}: {e}") from e
        logger.debug("Wrote output '%s' to %s", name, self.path)


class ConsolePublisher:
    """Print outputs for local, non-Actions runs."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def set_output(self, name: str, value: str) -> None:
        self.console.print(Panel(value, title=name))


def publisher_from_env(env: Mapping[str, str], console: Console | None = None) -> ResultPublisher:
    """GITHUB_OUTPUT set -> file publisher, else console publisher."""
    output_path = env.get("GITHUB_OUTPUT")
    if output_path:
        return GithubOutputPublisher(Path(output_path))
    return ConsolePublisher(console)
