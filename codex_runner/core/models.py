"""Data models and error types for the Codex runner.

Uses Pydantic for validated, immutable request objects.
"""

from enum import Enum
from pathlib import Path
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


class CodexRunnerError(Exception):
    """Base class for every failure surfaced by the runner."""

    pass


class ConfigurationError(CodexRunnerError):
    """Invalid configuration, detected before any subprocess is spawned."""

    pass


class CredentialsError(ConfigurationError):
    """The auth.json payload is empty, not base64, or not JSON."""

    pass


class ResolutionError(CodexRunnerError):
    """Prompt, scratch files or executables could not be resolved."""

    pass


class ElevationError(CodexRunnerError):
    """The sudo helper failed to spawn or exited non-zero."""

    def __init__(self, message: str, returncode: int | None = None):
        super().__init__(message)
        self.returncode = returncode


class SubprocessError(CodexRunnerError):
    """The codex process failed to spawn or exited non-zero."""

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        self.exit_code = exit_code


class FinalizationError(CodexRunnerError):
    """The final message could not be read after a successful run."""

    pass


class CleanupError(CodexRunnerError):
    """One or more scratch resources could not be removed."""

    def __init__(self, failures: list[Exception]):
        details = "; ".join(str(f) for f in failures)
        super().__init__(f"Failed to clean up {len(failures)} scratch resource(s): {details}")
        self.failures = failures


class SafetyStrategy(str, Enum):
    """How much the runner trusts the codex process."""

    DROP_SUDO = "drop-sudo"
    READ_ONLY = "read-only"
    UNPRIVILEGED_USER = "unprivileged-user"
    UNSAFE = "unsafe"

    @property
    def requires_elevation(self) -> bool:
        return self is SafetyStrategy.UNPRIVILEGED_USER

    @property
    def forces_read_only(self) -> bool:
        return self is SafetyStrategy.READ_ONLY


class SandboxMode(str, Enum):
    """Value passed through to `codex exec --sandbox`."""

    READ_ONLY = "read-only"
    WORKSPACE_WRITE = "workspace-write"
    DANGER_FULL_ACCESS = "danger-full-access"


class ExecutionState(str, Enum):
    """Lifecycle of a single codex invocation."""

    IDLE = "idle"
    RESOLVING_PROMPT = "resolving_prompt"
    RESOLVING_SCRATCH = "resolving_scratch"
    BUILDING_COMMAND = "building_command"
    SPAWNING = "spawning"
    RUNNING = "running"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (ExecutionState.DONE, ExecutionState.FAILED)


# --- Prompt and schema sources ---


class InlinePrompt(BaseModel):
    model_config = {"frozen": True}

    type: Literal["inline"] = "inline"
    content: str


class PromptFile(BaseModel):
    model_config = {"frozen": True}

    type: Literal["file"] = "file"
    path: Path


PromptSource = Annotated[Union[InlinePrompt, PromptFile], Field(discriminator="type")]


class InlineSchema(BaseModel):
    model_config = {"frozen": True}

    type: Literal["inline"] = "inline"
    content: str


class SchemaFile(BaseModel):
    model_config = {"frozen": True}

    type: Literal["file"] = "file"
    path: Path


OutputSchemaSource = Annotated[Union[InlineSchema, SchemaFile], Field(discriminator="type")]


# --- Request / result models ---


class ExecutionRequest(BaseModel):
    """Immutable configuration for one `codex exec` invocation."""

    model_config = {"frozen": True}

    prompt: PromptSource
    working_directory: Path
    extra_args: tuple[str, ...] = ()
    output_file: Path | None = None
    output_schema: OutputSchemaSource | None = None
    model: str | None = None
    effort: str | None = None
    safety_strategy: SafetyStrategy = SafetyStrategy.DROP_SUDO
    codex_user: str | None = None
    sandbox: SandboxMode = SandboxMode.WORKSPACE_WRITE
    pass_through_env: tuple[str, ...] = ()
    codex_home: Path | None = None

    def elevation_principal(self) -> str | None:
        """Return the user codex must run as, or None to run as ourselves.

        Raises:
            ConfigurationError: If the strategy needs a user and none is set.
        """
        if not self.safety_strategy.requires_elevation:
            return None
        if not self.codex_user:
            raise ConfigurationError(
                "codex-user must be specified when using the "
                f"'{SafetyStrategy.UNPRIVILEGED_USER.value}' safety strategy."
            )
        return self.codex_user


class ForwardResult(BaseModel):
    """Names copied by one forwarding pass, and names that were absent."""

    model_config = {"frozen": True}

    forwarded: tuple[str, ...] = ()
    missing: tuple[str, ...] = ()


class ExecutionReport(BaseModel):
    """Outcome of a successful invocation."""

    exit_code: int
    command: list[str]
    forwarded: list[str] = Field(default_factory=list)
    missing: list[str] = Field(default_factory=list)
    final_message: str
    state: ExecutionState = ExecutionState.DONE
