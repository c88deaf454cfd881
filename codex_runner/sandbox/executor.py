"""Orchestrates a single `codex exec` invocation.

Flow: resolve prompt -> resolve scratch files -> build env and argv ->
spawn codex with the prompt on stdin -> read and publish the final message.
Scratch files are released whatever the outcome.

SECURITY: Forwarded env var values reach codex and every command it runs.
They are never logged; only their names are.

NOTE: One invocation per executor at a time. There is no timeout and no
cancellation; the calling environment is expected to bound the runtime.
"""

import logging
import os
import shlex
import shutil
import subprocess
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from codex_runner.core.env import forward_selected_env_vars
from codex_runner.core.models import (
    ElevationError,
    ExecutionReport,
    ExecutionRequest,
    ExecutionState,
    FinalizationError,
    ForwardResult,
    InlinePrompt,
    ResolutionError,
    SubprocessError,
)
from codex_runner.core.outputs import FINAL_MESSAGE_OUTPUT, ResultPublisher
from codex_runner.core.policy import effective_sandbox, ensure_elevation_supported
from codex_runner.sandbox.capture import OutputCapture
from codex_runner.sandbox.fileops import SUDO, file_ops_for

logger = logging.getLogger(__name__)

ORIGINATOR_ENV = "CODEX_INTERNAL_ORIGINATOR_OVERRIDE"
ORIGINATOR_VALUE = "codex_github_action"
CODEX_HOME_ENV = "CODEX_HOME"


@dataclass
class HostContext:
    """Process-level state the executor would otherwise read implicitly."""

    env: Mapping[str, str] = field(default_factory=lambda: dict(os.environ))
    platform: str = field(default_factory=lambda: sys.platform)
    tmp_root: Path | None = None


class CodexExecutor:
    """Run codex for one ExecutionRequest and publish its final message."""

    def __init__(
        self,
        publisher: ResultPublisher,
        host: HostContext | None = None,
        codex_binary: str = "codex",
    ):
        self.publisher = publisher
        self.host = host or HostContext()
        self.codex_binary = codex_binary
        self.state = ExecutionState.IDLE

    def run(self, request: ExecutionRequest) -> ExecutionReport:
        """Execute the request.

        Returns:
            ExecutionReport for a zero exit with a readable final message.

        Raises:
            ConfigurationError: Before anything is read, created or spawned.
            ResolutionError: Prompt, scratch files or executable could not be
                resolved. Helper failures while preparing scratch files are
                wrapped here.
            SubprocessError: codex failed to spawn or exited non-zero.
            FinalizationError: The result file could not be read.
            CleanupError: The run succeeded but scratch files were left behind.
        """
        self.state = ExecutionState.IDLE
        try:
            report = self._run(request)
        except Exception:
            self._transition(ExecutionState.FAILED)
            raise
        self._transition(ExecutionState.DONE)
        return report

    def _run(self, request: ExecutionRequest) -> ExecutionReport:
        run_as_user = request.elevation_principal()
        if run_as_user is not None:
            ensure_elevation_supported(self.host.platform)

        self._transition(ExecutionState.RESOLVING_PROMPT)
        prompt = self._resolve_prompt(request)

        self._transition(ExecutionState.RESOLVING_SCRATCH)
        file_ops = file_ops_for(run_as_user, self.host.tmp_root)
        with OutputCapture(file_ops) as capture:
            try:
                result_file = capture.prepare_result_file(request.output_file)
                schema_file = capture.prepare_schema(request.output_schema)
            except (OSError, ElevationError) as e:
                raise ResolutionError(f"Could not prepare scratch files: {e}") from e

            self._transition(ExecutionState.BUILDING_COMMAND)
            env, forward_result = self.build_environment(request)
            command = self.build_command(
                request,
                output_file=result_file.path,
                schema_file=schema_file.path if schema_file else None,
                preserved_env=forward_result.forwarded,
                run_as_user=run_as_user,
            )

            self._transition(ExecutionState.SPAWNING)
            env_prefix = f"{CODEX_HOME_ENV}={request.codex_home} " if request.codex_home else ""
            logger.info("Running: %s%s", env_prefix, shlex.join(command))
            exit_code = self._spawn(command, env, prompt)

            self._transition(ExecutionState.FINALIZING)
            if exit_code != 0:
                raise SubprocessError(
                    f"{command[0]} exited with code {exit_code}",
                    exit_code=exit_code,
                )

            try:
                final_message = capture.read_final_message()
            except (OSError, UnicodeDecodeError, ElevationError) as e:
                raise FinalizationError(
                    f"Could not read final message from {result_file.path}: {e}"
                ) from e
            self.publisher.set_output(FINAL_MESSAGE_OUTPUT, final_message)

        return ExecutionReport(
            exit_code=exit_code,
            command=command,
            forwarded=list(forward_result.forwarded),
            missing=list(forward_result.missing),
            final_message=final_message,
        )

    def _transition(self, state: ExecutionState) -> None:
        logger.debug("codex exec: %s -> %s", self.state.value, state.value)
        self.state = state

    def _resolve_prompt(self, request: ExecutionRequest) -> str:
        prompt = request.prompt
        if isinstance(prompt, InlinePrompt):
            return prompt.content
        try:
            return prompt.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ResolutionError(f"Could not read prompt file {prompt.path}: {e}") from e

    def build_environment(self, request: ExecutionRequest) -> tuple[dict[str, str], ForwardResult]:
        """Copy the host env, pin internal keys, then forward requested names."""
        env = dict(self.host.env)
        protected: set[str] = set()

        if not env.get(ORIGINATOR_ENV):
            env[ORIGINATOR_ENV] = ORIGINATOR_VALUE
        protected.add(ORIGINATOR_ENV)

        if request.codex_home is not None:
            env[CODEX_HOME_ENV] = str(request.codex_home)
            protected.add(CODEX_HOME_ENV)

        result = forward_selected_env_vars(
            request.pass_through_env,
            source_env=self.host.env,
            target_env=env,
            protected_keys=protected,
        )

        if result.forwarded:
            logger.info("Forwarding env vars to Codex: %s", ", ".join(result.forwarded))
        for name in result.missing:
            logger.info('Requested env var "%s" is not set; skipping.', name)

        return env, result

    def build_command(
        self,
        request: ExecutionRequest,
        output_file: Path,
        schema_file: Path | None = None,
        preserved_env: tuple[str, ...] = (),
        run_as_user: str | None = None,
    ) -> list[str]:
        """Assemble the full argv, including the sudo prefix when elevated.

        Extra args go before --sandbox so they can't override the sandbox mode.
        """
        command: list[str] = []
        codex_path = self.codex_binary

        if run_as_user is not None:
            codex_path = self._locate_codex()
            command.append(self._locate_sudo())
            if preserved_env:
                command.append(f"--preserve-env={','.join(preserved_env)}")
            command.extend(["-u", run_as_user, "--"])

        command.extend([
            codex_path,
            "exec",
            "--skip-git-repo-check",
            "--cd", str(request.working_directory),
            "--output-last-message", str(output_file),
        ])

        if schema_file is not None:
            command.extend(["--output-schema", str(schema_file)])

        if request.model is not None:
            command.extend(["--model", request.model])

        if request.effort is not None:
            command.extend(["--config", f'model_reasoning_effort="{request.effort}"'])

        command.extend(request.extra_args)

        sandbox = effective_sandbox(request.safety_strategy, request.sandbox)
        command.extend(["--sandbox", sandbox.value])
        return command

    def _locate_codex(self) -> str:
        # The unprivileged user has a different $PATH, so hand sudo an absolute path
        found = shutil.which(self.codex_binary, path=self.host.env.get("PATH"))
        if not found:
            raise ResolutionError(f"could not find '{self.codex_binary}' in PATH")
        return os.path.realpath(found)

    def _locate_sudo(self) -> str:
        if not shutil.which(SUDO, path=self.host.env.get("PATH")):
            raise ResolutionError(f"elevation helper '{SUDO}' not found in PATH")
        return SUDO

    def _spawn(self, command: list[str], env: dict[str, str], prompt: str) -> int:
        # stdout/stderr are inherited; codex output goes straight to the job log
        try:
            process = subprocess.Popen(
                command,
                stdin=subprocess.PIPE,
                encoding="utf-8",
                env=env,
            )
        except OSError as e:
            raise SubprocessError(f"Failed to spawn '{command[0]}': {e}") from e

        self._transition(ExecutionState.RUNNING)
        # communicate() closes stdin after writing so codex sees end-of-input
        process.communicate(input=prompt)
        return process.returncode
