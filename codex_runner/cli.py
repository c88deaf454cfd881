"""CLI entry point for the Codex runner.

Commands:
- codex-runner run: Run `codex exec` with a prompt and publish its final message
- codex-runner write-auth: Write CODEX_HOME/auth.json from a base64 payload
- codex-runner check-env: Report which pass-through env vars are set
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from codex_runner import __version__
from codex_runner.core.auth import write_auth_json
from codex_runner.core.config import build_request, load_config_file, merge_values
from codex_runner.core.env import parse_pass_through_env
from codex_runner.core.models import CodexRunnerError, SafetyStrategy, SandboxMode, SubprocessError
from codex_runner.core.outputs import publisher_from_env
from codex_runner.sandbox.executor import CodexExecutor, HostContext

console = Console()
err_console = Console(stderr=True)

SAFETY_STRATEGIES = [s.value for s in SafetyStrategy]
SANDBOX_MODES = [m.value for m in SandboxMode]


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False, show_time=False)],
        force=True,
    )


def _fail(error: Exception) -> None:
    console.print(f"[red]Error:[/red] {error}")
    sys.exit(1)


@click.group(context_settings={"auto_envvar_prefix": "CODEX_RUNNER"})
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose: bool) -> None:
    """Codex runner - launch `codex exec` for CI pipelines.

    Builds the codex invocation (sandbox, working directory, optional
    privilege drop via sudo), feeds the prompt on stdin and publishes
    the final message as the `final-message` output.
    """
    _configure_logging(verbose)


@main.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML file with default values for the options below",
)
@click.option("--prompt", help="Inline prompt text")
@click.option("--prompt-file", help="File containing the prompt")
@click.option("--working-directory", help="Directory codex runs in (default: current directory)")
@click.option("--codex-args", help="Extra codex arguments (JSON array or shell-quoted string)")
@click.option("--output-file", help="Where codex writes its final message (default: temp file)")
@click.option("--output-schema", help="Inline JSON schema for the final message")
@click.option("--output-schema-file", help="File containing the JSON schema")
@click.option("--model", help="Model name passed to codex")
@click.option("--effort", help="Reasoning effort passed to codex")
@click.option("--safety-strategy", type=click.Choice(SAFETY_STRATEGIES), help="Safety strategy")
@click.option("--codex-user", help="User to run codex as (unprivileged-user strategy)")
@click.option("--sandbox", type=click.Choice(SANDBOX_MODES), help="Requested sandbox mode")
@click.option("--pass-through-env", help="Comma or newline separated env var names to forward")
@click.option("--codex-home", help="Value for CODEX_HOME")
def run(config_path: Path | None, **options: str | None) -> None:
    """Run codex exec once.

    Example:
        codex-runner run --prompt-file review.md --sandbox read-only
    """
    host = HostContext()
    cli_values = {key.replace("_", "-"): value for key, value in options.items()}

    try:
        file_values = load_config_file(config_path) if config_path else {}
        request = build_request(merge_values(file_values, cli_values), cwd=Path.cwd())
        executor = CodexExecutor(publisher_from_env(host.env, console), host=host)
        report = executor.run(request)
    except SubprocessError as e:
        if e.exit_code is not None:
            console.print(f"[red]codex failed with exit code {e.exit_code}[/red]")
        _fail(e)
        return
    except CodexRunnerError as e:
        _fail(e)
        return

    table = Table(title="Codex Run")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Exit code", str(report.exit_code))
    table.add_row("Forwarded env", ", ".join(report.forwarded) or "-")
    table.add_row("Missing env", ", ".join(report.missing) or "-")
    console.print(table)


@main.command("write-auth")
@click.option("--codex-home", required=True, type=click.Path(path_type=Path), help="CODEX_HOME directory")
@click.option(
    "--safety-strategy",
    type=click.Choice(SAFETY_STRATEGIES),
    default=SafetyStrategy.DROP_SUDO.value,
    show_default=True,
)
@click.option("--codex-user", help="Owner of auth.json (unprivileged-user strategy)")
@click.option(
    "--auth-json-b64",
    envvar="CODEX_AUTH_JSON_B64",
    required=True,
    help="Base64-encoded auth.json (prefer the CODEX_AUTH_JSON_B64 env var)",
)
def write_auth(codex_home: Path, safety_strategy: str, codex_user: str | None, auth_json_b64: str) -> None:
    """Write CODEX_HOME/auth.json with owner-only permissions."""
    try:
        dest = write_auth_json(
            codex_home,
            SafetyStrategy(safety_strategy),
            codex_user,
            auth_json_b64,
        )
    except CodexRunnerError as e:
        _fail(e)
        return

    console.print(Panel(f"[green]Credentials written[/green]\n\n{dest}", title="auth.json"))


@main.command("check-env")
@click.argument("names")
def check_env(names: str) -> None:
    """Report which of NAMES are valid and set. Values are never shown.

    NAMES is a comma or newline separated list.
    """
    parsed = parse_pass_through_env(names)

    table = Table(title="Pass-through Environment")
    table.add_column("Name", style="cyan")
    table.add_column("Status")
    for name in parsed.names:
        status = "[green]set[/green]" if name in os.environ else "[yellow]not set[/yellow]"
        table.add_row(name, status)
    for name in parsed.invalid_names:
        table.add_row(name, "[red]invalid name[/red]")
    console.print(table)

    if parsed.invalid_names:
        sys.exit(1)


if __name__ == "__main__":
    main()
