"""CLI commands for icarebridge.

Each operation command reads a JSON parameter file (camelCase or snake_case keys),
runs the operation in a fresh guest runtime and prints the normalized result.
"""

import asyncio
import json
from pathlib import Path
from typing import Any

import typer
from loguru import logger
from rich.console import Console

from icarebridge import __version__
from icarebridge.cli.shared.logging_utils import configure_console, ensure_rotating_log_file
from icarebridge.config.loader import get_config_path, load_config, save_config
from icarebridge.config.schema import Config
from icarebridge.loader import load_icare
from icarebridge.operations import (
    COMPUTE_ABSOLUTE_RISK,
    COMPUTE_ABSOLUTE_RISK_SPLIT_INTERVAL,
    VALIDATE_ABSOLUTE_RISK_MODEL,
    Operation,
)
from icarebridge.utils.exceptions import ICareBridgeError

app = typer.Typer(
    name="icarebridge",
    help="icarebridge - iCARE absolute risk models in an embedded Python runtime",
    no_args_is_help=True,
)

console = Console()

ParamsArg = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="JSON file with operation parameters")
ConfigOpt = typer.Option(None, "--config", "-c", help="Config file (default ~/.icarebridge/config.json)")
OutputOpt = typer.Option(None, "--output", "-o", help="Write the result JSON here instead of stdout")
InstallOpt = typer.Option(False, "--install", help="pip install the configured package into the guest first")
VerboseOpt = typer.Option(False, "--verbose", "-v", help="Debug logging")


def _read_params(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid JSON in {path}: {e}[/red]")
        raise typer.Exit(2)
    if not isinstance(data, dict):
        console.print(f"[red]{path} must contain a JSON object[/red]")
        raise typer.Exit(2)
    return data


def _prepare(config_path: Path | None, install: bool, verbose: bool, command: str) -> Config:
    try:
        config = load_config(config_path)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(2)
    if install:
        config.runtime.install_package = True
    level = "DEBUG" if verbose else config.logging.level
    configure_console(level)
    if config.logging.file:
        ensure_rotating_log_file(command, level=level)
    return config


async def _run_operation(config: Config, operation: Operation, params: dict[str, Any]) -> Any:
    async with await load_icare(config) as icare:
        return await icare.facade(operation.name)(params)


def _execute(
    operation: Operation,
    params_file: Path,
    config_path: Path | None,
    output: Path | None,
    install: bool,
    verbose: bool,
) -> None:
    config = _prepare(config_path, install, verbose, operation.name)
    params = _read_params(params_file)
    try:
        result = asyncio.run(_run_operation(config, operation, params))
    except ICareBridgeError as e:
        logger.debug("{} failed: {}", operation.name, e.to_dict())
        console.print(f"[red]Error ({e.code}):[/red] {e.message}")
        raise typer.Exit(1)
    text = json.dumps(result, indent=2, default=str)
    if output:
        output.write_text(text + "\n", encoding="utf-8")
        console.print(f"[green]✓[/green] Wrote {operation.name} result to {output}")
    else:
        console.print_json(text)


@app.command()
def version():
    """Show the icarebridge version."""
    console.print(f"icarebridge v{__version__}")


@app.command("config-init")
def config_init(
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing config"),
):
    """Write a default config to ~/.icarebridge/config.json."""
    config_path = get_config_path()
    if config_path.exists() and not force:
        console.print(f"[yellow]Config already exists at {config_path}[/yellow] (use --force to overwrite)")
        raise typer.Exit(1)
    save_config(Config(), config_path)
    console.print(f"[green]✓[/green] Created config at {config_path}")


@app.command("compute-risk")
def compute_risk(
    params_file: Path = ParamsArg,
    config_path: Path = ConfigOpt,
    output: Path = OutputOpt,
    install: bool = InstallOpt,
    verbose: bool = VerboseOpt,
):
    """Build an absolute risk model and estimate risks for the given profiles."""
    _execute(COMPUTE_ABSOLUTE_RISK, params_file, config_path, output, install, verbose)


@app.command("compute-risk-split")
def compute_risk_split(
    params_file: Path = ParamsArg,
    config_path: Path = ConfigOpt,
    output: Path = OutputOpt,
    install: bool = InstallOpt,
    verbose: bool = VerboseOpt,
):
    """Absolute risk with separate model inputs before and after a cut-point age."""
    _execute(COMPUTE_ABSOLUTE_RISK_SPLIT_INTERVAL, params_file, config_path, output, install, verbose)


@app.command()
def validate(
    params_file: Path = ParamsArg,
    config_path: Path = ConfigOpt,
    output: Path = OutputOpt,
    install: bool = InstallOpt,
    verbose: bool = VerboseOpt,
):
    """Validate an absolute risk model against study data."""
    _execute(VALIDATE_ABSOLUTE_RISK_MODEL, params_file, config_path, output, install, verbose)


if __name__ == "__main__":
    app()
