"""drivergen CLI application entry point.

Built with `Typer <https://typer.tiangolo.com/>`_ and
`Rich <https://rich.readthedocs.io/>`_.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from drivergen.cli.config import DriverGenConfig, load_config
from drivergen.cli.errors import CLIError, ConfigError, error_handler
from drivergen.cli.logging_setup import setup_logging
from drivergen.cli.progress import (
    checkpoints_table,
    drivers_table,
    issues_table,
    spinner,
    summary_panel,
    usage_table,
)
from drivergen.models.artifact import FileKind

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="drivergen",
    help="drivergen – generate, validate and repair API drivers with an LLM.",
    add_completion=False,
    no_args_is_help=True,
)

_console = Console(stderr=True)
_out = Console()


@dataclass
class _Settings:
    config_path: Optional[Path] = None
    verbose: bool = False


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from drivergen import __version__

        _console.print(f"drivergen {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) output.",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration TOML file.",
    ),
) -> None:
    """Global options for the drivergen CLI."""
    ctx.obj = _Settings(config_path=config, verbose=verbose)


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def _load(ctx: typer.Context) -> DriverGenConfig:
    settings: _Settings = ctx.obj or _Settings()
    config = load_config(settings.config_path)
    level = "DEBUG" if settings.verbose else config.log_level
    setup_logging(level, config.log_file, console=_console)
    return config


def _rag(config: DriverGenConfig):
    from drivergen.vectordb.rag import RAGIndex
    from drivergen.vectordb.store import VectorStore

    store = VectorStore.load(config.index_path) if config.index_path.exists() else VectorStore()
    return RAGIndex(store=store, config=config.vector_config())


def _gateway(config: DriverGenConfig):
    from drivergen.llm.gateway import LLMGateway

    return LLMGateway(config.gateway_config())


def _manager(config: DriverGenConfig, *, gateway=None, with_rag: bool = True):
    """Build a PipelineManager over the on-disk driver store.

    Reference material is attached only when *with_rag* is set and an index
    has been built with ``drivergen index``.
    """
    from drivergen.pipeline.manager import PipelineManager
    from drivergen.pipeline.steps import StepExecutor
    from drivergen.pipeline.store import JsonDriverStore

    gateway = gateway or _gateway(config)
    rag = _rag(config) if with_rag and config.index_path.exists() else None
    return PipelineManager(
        StepExecutor.default(gateway, rag=rag),
        JsonDriverStore(config.state_dir),
        max_iterations=config.max_iterations,
    )


def _report(driver) -> None:
    _out.print(summary_panel(driver))
    if driver.validation_errors:
        _out.print(issues_table(driver.validation_errors))


def _report_usage(gateway) -> None:
    if gateway.tracker.totals().requests:
        _console.print(usage_table(gateway.tracker))


# ---------------------------------------------------------------------------
# Generation and repair
# ---------------------------------------------------------------------------


@app.command()
def generate(
    ctx: typer.Context,
    spec_file: Path = typer.Argument(..., help="API documentation (markdown, text or OpenAPI)."),
    name: str = typer.Option(..., "--name", "-n", help="Name of the driver to create."),
    improve: bool = typer.Option(
        False, "--improve", "-i", help="Run the repair loop if the driver is not valid."
    ),
) -> None:
    """Generate a driver from API documentation.

    Example::

        drivergen generate petstore.md --name petstore --improve
    """
    with error_handler(_console):
        config = _load(ctx)
        if not spec_file.is_file():
            raise CLIError(f"Spec file not found: {spec_file}")
        spec = spec_file.read_text(encoding="utf-8")
        gateway = _gateway(config)
        manager = _manager(config, gateway=gateway)

        with spinner(f"Generating {name}...", console=_console):
            driver = asyncio.run(manager.generate_driver(spec, name))
        if improve and not driver.is_valid:
            with spinner(f"Improving {name}...", console=_console):
                driver = asyncio.run(manager.validate_and_improve(name))
        _report(driver)
        _report_usage(gateway)


@app.command()
def validate(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Driver name."),
) -> None:
    """Validate a driver; exits with code 1 when it has issues."""
    with error_handler(_console):
        config = _load(ctx)
        manager = _manager(config, with_rag=False)
        result = asyncio.run(manager.validate_driver(name))
        if result.is_valid:
            _out.print(f"[green]{name} is valid[/green]")
            return
        _out.print(issues_table(result.errors))
        if result.improvement_plan is not None:
            _out.print(result.improvement_plan.prompt)
    raise typer.Exit(1)


@app.command()
def improve(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Driver name."),
) -> None:
    """Run the bounded validate-and-repair loop on a driver."""
    with error_handler(_console):
        config = _load(ctx)
        gateway = _gateway(config)
        manager = _manager(config, gateway=gateway)
        with spinner(f"Improving {name}...", console=_console):
            driver = asyncio.run(manager.validate_and_improve(name))
        _report(driver)
        _report_usage(gateway)


@app.command("improve-part")
def improve_part(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Driver name."),
    target: FileKind = typer.Option(..., "--target", "-t", help="File to improve."),
    feedback: str = typer.Option(..., "--feedback", "-f", help="What to change."),
) -> None:
    """Improve one file of a driver with your own feedback."""
    with error_handler(_console):
        config = _load(ctx)
        gateway = _gateway(config)
        manager = _manager(config, gateway=gateway)
        with spinner(f"Improving {target.value} of {name}...", console=_console):
            driver = asyncio.run(manager.improve_specific_part(name, feedback, target))
        _report(driver)
        _report_usage(gateway)


# ---------------------------------------------------------------------------
# Checkpoints and registry
# ---------------------------------------------------------------------------


@app.command()
def checkpoints(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Driver name."),
) -> None:
    """List the checkpoints of a driver."""
    with error_handler(_console):
        config = _load(ctx)
        manager = _manager(config, with_rag=False)
        driver = manager.get_driver(name)
        _out.print(checkpoints_table(manager.get_driver_checkpoints(name), driver.current_checkpoint))


@app.command()
def rollback(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Driver name."),
    checkpoint_id: Optional[int] = typer.Argument(None, help="Checkpoint to restore."),
    last_valid: bool = typer.Option(
        False, "--last-valid", help="Restore the most recent valid checkpoint."
    ),
) -> None:
    """Restore a driver to an earlier checkpoint."""
    with error_handler(_console):
        if (checkpoint_id is None) == (not last_valid):
            raise CLIError("Give either a checkpoint id or --last-valid")
        config = _load(ctx)
        manager = _manager(config, with_rag=False)
        if last_valid:
            if not asyncio.run(manager.rollback_to_last_valid(name)):
                _out.print(f"[yellow]{name} has no valid checkpoint[/yellow]")
                raise typer.Exit(1)
        else:
            asyncio.run(manager.rollback_driver(name, checkpoint_id))
        driver = manager.get_driver(name)
        _out.print(f"[green]Restored {name} to checkpoint {driver.current_checkpoint}[/green]")


@app.command("list")
def list_drivers(ctx: typer.Context) -> None:
    """List all drivers."""
    with error_handler(_console):
        config = _load(ctx)
        drivers = _manager(config, with_rag=False).list_drivers()
        if not drivers:
            _out.print("[dim]No drivers yet.[/dim]")
            return
        _out.print(drivers_table(drivers))


@app.command()
def delete(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Driver name."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
) -> None:
    """Delete a driver and its checkpoints."""
    with error_handler(_console):
        config = _load(ctx)
        manager = _manager(config, with_rag=False)
        manager.get_driver(name)
        if not yes:
            typer.confirm(f"Delete driver {name}?", abort=True)
        manager.delete_driver(name)
        _out.print(f"[green]Deleted {name}[/green]")


@app.command()
def export(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Driver name."),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Local directory. Defaults to ./<name>."
    ),
    remote: bool = typer.Option(
        False, "--remote", help="Upload to the remote filesystem instead."
    ),
) -> None:
    """Write a driver's files to a directory or the remote filesystem."""
    with error_handler(_console):
        from drivergen.pipeline.export import RemoteFileSystem, export_driver

        config = _load(ctx)
        driver = _manager(config, with_rag=False).get_driver(name)
        if remote:
            if not config.remote_fs_token:
                raise ConfigError("Set remote_fs_token (or DRIVERGEN_REMOTE_FS_TOKEN) to upload")

            async def _upload() -> list[str]:
                async with RemoteFileSystem(config.remote_fs_token, config.remote_fs_url) as fs:
                    return await fs.save_driver(driver)

            paths = asyncio.run(_upload())
            _out.print(f"[green]Uploaded {len(paths)} files to /{name}[/green]")
            return

        written = export_driver(driver, output or Path(name))
        for path in written:
            _out.print(f"  [green]{path}[/green]")


# ---------------------------------------------------------------------------
# Reference material
# ---------------------------------------------------------------------------


@app.command()
def index(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="Directory of docs or example drivers."),
    namespace: str = typer.Option(
        ..., "--namespace", "-n", help="Namespace, e.g. schema_design or code_generation."
    ),
) -> None:
    """Index reference material used as context for generation."""
    with error_handler(_console):
        config = _load(ctx)
        rag = _rag(config)
        with spinner(f"Indexing {path}...", console=_console):
            count = asyncio.run(rag.index_directory(path, namespace))
        rag.store.save(config.index_path)
        _out.print(f"[green]Indexed {count} files into {namespace}[/green]")
