"""Command line interface for snapgen."""

from __future__ import annotations

import difflib
from pathlib import Path
from typing import Any

import click
import yaml
from click.core import ParameterSource
from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax

from snapgen.artifacts import read_signature_file, signature_path_for
from snapgen.config import ConfigError, ConfigManager, flatten_for_env
from snapgen.log_config import configure_logging
from snapgen.reporting import ScanReporter
from snapgen.scan import SnapshotError
from snapgen.signature import SignatureComputer, SignatureError
from snapgen.snapshot import create_snapshot
from snapgen.store import SnapshotStore, StoreError

console = Console()

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Command-line parameter name -> dotted configuration key.
_SNAPSHOT_OVERRIDES = {
    "name": "scan.name",
    "path": "scan.path",
    "out": "scan.out",
    "exclude": "scan.exclude",
    "quiet": "output.quiet",
    "sign": "output.sign",
    "checksum": "output.checksum",
}


def _explicit_overrides(ctx: click.Context, params: dict[str, Any]) -> dict[str, Any]:
    """Return dotted overrides for parameters the user actually passed."""
    overrides: dict[str, Any] = {}
    for param, dotted in _SNAPSHOT_OVERRIDES.items():
        if ctx.get_parameter_source(param) != ParameterSource.COMMANDLINE:
            continue
        value = params[param]
        overrides[dotted] = list(value) if isinstance(value, tuple) else value
    return overrides


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="snapgen")
def cli() -> None:
    """Capture forensic snapshots of directory trees into SQLite databases."""


@cli.command()
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Configuration file (YAML or JSON).",
)
@click.option("-n", "--name", type=str, help="Label stored with the snapshot.")
@click.option(
    "-p",
    "--path",
    type=click.Path(exists=True, file_okay=False, path_type=str),
    help="Directory to scan.",
)
@click.option(
    "-o",
    "--out",
    type=click.Path(dir_okay=False, path_type=str),
    help="Output database; defaults to ./snapshot-<epoch-ms>.db.",
)
@click.option(
    "-e",
    "--exclude",
    multiple=True,
    help="Glob pattern to exclude, relative to the scan root. Repeatable.",
)
@click.option("-q", "--quiet", is_flag=True, help="Suppress progress and summary output.")
@click.option("-s", "--sign", is_flag=True, help="Write a .sig file with the content hash.")
@click.option("-k", "--checksum", is_flag=True, help="Write a .sha256 checksum of the database.")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="Override the configured logging level.",
)
@click.pass_context
def snapshot(
    ctx: click.Context,
    config_path: Path | None,
    name: str | None,
    path: str | None,
    out: str | None,
    exclude: tuple[str, ...],
    quiet: bool,
    sign: bool,
    checksum: bool,
    log_level: str | None,
) -> None:
    """Snapshot a directory tree into a new SQLite database.

    Raises:
        click.ClickException: If configuration is invalid or the snapshot fails.
    """
    params = {
        "name": name,
        "path": path,
        "out": out,
        "exclude": exclude,
        "quiet": quiet,
        "sign": sign,
        "checksum": checksum,
    }
    if config_path is not None and not config_path.expanduser().is_file():
        raise click.ClickException(f"Configuration file {config_path} does not exist.")

    manager = ConfigManager(config_path)
    try:
        config = manager.load(cli_overrides=_explicit_overrides(ctx, params))
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    configure_logging(config.logging, level_override=log_level)
    reporter = ScanReporter(console, quiet=config.output.quiet)

    try:
        create_snapshot(config, reporter=reporter)
    except SnapshotError as exc:
        reporter.failed(exc)
        raise click.exceptions.Exit(1) from exc


@cli.command()
@click.argument("database", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def verify(database: Path) -> None:
    """Recompute the content hash of DATABASE and compare it with its manifest.

    A ``.sig`` file next to the database is checked as well when present.

    Raises:
        click.ClickException: If the snapshot is incomplete or a hash differs.
    """
    try:
        with SnapshotStore(database).open(readonly=True) as store:
            manifest = store.require_manifest()
            computed = SignatureComputer().compute(store)
    except (StoreError, SignatureError) as exc:
        raise click.ClickException(str(exc)) from exc

    if computed != manifest.snapshot_hash:
        raise click.ClickException(
            f"Content hash mismatch: manifest {manifest.snapshot_hash}, computed {computed}."
        )

    sig_path = signature_path_for(database)
    if sig_path.exists():
        try:
            recorded = read_signature_file(sig_path)
        except (OSError, ValueError) as exc:
            raise click.ClickException(f"Cannot read {sig_path}: {exc}") from exc
        if recorded != computed:
            raise click.ClickException(
                f"Signature file {sig_path.name} does not match the database contents."
            )

    console.print(f"[green]Snapshot verified:[/green] {computed}")


@cli.group()
def config() -> None:
    """Inspect and edit ~/.snapgen/config.yaml."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore SNAPGEN__* environment overrides.")
@click.option("--as-env", is_flag=True, help="Print the settings as environment variables.")
def config_view(no_env: bool, as_env: bool) -> None:
    """Show the effective configuration, creating a default file if needed.

    Raises:
        click.ClickException: If the configuration file is invalid.
    """
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        effective = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    if as_env:
        for name, value in flatten_for_env(effective).items():
            click.echo(f"{name}={value}")
        return
    rendered = yaml.safe_dump(effective.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(rendered, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="YAML literal to store under KEY.")
def config_set(key: str, value: str) -> None:
    """Store VALUE under the dotted KEY (for example ``scan.batch_size``) and show the diff.

    Raises:
        click.ClickException: If VALUE is not valid YAML or fails validation.
    """
    try:
        parsed = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    manager = ConfigManager()
    try:
        manager.ensure_exists()
        previous = _content_lines(manager.read_text())
        manager.set_value(key, parsed)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    changes = list(
        difflib.unified_diff(
            previous,
            _content_lines(manager.read_text()),
            fromfile=f"{manager.config_path.name} (before)",
            tofile=f"{manager.config_path.name} (after)",
            lineterm="",
        )
    )
    if not changes:
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return
    console.print(Syntax("\n".join(changes), "diff", word_wrap=False))
    console.print(f"[green]Updated {escape(key)}.[/green]")


def _content_lines(text: str) -> list[str]:
    # The timestamp line changes on every save.
    return [line for line in text.splitlines() if not line.startswith("# Last updated")]


def main() -> None:
    """Entry point for the ``snapgen`` console script."""
    cli()


__all__ = ["cli", "main"]
