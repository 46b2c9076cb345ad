"""
CLI commands for studio-sync.

Provides the `studio-sync` command-line interface for project configuration,
snapshot inspection and cold-start normalization of the sync directory.
"""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from config.loader import ConfigurationLoader
from core.models.config import GlobalSettings, SyncConfig
from core.snapshot.builder import SnapshotBuilder
from core.sync.engine import TreeSyncEngine
from studio_sync import __version__

console = Console()

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

project_option = click.option(
    '--project', '-p',
    type=click.Path(file_okay=False, path_type=Path),
    default=Path('.'),
    show_default=True,
    help='Project root containing the .studio-sync directory'
)


def configure_logging(debug: bool = False, settings: Optional[GlobalSettings] = None) -> None:
    """Configure root logging from global settings"""
    settings = settings or GlobalSettings()
    level = logging.DEBUG if debug else getattr(logging, settings.log_level)

    handlers: List[logging.Handler] = [logging.StreamHandler()]
    log_file = settings.get_log_file()
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)


def _parse_prefix(prefix: Optional[str]) -> Tuple[str, ...]:
    if not prefix:
        return ()
    return tuple(segment for segment in prefix.split('/') if segment)


def _load_config(project: Path) -> SyncConfig:
    try:
        config = ConfigurationLoader().load_project_config(project)
    except ValidationError as e:
        console.print(f"[red]❌ Invalid configuration: {e}[/red]")
        sys.exit(1)

    if config.debug_mode:
        logging.getLogger().setLevel(logging.DEBUG)
    return config


@click.group()
@click.version_option(version=__version__, prog_name="studio-sync")
@click.option('--debug', is_flag=True, help='Enable debug logging')
def main(debug: bool):
    """
    studio-sync CLI.

    Mirror an editor's instance tree onto the filesystem and rebuild it from disk.
    """
    configure_logging(debug)


@main.command()
@project_option
@click.option(
    '--force', '-f',
    is_flag=True,
    help='Overwrite existing configuration'
)
def init(project: Path, force: bool):
    """Write a default configuration file for the project."""
    loader = ConfigurationLoader()
    config_file = loader.get_config_file(project)

    if config_file.exists() and not force:
        console.print("[yellow]⚠️  Project already initialized. Use --force to overwrite.[/yellow]")
        return

    project.mkdir(parents=True, exist_ok=True)
    if not loader.save_project_config(project, SyncConfig()):
        console.print(f"[red]❌ Failed to write {config_file}[/red]")
        sys.exit(1)

    console.print(f"[green]✅ Created {config_file}[/green]")


@main.command(name='config')
@project_option
def show_config(project: Path):
    """Show the effective configuration."""
    config = _load_config(project)

    table = Table(title="studio-sync configuration")
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")

    for key, value in config.to_dict().items():
        table.add_row(key, str(value))

    console.print(table)


@main.command()
@click.argument('source_dir', type=click.Path(exists=True, file_okay=False, path_type=Path))
@project_option
@click.option('--prefix', help='Instance path prefix, e.g. ServerScriptService/Game')
@click.option('--json', 'as_json', is_flag=True, help='Print instances as JSON')
def snapshot(source_dir: Path, project: Path, prefix: Optional[str], as_json: bool):
    """Rebuild the instance list from SOURCE_DIR and print it."""
    config = _load_config(project)
    builder = SnapshotBuilder.from_config(config, source_dir, _parse_prefix(prefix))
    try:
        instances = asyncio.run(builder.build())
    except OSError as e:
        console.print(f"[red]❌ Snapshot failed: {e}[/red]")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps([instance.to_wire() for instance in instances], indent=2))
        return

    table = Table(title=f"Snapshot of {source_dir}")
    table.add_column("Path", style="cyan")
    table.add_column("Class", style="yellow")
    table.add_column("Source", style="dim", justify="right")

    for instance in instances:
        size = "-" if instance.source is None else f"{len(instance.source)} chars"
        table.add_row("/".join(instance.path), instance.class_name, size)

    console.print(table)
    if builder.skipped_files:
        console.print(f"[yellow]⚠️  {len(builder.skipped_files)} files could not be read[/yellow]")
    if builder.skipped_dirs:
        console.print(f"[yellow]⚠️  {len(builder.skipped_dirs)} directories could not be scanned[/yellow]")


@main.command()
@project_option
@click.option(
    '--source', '-s',
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help='Directory to seed from (default: the sync directory)'
)
@click.option('--prefix', help='Instance path prefix, e.g. ServerScriptService/Game')
def normalize(project: Path, source: Optional[Path], prefix: Optional[str]):
    """Seed the tree from disk and rewrite the sync directory in canonical form."""
    config = _load_config(project)

    try:
        engine = TreeSyncEngine(config)
        instances = asyncio.run(engine.seed_from_directory(source, _parse_prefix(prefix)))
    except OSError as e:
        console.print(f"[red]❌ Normalization failed: {e}[/red]")
        sys.exit(1)

    stats = engine.get_stats()

    table = Table(title="Normalization summary")
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")
    table.add_row("Instances", str(len(instances)))
    table.add_row("Scripts", str(stats["script_nodes"]))
    table.add_row("Files written", str(stats["files_written"]))
    table.add_row("Orphans deleted", str(stats["orphans_deleted"]))
    table.add_row("Sync directory", str(engine.writer.base_dir))
    console.print(table)

    console.print("[green]🎉 Sync directory normalized[/green]")


if __name__ == "__main__":
    main()
