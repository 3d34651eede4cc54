"""Command-line interface for lark-md."""

import asyncio
import sys
from pathlib import Path

import click
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from lark_md.config import Config, ExportSettings, default_config_dir
from lark_md.converter import MarkdownConverter
from lark_md.errors import LarkMarkdownError
from lark_md.exporter import export_document
from lark_md.media import SourceReader
from lark_md.platforms.snapshot import SnapshotClient
from lark_md.transformer import Transformer

console = Console()


def custom_rich_sink(message):
    """Custom loguru sink with color-coded levels."""
    record = message.record
    level = record["level"].name
    time = record["time"].strftime("%H:%M:%S")
    msg = escape(record["message"])

    level_colors = {
        "DEBUG": "dim",
        "INFO": "blue",
        "SUCCESS": "green",
        "WARNING": "yellow",
        "ERROR": "red bold",
    }

    color = level_colors.get(level, "white")
    formatted = f"[green]{time}[/green] | [{color}]{level: <8}[/{color}] | {msg}"
    console.print(formatted, highlight=False, markup=True)


def configure_logging(verbose: bool = False):
    """Console sink (rich, or plain stderr when verbose) plus a daily file log."""
    logger.remove()

    if verbose:
        logger.add(
            sys.stderr,
            format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
            level="DEBUG"
        )
    else:
        logger.add(custom_rich_sink, level="WARNING")

    log_dir = default_config_dir() / "logs"
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning("File logging disabled: {}", e)
        return
    logger.add(
        log_dir / "lark_md_{time:YYYY-MM-DD}.log",
        rotation="1 day",
        retention="7 days",
        level="DEBUG"
    )


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
def cli(verbose):
    """lark-md - Export Lark docx documents as Markdown"""
    configure_logging(verbose)
    if verbose:
        logger.debug("Verbose logging enabled")


@cli.command()
@click.argument('snapshot', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--output', '-o', 'output_dir', type=click.Path(file_okay=False, path_type=Path),
              help='Directory to write the export to')
@click.option('--title', '-t', help='Document title (default: from snapshot)')
@click.option('--concurrency', '-c', type=click.IntRange(1, 32), help='Concurrent media downloads')
@click.option('--whiteboard/--no-whiteboard', default=None, help='Export whiteboards as images')
@click.option('--stdout', 'to_stdout', is_flag=True, help='Print Markdown only (media left unresolved)')
def convert(snapshot, output_dir, title, concurrency, whiteboard, to_stdout):
    """
    Convert a docx block snapshot to Markdown

    Writes <title>.md, or <title>.zip with images/ and files/ when the
    document references media.

    Examples:
        lark-md convert weekly.json
        lark-md convert weekly.json -o exports --title "Weekly notes"
        lark-md convert weekly.json --stdout
    """
    settings = Config().get_settings()
    if whiteboard is None:
        whiteboard = settings.whiteboard

    try:
        if to_stdout:
            reader = SourceReader(base_dir=snapshot.parent)
            document = SnapshotClient(reader).load(snapshot, title=title, default_title=settings.default_title)
            if not document.is_ready():
                console.print("[yellow]Part of the content is still loading; pending blocks were skipped[/yellow]")
            result = document.into_markdown_ast(Transformer(whiteboard=whiteboard))
            click.echo(MarkdownConverter().ast_to_markdown(result.root), nl=False)
            return

        export = asyncio.run(_export(snapshot, title, whiteboard, concurrency or settings.concurrency, settings))

        target_dir = output_dir or settings.output_path
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / export.filename
        target.write_bytes(export.content)

        if export.failures:
            table = Table(title="Failed downloads")
            table.add_column("Kind", style="cyan")
            table.add_column("Name")
            table.add_column("Error", style="red")
            for failure in export.failures:
                table.add_row(failure.kind, failure.name, failure.error)
            console.print(table)

        if export.media_count > 0:
            console.print(f"  [dim]Media: {export.media_count} files[/dim]")
        console.print(f"[green]✓ Saved {target}[/green]")

    except LarkMarkdownError as e:
        logger.error("Export failed: {}", e)
        console.print(f"[red]✗ {e}[/red]")
        raise click.Abort()


async def _export(snapshot: Path, title, whiteboard: bool, concurrency: int, settings: ExportSettings):
    async with SourceReader(base_dir=snapshot.parent) as reader:
        document = SnapshotClient(reader).load(snapshot, title=title, default_title=settings.default_title)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.percentage:>3.0f}%"),
            console=console,
            transient=True
        ) as progress:
            task = progress.add_task(f"Exporting {document.title}...", total=None)

            def on_progress(done: int, total: int):
                progress.update(task, completed=done, total=total)

            return await export_document(
                document,
                reader,
                whiteboard=whiteboard,
                concurrency=concurrency,
                images_dir=settings.images_dir,
                files_dir=settings.files_dir,
                on_progress=on_progress
            )


@cli.command()
def init():
    """Initialize configuration with export defaults"""
    console.print("[bold cyan]lark-md Setup[/bold cyan]\n")

    config = Config()
    current = config.get_settings()

    settings = ExportSettings(
        output_dir=click.prompt("Output directory", default=current.output_dir),
        concurrency=click.prompt("Concurrent downloads", default=current.concurrency,
                                 type=click.IntRange(1, 32)),
        whiteboard=click.confirm("Export whiteboards as images?", default=current.whiteboard),
        images_dir=current.images_dir,
        files_dir=current.files_dir,
        default_title=current.default_title
    )
    config.save_settings(settings)

    console.print(f"\n[green]✓ Configuration saved to {config.config_file}[/green]")


@cli.command()
def config_show():
    """Show current configuration"""
    config = Config()

    if not config.exists():
        console.print("[yellow]No configuration found, using defaults. Run 'lark-md init' to create one.[/yellow]")

    settings = config.get_settings()
    table = Table(title="Export settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for key, value in vars(settings).items():
        table.add_row(key, str(value))

    console.print(table)


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == '__main__':
    main()
