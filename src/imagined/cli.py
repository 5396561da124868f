from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .cleanup import collect_unused
from .gen.config import ConfigError, Settings, load_settings
from .scan import ScanResult, scan
from .watch import ChangeWatcher

app = typer.Typer(add_completion=False)
console = Console()

COMMANDS = ("generate", "scan", "cleanup", "clean", "watch")
DEFAULT_COMMAND = "generate"


def _looks_like_path(arg: str) -> bool:
    if arg.startswith(".") or arg.startswith("/"):
        return True
    if os.sep in arg or "/" in arg:
        return True
    return arg not in COMMANDS and Path(arg).is_dir()


def parse_positionals(first: Optional[str], second: Optional[str]) -> tuple[str, Optional[str]]:
    """Split the positional arguments into (command, directory)."""
    if first is None:
        return DEFAULT_COMMAND, None
    if second is not None:
        command, directory = first, second
    elif _looks_like_path(first):
        return DEFAULT_COMMAND, first
    else:
        command, directory = first, None
    if command not in COMMANDS:
        raise typer.BadParameter(
            f"Unknown command '{command}'. Expected one of: {', '.join(COMMANDS)}",
            param_hint="COMMAND",
        )
    return command, directory


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False, markup=False)],
        force=True,
    )


def _target_dir(directory: Optional[str], settings: Settings) -> Path:
    if directory:
        return Path(directory).resolve()
    if settings.source_dir:
        return Path(settings.source_dir)
    return Path.cwd()


def _print_scan(result: ScanResult, generate: bool, write: bool) -> None:
    table = Table(title="Image declarations")
    table.add_column("Files scanned")
    table.add_column("Declarations")
    table.add_column("Files changed")
    if generate:
        table.add_column("Generated")
        table.add_column("Skipped")
        table.add_column("Failed")
    row = [
        str(result.files_scanned),
        str(result.declarations),
        str(len(result.files_changed)),
    ]
    if generate:
        gen = result.generation
        row += [str(len(gen.generated)), str(len(gen.skipped)), str(len(gen.errors))]
    table.add_row(*row)
    console.print(table)

    if result.files_changed:
        label = "Rewritten" if write else "Would rewrite (preview, use --write to apply)"
        console.print(f"\n[bold green]{label}:[/bold green]")
        for path in result.files_changed:
            console.print(f"  - {path}")

    if result.file_errors:
        console.print("\n[bold yellow]Files skipped:[/bold yellow]")
        for path, error in result.file_errors:
            console.print(f"  - {path}: {error}")

    if result.generation.errors:
        console.print("\n[bold red]Errors:[/bold red]")
        for key, error in result.generation.errors:
            console.print(f"  - {key}: {error}")


def _run_scan(root: Path, settings: Settings, generate: bool, write: bool) -> None:
    result = scan(root, settings, generate=generate, write=write)
    _print_scan(result, generate, write)
    if result.generation.errors:
        raise typer.Exit(code=1)


def _run_cleanup(root: Path, settings: Settings, dry_run: bool, force: bool) -> None:
    result = collect_unused(root, settings.output_path, dry_run=dry_run, settings=settings, force=force)

    table = Table(title="Cleanup")
    table.add_column("Referenced")
    table.add_column("Unused")
    table.add_column("Removed")
    table.add_row(str(len(result.referenced)), str(len(result.unused)), str(len(result.removed)))
    console.print(table)

    if result.unused and (dry_run or result.blocked):
        console.print("\n[bold yellow]Unused images:[/bold yellow]")
        for path in result.unused:
            console.print(f"  - {path.name}")

    if result.parse_errors:
        console.print("\n[bold yellow]Files that failed to parse:[/bold yellow]")
        for path, error in result.parse_errors:
            console.print(f"  - {path}: {error}")

    if result.blocked:
        console.print("\n[bold red]Deletion blocked[/bold red] - references unknown; use --force to override")
        raise typer.Exit(code=1)

    if result.errors:
        console.print("\n[bold red]Errors:[/bold red]")
        for path, error in result.errors:
            console.print(f"  - {path}: {error}")
        raise typer.Exit(code=1)


@app.command()
def main(
    first: Optional[str] = typer.Argument(None, metavar="[COMMAND]", help="generate | scan | cleanup | clean | watch"),
    second: Optional[str] = typer.Argument(None, metavar="[DIRECTORY]", help="Source directory to process"),
    generate: bool = typer.Option(False, "--generate", "-g", help="Generate missing images while scanning"),
    output: Optional[Path] = typer.Option(None, "--output", help="Output directory for generated images"),
    dry_run: bool = typer.Option(False, "--dry-run", "-d", help="Report unused images without deleting"),
    force: bool = typer.Option(False, "--force", help="cleanup: delete unused images even when some source files failed to parse (deletion is blocked otherwise)"),
    write: bool = typer.Option(False, "--write", "-w", help="Rewrite source files in place"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Resolve <Imagined> image declarations in a source tree.

    cleanup refuses to delete anything while a source file fails to parse,
    since its references are unknown; --force overrides this.
    """
    command, directory = parse_positionals(first, second)
    _setup_logging(verbose)

    try:
        settings = load_settings(Path.cwd(), output_dir=output)
    except ConfigError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        raise typer.Exit(code=2) from e

    root = _target_dir(directory, settings)
    if not root.is_dir():
        console.print(f"[bold red]Directory not found:[/bold red] {root}")
        raise typer.Exit(code=2)

    write_back = write or settings.write_back
    console.print(f"[bold]{command}[/bold] {root}")

    if command in ("cleanup", "clean"):
        _run_cleanup(root, settings, dry_run, force)
    elif command == "watch":
        ChangeWatcher(root, settings, write=write_back).run()
    else:
        _run_scan(root, settings, generate=command == "generate" or generate, write=write_back)


if __name__ == "__main__":
    app()
