"""Main CLI entry point using Typer."""

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from filescout import __version__
from filescout.config import ConfigurationError, create_config_template, load_config, validate_config_file
from filescout.core.crawler import Crawler, build_index, validate_root
from filescout.core.history import HistoryStore, LookupCounter
from filescout.core.jobs import JobRunner
from filescout.core.query_engine import QueryEngine
from filescout.core.storage import DataDirectory
from filescout.errors import InvalidPathError, StorageError
from filescout.logging import configure_logging
from filescout.models.config import ScoutConfig
from filescout.session.controller import SessionController
from filescout.ui.keyboard import TerminalKeys
from filescout.ui.opener import open_path
from filescout.ui.render import SessionRenderer

app = typer.Typer(
    name="filescout",
    help="Ranked, as-you-type search over the files and folders of a directory tree.",
    add_completion=False,
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"filescout v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """filescout - find files and folders by name, best matches first."""
    pass


RootOption = Annotated[
    Optional[Path],
    typer.Option("--root", "-r", help="Directory tree to search (overrides the config file)."),
]
ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to a YAML configuration file."),
]
DataDirOption = Annotated[
    Optional[Path],
    typer.Option("--data-dir", help="Directory holding the index, history and lookup counts."),
]
LogLevelOption = Annotated[
    Optional[str],
    typer.Option("--log-level", help="Log level for the log file in the data directory."),
]


def _load_settings(config_path: Optional[Path], root: Optional[Path], data_dir: Optional[Path]) -> ScoutConfig:
    try:
        result = load_config(config_path)
    except ConfigurationError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(2)
    return result.config.with_overrides(
        search_root=str(root) if root else None,
        data_dir=str(data_dir) if data_dir else None,
    )


def _prepare_data_dir(settings: ScoutConfig, log_level: Optional[str]) -> DataDirectory:
    data = DataDirectory(settings.data_dir)
    try:
        data.ensure()
    except StorageError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(1)
    configure_logging(data.log_file, log_level)
    return data


@app.command()
def search(
    query: Annotated[Optional[str], typer.Argument(help="Initial query; starts in select mode.")] = None,
    root: RootOption = None,
    config: ConfigOption = None,
    data_dir: DataDirOption = None,
    incognito: Annotated[
        bool,
        typer.Option("--incognito", help="Do not record opened items in the history."),
    ] = False,
    log_level: LogLevelOption = None,
) -> None:
    """Start an interactive search session."""
    settings = _load_settings(config, root, data_dir)
    data = _prepare_data_dir(settings, log_level)

    # Storage failures are fatal here, before the session starts
    try:
        index = data.index.load()
        history = HistoryStore.load(data.history)
        lookups = LookupCounter.load(data.lookups)
    except StorageError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(1)

    history.incognito = incognito
    runner = JobRunner(max_workers=settings.limits.max_concurrent)
    crawler = Crawler(runner, data.index, data.crawl_marker, settings.should_ignore, index=index)
    engine = QueryEngine(runner, result_cap=settings.limits.result_cap)

    try:
        with TerminalKeys() as keys, SessionRenderer(console) as renderer:
            controller = SessionController(
                settings, crawler, engine, runner, history, lookups, keys,
                opener=open_path,
                renderer=renderer,
                initial_query=query or "",
            )
            controller.start()
            controller.run()
    except KeyboardInterrupt:
        pass
    finally:
        runner.shutdown(wait=False)


@app.command()
def crawl(
    root: RootOption = None,
    config: ConfigOption = None,
    data_dir: DataDirOption = None,
    top: Annotated[int, typer.Option("--top", "-n", help="Number of top entries to show.")] = 20,
    log_level: LogLevelOption = None,
) -> None:
    """Rebuild the index now and show the highest ranked entries."""
    settings = _load_settings(config, root, data_dir)
    data = _prepare_data_dir(settings, log_level)

    try:
        root_path = validate_root(settings.search_root)
        lookups = LookupCounter.load(data.lookups)
    except (InvalidPathError, StorageError) as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(1)

    console.print(f"\n🔎 [bold]filescout v{__version__}[/bold]")
    console.print(f"📁 Root: [cyan]{root_path}[/cyan]")
    console.print(f"🗄️  Data: [cyan]{data.root}[/cyan]")

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task("Crawling...", total=None)
        index = build_index(root_path, lookups.snapshot(), settings.should_ignore)

    try:
        data.index.save(index)
        data.crawl_marker.mark(index.crawled_at.date())
    except StorageError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(1)

    console.print(f"✅ Indexed [bold]{index.get_item_count()}[/bold] entries\n")

    table = Table(title=f"Top {min(top, index.get_item_count())} entries")
    table.add_column("Score", justify="right", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Location", style="dim")
    for item in index.items[:top]:
        name = item.name + ("/" if item.is_directory else "")
        table.add_row(f"{item.relevance_score:.3f}", name, item.get_parent())
    console.print(table)


@app.command()
def history(
    config: ConfigOption = None,
    data_dir: DataDirOption = None,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Number of entries to show.")] = 20,
) -> None:
    """Show the most recently opened items."""
    settings = _load_settings(config, None, data_dir)
    data = DataDirectory(settings.data_dir)

    try:
        store = HistoryStore.load(data.history)
    except StorageError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(1)

    if len(store) == 0:
        console.print("[yellow]No history yet.[/yellow]")
        return

    table = Table(title="Recently opened")
    table.add_column("When", style="dim")
    table.add_column("Query", style="cyan")
    table.add_column("Opened", style="bold")
    for entry in store.newest_first()[:limit]:
        table.add_row(f"{entry.timestamp:%Y-%m-%d %H:%M}", entry.query_text, entry.selected_full_path)
    console.print(table)


@app.command("init-config")
def init_config(
    output: Annotated[
        Path,
        typer.Argument(help="Where to write the configuration template."),
    ] = Path(".filescout.yaml"),
) -> None:
    """Write a commented configuration template."""
    if output.exists():
        console.print(f"[red]❌ {output} already exists[/red]")
        raise typer.Exit(1)
    try:
        create_config_template(output)
    except ConfigurationError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(1)
    console.print(f"✅ Wrote [cyan]{output}[/cyan]")


@app.command("check-config")
def check_config(
    path: Annotated[
        Path,
        typer.Argument(help="Configuration file to validate."),
    ] = Path(".filescout.yaml"),
) -> None:
    """Validate a configuration file without starting a session."""
    errors = validate_config_file(path)
    if errors:
        for error in errors:
            console.print(f"[red]❌ {error}[/red]")
        raise typer.Exit(1)
    console.print(f"✅ [cyan]{path}[/cyan] is valid")


if __name__ == "__main__":
    app()
