"""Typer-based CLI for ripple code-impact analysis."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__, config
from .aggregation import ImpactAggregator
from .config_manager import AnalysisConfig, load_analysis_config
from .engine import ImpactEngine
from .models import SYMBOL_KINDS, ContentChange, EditImpact

console = Console()

app = typer.Typer(
    help="Real-time code impact analysis: what breaks if you change this?",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

_SEVERITY_STYLE = {"critical": "red", "warning": "yellow", "safe": "green"}


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"ripple v{__version__}")
        raise typer.Exit()


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


@app.callback()
def main(
    ctx: typer.Context,
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    config_file: Optional[Path] = typer.Option(
        None, "--config", help="Path to config.toml (default: $RIPPLE_HOME/config.toml).",
    ),
):
    """ripple: dependency graphs and breaking-change detection for source trees."""
    cfg = load_analysis_config(config_file)
    ctx.obj = cfg
    _setup_logging("DEBUG" if verbose else cfg.log_level)


def _config(ctx: typer.Context) -> AnalysisConfig:
    return ctx.obj if isinstance(ctx.obj, AnalysisConfig) else load_analysis_config(config.CONFIG_FILE)


def _indexed_engine(ctx: typer.Context, root: Path) -> ImpactEngine:
    engine = ImpactEngine(root, _config(ctx))
    engine.index_workspace()
    return engine


@app.command("index")
def index_workspace(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, file_okay=False, help="Workspace root to scan."),
):
    """Parse every supported file and build the dependency graph."""
    engine = ImpactEngine(path, _config(ctx))
    stats = engine.index_workspace()
    typer.echo(f"Indexed '{engine.workspace_root}'.")
    typer.echo(
        f"Files: {stats['files']} | Nodes: {stats['nodes']} | "
        f"Edges: {stats['edges']} | Errors: {stats['errors']}"
    )


@app.command("impact")
def impact(
    ctx: typer.Context,
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="File being edited."),
    line: int = typer.Argument(..., min=1, help="1-based line of the edit."),
    column: int = typer.Argument(..., min=1, help="1-based column of the edit."),
    text: str = typer.Option("", "--text", "-t", help="Inserted text."),
    removed: int = typer.Option(0, "--removed", "-r", min=0, help="Number of characters removed."),
    root: Path = typer.Option(Path("."), "--root", file_okay=False, help="Workspace root."),
    as_json: bool = typer.Option(False, "--json", help="Print the impact as JSON."),
):
    """Report the impact of an edit at FILE:LINE:COLUMN."""
    engine = _indexed_engine(ctx, root)
    change = ContentChange(line=line, column=column, range_length=removed, text=text)
    result = engine.analyze_edit(file.resolve(), change)
    if result is None:
        typer.echo("No impact: no symbol at that position.")
        return
    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2))
        return
    _print_impact(result)


@app.command("dependents")
def dependents(
    ctx: typer.Context,
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="File defining the symbol."),
    name: str = typer.Argument(..., help="Symbol name, e.g. 'helper' or 'Class.method'."),
    kind: Optional[str] = typer.Option(None, "--kind", "-k", help="Symbol kind to disambiguate."),
    depth: Optional[int] = typer.Option(
        None, "--depth", "-d", min=0, help="Follow dependents transitively up to this many hops.",
    ),
    root: Path = typer.Option(Path("."), "--root", file_okay=False, help="Workspace root."),
):
    """List the symbols that depend on NAME."""
    if kind is not None and kind not in SYMBOL_KINDS:
        raise typer.BadParameter(f"Unknown kind '{kind}'. Choose from: {', '.join(SYMBOL_KINDS)}")
    engine = _indexed_engine(ctx, root)
    symbol = engine.find_symbol(file.resolve(), name, kind)
    if symbol is None:
        typer.echo(f"Symbol '{name}' not found in {file}.")
        raise typer.Exit(1)

    found = engine.dependents(symbol, transitive=depth is not None and depth > 0, max_depth=depth)
    if not found:
        typer.echo(f"No dependents for {symbol.kind} '{symbol.name}'.")
        return
    for dep in found:
        typer.echo(f"{dep.file_path}:{dep.start_line}  {dep.kind} {dep.name}")


@app.command("package")
def package(
    ctx: typer.Context,
    action: str = typer.Argument(..., help="'install' or 'remove'."),
    name: str = typer.Argument(..., help="Package name, e.g. 'requests' or 'react'."),
    version: str = typer.Option("latest", "--version", help="Version to install."),
    root: Path = typer.Option(Path("."), "--root", file_okay=False, help="Workspace root."),
    as_json: bool = typer.Option(False, "--json", help="Print the impact as JSON."),
):
    """Estimate what installing or removing a package touches."""
    if action not in ("install", "remove"):
        raise typer.BadParameter(f"Unknown action '{action}'. Choose from: install, remove")
    engine = _indexed_engine(ctx, root)
    if action == "install":
        result = engine.analyze_install(name, version)
    else:
        result = engine.analyze_remove(name)
    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2))
        return

    console.print(
        f"[bold]{result.type}[/bold] {result.package_name} | "
        f"risk [bold]{result.risk_score}[/bold] ({result.estimated_effort})"
    )
    for conflict in result.conflicts:
        style = _SEVERITY_STYLE.get(conflict.severity, "white")
        console.print(f"  [{style}]{conflict.severity}[/{style}] {conflict.reason}")
    for affected in result.affected_files:
        console.print(f"  [cyan]{affected.file}[/cyan] ({affected.action})")
    for step in result.migration_steps:
        console.print(f"  - {step}")


@app.command("export")
def export_graph(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, file_okay=False, help="Workspace root to scan."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write JSON here instead of stdout."),
):
    """Export the dependency graph as JSON."""
    engine = _indexed_engine(ctx, path)
    payload = json.dumps(engine.export(), indent=2)
    if output is None:
        typer.echo(payload)
        return
    output.write_text(payload)
    typer.echo(f"Graph exported to {output}")


@app.command("watch")
def watch(
    ctx: typer.Context,
    path: Path = typer.Argument(Path("."), exists=True, file_okay=False, help="Workspace root to watch."),
):
    """Keep the graph up to date as files change on disk.

    Example:
      ripple watch ./src
    """
    engine = _indexed_engine(ctx, path)
    stats = engine.stats()
    console.print(f"\n[bold green]Watching[/bold green] [cyan]{engine.workspace_root}[/cyan] for changes...")
    console.print(f"[dim]  Nodes: {stats['nodes']} | Edges: {stats['edges']}")
    console.print(f"  Debounce: {engine.config.debounce_ms}ms")
    console.print("  Press Ctrl+C to stop[/dim]\n")

    watcher = engine.watcher()
    try:
        watcher.run_forever()
    except KeyboardInterrupt:
        stats = engine.stats()
        console.print(
            f"\n[yellow]Stopped watching.[/yellow] {stats['nodes']} nodes, {stats['edges']} edges."
        )


def _print_impact(result: EditImpact) -> None:
    symbol = result.symbol
    label = f"{symbol.kind} {symbol.name}" if symbol else "unknown symbol"
    console.print(
        f"[bold]{result.type}[/bold] {label} at {result.location} | "
        f"risk [bold]{result.risk_score}[/bold] ({result.estimated_effort})"
    )

    for bc in result.breaking_changes:
        style = _SEVERITY_STYLE.get(bc.severity, "white")
        console.print(f"  [{style}]{bc.severity}[/{style}] {bc.change_type}: {bc.description}")

    aggregator = ImpactAggregator()
    impacts = aggregator.impacts_from_edit(result)
    if not impacts:
        console.print("[dim]No dependents affected.[/dim]")
        return

    visible, hidden = aggregator.summarize_list(aggregator.group_by_module(impacts))
    table = Table(title="Affected modules", show_lines=False)
    table.add_column("Module", style="cyan")
    table.add_column("Files", justify="right")
    table.add_column("Risk", style="magenta")
    for module in visible:
        table.add_row(module.module, str(module.count), module.risk_level)
    console.print(table)
    if hidden:
        console.print(f"[dim]... and {hidden} more module(s)[/dim]")

    for summary in aggregator.top_impacted_files(impacts):
        style = _SEVERITY_STYLE.get(summary.severity, "white")
        console.print(f"  [{style}]{summary.file}[/{style}] ({summary.count} call site(s))")
    if result.transitive_dependents:
        console.print(f"[dim]{len(result.transitive_dependents)} transitive dependent(s)[/dim]")
