"""conceptmap CLI - typer application entry point."""

from __future__ import annotations

import atexit
import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape

from conceptmap.config import (
    CONFIG_FILENAME,
    ConfigError,
    EditorConfig,
    StorageConfig,
    write_config,
)
from conceptmap.graph.errors import ConceptMapError
from conceptmap.observability import close_file_logging, configure_logging

if TYPE_CHECKING:
    from conceptmap.session import EditorSession

load_dotenv()

app = typer.Typer(
    name="cmap",
    help="conceptmap: build and edit concept maps from the terminal.",
    no_args_is_help=True,
)
console = Console()

_verbose: int = 0
_log_enabled: bool = False

ProjectOption = Annotated[
    Path | None,
    typer.Option(
        "--project",
        "-p",
        help="Project directory (default: current directory).",
        envvar="CMAP_PROJECT",
    ),
]


@app.callback()
def main(
    verbose: Annotated[
        int,
        typer.Option(
            "-v",
            "--verbose",
            count=True,
            help="Increase verbosity: -v for INFO, -vv for DEBUG.",
        ),
    ] = 0,
    log_file: Annotated[
        bool,
        typer.Option(
            "--log",
            help="Enable file logging to {project}/logs/debug.jsonl.",
        ),
    ] = False,
) -> None:
    """conceptmap: build and edit concept maps from the terminal."""
    global _verbose, _log_enabled
    _verbose = verbose
    _log_enabled = log_file

    configure_logging(verbosity=verbose)


def _configure_project_logging(project_path: Path) -> None:
    if _log_enabled:
        configure_logging(verbosity=_verbose, log_to_file=True, project_path=project_path)
        atexit.register(close_file_logging)


def _require_project(project_path: Path) -> None:
    """Exit with an error unless *project_path* holds a conceptmap.yaml."""
    if not (project_path / CONFIG_FILENAME).exists():
        console.print(
            f"[red]Error:[/red] No {CONFIG_FILENAME} found in {escape(str(project_path))}. "
            "Run 'cmap init <name>' first or pass --project."
        )
        raise typer.Exit(1)


@contextmanager
def _session(project: Path | None) -> Iterator[EditorSession]:
    """Open a session for one command and flush it afterwards."""
    from conceptmap.session import open_session

    project_path = project if project is not None else Path()
    _require_project(project_path)
    _configure_project_logging(project_path)
    try:
        session = open_session(project_path)
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e

    if session.loaded.source == "seed" and session.loaded.reason:
        reason = escape(session.loaded.reason)
        console.print(f"[yellow]Warning:[/yellow] using seed graph ({reason})")
    try:
        yield session
    except ConceptMapError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e
    finally:
        session.close()


def _report(changed: bool, element_id: str) -> None:
    if not changed:
        console.print(f"[yellow]No element with id '{escape(element_id)}'[/yellow]")
        raise typer.Exit(1)
    console.print("[green]✓[/green] Saved")


# =============================================================================
# Commands
# =============================================================================


@app.command()
def version() -> None:
    """Show version information."""
    from conceptmap import __version__

    console.print(f"conceptmap v{__version__}")


@app.command()
def init(
    name: Annotated[str, typer.Argument(help="Project name")],
    path: Annotated[
        Path | None,
        typer.Option("--path", help="Parent directory for the project (default: cwd)."),
    ] = None,
    backend: Annotated[
        str,
        typer.Option("--backend", help="Storage backend: json or sqlite."),
    ] = "json",
    empty: Annotated[
        bool,
        typer.Option("--empty", help="Start with an empty map instead of the sample."),
    ] = False,
) -> None:
    """Create a new concept map project.

    Writes conceptmap.yaml and an initial document.
    """
    from conceptmap.graph.models import Snapshot
    from conceptmap.persistence.adapter import save_snapshot, seed_snapshot
    from conceptmap.session import create_storage

    parent_dir = path if path is not None else Path()
    project_path = parent_dir / name
    if project_path.exists():
        console.print(f"[red]Error:[/red] Directory '{escape(str(project_path))}' already exists")
        raise typer.Exit(1)

    try:
        config = EditorConfig(name=name, storage=StorageConfig.from_dict({"backend": backend}))
    except ValueError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e

    project_path.mkdir(parents=True)
    write_config(project_path, config)

    storage = create_storage(project_path, config)
    try:
        save_snapshot(storage, Snapshot() if empty else seed_snapshot())
    finally:
        storage.close()

    console.print(f"[green]✓[/green] Created project: [bold]{escape(name)}[/bold]")
    console.print(f"  Location: {escape(str(project_path.absolute()))}")


@app.command()
def show(
    project: ProjectOption = None,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the raw node and edge records."),
    ] = False,
) -> None:
    """Show nodes, edges and the nesting hierarchy."""
    from conceptmap.inspection import edges_table, hierarchy_tree, nodes_table

    with _session(project) as session:
        snapshot = session.store.snapshot
        if as_json:
            nodes, edges = snapshot.to_records()
            typer.echo(json.dumps({"nodes": nodes, "edges": edges}, indent=2, ensure_ascii=False))
            return
        console.print(nodes_table(snapshot))
        console.print(edges_table(snapshot))
        console.print(hierarchy_tree(snapshot, title=session.config.name))


@app.command()
def check(project: ProjectOption = None) -> None:
    """Report document statistics and dangling references."""
    from conceptmap.inspection import summarize

    with _session(project) as session:
        summary = summarize(session.store.snapshot)

    console.print(f"Nodes: {summary.total_nodes} ({summary.root_nodes} top-level)")
    console.print(f"Edges: {summary.total_edges}")
    console.print(f"Deepest nesting: {summary.max_depth}")
    for dir_name, count in sorted(summary.directions.items()):
        console.print(f"  {dir_name}: {count}")

    problems = False
    for edge_id in summary.dangling_edges:
        console.print(f"[red]✗[/red] Edge '{escape(edge_id)}' points at a missing node")
        problems = True
    for node_id in summary.dangling_parents:
        console.print(f"[red]✗[/red] Node '{escape(node_id)}' is nested under a missing node")
        problems = True
    if problems:
        raise typer.Exit(1)
    console.print("[green]✓[/green] No dangling references")


@app.command("add-node")
def add_node(
    name: Annotated[str, typer.Argument(help="Concept name")],
    parent: Annotated[
        str | None,
        typer.Option("--parent", help="Id of the node to nest this one in."),
    ] = None,
    project: ProjectOption = None,
) -> None:
    """Add a concept."""
    with _session(project) as session:
        node_id = session.store.add_node(name, parent)
    console.print(f"[green]✓[/green] Added node [cyan]{escape(node_id)}[/cyan]")


@app.command("add-edge")
def add_edge(
    source: Annotated[str, typer.Argument(help="Source node id")],
    target: Annotated[str, typer.Argument(help="Target node id")],
    label: Annotated[str, typer.Option("--label", "-l", help="Relation label.")] = "",
    direction: Annotated[
        str,
        typer.Option("--direction", help="none, source-to-target, target-to-source or both."),
    ] = "source-to-target",
    project: ProjectOption = None,
) -> None:
    """Add a relation between two existing nodes."""
    with _session(project) as session:
        store = session.store
        missing = [n for n in (source, target) if store.kind_of(n) != "node"]
        if missing:
            console.print(f"[red]Error:[/red] Not a node: {escape(', '.join(missing))}")
            raise typer.Exit(1)
        edge_id = store.add_edge(source, target, label, direction)
    console.print(f"[green]✓[/green] Added edge [cyan]{escape(edge_id)}[/cyan]")


@app.command()
def remove(
    element_id: Annotated[str, typer.Argument(help="Node or edge id")],
    project: ProjectOption = None,
) -> None:
    """Remove a node (and every edge touching it) or an edge."""
    with _session(project) as session:
        changed = session.store.remove_element(element_id)
    _report(changed, element_id)


@app.command()
def rename(
    node_id: Annotated[str, typer.Argument(help="Node id")],
    name: Annotated[str, typer.Argument(help="New name")],
    project: ProjectOption = None,
) -> None:
    """Rename a node."""
    with _session(project) as session:
        changed = session.store.update_node_name(node_id, name)
    _report(changed, node_id)


@app.command()
def relabel(
    edge_id: Annotated[str, typer.Argument(help="Edge id")],
    label: Annotated[str, typer.Argument(help="New label")],
    project: ProjectOption = None,
) -> None:
    """Change an edge's label."""
    with _session(project) as session:
        changed = session.store.update_edge_label(edge_id, label)
    _report(changed, edge_id)


@app.command()
def direction(
    edge_id: Annotated[str, typer.Argument(help="Edge id")],
    value: Annotated[
        str, typer.Argument(help="none, source-to-target, target-to-source or both")
    ],
    project: ProjectOption = None,
) -> None:
    """Change an edge's direction."""
    with _session(project) as session:
        changed = session.store.update_edge_direction(edge_id, value)
    _report(changed, edge_id)


@app.command()
def reparent(
    node_id: Annotated[str, typer.Argument(help="Node id")],
    parent: Annotated[
        str | None,
        typer.Option("--parent", help="New parent id; omit to make the node top-level."),
    ] = None,
    project: ProjectOption = None,
) -> None:
    """Nest a node inside another, or move it to the top level."""
    with _session(project) as session:
        changed = session.store.set_node_parent(node_id, parent)
    _report(changed, node_id)


@app.command()
def style(
    element_id: Annotated[str, typer.Argument(help="Node or edge id")],
    prop: Annotated[str, typer.Argument(help="Style property, e.g. borderColor")],
    value: Annotated[str, typer.Argument(help="New value")],
    cascade: Annotated[
        bool,
        typer.Option("--cascade", help="Also apply to every node nested inside this one."),
    ] = False,
    project: ProjectOption = None,
) -> None:
    """Set a style property on an element."""
    from conceptmap.shell import coerce_value

    coerced = coerce_value(value)
    with _session(project) as session:
        if cascade:
            updated = session.propagator.apply_style_to_children(element_id, prop, coerced)
        else:
            updated = int(session.store.update_element_style(element_id, prop, coerced))
    if not updated:
        console.print(f"[yellow]No element with id '{escape(element_id)}'[/yellow]")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Updated {updated} element(s)")


@app.command()
def shell(project: ProjectOption = None) -> None:
    """Edit interactively, with undo and redo."""
    from conceptmap.shell import run_shell

    with _session(project) as session:
        run_shell(session, console)
