"""Interactive editing shell over one session.

Each line is one command. History lives as long as the shell does, so
``undo`` and ``redo`` work here (one-shot CLI commands start a fresh
history every run).
"""

from __future__ import annotations

import shlex
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from conceptmap.graph.errors import ConceptMapError
from conceptmap.graph.models import EDGE_DIRECTIONS
from conceptmap.graph.selection import SelectionEvent, SelectionTracker
from conceptmap.inspection import edges_table, hierarchy_tree, nodes_table
from conceptmap.observability.logging import get_logger
from rich.markup import escape

if TYPE_CHECKING:
    from rich.console import Console
    from conceptmap.graph.store import GraphStore
    from conceptmap.session import EditorSession

log = get_logger(__name__)

HELP_TEXT = """\
  show                              tables and hierarchy
  tree                              hierarchy only
  add-node NAME [PARENT]            create a concept
  add-edge SOURCE TARGET [LABEL] [DIRECTION]
  remove ID                         delete a node (with its edges) or an edge
  rename NODE NAME                  rename a node
  relabel EDGE LABEL                relabel an edge
  direction EDGE DIRECTION          none | source-to-target | target-to-source | both
  reparent NODE [PARENT]            nest a node, or un-nest it
  style ID PROPERTY VALUE           set one style property
  cascade NODE PROPERTY VALUE       set a style on a node and all its descendants
  select [ID]                       select an element (no ID clears)
  undo | redo                       step through history
  save                              write pending changes now
  help | quit
"""


class ShellCommandError(Exception):
    """Raised for malformed shell input."""


def coerce_value(raw: str) -> Any:
    """Interpret a style value typed at the prompt.

    Whole numbers become int, decimals float; anything else stays a string.
    """
    try:
        return int(raw)
    except ValueError:
        pass
    if not any(ch.isdigit() for ch in raw):
        return raw
    try:
        return float(raw)
    except ValueError:
        return raw


def _require(args: list[str], count: int, usage: str) -> None:
    if len(args) < count:
        raise ShellCommandError(f"usage: {usage}")


class Shell:
    """Command dispatcher bound to a session and a console."""

    def __init__(self, session: EditorSession, console: Console) -> None:
        self.session = session
        self.console = console
        self.selection = SelectionTracker(session.store)
        self.selection.add_listener(self._on_selection)
        self._commands: dict[str, Callable[[list[str]], None]] = {
            "show": self._show,
            "tree": self._tree,
            "add-node": self._add_node,
            "add-edge": self._add_edge,
            "remove": self._remove,
            "rename": self._rename,
            "relabel": self._relabel,
            "direction": self._direction,
            "reparent": self._reparent,
            "style": self._style,
            "cascade": self._cascade,
            "select": self._select,
            "undo": self._undo,
            "redo": self._redo,
            "save": self._save,
            "help": self._help,
        }

    @property
    def store(self) -> GraphStore:
        return self.session.store

    def execute(self, line: str) -> bool:
        """Run one command line.

        Returns:
            False when the shell should exit, True otherwise.
        """
        try:
            parts = shlex.split(line)
        except ValueError as e:
            self.console.print(f"[red]Error:[/red] {escape(str(e))}")
            return True
        if not parts:
            return True

        name, args = parts[0].lower(), parts[1:]
        if name in ("quit", "exit"):
            return False

        handler = self._commands.get(name)
        if handler is None:
            self.console.print(f"[red]Unknown command:[/red] {escape(name)} (try 'help')")
            return True
        try:
            handler(args)
        except (ShellCommandError, ConceptMapError) as e:
            self.console.print(f"[red]Error:[/red] {escape(str(e))}")
        return True

    def close(self) -> None:
        self.selection.close()

    # -- Handlers --------------------------------------------------------------

    def _report(self, changed: bool, element_id: str) -> None:
        if changed:
            self.console.print("[green]✓[/green] done")
        else:
            self.console.print(f"[yellow]No element with id '{escape(element_id)}'[/yellow]")

    def _show(self, args: list[str]) -> None:
        snapshot = self.store.snapshot
        self.console.print(nodes_table(snapshot))
        self.console.print(edges_table(snapshot))
        self.console.print(hierarchy_tree(snapshot))

    def _tree(self, args: list[str]) -> None:
        self.console.print(hierarchy_tree(self.store.snapshot))

    def _add_node(self, args: list[str]) -> None:
        _require(args, 1, "add-node NAME [PARENT]")
        node_id = self.store.add_node(args[0], args[1] if len(args) > 1 else None)
        self.console.print(f"[green]✓[/green] node [cyan]{escape(node_id)}[/cyan]")

    def _add_edge(self, args: list[str]) -> None:
        _require(args, 2, "add-edge SOURCE TARGET [LABEL] [DIRECTION]")
        source, target = args[0], args[1]
        for endpoint in (source, target):
            if self.store.kind_of(endpoint) != "node":
                raise ShellCommandError(f"'{endpoint}' is not a node")
        label = args[2] if len(args) > 2 else ""
        direction = args[3] if len(args) > 3 else "source-to-target"
        edge_id = self.store.add_edge(source, target, label, direction)
        self.console.print(f"[green]✓[/green] edge [cyan]{escape(edge_id)}[/cyan]")

    def _remove(self, args: list[str]) -> None:
        _require(args, 1, "remove ID")
        self._report(self.store.remove_element(args[0]), args[0])

    def _rename(self, args: list[str]) -> None:
        _require(args, 2, "rename NODE NAME")
        self._report(self.store.update_node_name(args[0], args[1]), args[0])

    def _relabel(self, args: list[str]) -> None:
        _require(args, 2, "relabel EDGE LABEL")
        self._report(self.store.update_edge_label(args[0], args[1]), args[0])

    def _direction(self, args: list[str]) -> None:
        _require(args, 2, f"direction EDGE {{{'|'.join(EDGE_DIRECTIONS)}}}")
        self._report(self.store.update_edge_direction(args[0], args[1]), args[0])

    def _reparent(self, args: list[str]) -> None:
        _require(args, 1, "reparent NODE [PARENT]")
        parent = args[1] if len(args) > 1 else None
        self._report(self.store.set_node_parent(args[0], parent), args[0])

    def _style(self, args: list[str]) -> None:
        _require(args, 3, "style ID PROPERTY VALUE")
        changed = self.store.update_element_style(args[0], args[1], coerce_value(args[2]))
        self._report(changed, args[0])

    def _cascade(self, args: list[str]) -> None:
        _require(args, 3, "cascade NODE PROPERTY VALUE")
        updated = self.session.propagator.apply_style_to_children(
            args[0], args[1], coerce_value(args[2])
        )
        if updated:
            self.console.print(f"[green]✓[/green] updated {updated} element(s)")
        else:
            self.console.print(f"[yellow]No node with id '{escape(args[0])}'[/yellow]")

    def _select(self, args: list[str]) -> None:
        event = self.selection.select(args[0] if args else None)
        if args and event.cleared:
            self.console.print(f"[yellow]No element with id '{escape(args[0])}'[/yellow]")

    def _undo(self, args: list[str]) -> None:
        if not self.store.undo():
            self.console.print("[yellow]Nothing to undo[/yellow]")

    def _redo(self, args: list[str]) -> None:
        if not self.store.redo():
            self.console.print("[yellow]Nothing to redo[/yellow]")

    def _save(self, args: list[str]) -> None:
        if self.session.flush():
            self.console.print("[green]✓[/green] saved")
        else:
            self.console.print("[dim]Nothing to save[/dim]")

    def _help(self, args: list[str]) -> None:
        self.console.print("[bold]Commands[/bold]")
        self.console.print(HELP_TEXT, markup=False, highlight=False)

    def _on_selection(self, event: SelectionEvent) -> None:
        if event.cleared:
            self.console.print("[dim]selection cleared[/dim]")
        else:
            label = (event.data or {}).get("name") or (event.data or {}).get("label") or ""
            element_id = escape(event.id or "")
            text = escape(str(label))
            self.console.print(f"selected {event.type} [cyan]{element_id}[/cyan] {text}")


def run_shell(session: EditorSession, console: Console) -> None:
    """Read commands from the terminal until quit, EOF or Ctrl-C."""
    from prompt_toolkit import PromptSession
    from prompt_toolkit.completion import WordCompleter

    shell = Shell(session, console)
    prompt = PromptSession(
        completer=WordCompleter([*shell._commands, "quit"], ignore_case=True, sentence=True),
    )
    console.print("Type 'help' for commands.")
    try:
        while True:
            try:
                line = prompt.prompt("cmap> ")
            except KeyboardInterrupt:
                continue
            except EOFError:
                break
            if not shell.execute(line):
                break
    finally:
        shell.close()
        log.debug("shell_exited")
