from __future__ import annotations

from typing import List, Optional

import logging
import select
import sys
import termios
import tty

from rich.console import Console, Group
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .graph.model import MultiChoiceStep, SingleChoiceStep, Step, StepKind, TerminalStep, choices_of
from .traversal.engine import TraversalEngine
from .traversal.errors import FlowError
from .traversal.state import TraversalState

logger = logging.getLogger(__name__)

KIND_LABELS = {
    StepKind.INFORMATIONAL: "Info Card",
    StepKind.SINGLE_CHOICE: "Single Choice",
    StepKind.MULTI_CHOICE: "Multiple Choice",
    StepKind.TERMINAL: "End Point",
}


def run_tui(
    engine: TraversalEngine,
    title: str = "",
    start_step_id: Optional[str] = None,
    debug: bool = False,
) -> None:
    tui = FlowViewerTUI(engine=engine, title=title, start_step_id=start_step_id, debug=debug)
    tui.run()


class FlowViewerTUI:
    def __init__(
        self,
        engine: TraversalEngine,
        title: str = "",
        start_step_id: Optional[str] = None,
        console: Optional[Console] = None,
        debug: bool = False,
    ):
        self.engine = engine
        self.title = title
        self.console = console or Console()
        self.debug = debug
        self.state: TraversalState = engine.start(start_step_id)
        self.cursor = 0
        self.status_message = ""
        self.overlay_title: Optional[str] = None
        self.overlay_lines: List[str] = []
        self.last_key = ""

    def run(self) -> None:
        with Live(self.render(), console=self.console, refresh_per_second=10, screen=True) as live:
            while True:
                key = self._get_key()
                if not key:
                    continue
                if key in ("q", "\x03"):
                    break
                handled = self._handle_key(key)
                if handled == "quit":
                    break
                live.update(self.render())

    # ===== Rendering =====

    def render(self) -> Layout:
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="main", ratio=1),
            Layout(name="breadcrumb", size=3),
            Layout(name="footer", size=3),
        )
        layout["header"].update(self._render_header())

        if self.overlay_title:
            layout["main"].update(self._render_overlay())
        else:
            layout["main"].split_row(
                Layout(name="incoming", ratio=1),
                Layout(name="current", ratio=2),
                Layout(name="outgoing", ratio=1),
            )
            step_id = self.state.current_step_id
            layout["main"]["incoming"].update(
                self._render_neighbors("Came from", self.engine.incoming_neighbors(step_id), "blue")
            )
            layout["main"]["current"].update(self._render_current())
            layout["main"]["outgoing"].update(
                self._render_neighbors("Leads to", self.engine.outgoing_neighbors(step_id), "magenta")
            )

        layout["breadcrumb"].update(self._render_breadcrumb())
        layout["footer"].update(self._render_footer())
        return layout

    def _render_header(self) -> Panel:
        title = Text()
        title.append("Flow Walker", style="bold cyan")
        if self.title:
            title.append("  |  ", style="dim")
            title.append(self.title, style="green")
        title.append("  |  ", style="dim")
        title.append(f"Step {len(self.state.history) + 1}", style="bold yellow")
        max_width = max(10, self.console.size.width - 4)
        title.truncate(max_width, overflow="ellipsis")
        return Panel(title, style="bold")

    def _render_current(self) -> Panel:
        step = self._current_step()
        body: List = [
            Text(KIND_LABELS[step.kind].upper(), style="dim"),
            Text(step.content or "(no content)", style="bold"),
        ]

        choices = choices_of(step)
        if choices:
            table = Table(show_header=False, box=None, padding=(0, 1))
            multi = isinstance(step, MultiChoiceStep)
            for idx, choice in enumerate(choices):
                selected = choice.id in self.state.selections
                if multi:
                    marker = "[x]" if selected else "[ ]"
                else:
                    marker = "(*)" if selected else "( )"
                pointer = ">" if idx == self.cursor else " "
                style = "bold cyan" if selected else ""
                table.add_row(
                    Text(pointer, style="yellow"),
                    Text(f"{idx + 1}.", style="dim"),
                    Text(marker, style=style),
                    Text(choice.label or choice.id, style=style),
                )
            body.append(Text(""))
            body.append(table)

        body.append(Text(""))
        body.append(self._render_actions(step))
        return Panel(Group(*body), title=step.label or step.id, border_style="bold green")

    def _render_actions(self, step: Step) -> Text:
        actions = Text()
        if self.state.can_go_back:
            actions.append("[<-] Back  ", style="bold")
        if isinstance(step, TerminalStep):
            if step.allow_restart:
                actions.append("[Enter] Restart", style="bold green")
            else:
                actions.append("End of flow", style="dim")
        elif self.engine.can_advance(self.state):
            actions.append("[Enter] Continue", style="bold green")
        else:
            actions.append("[Enter] Continue", style="dim")
        return actions

    def _render_neighbors(self, title: str, steps: List[Step], border_style: str) -> Panel:
        if not steps:
            return Panel(Text("None", style="dim"), title=title, border_style=border_style)
        table = Table(show_header=False, box=None, padding=(0, 1))
        for step in steps:
            table.add_row(
                Text(KIND_LABELS[step.kind], style="dim"),
                Text(step.label or step.content or step.id),
            )
        return Panel(table, title=title, border_style=border_style)

    def _render_breadcrumb(self) -> Panel:
        parts = []
        for step_id in self.state.history:
            parts.append(f"[dim]{self._short_name(step_id)}[/]")
        parts.append(f"[bold reverse cyan] {self._short_name(self.state.current_step_id)} [/]")
        text = Text.from_markup(f"Path: {' -> '.join(parts)}")
        max_width = max(10, self.console.size.width - 4)
        text.truncate(max_width, overflow="ellipsis")
        return Panel(text, border_style="yellow")

    def _render_footer(self) -> Panel:
        shortcuts = Text()
        shortcuts.append(" [Up/Down] ", style="bold")
        shortcuts.append("Move  ", style="dim")
        shortcuts.append("[Space] ", style="bold")
        shortcuts.append("Select  ", style="dim")
        shortcuts.append("[Enter] ", style="bold")
        shortcuts.append("Continue  ", style="dim")
        shortcuts.append("[<-] ", style="bold")
        shortcuts.append("Back  ", style="dim")
        shortcuts.append("[?] ", style="bold")
        shortcuts.append("Help  ", style="dim")
        shortcuts.append("[q] ", style="bold")
        shortcuts.append("Quit", style="dim")

        if self.status_message:
            shortcuts.append("  |  ", style="dim")
            shortcuts.append(self.status_message, style="yellow")
        if self.debug:
            shortcuts.append("  |  ", style="dim")
            shortcuts.append(
                f"step={self.state.current_step_id} key={self.last_key}", style="dim"
            )
        max_width = max(10, self.console.size.width - 4)
        shortcuts.truncate(max_width, overflow="ellipsis")
        return Panel(shortcuts, style="dim")

    def _render_overlay(self) -> Panel:
        return Panel(
            Text("\n".join(self.overlay_lines)),
            title=self.overlay_title or "Info",
            border_style="bright_cyan",
        )

    # ===== Input Handling =====

    def _handle_key(self, key: str) -> Optional[str]:
        key = self._normalize_key(key)
        self.last_key = key
        if self.overlay_title:
            if key in ("ESC", "q", "?", "\r"):
                self._clear_overlay()
            return None

        if key in ("k", "UP"):
            self._move_cursor(-1)
        elif key in ("j", "DOWN"):
            self._move_cursor(1)
        elif key == " ":
            self._toggle(self.cursor)
        elif key.isdigit() and key != "0":
            self._toggle(int(key) - 1)
        elif key in ("\r", "\n", "l", "RIGHT"):
            self._continue()
        elif key in ("h", "LEFT", "\x7f", "\b"):
            self._go_back()
        elif key == "?":
            self._show_help()
        return None

    # ===== Actions =====

    def _move_cursor(self, delta: int) -> None:
        count = len(choices_of(self._current_step()))
        if count:
            self.cursor = max(0, min(count - 1, self.cursor + delta))

    def _toggle(self, index: int) -> None:
        choices = choices_of(self._current_step())
        if index < 0 or index >= len(choices):
            return
        self.cursor = index
        self.state = self.engine.toggle_selection(self.state, choices[index].id)
        self.status_message = ""

    def _continue(self) -> None:
        step = self._current_step()
        if not self.engine.can_advance(self.state):
            if isinstance(step, TerminalStep):
                self.status_message = "This is the end of the flow."
            elif isinstance(step, (SingleChoiceStep, MultiChoiceStep)):
                self.status_message = "Select an option before continuing."
            return
        try:
            self._set_state(self.engine.advance(self.state))
        except FlowError as exc:
            if not exc.recoverable:
                raise
            logger.info("Advance from %s failed: %s", step.id, exc.message)
            self.status_message = exc.message

    def _go_back(self) -> None:
        if not self.state.can_go_back:
            self.status_message = "Already at the start"
            return
        self._set_state(self.engine.back(self.state))

    def _set_state(self, state: TraversalState) -> None:
        self.state = state
        self.cursor = 0
        self.status_message = ""

    def _show_help(self) -> None:
        self.overlay_title = "Help"
        self.overlay_lines = [
            "Choices:",
            "  Up/Down or k/j     - Move cursor",
            "  Space              - Toggle choice under cursor",
            "  1-9                - Toggle choice by number",
            "",
            "Navigation:",
            "  Enter/Right or l   - Continue (restart at a restartable end)",
            "  Left/Backspace or h - Back",
            "",
            "General:",
            "  ?                  - Help",
            "  q                  - Quit",
            "  Esc                - Close overlays",
        ]

    def _clear_overlay(self) -> None:
        self.overlay_title = None
        self.overlay_lines = []

    # ===== Helpers =====

    def _current_step(self) -> Step:
        return self.engine.current_step(self.state)

    def _short_name(self, step_id: str) -> str:
        step = self.engine.graph.get_step(step_id)
        name = (step.label or step.id) if step else step_id
        return name[:15]

    def _get_key(self) -> str:
        fd = sys.stdin.fileno()
        old_settings = termios.tcgetattr(fd)
        try:
            tty.setraw(fd)
            ch = sys.stdin.read(1)
            if ch == "\x1b":
                seq = ch
                while True:
                    ready, _, _ = select.select([sys.stdin], [], [], 0.02)
                    if not ready:
                        break
                    nxt = sys.stdin.read(1)
                    seq += nxt
                    if nxt.isalpha() or nxt == "~":
                        break
                    if len(seq) >= 12:
                        break
                return seq
            return ch
        finally:
            termios.tcsetattr(fd, termios.TCSADRAIN, old_settings)

    def _normalize_key(self, key: str) -> str:
        if key.startswith("\x1b[") or key.startswith("\x1bO"):
            last = key[-1]
            if last == "A":
                return "UP"
            if last == "B":
                return "DOWN"
            if last == "C":
                return "RIGHT"
            if last == "D":
                return "LEFT"
            return "ESC"
        if key.startswith("\x1b"):
            return "ESC"
        return key
