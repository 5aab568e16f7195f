import time
import logging
from typing import Callable, Optional

from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from build_orders.shared.schemas import BuildOrderOut, StepOut
from build_orders.shared.step_cursor import StepCursor, format_game_time, step_offset_seconds

logger = logging.getLogger("build_orders.client.viewer")

HELP = r"\[n]ext  \[p]revious  <number> jump  \[l]ist  \[t]imer mode  \[q]uit"


class StepViewer:
    """Terminal counterpart of the web step viewer: one step at a time plus the full list."""

    def __init__(self, build_order: BuildOrderOut, console: Optional[Console] = None):
        self.build_order = build_order
        self.cursor: StepCursor[StepOut] = StepCursor(build_order.steps)
        self.console = console or Console()
        self.timer_mode = False

    # --- Rendering ---

    def render_step(self) -> Panel:
        step = self.cursor.current
        resources = Table.grid(padding=(0, 3))
        for _ in range(4):
            resources.add_column(justify="center")
        r = step.resources
        resources.add_row("Wood", "Food", "Gold", "Stone")
        resources.add_row(*(f"[bold]{v}[/bold]" for v in (r.wood, r.food, r.gold, r.stone)))

        body = Group(
            f"Villagers: {step.villager_count}",
            escape(step.description),
            resources,
        )
        title = f"[bold]{escape(step.action)}[/bold]  {format_game_time(step.time_minutes, step.time_seconds)}"
        subtitle = self.cursor.position + ("  (timer mode)" if self.timer_mode else "")
        return Panel(body, title=title, subtitle=subtitle)

    def render_list(self) -> Table:
        table = Table(title="All Steps", show_header=False, box=None)
        table.add_column(justify="right")
        table.add_column()
        table.add_column(justify="right")
        for i, s in enumerate(self.cursor.steps):
            marker = ">" if i == self.cursor.index else str(i + 1)
            style = "reverse" if i == self.cursor.index else None
            table.add_row(marker, escape(s.action), format_game_time(s.time_minutes, s.time_seconds), style=style)
        return table

    def show(self):
        self.console.print(self.render_step())

    # --- Commands ---

    def handle(self, command: str) -> bool:
        """Applies one command; returns False when the viewer should close."""
        command = command.strip().lower()
        if command in ("q", "quit"):
            return False
        if command in ("n", "next", ""):
            self.cursor.advance()
        elif command in ("p", "prev", "previous"):
            self.cursor.retreat()
        elif command in ("l", "list"):
            self.console.print(self.render_list())
            return True
        elif command in ("t", "timer"):
            self.run_timer()
            return True
        elif command.isdigit():
            try:
                self.cursor.jump_to(int(command) - 1)
            except IndexError:
                self.console.print(f"[red]No step {command}[/red] (1-{len(self.cursor)})")
                return True
        else:
            self.console.print(HELP)
            return True
        self.show()
        return True

    def run_timer(self, clock: Callable[[], float] = time.monotonic,
                  sleep: Callable[[float], None] = time.sleep, tick: float = 0.5):
        """Follows the game clock from the current step's time, advancing as each step falls due."""
        self.timer_mode = True
        start_offset = step_offset_seconds(self.cursor.current)
        started = clock()
        self.show()
        try:
            while not self.cursor.at_end:
                sleep(tick)
                elapsed = start_offset + int(clock() - started)
                due = self.cursor.due_index(elapsed)
                if due != self.cursor.index:
                    self.cursor.jump_to(due)
                    self.show()
        except KeyboardInterrupt:
            logger.info("Timer mode interrupted")
        finally:
            self.timer_mode = False

    def run(self, read: Callable[[str], str] = input):
        b = self.build_order
        header = escape(f"{b.title}  [{b.civilization}] {', '.join(b.map_type)}")
        self.console.print(header)
        self.console.print(f"by {escape(b.author.name) if b.author and b.author.name else 'Anonymous'}  |  {b.views} views  |  {b.likes} likes")
        self.show()
        self.console.print(HELP)
        while True:
            try:
                command = read("> ")
            except EOFError:
                break
            if not self.handle(command):
                break
