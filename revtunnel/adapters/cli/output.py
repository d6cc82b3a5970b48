"""
Rich-based phase reporting
"""
from typing import Iterable, Optional, Tuple

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ...core.logging import get_stdout_console

MARKERS = {
    "info": "[cyan]ℹ[/cyan]",
    "success": "[green]✓[/green]",
    "warning": "[yellow]⚠[/yellow]",
    "error": "[red]✗[/red]",
}


class RichReporter:
    """
    Prints one marked line per phase outcome.

    Wired into TunnelService callbacks by the CLI so the domain layer
    stays free of console code.
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console or get_stdout_console()

    def _emit(self, kind: str, message: str) -> None:
        self.console.print(f"{MARKERS[kind]} {message}")

    def info(self, message: str) -> None:
        self._emit("info", message)

    def success(self, message: str) -> None:
        self._emit("success", message)

    def warning(self, message: str) -> None:
        self._emit("warning", message)

    def error(self, message: str) -> None:
        self._emit("error", message)

    def panel(self, content: str, title: str = "", border_style: str = "blue") -> None:
        self.console.print(Panel(content, title=title, border_style=border_style))

    def summary(self, title: str, rows: Iterable[Tuple[str, str]]) -> None:
        """Two-column key/value table"""
        table = Table(title=title, show_header=False)
        table.add_column("Property", style="cyan")
        table.add_column("Value", style="green")
        for key, value in rows:
            table.add_row(key, value)
        self.console.print(table)
