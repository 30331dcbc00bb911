"""Operator-facing output for indexsync commands.

Results go to stdout; failures and their hints go to stderr so scripts can
pipe the former.
"""

from typing import Any

from rich.console import Console as RichConsole
from rich.table import Table


class Console:
    """Thin rich wrapper with one method per message kind."""

    def __init__(self) -> None:
        self._out = RichConsole()
        self._err = RichConsole(stderr=True)

    def success(self, message: str) -> None:
        self._out.print(f"[green]✓[/green] {message}")

    def error(self, message: str, *, hint: str | None = None) -> None:
        self._err.print(f"[red]✗[/red] {message}")
        if hint:
            self._err.print(f"  [dim]{hint}[/dim]")

    def warning(self, message: str) -> None:
        self._out.print(f"[yellow]![/yellow] {message}")

    def info(self, message: str) -> None:
        self._out.print(f"[dim]{message}[/dim]")

    def print(self, *args: Any, **kwargs: Any) -> None:
        self._out.print(*args, **kwargs)

    def table(
        self,
        rows: list[dict[str, Any]],
        columns: list[tuple[str, str]],
        *,
        title: str | None = None,
    ) -> None:
        """Render ``rows`` with ``columns`` given as (row key, header) pairs."""
        table = Table(title=title, header_style="bold")
        for _, header in columns:
            table.add_column(header)
        for row in rows:
            table.add_row(*(str(row.get(key, "")) for key, _ in columns))
        self._out.print(table)


_console: Console | None = None


def get_console() -> Console:
    global _console
    if _console is None:
        _console = Console()
    return _console
