"""
Console output for provisioning runs.

Progress goes to stdout, errors to stderr, both through Rich so the
distinguishing styles match the rest of the CLI.
"""

from typing import Optional

from rich.console import Console
from rich.markup import escape


class StepReporter:
    """Prints one line per completed provisioning step."""

    def __init__(
        self, console: Optional[Console] = None, error_console: Optional[Console] = None
    ):
        """Initialize reporter with Rich consoles."""
        self.console = console or Console()
        self.error_console = error_console or Console(stderr=True)

    def header(self, message: str) -> None:
        self.console.print(f"[bold blue]{escape(message)}[/bold blue]")

    def step(self, message: str) -> None:
        self.console.print(f"  [green]✓[/green] {escape(message)}")

    def skip(self, message: str) -> None:
        self.console.print(f"  [dim]- {escape(message)}[/dim]")

    def warning(self, message: str) -> None:
        self.console.print(f"  [yellow]⚠ {escape(message)}[/yellow]")

    def success(self, message: str) -> None:
        self.console.print(f"\n[bold green]✓ {escape(message)}[/bold green]")

    def error(self, message: str) -> None:
        self.error_console.print(f"[bold red]✗ Error:[/bold red] {escape(message)}")
