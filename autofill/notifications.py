"""
Notifications: console panels, the review table, and the on-page toast.
"""

import logging
from enum import Enum
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .form_models import FillOutcome

logger = logging.getLogger(__name__)


class Severity(Enum):
    """Notification severity."""
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    INFO = "info"


PANEL_STYLES = {
    Severity.SUCCESS: ("[bold green]✓[/bold green] ", "green"),
    Severity.WARNING: ("[bold yellow]⚠️[/bold yellow] ", "yellow"),
    Severity.ERROR: ("[bold red]Error:[/bold red] ", "red"),
    Severity.INFO: ("", "blue"),
}

TOAST_COLORS = {
    Severity.SUCCESS: "#4CAF50",
    Severity.ERROR: "#f44336",
    Severity.WARNING: "#ff9800",
    Severity.INFO: "#2196F3",
}

TOAST_SCRIPT = """
({ message, color }) => {
    const existing = document.getElementById('autofill-toast');
    if (existing) existing.remove();

    const toast = document.createElement('div');
    toast.id = 'autofill-toast';
    toast.textContent = message;
    Object.assign(toast.style, {
        position: 'fixed',
        top: '20px',
        right: '20px',
        padding: '12px 20px',
        borderRadius: '6px',
        color: 'white',
        backgroundColor: color,
        fontFamily: 'Arial, sans-serif',
        fontSize: '14px',
        fontWeight: 'bold',
        zIndex: '10000',
        boxShadow: '0 4px 12px rgba(0,0,0,0.3)',
        maxWidth: '300px',
        wordWrap: 'break-word',
    });
    document.body.appendChild(toast);
    setTimeout(() => { if (toast.parentNode) toast.remove(); }, 3000);
}
"""


class ConsoleNotifier:
    """Prints notifications and the fill summary to the terminal."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    async def notify(self, message: str, severity: Severity = Severity.INFO):
        prefix, style = PANEL_STYLES[severity]
        self.console.print()
        self.console.print(Panel(f"{prefix}{message}", style=style))

    def display_summary(self, outcomes: List[FillOutcome], url: str = ""):
        """Display filled and unfilled fields for review before submission."""
        self.console.print()
        filled = sum(1 for o in outcomes if o.filled)
        self.console.print(
            Panel(
                f"[bold]Autofill Summary[/bold]\n"
                f"Page: {url or 'Unknown'}\n"
                f"Filled: {filled} of {len(outcomes)} matched fields",
                style="blue",
            )
        )

        table = Table(title="Matched Fields", show_header=True)
        table.add_column("Field", style="cyan")
        table.add_column("Profile key")
        table.add_column("Value", style="green")
        table.add_column("Match", justify="center")
        table.add_column("Status", justify="center")

        for o in outcomes:
            status = "[green]✓[/green]" if o.filled else "[red]✗[/red]"
            value = o.final_value or o.match.value
            value = value[:50] + "..." if len(value) > 50 else value
            table.add_row(
                o.match.field.display_name,
                o.match.data_key,
                value,
                f"{o.match.strategy.value} {o.match.confidence:.2f}",
                status,
            )

        self.console.print(table)

        failed = [o for o in outcomes if not o.filled]
        if failed:
            self.console.print()
            self.console.print(
                Panel(
                    "[bold red]❌ UNFILLED FIELDS[/bold red]\n"
                    "Please fill these manually:",
                    style="red",
                )
            )
            for o in failed:
                self.console.print(f"  • {o.match.field.display_name}")


class PageToastNotifier:
    """Shows a transient toast in the top-right corner of the page."""

    def __init__(self, page):
        self.page = page

    async def notify(self, message: str, severity: Severity = Severity.INFO):
        try:
            await self.page.evaluate(TOAST_SCRIPT, {"message": message, "color": TOAST_COLORS[severity]})
        except Exception as e:
            logger.debug("Toast failed (%s): %s", e, message)


class CompositeNotifier:
    """Sends each notification to every wrapped notifier."""

    def __init__(self, *notifiers):
        self.notifiers = list(notifiers)

    async def notify(self, message: str, severity: Severity = Severity.INFO):
        for notifier in self.notifiers:
            await notifier.notify(message, severity)
