import logging
from typing import Any, Optional

from rich.box import HEAVY, SIMPLE
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from cmcli.domain.interfaces.user_interface import UserInterface
from cmcli.domain.models.dispatch import RetryPolicy
from cmcli.domain.models.rate_limit import RateLimits, UsageSnapshot

logger = logging.getLogger(__name__)


def _usage_style(used: int, limit: int) -> str:
    if used >= limit:
        return "bold red"
    if used >= limit * 0.8:
        return "yellow"
    return "green"


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library.

    Payloads go to stdout; messages, warnings and tables go to stderr so the
    output can be piped into other tools.
    """

    def __init__(self):
        """Initializes the rich Consoles."""
        self._console = Console()
        self._messages = Console(stderr=True)

    @property
    def console(self) -> Console:
        """Console used for payload output."""
        return self._console

    @console.setter
    def console(self, value: Console) -> None:
        self._console = value

    @property
    def messages(self) -> Console:
        """Console used for status messages."""
        return self._messages

    @messages.setter
    def messages(self, value: Console) -> None:
        self._messages = value

    def display_output(self, payload: Any, title: Optional[str] = None) -> None:
        """Prints a payload as pretty JSON, or as plain text if it is a string.

        Args:
            payload: The unwrapped response data.
            title: Optional heading printed above the payload.
        """
        if title:
            self.messages.print(f"[bold cyan]{title}[/bold cyan]")
        if isinstance(payload, str):
            self.console.print(payload, markup=False, highlight=False)
            return
        try:
            self.console.print_json(data=payload)
        except TypeError as e:
            # Not JSON serializable; fall back to repr
            logger.debug(f"Payload not JSON serializable ({e}); printing repr.")
            self.console.print(repr(payload), markup=False)

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message in a distinct style."""
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1)
        )
        self.messages.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        self.messages.print(f"[blue]Info:[/blue] {info_message}")

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=SIMPLE,
            padding=(0, 1)
        )
        self.messages.print(panel)

    def display_usage(self, snapshot: UsageSnapshot) -> None:
        """Renders the tracker counters as a table."""
        table = Table(title="Rate limit usage", box=SIMPLE)
        table.add_column("Window", style="bold")
        table.add_column("Used", justify="right")
        table.add_column("Limit", justify="right")
        rows = (
            ("minute", snapshot.minute_used, snapshot.minute_limit),
            ("day", snapshot.day_used, snapshot.day_limit),
            ("month", snapshot.month_used, snapshot.month_limit),
        )
        for name, used, limit in rows:
            table.add_row(name, Text(str(used), style=_usage_style(used, limit)), str(limit))
        self.messages.print(table)

    def display_limits(self, limits: RateLimits, policy: RetryPolicy) -> None:
        table = Table(title="Effective limits", box=SIMPLE, show_header=False)
        table.add_column("Setting", style="bold")
        table.add_column("Value", justify="right")
        table.add_row("requests / minute", str(limits.per_minute))
        table.add_row("requests / day", str(limits.per_day))
        table.add_row("requests / month", str(limits.per_month))
        table.add_row("max retries", str(policy.max_retries))
        table.add_row("initial backoff (ms)", str(policy.initial_backoff_ms))
        self.messages.print(table)
