import pytest
from unittest.mock import MagicMock

from rich.panel import Panel
from rich.table import Table

from cmcli.domain.models.dispatch import RetryPolicy
from cmcli.domain.models.rate_limit import RateLimits, UsageSnapshot
from cmcli.infrastructure.cli.display import ConsoleDisplay


@pytest.fixture
def mock_console():
    """Fixture to create a mock rich Console for payload output."""
    return MagicMock()


@pytest.fixture
def mock_messages():
    """Fixture to create a mock rich Console for status messages."""
    return MagicMock()


@pytest.fixture
def console_display(mock_console: MagicMock, mock_messages: MagicMock):
    """Fixture to create a ConsoleDisplay instance with mocked consoles."""
    display = ConsoleDisplay()
    display.console = mock_console # Inject the mocks
    display.messages = mock_messages
    return display


def test_display_output_prints_json(console_display: ConsoleDisplay, mock_console: MagicMock, mock_messages: MagicMock):
    payload = {'BTC': {'quote': {'USD': {'price': 1.0}}}}
    console_display.display_output(payload)
    mock_console.print_json.assert_called_once_with(data=payload)
    mock_messages.print.assert_not_called()


def test_display_output_with_title(console_display: ConsoleDisplay, mock_console: MagicMock, mock_messages: MagicMock):
    console_display.display_output([1, 2], title="symbol=BTC")
    mock_messages.print.assert_called_once_with("[bold cyan]symbol=BTC[/bold cyan]")
    mock_console.print_json.assert_called_once_with(data=[1, 2])


def test_display_output_plain_text(console_display: ConsoleDisplay, mock_console: MagicMock):
    console_display.display_output("<html>maintenance</html>")
    mock_console.print.assert_called_once_with("<html>maintenance</html>", markup=False, highlight=False)
    mock_console.print_json.assert_not_called()


def test_display_output_falls_back_to_repr(console_display: ConsoleDisplay, mock_console: MagicMock):
    mock_console.print_json.side_effect = TypeError("not serializable")
    payload = {'when': object()}
    console_display.display_output(payload)
    mock_console.print.assert_called_once_with(repr(payload), markup=False)


def test_display_error(console_display: ConsoleDisplay, mock_messages: MagicMock):
    """Test that display_error prints a panel to the message console."""
    console_display.display_error("Something went wrong")
    mock_messages.print.assert_called_once()
    panel = mock_messages.print.call_args.args[0]
    assert isinstance(panel, Panel)
    assert "Error" in panel.title


def test_display_info(console_display: ConsoleDisplay, mock_messages: MagicMock):
    """Test that display_info calls print with info formatting."""
    info_msg = "Base URL mode: production"
    console_display.display_info(info_msg)
    mock_messages.print.assert_called_once_with(f"[blue]Info:[/blue] {info_msg}")


def test_display_warning(console_display: ConsoleDisplay, mock_messages: MagicMock):
    console_display.display_warning("daily limit reached (333/333)")
    panel = mock_messages.print.call_args.args[0]
    assert isinstance(panel, Panel)
    assert "Warning" in panel.title


def test_display_usage_table(console_display: ConsoleDisplay, mock_messages: MagicMock):
    snapshot = UsageSnapshot(minute_used=9, minute_limit=10, day_used=1, day_limit=333, month_used=1, month_limit=10000)
    console_display.display_usage(snapshot)
    table = mock_messages.print.call_args.args[0]
    assert isinstance(table, Table)
    assert table.row_count == 3


def test_display_limits_table(console_display: ConsoleDisplay, mock_messages: MagicMock):
    console_display.display_limits(RateLimits(), RetryPolicy())
    table = mock_messages.print.call_args.args[0]
    assert isinstance(table, Table)
    assert table.row_count == 5
