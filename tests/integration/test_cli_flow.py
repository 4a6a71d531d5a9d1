import pytest
from typer.testing import CliRunner
from unittest.mock import MagicMock

from cmcli.infrastructure.config.settings import set_config_for_testing
from cmcli.main import app

# runner, envelope and make_transport are defined in tests/conftest.py


@pytest.fixture
def mock_console_display(mocker) -> MagicMock:
    """Patches ConsoleDisplay in the composition root; returns the instance mock."""
    display_cls = mocker.patch('cmcli.main.ConsoleDisplay')
    return display_cls.return_value


@pytest.fixture
def cli_env(mocker):
    """Keeps host configuration and logging handlers out of CLI runs."""
    mocker.patch('cmcli.main.load_configuration')
    mocker.patch('cmcli.main.setup_logging')
    set_config_for_testing({
        'cmc.api_key': 'test-key',
        'cmc.sandbox': False,
        'http.min_request_interval_seconds': 0,
        'retry.max_retries': 0,
    })


def _patch_transport(mocker, transport):
    return mocker.patch('cmcli.main.HttpxTransport', return_value=transport)


def test_request_command_flow(runner: CliRunner, cli_env, mocker, make_transport, envelope, mock_console_display):
    """A successful request prints the unwrapped data and exits 0."""
    transport = make_transport(envelope(data={'1': {'symbol': 'BTC'}}))
    _patch_transport(mocker, transport)

    result = runner.invoke(app, ["request", "cryptocurrency/quotes/latest", "-p", "id=1", "-p", "convert=USD"])

    assert result.exit_code == 0, f"CLI command failed: {result.output}"
    assert len(transport.calls) == 1
    sent = transport.calls[0]
    assert sent['url'] == "https://pro-api.coinmarketcap.com/v1/cryptocurrency/quotes/latest?id=1&convert=USD"
    assert sent['headers']['X-CMC_PRO_API_KEY'] == "test-key"
    mock_console_display.display_output.assert_called_once_with({'1': {'symbol': 'BTC'}})
    assert transport.closed


def test_request_command_failure_exits_nonzero(runner: CliRunner, cli_env, mocker, make_transport, envelope, mock_console_display):
    transport = make_transport(envelope(403, error_code=1006, error_message="Plan does not include this endpoint."))
    _patch_transport(mocker, transport)

    result = runner.invoke(app, ["request", "cryptocurrency/quotes/historical", "--sandbox"])

    assert result.exit_code == 1
    assert transport.calls[0]['url'].startswith("https://sandbox-api.coinmarketcap.com/v1/")
    message = mock_console_display.display_error.call_args.args[0]
    assert message.startswith("Permission: Plan does not include this endpoint.")


def test_request_command_rejects_malformed_param(runner: CliRunner, cli_env, mocker, make_transport, envelope, mock_console_display):
    transport = make_transport(envelope(data={}))
    _patch_transport(mocker, transport)

    result = runner.invoke(app, ["request", "key/info", "-p", "no-equals-sign"])

    assert result.exit_code == 2
    assert transport.calls == []


def test_request_command_show_usage(runner: CliRunner, cli_env, mocker, make_transport, envelope, mock_console_display):
    _patch_transport(mocker, make_transport(envelope(data={'plan': {}})))

    result = runner.invoke(app, ["request", "key/info", "--show-usage"])

    assert result.exit_code == 0
    snapshot = mock_console_display.display_usage.call_args.args[0]
    assert (snapshot.minute_used, snapshot.day_used, snapshot.month_used) == (1, 1, 1)


def test_batch_command_flow(runner: CliRunner, cli_env, mocker, make_transport, envelope, mock_console_display):
    transport = make_transport(envelope(data={'price': 1}))
    _patch_transport(mocker, transport)

    result = runner.invoke(app, ["batch", "cryptocurrency/quotes/latest", "--each", "symbol=BTC,ETH"])

    assert result.exit_code == 0, f"CLI command failed: {result.output}"
    assert len(transport.calls) == 2
    titles = [c.kwargs['title'] for c in mock_console_display.display_output.call_args_list]
    assert titles == ["symbol=BTC", "symbol=ETH"]
    snapshot = mock_console_display.display_usage.call_args.args[0]
    assert snapshot.month_used == 2


def test_batch_command_rejects_empty_values(runner: CliRunner, cli_env, mocker, make_transport, envelope, mock_console_display):
    transport = make_transport(envelope(data={}))
    _patch_transport(mocker, transport)

    result = runner.invoke(app, ["batch", "cryptocurrency/quotes/latest", "--each", "symbol="])

    assert result.exit_code == 2
    assert transport.calls == []


def test_limits_command(runner: CliRunner, cli_env, mock_console_display):
    set_config_for_testing({'rate_limit.per_minute': 30})

    result = runner.invoke(app, ["limits"])

    assert result.exit_code == 0
    limits, policy = mock_console_display.display_limits.call_args.args
    assert limits.per_minute == 30
    assert policy.max_retries == 0
    mock_console_display.display_info.assert_called_once_with("Base URL mode: production")


def test_request_command_rejects_non_positive_timeout(runner: CliRunner, cli_env, mocker, make_transport, envelope, mock_console_display):
    transport = make_transport(envelope(data={}))
    _patch_transport(mocker, transport)

    result = runner.invoke(app, ["request", "key/info", "--timeout", "0"])

    assert result.exit_code == 2
    assert transport.calls == []
