import json
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Union

import pytest
from typer.testing import CliRunner

from cmcli.domain.interfaces.transport import Transport
from cmcli.domain.models.dispatch import TransportResponse
from cmcli.infrastructure.config.settings import clear_test_config


class StubTransport(Transport):
    """Transport double that replays scripted responses.

    Each item is either a TransportResponse or an exception to raise.
    The last item repeats once the script runs out.
    """

    def __init__(self, *responses: Union[TransportResponse, BaseException]):
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    async def send(self, url: str, method: str, headers: Mapping[str, str], body=None, timeout=None) -> TransportResponse:
        self.calls.append({'url': url, 'method': method, 'headers': dict(headers), 'body': body, 'timeout': timeout})
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, BaseException):
            raise item
        return item

    async def aclose(self) -> None:
        self.closed = True


class FakeTime:
    """Wall clock and sleep that move together without real waiting."""

    def __init__(self, start: datetime):
        self.start = start
        self.current = start
        self.sleeps: List[float] = []

    def now(self) -> datetime:
        return self.current

    def monotonic(self) -> float:
        return (self.current - self.start).total_seconds()

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += timedelta(seconds=seconds)


def envelope_response(
    status_code: int = 200,
    data: Any = None,
    error_code: int = 0,
    error_message: Optional[str] = None,
    credit_count: int = 1,
) -> TransportResponse:
    """Builds a CoinMarketCap-style `{status, data}` response."""
    body = {
        'status': {
            'timestamp': '2024-05-15T12:00:00.000Z',
            'error_code': error_code,
            'error_message': error_message,
            'elapsed': 10,
            'credit_count': credit_count,
        },
    }
    if data is not None:
        body['data'] = data
    return TransportResponse(status_code=status_code, headers={'content-type': 'application/json'},
                             body=json.dumps(body).encode())


@pytest.fixture
def envelope():
    """Provides the envelope_response builder."""
    return envelope_response


@pytest.fixture
def make_transport():
    """Factory fixture for StubTransport instances."""
    return StubTransport


@pytest.fixture
def fake_time():
    return FakeTime(datetime(2024, 5, 15, 12, 0, 0))


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture(autouse=True)
def reset_test_config():
    """Keeps test configuration overrides from leaking between tests."""
    clear_test_config()
    yield
    clear_test_config()
