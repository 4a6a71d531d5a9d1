"""Defines common Value Objects used across the client.

These objects represent simple values like endpoints, API keys and
query parameter maps, ensuring consistency and type safety.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, NewType, Optional, Sequence, TypedDict, Union

# === Core Value Objects ===

Endpoint = NewType("Endpoint", str)        # e.g. 'cryptocurrency/listings/latest'
HttpMethod = NewType("HttpMethod", str)    # 'GET', 'POST', ...
ApiKey = NewType("ApiKey", str)            # CoinMarketCap Pro API key
Payload = NewType("Payload", object)       # Unwrapped `data` of a response

# A single query parameter value before encoding
ParamValue = Union[str, int, float, bool, date, datetime, Enum, Sequence[Any], None]
QueryParams = Dict[str, ParamValue]


class BaseUrlMode(str, Enum):
    """Which CoinMarketCap host a session talks to."""
    PRODUCTION = "production"
    SANDBOX = "sandbox"


PRODUCTION_BASE_URL = "https://pro-api.coinmarketcap.com"
SANDBOX_BASE_URL = "https://sandbox-api.coinmarketcap.com"

BASE_URLS: Dict[BaseUrlMode, str] = {
    BaseUrlMode.PRODUCTION: PRODUCTION_BASE_URL,
    BaseUrlMode.SANDBOX: SANDBOX_BASE_URL,
}


# --- Wire format ---

class EnvelopeStatus(TypedDict, total=False):
    """The `status` block CoinMarketCap wraps around every payload."""
    timestamp: str
    error_code: int
    error_message: Optional[str]
    elapsed: int
    credit_count: int


class Envelope(TypedDict, total=False):
    """Represents the `{status, data}` response envelope."""
    status: EnvelopeStatus
    data: Any
