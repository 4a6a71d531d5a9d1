"""Encodes typed parameter maps into CoinMarketCap query strings."""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Dict, Optional
from urllib.parse import quote, urlencode

from cmcli.domain.models.common import ParamValue, QueryParams


def encode_value(value: ParamValue) -> Optional[str]:
    """Converts a single parameter value to its query-string form.

    Returns None for values that should be omitted entirely.
    """
    if value is None:
        return None
    if isinstance(value, Enum):
        return encode_value(value.value)
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.isoformat(timespec="seconds")
        utc = value.astimezone(timezone.utc).replace(tzinfo=None)
        return utc.isoformat(timespec="seconds") + "Z"
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        items = [encode_value(v) for v in value]
        items = [i for i in items if i]
        return ",".join(items) if items else None
    return str(value)


def encode_params(params: Optional[QueryParams]) -> Dict[str, str]:
    """Encodes every value of `params`, dropping the ones that encode to None."""
    encoded: Dict[str, str] = {}
    for key, value in (params or {}).items():
        text = encode_value(value)
        if text is not None:
            encoded[key] = text
    return encoded


def encode_query_string(params: Optional[QueryParams]) -> str:
    """Builds the query string; commas are left unescaped as CMC expects for id lists."""
    return urlencode(encode_params(params), quote_via=quote, safe=",")
