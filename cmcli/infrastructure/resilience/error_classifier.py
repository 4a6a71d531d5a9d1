"""Maps HTTP statuses and CoinMarketCap error codes to ErrorClassification values.

Pure functions only; the dispatcher's retry loop is driven by the `kind`
of the returned classification.
"""

from typing import Dict, Optional

from cmcli.domain.models.errors import ErrorClassification, ErrorKind, InvalidRequest

# Application-level `status.error_code` values
APP_CODE_KINDS: Dict[int, ErrorKind] = {
    400: ErrorKind.INVALID_ARGUMENT,
    401: ErrorKind.AUTHENTICATION,
    402: ErrorKind.QUOTA_EXCEEDED,
    403: ErrorKind.PERMISSION,
    429: ErrorKind.RATE_LIMITED,
    500: ErrorKind.SERVER_ERROR,
    1001: ErrorKind.INVALID_ARGUMENT,
    1002: ErrorKind.INVALID_ARGUMENT,
    1003: ErrorKind.INVALID_ARGUMENT,
    1004: ErrorKind.RESOURCE_UNAVAILABLE,
    1005: ErrorKind.PERMISSION,
    1006: ErrorKind.INVALID_ARGUMENT,
    1007: ErrorKind.INVALID_ARGUMENT,
    1008: ErrorKind.RATE_LIMITED,
    1009: ErrorKind.QUOTA_EXCEEDED,
    1010: ErrorKind.QUOTA_EXCEEDED,
    1011: ErrorKind.QUOTA_EXCEEDED,
}

HTTP_STATUS_KINDS: Dict[int, ErrorKind] = {
    400: ErrorKind.INVALID_ARGUMENT,
    401: ErrorKind.AUTHENTICATION,
    403: ErrorKind.PERMISSION,
    429: ErrorKind.RATE_LIMITED,
}


def classify_http(http_status: int, app_code: Optional[int] = None, message: Optional[str] = None) -> ErrorClassification:
    """Classifies a completed HTTP exchange that did not succeed.

    Precedence: HTTP 401/403, then a recognised non-zero application code,
    then the HTTP status itself.

    Args:
        http_status: The response status code.
        app_code: `status.error_code` from the envelope, if one was present.
        message: `status.error_message` (or another description) for the error.

    Returns:
        The classification for this attempt.
    """
    text = message or f"HTTP {http_status}"

    if http_status in (401, 403):
        return ErrorClassification(HTTP_STATUS_KINDS[http_status], text, http_status, app_code)

    if app_code and app_code in APP_CODE_KINDS:
        return ErrorClassification(APP_CODE_KINDS[app_code], text, http_status, app_code)

    if http_status in HTTP_STATUS_KINDS:
        kind = HTTP_STATUS_KINDS[http_status]
    elif 500 <= http_status < 600:
        kind = ErrorKind.SERVER_ERROR
    else:
        kind = ErrorKind.UNKNOWN
    return ErrorClassification(kind, text, http_status, app_code)


def classify_transport_failure(error: BaseException) -> ErrorClassification:
    """Classifies a failure raised before any response arrived.

    Connection problems (refused, reset, timed out) are transient; a request
    the transport rejected outright is an invalid argument.
    """
    detail = str(error) or type(error).__name__
    if isinstance(error, InvalidRequest):
        return ErrorClassification(ErrorKind.INVALID_ARGUMENT, detail)
    return ErrorClassification(ErrorKind.TRANSIENT_NETWORK, f"{type(error).__name__}: {detail}")
