"""Error types shared by the dispatcher, the classifier and the transports."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .common import Endpoint


class ErrorKind(str, Enum):
    """Categories of failure a logical API call can end in."""
    AUTHENTICATION = "Authentication"
    PERMISSION = "Permission"
    QUOTA_EXCEEDED = "QuotaExceeded"
    RATE_LIMITED = "RateLimited"
    INVALID_ARGUMENT = "InvalidArgument"
    RESOURCE_UNAVAILABLE = "ResourceUnavailable"
    SERVER_ERROR = "ServerError"
    TRANSIENT_NETWORK = "TransientNetwork"
    UNKNOWN = "Unknown"


RETRYABLE_KINDS = frozenset({
    ErrorKind.RATE_LIMITED,
    ErrorKind.SERVER_ERROR,
    ErrorKind.TRANSIENT_NETWORK,
})


@dataclass(frozen=True)
class ErrorClassification:
    """Value produced by the classifier for one failed attempt."""
    kind: ErrorKind
    message: str
    http_status: Optional[int] = None
    app_code: Optional[int] = None

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS


class DispatchError(Exception):
    """Raised when a logical call ends in a failure state."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        endpoint: Optional[Endpoint] = None,
        http_status: Optional[int] = None,
        app_code: Optional[int] = None,
        attempts: int = 0,
    ):
        self.kind = kind
        self.message = message
        self.endpoint = endpoint
        self.http_status = http_status
        self.app_code = app_code
        self.attempts = attempts
        super().__init__(f"[{kind.value}] {endpoint or '<none>'}: {message}")

    @classmethod
    def from_classification(
        cls,
        classification: ErrorClassification,
        endpoint: Optional[Endpoint],
        attempts: int,
    ) -> "DispatchError":
        return cls(
            kind=classification.kind,
            message=classification.message,
            endpoint=endpoint,
            http_status=classification.http_status,
            app_code=classification.app_code,
            attempts=attempts,
        )


# --- Transport level ---

class TransportError(Exception):
    """Connection-level failure raised by a Transport implementation."""


class TransportTimeout(TransportError):
    """The transport did not complete within the caller's timeout."""


class InvalidRequest(TransportError):
    """The transport refused the request as given (malformed URL, unsupported scheme)."""
