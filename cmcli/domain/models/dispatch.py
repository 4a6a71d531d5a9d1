"""Domain models describing requests in flight and retry configuration."""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union

from .common import Endpoint, HttpMethod, QueryParams

MIN_RETRIES = 0
MAX_RETRIES = 10
MIN_INITIAL_BACKOFF_MS = 100
MAX_INITIAL_BACKOFF_MS = 10000

DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_BACKOFF_MS = 1000


@dataclass(frozen=True)
class RetryPolicy:
    """Value Object representing retry backoff configuration."""
    max_retries: int = DEFAULT_MAX_RETRIES
    initial_backoff_ms: int = DEFAULT_INITIAL_BACKOFF_MS

    def __post_init__(self) -> None:
        if not MIN_RETRIES <= self.max_retries <= MAX_RETRIES:
            raise ValueError(
                f"max_retries must be between {MIN_RETRIES} and {MAX_RETRIES}, got {self.max_retries}"
            )
        if not MIN_INITIAL_BACKOFF_MS <= self.initial_backoff_ms <= MAX_INITIAL_BACKOFF_MS:
            raise ValueError(
                f"initial_backoff_ms must be between {MIN_INITIAL_BACKOFF_MS} and "
                f"{MAX_INITIAL_BACKOFF_MS}, got {self.initial_backoff_ms}"
            )


@dataclass
class RequestAttempt:
    """Ephemeral state of one logical call; discarded when execute returns."""
    endpoint: Endpoint
    method: HttpMethod
    params: QueryParams
    attempt_number: int = 1
    current_backoff_ms: float = DEFAULT_INITIAL_BACKOFF_MS


@dataclass(frozen=True)
class TransportResponse:
    """What a Transport hands back for any completed HTTP exchange."""
    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Union[str, bytes] = b""

    def text(self) -> str:
        if isinstance(self.body, bytes):
            return self.body.decode("utf-8", errors="replace")
        return self.body

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass(frozen=True)
class PreparedRequest:
    """A fully built request, ready for the transport."""
    url: str
    method: HttpMethod
    headers: Dict[str, str]
    body: Optional[Any] = None
