"""Domain Events related to API calls and resilience.

Emitted by the dispatcher when calls are deferred, retried, fail, or
succeed, and when a quota crosses a warning threshold.
"""

from dataclasses import dataclass, field
import time
from typing import Optional


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


# --- Specific API Events ---

@dataclass
class ApiCallInitiated(DomainEvent):
    """Event triggered when a request is handed to the transport."""
    endpoint: str
    attempt_number: int
    sandbox: bool = False
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallSucceeded(DomainEvent):
    """Event triggered when a logical call succeeds."""
    endpoint: str
    latency_ms: float
    attempts: int
    credit_count: Optional[int] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallFailed(DomainEvent):
    """Event triggered when a logical call fails definitively (after retries)."""
    endpoint: str
    error_kind: str
    error_message: str
    attempts: int
    http_status: Optional[int] = None
    app_code: Optional[int] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallDeferred(DomainEvent):
    """Event triggered when a call waits on the client-side minute quota."""
    endpoint: str
    wait_time_seconds: float
    timestamp: float = field(default_factory=time.time)


@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a retry is scheduled for a failed attempt."""
    endpoint: str
    attempt_number: int
    delay_seconds: float
    error_kind: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class QuotaWarningRaised(DomainEvent):
    """Event triggered when usage nears or reaches a non-blocking quota."""
    endpoint: str
    message: str
    timestamp: float = field(default_factory=time.time)
