"""Client context: the explicit owner of per-client state.

One ClientContext holds the credentials, the quota tracker and the retry
defaults, and builds dispatchers bound to a transport. Independent clients
in the same process simply use independent contexts.
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from cmcli.domain.events.api_events import DomainEvent
from cmcli.domain.interfaces.credentials import CredentialProvider
from cmcli.domain.interfaces.transport import Transport
from cmcli.domain.models.dispatch import RetryPolicy
from cmcli.domain.models.rate_limit import RateLimits, UsageSnapshot
from cmcli.infrastructure.config import settings
from cmcli.infrastructure.config.credentials import ConfiguredCredentials
from cmcli.infrastructure.resilience.rate_limiter import RateLimitTracker
from cmcli.infrastructure.resilience.request_dispatcher import (
    DEFAULT_MIN_REQUEST_INTERVAL_S, RequestDispatcher,
)

logger = logging.getLogger(__name__)


class ClientContext:
    """Per-client composition of credentials, tracker and dispatch settings."""

    def __init__(
        self,
        credentials: CredentialProvider,
        limits: Optional[RateLimits] = None,
        retry_policy: Optional[RetryPolicy] = None,
        timeout_s: Optional[float] = None,
        min_request_interval_s: float = DEFAULT_MIN_REQUEST_INTERVAL_S,
        clock: Callable[[], datetime] = datetime.now,
        event_handler: Optional[Callable[[DomainEvent], None]] = None,
    ):
        self.credentials = credentials
        self.tracker = RateLimitTracker(limits)
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout_s = timeout_s
        self.min_request_interval_s = min_request_interval_s
        self.clock = clock
        self.event_handler = event_handler

    @classmethod
    def from_settings(cls, sandbox: Optional[bool] = None, **overrides: Any) -> "ClientContext":
        """Builds a context from the loaded configuration.

        Args:
            sandbox: Force sandbox on/off; None uses the configured flag.
            **overrides: Constructor arguments that replace configured values.
        """
        kwargs = dict(
            credentials=ConfiguredCredentials(sandbox=sandbox),
            limits=settings.get_rate_limits(),
            retry_policy=settings.get_retry_policy(),
            timeout_s=settings.get_timeout_seconds(),
            min_request_interval_s=settings.get_min_request_interval_seconds(),
        )
        kwargs.update(overrides)
        return cls(**kwargs)

    @property
    def limits(self) -> RateLimits:
        return self.tracker.limits

    def create_dispatcher(
        self,
        transport: Transport,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> RequestDispatcher:
        """Returns a dispatcher sharing this context's tracker."""
        return RequestDispatcher(
            transport=transport,
            credentials=self.credentials,
            tracker=self.tracker,
            retry_policy=self.retry_policy,
            timeout_s=self.timeout_s,
            min_request_interval_s=self.min_request_interval_s,
            clock=self.clock,
            sleep=sleep,
            monotonic=monotonic,
            event_handler=self.event_handler,
        )

    def usage(self) -> UsageSnapshot:
        return self.tracker.status(self.clock())
