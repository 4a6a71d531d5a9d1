"""Service for executing CoinMarketCap API calls end-to-end.

Consults the RateLimitTracker before sending, performs the HTTP call via an
injected Transport, classifies failures, retries transient ones with
exponential backoff and unwraps the response envelope.
"""

import asyncio
import json
import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, Union

from cmcli.domain.events.api_events import (
    ApiCallDeferred, ApiCallFailed, ApiCallInitiated, ApiCallSucceeded,
    DomainEvent, QuotaWarningRaised, RetryScheduled,
)
from cmcli.domain.interfaces.credentials import CredentialProvider
from cmcli.domain.interfaces.transport import Transport
from cmcli.domain.models.common import (
    BASE_URLS, BaseUrlMode, Endpoint, Envelope, EnvelopeStatus, HttpMethod, Payload, QueryParams,
)
from cmcli.domain.models.dispatch import (
    PreparedRequest, RequestAttempt, RetryPolicy, TransportResponse,
)
from cmcli.domain.models.errors import (
    DispatchError, ErrorClassification, ErrorKind, TransportError,
)
from cmcli.domain.models.rate_limit import Delay, Fatal, Proceed
from cmcli.infrastructure.http.query_encoding import encode_params, encode_query_string
from cmcli.infrastructure.resilience.error_classifier import (
    classify_http, classify_transport_failure,
)
from cmcli.infrastructure.resilience.rate_limiter import RateLimitTracker

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-CMC_PRO_API_KEY"
DEFAULT_API_VERSION = "v1"
DEFAULT_MIN_REQUEST_INTERVAL_S = 0.25
_VERSIONED_PATH = re.compile(r"^v\d+/")


@dataclass(frozen=True)
class _Success:
    payload: Payload
    credit_count: Optional[int] = None


_Outcome = Union[_Success, ErrorClassification]


def build_url(base_url: str, endpoint: str, query: str = "") -> str:
    """Joins base URL, API version and endpoint path, appending `query` if given."""
    path = endpoint.strip("/")
    if not _VERSIONED_PATH.match(path):
        path = f"{DEFAULT_API_VERSION}/{path}"
    url = f"{base_url.rstrip('/')}/{path}"
    return f"{url}?{query}" if query else url


class RequestDispatcher:
    """Executes one logical API call with rate limiting and retries."""

    def __init__(
        self,
        transport: Transport,
        credentials: CredentialProvider,
        tracker: RateLimitTracker,
        retry_policy: Optional[RetryPolicy] = None,
        timeout_s: Optional[float] = None,
        min_request_interval_s: float = DEFAULT_MIN_REQUEST_INTERVAL_S,
        clock: Callable[[], datetime] = datetime.now,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        monotonic: Callable[[], float] = time.monotonic,
        event_handler: Optional[Callable[[DomainEvent], None]] = None,
    ):
        """Initializes the RequestDispatcher.

        Args:
            transport: Performs the HTTP exchange.
            credentials: Supplies the API key and production/sandbox mode.
            tracker: Shared client-side quota tracker.
            retry_policy: Defaults for max_retries and initial_backoff_ms.
            timeout_s: Default upper bound for one transport call.
            min_request_interval_s: Courtesy spacing between consecutive dispatches.
            clock: Wall-clock source handed to the tracker.
            sleep: Awaitable sleep; injected by tests.
            monotonic: Monotonic seconds source used for request spacing.
            event_handler: Optional receiver for domain events.
        """
        self.transport = transport
        self.credentials = credentials
        self.tracker = tracker
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout_s = timeout_s
        self.min_request_interval_s = max(0.0, min_request_interval_s)
        self._clock = clock
        self._sleep = sleep
        self._monotonic = monotonic
        self._event_handler = event_handler
        self._last_request_at: Optional[float] = None

        logger.info(
            f"RequestDispatcher initialized: max_retries={self.retry_policy.max_retries}, "
            f"initial_backoff={self.retry_policy.initial_backoff_ms}ms, "
            f"spacing={self.min_request_interval_s}s, timeout={self.timeout_s}"
        )

    def _dispatch_event(self, event: DomainEvent) -> None:
        logger.debug(f"EVENT: {event}")
        if self._event_handler is not None:
            self._event_handler(event)

    # --- States ---

    async def _gate(self, endpoint: Endpoint) -> None:
        """Loops on the tracker until it records a slot for this call."""
        while True:
            decision = self.tracker.acquire(self._clock())
            if isinstance(decision, Proceed):
                for warning in decision.warnings:
                    self._dispatch_event(QuotaWarningRaised(endpoint=endpoint, message=warning))
                return
            if isinstance(decision, Fatal):
                raise DispatchError(ErrorKind.QUOTA_EXCEEDED, decision.reason, endpoint=endpoint, attempts=0)
            if isinstance(decision, Delay):
                logger.info(f"Client-side minute quota reached; waiting {decision.wait_seconds:.2f}s before {endpoint}.")
                self._dispatch_event(ApiCallDeferred(endpoint=endpoint, wait_time_seconds=decision.wait_seconds))
                await self._sleep(decision.wait_seconds)

    async def _space_requests(self) -> None:
        """Keeps consecutive dispatches at least min_request_interval_s apart."""
        if not self.min_request_interval_s:
            return
        now = self._monotonic()
        slot = now
        if self._last_request_at is not None:
            slot = max(now, self._last_request_at + self.min_request_interval_s)
        # Reserve the slot before sleeping so concurrent calls queue behind it
        self._last_request_at = slot
        if slot > now:
            await self._sleep(slot - now)

    def _prepare(self, endpoint: Endpoint, method: HttpMethod, params: QueryParams) -> PreparedRequest:
        api_key = self.credentials.get_api_key()
        if not api_key:
            raise DispatchError(ErrorKind.AUTHENTICATION, "API key not configured", endpoint=endpoint, attempts=0)

        mode = self.credentials.get_base_url_mode()
        headers = {API_KEY_HEADER: str(api_key), "Accept": "application/json"}
        body = None
        if method == "GET":
            url = build_url(BASE_URLS[mode], endpoint, encode_query_string(params))
        else:
            url = build_url(BASE_URLS[mode], endpoint)
            headers["Content-Type"] = "application/json"
            body = json.dumps(encode_params(params))
        return PreparedRequest(url=url, method=method, headers=headers, body=body)

    async def _send(self, request: PreparedRequest, timeout: Optional[float]) -> _Outcome:
        """Sending + Evaluating for one attempt."""
        try:
            call = self.transport.send(request.url, request.method, request.headers, request.body, timeout)
            if timeout is not None:
                response = await asyncio.wait_for(call, timeout)
            else:
                response = await call
        except (TransportError, asyncio.TimeoutError) as e:
            return classify_transport_failure(e)
        finally:
            now = self._monotonic()
            if self._last_request_at is None or now > self._last_request_at:
                self._last_request_at = now
        return self._evaluate(response)

    @staticmethod
    def _evaluate(response: TransportResponse) -> _Outcome:
        text = response.text()
        body: Any = None
        parsed = False
        if text:
            try:
                body = json.loads(text)
                parsed = True
            except ValueError:
                logger.debug("Response body is not JSON; keeping raw text.")

        envelope: Optional[Envelope] = body if isinstance(body, dict) else None
        status: Optional[EnvelopeStatus] = None
        if envelope is not None and isinstance(envelope.get("status"), dict):
            status = envelope["status"]
        app_code = None
        message = None
        credit_count = None
        if status is not None:
            try:
                app_code = int(status.get("error_code") or 0)
            except (TypeError, ValueError):
                app_code = None
            message = status.get("error_message")
            credit_count = status.get("credit_count")

        if response.is_success and not app_code:
            if envelope is not None and "data" in envelope:
                return _Success(Payload(envelope["data"]), credit_count)
            return _Success(Payload(body if parsed else text), credit_count)

        if not message:
            snippet = text.strip()[:200]
            message = f"HTTP {response.status_code}" + (f": {snippet}" if snippet and not parsed else "")
        return classify_http(response.status_code, app_code or None, message)

    # --- Public API ---

    async def execute(
        self,
        endpoint: str,
        method: str = "GET",
        params: Optional[QueryParams] = None,
        max_retries: Optional[int] = None,
        initial_backoff_ms: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> Payload:
        """Executes one logical API call.

        Only the first attempt consults the rate limiter; retries of the same
        logical call reuse its slot.

        Args:
            endpoint: Path such as 'cryptocurrency/listings/latest' (v1 is implied).
            method: HTTP method; GET params go in the query string, others in a JSON body.
            params: Typed parameter map.
            max_retries: Retries for transient failures (0-10); policy default if None.
            initial_backoff_ms: First backoff delay (100-10000); doubles per retry.
            timeout: Upper bound in seconds for each transport call.

        Returns:
            The envelope's `data` field, or the raw body if there is no envelope.

        Raises:
            DispatchError: For fatal failures or once retries are exhausted.
            ValueError: If max_retries or initial_backoff_ms are out of range,
                or the timeout is not positive.
        """
        policy = RetryPolicy(
            max_retries=self.retry_policy.max_retries if max_retries is None else max_retries,
            initial_backoff_ms=self.retry_policy.initial_backoff_ms if initial_backoff_ms is None else initial_backoff_ms,
        )
        effective_timeout = timeout if timeout is not None else self.timeout_s
        if effective_timeout is not None and effective_timeout <= 0:
            raise ValueError(f"timeout must be positive, got {effective_timeout}")
        attempt = RequestAttempt(
            endpoint=Endpoint(endpoint),
            method=HttpMethod(method.upper()),
            params=dict(params or {}),
            current_backoff_ms=policy.initial_backoff_ms,
        )

        try:
            request = self._prepare(attempt.endpoint, attempt.method, attempt.params)
            await self._gate(attempt.endpoint)
        except DispatchError as e:
            logger.error(f"{attempt.endpoint} rejected before sending: {e.message}")
            self._dispatch_event(ApiCallFailed(
                endpoint=attempt.endpoint, error_kind=e.kind.value,
                error_message=e.message, attempts=0,
            ))
            raise

        await self._space_requests()
        start_time = time.perf_counter()
        sandbox = self.credentials.get_base_url_mode() == BaseUrlMode.SANDBOX

        while True:
            self._dispatch_event(ApiCallInitiated(
                endpoint=attempt.endpoint, attempt_number=attempt.attempt_number, sandbox=sandbox,
            ))
            outcome = await self._send(request, effective_timeout)

            if isinstance(outcome, _Success):
                latency_ms = (time.perf_counter() - start_time) * 1000
                logger.debug(
                    f"{attempt.method} {attempt.endpoint} succeeded on attempt {attempt.attempt_number} "
                    f"({latency_ms:.0f}ms, credits={outcome.credit_count})"
                )
                self._dispatch_event(ApiCallSucceeded(
                    endpoint=attempt.endpoint, latency_ms=latency_ms,
                    attempts=attempt.attempt_number, credit_count=outcome.credit_count,
                ))
                return outcome.payload

            if outcome.retryable and attempt.attempt_number <= policy.max_retries:
                delay_s = attempt.current_backoff_ms / 1000.0
                logger.warning(
                    f"Retryable error calling {attempt.endpoint} on attempt "
                    f"{attempt.attempt_number}/{policy.max_retries + 1}: {outcome.kind.value} "
                    f"({outcome.message}). Waiting {delay_s:.2f}s..."
                )
                self._dispatch_event(RetryScheduled(
                    endpoint=attempt.endpoint, attempt_number=attempt.attempt_number,
                    delay_seconds=delay_s, error_kind=outcome.kind.value,
                ))
                await self._sleep(delay_s)
                attempt.current_backoff_ms *= 2
                attempt.attempt_number += 1
                continue

            if outcome.retryable:
                logger.error(f"Max retries ({policy.max_retries}) reached for {attempt.endpoint}. Last error: {outcome.message}")
            else:
                logger.error(f"Non-retryable error calling {attempt.endpoint}: {outcome.kind.value} ({outcome.message})")
            self._dispatch_event(ApiCallFailed(
                endpoint=attempt.endpoint, error_kind=outcome.kind.value,
                error_message=outcome.message, attempts=attempt.attempt_number,
                http_status=outcome.http_status, app_code=outcome.app_code,
            ))
            raise DispatchError.from_classification(outcome, attempt.endpoint, attempt.attempt_number)
