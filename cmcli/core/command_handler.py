"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py), builds a
ClientContext for the invocation and delegates the work to the
RequestDispatcher, reporting results through the UserInterface port.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from cmcli.core.context import ClientContext
from cmcli.domain.events.api_events import DomainEvent, QuotaWarningRaised
from cmcli.domain.interfaces.transport import Transport
from cmcli.domain.interfaces.user_interface import UserInterface
from cmcli.domain.models.common import QueryParams
from cmcli.domain.models.errors import DispatchError
from cmcli.infrastructure.http.httpx_transport import HttpxTransport

logger = logging.getLogger(__name__)

ContextFactory = Callable[..., ClientContext]


def parse_param_pairs(pairs: Optional[List[str]]) -> Dict[str, str]:
    """Turns ['symbol=BTC', 'convert=USD'] into a dict.

    Raises:
        ValueError: If an item has no '=' or an empty key.
    """
    params: Dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ValueError(f"Invalid parameter '{pair}', expected key=value")
        params[key] = value.strip()
    return params


class CommandHandler:
    """Handles incoming commands and delegates to the dispatcher."""

    def __init__(
        self,
        ui: UserInterface,
        transport_factory: Callable[[], Transport] = HttpxTransport,
        context_factory: ContextFactory = ClientContext.from_settings,
    ):
        """Initializes the CommandHandler.

        Args:
            ui: Where results and errors are shown.
            transport_factory: Builds a fresh Transport per command.
            context_factory: Builds the ClientContext; receives `sandbox` and `event_handler`.
        """
        self.ui = ui
        self.transport_factory = transport_factory
        self.context_factory = context_factory

    def _on_event(self, event: DomainEvent) -> None:
        if isinstance(event, QuotaWarningRaised):
            self.ui.display_warning(f"{event.endpoint}: {event.message}")

    def _build_context(self, sandbox: Optional[bool]) -> ClientContext:
        return self.context_factory(sandbox=sandbox, event_handler=self._on_event)

    def _report_failure(self, error: DispatchError) -> None:
        details = []
        if error.http_status is not None:
            details.append(f"HTTP {error.http_status}")
        if error.app_code is not None:
            details.append(f"code {error.app_code}")
        if error.attempts:
            details.append(f"{error.attempts} attempt(s)")
        suffix = f" ({', '.join(details)})" if details else ""
        self.ui.display_error(f"{error.kind.value}: {error.message}{suffix}")

    async def handle_request(
        self,
        endpoint: str,
        params: Optional[QueryParams] = None,
        method: str = "GET",
        sandbox: Optional[bool] = None,
        max_retries: Optional[int] = None,
        initial_backoff_ms: Optional[int] = None,
        timeout: Optional[float] = None,
        show_usage: bool = False,
    ) -> bool:
        """Handles the 'request' command: one logical call, payload displayed.

        Returns:
            True if the call succeeded.
        """
        logger.info(f"Handling 'request' for endpoint: {endpoint}")
        try:
            context = self._build_context(sandbox)
        except ValueError as e:
            self.ui.display_error(f"Invalid configuration: {e}")
            return False

        transport = self.transport_factory()
        try:
            dispatcher = context.create_dispatcher(transport)
            payload = await dispatcher.execute(
                endpoint, method=method, params=params,
                max_retries=max_retries, initial_backoff_ms=initial_backoff_ms, timeout=timeout,
            )
        except DispatchError as e:
            self._report_failure(e)
            return False
        except ValueError as e:
            self.ui.display_error(f"Invalid request options: {e}")
            return False
        finally:
            await transport.aclose()

        self.ui.display_output(payload)
        if show_usage:
            self.ui.display_usage(context.usage())
        return True

    async def handle_batch(
        self,
        endpoint: str,
        each_key: str,
        each_values: List[str],
        params: Optional[QueryParams] = None,
        method: str = "GET",
        sandbox: Optional[bool] = None,
        max_retries: Optional[int] = None,
        initial_backoff_ms: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> bool:
        """Handles the 'batch' command: one concurrent call per value.

        All calls share one dispatcher (and so one tracker). Results are
        displayed in input order; the usage table is shown at the end.

        Returns:
            True if every call succeeded.
        """
        logger.info(f"Handling 'batch' for endpoint: {endpoint}, {each_key} x {len(each_values)}")
        try:
            context = self._build_context(sandbox)
        except ValueError as e:
            self.ui.display_error(f"Invalid configuration: {e}")
            return False

        transport = self.transport_factory()
        try:
            dispatcher = context.create_dispatcher(transport)
            calls = [
                dispatcher.execute(
                    endpoint, method=method, params={**(params or {}), each_key: value},
                    max_retries=max_retries, initial_backoff_ms=initial_backoff_ms, timeout=timeout,
                )
                for value in each_values
            ]
            results: List[Any] = await asyncio.gather(*calls, return_exceptions=True)
        finally:
            await transport.aclose()

        all_ok = True
        for value, result in zip(each_values, results):
            if isinstance(result, DispatchError):
                all_ok = False
                self.ui.display_warning(f"{each_key}={value} failed")
                self._report_failure(result)
            elif isinstance(result, ValueError):
                all_ok = False
                self.ui.display_error(f"Invalid request options: {result}")
            elif isinstance(result, BaseException):
                raise result
            else:
                self.ui.display_output(result, title=f"{each_key}={value}")

        self.ui.display_usage(context.usage())
        return all_ok

    def handle_limits(self, sandbox: Optional[bool] = None) -> bool:
        """Handles the 'limits' command: shows quotas and retry policy."""
        try:
            context = self._build_context(sandbox)
        except ValueError as e:
            self.ui.display_error(f"Invalid configuration: {e}")
            return False
        self.ui.display_limits(context.limits, context.retry_policy)
        mode = context.credentials.get_base_url_mode()
        self.ui.display_info(f"Base URL mode: {mode.value}")
        return True
