"""Interface for interacting with the user (output only).

Defines the contract for displaying payloads, usage, errors and warnings,
allowing different UI implementations (e.g., console, plain text).
"""

import abc
from typing import Any, Optional

from cmcli.domain.models.dispatch import RetryPolicy
from cmcli.domain.models.rate_limit import RateLimits, UsageSnapshot


class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_output(self, payload: Any, title: Optional[str] = None) -> None:
        """Displays an unwrapped API payload to the user.

        Args:
            payload: JSON-compatible data (or raw text) returned by a call.
            title: Optional heading, e.g. the parameter value in a batch.
        """
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user."""
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user."""
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user."""
        pass

    @abc.abstractmethod
    def display_usage(self, snapshot: UsageSnapshot) -> None:
        """Displays the rate-limit counters against their limits."""
        pass

    def display_limits(self, limits: RateLimits, policy: RetryPolicy) -> None:
        """Displays the effective quotas and retry policy.

        Optional; the default implementation prints through display_info.
        """
        self.display_info(
            f"Limits: {limits.per_minute}/min, {limits.per_day}/day, {limits.per_month}/month; "
            f"retries={policy.max_retries}, initial backoff={policy.initial_backoff_ms}ms"
        )
