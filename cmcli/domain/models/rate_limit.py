"""Domain models for client-side quota tracking."""

from dataclasses import dataclass, field
from typing import Tuple, Union

# Free tier quotas
DEFAULT_PER_MINUTE = 10
DEFAULT_PER_DAY = 333
DEFAULT_PER_MONTH = 10000


@dataclass(frozen=True)
class RateLimits:
    """Configured request ceilings per time horizon."""
    per_minute: int = DEFAULT_PER_MINUTE
    per_day: int = DEFAULT_PER_DAY
    per_month: int = DEFAULT_PER_MONTH

    def __post_init__(self) -> None:
        for name in ("per_minute", "per_day", "per_month"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(f"Rate limit '{name}' must be a positive integer, got {value!r}")


@dataclass(frozen=True)
class UsageSnapshot:
    """Read-only view of the tracker's counters."""
    minute_used: int
    minute_limit: int
    day_used: int
    day_limit: int
    month_used: int
    month_limit: int


# --- Wait decisions (tagged union) ---

@dataclass(frozen=True)
class Proceed:
    """The request was recorded and may be sent now."""
    warnings: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Delay:
    """The minute window is full; sleep `wait_ms` and ask again."""
    wait_ms: float

    @property
    def wait_seconds(self) -> float:
        return self.wait_ms / 1000.0


@dataclass(frozen=True)
class Fatal:
    """The request must not be sent (and must not be retried)."""
    reason: str


WaitDecision = Union[Proceed, Delay, Fatal]
