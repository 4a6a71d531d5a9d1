import pytest
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta

from cmcli.domain.models.rate_limit import Delay, Fatal, Proceed, RateLimits
from cmcli.infrastructure.resilience.rate_limiter import RateLimitTracker

T0 = datetime(2024, 5, 15, 12, 0, 0)


@pytest.fixture
def tracker():
    return RateLimitTracker(RateLimits(per_minute=2, per_day=100, per_month=1000))


def test_default_limits_are_free_tier():
    limits = RateLimitTracker().limits
    assert (limits.per_minute, limits.per_day, limits.per_month) == (10, 333, 10000)


@pytest.mark.parametrize("kwargs", [{'per_minute': 0}, {'per_day': -1}, {'per_month': 1.5}])
def test_limits_must_be_positive_integers(kwargs):
    with pytest.raises(ValueError):
        RateLimits(**kwargs)


def test_third_call_at_same_instant_is_delayed_a_full_minute(tracker: RateLimitTracker):
    results = [tracker.acquire(T0) for _ in range(3)]

    assert isinstance(results[0], Proceed)
    assert isinstance(results[1], Proceed)
    assert results[2] == Delay(60000)


def test_delay_equals_time_until_oldest_entry_leaves_window():
    tracker = RateLimitTracker(RateLimits(per_minute=3, per_day=100, per_month=1000))
    for offset in (0, 10, 20):
        assert isinstance(tracker.acquire(T0 + timedelta(seconds=offset)), Proceed)

    decision = tracker.acquire(T0 + timedelta(seconds=20))

    assert isinstance(decision, Delay)
    assert decision.wait_ms == pytest.approx(40000)
    assert decision.wait_seconds == pytest.approx(40)


def test_delay_does_not_record_and_reacquire_after_wait_proceeds(tracker: RateLimitTracker):
    tracker.acquire(T0)
    tracker.acquire(T0)
    decision = tracker.acquire(T0 + timedelta(seconds=15))
    assert decision == Delay(45000)
    assert tracker.status(T0 + timedelta(seconds=15)).minute_used == 2

    later = T0 + timedelta(seconds=15) + timedelta(milliseconds=decision.wait_ms)
    assert isinstance(tracker.acquire(later), Proceed)
    snapshot = tracker.status(later)
    assert snapshot.minute_used == 1
    assert snapshot.day_used == 3
    assert snapshot.month_used == 3


def test_minute_window_never_holds_entries_older_than_60s():
    tracker = RateLimitTracker(RateLimits(per_minute=5, per_day=1000, per_month=10000))
    now = T0
    for step in [0, 7, 13, 25, 40, 61, 3, 90, 1, 59, 60, 2]:
        now += timedelta(seconds=step)
        decision = tracker.acquire(now)
        if isinstance(decision, Delay):
            now += timedelta(milliseconds=decision.wait_ms)
            assert isinstance(tracker.acquire(now), Proceed)
        assert all(now - ts < timedelta(seconds=60) for ts in tracker._minute_window)


def test_monthly_quota_is_a_hard_stop():
    tracker = RateLimitTracker(RateLimits(per_minute=100, per_day=100, per_month=2))
    assert isinstance(tracker.acquire(T0), Proceed)
    assert isinstance(tracker.acquire(T0), Proceed)

    for minutes in range(3):
        decision = tracker.acquire(T0 + timedelta(minutes=minutes))
        assert isinstance(decision, Fatal)
        assert "monthly quota exhausted" in decision.reason

    assert tracker.status(T0 + timedelta(minutes=5)).month_used == 2


def test_monthly_counter_resets_in_new_calendar_month():
    tracker = RateLimitTracker(RateLimits(per_minute=100, per_day=100, per_month=1))
    tracker.acquire(datetime(2024, 1, 31, 23, 0))
    assert isinstance(tracker.acquire(datetime(2024, 1, 31, 23, 30)), Fatal)

    assert isinstance(tracker.acquire(datetime(2024, 2, 1, 0, 5)), Proceed)
    assert tracker.status(datetime(2024, 2, 1, 0, 6)).month_used == 1


def test_daily_limit_only_warns():
    tracker = RateLimitTracker(RateLimits(per_minute=100, per_day=2, per_month=1000))
    tracker.acquire(T0)
    tracker.acquire(T0)

    decision = tracker.acquire(T0)

    assert isinstance(decision, Proceed)
    assert any("daily limit reached" in w for w in decision.warnings)
    assert tracker.status(T0).day_used == 3


def test_eighty_percent_warning_is_informational():
    tracker = RateLimitTracker(RateLimits(per_minute=5, per_day=1000, per_month=10000))
    decisions = [tracker.acquire(T0) for _ in range(4)]

    assert decisions[2].warnings == ()
    assert isinstance(decisions[3], Proceed)
    assert any("minute usage at 4/5" in w for w in decisions[3].warnings)


@pytest.mark.parametrize("limits, horizon", [
    (RateLimits(per_minute=100, per_day=5, per_month=1000), "day"),
    (RateLimits(per_minute=100, per_day=100, per_month=5), "month"),
])
def test_eighty_percent_warning_per_horizon(limits, horizon):
    tracker = RateLimitTracker(limits)
    decisions = [tracker.acquire(T0 + timedelta(seconds=i)) for i in range(4)]

    assert decisions[2].warnings == ()
    assert isinstance(decisions[3], Proceed)
    assert decisions[3].warnings == (f"{horizon} usage at 4/5 (80%)",)
    assert tracker.status(T0 + timedelta(seconds=4)).month_used == 4


def test_status_is_idempotent(tracker: RateLimitTracker):
    tracker.acquire(T0)
    first = tracker.status(T0 + timedelta(seconds=5))
    for _ in range(10):
        assert tracker.status(T0 + timedelta(seconds=5)) == first

    assert isinstance(tracker.acquire(T0 + timedelta(seconds=5)), Proceed)
    assert isinstance(tracker.acquire(T0 + timedelta(seconds=5)), Delay)


def test_status_purges_but_never_records(tracker: RateLimitTracker):
    tracker.acquire(T0)
    snapshot = tracker.status(T0 + timedelta(seconds=61))

    assert snapshot.minute_used == 0
    assert snapshot.day_used == 1
    assert snapshot.month_used == 1
    assert snapshot.minute_limit == 2


def test_day_window_cleared_at_midnight():
    tracker = RateLimitTracker(RateLimits(per_minute=10, per_day=100, per_month=1000))
    before = datetime(2024, 5, 15, 23, 59, 30)
    tracker.acquire(before)
    tracker.acquire(before)

    snapshot = tracker.status(datetime(2024, 5, 16, 0, 0, 10))

    assert snapshot.day_used == 0
    # The rolling minute window is independent of the calendar reset
    assert snapshot.minute_used == 2
    assert snapshot.month_used == 2


def test_reset_clears_everything(tracker: RateLimitTracker):
    tracker.acquire(T0)
    tracker.acquire(T0)
    tracker.reset()

    snapshot = tracker.status(T0)
    assert (snapshot.minute_used, snapshot.day_used, snapshot.month_used) == (0, 0, 0)
    assert isinstance(tracker.acquire(T0), Proceed)


def test_concurrent_acquires_never_share_a_slot():
    tracker = RateLimitTracker(RateLimits(per_minute=10, per_day=1000, per_month=10000))

    with ThreadPoolExecutor(max_workers=8) as pool:
        decisions = list(pool.map(lambda _: tracker.acquire(T0), range(50)))

    assert sum(isinstance(d, Proceed) for d in decisions) == 10
    assert sum(isinstance(d, Delay) for d in decisions) == 40
    assert tracker.status(T0).minute_used == 10
