"""
Unit tests for CircuitBreaker: timeouts, rolling-window opening,
half-open trial calls and stats counters. Time is driven by a fake clock.
"""

import asyncio

import pytest

from src.utils.circuit_breaker import CircuitBreaker, CircuitOpenError, CircuitState


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def breaker(clock: FakeClock) -> CircuitBreaker:
    return CircuitBreaker(
        "test",
        timeout=0.05,
        error_threshold_percentage=50,
        reset_timeout=30,
        volume_threshold=4,
        rolling_window=10,
        clock=clock,
    )


async def _ok():
    return "ok"


async def _boom():
    raise RuntimeError("boom")


async def _slow():
    await asyncio.sleep(1)
    return "late"


async def _fail_times(breaker: CircuitBreaker, n: int) -> None:
    for _ in range(n):
        with pytest.raises(RuntimeError):
            await breaker.call(_boom)


# ---------------------------------------------------------------------------
# Closed state
# ---------------------------------------------------------------------------
class TestClosed:
    """Calls pass through while the breaker is closed."""

    async def test_success_returns_result(self, breaker: CircuitBreaker) -> None:
        assert await breaker.call(_ok) == "ok"
        assert breaker.state is CircuitState.CLOSED
        assert breaker.stats["successes"] == 1
        assert breaker.stats["fires"] == 1

    async def test_error_is_reraised(self, breaker: CircuitBreaker) -> None:
        with pytest.raises(RuntimeError, match="boom"):
            await breaker.call(_boom)
        assert breaker.stats["failures"] == 1

    async def test_timeout_counts_as_failure(self, breaker: CircuitBreaker) -> None:
        with pytest.raises(asyncio.TimeoutError):
            await breaker.call(_slow)
        assert breaker.stats["timeouts"] == 1
        assert breaker.stats["failures"] == 1

    async def test_stays_closed_below_volume_threshold(self, breaker: CircuitBreaker) -> None:
        """Three failures out of three is 100% but below the volume of four."""
        await _fail_times(breaker, 3)
        assert breaker.state is CircuitState.CLOSED


# ---------------------------------------------------------------------------
# Opening
# ---------------------------------------------------------------------------
class TestOpening:
    """The breaker opens once volume and error percentage thresholds are met."""

    async def test_opens_at_threshold(self, breaker: CircuitBreaker) -> None:
        await breaker.call(_ok)
        await breaker.call(_ok)
        await _fail_times(breaker, 2)
        assert breaker.state is CircuitState.OPEN

    async def test_low_error_rate_stays_closed(self, breaker: CircuitBreaker) -> None:
        for _ in range(3):
            await breaker.call(_ok)
        await _fail_times(breaker, 1)
        assert breaker.state is CircuitState.CLOSED

    async def test_open_breaker_rejects_without_calling(self, breaker: CircuitBreaker) -> None:
        await _fail_times(breaker, 4)
        called = []

        async def tracked():
            called.append(True)
            return "ok"

        with pytest.raises(CircuitOpenError):
            await breaker.call(tracked)
        assert called == []
        assert breaker.stats["rejects"] == 1

    async def test_old_outcomes_leave_the_window(self, breaker: CircuitBreaker, clock: FakeClock) -> None:
        """Failures older than the rolling window do not count toward opening."""
        await _fail_times(breaker, 3)
        clock.now = 11
        await breaker.call(_ok)
        await _fail_times(breaker, 1)
        assert breaker.state is CircuitState.CLOSED


# ---------------------------------------------------------------------------
# Half-open trial calls
# ---------------------------------------------------------------------------
class TestHalfOpen:
    """After the reset timeout a single trial call decides the next state."""

    async def test_half_open_after_reset_timeout(self, breaker: CircuitBreaker, clock: FakeClock) -> None:
        await _fail_times(breaker, 4)
        clock.now = 31
        assert breaker.state is CircuitState.HALF_OPEN

    async def test_successful_trial_closes(self, breaker: CircuitBreaker, clock: FakeClock) -> None:
        await _fail_times(breaker, 4)
        clock.now = 31
        assert await breaker.call(_ok) == "ok"
        assert breaker.state is CircuitState.CLOSED

    async def test_failed_trial_reopens(self, breaker: CircuitBreaker, clock: FakeClock) -> None:
        await _fail_times(breaker, 4)
        clock.now = 31
        await _fail_times(breaker, 1)
        assert breaker.state is CircuitState.OPEN
        clock.now = 40
        assert breaker.state is CircuitState.OPEN

    async def test_concurrent_callers_rejected_during_trial(self, breaker: CircuitBreaker, clock: FakeClock) -> None:
        await _fail_times(breaker, 4)
        clock.now = 31
        release = asyncio.Event()
        calls = []

        async def gated():
            calls.append(True)
            await release.wait()
            return "ok"

        trial = asyncio.create_task(breaker.call(gated))
        await asyncio.sleep(0)
        others = await asyncio.gather(*(breaker.call(gated) for _ in range(3)), return_exceptions=True)
        release.set()

        assert await trial == "ok"
        assert all(isinstance(r, CircuitOpenError) for r in others)
        assert calls == [True]
        assert breaker.stats["rejects"] == 3
        assert breaker.state is CircuitState.CLOSED

    async def test_late_call_does_not_decide_trial(self, breaker: CircuitBreaker, clock: FakeClock) -> None:
        """A call started while closed that finishes after the reset timeout leaves the breaker half-open."""
        release = asyncio.Event()

        async def gated():
            await release.wait()
            return "ok"

        await _fail_times(breaker, 3)
        late = asyncio.create_task(breaker.call(gated))
        await asyncio.sleep(0)
        await _fail_times(breaker, 1)
        assert breaker.state is CircuitState.OPEN

        clock.now = 31
        assert breaker.state is CircuitState.HALF_OPEN
        release.set()
        assert await late == "ok"
        assert breaker.state is CircuitState.HALF_OPEN
        assert await breaker.call(_ok) == "ok"
        assert breaker.state is CircuitState.CLOSED
