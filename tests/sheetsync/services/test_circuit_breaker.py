"""Tests for sheetsync.services.circuit_breaker — CircuitBreaker class and registry."""
import time
import pytest
from unittest.mock import MagicMock

from sheetsync.services.circuit_breaker import (
    BREAKER_SETTINGS, CircuitBreaker, CircuitOpenError, CLOSED, OPEN, HALF_OPEN,
    get_breaker, get_all_breakers, init_breakers,
)


@pytest.fixture
def cb(fake_redis):
    """Fresh circuit breaker with fake Redis."""
    return CircuitBreaker('test_svc', fake_redis, failure_threshold=3, reset_timeout=10)


def _fail():
    raise ValueError("boom")


def _trip(cb):
    for _ in range(cb.failure_threshold):
        with pytest.raises(ValueError):
            cb.call(_fail)


# ---------------------------------------------------------------------------
# State transitions
# ---------------------------------------------------------------------------

class TestCircuitBreakerStates:
    """CLOSED → OPEN → HALF_OPEN → CLOSED."""

    def test_starts_closed(self, cb):
        assert cb.state == CLOSED

    def test_stays_closed_on_success(self, cb):
        assert cb.call(lambda: 'ok') == 'ok'
        assert cb.state == CLOSED

    def test_increments_failures(self, cb):
        for _ in range(2):
            with pytest.raises(ValueError):
                cb.call(_fail)
        assert cb.failure_count == 2
        assert cb.state == CLOSED

    def test_success_clears_failures(self, cb):
        with pytest.raises(ValueError):
            cb.call(_fail)
        cb.call(lambda: 'ok')
        assert cb.failure_count == 0

    def test_opens_at_threshold(self, cb):
        _trip(cb)
        assert cb.state == OPEN

    def test_open_rejects_calls_without_calling(self, cb):
        _trip(cb)
        func = MagicMock()
        with pytest.raises(CircuitOpenError) as exc_info:
            cb.call(func)
        func.assert_not_called()
        assert 'test_svc' in str(exc_info.value)
        assert 0 <= exc_info.value.retry_after <= 10

    def test_half_open_after_timeout(self, cb, fake_redis):
        _trip(cb)
        fake_redis.get_store[cb._key('last_failure')] = str(time.time() - 20)
        assert cb.state == HALF_OPEN

    def test_success_in_half_open_closes(self, cb, fake_redis):
        _trip(cb)
        fake_redis.get_store[cb._key('last_failure')] = str(time.time() - 20)
        assert cb.call(lambda: 'recovered') == 'recovered'
        assert cb.state == CLOSED

    def test_failure_in_half_open_reopens(self, cb, fake_redis):
        _trip(cb)
        fake_redis.get_store[cb._key('last_failure')] = str(time.time() - 20)
        assert cb.state == HALF_OPEN
        with pytest.raises(ValueError):
            cb.call(_fail)
        assert cb.state == OPEN


class TestRedisOutage:
    """A broken Redis must never block calls."""

    def test_fails_open(self):
        broken = MagicMock()
        broken.get.side_effect = ConnectionError('redis down')
        broken.incr.side_effect = ConnectionError('redis down')
        broken.pipeline.side_effect = ConnectionError('redis down')
        cb = CircuitBreaker('crm', broken)
        assert cb.state == CLOSED
        assert cb.call(lambda: 'ok') == 'ok'
        with pytest.raises(ValueError):
            cb.call(_fail)

    def test_health_reports_unknown(self):
        broken = MagicMock()
        broken.get.side_effect = ConnectionError('redis down')
        broken.hgetall.side_effect = ConnectionError('redis down')
        health = CircuitBreaker('crm', broken).get_health()
        assert health['state'] == 'unknown'
        assert health['failure_count'] == 0


# ---------------------------------------------------------------------------
# Reset
# ---------------------------------------------------------------------------

class TestCircuitBreakerReset:

    def test_reset_closes_circuit(self, cb):
        _trip(cb)
        cb.reset()
        assert cb.state == CLOSED
        assert cb.failure_count == 0

    def test_reset_allows_calls(self, cb):
        _trip(cb)
        cb.reset()
        assert cb.call(lambda: 'ok') == 'ok'


# ---------------------------------------------------------------------------
# Health metrics
# ---------------------------------------------------------------------------

class TestCircuitBreakerHealth:

    def test_health_after_success(self, cb):
        cb.call(lambda: 'ok')
        health = cb.get_health()
        assert health['name'] == 'test_svc'
        assert health['state'] == CLOSED
        assert health['total_success'] == 1
        assert health['total_failure'] == 0
        assert health['last_success'] is not None

    def test_health_after_failure(self, cb):
        with pytest.raises(ValueError):
            cb.call(_fail)
        health = cb.get_health()
        assert health['total_failure'] == 1
        assert health['last_error'] == 'boom'

    def test_health_includes_thresholds(self, cb):
        health = cb.get_health()
        assert health['failure_threshold'] == 3
        assert health['reset_timeout'] == 10


class TestCircuitBreakerDecorator:

    def test_protect_passes_through(self, cb):
        @cb.protect
        def double(x):
            return x * 2
        assert double(5) == 10

    def test_protect_tracks_failures(self, cb):
        @cb.protect
        def broken():
            raise RuntimeError("fail")
        with pytest.raises(RuntimeError):
            broken()
        assert cb.failure_count == 1


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class TestCircuitBreakerRegistry:

    def test_init_breakers(self, fake_redis):
        breakers = init_breakers(fake_redis)
        assert set(breakers) == {'crm', 'google_sheets'}
        assert breakers['crm'].failure_threshold == BREAKER_SETTINGS['crm'][0]
        assert breakers['google_sheets'].reset_timeout == BREAKER_SETTINGS['google_sheets'][1]
        assert 'crm' in get_all_breakers()

    def test_get_breaker(self, fake_redis):
        init_breakers(fake_redis)
        assert get_breaker('crm').name == 'crm'
        assert get_breaker('nope') is None


class TestCircuitOpenError:

    def test_has_name(self):
        err = CircuitOpenError('myservice', retry_after=30)
        assert err.name == 'myservice'
        assert err.retry_after == 30
        assert 'myservice' in str(err)
