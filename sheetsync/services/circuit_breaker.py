"""
Circuit breaker with Redis-backed state, shared across worker processes.

States:
  - CLOSED    → calls pass through
  - OPEN      → too many consecutive failures, calls raise CircuitOpenError
  - HALF_OPEN → reset_timeout elapsed, the next call is a probe

If Redis is unreachable the breaker fails open (treated as CLOSED) so a cache
outage never blocks CRM relays.
"""
import logging
import time
from functools import wraps

logger = logging.getLogger('services.circuit_breaker')

CLOSED = 'closed'
OPEN = 'open'
HALF_OPEN = 'half_open'

# service name → (failure_threshold, reset_timeout seconds)
BREAKER_SETTINGS = {
    'crm': (5, 120),
    'google_sheets': (3, 300),
}


class CircuitOpenError(Exception):
    """Raised when calling through an open circuit breaker."""
    def __init__(self, name, retry_after=None):
        self.name = name
        self.retry_after = retry_after
        super().__init__(f"Circuit breaker '{name}' is OPEN: service unavailable")


class CircuitBreaker:
    """
    Usage:
        cb = CircuitBreaker('crm', redis_client, failure_threshold=5, reset_timeout=120)
        response = cb.call(session.post, url, json=payload)
    """

    PREFIX = 'sheetsync:cb'

    def __init__(self, name, redis_client, failure_threshold=5, reset_timeout=120):
        self.name = name
        self.redis = redis_client
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout

    def _key(self, suffix):
        return f'{self.PREFIX}:{self.name}:{suffix}'

    def _safe(self, fn, default=None):
        """Run a Redis operation, returning `default` if Redis misbehaves."""
        try:
            return fn()
        except Exception as e:
            logger.debug("Circuit '%s' Redis op failed: %s", self.name, e)
            return default

    # ── State ─────────────────────────────────────────────────────────

    @property
    def state(self):
        current = self._safe(lambda: self.redis.get(self._key('state')))
        if current != OPEN:
            return current or CLOSED
        if self._seconds_since_failure() > self.reset_timeout:
            self._safe(lambda: self.redis.set(self._key('state'), HALF_OPEN))
            return HALF_OPEN
        return OPEN

    @property
    def failure_count(self):
        val = self._safe(lambda: self.redis.get(self._key('failures')))
        return int(val) if val else 0

    def _seconds_since_failure(self):
        last = self._safe(lambda: self.redis.get(self._key('last_failure')))
        if not last:
            return float('inf')
        return time.time() - float(last)

    # ── Calls ─────────────────────────────────────────────────────────

    def call(self, func, *args, **kwargs):
        """Execute func through the breaker; re-raises whatever func raises."""
        if self.state == OPEN:
            retry_after = max(0.0, self.reset_timeout - self._seconds_since_failure())
            raise CircuitOpenError(self.name, retry_after=retry_after)

        try:
            result = func(*args, **kwargs)
        except Exception as e:
            self._on_failure(e)
            raise
        self._on_success()
        return result

    def protect(self, func):
        """Decorator form of call()."""
        @wraps(func)
        def wrapper(*args, **kwargs):
            return self.call(func, *args, **kwargs)
        return wrapper

    def _on_success(self):
        def _write():
            pipe = self.redis.pipeline()
            pipe.set(self._key('state'), CLOSED)
            pipe.set(self._key('failures'), 0)
            pipe.hincrby(self._key('health'), 'success', 1)
            pipe.hset(self._key('health'), 'last_success', str(time.time()))
            pipe.execute()
        self._safe(_write)

    def _on_failure(self, error):
        count = self._safe(lambda: self.redis.incr(self._key('failures')), default=0)

        def _write():
            pipe = self.redis.pipeline()
            pipe.set(self._key('last_failure'), str(time.time()))
            pipe.hincrby(self._key('health'), 'failure', 1)
            pipe.hset(self._key('health'), 'last_failure', str(time.time()))
            pipe.hset(self._key('health'), 'last_error', str(error)[:200])
            if count >= self.failure_threshold:
                pipe.set(self._key('state'), OPEN)
            pipe.execute()
        self._safe(_write)

        if count >= self.failure_threshold:
            logger.warning("Circuit '%s' OPENED after %d failures: %s", self.name, count, error)
        else:
            logger.info("Circuit '%s' failure %d/%d: %s", self.name, count, self.failure_threshold, error)

    def reset(self):
        """Manually close the breaker."""
        def _write():
            pipe = self.redis.pipeline()
            pipe.set(self._key('state'), CLOSED)
            pipe.set(self._key('failures'), 0)
            pipe.delete(self._key('last_failure'))
            pipe.execute()
        self._safe(_write)
        logger.info("Circuit '%s' manually reset to CLOSED", self.name)

    def get_health(self):
        data = self._safe(lambda: self.redis.hgetall(self._key('health')), default=None)
        if data is None:
            state, data = 'unknown', {}
        else:
            state = self.state
        return {
            'name': self.name,
            'state': state,
            'failure_count': self.failure_count,
            'failure_threshold': self.failure_threshold,
            'reset_timeout': self.reset_timeout,
            'total_success': int(data.get('success', 0)),
            'total_failure': int(data.get('failure', 0)),
            'last_success': float(data['last_success']) if data.get('last_success') else None,
            'last_failure': float(data['last_failure']) if data.get('last_failure') else None,
            'last_error': data.get('last_error', ''),
        }


# ── Registry ──────────────────────────────────────────────────────────────

_registry = {}


def init_breakers(redis_client):
    """Build one breaker per external service from BREAKER_SETTINGS."""
    for name, (threshold, timeout) in BREAKER_SETTINGS.items():
        _registry[name] = CircuitBreaker(name, redis_client, failure_threshold=threshold, reset_timeout=timeout)
    return dict(_registry)


def get_breaker(name):
    """Registered breaker for `name`, or None before init_breakers() ran."""
    return _registry.get(name)


def get_all_breakers():
    return dict(_registry)
