"""
Audiomosh Proxy — Per-Client Rate Limiter
==========================================

What:  Fixed rolling window counter per client identity.
Why:   Every proxied call spends the operator's Freesound/Pexels quota; one
       browser tab stuck in a loop should not be able to drain it.
How:   One counter per client: {count, window_reset_at}. The window starts at
       the client's first request and restarts on the first request after it
       ends.
Who:   Called by RateLimitMiddleware before any proxy route runs.

Algorithm: Fixed Window Counter
    1. Unknown client → count = 1, window_reset_at = now + window → allow
    2. now >= window_reset_at → restart the window (count = 1) → allow
    3. otherwise count += 1; count > max → reject with
       retry_after = ceil(window_reset_at - now) seconds

    A client sending exactly `max_requests` inside one window is never
    rejected; request `max_requests + 1` is.

Memory:
    Counters are created lazily and only dropped by sweep(), which runs every
    `sweep_every` admits and removes counters whose window has ended. With
    sweep_every=0 the map grows for the life of the process.
"""

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class RateLimitCounter:
    count: int
    window_reset_at: float


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of RateLimiter.admit(); retry_after is 0 when allowed."""

    allowed: bool
    retry_after: int = 0
    count: int = 0


class RateLimiter:
    """
    In-memory fixed window rate limiter keyed by client identity.

    Thread Safety:
        admit() is a read-modify-write on a shared dict, so it runs under a
        lock. Under uvicorn's single event loop the lock is never contended;
        it matters only when called from worker threads.
    """

    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: float = 60.0,
        sweep_every: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.sweep_every = sweep_every
        self._clock = clock
        self._counters: Dict[str, RateLimitCounter] = {}
        self._admits_since_sweep = 0
        self._lock = threading.Lock()

    def admit(self, client_id: str, now: Optional[float] = None) -> RateLimitDecision:
        """
        Count one request from `client_id` and decide whether it may proceed.

        Args:
            client_id: Caller identity (normally the source IP).
            now:       Override for the current time, in clock seconds.

        Returns:
            RateLimitDecision. When rejected, retry_after is the whole number
            of seconds until the client's window ends (at least 1).
        """
        if now is None:
            now = self._clock()

        with self._lock:
            counter = self._counters.get(client_id)
            if counter is None:
                counter = RateLimitCounter(count=1, window_reset_at=now + self.window_seconds)
                self._counters[client_id] = counter
            elif now >= counter.window_reset_at:
                counter.count = 1
                counter.window_reset_at = now + self.window_seconds
            else:
                counter.count += 1

            if counter.count > self.max_requests:
                retry_after = max(1, math.ceil(counter.window_reset_at - now))
                decision = RateLimitDecision(
                    allowed=False, retry_after=retry_after, count=counter.count
                )
            else:
                decision = RateLimitDecision(allowed=True, count=counter.count)

            self._admits_since_sweep += 1
            if self.sweep_every and self._admits_since_sweep >= self.sweep_every:
                self._sweep_locked(now)

        if not decision.allowed:
            logger.warning(
                "Rate limit exceeded for %s: %d requests in %.0fs window",
                client_id,
                decision.count,
                self.window_seconds,
            )
        return decision

    def sweep(self, now: Optional[float] = None) -> int:
        """Drop counters whose window has ended. Returns how many were removed."""
        if now is None:
            now = self._clock()
        with self._lock:
            return self._sweep_locked(now)

    def _sweep_locked(self, now: float) -> int:
        self._admits_since_sweep = 0
        expired = [
            client_id
            for client_id, counter in self._counters.items()
            if now >= counter.window_reset_at
        ]
        for client_id in expired:
            del self._counters[client_id]
        if expired:
            logger.debug("Swept %d expired rate limit counters", len(expired))
        return len(expired)

    def stats(self) -> Dict[str, int]:
        """Occupancy snapshot for /health."""
        with self._lock:
            return {
                "active_clients": len(self._counters),
                "total_requests": sum(c.count for c in self._counters.values()),
            }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._admits_since_sweep = 0
