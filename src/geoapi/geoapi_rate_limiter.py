"""
Token bucket rate limiter shared by all requests of one GeoApiContext.

Tokens refill at `queries_per_second` up to `burst_capacity`. A caller
that finds the bucket empty reserves the next token under the lock (the
balance may go negative) and then sleeps outside the lock until its slot
arrives, so grants never exceed the configured rate and waiting threads
never spin.
"""

import threading
import time
from typing import Callable, Optional

from ..config.logger_module import log_debug, log_info
from .geoapi_errors import RateLimitedError, RequestCancelledError


class TokenBucketRateLimiter:
    """
    Thread-safe token bucket rate limiter.
    
    The token bucket algorithm allows for burst traffic while maintaining
    an average rate over time. Tokens are added at a constant rate, and
    requests consume tokens. If no tokens are available, requests wait.
    """

    def __init__(self,
                 queries_per_second: float = 10.0,
                 burst_capacity: Optional[float] = None,
                 timeout: float = 10.0):
        """
        Initialize the rate limiter.
        
        Args:
            queries_per_second: Tokens added per second (average rate)
            burst_capacity: Maximum tokens in bucket (defaults to one second's worth)
            timeout: Longest a caller may wait for a token before giving up
        """
        if queries_per_second <= 0:
            raise ValueError(f"queries_per_second must be positive, got {queries_per_second}")
        if timeout < 0:
            raise ValueError(f"timeout must be non-negative, got {timeout}")
        
        self._lock = threading.Lock()
        self._rate = float(queries_per_second)
        self._capacity = float(burst_capacity if burst_capacity is not None else max(1.0, queries_per_second))
        self.timeout = timeout
        
        # Initialize bucket with full capacity
        self._tokens = self._capacity
        self._last_update = time.monotonic()
        
        log_info(
            f"RateLimiter initialized: {queries_per_second}/sec, "
            f"burst capacity: {self._capacity}"
        )

    @property
    def queries_per_second(self) -> float:
        return self._rate

    @property
    def burst_capacity(self) -> float:
        return self._capacity

    def set_rate(self, queries_per_second: float, burst_capacity: Optional[float] = None) -> None:
        """
        Change the rate at runtime.
        
        Reservations already handed out keep their computed wait; only
        later acquisitions see the new rate.
        """
        if queries_per_second <= 0:
            raise ValueError(f"queries_per_second must be positive, got {queries_per_second}")
        with self._lock:
            self._refill_tokens()
            self._rate = float(queries_per_second)
            self._capacity = float(burst_capacity if burst_capacity is not None else max(1.0, queries_per_second))
            self._tokens = min(self._tokens, self._capacity)
        log_info(f"RateLimiter reconfigured: {queries_per_second}/sec, burst capacity: {self._capacity}")

    def _refill_tokens(self) -> None:
        """Refill tokens based on elapsed time. Caller holds the lock."""
        current_time = time.monotonic()
        elapsed = current_time - self._last_update
        self._tokens = min(self._tokens + elapsed * self._rate, self._capacity)
        self._last_update = current_time

    def _reserve(self, timeout: float) -> float:
        """Take one token, returning how long the caller must sleep before using it."""
        with self._lock:
            self._refill_tokens()
            if self._tokens >= 1:
                self._tokens -= 1
                return 0.0
            
            wait = (1 - self._tokens) / self._rate
            if wait > timeout:
                raise RateLimitedError(
                    f"Rate limit permit not available within {timeout:.2f}s "
                    f"(next slot in {wait:.2f}s)",
                    local=True,
                )
            self._tokens -= 1
            return wait

    def try_acquire(self) -> bool:
        """Take a token only if one is available right now."""
        with self._lock:
            self._refill_tokens()
            if self._tokens >= 1:
                self._tokens -= 1
                return True
            return False

    def acquire(self,
                timeout: Optional[float] = None,
                wait_for_cancel: Optional[Callable[[float], bool]] = None) -> float:
        """
        Block until a token is granted.

        Args:
            timeout: Maximum wait in seconds (defaults to the limiter's timeout)
            wait_for_cancel: Sleeps up to the given seconds and returns True if
                the caller was cancelled meanwhile; used instead of time.sleep

        Returns:
            Seconds spent waiting

        Raises:
            RateLimitedError: If no token can be granted within the timeout
            RequestCancelledError: If wait_for_cancel reports a cancellation
        """
        wait = self._reserve(self.timeout if timeout is None else timeout)
        if wait > 0:
            log_debug(f"Rate limited. Waiting {wait:.3f}s for a permit")
            if wait_for_cancel is None:
                time.sleep(wait)
            elif wait_for_cancel(wait):
                self._release()
                raise RequestCancelledError("Cancelled while waiting for a rate limit permit")
        return wait

    def _release(self) -> None:
        """Return an unused reservation to the bucket."""
        with self._lock:
            self._refill_tokens()
            self._tokens = min(self._tokens + 1, self._capacity)

    def get_available_tokens(self) -> float:
        """Get current number of available tokens (negative when reservations are queued)."""
        with self._lock:
            self._refill_tokens()
            return self._tokens

    def get_wait_time(self) -> float:
        """Estimated wait for the next token without reserving it."""
        with self._lock:
            self._refill_tokens()
            if self._tokens >= 1:
                return 0.0
            return (1 - self._tokens) / self._rate
