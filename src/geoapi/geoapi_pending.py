"""
PendingResult: the handle returned for every dispatched request.

The dispatcher is the only writer; callers read. A result moves into
exactly one terminal state (COMPLETED, FAILED or CANCELLED); later
completion attempts are ignored. Waiters block on an Event that is set
once, at the terminal transition.
"""

import threading
from enum import Enum
from typing import Callable, Generic, List, Optional, Tuple, TypeVar

from ..config.logger_module import log_error
from .geoapi_errors import GeoApiError, RequestCancelledError

T = TypeVar("T")


class PendingState(Enum):
    NEW = "NEW"
    SENT = "SENT"
    RETRY_WAIT = "RETRY_WAIT"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


TERMINAL_STATES = frozenset({PendingState.COMPLETED, PendingState.FAILED, PendingState.CANCELLED})

ResultCallback = Callable[[T], None]
FailureCallback = Callable[[GeoApiError], None]


class PendingResult(Generic[T]):
    """
    Asynchronous result of a request.
    
    Use `result()` to block, `set_callback()` to be notified, and
    `cancel()` to stop further attempts.
    """

    def __init__(self, description: str = ""):
        self.description = description
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._cancel_requested = threading.Event()
        self._state = PendingState.NEW
        self._result: Optional[T] = None
        self._error: Optional[GeoApiError] = None
        self._callbacks: List[Tuple[ResultCallback, Optional[FailureCallback]]] = []
        self._attempts = 0

    def __repr__(self) -> str:
        return f"<PendingResult {self.description!r} state={self._state.value}>"

    # ---- read side ----

    @property
    def state(self) -> PendingState:
        return self._state

    @property
    def attempts(self) -> int:
        """Number of network attempts issued so far."""
        return self._attempts

    def done(self) -> bool:
        return self._done.is_set()

    def cancelled(self) -> bool:
        return self._state == PendingState.CANCELLED

    def cancel_requested(self) -> bool:
        return self._cancel_requested.is_set()

    def result(self, timeout: Optional[float] = None) -> T:
        """
        Block until the request reaches a terminal state.
        
        Args:
            timeout: Seconds to wait, or None to wait indefinitely
            
        Returns:
            The typed result
            
        Raises:
            GeoApiError: The classified or transport failure
            RequestCancelledError: If the request was cancelled
            TimeoutError: If `timeout` elapsed first
        """
        if not self._done.wait(timeout):
            raise TimeoutError(f"Request {self.description!r} did not complete within {timeout}s")
        if self._error is not None:
            raise self._error
        return self._result

    def result_or_none(self, timeout: Optional[float] = None) -> Optional[T]:
        """Like `result()`, but returns None instead of raising a GeoApiError."""
        try:
            return self.result(timeout)
        except GeoApiError:
            return None

    def exception(self, timeout: Optional[float] = None) -> Optional[GeoApiError]:
        if not self._done.wait(timeout):
            raise TimeoutError(f"Request {self.description!r} did not complete within {timeout}s")
        return self._error

    def set_callback(self, on_result: ResultCallback, on_failure: Optional[FailureCallback] = None) -> None:
        """
        Register callbacks for the terminal transition.
        
        If the result is already terminal the matching callback runs
        immediately in the calling thread.
        """
        with self._lock:
            if self._state not in TERMINAL_STATES:
                self._callbacks.append((on_result, on_failure))
                return
        self._invoke(on_result, on_failure)

    def cancel(self) -> bool:
        """
        Request cancellation.
        
        Returns:
            True if this call moved the result to CANCELLED, False if it was
            already terminal
        """
        self._cancel_requested.set()
        return self._finish(PendingState.CANCELLED, None, RequestCancelledError(
            f"Request {self.description!r} was cancelled"))

    # ---- write side, used by the dispatcher ----

    def wait_for_cancel(self, seconds: float) -> bool:
        """Sleep up to `seconds`, waking early on cancellation. True if cancelled."""
        return self._cancel_requested.wait(seconds)

    def _mark(self, state: PendingState) -> None:
        with self._lock:
            if self._state not in TERMINAL_STATES:
                self._state = state
                if state == PendingState.SENT:
                    self._attempts += 1

    def _complete(self, result: T) -> bool:
        return self._finish(PendingState.COMPLETED, result, None)

    def _fail(self, error: GeoApiError) -> bool:
        return self._finish(PendingState.FAILED, None, error)

    def _finish(self, state: PendingState, result: Optional[T], error: Optional[GeoApiError]) -> bool:
        with self._lock:
            if self._state in TERMINAL_STATES:
                return False
            self._state = state
            self._result = result
            self._error = error
            callbacks, self._callbacks = self._callbacks, []
        self._done.set()
        for on_result, on_failure in callbacks:
            self._invoke(on_result, on_failure)
        return True

    def _invoke(self, on_result: ResultCallback, on_failure: Optional[FailureCallback]) -> None:
        try:
            if self._error is None:
                on_result(self._result)
            elif on_failure is not None:
                on_failure(self._error)
        except Exception as e:
            log_error(f"Callback for {self.description!r} raised: {e}")
