"""Request Scope Management.

This module carries a per-request deadline and cancellation flag through the
call chain without threading it through every signature.

Security Impact:
    - Bounds how long a single request can hold a store connection
    - A cancelled request stops issuing store calls at the next checkpoint

Architecture:
    - Uses contextvars for thread-safe context passing (copied into the
      threadpool that runs sync FastAPI routes)
    - Repositories call ensure_active() around store calls
    - No scope set means no deadline (CLI, tests)
"""

import threading
import time
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Callable, Dict, Iterator, Optional

from patient_records.domain.ports import OperationCancelledError

DEADLINE_EXCEEDED = "deadline_exceeded"
CANCELLED = "cancelled"


class RequestScope:
    """Deadline plus cancellation flag for one unit of work.

    Parameters:
        timeout_seconds: Seconds until the deadline, or None for no deadline
    """

    def __init__(self, timeout_seconds: Optional[float] = None):
        self.deadline: Optional[float] = (
            time.monotonic() + timeout_seconds if timeout_seconds is not None else None
        )
        self._cancelled = threading.Event()
        self._callbacks: Dict[int, Callable[[], None]] = {}
        self._callbacks_lock = threading.Lock()
        self._next_token = 0

    def cancel(self) -> None:
        """Mark the scope cancelled and fire any registered cancel callbacks.

        Work without a callback aborts at its next checkpoint.
        """
        self._cancelled.set()
        with self._callbacks_lock:
            callbacks = list(self._callbacks.values())
        for callback in callbacks:
            callback()

    def add_cancel_callback(self, callback: Callable[[], None]) -> int:
        """Register ``callback`` to run on cancel(); returns a token for removal."""
        with self._callbacks_lock:
            token = self._next_token
            self._next_token += 1
            self._callbacks[token] = callback
        if self.cancelled:
            callback()
        return token

    def remove_cancel_callback(self, token: int) -> None:
        with self._callbacks_lock:
            self._callbacks.pop(token, None)

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline (None without a deadline)."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())


_request_scope: ContextVar[Optional[RequestScope]] = ContextVar('request_scope', default=None)


def get_request_scope() -> Optional[RequestScope]:
    """Return the active scope, or None outside a request."""
    return _request_scope.get()


@contextmanager
def request_scope(timeout_seconds: Optional[float] = None):
    """Open a request scope for the enclosed block.

    Parameters:
        timeout_seconds: Deadline in seconds from now (None for no deadline)

    Yields:
        RequestScope: The active scope

    Example:
        ```python
        with request_scope(5.0) as scope:
            service.get_patient("P001")
        ```
    """
    scope = RequestScope(timeout_seconds)
    token = _request_scope.set(scope)
    try:
        yield scope
    finally:
        _request_scope.reset(token)


def ensure_active(operation: str) -> None:
    """Raise OperationCancelledError if the active scope is cancelled or expired.

    Parameters:
        operation: Name of the operation being checked (used in the error)

    Raises:
        OperationCancelledError: If the scope is cancelled or past its deadline
    """
    scope = _request_scope.get()
    if scope is None:
        return
    if scope.cancelled:
        raise OperationCancelledError(operation, CANCELLED)
    if scope.expired:
        raise OperationCancelledError(operation, DEADLINE_EXCEEDED)


@contextmanager
def interrupt_on_abort(interrupt: Callable[[], None]) -> Iterator[None]:
    """Call ``interrupt`` if the active scope expires or is cancelled inside the block.

    Used to stop a running store query instead of waiting for the next
    ensure_active() checkpoint. Outside a scope this does nothing.

    Parameters:
        interrupt: Callable that aborts the in-flight work (e.g. a cursor's interrupt)
    """
    scope = _request_scope.get()
    if scope is None:
        yield
        return

    timer: Optional[threading.Timer] = None
    remaining = scope.remaining()
    if remaining is not None:
        timer = threading.Timer(remaining, interrupt)
        timer.daemon = True
        timer.start()
    token = scope.add_cancel_callback(interrupt)
    try:
        yield
    finally:
        scope.remove_cancel_callback(token)
        if timer is not None:
            timer.cancel()
