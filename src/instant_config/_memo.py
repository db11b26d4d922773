"""Compute-once memoization with error caching."""

from __future__ import annotations

import threading
from types import TracebackType
from typing import Callable, Generic, TypeVar

T = TypeVar("T")

_PENDING = object()


class Memoized(Generic[T]):
    """Run *compute* at most once and hand the outcome to every caller.

    Concurrent callers of :meth:`get` block until the single computation
    finishes. A successful result is returned as the same object forever; an
    exception is recorded and the same instance is re-raised on every later
    call with its original traceback. Once settled, reads do not take the lock.
    """

    def __init__(self, compute: Callable[[], T], name: str = "") -> None:
        self._compute: Callable[[], T] | None = compute
        self._name = name or getattr(compute, "__qualname__", "value")
        self._lock = threading.Lock()
        self._value: object = _PENDING
        self._error: BaseException | None = None
        self._traceback: TracebackType | None = None
        self.calls = 0

    @property
    def settled(self) -> bool:
        return self._value is not _PENDING or self._error is not None

    @property
    def failed(self) -> bool:
        return self._error is not None

    def get(self) -> T:
        if not self.settled:
            with self._lock:
                if not self.settled:
                    self._run()
        if self._error is not None:
            raise self._error.with_traceback(self._traceback)
        return self._value  # type: ignore[return-value]

    __call__ = get

    def _run(self) -> None:
        compute = self._compute
        if compute is None:
            raise RuntimeError(f"{self._name} has already been computed")
        self.calls += 1
        try:
            value = compute()
        except Exception as exc:
            self._error = exc
            self._traceback = exc.__traceback__
        else:
            self._value = value
        # Settled; the closure is never called again.
        self._compute = None

    def __repr__(self) -> str:
        if self._error is not None:
            state = f"failed: {type(self._error).__name__}"
        elif self._value is not _PENDING:
            state = "ready"
        else:
            state = "pending"
        return f"<Memoized {self._name} ({state})>"
