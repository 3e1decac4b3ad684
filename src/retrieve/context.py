"""
Cancellation and deadline carrier for requests.

A Context is shared between the caller and an executing builder. The caller
cancels it (or lets its deadline pass) and the builder reacts: it checks the
context before sending, and registers a done callback so a cancel from
another thread aborts a request that is still waiting on the network.
"""
import threading
import time
from typing import Callable, List, Optional, Tuple

from .errors import ContextCancelledError

CancelFunc = Callable[[], None]
DoneCallback = Callable[[], None]


class Context:
    """Thread-safe cancellation signal with an optional deadline."""

    def __init__(self, parent: Optional["Context"] = None, deadline: Optional[float] = None):
        self._parent = parent
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._err: Optional[ContextCancelledError] = None
        self._children: List["Context"] = []
        self._callbacks: List[DoneCallback] = []

        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self._deadline = deadline

        if parent is not None:
            parent._attach(self)

    @classmethod
    def background(cls) -> "Context":
        """Non-cancelable root context."""
        return _BACKGROUND

    def with_cancel(self) -> Tuple["Context", CancelFunc]:
        child = Context(parent=self)
        return child, child.cancel

    def with_timeout(self, seconds: float) -> Tuple["Context", CancelFunc]:
        child = Context(parent=self, deadline=time.monotonic() + seconds)
        return child, child.cancel

    @property
    def deadline(self) -> Optional[float]:
        """Monotonic deadline, if any."""
        return self._deadline

    def remaining(self) -> Optional[float]:
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def cancel(self) -> None:
        self._finish(ContextCancelledError(ContextCancelledError.CANCELED))

    def done(self) -> bool:
        return self.err() is not None

    def err(self) -> Optional[ContextCancelledError]:
        if self._event.is_set():
            return self._err
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._finish(ContextCancelledError(ContextCancelledError.DEADLINE_EXCEEDED))
            return self._err
        return None

    def raise_if_done(self) -> None:
        err = self.err()
        if err is not None:
            raise err

    def add_done_callback(self, fn: DoneCallback) -> None:
        """
        Call ``fn`` once when the context is cancelled.

        Runs in the cancelling thread. If the context is already done, ``fn``
        runs immediately in the caller's thread. Deadlines only finish a
        context when it is next checked, so callers that need to react to a
        deadline must also bound their own wait by ``remaining()``.
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(fn)
                return
        fn()

    def remove_done_callback(self, fn: DoneCallback) -> None:
        with self._lock:
            if fn in self._callbacks:
                self._callbacks.remove(fn)

    def _attach(self, child: "Context") -> None:
        with self._lock:
            if not self._event.is_set():
                self._children.append(child)
                return
            err = self._err
        # Parent already finished: child starts finished with the same reason.
        if err is not None:
            child._finish(ContextCancelledError(err.reason))

    def _detach(self, child: "Context") -> None:
        with self._lock:
            if child in self._children:
                self._children.remove(child)

    def _finish(self, err: ContextCancelledError) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._err = err
            self._event.set()
            children, self._children = self._children, []
            callbacks, self._callbacks = self._callbacks, []
        if self._parent is not None:
            self._parent._detach(self)
        for child in children:
            child._finish(ContextCancelledError(err.reason))
        for fn in callbacks:
            fn()

    def __repr__(self) -> str:
        state = self._err.reason if self._event.is_set() and self._err else "active"
        return f"Context(deadline={self._deadline!r}, state={state!r})"


class _BackgroundContext(Context):
    def cancel(self) -> None:
        # Background is never cancelled.
        return None

    def add_done_callback(self, fn: DoneCallback) -> None:
        return None

    def _attach(self, child: Context) -> None:
        return None

    def __repr__(self) -> str:
        return "Context.background()"


_BACKGROUND = _BackgroundContext()


def background() -> Context:
    return Context.background()
