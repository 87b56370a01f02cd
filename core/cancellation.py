import threading
from typing import Callable, List

from core.errors import StreamCancelled


class CancelToken:
    """Cancellation signal passed down an AI call chain.

    The HTTP layer cancels it when the client disconnects; the stream
    consumer checks it between reads and closes the response.
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for cb in callbacks:
            cb()

    def on_cancel(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise StreamCancelled()


class TeardownGuard:
    """Runs a teardown function at most once."""

    def __init__(self, teardown: Callable[[], None]):
        self._teardown = teardown
        self._lock = threading.Lock()
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    def __call__(self) -> bool:
        with self._lock:
            if self._done:
                return False
            self._done = True
        self._teardown()
        return True
