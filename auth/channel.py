"""Single-slot hand-off between the callback listener and its waiter."""

import threading
from typing import Generic, TypeVar

from auth.errors import CallbackCancelled, CallbackTimeout, ChannelAlreadyUsed

T = TypeVar("T")


class OneShotChannel(Generic[T]):
    """Carries exactly one value from a producer thread to a consumer.

    The producer calls send() once. The consumer calls receive() with a
    timeout. close() is the cancellation signal: it wakes a blocked
    receiver and makes any later send() a no-op.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ready = threading.Event()
        self._value: T | None = None
        self._sent = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, value: T) -> bool:
        """Deliver the value.

        Returns:
            True if the value was stored, False if the channel was already closed.

        Raises:
            ChannelAlreadyUsed: If a value was already sent.
        """
        with self._lock:
            if self._sent:
                raise ChannelAlreadyUsed("One-shot channel already holds a value")
            if self._closed:
                return False
            self._value = value
            self._sent = True
            self._ready.set()
            return True

    def receive(self, timeout: float | None = None) -> T:
        """Block until a value is sent, the channel is closed, or timeout elapses.

        Raises:
            CallbackTimeout: If nothing arrived within timeout seconds.
            CallbackCancelled: If the channel was closed without a value.
        """
        if not self._ready.wait(timeout):
            raise CallbackTimeout(f"No authorization callback received within {timeout}s")
        with self._lock:
            if not self._sent:
                raise CallbackCancelled("Callback channel closed before a result arrived")
            return self._value

    def close(self) -> None:
        """Refuse further sends and wake any waiting receiver."""
        with self._lock:
            self._closed = True
            self._ready.set()
