"""Registration and delivery of string events to named subscribers."""

from __future__ import annotations

import collections
import threading
from typing import Iterator, Optional

MESSAGE_BUFFER = 100


class _Channel:
    """A bounded, closable message queue handed out by :class:`Events`."""

    def __init__(self, capacity: int = MESSAGE_BUFFER) -> None:
        self._capacity = capacity
        self._items: collections.deque[str] = collections.deque()
        self._cond = threading.Condition()
        self._closed = False

    @property
    def closed(self) -> bool:
        """Whether the channel has been closed."""
        with self._cond:
            return self._closed

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)

    def offer(self, message: str) -> bool:
        """Queue ``message`` without blocking; return False if it was dropped."""
        with self._cond:
            if self._closed or len(self._items) >= self._capacity:
                return False
            self._items.append(message)
            self._cond.notify()
            return True

    def close(self) -> None:
        """Close the channel; queued messages can still be received."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def get(self, timeout: Optional[float] = None) -> Optional[str]:
        """Wait for the next message.

        Returns None once the channel is closed and drained. Raises
        TimeoutError if ``timeout`` passes with nothing to receive.
        """
        with self._cond:
            ready = self._cond.wait_for(lambda: self._items or self._closed, timeout)
            if not ready:
                raise TimeoutError("no message received")
            if self._items:
                return self._items.popleft()
            return None

    def __iter__(self) -> Iterator[str]:
        while (message := self.get()) is not None:
            yield message


class Events:
    """Maps unique ids to channels so consumers can receive events."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._channels: dict[str, _Channel] = {}

    def acquire(self, id: str) -> _Channel:
        """Return the channel for ``id``, creating it if needed."""
        with self._lock:
            channel = self._channels.get(id)
            if channel is None:
                channel = _Channel(MESSAGE_BUFFER)
                self._channels[id] = channel
            return channel

    def release(self, id: str) -> None:
        """Close and remove the channel for ``id``."""
        with self._lock:
            channel = self._channels.pop(id, None)
        if channel is None:
            raise KeyError(f'id "{id}" does not exist')
        channel.close()

    def send(self, message: str) -> None:
        """Offer ``message`` to every channel; full channels drop it."""
        with self._lock:
            channels = list(self._channels.values())
        for channel in channels:
            channel.offer(message)

    def shutdown(self) -> None:
        """Close and remove every channel."""
        with self._lock:
            channels = list(self._channels.values())
            self._channels.clear()
        for channel in channels:
            channel.close()