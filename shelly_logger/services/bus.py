from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Optional

from ..domain.models import Datum


class BusClosed(Exception):
    """The consuming end of the bus is gone."""


class Sender:
    """Producer handle. Each meter loop owns one and closes it when it stops."""

    def __init__(self, bus: "DataBus") -> None:
        self._bus = bus
        self._closed = False

    def send(self, datum: Datum) -> None:
        if self._closed:
            raise BusClosed("sender already closed")
        self._bus._put(datum)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._bus._release_sender()

    def __enter__(self) -> "Sender":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class DataBus:
    """
    Unbounded multi-producer / single-consumer channel of Datum.

    Sends never block. They fail with BusClosed once the consumer has
    closed its end. receive() blocks until a Datum is available and returns
    None once every Sender is closed and nothing is left to drain, so
    create all senders before the consumer starts receiving.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._items: Deque[Datum] = deque()
        self._open_senders = 0
        self._consumer_closed = False

    def sender(self) -> Sender:
        with self._cond:
            if self._consumer_closed:
                raise BusClosed("consumer is gone")
            self._open_senders += 1
        return Sender(self)

    @property
    def open_senders(self) -> int:
        with self._cond:
            return self._open_senders

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)

    def _put(self, datum: Datum) -> None:
        with self._cond:
            if self._consumer_closed:
                raise BusClosed("consumer is gone")
            self._items.append(datum)
            self._cond.notify()

    def _release_sender(self) -> None:
        with self._cond:
            self._open_senders -= 1
            if self._open_senders == 0:
                self._cond.notify_all()

    def receive(self, timeout: Optional[float] = None) -> Optional[Datum]:
        """Next Datum, or None when all producers are done (or on timeout)."""
        with self._cond:
            ready = self._cond.wait_for(
                lambda: self._items or self._open_senders == 0 or self._consumer_closed,
                timeout=timeout,
            )
            if not ready or not self._items:
                return None
            return self._items.popleft()

    def close(self) -> None:
        """Close the consuming end; pending data is discarded."""
        with self._cond:
            self._consumer_closed = True
            self._items.clear()
            self._cond.notify_all()

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._consumer_closed
