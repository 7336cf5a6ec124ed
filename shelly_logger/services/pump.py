from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from ..core.config import settings
from ..domain.interfaces import SinkConnection
from .bus import DataBus
from .worker import LoopOutcome, Worker

logger = logging.getLogger(__name__)


class SinkPump(Worker):
    """
    Single writer draining the bus into the sink.

    A failed write drops that Datum, waits `reconnect_delay_s` and replaces
    the connection. A connection that can't be created is retried with the
    next Datum, which is dropped if that fails again. The pump never gives
    up on the sink; it ends once every producer
    has closed its sender and the bus is drained.
    """

    def __init__(
        self,
        connect: Callable[[], SinkConnection],
        bus: DataBus,
        stop: Optional[threading.Event] = None,
        reconnect_delay_s: Optional[float] = None,
    ) -> None:
        super().__init__()
        self._connect = connect
        self._bus = bus
        self._stop = stop or threading.Event()
        self._reconnect_delay_s = (
            settings.reconnect_delay_s if reconnect_delay_s is None else reconnect_delay_s
        )
        self.healthy = True
        self.written = 0
        self.dropped = 0
        self.reconnects = 0

    @property
    def name(self) -> str:
        return "sink-pump"

    def run(self) -> LoopOutcome:
        connection = self._open(initial=True)
        try:
            while True:
                datum = self._bus.receive()
                if datum is None:
                    break

                if connection is None:
                    connection = self._open()
                    if connection is None:
                        self.dropped += 1
                        self._stop.wait(self._reconnect_delay_s)
                        continue

                try:
                    connection.write(datum)
                except Exception as e:
                    self.dropped += 1
                    self.healthy = False
                    logger.warning(
                        "We will have to reconnect in %.0f seconds, because: %s",
                        self._reconnect_delay_s,
                        e,
                    )
                    self._stop.wait(self._reconnect_delay_s)
                    self._discard(connection)
                    connection = self._open()
                    continue

                self.written += 1
                if not self.healthy:
                    logger.info("Connection to InfluxDB2 re-established.")
                    self.healthy = True
        finally:
            self._bus.close()
            if connection is not None:
                self._discard(connection)

        logger.info(
            "%s stopped: all producers finished (written=%d dropped=%d reconnects=%d)",
            self.name, self.written, self.dropped, self.reconnects,
        )
        return LoopOutcome(self.name)

    def _open(self, initial: bool = False) -> Optional[SinkConnection]:
        """A new connection, or None when it could not be created."""
        if not initial:
            self.reconnects += 1
        try:
            return self._connect()
        except Exception as e:
            self.healthy = False
            logger.warning(
                "Could not connect to InfluxDB2, retrying with the next data point: %s", e
            )
            return None

    def _discard(self, connection: SinkConnection) -> None:
        try:
            connection.close()
        except Exception as e:
            logger.debug("closing the old sink connection failed: %s", e)
