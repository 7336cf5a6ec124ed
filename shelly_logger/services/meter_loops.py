from __future__ import annotations

import logging
import threading
from datetime import timedelta
from typing import Callable, List, Optional

from ..core.config import PlugConfig, settings
from ..core.timeutil import now_utc
from ..domain.cadence import MinuteWindow, time_to_next_update
from ..domain.errors import RecoverableMeterError, UnrecoverableMeterError
from ..domain.interfaces import Meter
from ..domain.models import Datum, Measurement, MeterReading
from .bus import BusClosed, DataBus, Sender
from .worker import LoopOutcome, Worker

logger = logging.getLogger(__name__)


class MeterLoop(Worker):
    """
    Polls one Meter in its own thread and pushes Datum onto the bus.

    Subclasses decide what a reading emits and how long to sleep after it.
    The loop ends when the meter reports an unrecoverable error, when the
    bus consumer is gone, or when `stop` is set.
    """

    kind = "meter"

    def __init__(self, meter: Meter, sender: Sender, stop: threading.Event) -> None:
        super().__init__()
        self._meter = meter
        self._sender = sender
        self._stop = stop

    @property
    def name(self) -> str:
        return f"{self.kind}:{self._meter.name}"

    def _datum(self, measurement: Measurement, value: float, measured_on=None) -> Datum:
        return Datum(
            measured_on=measured_on or now_utc(),
            measurement=measurement,
            device_name=self._meter.name,
            device_host=self._meter.host,
            value=float(value),
        )

    def emit(self, reading: MeterReading) -> None:
        raise NotImplementedError

    def next_delay(self, reading: MeterReading) -> float:
        raise NotImplementedError

    def run(self) -> LoopOutcome:
        logger.info("%s started", self.name)
        try:
            while not self._stop.is_set():
                try:
                    reading = self._meter.measure()
                except RecoverableMeterError as e:
                    delay = e.retry_after
                except UnrecoverableMeterError as e:
                    logger.error("%s stopped: %s", self.name, e.reason)
                    return LoopOutcome(self.name, error=e.reason)
                else:
                    try:
                        self.emit(reading)
                    except BusClosed:
                        logger.debug("%s: channel to the sink closed, stopping", self.name)
                        return LoopOutcome(self.name)
                    delay = self.next_delay(reading)

                logger.debug("%s is going to sleep for %dms", self.name, delay * 1000)
                if self._stop.wait(delay):
                    break

            logger.info("%s stopped on request", self.name)
            return LoopOutcome(self.name)
        finally:
            self._sender.close()
            self._meter.close()


class MinuteMeterLoop(MeterLoop):
    """Consumption per round device minute, plus the total since reboot."""

    kind = "minute"

    def __init__(
        self,
        meter: Meter,
        sender: Sender,
        stop: threading.Event,
        slack_s: Optional[float] = None,
    ) -> None:
        super().__init__(meter, sender, stop)
        self._slack_s = settings.minute_slack_s if slack_s is None else slack_s
        self._window = MinuteWindow(meter.host)

    def emit(self, reading: MeterReading) -> None:
        collected = now_utc()
        data = [
            self._datum(
                Measurement.LAST_MINUTE_ENERGY_WH,
                reading.counter_in_wh(s.slot),
                collected - timedelta(minutes=s.age_minutes),
            )
            for s in self._window.pending_slots(reading)
        ]
        data.append(
            self._datum(
                Measurement.CUMULATIVE_ENERGY_WH,
                reading.consumption_since_reboot_in_wh(),
                collected,
            )
        )
        for d in data:
            self._sender.send(d)

    def next_delay(self, reading: MeterReading) -> float:
        return time_to_next_update(reading, self._slack_s)


class InstantaneousMeterLoop(MeterLoop):
    """Instantaneous power on a fixed interval; the device clock is ignored."""

    kind = "instantaneous"

    def __init__(
        self, meter: Meter, sender: Sender, stop: threading.Event, interval_s: float
    ) -> None:
        super().__init__(meter, sender, stop)
        self._interval_s = interval_s

    def emit(self, reading: MeterReading) -> None:
        self._sender.send(
            self._datum(
                Measurement.INSTANTANEOUS_POWER_W,
                reading.instantaneous_consumption_in_w(),
            )
        )

    def next_delay(self, reading: MeterReading) -> float:
        return self._interval_s


def build_meter_loops(
    plug: PlugConfig,
    make_meter: Callable[[PlugConfig], Meter],
    bus: DataBus,
    stop: threading.Event,
) -> List[MeterLoop]:
    """Loops for one device; each gets its own Meter and Sender."""
    loops: List[MeterLoop] = [MinuteMeterLoop(make_meter(plug), bus.sender(), stop)]

    interval = plug.instantaneous_meter_interval
    if interval is None:
        logger.info(
            "%s will not measure instantaneous consumption "
            "(instantaneous_meter_interval_in_s < 0)",
            plug.host,
        )
    else:
        loops.append(
            InstantaneousMeterLoop(make_meter(plug), bus.sender(), stop, interval)
        )
    return loops
