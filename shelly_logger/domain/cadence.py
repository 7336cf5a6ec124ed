from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Optional

from .models import MeterReading

logger = logging.getLogger(__name__)

COUNTER_SLOTS = 3


def time_to_next_update(reading: MeterReading, slack_s: float = 10.0) -> float:
    """
    Seconds until the device rolls its per-minute counters over, plus slack.

    The device clock decides when a minute is complete, so polling is
    phase-locked to it rather than to a fixed interval on our side.
    """
    return 60.0 - reading.device_second + slack_s


@dataclass(frozen=True)
class CounterSlot:
    slot: int
    age_minutes: int  # 0 = the minute that just completed


class MinuteWindow:
    """
    Tracks which of the device's rolling per-minute counters were emitted.

    counters[0] is the minute that ended at the reading's device minute,
    counters[k] the one k minutes earlier. Polls that come late therefore
    can still recover up to two skipped minutes; anything older is gone.
    """

    def __init__(self, device: str) -> None:
        self._device = device
        self._last_minute: Optional[int] = None

    @property
    def last_minute(self) -> Optional[int]:
        return self._last_minute

    def pending_slots(self, reading: MeterReading) -> list[CounterSlot]:
        """Slots not yet emitted, oldest first. Advances the window."""
        minute = reading.device_minute
        last = self._last_minute

        if last is None or minute < last:
            if last is not None:
                logger.warning(
                    "%s device clock went backwards (minute %d -> %d)",
                    self._device, last, minute,
                )
            self._last_minute = minute
            return [CounterSlot(0, 0)]

        gap = minute - last
        if gap == 0:
            logger.debug("%s minute %d already emitted", self._device, minute)
            return []

        self._last_minute = minute
        if gap > COUNTER_SLOTS:
            logger.warning(
                "%s missed %d minute(s) of consumption; only %d can be recovered",
                self._device, gap - 1, COUNTER_SLOTS - 1,
            )
        elif gap > 1:
            logger.warning(
                "%s recovering %d skipped minute(s) from older counters",
                self._device, gap - 1,
            )

        n = min(gap, COUNTER_SLOTS)
        return [CounterSlot(slot, slot) for slot in reversed(range(n))]
