from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List

from pydantic import BaseModel, Field


class Measurement(Enum):
    INSTANTANEOUS_POWER_W = "instantaneous_power_w"
    LAST_MINUTE_ENERGY_WH = "last_minute_energy_wh"
    CUMULATIVE_ENERGY_WH = "cumulative_energy_wh"

    @property
    def series_name(self) -> str:
        """Name of the series in the sink."""
        return _SERIES_NAMES[self]

    @property
    def unit(self) -> str:
        return _UNITS[self]


_SERIES_NAMES = {
    Measurement.INSTANTANEOUS_POWER_W: "instantaneous_consumption_in_w",
    Measurement.LAST_MINUTE_ENERGY_WH: "last_minute_consumption_in_wh",
    Measurement.CUMULATIVE_ENERGY_WH: "consumption_since_reboot_in_wh",
}

_UNITS = {
    Measurement.INSTANTANEOUS_POWER_W: "W",
    Measurement.LAST_MINUTE_ENERGY_WH: "Wh",
    Measurement.CUMULATIVE_ENERGY_WH: "Wh",
}


@dataclass(frozen=True)
class Datum:
    measured_on: datetime  # collection time, UTC
    measurement: Measurement
    device_name: str
    device_host: str
    value: float


class MeterReading(BaseModel):
    """Body of the Shelly Plug's "/meter/0" endpoint."""

    model_config = {"frozen": True, "strict": True}

    # Current real AC power being drawn, in Watts
    power: float
    # Whether power metering self-checks OK
    is_valid: bool
    # Value in Watts, on which an overpower condition is detected
    overpower: float
    # Device-local unix time of the last energy counter value
    timestamp: int
    # Energy of the last 3 round minutes in Watt-minute, newest first
    counters: List[float] = Field(min_length=3, max_length=3)
    # Energy since the plug restarted in Watt-minute
    total: float

    @property
    def device_minute(self) -> int:
        return self.timestamp // 60

    @property
    def device_second(self) -> int:
        return self.timestamp % 60

    def instantaneous_consumption_in_w(self) -> float:
        return self.power

    def counter_in_wh(self, slot: int) -> float:
        return self.counters[slot] / 60.0

    def last_minute_consumption_in_wh(self) -> float:
        return self.counter_in_wh(0)

    def consumption_since_reboot_in_wh(self) -> float:
        return self.total / 60.0
