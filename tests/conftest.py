"""
Shared pytest fixtures for shelly-logger tests.

Provides:
- Plug / InfluxDB configs
- Device response bodies and parsed readings
- A scripted fake Meter and a fake sink connection
- A stop event that records waits instead of sleeping
"""
import threading
from typing import Any, Dict, List, Optional

import pytest

from shelly_logger.core.config import AppConfig, InfluxConfig, PlugConfig
from shelly_logger.domain.errors import RecoverableMeterError
from shelly_logger.domain.models import MeterReading


# A round minute on the device clock
MINUTE_START = 1_699_999_980


def make_body(**overrides: Any) -> Dict[str, Any]:
    body = {
        "power": 42.5,
        "is_valid": True,
        "overpower": 0.0,
        "timestamp": MINUTE_START + 50,
        "counters": [120.0, 90.0, 60.0],
        "total": 6000.0,
    }
    body.update(overrides)
    return body


def make_reading(**overrides: Any) -> MeterReading:
    return MeterReading(**make_body(**overrides))


class RecordingStop(threading.Event):
    """Stop event whose wait() returns immediately and remembers the timeout."""

    def __init__(self) -> None:
        super().__init__()
        self.waits: List[Optional[float]] = []

    def wait(self, timeout: Optional[float] = None) -> bool:
        self.waits.append(timeout)
        return self.is_set()


class FakeMeter:
    """
    Replays a script of readings / exceptions.

    Once the script is exhausted the stop event is set, so the loop ends on
    its next wait.
    """

    def __init__(self, script: list, stop: threading.Event, name: str = "fridge",
                 host: str = "10.0.0.5") -> None:
        self.name = name
        self.host = host
        self._script = list(script)
        self._stop = stop
        self.calls = 0
        self.closed = False

    def measure(self) -> MeterReading:
        self.calls += 1
        if not self._script:
            self._stop.set()
            raise RecoverableMeterError(0.0, "script exhausted")
        item = self._script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def close(self) -> None:
        self.closed = True


class FakeConnection:
    """Sink connection failing on the writes whose index is in `fail_on`."""

    def __init__(self, log: list, fail_on: set, counter: list) -> None:
        self._log = log
        self._fail_on = fail_on
        self._counter = counter
        self.closed = False

    def write(self, datum) -> None:
        idx = self._counter[0]
        self._counter[0] += 1
        if idx in self._fail_on:
            raise ConnectionError("influxdb unreachable")
        self._log.append(datum)

    def close(self) -> None:
        self.closed = True


class FakeSink:
    """
    Factory for FakeConnection sharing one write log across reconnects.

    Connect attempts whose index is in `fail_connect` raise.
    """

    def __init__(self, fail_on: Optional[set] = None,
                 fail_connect: Optional[set] = None) -> None:
        self.written: list = []
        self.connections: List[FakeConnection] = []
        self.connect_attempts = 0
        self._fail_on = fail_on or set()
        self._fail_connect = fail_connect or set()
        self._counter = [0]

    def connect(self) -> FakeConnection:
        attempt = self.connect_attempts
        self.connect_attempts += 1
        if attempt in self._fail_connect:
            raise ConnectionError("influx DNS lookup failed")
        conn = FakeConnection(self.written, self._fail_on, self._counter)
        self.connections.append(conn)
        return conn


@pytest.fixture
def plug() -> PlugConfig:
    return PlugConfig(name="fridge", host="10.0.0.5", instantaneous_meter_interval_in_s=10)


@pytest.fixture
def influx_config() -> InfluxConfig:
    return InfluxConfig(https=False, host="influx.local", port=8086,
                        token="secret", org="home", bucket="shelly")


@pytest.fixture
def app_config(influx_config) -> AppConfig:
    return AppConfig(
        network_timeout_ms=2000,
        shelly_plugs=[
            PlugConfig(name="fridge", host="10.0.0.5", instantaneous_meter_interval_in_s=-1),
            PlugConfig(name="washer", host="10.0.0.6", instantaneous_meter_interval_in_s=-1),
        ],
        influxdb2=influx_config,
    )


@pytest.fixture
def stop() -> RecordingStop:
    return RecordingStop()


@pytest.fixture
def body() -> Dict[str, Any]:
    return make_body()


@pytest.fixture
def reading() -> MeterReading:
    return make_reading()
