"""
Unit tests for the simulated plug.
"""
import pytest

from shelly_logger.domain.errors import RecoverableMeterError
from shelly_logger.domain.models import Measurement
from shelly_logger.drivers.plug_sim import PatternConfig, SimulatedPlug
from shelly_logger.services.bus import DataBus
from shelly_logger.services.meter_loops import MinuteMeterLoop

from conftest import MINUTE_START, FakeMeter


class FakeClock:
    def __init__(self, t: float) -> None:
        self.t = t

    def __call__(self) -> float:
        return self.t


def constant(baseline=100.0) -> PatternConfig:
    return PatternConfig(type="constant", baseline=baseline, noise=0.0)


class TestSimulatedPlug:
    def test_reading_shape(self, plug):
        reading = SimulatedPlug(plug).measure()

        assert reading.is_valid
        assert len(reading.counters) == 3
        assert reading.power >= 0.0

    def test_constant_power_counters(self, plug):
        clock = FakeClock(MINUTE_START + 30)
        sim = SimulatedPlug(plug, pattern=constant(100.0), clock=clock)
        clock.t += 120
        reading = sim.measure()

        assert reading.power == 100.0
        assert reading.counters == [100.0, 100.0, 100.0]
        assert reading.timestamp == MINUTE_START + 150
        # 2 minutes at 100 W = 200 Watt-minutes
        assert reading.total == pytest.approx(200.0)

    def test_step_pattern(self, plug):
        pattern = PatternConfig(type="step", step_low=5.0, step_high=50.0,
                                step_period_s=120.0, noise=0.0)
        sim = SimulatedPlug(plug, pattern=pattern, clock=FakeClock(MINUTE_START))
        assert sim.measure().power in (5.0, 50.0)

    def test_failure_injection(self, plug):
        sim = SimulatedPlug(plug, failure_rate=1.0)
        with pytest.raises(RecoverableMeterError) as exc:
            sim.measure()
        assert exc.value.retry_after == 60.0

    def test_feeds_minute_loop(self, plug, stop):
        """Readings from the sim are accepted end to end by a meter loop."""
        sim = SimulatedPlug(plug, pattern=constant(60.0), clock=FakeClock(MINUTE_START + 10))
        bus = DataBus()
        scripted = FakeMeter([sim.measure()], stop, name=sim.name, host=sim.host)
        MinuteMeterLoop(scripted, bus.sender(), stop).run()

        data = []
        while (d := bus.receive(timeout=0.1)) is not None:
            data.append(d)
        assert [d.measurement for d in data] == [
            Measurement.LAST_MINUTE_ENERGY_WH,
            Measurement.CUMULATIVE_ENERGY_WH,
        ]
        assert data[0].value == pytest.approx(1.0)
