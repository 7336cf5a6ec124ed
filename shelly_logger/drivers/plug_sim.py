from __future__ import annotations

import math
import random
import time
from dataclasses import dataclass
from typing import Callable, Literal, Optional

from ..core.config import PlugConfig
from ..domain.errors import RecoverableMeterError
from ..domain.models import MeterReading


PatternType = Literal["constant", "sine", "step", "random"]


@dataclass
class PatternConfig:
    type: PatternType = "sine"
    baseline: float = 60.0      # W
    amplitude: float = 40.0     # W
    period_s: float = 600.0
    noise: float = 2.0
    step_low: float = 5.0
    step_high: float = 120.0
    step_period_s: float = 300.0


class SimulatedPlug:
    """Stand-in for a Shelly plug; same contract as ShellyPlugMeter, no network."""

    def __init__(
        self,
        plug: PlugConfig,
        pattern: Optional[PatternConfig] = None,
        clock: Callable[[], float] = time.time,
        failure_rate: float = 0.0,
    ) -> None:
        self.name = plug.name
        self.host = plug.host
        self._pattern = pattern or PatternConfig()
        self._clock = clock
        self._boot = clock()
        self._failure_rate = failure_rate

    def close(self) -> None:
        pass

    def _power(self, t: float) -> float:
        p = self._pattern
        if p.type == "sine":
            v = p.baseline + p.amplitude * math.sin(2 * math.pi * t / max(p.period_s, 1.0))
        elif p.type == "step":
            phase = (t % max(p.step_period_s, 1.0)) / max(p.step_period_s, 1.0)
            v = p.step_high if phase >= 0.5 else p.step_low
        elif p.type == "random":
            v = p.baseline + random.uniform(-p.amplitude, p.amplitude)
        else:
            v = p.baseline
        return max(0.0, v)

    def measure(self) -> MeterReading:
        if self._failure_rate > 0.0 and random.random() < self._failure_rate:
            raise RecoverableMeterError(60.0, "simulated read failure")

        t = self._clock()
        noise = random.uniform(-self._pattern.noise, self._pattern.noise)
        minute_start = int(t) // 60 * 60

        # a round minute at constant power P yields P Watt-minutes
        counters = [
            round(self._power(minute_start - 60 * k - 30), 3) for k in range(3)
        ]
        total = self._pattern.baseline * max(0.0, t - self._boot) / 60.0

        return MeterReading(
            power=max(0.0, self._power(t) + noise),
            is_valid=True,
            overpower=0.0,
            timestamp=int(t),
            counters=counters,
            total=round(total, 3),
        )
