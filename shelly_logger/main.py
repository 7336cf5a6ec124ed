from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from typing import Callable, List, Optional

from .core.config import AppConfig, ConfigError, PlugConfig, load_config, settings
from .core.log import configure_logging
from .domain.interfaces import Meter, SinkConnection
from .drivers.plug_sim import SimulatedPlug
from .drivers.shelly_plug import ShellyPlugMeter
from .services.bus import DataBus
from .services.meter_loops import MeterLoop, build_meter_loops
from .services.pump import SinkPump
from .services.worker import LoopOutcome
from .storage.influx_sink import InfluxConnection


logger = logging.getLogger(__name__)

JOIN_POLL_S = 0.5


def build_meter_factory(mode: str, timeout: float) -> Callable[[PlugConfig], Meter]:
    if mode.lower() == "sim":
        return lambda plug: SimulatedPlug(plug)
    return lambda plug: ShellyPlugMeter(plug, timeout=timeout)


class Orchestrator:
    """Spawns every meter loop plus the sink pump and collects their outcomes."""

    def __init__(
        self,
        config: AppConfig,
        make_meter: Callable[[PlugConfig], Meter],
        connect: Callable[[], SinkConnection],
        stop: Optional[threading.Event] = None,
    ) -> None:
        self._stop = stop or threading.Event()
        self.bus = DataBus()

        # all senders must exist before the pump starts receiving
        self.loops: List[MeterLoop] = []
        for plug in config.shelly_plugs:
            self.loops.extend(build_meter_loops(plug, make_meter, self.bus, self._stop))

        self.pump = SinkPump(connect, self.bus, self._stop)

    def start(self) -> None:
        for loop in self.loops:
            loop.start()
        logger.debug("%d meter threads were started", len(self.loops))
        self.pump.start()

    def stop(self) -> None:
        logger.info("Stopping all meter threads")
        self._stop.set()

    def wait(self) -> List[LoopOutcome]:
        outcomes: List[LoopOutcome] = []
        for worker in [*self.loops, self.pump]:
            # short joins keep the main thread responsive to signals
            while worker.alive:
                worker.join(JOIN_POLL_S)
            outcome = worker.outcome or LoopOutcome(worker.name, error="thread did not report an outcome")
            if not outcome.ok:
                logger.error("metering was interrupted: %s: %s", outcome.name, outcome.error)
            outcomes.append(outcome)
        return outcomes

    def run(self) -> int:
        self.start()
        outcomes = self.wait()
        failed = sum(1 for o in outcomes if not o.ok)
        logger.info("All threads finished (%d failed)", failed)
        return 1 if failed else 0


def install_signal_handlers(orchestrator: Orchestrator) -> None:
    def _handle(signum, frame):
        logger.info("Received %s", signal.Signals(signum).name)
        orchestrator.stop()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)


def main(argv: Optional[List[str]] = None) -> int:
    p = argparse.ArgumentParser(description="Log Shelly Plug (S) consumption to InfluxDB2")
    p.add_argument("--config", default=settings.config_path,
                   help=f"Path to the JSON config file (default: {settings.config_path})")
    p.add_argument("--mode", default=settings.mode, choices=["shelly", "sim"],
                   help="'sim' replaces the plugs with simulated ones")
    p.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = p.parse_args(argv)

    configure_logging("DEBUG" if args.verbose else None)
    logger.info("Starting %s (mode=%s)", settings.app_name, args.mode)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error("%s", e)
        return 2

    orchestrator = Orchestrator(
        config,
        make_meter=build_meter_factory(args.mode, config.network_timeout),
        connect=lambda: InfluxConnection(config.influxdb2),
    )
    install_signal_handlers(orchestrator)
    return orchestrator.run()


if __name__ == "__main__":
    sys.exit(main())
