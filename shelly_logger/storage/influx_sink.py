from __future__ import annotations

import logging

from influxdb_client import InfluxDBClient, Point, WritePrecision
from influxdb_client.client.write_api import SYNCHRONOUS

from ..core.config import InfluxConfig
from ..domain.models import Datum

logger = logging.getLogger(__name__)


def to_point(d: Datum) -> Point:
    return (
        Point(d.measurement.series_name)
        .tag("device_name", d.device_name)
        .tag("device_host", d.device_host)
        .field("value", float(d.value))
        .time(d.measured_on.replace(microsecond=0), WritePrecision.S)
    )


class InfluxConnection:
    """One client to the InfluxDB 2 server; recreated by the pump after failures."""

    def __init__(self, cfg: InfluxConfig, timeout_ms: int = 10_000) -> None:
        self._org = cfg.org
        self._bucket = cfg.bucket
        self._client = InfluxDBClient(
            url=cfg.url, token=cfg.token, org=cfg.org, timeout=timeout_ms
        )
        self._write_api = self._client.write_api(write_options=SYNCHRONOUS)
        logger.debug("InfluxDB2 client created for %s (bucket=%s)", cfg.url, cfg.bucket)

    def write(self, d: Datum) -> None:
        self._write_api.write(
            bucket=self._bucket,
            org=self._org,
            record=to_point(d),
            write_precision=WritePrecision.S,
        )

    def close(self) -> None:
        try:
            self._write_api.close()
        finally:
            self._client.close()
