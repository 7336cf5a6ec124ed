from __future__ import annotations

import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from ..core.config import PlugConfig
from ..core.timeutil import from_device_timestamp, now_utc
from ..domain.errors import RecoverableMeterError, UnrecoverableMeterError
from ..domain.models import MeterReading

logger = logging.getLogger(__name__)

NOT_CONNECTED_RETRY_S = 60.0
DEVICE_ERROR_RETRY_S = 600.0


class ShellyPlugMeter:
    """Meter driver for a Shelly Plug (S), polled via its "/meter/0" endpoint."""

    def __init__(
        self,
        plug: PlugConfig,
        timeout: float = 5.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.name = plug.name
        self.host = plug.host
        self._url = plug.meter_endpoint_url
        self._timeout = timeout
        self._client = client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def _parse(self, resp: httpx.Response) -> MeterReading:
        try:
            reading = MeterReading.model_validate_json(resp.content)
        except ValidationError as e:
            raise UnrecoverableMeterError(
                f"{self.host} did not return JSON with the expected grammar. "
                f"Measurements are stopped. ({e.error_count()} error(s): "
                f"{e.errors()[0]['msg']})"
            ) from e

        collector_time = now_utc().replace(tzinfo=None)
        try:
            device_time = from_device_timestamp(reading.timestamp)
        except (ValueError, OverflowError, OSError) as e:
            raise UnrecoverableMeterError(
                f"{self.host} reported timestamp {reading.timestamp}, "
                f"which is not a UNIX time-stamp. Measurements are stopped. ({e})"
            ) from e
        logger.debug(
            "%s reports local time %s, server time is %s, offset is %dms",
            self.host,
            device_time,
            collector_time,
            (device_time - collector_time).total_seconds() * 1000,
        )
        return reading

    def measure(self) -> MeterReading:
        try:
            resp = self._client.get(self._url, timeout=self._timeout)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "%s responded with HTTP status %s %s; retrying in 10 minutes (GET %s)",
                self.host,
                e.response.status_code,
                e.response.reason_phrase,
                self._url,
            )
            raise RecoverableMeterError(DEVICE_ERROR_RETRY_S, str(e)) from e
        except httpx.RequestError as e:
            logger.warning("%s not connected; retrying in 1 minute (%s)", self.host, e)
            raise RecoverableMeterError(NOT_CONNECTED_RETRY_S, str(e)) from e

        reading = self._parse(resp)

        logger.debug(
            "%s instant=%.2fW last_min=%.2fWh since_reboot=%.1fWh",
            self.host,
            reading.instantaneous_consumption_in_w(),
            reading.last_minute_consumption_in_wh(),
            reading.consumption_since_reboot_in_wh(),
        )

        if not reading.is_valid:
            logger.error(
                "%s last measurement was invalid; retrying in 10 minutes", self.host
            )
            raise RecoverableMeterError(DEVICE_ERROR_RETRY_S, "invalid measurement")

        return reading
