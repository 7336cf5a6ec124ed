from __future__ import annotations


class MeterError(Exception):
    """Measurement was not possible."""


class RecoverableMeterError(MeterError):
    """Transient failure; the caller should retry after `retry_after` seconds."""

    def __init__(self, retry_after: float, message: str = "") -> None:
        super().__init__(message or f"retry in {retry_after:.0f}s")
        self.retry_after = float(retry_after)


class UnrecoverableMeterError(MeterError):
    """The device answered with something we can't interpret; stop metering it."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason
