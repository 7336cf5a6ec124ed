from __future__ import annotations
from typing import Protocol, runtime_checkable
from .models import Datum, MeterReading


@runtime_checkable
class Meter(Protocol):
    name: str
    host: str

    def measure(self) -> MeterReading:
        """Raise RecoverableMeterError / UnrecoverableMeterError on failure."""
        ...

    def close(self) -> None:
        ...


@runtime_checkable
class SinkConnection(Protocol):
    def write(self, datum: Datum) -> None:
        ...

    def close(self) -> None:
        ...
