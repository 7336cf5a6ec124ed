from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoopOutcome:
    name: str
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Worker:
    """A run() loop on its own thread whose terminal outcome is kept for join()."""

    def __init__(self) -> None:
        self._thread: Optional[threading.Thread] = None
        self.outcome: Optional[LoopOutcome] = None

    @property
    def name(self) -> str:
        return type(self).__name__

    @property
    def alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        self._thread = threading.Thread(target=self._main, name=self.name, daemon=True)
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> Optional[LoopOutcome]:
        if self._thread is not None:
            self._thread.join(timeout)
        return self.outcome

    def _main(self) -> None:
        try:
            self.outcome = self.run()
        except Exception as e:
            logger.exception("%s crashed: %s", self.name, e)
            self.outcome = LoopOutcome(self.name, error=f"{type(e).__name__}: {e}")

    def run(self) -> LoopOutcome:
        raise NotImplementedError
