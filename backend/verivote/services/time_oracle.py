"""
Logical clock shared by every protocol party.

The clock only moves forward. Ticks are announced either by an external
ticking process (POST /clock/advance) or by the built-in ticker loop;
tests drive it by hand with freeze() and advance().
"""
import asyncio
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, List


logger = logging.getLogger(__name__)

TickListener = Callable[[int], None]


@dataclass(frozen=True)
class VerificationWindow:
    """Ticks during which a stored ballot may be verified, bounds inclusive."""
    opens_at: int
    closes_at: int

    @classmethod
    def from_store_tick(cls, store_tick: int, offset: int) -> "VerificationWindow":
        return cls(opens_at=store_tick, closes_at=store_tick + offset)

    def is_open(self, tick: int) -> bool:
        return self.opens_at <= tick <= self.closes_at


class TimeOracle:
    """Single monotonically increasing counter with tick notifications."""

    def __init__(self, start: int = 0):
        if start < 0:
            raise ValueError("Clock cannot start below zero")
        self._tick = start
        self._listeners: List[TickListener] = []
        self._frozen = False

    def current_tick(self) -> int:
        return self._tick

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Stop the ticker loop from advancing the clock."""
        self._frozen = True

    def unfreeze(self) -> None:
        self._frozen = False

    def subscribe(self, listener: TickListener) -> Callable[[], None]:
        """Register a tick listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def advance(self, ticks: int = 1) -> int:
        """Move the clock forward, announcing every intermediate tick."""
        if ticks < 1:
            raise ValueError("The clock only moves forward")

        for _ in range(ticks):
            self._tick += 1
            for listener in list(self._listeners):
                try:
                    listener(self._tick)
                except Exception:
                    logger.exception("Tick listener failed at tick %d", self._tick)

        return self._tick

    async def run(self, interval: float) -> None:
        """Ticker loop; cancel the task to stop it."""
        logger.info("Clock ticker started, one tick every %.2fs", interval)
        while True:
            await asyncio.sleep(interval)
            if not self._frozen:
                self.advance()


@lru_cache()
def get_time_oracle() -> TimeOracle:
    """Process-wide clock."""
    return TimeOracle()
