"""Bounded, fixed-interval polling of externally owned state."""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar

log = logging.getLogger(__name__)

StateT = TypeVar("StateT")

DEFAULT_INTERVAL = 1.0
DEFAULT_DEADLINE = 60.0


class PollTimeout(TimeoutError):
    """Raised when a predicate does not hold before the deadline."""

    def __init__(
        self,
        description: str,
        last_state: Any,
        attempts: int,
        elapsed: float,
        deadline: float,
    ) -> None:
        self.description = description
        self.last_state = last_state
        self.attempts = attempts
        self.elapsed = elapsed
        self.deadline = deadline
        super().__init__(
            f"Timed out after {elapsed:.2f}s (deadline {deadline:.2f}s, {attempts} attempts) "
            f"waiting for {description}; last observed state: {last_state!r}"
        )


class StatePoller:
    """Re-fetches state until a predicate holds or the deadline passes.

    The interval is fixed: state here moves at the pace of ledger
    confirmations, not of load. Errors raised by ``fetch`` are never treated
    as "not ready yet"; they propagate on the attempt that raised them.
    """

    def __init__(
        self,
        interval: float = DEFAULT_INTERVAL,
        deadline: float = DEFAULT_DEADLINE,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        _validate_timing(interval, deadline)
        self._interval = interval
        self._deadline = deadline
        self._clock = clock or time.monotonic
        self._sleep = sleep or asyncio.sleep

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def deadline(self) -> float:
        return self._deadline

    async def poll(
        self,
        fetch: Callable[[], Awaitable[StateT]],
        predicate: Callable[[StateT], bool],
        interval: Optional[float] = None,
        deadline: Optional[float] = None,
        description: str = "predicate",
    ) -> StateT:
        interval = self._interval if interval is None else interval
        deadline = self._deadline if deadline is None else deadline
        _validate_timing(interval, deadline)

        started = self._clock()
        attempts = 0
        while True:
            state = await fetch()
            attempts += 1
            if predicate(state):
                log.debug("%s satisfied after %d attempt(s)", description, attempts)
                return state

            elapsed = self._clock() - started
            if elapsed >= deadline:
                raise PollTimeout(description, state, attempts, elapsed, deadline)

            log.debug(
                "%s not satisfied on attempt %d, retrying in %.2fs", description, attempts, interval
            )
            await self._sleep(min(interval, deadline - elapsed))


def _validate_timing(interval: float, deadline: float) -> None:
    if interval <= 0:
        raise ValueError("Polling interval must be positive.")
    if deadline < 0:
        raise ValueError("Polling deadline must be non-negative.")
