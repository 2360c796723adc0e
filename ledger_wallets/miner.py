"""Background block production so pending ledger transactions confirm on their own."""

import asyncio
import logging
from typing import Iterable, Optional

from .node import LedgerError, LedgerNode

log = logging.getLogger(__name__)


class BlockProducer:
    """Mines a block on every node each ``interval`` seconds.

    A node failure stops production and is kept in ``error``; ``check``
    raises it so waiting code does not mistake a dead ledger for a slow one.
    """

    def __init__(self, nodes: Iterable[LedgerNode], interval: float = 1.0) -> None:
        if interval <= 0:
            raise ValueError("Block interval must be positive.")
        self._nodes = tuple(nodes)
        self._interval = interval
        self._task: Optional[asyncio.Task] = None
        self._error: Optional[Exception] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def error(self) -> Optional[Exception]:
        return self._error

    def check(self) -> None:
        if self._error is not None:
            raise LedgerError(f"Block production stopped: {self._error}") from self._error

    def start(self) -> None:
        if self.running:
            return
        self._error = None
        self._task = asyncio.ensure_future(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        if self._error is not None:
            log.warning("Block production had already stopped: %r", self._error)

    async def __aenter__(self) -> "BlockProducer":
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            for node in self._nodes:
                try:
                    height = await node.generate_blocks(1)
                except Exception as exc:
                    log.error("Block production on %s failed: %s", node.ledger, exc)
                    self._error = exc
                    return
                log.debug("Mined %s block at height %s", node.ledger, height)
