"""Ledger node surface used by wallets: funding, block production, broadcast."""

from typing import Any, Mapping, Protocol


class LedgerError(RuntimeError):
    """Raised when a ledger node rejects or cannot process a request."""


class UnsupportedLedgerAction(LedgerError):
    """Raised when a ledger action type is not understood by the wallet or node."""


class LedgerNode(Protocol):
    """Funding service for one ledger.

    ``fund`` and ``generate_blocks`` are cumulative: both actors may draw on
    the same chain, so funding only ever adds balance and block generation
    only ever advances the shared chain.
    """

    @property
    def ledger(self) -> str:
        ...

    async def new_address(self, label: str) -> str:
        ...

    async def fund(self, address: str, amount: int) -> str:
        ...

    async def generate_blocks(self, count: int = 1) -> int:
        ...

    async def balance(self, address: str) -> int:
        ...

    async def token_balance(self, address: str, token_contract: str) -> int:
        ...

    async def send(self, sender: str, recipient: str, amount: int) -> str:
        ...

    async def deploy(self, sender: str, contract: str) -> str:
        ...

    async def broadcast(self, transaction: Mapping[str, Any]) -> str:
        ...
