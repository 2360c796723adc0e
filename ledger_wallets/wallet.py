"""A single-address wallet on one ledger, acting on daemon-issued ledger actions."""

import logging
from typing import Optional

from protocol_client.models import LedgerAction

from .models import (
    BROADCAST_SIGNED_TRANSACTION,
    DEPLOY_CONTRACT,
    SEND_AMOUNT_TO_ADDRESS,
    WalletIdentity,
)
from .node import LedgerError, LedgerNode, UnsupportedLedgerAction

log = logging.getLogger(__name__)


class LedgerWallet:
    def __init__(self, node: LedgerNode, address: str) -> None:
        self._node = node
        self._address = address

    @classmethod
    async def create(cls, node: LedgerNode, label: str) -> "LedgerWallet":
        address = await node.new_address(label)
        return cls(node, address)

    @property
    def ledger(self) -> str:
        return self._node.ledger

    @property
    def address(self) -> str:
        return self._address

    @property
    def identity(self) -> WalletIdentity:
        return WalletIdentity(ledger=self.ledger, address=self._address)

    @property
    def node(self) -> LedgerNode:
        return self._node

    async def fund(self, amount: int) -> str:
        if amount <= 0:
            raise ValueError("Funding amount must be positive.")
        log.info("Funding %s %s with %d", self.ledger, self._address, amount)
        return await self._node.fund(self._address, amount)

    async def balance(self, token_contract: Optional[str] = None) -> int:
        """Native balance, or the balance of ``token_contract`` when given."""

        if token_contract is not None:
            return await self._node.token_balance(self._address, token_contract)
        return await self._node.balance(self._address)

    async def execute(self, action: LedgerAction) -> str:
        """Carries out ledger work handed back by a daemon; returns the txid."""

        payload = action.payload
        ledger = payload.get("ledger", self.ledger)
        if ledger != self.ledger:
            raise LedgerError(f"{self.ledger} wallet cannot act on the {ledger} ledger.")

        if action.type == SEND_AMOUNT_TO_ADDRESS:
            return await self._node.send(self._address, payload["to"], int(payload["amount"]))
        if action.type == DEPLOY_CONTRACT:
            return await self._node.deploy(self._address, payload["contract"])
        if action.type == BROADCAST_SIGNED_TRANSACTION:
            return await self._node.broadcast(payload)
        raise UnsupportedLedgerAction(f"Unsupported ledger action: {action.type}")
