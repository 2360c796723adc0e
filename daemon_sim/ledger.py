"""In-memory regtest-style ledger: mempool, blocks and confirmed balances."""

import hashlib
import itertools
import logging
from typing import Any, Dict, List, Mapping, Set, Tuple

from ledger_wallets.models import Transaction
from ledger_wallets.node import LedgerError, UnsupportedLedgerAction

log = logging.getLogger(__name__)

COINBASE = "coinbase"


class SimulatedLedger:
    """Transactions wait in the mempool until a block is generated.

    Balances and history only reflect confirmed transactions, so anything
    built on top observes the ledger the way it would a real node.
    """

    def __init__(self, ledger: str, tx_fee: int, address_prefix: str) -> None:
        self._ledger = ledger
        self._tx_fee = tx_fee
        self._address_prefix = address_prefix
        self._height = 0
        self._counter = itertools.count(1)
        self._balances: Dict[str, int] = {}
        self._mempool: List[Transaction] = []
        self._confirmed: List[Tuple[int, Transaction]] = []
        self._contracts: Set[str] = set()

    @property
    def ledger(self) -> str:
        return self._ledger

    @property
    def height(self) -> int:
        return self._height

    @property
    def mempool(self) -> Tuple[Transaction, ...]:
        return tuple(self._mempool)

    async def new_address(self, label: str) -> str:
        return f"{self._address_prefix}{label}{next(self._counter)}"

    async def fund(self, address: str, amount: int) -> str:
        if amount <= 0:
            raise LedgerError("Funding amount must be positive.")
        return self._queue(COINBASE, address, amount, fee=0, kind="funding")

    async def send(self, sender: str, recipient: str, amount: int) -> str:
        if amount <= 0:
            raise LedgerError("Amount must be positive.")
        self._require_spendable(sender, amount + self._tx_fee)
        return self._queue(sender, recipient, amount, fee=self._tx_fee)

    async def deploy(self, sender: str, contract: str) -> str:
        if contract in self._contracts or any(
            tx.kind == "deploy" and tx.recipient == contract for tx in self._mempool
        ):
            raise LedgerError(f"Contract {contract} is already deployed.")
        self._require_spendable(sender, self._tx_fee)
        return self._queue(sender, contract, 0, fee=self._tx_fee, kind="deploy")

    async def broadcast(self, transaction: Mapping[str, Any]) -> str:
        """Spends a contract's whole balance; what is not sent is the fee."""

        try:
            source = transaction["from"]
            recipient = transaction["to"]
            amount = int(transaction["amount"])
        except (KeyError, TypeError, ValueError) as exc:
            raise UnsupportedLedgerAction(f"Malformed signed transaction: {transaction!r}") from exc
        available = self._spendable(source)
        if amount <= 0 or amount > available:
            raise LedgerError(f"{source} cannot spend {amount}; {available} available.")
        return self._queue(source, recipient, amount, fee=available - amount, kind="spend")

    async def generate_blocks(self, count: int = 1) -> int:
        if count < 1:
            raise LedgerError("Must generate at least one block.")
        self._height += count
        for tx in self._mempool:
            self._apply(tx)
            self._confirmed.append((self._height, tx))
        if self._mempool:
            log.debug("%s block %d confirmed %d tx", self._ledger, self._height, len(self._mempool))
        self._mempool = []
        return self._height

    async def balance(self, address: str) -> int:
        return self._balances.get(address, 0)

    async def token_balance(self, address: str, token_contract: str) -> int:
        # Tokens share the address's single balance here.
        return self._balances.get(address, 0)

    def history(self, address: str) -> Tuple[Transaction, ...]:
        return tuple(
            tx for _, tx in self._confirmed if address in (tx.sender, tx.recipient)
        )

    def is_deployed(self, contract: str) -> bool:
        return contract in self._contracts

    def _apply(self, tx: Transaction) -> None:
        if tx.sender != COINBASE:
            self._balances[tx.sender] = self._balances.get(tx.sender, 0) - tx.amount - tx.fee
        if tx.kind == "deploy":
            self._contracts.add(tx.recipient)
        else:
            self._balances[tx.recipient] = self._balances.get(tx.recipient, 0) + tx.amount

    def _spendable(self, address: str) -> int:
        pending = sum(tx.amount + tx.fee for tx in self._mempool if tx.sender == address)
        return self._balances.get(address, 0) - pending

    def _require_spendable(self, address: str, total: int) -> None:
        available = self._spendable(address)
        if total > available:
            raise LedgerError(f"Insufficient funds in {address}: need {total}, have {available}.")

    def _queue(self, sender: str, recipient: str, amount: int, fee: int, kind: str = "transfer") -> str:
        digest = hashlib.sha256(f"{self._ledger}:{next(self._counter)}".encode("utf-8"))
        tx = Transaction(
            txid=digest.hexdigest(),
            ledger=self._ledger,
            sender=sender,
            recipient=recipient,
            amount=amount,
            fee=fee,
            kind=kind,
        )
        self._mempool.append(tx)
        return tx.txid
