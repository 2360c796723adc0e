"""Geth dev-mode JSON-RPC node for ether funding and raw transaction broadcast."""

import itertools
import logging
from typing import Any, Dict, List, Mapping, Optional

import httpx

from .models import ETHEREUM
from .node import LedgerError, UnsupportedLedgerAction

log = logging.getLogger(__name__)

TRANSFER_GAS = 21_000
BALANCE_OF_SELECTOR = "0x70a08231"
DEFAULT_PASSPHRASE = "harness"


class GethNode:
    """Talks to ``geth --dev`` over JSON-RPC.

    The dev account funds actors. Dev mode seals a block per transaction, so
    ``generate_blocks`` only reports the current height.
    """

    def __init__(
        self,
        url: str,
        http: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        passphrase: str = DEFAULT_PASSPHRASE,
    ) -> None:
        self._url = url.rstrip("/")
        self._http = http or httpx.AsyncClient(timeout=timeout)
        self._ids = itertools.count(1)
        self._passphrase = passphrase
        self._dev_account: Optional[str] = None

    @property
    def ledger(self) -> str:
        return ETHEREUM

    async def aclose(self) -> None:
        await self._http.aclose()

    async def new_address(self, label: str) -> str:
        address = await self._call("personal_newAccount", self._passphrase)
        log.debug("New ethereum account for %s: %s", label, address)
        return address

    async def fund(self, address: str, amount: int) -> str:
        dev = await self._ensure_dev_account()
        return await self._call("eth_sendTransaction", _transfer(dev, address, amount))

    async def generate_blocks(self, count: int = 1) -> int:
        return int(await self._call("eth_blockNumber"), 16)

    async def balance(self, address: str) -> int:
        return int(await self._call("eth_getBalance", address, "latest"), 16)

    async def token_balance(self, address: str, token_contract: str) -> int:
        """ERC20 ``balanceOf(address)`` read through ``eth_call``."""

        data = BALANCE_OF_SELECTOR + address[2:].lower().rjust(64, "0")
        result = await self._call("eth_call", {"to": token_contract, "data": data}, "latest")
        if result in (None, "0x"):
            return 0
        return int(result, 16)

    async def send(self, sender: str, recipient: str, amount: int) -> str:
        return await self._call(
            "personal_sendTransaction", _transfer(sender, recipient, amount), self._passphrase
        )

    async def deploy(self, sender: str, contract: str) -> str:
        if not contract.startswith("0x"):
            raise UnsupportedLedgerAction("Deployment needs hex-encoded contract bytecode.")
        transaction = {"from": sender, "data": contract}
        return await self._call("personal_sendTransaction", transaction, self._passphrase)

    async def broadcast(self, transaction: Mapping[str, Any]) -> str:
        if "hex" not in transaction:
            raise UnsupportedLedgerAction("Ethereum broadcasts require a signed transaction hex.")
        return await self._call("eth_sendRawTransaction", transaction["hex"])

    async def _ensure_dev_account(self) -> str:
        if self._dev_account is None:
            accounts: List[str] = await self._call("eth_accounts")
            if not accounts:
                raise LedgerError("geth exposes no dev account.")
            self._dev_account = accounts[0]
        return self._dev_account

    async def _call(self, method: str, *params: Any) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": list(params)}
        log.debug("geth %s", method)
        try:
            response = await self._http.post(self._url, json=payload)
        except httpx.HTTPError as exc:
            raise LedgerError(f"geth {method} failed: {exc!r}") from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise LedgerError(
                f"geth {method} returned HTTP {response.status_code}: {response.text!r}"
            ) from exc
        if body.get("error"):
            raise LedgerError(f"geth {method} error: {body['error']}")
        return body.get("result")


def _transfer(sender: str, recipient: str, amount: int) -> Dict[str, str]:
    return {"from": sender, "to": recipient, "value": hex(amount), "gas": hex(TRANSFER_GAS)}
