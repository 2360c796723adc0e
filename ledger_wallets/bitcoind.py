"""Bitcoin Core JSON-RPC node for regtest funding, mining and broadcast."""

import itertools
import json
import logging
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

import httpx

from .models import BITCOIN
from .node import LedgerError, UnsupportedLedgerAction

log = logging.getLogger(__name__)

SATS_PER_BTC = Decimal(100_000_000)
MINER_WALLET = "miner"


class BitcoindNode:
    """Talks to bitcoind over JSON-RPC.

    The miner wallet funds actors and receives block rewards; every address
    handed out by ``new_address`` lives in its own named wallet so that sends
    are drawn from that actor's coins only.
    """

    def __init__(
        self,
        url: str,
        username: str = "bitcoin",
        password: str = "bitcoin",
        http: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ) -> None:
        self._url = url.rstrip("/")
        self._http = http or httpx.AsyncClient(auth=(username, password), timeout=timeout)
        self._ids = itertools.count(1)
        self._wallets: Dict[str, str] = {}
        self._miner_address: Optional[str] = None

    @property
    def ledger(self) -> str:
        return BITCOIN

    async def aclose(self) -> None:
        await self._http.aclose()

    async def new_address(self, label: str) -> str:
        await self._ensure_wallet(label)
        address = await self._call("getnewaddress", "", "bech32", wallet=label)
        self._wallets[address] = label
        return address

    async def fund(self, address: str, amount: int) -> str:
        miner = await self._ensure_miner()
        txid = await self._call("sendtoaddress", address, _to_btc(amount), wallet=MINER_WALLET)
        log.debug("Funded %s with %d sat from %s: %s", address, amount, miner, txid)
        return txid

    async def generate_blocks(self, count: int = 1) -> int:
        miner = await self._ensure_miner()
        await self._call("generatetoaddress", count, miner)
        return await self._call("getblockcount")

    async def ensure_funding(self, maturity: int = 101) -> None:
        """Mines until coinbase outputs of the miner wallet are spendable."""

        height = await self._call("getblockcount")
        if height < maturity:
            await self.generate_blocks(maturity - height)

    async def balance(self, address: str) -> int:
        result = await self._call("scantxoutset", "start", [f"addr({address})"])
        return _to_sats(result["total_amount"])

    async def token_balance(self, address: str, token_contract: str) -> int:
        raise UnsupportedLedgerAction("Bitcoin has no token balances.")

    async def send(self, sender: str, recipient: str, amount: int) -> str:
        wallet = self._wallets.get(sender)
        if wallet is None:
            raise LedgerError(f"No bitcoind wallet holds {sender}.")
        return await self._call("sendtoaddress", recipient, _to_btc(amount), wallet=wallet)

    async def deploy(self, sender: str, contract: str) -> str:
        raise UnsupportedLedgerAction("Bitcoin has no contract deployment.")

    async def broadcast(self, transaction: Mapping[str, Any]) -> str:
        if "hex" not in transaction:
            raise UnsupportedLedgerAction("Bitcoin broadcasts require a signed transaction hex.")
        return await self._call("sendrawtransaction", transaction["hex"])

    async def _ensure_miner(self) -> str:
        if self._miner_address is None:
            await self._ensure_wallet(MINER_WALLET)
            self._miner_address = await self._call("getnewaddress", "", "bech32", wallet=MINER_WALLET)
        return self._miner_address

    async def _ensure_wallet(self, name: str) -> None:
        loaded = await self._call("listwallets")
        if name in loaded:
            return
        try:
            await self._call("loadwallet", name)
        except LedgerError:
            await self._call("createwallet", name)

    async def _call(self, method: str, *params: Any, wallet: Optional[str] = None) -> Any:
        url = self._url if wallet is None else f"{self._url}/wallet/{wallet}"
        payload = {"jsonrpc": "1.0", "id": next(self._ids), "method": method, "params": list(params)}
        log.debug("bitcoind %s %s", method, params)
        try:
            response = await self._http.post(url, json=payload)
        except httpx.HTTPError as exc:
            raise LedgerError(f"bitcoind {method} failed: {exc!r}") from exc

        try:
            body = json.loads(response.text, parse_float=Decimal)
        except ValueError as exc:
            raise LedgerError(
                f"bitcoind {method} returned HTTP {response.status_code}: {response.text!r}"
            ) from exc
        if body.get("error"):
            raise LedgerError(f"bitcoind {method} error: {body['error']}")
        return body.get("result")


def _to_btc(amount: int) -> str:
    return f"{Decimal(amount) / SATS_PER_BTC:.8f}"


def _to_sats(value: Any) -> int:
    return int(Decimal(str(value)) * SATS_PER_BTC)
