"""JSON-RPC plumbing of the bitcoind and geth nodes against scripted replies."""

import json
import unittest

import httpx

from ledger_wallets.bitcoind import BitcoindNode
from ledger_wallets.geth import GethNode
from ledger_wallets.node import LedgerError, UnsupportedLedgerAction


class ScriptedRpc:
    def __init__(self, results) -> None:
        self.results = results
        self.calls = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.calls.append((request.url.path, body["method"], body["params"]))
        result = self.results[body["method"]]
        if isinstance(result, dict) and "error" in result:
            error = {"result": None, "error": result["error"], "id": body["id"]}
            return httpx.Response(500, json=error)
        return httpx.Response(200, json={"result": result, "error": None, "id": body["id"]})


class BitcoindNodeTests(unittest.IsolatedAsyncioTestCase):
    def _node(self, results) -> BitcoindNode:
        self.rpc = ScriptedRpc(results)
        http = httpx.AsyncClient(transport=httpx.MockTransport(self.rpc))
        self.addAsyncCleanup(http.aclose)
        return BitcoindNode("http://bitcoind.test:18443", http=http)

    async def test_balance_converts_to_sats(self) -> None:
        node = self._node({"scantxoutset": {"success": True, "total_amount": 1.23456789}})

        self.assertEqual(await node.balance("bcrt1qalice"), 123_456_789)

    async def test_new_address_gets_its_own_wallet(self) -> None:
        node = self._node(
            {
                "listwallets": [],
                "loadwallet": {"error": {"code": -18}},
                "createwallet": {"name": "alice"},
                "getnewaddress": "bcrt1qalice",
                "sendtoaddress": "txid-1",
            }
        )

        address = await node.new_address("alice")
        txid = await node.send(address, "bcrt1qbob", 50_000)

        self.assertEqual(txid, "txid-1")
        path, method, params = self.rpc.calls[-1]
        self.assertEqual(path, "/wallet/alice")
        self.assertEqual(method, "sendtoaddress")
        self.assertEqual(params, ["bcrt1qbob", "0.00050000"])

    async def test_generate_blocks_returns_height(self) -> None:
        node = self._node(
            {
                "listwallets": ["miner"],
                "getnewaddress": "bcrt1qminer",
                "generatetoaddress": ["h1"],
                "getblockcount": 102,
            }
        )

        self.assertEqual(await node.generate_blocks(1), 102)

    async def test_rpc_error_becomes_ledger_error(self) -> None:
        node = self._node({"sendrawtransaction": {"error": {"code": -26, "message": "bad-txns"}}})

        with self.assertRaises(LedgerError):
            await node.broadcast({"hex": "00"})

    async def test_send_from_unknown_address(self) -> None:
        node = self._node({})

        with self.assertRaises(LedgerError):
            await node.send("bcrt1qnobody", "bcrt1qbob", 1)

    async def test_no_token_balances(self) -> None:
        with self.assertRaises(UnsupportedLedgerAction):
            await self._node({}).token_balance("bcrt1qalice", "0xdai")

    async def test_no_contract_deployment(self) -> None:
        with self.assertRaises(UnsupportedLedgerAction):
            await self._node({}).deploy("bcrt1qalice", "htlc")


class GethNodeTests(unittest.IsolatedAsyncioTestCase):
    def _node(self, results) -> GethNode:
        self.rpc = ScriptedRpc(results)
        http = httpx.AsyncClient(transport=httpx.MockTransport(self.rpc))
        self.addAsyncCleanup(http.aclose)
        return GethNode("http://geth.test:8545", http=http)

    async def test_fund_sends_from_dev_account(self) -> None:
        node = self._node({"eth_accounts": ["0xdev"], "eth_sendTransaction": "0xtx"})

        self.assertEqual(await node.fund("0xalice", 10**18), "0xtx")

        _, method, params = self.rpc.calls[-1]
        self.assertEqual(method, "eth_sendTransaction")
        self.assertEqual(params[0]["from"], "0xdev")
        self.assertEqual(params[0]["value"], hex(10**18))

    async def test_balance_and_height_are_hex_decoded(self) -> None:
        node = self._node({"eth_getBalance": "0xde0b6b3a7640000", "eth_blockNumber": "0x10"})

        self.assertEqual(await node.balance("0xalice"), 10**18)
        self.assertEqual(await node.generate_blocks(), 16)

    async def test_token_balance_calls_balance_of(self) -> None:
        node = self._node({"eth_call": "0x" + hex(9 * 10**18)[2:].rjust(64, "0")})

        balance = await node.token_balance("0xAbC0000000000000000000000000000000000001", "0xdai")

        self.assertEqual(balance, 9 * 10**18)
        _, method, params = self.rpc.calls[-1]
        self.assertEqual(method, "eth_call")
        self.assertEqual(params[0]["to"], "0xdai")
        self.assertEqual(
            params[0]["data"],
            "0x70a08231" + "abc0000000000000000000000000000000000001".rjust(64, "0"),
        )
        self.assertEqual(params[1], "latest")

    async def test_token_balance_without_contract_code_is_zero(self) -> None:
        node = self._node({"eth_call": "0x"})

        self.assertEqual(await node.token_balance("0xalice", "0xdai"), 0)

    async def test_broadcast_needs_signed_hex(self) -> None:
        with self.assertRaises(UnsupportedLedgerAction):
            await self._node({}).broadcast({"to": "0xbob"})


if __name__ == "__main__":
    unittest.main()
