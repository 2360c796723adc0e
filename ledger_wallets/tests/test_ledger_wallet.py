"""Wallet dispatch of daemon-issued ledger actions."""

import asyncio
import unittest

from daemon_sim.ledger import SimulatedLedger
from ledger_wallets.miner import BlockProducer
from ledger_wallets.node import LedgerError, UnsupportedLedgerAction
from ledger_wallets.wallet import LedgerWallet
from protocol_client.models import LedgerAction


class UnreachableNode:
    ledger = "bitcoin"

    async def generate_blocks(self, count: int = 1) -> int:
        raise LedgerError("bitcoind went away")


class LedgerWalletTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.node = SimulatedLedger("bitcoin", tx_fee=1_000, address_prefix="bcrt1q")
        self.wallet = await LedgerWallet.create(self.node, "alice")
        await self.wallet.fund(100_000)
        await self.node.generate_blocks(1)

    async def test_funding_confirms_with_a_block(self) -> None:
        await self.wallet.fund(5_000)
        self.assertEqual(await self.wallet.balance(), 100_000)

        await self.node.generate_blocks(1)

        self.assertEqual(await self.wallet.balance(), 105_000)

    async def test_send_amount_to_address(self) -> None:
        action = LedgerAction(
            type="send-amount-to-address",
            payload={"ledger": "bitcoin", "to": "htlc-1-alpha", "amount": "40000"},
        )

        txid = await self.wallet.execute(action)
        await self.node.generate_blocks(1)

        self.assertTrue(txid)
        self.assertEqual(await self.wallet.balance(), 59_000)
        self.assertEqual(await self.node.balance("htlc-1-alpha"), 40_000)

    async def test_wrong_ledger_is_refused(self) -> None:
        action = LedgerAction(
            type="send-amount-to-address",
            payload={"ledger": "ethereum", "to": "0xbob", "amount": "1"},
        )

        with self.assertRaises(LedgerError):
            await self.wallet.execute(action)

    async def test_unknown_action_type(self) -> None:
        with self.assertRaises(UnsupportedLedgerAction):
            await self.wallet.execute(LedgerAction(type="sign-message", payload={"ledger": "bitcoin"}))

    async def test_fund_rejects_non_positive_amounts(self) -> None:
        with self.assertRaises(ValueError):
            await self.wallet.fund(0)

    async def test_identity(self) -> None:
        self.assertEqual(self.wallet.identity.ledger, "bitcoin")
        self.assertTrue(self.wallet.identity.address.startswith("bcrt1qalice"))


class BlockProducerTests(unittest.IsolatedAsyncioTestCase):
    async def test_confirms_pending_transactions_in_background(self) -> None:
        node = SimulatedLedger("bitcoin", tx_fee=1_000, address_prefix="bcrt1q")
        wallet = await LedgerWallet.create(node, "bob")
        await wallet.fund(1_000)

        async with BlockProducer([node], interval=0.01) as producer:
            self.assertTrue(producer.running)
            while node.height == 0:
                await asyncio.sleep(0.005)

        self.assertFalse(producer.running)
        self.assertEqual(await wallet.balance(), 1_000)

    async def test_node_failure_stops_production_and_is_kept(self) -> None:
        node = UnreachableNode()
        producer = BlockProducer([node], interval=0.01)
        producer.start()
        while producer.running:
            await asyncio.sleep(0.005)

        self.assertIsInstance(producer.error, LedgerError)
        with self.assertRaises(LedgerError) as ctx:
            producer.check()
        self.assertIs(ctx.exception.__cause__, producer.error)

        await producer.stop()
        self.assertFalse(producer.running)

    def test_check_passes_while_healthy(self) -> None:
        BlockProducer([], interval=1.0).check()

    def test_rejects_non_positive_interval(self) -> None:
        with self.assertRaises(ValueError):
            BlockProducer([], interval=0)


if __name__ == "__main__":
    unittest.main()
