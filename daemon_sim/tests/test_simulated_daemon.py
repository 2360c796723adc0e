"""HTTP behaviour of the simulated daemon, exercised through the protocol client."""

import unittest

from daemon_sim.network import SimulatedNetwork
from protocol_client.client import ProtocolClient, UnexpectedResponse
from protocol_client.models import (
    Action,
    ActionKind,
    Asset,
    CommunicationStatus,
    Ledger,
    LedgerStatus,
    Position,
    Role,
    SwapRequest,
)

NOW = 1_700_000_000.0
ETHER_AMOUNT = 1_000_000
BITCOIN_AMOUNT = 100_000


class FakeTime:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class SimulatedDaemonTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.monotonic = FakeTime()
        self.wall = FakeTime(NOW)
        self.network = SimulatedNetwork(
            propagation_delay=2.0, clock=self.wall, monotonic=self.monotonic
        )
        self.alice_daemon = self.network.add_daemon("alice")
        self.bob_daemon = self.network.add_daemon("bob")
        self.alice = self._client(self.alice_daemon)
        self.bob = self._client(self.bob_daemon)
        self.ethereum = self.network.ledgers["ethereum"]
        self.bitcoin = self.network.ledgers["bitcoin"]

    def _client(self, daemon) -> ProtocolClient:
        http = self.network.http_client(daemon)
        self.addAsyncCleanup(http.aclose)
        return ProtocolClient(str(http.base_url), http=http)

    def _request(self) -> SwapRequest:
        return SwapRequest(
            alpha_ledger=Ledger(name="ethereum"),
            beta_ledger=Ledger(name="bitcoin"),
            alpha_asset=Asset(name="ether", quantity=str(ETHER_AMOUNT)),
            beta_asset=Asset(name="bitcoin", quantity=str(BITCOIN_AMOUNT)),
            alpha_expiry=int(NOW) + 100,
            beta_expiry=int(NOW) + 50,
            peer=self.bob_daemon.peer_id,
            alpha_ledger_refund_identity="0xalice",
            beta_ledger_redeem_identity="bcrt1qalice",
        )

    async def _swap_visible_to_both(self) -> str:
        handle = await self.alice.create_swap("rfc003", self._request())
        self.monotonic.now += 2.0
        return handle.id

    async def _accept(self, swap_id: str) -> None:
        swap = await self.bob.get_swap(swap_id)
        response = await self.bob.execute_action(
            swap.action(ActionKind.ACCEPT),
            {"alpha_ledger_redeem_identity": "0xbob", "beta_ledger_refund_identity": "bcrt1qbob"},
        )
        self.assertEqual(response.status_code, 200)

    async def _fund(self, client: ProtocolClient, swap_id: str, ledger, sender: str) -> None:
        swap = await client.get_swap(swap_id)
        response = await client.execute_action(swap.action(ActionKind.FUND), {})
        payload = response.ledger_action().payload
        await ledger.fund(sender, int(payload["amount"]) + 100_000)
        await ledger.generate_blocks(1)
        await ledger.send(sender, payload["to"], int(payload["amount"]))
        await ledger.generate_blocks(1)

    async def test_counterparty_sees_swap_after_propagation_delay(self) -> None:
        handle = await self.alice.create_swap("rfc003", self._request())

        self.assertEqual([s.id for s in await self.alice.list_swaps()], [handle.id])
        self.assertEqual(await self.bob.list_swaps(), ())

        self.monotonic.now += 2.0
        swaps = await self.bob.list_swaps()

        self.assertEqual(swaps[0].id, handle.id)
        self.assertEqual(swaps[0].role, Role.BOB)
        self.assertEqual([a.name for a in swaps[0].actions], ["accept", "decline"])
        self.assertEqual(
            [f.name for f in swaps[0].actions[0].fields],
            ["alpha_ledger_redeem_identity", "beta_ledger_refund_identity"],
        )
        self.assertEqual(swaps[0].counterparty, self.alice_daemon.peer_id)

    async def test_accept_requires_identities(self) -> None:
        swap_id = await self._swap_visible_to_both()
        swap = await self.bob.get_swap(swap_id)

        response = await self.bob.execute_action(swap.action(ActionKind.ACCEPT), {})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.title, "Missing field.")

    async def test_funding_only_shows_once_confirmed(self) -> None:
        swap_id = await self._swap_visible_to_both()
        await self._accept(swap_id)
        swap = await self.alice.get_swap(swap_id)
        self.assertEqual([a.name for a in swap.actions], ["fund"])

        response = await self.alice.execute_action(swap.action(ActionKind.FUND), {})
        payload = response.ledger_action().payload
        self.assertEqual(response.ledger_action().type, "send-amount-to-address")
        self.assertEqual(payload["amount"], str(ETHER_AMOUNT))

        await self.ethereum.fund("0xalice", 2 * ETHER_AMOUNT)
        await self.ethereum.generate_blocks(1)
        await self.ethereum.send("0xalice", payload["to"], ETHER_AMOUNT)
        state = await self.alice.get_swap_state(swap_id)
        self.assertEqual(state.alpha_ledger.status, LedgerStatus.NOT_DEPLOYED)

        await self.ethereum.generate_blocks(1)
        state = await self.alice.get_swap_state(swap_id)
        self.assertEqual(state.alpha_ledger.status, LedgerStatus.FUNDED)
        self.assertEqual(state.alpha_ledger.htlc_location, payload["to"])

    async def test_excessive_fee_rejects_redeem_and_refund(self) -> None:
        swap_id = await self._swap_visible_to_both()
        await self._accept(swap_id)
        await self._fund(self.alice, swap_id, self.ethereum, "0xalice-wallet")
        await self._fund(self.bob, swap_id, self.bitcoin, "bcrt1qbob-wallet")

        alice_swap = await self.alice.get_swap(swap_id)
        self.assertEqual([a.name for a in alice_swap.actions], ["redeem", "refund"])
        redeem = await self.alice.execute_action(
            alice_swap.action(ActionKind.REDEEM), {"fee_per_wu": 1_000}
        )
        bob_swap = await self.bob.get_swap(swap_id)
        refund = await self.bob.execute_action(
            bob_swap.action(ActionKind.REFUND), {"fee_per_wu": 1_000}
        )

        for response in (redeem, refund):
            with self.subTest(url=response.url):
                self.assertEqual(response.status_code, 400)
                self.assertEqual(response.title, "Fee is too high.")
                self.assertEqual(response.headers["content-type"], "application/problem+json")

    async def test_refund_waits_for_expiry(self) -> None:
        swap_id = await self._swap_visible_to_both()
        await self._accept(swap_id)
        await self._fund(self.alice, swap_id, self.ethereum, "0xalice-wallet")
        await self._fund(self.bob, swap_id, self.bitcoin, "bcrt1qbob-wallet")
        refund = (await self.bob.get_swap(swap_id)).action(ActionKind.REFUND)

        early = await self.bob.execute_action(refund, {"fee_per_wu": 10})
        self.assertEqual(early.title, "Expiry has not been reached.")

        self.wall.now = NOW + 51
        late = await self.bob.execute_action(refund, {"fee_per_wu": 10})
        payload = late.ledger_action().payload
        self.assertEqual(late.ledger_action().type, "broadcast-signed-transaction")
        self.assertEqual(payload["to"], "bcrt1qbob")
        self.assertEqual(payload["amount"], str(BITCOIN_AMOUNT - 10 * 540))

        await self.bitcoin.broadcast(payload)
        await self.bitcoin.generate_blocks(1)
        state = await self.bob.get_swap_state(swap_id)
        self.assertEqual(state.beta_ledger.status, LedgerStatus.REFUNDED)

    async def test_redeem_pays_the_redeem_identity(self) -> None:
        swap_id = await self._swap_visible_to_both()
        await self._accept(swap_id)
        await self._fund(self.alice, swap_id, self.ethereum, "0xalice-wallet")
        await self._fund(self.bob, swap_id, self.bitcoin, "bcrt1qbob-wallet")

        redeem = (await self.alice.get_swap(swap_id)).action(ActionKind.REDEEM)
        response = await self.alice.execute_action(redeem, {"fee_per_wu": 10})
        await self.bitcoin.broadcast(response.ledger_action().payload)
        await self.bitcoin.generate_blocks(1)

        state = await self.alice.get_swap_state(swap_id)
        self.assertEqual(state.beta_ledger.status, LedgerStatus.REDEEMED)
        self.assertEqual(await self.bitcoin.balance("bcrt1qalice"), BITCOIN_AMOUNT - 5_400)
        bob_swap = await self.bob.get_swap(swap_id)
        self.assertEqual([a.name for a in bob_swap.actions], ["redeem"])
        self.assertEqual(bob_swap.actions[0].fields[0].name, "gas_price")

    async def test_wrong_amount_is_incorrectly_funded(self) -> None:
        swap_id = await self._swap_visible_to_both()
        await self._accept(swap_id)
        await self.ethereum.fund("0xalice", 2 * ETHER_AMOUNT)
        await self.ethereum.generate_blocks(1)
        htlc = self.network.swap_for(self.alice_daemon.peer_id, swap_id).htlc("alpha")

        await self.ethereum.send("0xalice", htlc, ETHER_AMOUNT - 1)
        await self.ethereum.generate_blocks(1)

        state = await self.alice.get_swap_state(swap_id)
        self.assertEqual(state.alpha_ledger.status, LedgerStatus.INCORRECTLY_FUNDED)
        swap = await self.alice.get_swap(swap_id)
        self.assertEqual([a.name for a in swap.actions], ["refund"])

    async def test_decline_ends_the_swap(self) -> None:
        swap_id = await self._swap_visible_to_both()
        swap = await self.bob.get_swap(swap_id)

        await self.bob.execute_action(swap.action(ActionKind.DECLINE), {})

        state = await self.alice.get_swap_state(swap_id)
        self.assertEqual(state.communication.status, CommunicationStatus.DECLINED)
        swap = await self.alice.get_swap(swap_id)
        self.assertEqual((swap.status, swap.actions), ("NOT_SWAPPED", ()))

    async def test_action_not_offered_is_a_conflict(self) -> None:
        swap_id = await self._swap_visible_to_both()
        action = Action(name="fund", href=f"/swaps/{swap_id}/fund")

        response = await self.alice.execute_action(action, {})

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.title, "Action not available.")

    async def test_unknown_swap_and_protocol(self) -> None:
        with self.assertRaises(UnexpectedResponse) as ctx:
            await self.alice.get_swap("does-not-exist")
        self.assertEqual(ctx.exception.response.status_code, 404)

        with self.assertRaises(UnexpectedResponse) as ctx:
            await self.alice.create_swap("han", self._request())
        self.assertEqual(ctx.exception.response.title, "Protocol not supported.")

    async def test_dial_connects_both_sides(self) -> None:
        await self.alice.dial(self.bob_daemon.peer_id, self.bob_daemon.listen_addresses)

        self.assertEqual(await self.alice.get_peers(), (self.bob_daemon.peer_id,))
        self.assertEqual(await self.bob.get_peers(), (self.alice_daemon.peer_id,))
        self.assertEqual((await self.bob.get_info()).id, self.bob_daemon.peer_id)

    async def test_matching_orders_create_a_swap(self) -> None:
        await self.alice.dial(self.bob_daemon.peer_id)
        identities = {"bitcoin": "bcrt1qalice", "ethereum": "0xalice"}
        await self.alice.make_order(Position.BUY, 1_000_000, 9_000, identities)
        await self.bob.make_order(
            Position.SELL, 1_000_000, 9_000, {"bitcoin": "bcrt1qbob", "ethereum": "0xbob"}
        )
        self.assertEqual(await self.alice.list_swaps(), ())

        self.monotonic.now += 2.0
        alice_swap = (await self.alice.list_swaps())[0]
        bob_swap = (await self.bob.list_swaps())[0]

        self.assertEqual(alice_swap.id, bob_swap.id)
        self.assertEqual((alice_swap.role, bob_swap.role), (Role.ALICE, Role.BOB))
        self.assertEqual(alice_swap.protocol, "herc20-hbit")
        self.assertEqual(alice_swap.parameters.alpha_asset.name, "erc20")
        self.assertEqual(alice_swap.parameters.alpha_asset.amount, 1_000_000 * 9_000 * 10**10)
        self.assertEqual([a.name for a in alice_swap.actions], ["deploy"])
        self.assertEqual(bob_swap.actions, ())

    async def test_orders_need_a_connected_counterparty(self) -> None:
        identities = {"bitcoin": "bcrt1q", "ethereum": "0x"}
        await self.alice.make_order(Position.BUY, 1_000, 9_000, identities)
        await self.bob.make_order(Position.SELL, 1_000, 9_000, identities)

        self.monotonic.now += 10.0
        self.assertEqual(await self.alice.list_swaps(), ())


if __name__ == "__main__":
    unittest.main()
