"""Two-actor harness: daemons, shared ledgers, funding and teardown."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import httpx

from daemon_sim.network import SimulatedNetwork
from ledger_wallets.bitcoind import BitcoindNode
from ledger_wallets.geth import GethNode
from ledger_wallets.miner import BlockProducer
from ledger_wallets.node import LedgerNode
from ledger_wallets.wallet import LedgerWallet
from protocol_client.client import ProtocolClient
from protocol_client.models import SwapRequest
from step_engine.executor import StepExecutor, join
from step_engine.models import Step, StepOutcome
from step_engine.poller import StatePoller
from swap_actor.actor import Actor
from swap_actor.config import ActorConfig

from .config import HarnessConfig

log = logging.getLogger(__name__)

ALICE = "alice"
BOB = "bob"


@dataclass(frozen=True)
class ScenarioResult:
    name: str
    outcomes: Tuple[StepOutcome, ...] = ()
    balances: Dict[str, Dict[str, int]] = field(default_factory=dict)


class SwapHarness:
    """Owns everything a two-actor scenario needs for one run.

    Without daemon URLs the harness runs against an in-process simulated
    network. Live daemons must serve the same plain JSON resources as the
    simulated one; siren responses are not understood.

    Ledger state left behind by a failed scenario is not rolled back; both
    the simulated network and a regtest chain are disposable.
    """

    def __init__(
        self,
        config: Optional[HarnessConfig] = None,
        alice_config: Optional[ActorConfig] = None,
        bob_config: Optional[ActorConfig] = None,
        network: Optional[SimulatedNetwork] = None,
    ) -> None:
        self._config = config or HarnessConfig()
        tolerance = ActorConfig(balance_tolerance=self._config.balance_tolerance)
        self._actor_configs = {
            ALICE: alice_config or tolerance,
            BOB: bob_config or tolerance,
        }
        self._network = network
        self._poller = StatePoller(
            self._config.poll_interval, self._config.poll_deadline, sleep=self._sleep
        )
        self._executor = StepExecutor(self._poller)
        self._nodes: Dict[str, LedgerNode] = {}
        self._actors: Dict[str, Actor] = {}
        self._http_clients: List[httpx.AsyncClient] = []
        self._owned_nodes: List[object] = []
        self._producer: Optional[BlockProducer] = None

    @property
    def config(self) -> HarnessConfig:
        return self._config

    @property
    def executor(self) -> StepExecutor:
        return self._executor

    @property
    def network(self) -> Optional[SimulatedNetwork]:
        return self._network

    @property
    def alice(self) -> Actor:
        return self._actors[ALICE]

    @property
    def bob(self) -> Actor:
        return self._actors[BOB]

    def node(self, ledger: str) -> LedgerNode:
        return self._nodes[ledger]

    async def __aenter__(self) -> "SwapHarness":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def start(self) -> None:
        if self._config.uses_live_daemons:
            clients = await self._start_live()
        else:
            clients = self._start_simulated()

        for name, client in clients.items():
            wallets = [await LedgerWallet.create(node, name) for node in self._nodes.values()]
            self._actors[name] = Actor(
                name, client, wallets, config=self._actor_configs[name], poller=self._poller
            )

        self._producer = BlockProducer(self._nodes.values(), self._config.block_interval)
        self._producer.start()
        log.info("Harness started with ledgers %s", ", ".join(sorted(self._nodes)))

    async def fund(self, actor: Actor, ledger: str, amount: int) -> None:
        """Funds ``actor`` on ``ledger`` and mines a block to confirm it."""

        await actor.wallet(ledger).fund(amount)
        await self._nodes[ledger].generate_blocks(1)

    async def connect(self) -> None:
        await self.alice.connect(self.bob)

    async def run_swap_scenario(
        self,
        name: str,
        request: SwapRequest,
        steps: Sequence[Step],
        protocol: Optional[str] = None,
    ) -> ScenarioResult:
        """Alice proposes, both actors wait for the swap, then the steps run in order."""

        await self.alice.create_swap(request, protocol)
        await join(self.alice.wait_for_swap(), self.bob.wait_for_swap())
        outcomes = await self._executor.run(steps)
        return ScenarioResult(name=name, outcomes=outcomes)

    async def reconcile_balances(self) -> Dict[str, Dict[str, int]]:
        alice, bob = await join(
            self.alice.assert_balances_after_swap(), self.bob.assert_balances_after_swap()
        )
        return {ALICE: alice, BOB: bob}

    async def aclose(self) -> None:
        producer, self._producer = self._producer, None
        clients, self._http_clients = self._http_clients, []
        nodes, self._owned_nodes = self._owned_nodes, []
        try:
            if producer is not None:
                await producer.stop()
        finally:
            try:
                for actor in self._actors.values():
                    await actor.aclose()
                for client in clients:
                    await client.aclose()
            finally:
                for node in nodes:
                    await node.aclose()

    async def _sleep(self, seconds: float) -> None:
        # With block production dead the awaited state can never arrive.
        if self._producer is not None:
            self._producer.check()
        await asyncio.sleep(seconds)

    def _start_simulated(self) -> Dict[str, ProtocolClient]:
        if self._network is None:
            self._network = SimulatedNetwork(propagation_delay=self._config.propagation_delay)
        self._nodes = dict(self._network.ledgers)

        clients = {}
        for name in (ALICE, BOB):
            daemon = self._network.add_daemon(name)
            http = self._network.http_client(daemon)
            self._http_clients.append(http)
            clients[name] = ProtocolClient(str(http.base_url), http=http)
        return clients

    async def _start_live(self) -> Dict[str, ProtocolClient]:
        timeout = self._config.http_timeout
        if self._config.bitcoind_url:
            bitcoind = BitcoindNode(self._config.bitcoind_url, timeout=timeout)
            self._owned_nodes.append(bitcoind)
            await bitcoind.ensure_funding()
            self._nodes[bitcoind.ledger] = bitcoind
        if self._config.ethereum_url:
            geth = GethNode(self._config.ethereum_url, timeout=timeout)
            self._owned_nodes.append(geth)
            self._nodes[geth.ledger] = geth
        if not self._nodes:
            raise ValueError("Live daemons need at least one ledger node URL.")
        return {
            ALICE: ProtocolClient(self._config.alice_url, timeout=timeout),
            BOB: ProtocolClient(self._config.bob_url, timeout=timeout),
        }
