"""Named end-to-end scenarios runnable from tests and the command line."""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple

from ledger_wallets.models import BITCOIN, ETHEREUM
from protocol_client.models import ActionKind, CommunicationStatus, LedgerStatus, Position
from step_engine.executor import expect_problem, join
from step_engine.models import ActionSpec, Step
from step_engine.predicates import alpha_ledger_is, beta_ledger_is, communication_is
from swap_actor.config import ActorConfig

from .builders import SATS_PER_BTC, WEI_PER_ETHER, bitcoin, ether, swap_request
from .config import HarnessConfig
from .harness import ALICE, BOB, ScenarioResult, SwapHarness

log = logging.getLogger(__name__)

FEE_TOO_HIGH = "Fee is too high."
# A fee rate no HTLC in these scenarios can pay for.
EXCESSIVE_FEE_PER_WU = 100_000_000

ORDER_QUANTITY = SATS_PER_BTC // 10
ORDER_PRICE = 9_000
DAI_PER_SAT_SCALE = 10**10

ScenarioBody = Callable[[SwapHarness], Awaitable[ScenarioResult]]


@dataclass(frozen=True)
class Scenario:
    name: str
    description: str
    body: ScenarioBody
    actor_overrides: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)

    def actor_config(self, actor: str, config: HarnessConfig) -> ActorConfig:
        base = ActorConfig(balance_tolerance=config.balance_tolerance)
        return replace(base, **self.actor_overrides.get(actor, {}))


async def run_scenario(scenario: Scenario, config: Optional[HarnessConfig] = None) -> ScenarioResult:
    config = config or HarnessConfig()
    log.info("Running scenario %s", scenario.name)
    harness = SwapHarness(
        config,
        alice_config=scenario.actor_config(ALICE, config),
        bob_config=scenario.actor_config(BOB, config),
    )
    async with harness:
        result = await scenario.body(harness)
    log.info("Scenario %s passed", scenario.name)
    return result


async def _ether_for_bitcoin_swap(harness: SwapHarness, name: str, steps_for) -> ScenarioResult:
    alice, bob = harness.alice, harness.bob
    await harness.fund(alice, ETHEREUM, 11 * WEI_PER_ETHER)
    await harness.fund(bob, BITCOIN, SATS_PER_BTC + SATS_PER_BTC // 10)
    await harness.connect()

    request = await swap_request(alice, bob, ether(10 * WEI_PER_ETHER), bitcoin(SATS_PER_BTC))
    return await harness.run_swap_scenario(name, request, steps_for(alice, bob))


async def bitcoin_high_fee(harness: SwapHarness) -> ScenarioResult:
    """Both HTLC spends are rejected when the configured fee eats the whole amount."""

    def steps(alice, bob):
        return [
            Step(bob, ActionKind.ACCEPT, wait_until=communication_is(CommunicationStatus.ACCEPTED)),
            Step(alice, ActionKind.FUND, wait_until=alpha_ledger_is(LedgerStatus.FUNDED)),
            Step(bob, ActionKind.FUND, wait_until=beta_ledger_is(LedgerStatus.FUNDED)),
            Step(alice, ActionSpec(ActionKind.REDEEM, expect_problem(400, FEE_TOO_HIGH))),
            Step(bob, ActionSpec(ActionKind.REFUND, expect_problem(400, FEE_TOO_HIGH))),
        ]

    return await _ether_for_bitcoin_swap(harness, "bitcoin-high-fee", steps)


async def ether_bitcoin_happy_path(harness: SwapHarness) -> ScenarioResult:
    def steps(alice, bob):
        return [
            Step(bob, ActionKind.ACCEPT, wait_until=communication_is(CommunicationStatus.ACCEPTED)),
            Step(alice, ActionKind.FUND, wait_until=alpha_ledger_is(LedgerStatus.FUNDED)),
            Step(bob, ActionKind.FUND, wait_until=beta_ledger_is(LedgerStatus.FUNDED)),
            Step(alice, ActionKind.REDEEM, wait_until=beta_ledger_is(LedgerStatus.REDEEMED)),
            Step(bob, ActionKind.REDEEM, wait_until=alpha_ledger_is(LedgerStatus.REDEEMED)),
        ]

    result = await _ether_for_bitcoin_swap(harness, "ether-bitcoin-happy-path", steps)
    return replace(result, balances=await harness.reconcile_balances())


async def decline(harness: SwapHarness) -> ScenarioResult:
    def steps(alice, bob):
        return [
            Step(bob, ActionKind.DECLINE, wait_until=communication_is(CommunicationStatus.DECLINED)),
        ]

    return await _ether_for_bitcoin_swap(harness, "decline", steps)


async def _orderbook_swap(
    harness: SwapHarness,
    name: str,
    alice_position: Position,
    alice_sequence: Tuple[ActionKind, ...],
    bob_sequence: Tuple[ActionKind, ...],
) -> ScenarioResult:
    """Alice makes the order, Bob takes it; then each side walks its actions in turn."""

    alice, bob = harness.alice, harness.bob
    dai = ORDER_QUANTITY * ORDER_PRICE * DAI_PER_SAT_SCALE
    for actor in (alice, bob):
        await harness.fund(actor, ETHEREUM, dai + WEI_PER_ETHER)
        await harness.fund(actor, BITCOIN, 2 * ORDER_QUANTITY)
    await harness.connect()

    taker_position = Position.SELL if alice_position == Position.BUY else Position.BUY
    await alice.make_order(alice_position, ORDER_QUANTITY, ORDER_PRICE)
    await bob.make_order(taker_position, ORDER_QUANTITY, ORDER_PRICE)
    await join(alice.wait_for_swap(), bob.wait_for_swap())

    # Both sides lock their asset before Alice redeems and reveals the secret.
    for kind in alice_sequence[:-1]:
        await alice.assert_and_execute_next_action(kind)
    for kind in bob_sequence[:-1]:
        await bob.assert_and_execute_next_action(kind)
    await alice.assert_and_execute_next_action(alice_sequence[-1])
    await bob.assert_and_execute_next_action(bob_sequence[-1])

    return ScenarioResult(name=name, balances=await harness.reconcile_balances())


async def orderbook_herc20_hbit(harness: SwapHarness) -> ScenarioResult:
    return await _orderbook_swap(
        harness,
        "orderbook-herc20-hbit",
        Position.BUY,
        (ActionKind.DEPLOY, ActionKind.FUND, ActionKind.REDEEM),
        (ActionKind.FUND, ActionKind.REDEEM),
    )


async def orderbook_hbit_herc20(harness: SwapHarness) -> ScenarioResult:
    return await _orderbook_swap(
        harness,
        "orderbook-hbit-herc20",
        Position.SELL,
        (ActionKind.FUND, ActionKind.REDEEM),
        (ActionKind.DEPLOY, ActionKind.FUND, ActionKind.REDEEM),
    )


_HIGH_FEES = {"bitcoin_fee_per_wu": EXCESSIVE_FEE_PER_WU}

SCENARIOS: Dict[str, Scenario] = {
    scenario.name: scenario
    for scenario in (
        Scenario(
            "bitcoin-high-fee",
            "ether for bitcoin; redeem and refund rejected with 'Fee is too high.'",
            bitcoin_high_fee,
            {ALICE: _HIGH_FEES, BOB: _HIGH_FEES},
        ),
        Scenario(
            "ether-bitcoin-happy-path",
            "ether for bitcoin through to both redeems, balances reconciled",
            ether_bitcoin_happy_path,
        ),
        Scenario("decline", "Bob declines the swap request", decline),
        Scenario(
            "orderbook-herc20-hbit",
            "matched BTC/DAI orders, buyer locks DAI first, balances reconciled",
            orderbook_herc20_hbit,
        ),
        Scenario(
            "orderbook-hbit-herc20",
            "matched BTC/DAI orders, seller locks bitcoin first, balances reconciled",
            orderbook_hbit_herc20,
        ),
    )
}


def get_scenario(name: str) -> Scenario:
    try:
        return SCENARIOS[name]
    except KeyError as exc:
        known = ", ".join(sorted(SCENARIOS))
        raise ValueError(f"Unknown scenario {name!r}; known scenarios: {known}") from exc
