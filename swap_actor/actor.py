"""A swap participant: one daemon client plus one wallet per ledger."""

import logging
from typing import Any, Dict, Iterable, Optional, Tuple

from ledger_wallets.wallet import LedgerWallet
from protocol_client.client import ProtocolClient, UnexpectedResponse
from protocol_client.models import (
    Action,
    ActionField,
    ActionKind,
    ActionResponse,
    PeerInfo,
    Position,
    Role,
    SwapRequest,
    SwapResource,
    SwapState,
)
from step_engine.executor import ActionNotAvailable
from step_engine.poller import StatePoller
from step_engine.predicates import describe, state_after

from .config import ActorConfig

log = logging.getLogger(__name__)

AssetKey = Tuple[str, Optional[str]]


class ActorStateError(RuntimeError):
    """Raised when an operation needs state the actor does not have yet."""


class BalanceMismatchError(AssertionError):
    """Raised when post-swap balances differ from expectations beyond tolerance."""


class Actor:
    """Protocol-shaped verbs over a daemon client and ledger wallets.

    The actor learns its swap either by creating it or by waiting for it to
    show up on its own daemon. Starting balances are recorded at that point
    so the outcome of the swap can be reconciled afterwards.
    """

    def __init__(
        self,
        name: str,
        client: ProtocolClient,
        wallets: Iterable[LedgerWallet],
        config: Optional[ActorConfig] = None,
        poller: Optional[StatePoller] = None,
    ) -> None:
        self._name = name
        self._client = client
        self._wallets: Dict[str, LedgerWallet] = {wallet.ledger: wallet for wallet in wallets}
        self._config = config or ActorConfig()
        self._poller = poller or StatePoller()
        self._info: Optional[PeerInfo] = None
        self._swap_id: Optional[str] = None
        self._swap: Optional[SwapResource] = None
        self._starting_balances: Dict[AssetKey, int] = {}
        self._expected_deltas: Dict[AssetKey, int] = {}

    def __repr__(self) -> str:
        return f"Actor({self._name!r})"

    @property
    def name(self) -> str:
        return self._name

    @property
    def client(self) -> ProtocolClient:
        return self._client

    @property
    def config(self) -> ActorConfig:
        return self._config

    @property
    def swap_id(self) -> str:
        if self._swap_id is None:
            raise ActorStateError(f"{self._name} does not know about a swap yet.")
        return self._swap_id

    @property
    def role(self) -> Role:
        if self._swap is None:
            raise ActorStateError(f"{self._name} has not seen its swap yet.")
        return self._swap.role

    @property
    def ledgers(self) -> Tuple[str, ...]:
        return tuple(sorted(self._wallets))

    def wallet(self, ledger: Optional[str]) -> LedgerWallet:
        if ledger not in self._wallets:
            raise ActorStateError(f"{self._name} has no {ledger} wallet.")
        return self._wallets[ledger]

    def address(self, ledger: str) -> str:
        return self.wallet(ledger).address

    async def info(self) -> PeerInfo:
        if self._info is None:
            self._info = await self._client.get_info()
        return self._info

    async def peer_id(self) -> str:
        return (await self.info()).id

    async def connect(self, other: "Actor") -> None:
        """Dials ``other`` and waits until our daemon lists it as a peer."""

        info = await other.info()
        await self._client.dial(info.id, info.listen_addresses)
        await self._poller.poll(
            self._client.get_peers,
            lambda peers: info.id in peers,
            description=f"{self._name} connected to {other.name}",
        )
        log.info("%s connected to %s (%s)", self._name, other.name, info.id)

    async def create_swap(self, request: SwapRequest, protocol: Optional[str] = None) -> str:
        handle = await self._client.create_swap(protocol or self._config.protocol, request)
        self._swap_id = handle.id
        log.info("%s created swap %s", self._name, handle.id)
        return handle.id

    async def make_order(self, position: Position, quantity: int, price: int) -> str:
        identities = {ledger: wallet.address for ledger, wallet in self._wallets.items()}
        order_id = await self._client.make_order(position, quantity, price, identities)
        log.info(
            "%s placed %s order %s: %d at %d", self._name, position.value, order_id, quantity, price
        )
        return order_id

    async def wait_for_swap(self) -> SwapResource:
        """Polls until the swap is visible on this actor's own daemon."""

        swaps = await self._poller.poll(
            self._client.list_swaps,
            self._is_visible,
            description=f"{self._name}: swap visible",
        )
        swap = next(s for s in swaps if self._swap_id is None or s.id == self._swap_id)
        self._swap_id = swap.id
        self._swap = swap
        self._expected_deltas = _expected_deltas(swap)
        await self._record_starting_balances()
        log.info("%s sees swap %s as %s", self._name, swap.id, swap.role.value)
        return swap

    async def fetch_swap_state(self) -> SwapState:
        return await self._client.get_swap_state(self.swap_id)

    async def fetch_swap(self) -> SwapResource:
        swap = await self._client.get_swap(self.swap_id)
        self._swap = swap
        return swap

    async def resolve_action(self, kind: ActionKind) -> Action:
        swap = await self.fetch_swap()
        action = swap.action(kind)
        if action is None:
            raise ActionNotAvailable(self._name, kind, (a.name for a in swap.actions))
        return action

    async def execute_action(self, action: Action) -> ActionResponse:
        response = await self._client.execute_action(action, self._action_params(action))
        log.info("%s executed %s: HTTP %d", self._name, action.name, response.status_code)
        if response.ok:
            ledger_action = response.ledger_action()
            if ledger_action is not None:
                wallet = self.wallet(ledger_action.payload.get("ledger"))
                txid = await wallet.execute(ledger_action)
                log.info(
                    "%s broadcast %s on %s: %s", self._name, ledger_action.type, wallet.ledger, txid
                )
        return response

    async def assert_and_execute_next_action(self, kind: ActionKind) -> SwapState:
        """Executes the next offered action, which must be ``kind``.

        Waits for the state change the action implies, so the following
        call can rely on it having happened.
        """

        swap = await self.fetch_swap()
        offered = tuple(action.name for action in swap.actions)
        if not swap.actions or swap.actions[0].name != kind.value:
            raise ActionNotAvailable(self._name, kind, offered)

        response = await self.execute_action(swap.actions[0])
        if not response.ok:
            raise UnexpectedResponse(response, f"{self._name} could not {kind.value}")

        predicate = state_after(swap.role, kind)
        return await self._poller.poll(
            self.fetch_swap_state,
            predicate,
            description=f"{self._name}: {describe(predicate)}",
        )

    async def assert_balances_after_swap(self) -> Dict[str, int]:
        if not self._expected_deltas:
            raise ActorStateError(f"{self._name} has no swap to reconcile.")

        tolerance = self._config.balance_tolerance
        actual: Dict[str, int] = {}
        mismatches = []
        for key in sorted(self._expected_deltas, key=asset_label):
            label = asset_label(key)
            expected = self._starting_balances[key] + self._expected_deltas[key]
            actual[label] = await self._balance(key)
            if abs(actual[label] - expected) > tolerance:
                mismatches.append(
                    f"{label}: expected {expected} (±{tolerance}), got {actual[label]}"
                )
        if mismatches:
            raise BalanceMismatchError(
                f"{self._name} balances off after swap: " + "; ".join(mismatches)
            )
        return actual

    async def aclose(self) -> None:
        await self._client.aclose()

    def _is_visible(self, swaps: Tuple[SwapResource, ...]) -> bool:
        if self._swap_id is None:
            return bool(swaps)
        return any(swap.id == self._swap_id for swap in swaps)

    async def _record_starting_balances(self) -> None:
        for key in self._expected_deltas:
            self._starting_balances[key] = await self._balance(key)

    async def _balance(self, key: AssetKey) -> int:
        ledger, token_contract = key
        return await self.wallet(ledger).balance(token_contract)

    def _action_params(self, action: Action) -> Dict[str, Any]:
        return {field.name: self._field_value(field) for field in action.fields}

    def _field_value(self, field: ActionField) -> Any:
        if field.name.endswith("_identity"):
            return self.address(field.ledger or self._ledger_for_field(field.name))
        if field.name == "fee_per_wu":
            return self._config.bitcoin_fee_per_wu
        if field.name == "gas_price":
            return self._config.ethereum_gas_price
        raise ActorStateError(f"{self._name} cannot fill action field {field.name!r}.")

    def _ledger_for_field(self, name: str) -> str:
        if self._swap is None:
            raise ActorStateError(f"{self._name} cannot resolve {name!r} without a swap.")
        parameters = self._swap.parameters
        if name.startswith("alpha_"):
            return parameters.alpha_ledger.name
        if name.startswith("beta_"):
            return parameters.beta_ledger.name
        raise ActorStateError(f"{self._name} cannot tell which ledger {name!r} refers to.")


def asset_label(key: AssetKey) -> str:
    ledger, token_contract = key
    return ledger if token_contract is None else f"{ledger}:{token_contract}"


def _expected_deltas(swap: SwapResource) -> Dict[AssetKey, int]:
    """Balance change per asset once the swap settles, before fees.

    Tokens are keyed by their contract so they are read with ``balanceOf``
    rather than against the ledger's native balance.
    """

    parameters = swap.parameters
    sign = -1 if swap.role == Role.ALICE else 1
    deltas: Dict[AssetKey, int] = {}
    alpha = (parameters.alpha_ledger.name, parameters.alpha_asset.token_contract)
    beta = (parameters.beta_ledger.name, parameters.beta_asset.token_contract)
    deltas[alpha] = deltas.get(alpha, 0) + sign * parameters.alpha_asset.amount
    deltas[beta] = deltas.get(beta, 0) - sign * parameters.beta_asset.amount
    return deltas
