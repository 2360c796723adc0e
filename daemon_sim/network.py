"""A set of simulated daemons sharing ledgers, swaps and an orderbook."""

import hashlib
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

import httpx

from ledger_wallets.models import BITCOIN, ETHEREUM
from protocol_client.models import (
    Asset,
    CommunicationStatus,
    Ledger,
    Position,
    SwapParameters,
    SwapRequest,
)

from .ledger import SimulatedLedger
from .swaps import ProblemError, SimulatedSwap

log = logging.getLogger(__name__)

SUPPORTED_PROTOCOLS = frozenset({"rfc003"})
BITCOIN_TX_FEE = 1_000
ETHEREUM_TX_FEE = 21_000
DAI_CONTRACT = "0x6b175474e89094c44da98b954eedeac495271d0f"
# One DAI has 18 decimals, one BTC has 8: a price in DAI per BTC scales sats by 10**10.
DAI_PER_SAT_SCALE = 10**10


@dataclass
class Order:
    id: str
    owner: str
    position: Position
    quantity: int
    price: int
    identities: Dict[str, str]
    open: bool = True


@dataclass
class SimulatedDaemon:
    """One participant's daemon; all state lives in its network."""

    name: str
    peer_id: str
    network: "SimulatedNetwork"
    peers: List[str] = field(default_factory=list)

    @property
    def listen_addresses(self) -> Tuple[str, ...]:
        return (f"/memory/{self.name}",)

    def dial(self, peer_id: str) -> None:
        self.network.dial(self.peer_id, peer_id)

    def create_swap(self, protocol: str, request: SwapRequest) -> SimulatedSwap:
        return self.network.create_swap(self.peer_id, protocol, request)

    def swaps(self) -> Tuple[SimulatedSwap, ...]:
        return self.network.swaps_visible_to(self.peer_id)

    def swap(self, swap_id: str) -> SimulatedSwap:
        return self.network.swap_for(self.peer_id, swap_id)

    def place_order(self, position: Position, quantity: int, price: int, identities: Dict[str, str]) -> Order:
        return self.network.place_order(self.peer_id, position, quantity, price, identities)


class SimulatedNetwork:
    """Shared world behind a group of simulated daemons.

    The counterparty of a new swap only sees it after ``propagation_delay``
    seconds, mimicking the asynchronous peer-to-peer announcement.
    """

    def __init__(
        self,
        propagation_delay: float = 0.0,
        alpha_expiry_offset: int = 24 * 60 * 60,
        beta_expiry_offset: int = 12 * 60 * 60,
        clock: Optional[Callable[[], float]] = None,
        monotonic: Optional[Callable[[], float]] = None,
    ) -> None:
        if propagation_delay < 0:
            raise ValueError("propagation_delay must be non-negative.")
        self.ledgers: Dict[str, SimulatedLedger] = {
            BITCOIN: SimulatedLedger(BITCOIN, BITCOIN_TX_FEE, "bcrt1q"),
            ETHEREUM: SimulatedLedger(ETHEREUM, ETHEREUM_TX_FEE, "0x"),
        }
        self._propagation_delay = propagation_delay
        self._alpha_expiry_offset = alpha_expiry_offset
        self._beta_expiry_offset = beta_expiry_offset
        self._clock = clock or time.time
        self._monotonic = monotonic or time.monotonic
        self._daemons: Dict[str, SimulatedDaemon] = {}
        self._swaps: Dict[str, SimulatedSwap] = {}
        self._orders: List[Order] = []
        self._ids = itertools.count(1)

    def add_daemon(self, name: str) -> SimulatedDaemon:
        peer_id = "12D3KooW" + hashlib.sha256(name.encode("utf-8")).hexdigest()[:32]
        if peer_id in self._daemons:
            raise ValueError(f"A daemon named {name!r} already exists.")
        daemon = SimulatedDaemon(name=name, peer_id=peer_id, network=self)
        self._daemons[peer_id] = daemon
        return daemon

    def http_client(self, daemon: SimulatedDaemon) -> httpx.AsyncClient:
        """An httpx client routed in-process to ``daemon``'s ASGI app."""

        from .app import create_app

        transport = httpx.ASGITransport(app=create_app(daemon))
        return httpx.AsyncClient(transport=transport, base_url=f"http://{daemon.name}")

    def dial(self, from_peer: str, to_peer: str) -> None:
        if to_peer not in self._daemons:
            raise ProblemError("Unknown peer.", f"No daemon listens as {to_peer}.")
        for a, b in ((from_peer, to_peer), (to_peer, from_peer)):
            peers = self._daemons[a].peers
            if b not in peers:
                peers.append(b)

    def create_swap(self, initiator: str, protocol: str, request: SwapRequest) -> SimulatedSwap:
        if protocol not in SUPPORTED_PROTOCOLS:
            raise ProblemError("Protocol not supported.", f"{protocol} is not supported.", 404)
        if request.peer not in self._daemons or request.peer == initiator:
            raise ProblemError("Unknown peer.", f"Cannot swap with {request.peer}.")
        for side in ("alpha", "beta"):
            ledger = getattr(request, f"{side}_ledger").name
            if ledger not in self.ledgers:
                raise ProblemError("Ledger not supported.", f"{ledger} is not supported.")
        if not request.alpha_ledger_refund_identity or not request.beta_ledger_redeem_identity:
            raise ProblemError("Missing identity.", "Alice must provide refund and redeem identities.")

        parameters = SwapParameters(
            alpha_ledger=request.alpha_ledger,
            beta_ledger=request.beta_ledger,
            alpha_asset=request.alpha_asset,
            beta_asset=request.beta_asset,
            alpha_expiry=request.alpha_expiry,
            beta_expiry=request.beta_expiry,
        )
        swap = self._register(protocol, parameters, alice=initiator, bob=request.peer)
        swap.identities["alpha_refund"] = request.alpha_ledger_refund_identity
        swap.identities["beta_redeem"] = request.beta_ledger_redeem_identity
        swap.visible_at[initiator] = self._monotonic()
        swap.visible_at[request.peer] = self._monotonic() + self._propagation_delay
        return swap

    def swaps_visible_to(self, peer_id: str) -> Tuple[SimulatedSwap, ...]:
        now = self._monotonic()
        return tuple(
            swap for swap in self._swaps.values()
            if peer_id in swap.visible_at and swap.visible_at[peer_id] <= now
        )

    def swap_for(self, peer_id: str, swap_id: str) -> SimulatedSwap:
        swap = self._swaps.get(swap_id)
        if swap is None or swap not in self.swaps_visible_to(peer_id):
            raise ProblemError("Swap not found.", f"No swap {swap_id}.", 404)
        return swap

    def place_order(
        self,
        owner: str,
        position: Position,
        quantity: int,
        price: int,
        identities: Dict[str, str],
    ) -> Order:
        if quantity <= 0 or price <= 0:
            raise ProblemError("Invalid order.", "quantity and price must be positive.")
        missing = sorted({BITCOIN, ETHEREUM} - set(identities))
        if missing:
            raise ProblemError("Missing identity.", f"No identity for {', '.join(missing)}.")

        order = Order(
            id=f"order-{next(self._ids)}",
            owner=owner,
            position=position,
            quantity=quantity,
            price=price,
            identities=dict(identities),
        )
        maker = self._matching_order(order)
        self._orders.append(order)
        log.debug("order %s placed by %s: %s %d at %d", order.id, owner, position.value, quantity, price)
        if maker is not None:
            maker.open = False
            order.open = False
            self._swap_from_orders(maker, order)
        return order

    def _matching_order(self, order: Order) -> Optional[Order]:
        peers = self._daemons[order.owner].peers
        for candidate in self._orders:
            if (
                candidate.open
                and candidate.owner in peers
                and candidate.position != order.position
                and candidate.quantity == order.quantity
                and candidate.price == order.price
            ):
                return candidate
        return None

    def _swap_from_orders(self, maker: Order, taker: Order) -> SimulatedSwap:
        """The maker becomes Alice; a buying maker locks DAI first."""

        bitcoin = (Ledger(name=BITCOIN), Asset(name=BITCOIN, quantity=str(maker.quantity)))
        dai = (
            Ledger(name=ETHEREUM),
            Asset(
                name="erc20",
                quantity=str(maker.quantity * maker.price * DAI_PER_SAT_SCALE),
                token_contract=DAI_CONTRACT,
            ),
        )
        if maker.position == Position.BUY:
            protocol, alpha, beta = "herc20-hbit", dai, bitcoin
        else:
            protocol, alpha, beta = "hbit-herc20", bitcoin, dai

        now = int(self._clock())
        parameters = SwapParameters(
            alpha_ledger=alpha[0],
            beta_ledger=beta[0],
            alpha_asset=alpha[1],
            beta_asset=beta[1],
            alpha_expiry=now + self._alpha_expiry_offset,
            beta_expiry=now + self._beta_expiry_offset,
        )
        swap = self._register(protocol, parameters, alice=maker.owner, bob=taker.owner)
        swap.identities["alpha_refund"] = maker.identities[alpha[0].name]
        swap.identities["beta_redeem"] = maker.identities[beta[0].name]
        swap.identities["alpha_redeem"] = taker.identities[alpha[0].name]
        swap.identities["beta_refund"] = taker.identities[beta[0].name]
        swap.communication = CommunicationStatus.ACCEPTED
        visible = self._monotonic() + self._propagation_delay
        swap.visible_at[maker.owner] = visible
        swap.visible_at[taker.owner] = visible
        return swap

    def _register(self, protocol: str, parameters: SwapParameters, alice: str, bob: str) -> SimulatedSwap:
        digest = hashlib.sha256(f"{alice}:{bob}:{next(self._ids)}".encode("utf-8")).hexdigest()
        swap_id = f"{digest[:8]}-{digest[8:12]}-{digest[12:16]}-{digest[16:20]}-{digest[20:32]}"
        swap = SimulatedSwap(swap_id, protocol, parameters, alice, bob, self.ledgers, self._clock)
        self._swaps[swap_id] = swap
        log.info("swap %s (%s) registered between %s and %s", swap_id, protocol, alice, bob)
        return swap
