"""Swap records as a simulated daemon sees them.

Ledger status is never stored: it is derived from the confirmed history of
each HTLC address, so a swap only advances once a block confirms the
transaction an actor broadcast.
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple

from ledger_wallets.models import (
    BITCOIN,
    BROADCAST_SIGNED_TRANSACTION,
    DEPLOY_CONTRACT,
    ETHEREUM,
    SEND_AMOUNT_TO_ADDRESS,
)
from protocol_client.models import (
    Action,
    ActionField,
    ActionKind,
    CommunicationState,
    CommunicationStatus,
    LedgerState,
    LedgerStatus,
    Role,
    SwapParameters,
    SwapResource,
    SwapState,
)

from .ledger import SimulatedLedger

ALPHA = "alpha"
BETA = "beta"

# Weight of an HTLC redeem/refund transaction on bitcoin.
SPEND_TX_WEIGHT = 540
ETHEREUM_SPEND_GAS = 50_000

CONTRACT_ASSETS = frozenset({"erc20"})

_ACTION_ORDER = (
    ActionKind.ACCEPT,
    ActionKind.DECLINE,
    ActionKind.DEPLOY,
    ActionKind.FUND,
    ActionKind.REDEEM,
    ActionKind.REFUND,
)


class ProblemError(Exception):
    """An HTTP problem returned synchronously by the daemon."""

    def __init__(self, title: str, detail: str = "", status_code: int = 400) -> None:
        self.title = title
        self.detail = detail
        self.status_code = status_code
        super().__init__(f"{status_code} {title} {detail}".strip())

    def to_dict(self) -> Dict[str, Any]:
        return {"title": self.title, "detail": self.detail, "status": self.status_code}


class SimulatedSwap:
    def __init__(
        self,
        swap_id: str,
        protocol: str,
        parameters: SwapParameters,
        alice: str,
        bob: str,
        ledgers: Mapping[str, SimulatedLedger],
        clock,
    ) -> None:
        self.id = swap_id
        self.protocol = protocol
        self.parameters = parameters
        self.alice = alice
        self.bob = bob
        self.communication = CommunicationStatus.SENT
        self.identities: Dict[str, Optional[str]] = {
            "alpha_redeem": None,
            "alpha_refund": None,
            "beta_redeem": None,
            "beta_refund": None,
        }
        self.visible_at: Dict[str, float] = {}
        self._ledgers = ledgers
        self._clock = clock

    def role_of(self, peer_id: str) -> Role:
        if peer_id == self.alice:
            return Role.ALICE
        if peer_id == self.bob:
            return Role.BOB
        raise ProblemError("Swap not found.", f"{peer_id} is not part of swap {self.id}", 404)

    def counterparty_of(self, peer_id: str) -> str:
        return self.bob if self.role_of(peer_id) == Role.ALICE else self.alice

    def htlc(self, side: str) -> str:
        return f"htlc-{self.id}-{side}"

    def ledger_name(self, side: str) -> str:
        return getattr(self.parameters, f"{side}_ledger").name

    def amount(self, side: str) -> int:
        return getattr(self.parameters, f"{side}_asset").amount

    def needs_deploy(self, side: str) -> bool:
        return getattr(self.parameters, f"{side}_asset").name in CONTRACT_ASSETS

    def ledger_state(self, side: str) -> LedgerState:
        htlc = self.htlc(side)
        history = self._ledgers[self.ledger_name(side)].history(htlc)
        deploy_tx = next((tx for tx in history if tx.kind == "deploy"), None)
        funding = [tx for tx in history if tx.recipient == htlc and tx.kind == "transfer"]
        spend = next((tx for tx in history if tx.sender == htlc), None)

        fields: Dict[str, Any] = {}
        if deploy_tx is not None:
            fields["deploy_tx"] = deploy_tx.txid
        if funding:
            fields["fund_tx"] = funding[0].txid
        if deploy_tx is not None or funding:
            fields["htlc_location"] = htlc

        if spend is not None:
            if spend.recipient == self.identities[f"{side}_redeem"]:
                return LedgerState(status=LedgerStatus.REDEEMED, redeem_tx=spend.txid, **fields)
            return LedgerState(status=LedgerStatus.REFUNDED, refund_tx=spend.txid, **fields)
        if funding:
            funded = sum(tx.amount for tx in funding)
            if funded == self.amount(side):
                return LedgerState(status=LedgerStatus.FUNDED, **fields)
            return LedgerState(status=LedgerStatus.INCORRECTLY_FUNDED, **fields)
        if deploy_tx is not None:
            return LedgerState(status=LedgerStatus.DEPLOYED, **fields)
        return LedgerState(status=LedgerStatus.NOT_DEPLOYED, **fields)

    def state(self) -> SwapState:
        return SwapState(
            communication=CommunicationState(status=self.communication),
            alpha_ledger=self.ledger_state(ALPHA),
            beta_ledger=self.ledger_state(BETA),
        )

    def status(self) -> str:
        if self.communication == CommunicationStatus.DECLINED:
            return "NOT_SWAPPED"
        alpha = self.ledger_state(ALPHA).status
        beta = self.ledger_state(BETA).status
        if alpha == LedgerStatus.REDEEMED and beta == LedgerStatus.REDEEMED:
            return "SWAPPED"
        if LedgerStatus.REFUNDED in (alpha, beta) and LedgerStatus.FUNDED not in (alpha, beta):
            return "NOT_SWAPPED"
        return "IN_PROGRESS"

    def available(self, role: Role) -> Tuple[ActionKind, ...]:
        if self.communication == CommunicationStatus.DECLINED:
            return ()
        if self.communication == CommunicationStatus.SENT:
            if role == Role.BOB:
                return (ActionKind.ACCEPT, ActionKind.DECLINE)
            return ()

        own, other = (ALPHA, BETA) if role == Role.ALICE else (BETA, ALPHA)
        own_status = self.ledger_state(own).status
        other_status = self.ledger_state(other).status
        kinds: List[ActionKind] = []

        if role == Role.ALICE or other_status == LedgerStatus.FUNDED:
            if own_status == LedgerStatus.NOT_DEPLOYED and self.needs_deploy(own):
                kinds.append(ActionKind.DEPLOY)
            elif own_status == LedgerStatus.NOT_DEPLOYED or (
                own_status == LedgerStatus.DEPLOYED and self.needs_deploy(own)
            ):
                kinds.append(ActionKind.FUND)

        # Bob learns the secret only once Alice has redeemed his side.
        if other_status == LedgerStatus.FUNDED and (
            role == Role.ALICE or own_status == LedgerStatus.REDEEMED
        ):
            kinds.append(ActionKind.REDEEM)
        if own_status in (LedgerStatus.FUNDED, LedgerStatus.INCORRECTLY_FUNDED):
            kinds.append(ActionKind.REFUND)
        return tuple(kind for kind in _ACTION_ORDER if kind in kinds)

    def actions(self, role: Role) -> Tuple[Action, ...]:
        return tuple(self._action(role, kind) for kind in self.available(role))

    def resource(self, peer_id: str) -> SwapResource:
        role = self.role_of(peer_id)
        return SwapResource(
            id=self.id,
            protocol=self.protocol,
            role=role,
            status=self.status(),
            counterparty=self.counterparty_of(peer_id),
            parameters=self.parameters,
            actions=self.actions(role),
        )

    def execute(self, role: Role, kind: ActionKind, params: Mapping[str, Any]) -> Dict[str, Any]:
        """Applies a protocol action, returning the ledger work for the caller if any."""

        if kind not in self.available(role):
            offered = ", ".join(k.value for k in self.available(role)) or "none"
            raise ProblemError(
                "Action not available.", f"{kind.value} is not offered; offered: {offered}", 409
            )

        if kind == ActionKind.ACCEPT:
            self.identities["alpha_redeem"] = _required(params, "alpha_ledger_redeem_identity")
            self.identities["beta_refund"] = _required(params, "beta_ledger_refund_identity")
            self.communication = CommunicationStatus.ACCEPTED
            return {}
        if kind == ActionKind.DECLINE:
            self.communication = CommunicationStatus.DECLINED
            return {}

        own, other = (ALPHA, BETA) if role == Role.ALICE else (BETA, ALPHA)
        if kind == ActionKind.DEPLOY:
            return _ledger_action(
                DEPLOY_CONTRACT, self.ledger_name(own), contract=self.htlc(own)
            )
        if kind == ActionKind.FUND:
            return _ledger_action(
                SEND_AMOUNT_TO_ADDRESS,
                self.ledger_name(own),
                to=self.htlc(own),
                amount=str(self.amount(own)),
            )
        if kind == ActionKind.REDEEM:
            return self._spend(other, self.identities[f"{other}_redeem"], params)
        return self._spend(own, self.identities[f"{own}_refund"], params, refund=True)

    def _spend(
        self,
        side: str,
        recipient: Optional[str],
        params: Mapping[str, Any],
        refund: bool = False,
    ) -> Dict[str, Any]:
        if recipient is None:
            raise ProblemError("Missing identity.", f"No {side} ledger identity to pay out to.")
        ledger = self.ledger_name(side)
        amount = self.amount(side)
        fee = _spend_fee(ledger, params)
        if fee >= amount:
            raise ProblemError(
                "Fee is too high.", f"Fee of {fee} exceeds the HTLC amount of {amount}."
            )
        expiry = getattr(self.parameters, f"{side}_expiry")
        if refund and self._clock() < expiry:
            raise ProblemError(
                "Expiry has not been reached.", f"{side} ledger HTLC expires at {expiry}."
            )
        return _ledger_action(
            BROADCAST_SIGNED_TRANSACTION,
            ledger,
            to=recipient,
            amount=str(amount - fee),
            **{"from": self.htlc(side)},
        )

    def _action(self, role: Role, kind: ActionKind) -> Action:
        return Action(
            name=kind.value,
            href=f"/swaps/{self.id}/{kind.value}",
            method="POST",
            fields=self._fields(role, kind),
        )

    def _fields(self, role: Role, kind: ActionKind) -> Tuple[ActionField, ...]:
        if kind == ActionKind.ACCEPT:
            return (
                ActionField(name="alpha_ledger_redeem_identity", ledger=self.ledger_name(ALPHA)),
                ActionField(name="beta_ledger_refund_identity", ledger=self.ledger_name(BETA)),
            )
        if kind not in (ActionKind.REDEEM, ActionKind.REFUND):
            return ()
        own, other = (ALPHA, BETA) if role == Role.ALICE else (BETA, ALPHA)
        side = other if kind == ActionKind.REDEEM else own
        ledger = self.ledger_name(side)
        if ledger == BITCOIN:
            return (ActionField(name="fee_per_wu", ledger=ledger),)
        if ledger == ETHEREUM:
            return (ActionField(name="gas_price", ledger=ledger),)
        return ()


def _spend_fee(ledger: str, params: Mapping[str, Any]) -> int:
    if ledger == BITCOIN:
        return _non_negative(params, "fee_per_wu") * SPEND_TX_WEIGHT
    if ledger == ETHEREUM:
        return _non_negative(params, "gas_price") * ETHEREUM_SPEND_GAS
    return 0


def _non_negative(params: Mapping[str, Any], name: str) -> int:
    try:
        value = int(_required(params, name))
    except (TypeError, ValueError) as exc:
        raise ProblemError("Invalid field.", f"{name} must be an integer.") from exc
    if value < 0:
        raise ProblemError("Invalid field.", f"{name} must be non-negative.")
    return value


def _required(params: Mapping[str, Any], name: str) -> Any:
    value = params.get(name)
    if value is None or value == "":
        raise ProblemError("Missing field.", f"{name} is required.")
    return value


def _ledger_action(action_type: str, ledger: str, **payload: Any) -> Dict[str, Any]:
    return {"type": action_type, "payload": {"ledger": ledger, **payload}}
