"""State predicates for steps that wait on the daemon's reported swap state."""

from typing import Dict, Tuple

from protocol_client.models import (
    ActionKind,
    CommunicationStatus,
    LedgerStatus,
    Role,
    SwapState,
)

from .models import StatePredicate

ALPHA = "alpha"
BETA = "beta"

# Which ledger each action moves, and where it moves it to, per role.
_TRANSITIONS: Dict[Tuple[Role, ActionKind], Tuple[str, LedgerStatus]] = {
    (Role.ALICE, ActionKind.DEPLOY): (ALPHA, LedgerStatus.DEPLOYED),
    (Role.ALICE, ActionKind.FUND): (ALPHA, LedgerStatus.FUNDED),
    (Role.ALICE, ActionKind.REDEEM): (BETA, LedgerStatus.REDEEMED),
    (Role.ALICE, ActionKind.REFUND): (ALPHA, LedgerStatus.REFUNDED),
    (Role.BOB, ActionKind.DEPLOY): (BETA, LedgerStatus.DEPLOYED),
    (Role.BOB, ActionKind.FUND): (BETA, LedgerStatus.FUNDED),
    (Role.BOB, ActionKind.REDEEM): (ALPHA, LedgerStatus.REDEEMED),
    (Role.BOB, ActionKind.REFUND): (BETA, LedgerStatus.REFUNDED),
}


def communication_is(status: CommunicationStatus) -> StatePredicate:
    def predicate(state: SwapState) -> bool:
        return state.communication.status == status

    predicate.__qualname__ = f"communication is {status.value}"
    return predicate


def ledger_is(side: str, status: LedgerStatus) -> StatePredicate:
    if side not in (ALPHA, BETA):
        raise ValueError(f"Unknown ledger side: {side}")

    def predicate(state: SwapState) -> bool:
        ledger = state.alpha_ledger if side == ALPHA else state.beta_ledger
        return ledger.status == status

    predicate.__qualname__ = f"{side} ledger is {status.value}"
    return predicate


def alpha_ledger_is(status: LedgerStatus) -> StatePredicate:
    return ledger_is(ALPHA, status)


def beta_ledger_is(status: LedgerStatus) -> StatePredicate:
    return ledger_is(BETA, status)


def state_after(role: Role, kind: ActionKind) -> StatePredicate:
    """Predicate for the state change ``kind`` causes when executed by ``role``."""

    if kind == ActionKind.ACCEPT:
        return communication_is(CommunicationStatus.ACCEPTED)
    if kind == ActionKind.DECLINE:
        return communication_is(CommunicationStatus.DECLINED)
    side, status = _TRANSITIONS[(role, kind)]
    return ledger_is(side, status)


def describe(predicate: StatePredicate) -> str:
    return getattr(predicate, "__qualname__", None) or repr(predicate)
