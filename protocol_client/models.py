"""Wire models for the protocol daemon's HTTP API."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict


class ActionKind(str, Enum):
    ACCEPT = "accept"
    DECLINE = "decline"
    DEPLOY = "deploy"
    FUND = "fund"
    REDEEM = "redeem"
    REFUND = "refund"


class LedgerStatus(str, Enum):
    """HTLC status on one ledger; NOT_DEPLOYED means nothing has happened yet."""

    NOT_DEPLOYED = "NotDeployed"
    DEPLOYED = "Deployed"
    FUNDED = "Funded"
    REDEEMED = "Redeemed"
    REFUNDED = "Refunded"
    INCORRECTLY_FUNDED = "IncorrectlyFunded"


class CommunicationStatus(str, Enum):
    SENT = "SENT"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"


class Role(str, Enum):
    ALICE = "Alice"
    BOB = "Bob"


class Position(str, Enum):
    BUY = "buy"
    SELL = "sell"


class _WireModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class Ledger(_WireModel):
    name: str
    network: str = "regtest"


class Asset(_WireModel):
    name: str
    quantity: str
    token_contract: Optional[str] = None

    @property
    def amount(self) -> int:
        return int(self.quantity)


class SwapRequest(_WireModel):
    """The negotiated trade, sent unchanged to the daemon."""

    alpha_ledger: Ledger
    beta_ledger: Ledger
    alpha_asset: Asset
    beta_asset: Asset
    alpha_expiry: int
    beta_expiry: int
    peer: str
    alpha_ledger_refund_identity: Optional[str] = None
    beta_ledger_redeem_identity: Optional[str] = None


class LedgerState(_WireModel):
    status: LedgerStatus = LedgerStatus.NOT_DEPLOYED
    htlc_location: Optional[str] = None
    deploy_tx: Optional[str] = None
    fund_tx: Optional[str] = None
    redeem_tx: Optional[str] = None
    refund_tx: Optional[str] = None


class CommunicationState(_WireModel):
    status: CommunicationStatus


class SwapState(_WireModel):
    communication: CommunicationState
    alpha_ledger: LedgerState
    beta_ledger: LedgerState


class ActionField(_WireModel):
    name: str
    ledger: Optional[str] = None


class Action(_WireModel):
    name: str
    href: str
    method: str = "POST"
    fields: Tuple[ActionField, ...] = ()

    @property
    def kind(self) -> Optional[ActionKind]:
        try:
            return ActionKind(self.name)
        except ValueError:
            return None


class SwapParameters(_WireModel):
    alpha_ledger: Ledger
    beta_ledger: Ledger
    alpha_asset: Asset
    beta_asset: Asset
    alpha_expiry: int
    beta_expiry: int


class SwapResource(_WireModel):
    id: str
    protocol: str
    role: Role
    status: str
    counterparty: str
    parameters: SwapParameters
    actions: Tuple[Action, ...] = ()

    def action(self, kind: ActionKind) -> Optional[Action]:
        for action in self.actions:
            if action.name == kind.value:
                return action
        return None


class PeerInfo(_WireModel):
    id: str
    listen_addresses: Tuple[str, ...] = ()


class LedgerAction(_WireModel):
    """Ledger work a daemon hands back for the caller's wallet to perform."""

    type: str
    payload: Dict[str, Any]


@dataclass(frozen=True)
class SwapHandle:
    id: str
    href: str


@dataclass(frozen=True)
class ActionResponse:
    """Raw outcome of executing an action, kept unmodified for assertions."""

    status_code: int
    body: Any
    headers: Mapping[str, str] = field(default_factory=dict)
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def title(self) -> Optional[str]:
        if isinstance(self.body, dict):
            return self.body.get("title")
        return None

    def ledger_action(self) -> Optional[LedgerAction]:
        if isinstance(self.body, dict) and "type" in self.body and "payload" in self.body:
            return LedgerAction.model_validate(self.body)
        return None


class SwapCollection(_WireModel):
    swaps: Tuple[SwapResource, ...] = ()


class PeerList(_WireModel):
    peers: Tuple[str, ...] = ()
