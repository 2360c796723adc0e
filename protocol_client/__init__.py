from .client import (
    MalformedResponse,
    ProtocolClient,
    ProtocolClientError,
    TransientFetchError,
    UnexpectedResponse,
)
from .models import (
    Action,
    ActionField,
    ActionKind,
    ActionResponse,
    Asset,
    CommunicationState,
    CommunicationStatus,
    Ledger,
    LedgerAction,
    LedgerState,
    LedgerStatus,
    PeerInfo,
    Position,
    Role,
    SwapHandle,
    SwapParameters,
    SwapRequest,
    SwapResource,
    SwapState,
)

__all__ = [
    "Action",
    "ActionField",
    "ActionKind",
    "ActionResponse",
    "Asset",
    "CommunicationState",
    "CommunicationStatus",
    "Ledger",
    "LedgerAction",
    "LedgerState",
    "LedgerStatus",
    "MalformedResponse",
    "PeerInfo",
    "Position",
    "ProtocolClient",
    "ProtocolClientError",
    "Role",
    "SwapHandle",
    "SwapParameters",
    "SwapRequest",
    "SwapResource",
    "SwapState",
    "TransientFetchError",
    "UnexpectedResponse",
]
