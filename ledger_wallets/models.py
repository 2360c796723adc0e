"""Domain models for ledger wallets."""

from dataclasses import dataclass

BITCOIN = "bitcoin"
ETHEREUM = "ethereum"

SEND_AMOUNT_TO_ADDRESS = "send-amount-to-address"
DEPLOY_CONTRACT = "deploy-contract"
BROADCAST_SIGNED_TRANSACTION = "broadcast-signed-transaction"


@dataclass(frozen=True)
class WalletIdentity:
    ledger: str
    address: str


@dataclass(frozen=True)
class Transaction:
    txid: str
    ledger: str
    sender: str
    recipient: str
    amount: int
    fee: int
    kind: str = "transfer"
