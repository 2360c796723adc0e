from .bitcoind import BitcoindNode
from .geth import GethNode
from .miner import BlockProducer
from .models import (
    BITCOIN,
    BROADCAST_SIGNED_TRANSACTION,
    DEPLOY_CONTRACT,
    ETHEREUM,
    SEND_AMOUNT_TO_ADDRESS,
    Transaction,
    WalletIdentity,
)
from .node import LedgerError, LedgerNode, UnsupportedLedgerAction
from .wallet import LedgerWallet

__all__ = [
    "BITCOIN",
    "BROADCAST_SIGNED_TRANSACTION",
    "BitcoindNode",
    "BlockProducer",
    "DEPLOY_CONTRACT",
    "ETHEREUM",
    "GethNode",
    "LedgerError",
    "LedgerNode",
    "LedgerWallet",
    "SEND_AMOUNT_TO_ADDRESS",
    "Transaction",
    "UnsupportedLedgerAction",
    "WalletIdentity",
]
