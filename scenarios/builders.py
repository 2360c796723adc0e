"""Swap request and asset builders used by scenario bodies."""

import time
from typing import Optional, Tuple

from ledger_wallets.models import BITCOIN, ETHEREUM
from protocol_client.models import Asset, Ledger, SwapRequest
from swap_actor.actor import Actor
from swap_actor.config import ActorConfig

SATS_PER_BTC = 100_000_000
WEI_PER_ETHER = 10**18


def bitcoin(sats: int) -> Tuple[Ledger, Asset]:
    return Ledger(name=BITCOIN), Asset(name=BITCOIN, quantity=str(sats))


def ether(wei: int) -> Tuple[Ledger, Asset]:
    return Ledger(name=ETHEREUM), Asset(name="ether", quantity=str(wei))


def erc20(amount: int, token_contract: str) -> Tuple[Ledger, Asset]:
    return Ledger(name=ETHEREUM), Asset(name="erc20", quantity=str(amount), token_contract=token_contract)


def expiries(config: ActorConfig, now: Optional[float] = None) -> Tuple[int, int]:
    """Absolute alpha and beta expiries; beta always expires first."""

    base = int(time.time() if now is None else now)
    return base + config.alpha_expiry_offset, base + config.beta_expiry_offset


async def swap_request(
    alice: Actor,
    bob: Actor,
    alpha: Tuple[Ledger, Asset],
    beta: Tuple[Ledger, Asset],
    now: Optional[float] = None,
) -> SwapRequest:
    alpha_expiry, beta_expiry = expiries(alice.config, now)
    return SwapRequest(
        alpha_ledger=alpha[0],
        beta_ledger=beta[0],
        alpha_asset=alpha[1],
        beta_asset=beta[1],
        alpha_expiry=alpha_expiry,
        beta_expiry=beta_expiry,
        peer=await bob.peer_id(),
        alpha_ledger_refund_identity=alice.address(alpha[0].name),
        beta_ledger_redeem_identity=alice.address(beta[0].name),
    )
