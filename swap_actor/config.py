"""Per-actor overrides handed to the engine by scenario code."""

from dataclasses import dataclass

DEFAULT_BALANCE_TOLERANCE = 100_000


@dataclass(frozen=True)
class ActorConfig:
    bitcoin_fee_per_wu: int = 20
    ethereum_gas_price: int = 1
    alpha_expiry_offset: int = 24 * 60 * 60
    beta_expiry_offset: int = 12 * 60 * 60
    balance_tolerance: int = DEFAULT_BALANCE_TOLERANCE
    protocol: str = "rfc003"

    def __post_init__(self) -> None:
        if self.bitcoin_fee_per_wu < 0 or self.ethereum_gas_price < 0:
            raise ValueError("Fee settings must be non-negative.")
        if self.beta_expiry_offset >= self.alpha_expiry_offset:
            raise ValueError("beta expiry must come before alpha expiry.")
        if self.balance_tolerance < 0:
            raise ValueError("balance_tolerance must be non-negative.")
