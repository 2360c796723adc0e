"""Harness-wide settings, read from ``SWAP_HARNESS_*`` environment variables."""

from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Optional

from swap_actor.config import DEFAULT_BALANCE_TOLERANCE

ENV_PREFIX = "SWAP_HARNESS_"


@dataclass(frozen=True)
class HarnessConfig:
    poll_interval: float = 0.05
    poll_deadline: float = 30.0
    http_timeout: float = 10.0
    balance_tolerance: int = DEFAULT_BALANCE_TOLERANCE
    alice_url: Optional[str] = None
    bob_url: Optional[str] = None
    bitcoind_url: Optional[str] = None
    ethereum_url: Optional[str] = None
    propagation_delay: float = 0.0
    block_interval: float = 0.02

    def __post_init__(self) -> None:
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive.")
        if self.poll_deadline < 0:
            raise ValueError("poll_deadline must be non-negative.")
        if self.http_timeout <= 0:
            raise ValueError("http_timeout must be positive.")
        if self.balance_tolerance < 0:
            raise ValueError("balance_tolerance must be non-negative.")
        if self.propagation_delay < 0:
            raise ValueError("propagation_delay must be non-negative.")
        if self.block_interval <= 0:
            raise ValueError("block_interval must be positive.")

    @property
    def uses_live_daemons(self) -> bool:
        return bool(self.alice_url and self.bob_url)

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> "HarnessConfig":
        values = {}
        for item in fields(cls):
            raw = environ.get(ENV_PREFIX + item.name.upper())
            if raw is None or raw == "":
                continue
            values[item.name] = _parse(item.name, item.type, raw)
        return cls(**values)

    def with_overrides(self, **overrides: Any) -> "HarnessConfig":
        """Returns a copy with every override that is not ``None`` applied."""

        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def _parse(name: str, annotation: Any, raw: str) -> Any:
    if annotation in (float, "float"):
        converter = float
    elif annotation in (int, "int"):
        converter = int
    else:
        return raw
    try:
        return converter(raw)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name.upper()} must be a number, got {raw!r}.") from exc
