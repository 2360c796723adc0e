from .actor import Actor, ActorStateError, BalanceMismatchError
from .config import DEFAULT_BALANCE_TOLERANCE, ActorConfig

__all__ = [
    "Actor",
    "ActorConfig",
    "ActorStateError",
    "BalanceMismatchError",
    "DEFAULT_BALANCE_TOLERANCE",
]
