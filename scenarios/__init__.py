from .builders import bitcoin, erc20, ether, expiries, swap_request
from .config import HarnessConfig
from .harness import ScenarioResult, SwapHarness
from .library import SCENARIOS, Scenario, get_scenario, run_scenario

__all__ = [
    "HarnessConfig",
    "SCENARIOS",
    "Scenario",
    "ScenarioResult",
    "SwapHarness",
    "bitcoin",
    "erc20",
    "ether",
    "expiries",
    "get_scenario",
    "run_scenario",
    "swap_request",
]
