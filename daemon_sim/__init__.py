from .app import create_app
from .ledger import SimulatedLedger
from .network import Order, SimulatedDaemon, SimulatedNetwork
from .swaps import ProblemError, SimulatedSwap

__all__ = [
    "Order",
    "ProblemError",
    "SimulatedDaemon",
    "SimulatedLedger",
    "SimulatedNetwork",
    "SimulatedSwap",
    "create_app",
]
