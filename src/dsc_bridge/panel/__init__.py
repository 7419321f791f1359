"""Panel-side collaborators: the keypad write path and a simulated Keybus decoder."""

from .simulator import SimulatedKeybus, load_scenario
from .writer import WriteDispatcher

__all__ = ["SimulatedKeybus", "WriteDispatcher", "load_scenario"]
