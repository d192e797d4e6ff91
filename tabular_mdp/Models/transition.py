"""Transition edges: probability and destination state."""

from dataclasses import dataclass

import numpy as np

from .state import State


@dataclass(frozen=True)
class Transition:
    """
    Outcome of taking an action from a state.

    probability : P(next_state | state, action), stored as float32
    next_state  : destination State

    Probabilities are not checked against each other; nothing requires the
    transitions out of a state to sum to one.
    """
    probability: np.float32
    next_state: State

    def __post_init__(self):
        object.__setattr__(self, "probability", np.float32(self.probability))

    def format(self, precision: int = 4) -> str:
        return f"({self.probability:.{precision}f}, {self.next_state.name})"

    def __str__(self) -> str:
        return self.format()
