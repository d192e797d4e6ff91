"""Reward function R(s) stored per state index."""

from typing import Dict, Iterator, Optional, Tuple

import numpy as np

from .render import format_reward, render_block
from .state import State

ZERO_REWARD = np.float32(0.0)


class RewardsTable:
    """
    Mapping State -> reward, keyed by state index.

    A parallel index -> State map keeps the registered state objects so the
    table can render state names. A state without an entry has reward 0.
    """

    def __init__(self, table: Optional[Dict[State, float]] = None):
        self._table: Dict[int, np.float32] = {}
        self._states: Dict[int, State] = {}
        if table is not None:
            for state, reward in table.items():
                self.set(state, reward)

    def get(self, state: Optional[State]) -> np.float32:
        """Return the reward for `state`, or 0 if it has no entry."""
        if state is None:
            return ZERO_REWARD
        return self._table.get(state.index, ZERO_REWARD)

    def set(self, state: State, reward: float):
        self._table[state.index] = np.float32(reward)
        self._states[state.index] = state

    def remove(self, state: State):
        self._table.pop(state.index, None)
        self._states.pop(state.index, None)

    def __contains__(self, state: State) -> bool:
        return state.index in self._table

    def __len__(self) -> int:
        return len(self._table)

    def __iter__(self) -> Iterator[Tuple[State, np.float32]]:
        for index in sorted(self._table):
            yield self._states[index], self._table[index]

    def render(self, indent: str = "", unit: str = "\t") -> str:
        return render_block(
            (f"{state}: {format_reward(reward)}" for state, reward in self),
            indent, unit,
        )

    def __str__(self) -> str:
        return self.render()
