"""Flat, solver-facing view of an MDP."""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

State = str
Action = str


@dataclass
class FlatMDP:
    """
    Snapshot of an MDP as plain dictionaries keyed by names.

    states        : live state names in index order
    actions       : mapping from state -> list of actions with a transition
    P             : mapping (s, a) -> {s' -> P(s' | s, a)}
    rewards       : mapping s -> R(s)
    terminals     : names of terminal states
    discount_rate : gamma

    Each (s, a) has a single successor, so every inner dict of P holds one
    entry. Transitions into removed states are left out.
    """
    states: List[State]
    actions: Dict[State, List[Action]]
    P: Dict[Tuple[State, Action], Dict[State, float]]
    rewards: Dict[State, float] = field(default_factory=dict)
    terminals: List[State] = field(default_factory=list)
    discount_rate: float = 1.0

    def successors(self, state: State) -> List[State]:
        """Distinct destinations reachable from `state` in one step."""
        result = []
        for a in self.actions.get(state, []):
            for sp in self.P[(state, a)]:
                if sp not in result:
                    result.append(sp)
        return result
