"""Transition function T(s, a) -> (p, s') as nested per-state tables."""

from typing import Dict, Iterator, List, Optional, Tuple

from .action import Action
from .errors import PreconditionViolationError
from .render import render_block
from .state import State
from .transition import Transition


class TransitionTableEntry:
    """Outgoing transitions of one origin state: Action -> Transition."""

    def __init__(self, entry: Optional[Dict[Action, Transition]] = None):
        self._entry: Dict[Action, Transition] = dict(entry) if entry else {}

    def get(self, action: Optional[Action]) -> Optional[Transition]:
        if action is None:
            return None
        return self._entry.get(action)

    def set(self, action: Action, probability: float, next_state: State):
        self._entry[action] = Transition(probability, next_state)

    def remove(self, action: Action):
        self._entry.pop(action, None)

    def remove_by_destination(self, next_state: State) -> List[Action]:
        """
        Remove every transition that lands in `next_state` (by index).

        Returns the actions whose transitions were removed.
        """
        removed = [
            action for action, transition in self._entry.items()
            if transition.next_state == next_state
        ]
        for action in removed:
            del self._entry[action]
        return removed

    def items(self) -> List[Tuple[Action, Transition]]:
        """(action, transition) pairs sorted by action name."""
        return sorted(self._entry.items(), key=lambda kv: kv[0].name)

    def __contains__(self, action: Action) -> bool:
        return action in self._entry

    def __len__(self) -> int:
        return len(self._entry)

    def render(self, indent: str = "", unit: str = "\t", precision: int = 4) -> str:
        return render_block(
            (f"{action}: {transition.format(precision)}"
             for action, transition in self.items()),
            indent, unit,
        )

    def __str__(self) -> str:
        return self.render()


class TransitionTable:
    """Mapping State -> TransitionTableEntry."""

    def __init__(self, table: Optional[Dict[State, Dict[Action, Transition]]] = None):
        self._table: Dict[State, TransitionTableEntry] = {}
        if table is not None:
            for state, entry in table.items():
                self._table[state] = TransitionTableEntry(entry)

    def get(self, state: Optional[State]) -> Optional[TransitionTableEntry]:
        if state is None:
            return None
        return self._table.get(state)

    def set(self, state: State, entry: TransitionTableEntry):
        # drop an equal key first so the stored key is the new State object
        self._table.pop(state, None)
        self._table[state] = entry

    def update(self, state: Optional[State], action: Action, probability: float, next_state: State):
        """
        Set one transition inside the existing entry for `state`.

        The entry must already exist; register one with `set` first.
        """
        entry = self.get(state)
        if entry is None:
            raise PreconditionViolationError(
                f"no transition entry for state {state}; set an entry before updating it"
            )
        entry.set(action, probability, next_state)

    def remove(self, state: State):
        self._table.pop(state, None)

    def __contains__(self, state: State) -> bool:
        return state in self._table

    def __len__(self) -> int:
        return len(self._table)

    def __iter__(self) -> Iterator[Tuple[State, TransitionTableEntry]]:
        for state in sorted(self._table, key=lambda s: s.index):
            yield state, self._table[state]

    def render(self, indent: str = "", unit: str = "\t", precision: int = 4) -> str:
        return render_block(
            (f"{state}: {entry.render(indent + unit, unit, precision)}"
             for state, entry in self),
            indent, unit,
        )

    def __str__(self) -> str:
        return self.render()
