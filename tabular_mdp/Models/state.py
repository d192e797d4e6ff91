"""States of a finite MDP."""

from dataclasses import dataclass
from typing import Iterable, List


@dataclass(frozen=True, eq=False)
class State:
    """
    Immutable state identity.

    Two states are equal iff their indices match; the name is a secondary
    lookup key and the terminal flag is informational only.
    """
    name: str
    index: int
    terminal: bool = False

    def __eq__(self, other):
        if not isinstance(other, State):
            return NotImplemented
        return self.index == other.index

    def __hash__(self):
        return hash(self.index)

    def __str__(self) -> str:
        return f"S_{self.index}: {self.name}"

    @staticmethod
    def many(names: Iterable[str]) -> List["State"]:
        """Build non-terminal states with sequential indices from 0."""
        return [State(name, i) for i, name in enumerate(names)]
