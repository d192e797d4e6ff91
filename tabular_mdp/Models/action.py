"""Actions of a finite MDP."""

from dataclasses import dataclass
from typing import Iterable, List


@dataclass(frozen=True)
class Action:
    """Immutable action identity, compared by name."""
    name: str

    def __str__(self) -> str:
        return self.name

    @staticmethod
    def many(names: Iterable[str]) -> List["Action"]:
        return [Action(name) for name in names]
