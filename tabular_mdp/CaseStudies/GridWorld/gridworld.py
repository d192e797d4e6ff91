"""GridWorld case study: an agent moving between cells of a rectangular board."""

from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from ...Models import MDP, Action, State, Transition
from ...utils import bool_to_int, uniform

# Action name -> (row delta, col delta)
GRID_ACTIONS: Dict[str, Tuple[int, int]] = {
    "U": (-1, 0),
    "R": (0, +1),
    "D": (+1, 0),
    "L": (0, -1),
}

GO_UP, GO_RIGHT, GO_DOWN, GO_LEFT = Action.many(GRID_ACTIONS)

THREE_BY_THREE = ["TL", "TC", "TR", "ML", "MC", "MR", "BL", "BM", "BR"]
HOLE_REWARD = -2.0
GOAL_REWARD = 10.0


def gridworld_names(n_rows: int, n_cols: int) -> List[str]:
    """Row-major cell names, r<row>c<col>."""
    return [f"r{i}c{j}" for i in range(n_rows) for j in range(n_cols)]


def _neighbours(n_rows: int, n_cols: int, cell: int) -> Dict[str, Optional[int]]:
    """Action name -> neighbouring cell index, or None where the move leaves the board."""
    row, col = divmod(cell, n_cols)
    result = {}
    for name, (dr, dc) in GRID_ACTIONS.items():
        r, c = row + dr, col + dc
        result[name] = r * n_cols + c if 0 <= r < n_rows and 0 <= c < n_cols else None
    return result


def uniform_moves(
    up: Optional[State],
    right: Optional[State],
    down: Optional[State],
    left: Optional[State],
) -> Dict[Action, Transition]:
    """
    Transitions to each existing neighbour, uniform over the valid directions.

    A None neighbour means the move would leave the board and is omitted.
    """
    support = bool_to_int(up is not None) + bool_to_int(right is not None) \
        + bool_to_int(down is not None) + bool_to_int(left is not None)
    if support == 0:
        return {}
    probability = uniform(support)

    moves = {}
    for action, neighbour in zip((GO_UP, GO_RIGHT, GO_DOWN, GO_LEFT), (up, right, down, left)):
        if neighbour is not None:
            moves[action] = Transition(probability, neighbour)
    return moves


def _check_board(n_rows: int, n_cols: int, names: List[str]):
    if n_rows <= 0 or n_cols <= 0:
        raise ValueError("Board must have at least one row and one column")
    if len(names) != n_rows * n_cols:
        raise ValueError(f"Expected {n_rows * n_cols} cell names, got {len(names)}")


def build_gridworld(
    n_rows: int,
    n_cols: int,
    rewards: Optional[Mapping[str, float]] = None,
    terminals: Iterable[str] = (),
    names: Optional[List[str]] = None,
    discount_rate: float = 1.0,
) -> MDP:
    """
    Build a grid-world MDP cell by cell.

    Parameters
    ----------
    n_rows, n_cols : int
        Board size. Cell (i, j) gets index i * n_cols + j.
    rewards : mapping str -> float, optional
        Reward per cell name; other cells get 0.
    terminals : iterable of str
        Names of terminal cells. They keep their outgoing moves.
    names : list of str, optional
        Row-major cell names; defaults to `gridworld_names`.
    discount_rate : float
        Gamma, in (0, 1].
    """
    names = list(names) if names is not None else gridworld_names(n_rows, n_cols)
    _check_board(n_rows, n_cols, names)
    rewards = rewards or {}
    terminals = set(terminals)

    cells = [State(name, i, name in terminals) for i, name in enumerate(names)]

    mdp = MDP(discount_rate)
    for action in (GO_UP, GO_RIGHT, GO_DOWN, GO_LEFT):
        mdp.add_action_object(action)

    for i, cell in enumerate(cells):
        nb = _neighbours(n_rows, n_cols, i)
        moves = uniform_moves(*(None if nb[a] is None else cells[nb[a]] for a in GRID_ACTIONS))
        mdp.add_state_object(cell, rewards.get(cell.name, 0.0), moves)
    return mdp


def build_gridworld_from_names(
    n_rows: int,
    n_cols: int,
    rewards: Optional[Mapping[str, float]] = None,
    terminals: Iterable[str] = (),
    names: Optional[List[str]] = None,
    discount_rate: float = 1.0,
) -> MDP:
    """Same board as `build_gridworld`, loaded in bulk through `MDP.from_names`."""
    names = list(names) if names is not None else gridworld_names(n_rows, n_cols)
    _check_board(n_rows, n_cols, names)

    transitions = {}
    for i, name in enumerate(names):
        nb = {a: j for a, j in _neighbours(n_rows, n_cols, i).items() if j is not None}
        if not nb:
            transitions[name] = {}
            continue
        probability = uniform(len(nb))
        transitions[name] = {a: (probability, names[j]) for a, j in nb.items()}

    return MDP.from_names(
        initial_state=names[0],
        states=names,
        terminals=terminals,
        actions=list(GRID_ACTIONS),
        rewards=rewards or {},
        transitions=transitions,
        discount_rate=discount_rate,
    )


def build_3x3_gridworld(from_names: bool = False) -> MDP:
    """
    The reference 3x3 board.

        TL  TC  TR
        ML  MC  MR
        BL  BM  BR

    TC and MC are holes (reward -2), BR is the terminal goal (reward 10).
    """
    build = build_gridworld_from_names if from_names else build_gridworld
    return build(
        3, 3,
        rewards={"TC": HOLE_REWARD, "MC": HOLE_REWARD, "BR": GOAL_REWARD},
        terminals=["BR"],
        names=THREE_BY_THREE,
    )
