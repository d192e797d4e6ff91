"""Grid-world case study: a rectangular board with holes and a goal."""

from .gridworld import (
    GRID_ACTIONS,
    gridworld_names,
    uniform_moves,
    build_gridworld,
    build_gridworld_from_names,
    build_3x3_gridworld,
)

__all__ = [
    'GRID_ACTIONS',
    'gridworld_names',
    'uniform_moves',
    'build_gridworld',
    'build_gridworld_from_names',
    'build_3x3_gridworld',
]
