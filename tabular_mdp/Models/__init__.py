"""Core data model for finite Markov Decision Processes."""

from .errors import (
    MDPError,
    InvalidParameterError,
    NotFoundError,
    AlreadyExistsError,
    PreconditionViolationError,
    ParseError,
)
from .config import MDPConfig
from .state import State
from .action import Action
from .transition import Transition
from .rewards_table import RewardsTable
from .transition_table import TransitionTableEntry, TransitionTable
from .flat import FlatMDP
from .mdp import MDP
from .parser import parse_mdp

__all__ = [
    'MDPError', 'InvalidParameterError', 'NotFoundError', 'AlreadyExistsError',
    'PreconditionViolationError', 'ParseError',
    'MDPConfig',
    'State', 'Action', 'Transition',
    'RewardsTable', 'TransitionTableEntry', 'TransitionTable',
    'FlatMDP',
    'MDP', 'parse_mdp',
]
