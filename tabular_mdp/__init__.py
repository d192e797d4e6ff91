"""
Tabular MDP Library

An editable in-memory model of finite Markov Decision Processes: states
addressed by name and by stable index, actions, rewards, transitions and a
discount rate, kept consistent under insertion, update and deletion.

Modules:
- Models: Core data structures (State, Action, Transition, tables, MDP, parser)
- CaseStudies: Example environments (GridWorld)
"""

from . import Models
from . import CaseStudies

__all__ = ['Models', 'CaseStudies']
__version__ = '0.1.0'
