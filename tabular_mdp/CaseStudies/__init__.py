"""Example environments built on the MDP model."""

from . import GridWorld

__all__ = ['GridWorld']
