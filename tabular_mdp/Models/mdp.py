"""Markov Decision Process aggregate.

An MDP owns its states, actions, reward function, transition function and
discount rate. States live in a sparse, growable array addressed by a stable
integer index and are also reachable by name; every mutation goes through
the MDP so both lookups, the rewards table and the transition table stay in
step.

Removing an action cascades into every state's transitions. Removing a state
does not: transitions in other states that still point at it are left in
place and can be listed with `MDP.dangling_transitions`.
"""

import logging
import warnings
from dataclasses import replace
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

import numpy as np

from .action import Action
from .config import DEFAULT_CONFIG, MDPConfig
from .errors import (
    AlreadyExistsError,
    InvalidParameterError,
    NotFoundError,
    PreconditionViolationError,
)
from .flat import FlatMDP
from .rewards_table import RewardsTable
from .state import State
from .transition import Transition
from .transition_table import TransitionTable, TransitionTableEntry

logger = logging.getLogger(__name__)

# Bulk-construction transitions: either a Transition, or (probability, destination name)
TransitionSpec = Union[Transition, Tuple[float, str]]
ActionKey = Union[str, Action]


def _as_discount_rate(discount_rate: float) -> np.float32:
    """Convert to float32 and check the stored value lies in (0, 1]."""
    rate = np.float32(discount_rate)
    if not 0.0 < rate <= 1.0:
        raise InvalidParameterError(f"discount rate must be in (0, 1.0], got {discount_rate}")
    return rate


class MDP:
    """
    Mutable finite MDP.

    Parameters
    ----------
    discount_rate : float
        Gamma, in (0, 1].
    config : MDPConfig, optional
        Storage and rendering parameters.
    """

    def __init__(self, discount_rate: float = 1.0, config: Optional[MDPConfig] = None):
        rate = _as_discount_rate(discount_rate)
        self.config = config if config is not None else DEFAULT_CONFIG

        self._capacity = self.config.default_capacity
        self._states: List[Optional[State]] = [None] * self._capacity
        self._state_map: Dict[str, State] = {}
        self._state_index_map: Dict[int, State] = {}
        self._initial_state: Optional[State] = None

        self._actions: Dict[str, Action] = {}
        self._rewards = RewardsTable()
        self._transitions = TransitionTable()
        self._discount_rate = rate

    # ============================================================
    # Construction
    # ============================================================

    @classmethod
    def default(cls, config: Optional[MDPConfig] = None) -> "MDP":
        """Empty MDP with no states or actions and a gamma of 1.0."""
        return cls(1.0, config)

    @classmethod
    def from_names(
        cls,
        initial_state: str,
        states: Iterable[str],
        terminals: Iterable[str],
        actions: Iterable[str],
        rewards: Mapping[str, float],
        transitions: Mapping[str, Mapping[str, TransitionSpec]],
        discount_rate: float,
        config: Optional[MDPConfig] = None,
    ) -> "MDP":
        """
        Build an MDP from name-keyed collections.

        Parameters
        ----------
        initial_state : str
            Name of the start state, placed at index 0. May be empty.
        states : iterable of str
            State names; need not include `initial_state`. Other states get
            sequential indices from 1 in iteration order.
        terminals : iterable of str
            Subset of `states` that are terminal.
        actions : iterable of str
            Action names.
        rewards : mapping str -> float
            Reward per state name; missing states get 0.
        transitions : mapping str -> (mapping str -> Transition or (p, dest))
            Outgoing transitions per state name and action name. Tuple
            destinations are resolved by name once every state exists.
        discount_rate : float
            Gamma, in (0, 1].

        Raises
        ------
        InvalidParameterError
            Bad discount rate or empty state name.
        AlreadyExistsError
            A state name is listed twice.
        PreconditionViolationError
            A non-terminal state has a transition on an unregistered action.
        NotFoundError
            A (p, dest) transition names a state that was never listed.
        """
        mdp = cls(discount_rate, config)
        rewards = rewards or {}
        transitions = transitions or {}
        terminal_names = set(terminals or ())

        for name in actions or ():
            mdp._actions[name] = Action(name)

        pending = []

        def build(name: str, index: int, terminal: bool):
            mdp._validate_new_state(name, index)
            entry = TransitionTableEntry()
            for action_name, value in transitions.get(name, {}).items():
                action = mdp._actions.get(action_name)
                if action is None:
                    if not terminal:
                        raise PreconditionViolationError(
                            f"action with name {action_name} not in MDP"
                        )
                    warnings.warn(
                        f"Dropping transition on unregistered action {action_name} "
                        f"from terminal state {name}.",
                        RuntimeWarning
                    )
                    continue
                if isinstance(value, Transition):
                    entry.set(action, value.probability, value.next_state)
                else:
                    probability, destination = value
                    pending.append((entry, action, probability, destination))
            mdp._register(State(name, index, terminal), rewards.get(name, 0.0), entry)

        if initial_state:
            build(initial_state, 0, False)

        index = 1
        for name in states:
            if name == initial_state:
                continue
            build(name, index, name in terminal_names)
            index += 1

        for entry, action, probability, destination in pending:
            next_state = mdp._state_map.get(destination)
            if next_state is None:
                raise NotFoundError(f"state with name {destination} doesn't exist")
            entry.set(action, probability, next_state)

        logger.debug("Constructed %r", mdp)
        return mdp

    # ============================================================
    # Internal bookkeeping
    # ============================================================

    def _grow(self, index: int):
        """Make sure `index` fits in the backing array."""
        if index < self._capacity:
            return
        new_capacity = max(self._capacity, index * 2, index + 1)
        new_states: List[Optional[State]] = [None] * new_capacity
        for i, state in enumerate(self._states):
            new_states[i] = state
        self._states = new_states
        logger.debug("Grew state capacity from %d to %d", self._capacity, new_capacity)
        self._capacity = new_capacity

    def _validate_new_state(self, name: str, index: int):
        if index < 0:
            raise InvalidParameterError("index must be non-negative")
        if not name:
            raise InvalidParameterError("state name must be non-empty")
        holder = self._state_map.get(name)
        if holder is not None and holder.index != index:
            raise AlreadyExistsError(
                f"state with name {name} already exists at index {holder.index}"
            )

    def _register(self, state: State, reward: float, entry: TransitionTableEntry):
        """Install `state` in every index, replacing whatever held its slot."""
        old = self._state_index_map.get(state.index)
        if old is not None:
            self._rewards.remove(old)
            self._transitions.remove(old)
            if old.name != state.name:
                del self._state_map[old.name]
            logger.debug("Replacing %s with %s", old, state)

        self._grow(state.index)
        self._states[state.index] = state
        self._state_map[state.name] = state
        self._state_index_map[state.index] = state
        self._rewards.set(state, reward)
        self._transitions.set(state, entry)

        if state.index == 0:
            self._initial_state = state

    def _resolve_action(self, action: ActionKey, new_actions: Dict[str, Action]) -> Action:
        """Look `action` up, staging it in `new_actions` if it is not registered."""
        name = action.name if isinstance(action, Action) else action
        registered = self._actions.get(name) or new_actions.get(name)
        if registered is None:
            if not name:
                raise InvalidParameterError("action name must be non-empty")
            registered = action if isinstance(action, Action) else Action(name)
            new_actions[name] = registered
        return registered

    def _set(self, state: State, reward: float, transitions: Optional[Mapping[ActionKey, Transition]]) -> State:
        self._validate_new_state(state.name, state.index)
        entry = TransitionTableEntry()
        new_actions: Dict[str, Action] = {}
        for action, transition in (transitions or {}).items():
            entry.set(self._resolve_action(action, new_actions), transition.probability, transition.next_state)

        # Nothing is committed until every transition has been read.
        self._actions.update(new_actions)
        for name in new_actions:
            logger.debug("Registered action %s", name)
        self._register(state, reward, entry)
        logger.debug("Set state %s (reward=%s, %d transitions)", state, reward, len(entry))
        return state

    def _first_free_index(self) -> int:
        # Linear scan; holes are expected to be rare and near the front.
        index = 0
        for state in self._states:
            if state is None:
                break
            index += 1
        return index

    def _require_state(self, name: str) -> State:
        state = self._state_map.get(name)
        if state is None:
            raise NotFoundError(f"state with name {name} doesn't exist")
        return state

    def _require_action(self, name: str) -> Action:
        action = self._actions.get(name)
        if action is None:
            raise NotFoundError(f"action with name {name} doesn't exist")
        return action

    # ============================================================
    # States
    # ============================================================

    def set_state(
        self,
        name: str,
        index: int,
        terminal: bool = False,
        reward: float = 0.0,
        transitions: Optional[Mapping[str, Transition]] = None,
    ) -> State:
        """
        Put a state at `index`, overwriting whatever was there.

        Action names in `transitions` that are not registered yet are added.
        """
        return self._set(State(name, index, terminal), reward, transitions)

    def set_state_object(
        self,
        state: State,
        reward: float = 0.0,
        transitions: Optional[Mapping[Action, Transition]] = None,
    ) -> State:
        """Same as `set_state` for a prebuilt State and Action-keyed transitions."""
        return self._set(state, reward, transitions)

    def set_initial_state(
        self,
        name: str,
        reward: float = 0.0,
        transitions: Optional[Mapping[str, Transition]] = None,
    ) -> State:
        return self.set_state(name, 0, False, reward, transitions)

    def set_initial_state_object(
        self,
        state: State,
        reward: float = 0.0,
        transitions: Optional[Mapping[Action, Transition]] = None,
    ) -> State:
        return self.set_state_object(replace(state, index=0), reward, transitions)

    def add_state(
        self,
        name: str,
        terminal: bool = False,
        reward: float = 0.0,
        transitions: Optional[Mapping[str, Transition]] = None,
    ) -> State:
        """Place a new state at the first free index and return it."""
        return self.set_state(name, self._first_free_index(), terminal, reward, transitions)

    def add_state_object(
        self,
        state: State,
        reward: float = 0.0,
        transitions: Optional[Mapping[Action, Transition]] = None,
    ) -> State:
        """Place `state` at the first free index; its own index is ignored."""
        return self.set_state_object(
            replace(state, index=self._first_free_index()), reward, transitions
        )

    def remove_state_by_index(self, index: int):
        """
        Remove the state at `index` with its reward and outgoing transitions.

        Transitions from other states into the removed state are kept.
        """
        state = self._state_index_map.get(index)
        if state is None:
            raise NotFoundError(f"state at index {index} doesn't exist")
        self._states[index] = None
        del self._state_index_map[index]
        del self._state_map[state.name]
        self._rewards.remove(state)
        self._transitions.remove(state)
        if index == 0:
            self._initial_state = None
        logger.debug("Removed state %s", state)

    def remove_state_by_name(self, name: str):
        self.remove_state_by_index(self._require_state(name).index)

    def remove_state_by_object(self, state: State):
        registered = self._state_index_map.get(state.index)
        if registered is None or registered.name != state.name:
            raise NotFoundError(f"state {state} doesn't exist")
        self.remove_state_by_index(state.index)

    # ============================================================
    # Actions
    # ============================================================

    def add_action(self, name: str) -> Action:
        return self.add_action_object(Action(name))

    def add_action_object(self, action: Action) -> Action:
        if not action.name:
            raise InvalidParameterError("action name must be non-empty")
        if action.name in self._actions:
            raise AlreadyExistsError(f"action with name {action.name} already exists")
        self._actions[action.name] = action
        logger.debug("Added action %s", action)
        return action

    def remove_action(self, name: str):
        """Unregister an action and drop it from every state's transitions."""
        action = self._require_action(name)
        del self._actions[name]
        for state in self._state_index_map.values():
            self._transitions.get(state).remove(action)
        logger.debug("Removed action %s", action)

    def remove_action_object(self, action: Action):
        self.remove_action(action.name)

    # ============================================================
    # Discount rate and transitions
    # ============================================================

    def set_discount_rate(self, discount_rate: float):
        self._discount_rate = _as_discount_rate(discount_rate)

    def set_transition(self, start: str, end: str, action: str, probability: float):
        """
        Set the transition from `start` on `action` to land in `end`.

        The start state must already have a transition entry; the underlying
        PreconditionViolationError is propagated otherwise.
        """
        next_state = self._require_state(end)
        registered = self._require_action(action)
        self._transitions.update(self._state_map.get(start), registered, probability, next_state)

    def remove_transition(self, start: str, end: str) -> List[Action]:
        """Remove every transition from `start` into `end`; returns the actions cut."""
        entry = self._transitions.get(self._require_state(start))
        return entry.remove_by_destination(self._require_state(end))

    def remove_transition_by_action(self, start: str, action: str):
        entry = self._transitions.get(self._require_state(start))
        entry.remove(self._require_action(action))

    # ============================================================
    # Queries
    # ============================================================

    # Unknown names and indices are not errors here: R falls back to a zero
    # reward and T to None, like an absent table entry.

    def R(self, state: str) -> np.float32:
        """Reward for being in the state named `state`."""
        return self._rewards.get(self._state_map.get(state))

    def R_by_index(self, index: int) -> np.float32:
        return self._rewards.get(self._state_index_map.get(index))

    def T(self, state: str, action: str) -> Optional[Transition]:
        """Transition taken from the state named `state` on `action`, if any."""
        return self._transition_for(self._state_map.get(state), action)

    def T_by_index(self, index: int, action: str) -> Optional[Transition]:
        return self._transition_for(self._state_index_map.get(index), action)

    def _transition_for(self, state: Optional[State], action: str) -> Optional[Transition]:
        entry = self._transitions.get(state)
        if entry is None:
            return None
        return entry.get(self._actions.get(action))

    def get_state(self, name: str) -> Optional[State]:
        return self._state_map.get(name)

    def get_state_by_index(self, index: int) -> Optional[State]:
        return self._state_index_map.get(index)

    def get_action(self, name: str) -> Optional[Action]:
        return self._actions.get(name)

    @property
    def states(self) -> List[State]:
        """Live states in index order."""
        return [s for s in self._states if s is not None]

    @property
    def actions(self) -> List[Action]:
        """Registered actions in name order."""
        return [self._actions[name] for name in sorted(self._actions)]

    @property
    def initial_state(self) -> Optional[State]:
        return self._initial_state

    @property
    def discount_rate(self) -> np.float32:
        return self._discount_rate

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._state_index_map)

    def __contains__(self, name: str) -> bool:
        return name in self._state_map

    # ============================================================
    # Health checks
    # ============================================================

    def dangling_transitions(self) -> List[Tuple[State, Action, Transition]]:
        """Transitions whose destination index holds no live state."""
        dangling = []
        for state, entry in self._transitions:
            for action, transition in entry.items():
                if transition.next_state.index not in self._state_index_map:
                    dangling.append((state, action, transition))
        return dangling

    def check_integrity(self) -> List[str]:
        """Return a description of every broken invariant; empty if consistent."""
        problems = []

        for i, state in enumerate(self._states):
            if state is None:
                continue
            if state.index != i:
                problems.append(f"slot {i} holds {state}")
            if self._state_index_map.get(i) is not state:
                problems.append(f"index map disagrees with slot {i}")
            if self._state_map.get(state.name) is not state:
                problems.append(f"name map disagrees with slot {i}")
            if state not in self._rewards:
                problems.append(f"{state} has no reward entry")
            if state not in self._transitions:
                problems.append(f"{state} has no transition entry")

        for index, state in self._state_index_map.items():
            if index < 0 or index >= self._capacity:
                problems.append(f"index {index} outside capacity {self._capacity}")
            elif self._states[index] is not state:
                problems.append(f"index map holds {state} but slot {index} does not")
        for name, state in self._state_map.items():
            if state.name != name or self._state_index_map.get(state.index) is not state:
                problems.append(f"name map entry {name} is stale")

        if len(self._rewards) != len(self._state_index_map):
            problems.append("rewards table size differs from live state count")
        if len(self._transitions) != len(self._state_index_map):
            problems.append("transition table size differs from live state count")

        for state, entry in self._transitions:
            for action, _ in entry.items():
                if self._actions.get(action.name) != action:
                    problems.append(f"{state} uses unregistered action {action}")

        if not 0.0 < self._discount_rate <= 1.0:
            problems.append(f"discount rate {self._discount_rate} outside (0, 1]")
        if self._initial_state is not self._state_index_map.get(0):
            problems.append("initial state is not the state at index 0")

        return problems

    # ============================================================
    # Export
    # ============================================================

    def to_flat(self) -> FlatMDP:
        """Snapshot as a FlatMDP keyed by state and action names."""
        live = self.states
        actions = {}
        P = {}
        for state in live:
            enabled = []
            for action, transition in self._transitions.get(state).items():
                destination = self._state_index_map.get(transition.next_state.index)
                if destination is None:
                    continue
                enabled.append(action.name)
                P[(state.name, action.name)] = {destination.name: float(transition.probability)}
            actions[state.name] = enabled
        return FlatMDP(
            states=[s.name for s in live],
            actions=actions,
            P=P,
            rewards={s.name: float(self._rewards.get(s)) for s in live},
            terminals=[s.name for s in live if s.terminal],
            discount_rate=float(self._discount_rate),
        )

    def reward_vector(self) -> np.ndarray:
        """Rewards of the live states in index order."""
        return np.array([self._rewards.get(s) for s in self.states], dtype=np.float32)

    def transition_matrix(self, action: ActionKey) -> np.ndarray:
        """
        Returns T_a as an n x n matrix over live states in index order,
        where [i, j] = P(s_j | s_i, a).
        """
        name = action.name if isinstance(action, Action) else action
        registered = self._require_action(name)
        live = self.states
        idx = {s.index: i for i, s in enumerate(live)}
        Tmat = np.zeros((len(live), len(live)), dtype=np.float32)
        for state in live:
            transition = self._transitions.get(state).get(registered)
            if transition is None or transition.next_state.index not in idx:
                continue
            Tmat[idx[state.index], idx[transition.next_state.index]] = transition.probability
        return Tmat

    # ============================================================
    # Rendering
    # ============================================================

    def render(self) -> str:
        """Canonical text form, see `parse_mdp` for the inverse."""
        unit = self.config.indent
        precision = self.config.precision
        lines = [
            "M := (",
            f"{unit}S = " + ", ".join(str(s) for s in self.states),
            f"{unit}A = " + ", ".join(a.name for a in self.actions),
            f"{unit}R = " + self._rewards.render(unit, unit),
            f"{unit}T = " + self._transitions.render(unit, unit, precision),
            f"{unit}ɣ = {self._discount_rate:.{precision}f}",
            ")",
        ]
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.render()

    def __repr__(self) -> str:
        return (
            f"MDP(states={len(self)}, actions={len(self._actions)}, "
            f"discount_rate={float(self._discount_rate):.4f})"
        )
