"""Tests for the MDP aggregate."""

import dataclasses

import numpy as np
import pytest

from .action import Action
from .config import MDPConfig
from .errors import (
    AlreadyExistsError,
    InvalidParameterError,
    NotFoundError,
    PreconditionViolationError,
)
from .mdp import MDP
from .state import State
from .transition import Transition


def _line(a: State, b: State, c: State) -> MDP:
    """a -> b -> c chain on action "R", c terminal."""
    mdp = MDP(0.9)
    mdp.add_action("R")
    mdp.set_state(a.name, a.index, False, 0.0, {"R": Transition(1.0, b)})
    mdp.set_state(b.name, b.index, False, -1.0, {"R": Transition(1.0, c)})
    mdp.set_state(c.name, c.index, True, 5.0)
    return mdp


@pytest.fixture
def chain():
    return _line(State("a", 0), State("b", 1), State("c", 2, terminal=True))


# ============================================================
# Construction
# ============================================================

class TestConstruction:
    """Tests for MDP(), MDP.default() and MDP.from_names()."""

    def test_default_is_empty(self):
        mdp = MDP.default()
        assert len(mdp) == 0
        assert mdp.actions == []
        assert mdp.initial_state is None
        assert mdp.discount_rate == 1.0
        assert mdp.capacity == 128
        assert mdp.check_integrity() == []

    def test_config_capacity(self):
        mdp = MDP(config=MDPConfig(default_capacity=4))
        assert mdp.capacity == 4

    def test_default_config_is_not_shared_mutable_state(self):
        a, b = MDP(), MDP()
        with pytest.raises(dataclasses.FrozenInstanceError):
            a.config.indent = "  "
        assert b.render().splitlines()[1].startswith("\tS = ")

    @pytest.mark.parametrize("bad", [0.0, -0.5, 1.01, 1e-50, float("nan")])
    def test_bad_discount_rate(self, bad):
        with pytest.raises(InvalidParameterError):
            MDP(bad)

    def test_from_names(self):
        mdp = MDP.from_names(
            initial_state="start",
            states=["start", "mid", "end"],
            terminals=["end"],
            actions=["go", "stay"],
            rewards={"mid": -1, "end": 10},
            transitions={
                "start": {"go": (1.0, "mid")},
                "mid": {"go": (0.75, "end"), "stay": (0.25, "mid")},
            },
            discount_rate=0.5,
        )
        assert [(s.index, s.name) for s in mdp.states] == [(0, "start"), (1, "mid"), (2, "end")]
        assert mdp.initial_state.name == "start"
        assert mdp.get_state("end").terminal
        assert not mdp.get_state("mid").terminal
        assert mdp.R("start") == 0.0
        assert mdp.R("end") == 10.0
        assert mdp.T("mid", "go") == Transition(0.75, mdp.get_state("end"))
        assert mdp.T("mid", "stay").next_state.name == "mid"
        assert mdp.T("end", "go") is None
        assert mdp.discount_rate == np.float32(0.5)
        assert mdp.check_integrity() == []

    def test_from_names_initial_not_listed(self):
        """The initial state need not appear in the state list."""
        mdp = MDP.from_names("s0", ["s1"], [], [], {}, {}, 1.0)
        assert mdp.get_state_by_index(0).name == "s0"
        assert mdp.get_state_by_index(1).name == "s1"

    def test_from_names_without_initial_starts_at_one(self):
        mdp = MDP.from_names("", ["x", "y"], [], [], {}, {}, 1.0)
        assert mdp.initial_state is None
        assert [s.index for s in mdp.states] == [1, 2]

    def test_from_names_accepts_transition_objects(self):
        target = State("t", 1)
        mdp = MDP.from_names("s", ["s", "t"], [], ["a"], {}, {"s": {"a": Transition(0.3, target)}}, 1.0)
        assert mdp.T("s", "a").next_state == target

    def test_from_names_unregistered_action_on_nonterminal(self):
        with pytest.raises(PreconditionViolationError):
            MDP.from_names("s", ["s", "t"], [], ["a"], {}, {"t": {"zzz": (1.0, "s")}}, 1.0)

    def test_from_names_unregistered_action_on_terminal_is_dropped(self):
        with pytest.warns(RuntimeWarning):
            mdp = MDP.from_names("s", ["s", "t"], ["t"], ["a"], {}, {"t": {"zzz": (1.0, "s")}}, 1.0)
        assert mdp.T("t", "zzz") is None
        assert mdp.get_action("zzz") is None

    def test_from_names_unknown_destination(self):
        with pytest.raises(NotFoundError):
            MDP.from_names("s", ["s"], [], ["a"], {}, {"s": {"a": (1.0, "nowhere")}}, 1.0)

    def test_from_names_duplicate_state(self):
        with pytest.raises(AlreadyExistsError):
            MDP.from_names("s", ["s", "t", "t"], [], [], {}, {}, 1.0)

    def test_from_names_bad_discount(self):
        with pytest.raises(InvalidParameterError):
            MDP.from_names("s", ["s"], [], [], {}, {}, 0.0)


# ============================================================
# States
# ============================================================

class TestStates:
    """Tests for setting, adding and removing states."""

    def test_index_and_name_agree(self, chain):
        for state in chain.states:
            assert chain.get_state_by_index(state.index) == chain.get_state(state.name)
            assert chain.get_state_by_index(state.index) is chain.get_state(state.name)

    def test_every_state_has_reward_and_transition_entry(self, chain):
        assert chain.T("c", "R") is None
        assert chain.check_integrity() == []

    @pytest.mark.parametrize("name,index", [("x", -1), ("", 3)])
    def test_set_state_rejects_bad_input(self, name, index):
        with pytest.raises(InvalidParameterError):
            MDP().set_state(name, index)

    def test_set_state_auto_registers_actions(self):
        mdp = MDP()
        mdp.set_state("a", 0, transitions={"jump": Transition(1.0, State("a", 0))})
        assert mdp.get_action("jump") == Action("jump")
        assert mdp.check_integrity() == []

    def test_set_state_failure_registers_no_actions(self):
        mdp = MDP()
        with pytest.raises(AttributeError):
            mdp.set_state("a", 0, transitions={"jump": Transition(1.0, State("a", 0)), "hop": "bad"})
        assert mdp.actions == []
        assert "a" not in mdp

    def test_set_state_overwrites_same_index(self, chain):
        """Replacing a state drops its old reward and transitions."""
        chain.set_state("b", 1, False, 7.0)
        assert chain.R("b") == 7.0
        assert chain.T("b", "R") is None
        assert len(chain) == 3
        assert chain.check_integrity() == []

    def test_set_state_new_name_at_occupied_index(self, chain):
        """The old name stops resolving once its slot is taken."""
        chain.set_state("b2", 1, False, 3.0)
        assert "b" not in chain
        assert chain.get_state_by_index(1).name == "b2"
        assert chain.R("b") == 0.0
        assert chain.check_integrity() == []

    def test_set_state_name_taken_elsewhere(self, chain):
        with pytest.raises(AlreadyExistsError):
            chain.set_state("a", 5)
        assert chain.get_state("a").index == 0

    def test_set_initial_state(self):
        mdp = MDP()
        mdp.set_initial_state("home", 1.0)
        assert mdp.initial_state == mdp.get_state("home")
        assert mdp.initial_state.index == 0

        mdp.set_initial_state_object(State("away", 7), 2.0)
        assert mdp.initial_state.name == "away"
        assert mdp.initial_state.index == 0
        assert "home" not in mdp
        assert mdp.check_integrity() == []

    def test_add_state_fills_first_hole(self, chain):
        chain.remove_state_by_index(1)
        added = chain.add_state("new", reward=4.0)
        assert added.index == 1
        assert chain.R_by_index(1) == 4.0
        assert chain.add_state("next").index == 3

    def test_add_state_object_rebinds_index(self):
        mdp = MDP()
        first = mdp.add_state_object(State("x", 40))
        second = mdp.add_state_object(State("y", 40), 1.0, {Action("U"): Transition(1.0, first)})
        assert (first.index, second.index) == (0, 1)
        assert mdp.initial_state is first
        assert mdp.T("y", "U").next_state == first

    def test_remove_state_by_index_twice(self, chain):
        """A removed index never removes successfully again."""
        chain.remove_state_by_index(2)
        with pytest.raises(NotFoundError):
            chain.remove_state_by_index(2)
        with pytest.raises(NotFoundError):
            chain.remove_state_by_index(2)
        assert chain.get_state("c") is None
        assert chain.get_state_by_index(2) is None
        assert chain.check_integrity() == []

    def test_remove_state_by_name_and_object(self, chain):
        chain.remove_state_by_name("b")
        with pytest.raises(NotFoundError):
            chain.remove_state_by_name("b")
        with pytest.raises(NotFoundError):
            chain.remove_state_by_object(State("c-imposter", 2))
        chain.remove_state_by_object(State("c", 2))
        assert [s.name for s in chain.states] == ["a"]

    def test_remove_initial_state_clears_pointer(self, chain):
        chain.remove_state_by_index(0)
        assert chain.initial_state is None
        assert chain.check_integrity() == []

    def test_remove_unknown_index(self):
        with pytest.raises(NotFoundError):
            MDP().remove_state_by_index(-3)

    def test_state_removal_leaves_inbound_transitions(self, chain):
        """Removing a state does not touch transitions pointing at it."""
        chain.remove_state_by_name("c")
        dangling = chain.dangling_transitions()
        assert len(dangling) == 1
        origin, action, transition = dangling[0]
        assert (origin.name, action.name, transition.next_state.name) == ("b", "R", "c")
        assert chain.T("b", "R").next_state.name == "c"

    def test_capacity_growth(self):
        """A state far beyond capacity leaves lower states intact."""
        mdp = MDP()
        lower = [mdp.add_state(f"s{i}", reward=i) for i in range(5)]
        far = mdp.set_state("far", 500, reward=1.5)

        assert mdp.capacity >= 501
        assert mdp.capacity == 1000
        assert mdp.get_state_by_index(500) is far
        for i, state in enumerate(lower):
            assert mdp.get_state_by_index(i) is state
            assert mdp.get_state(f"s{i}") is state
            assert mdp.R_by_index(i) == i
        assert mdp.add_state("next").index == 5
        assert mdp.check_integrity() == []

    def test_growth_from_small_capacity(self):
        mdp = MDP(config=MDPConfig(default_capacity=1))
        for i in range(10):
            mdp.add_state(f"s{i}")
        assert len(mdp) == 10
        assert mdp.capacity >= 10
        assert mdp.check_integrity() == []


# ============================================================
# Actions
# ============================================================

class TestActions:
    """Tests for action registration and cascading removal."""

    def test_add_action_twice(self):
        mdp = MDP()
        mdp.add_action("U")
        with pytest.raises(AlreadyExistsError):
            mdp.add_action("U")
        with pytest.raises(AlreadyExistsError):
            mdp.add_action_object(Action("U"))
        with pytest.raises(InvalidParameterError):
            mdp.add_action("")

    def test_actions_sorted(self):
        mdp = MDP()
        for name in "URDL":
            mdp.add_action(name)
        assert [a.name for a in mdp.actions] == ["D", "L", "R", "U"]

    def test_remove_unknown_action(self):
        with pytest.raises(NotFoundError):
            MDP().remove_action("U")
        with pytest.raises(NotFoundError):
            MDP().remove_action_object(Action("U"))

    def test_remove_action_cascades(self, chain):
        """No state keeps a transition on a removed action."""
        chain.add_action("L")
        chain.set_transition("b", "a", "L", 0.5)
        chain.remove_state_by_index(2)
        chain.remove_action("R")

        for state in chain.states:
            assert chain.T(state.name, "R") is None
        assert chain.T("b", "L").next_state.name == "a"
        assert chain.get_action("R") is None
        assert chain.check_integrity() == []


# ============================================================
# Discount rate and transitions
# ============================================================

class TestDiscountAndTransitions:
    """Tests for set_discount_rate and the transition editing operations."""

    def test_discount_rate_boundaries(self):
        mdp = MDP(0.5)
        with pytest.raises(InvalidParameterError):
            mdp.set_discount_rate(0)
        with pytest.raises(InvalidParameterError):
            mdp.set_discount_rate(1.01)
        assert mdp.discount_rate == np.float32(0.5)
        mdp.set_discount_rate(1.0)
        assert mdp.discount_rate == 1.0

    def test_discount_rate_that_rounds_to_zero(self):
        """A rate too small for float32 would be stored as 0."""
        mdp = MDP(0.5)
        with pytest.raises(InvalidParameterError):
            mdp.set_discount_rate(1e-50)
        assert mdp.discount_rate == np.float32(0.5)
        assert mdp.check_integrity() == []

    def test_set_transition(self, chain):
        chain.set_transition("c", "a", "R", 0.2)
        t = chain.T("c", "R")
        assert t.next_state == chain.get_state("a")
        assert t.probability == np.float32(0.2)

    def test_set_transition_unknown_start(self, chain):
        with pytest.raises(PreconditionViolationError):
            chain.set_transition("nope", "a", "R", 1.0)

    def test_set_transition_unknown_end_or_action(self, chain):
        with pytest.raises(NotFoundError):
            chain.set_transition("a", "nope", "R", 1.0)
        with pytest.raises(NotFoundError):
            chain.set_transition("a", "b", "nope", 1.0)

    def test_remove_transition(self, chain):
        chain.add_action("S")
        chain.set_transition("a", "b", "S", 0.5)
        removed = chain.remove_transition("a", "b")
        assert sorted(x.name for x in removed) == ["R", "S"]
        assert chain.T("a", "R") is None
        with pytest.raises(NotFoundError):
            chain.remove_transition("a", "nope")

    def test_remove_transition_by_action(self, chain):
        chain.remove_transition_by_action("a", "R")
        assert chain.T("a", "R") is None
        assert chain.T("b", "R") is not None
        with pytest.raises(NotFoundError):
            chain.remove_transition_by_action("nope", "R")
        with pytest.raises(NotFoundError):
            chain.remove_transition_by_action("a", "nope")


# ============================================================
# Queries
# ============================================================

class TestQueries:
    """Unknown keys fall back to zero reward and no transition."""

    def test_rewards(self, chain):
        assert chain.R("b") == -1.0
        assert chain.R_by_index(2) == 5.0
        assert chain.R("missing") == 0.0
        assert chain.R_by_index(99) == 0.0

    def test_transitions(self, chain):
        assert chain.T_by_index(0, "R").next_state.name == "b"
        assert chain.T("missing", "R") is None
        assert chain.T_by_index(99, "R") is None
        assert chain.T("a", "missing") is None

    def test_membership(self, chain):
        assert "a" in chain
        assert "z" not in chain
        assert len(chain) == 3
        assert repr(chain) == "MDP(states=3, actions=1, discount_rate=0.9000)"


# ============================================================
# Export
# ============================================================

class TestExport:
    """Tests for the flat and matrix views."""

    def test_to_flat(self, chain):
        flat = chain.to_flat()
        assert flat.states == ["a", "b", "c"]
        assert flat.actions == {"a": ["R"], "b": ["R"], "c": []}
        assert flat.P[("a", "R")] == {"b": 1.0}
        assert flat.rewards == {"a": 0.0, "b": -1.0, "c": 5.0}
        assert flat.terminals == ["c"]
        assert flat.discount_rate == pytest.approx(0.9)
        assert flat.successors("a") == ["b"]

    def test_to_flat_skips_dangling(self, chain):
        chain.remove_state_by_name("c")
        flat = chain.to_flat()
        assert flat.actions["b"] == []
        assert ("b", "R") not in flat.P

    def test_reward_vector(self, chain):
        np.testing.assert_array_equal(chain.reward_vector(), np.array([0, -1, 5], dtype=np.float32))

    def test_transition_matrix(self, chain):
        Tmat = chain.transition_matrix("R")
        expected = np.array([[0, 1, 0], [0, 0, 1], [0, 0, 0]], dtype=np.float32)
        np.testing.assert_array_equal(Tmat, expected)
        with pytest.raises(NotFoundError):
            chain.transition_matrix("nope")
