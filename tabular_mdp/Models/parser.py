"""Parse the canonical text form produced by `MDP.render`.

State and action names must not contain ", ", ": ", braces or parentheses
for the text to parse back. A destination that names no listed state is a
transition left behind by a state removal; it is rebuilt pointing at a
state index above every live one, so it renders and reports as dangling.
"""

import re
from typing import Dict, List, Optional, Tuple

from .config import DEFAULT_CONFIG, MDPConfig
from .errors import MDPError, ParseError
from .mdp import MDP
from .state import State

_STATE_RE = re.compile(r"^S_(\d+): (.+)$")
_REWARD_RE = re.compile(r"^S_(\d+): (.+): (\S+)$")
_ENTRY_RE = re.compile(r"^S_(\d+): (.+): (\{\}?)$")
_TRANSITION_RE = re.compile(r"^(.+): \((\S+), (.+)\)$")


class _Lines:
    """Cursor over the input lines; `pos` is the 1-based number of the last line read."""

    def __init__(self, text: str):
        self.lines = text.split("\n")
        self.pos = 0

    def next(self) -> str:
        if self.pos >= len(self.lines):
            raise ParseError("unexpected end of input", self.pos)
        line = self.lines[self.pos]
        self.pos += 1
        return line

    def expect_prefix(self, prefix: str) -> str:
        line = self.next()
        if not line.startswith(prefix):
            raise ParseError(f"expected {prefix!r}", self.pos)
        return line[len(prefix):]

    def block_items(self, indent: str, unit: str) -> Tuple[List[Tuple[int, str]], str]:
        """
        Read the items of an open block up to its closing brace at `indent`.

        Returns the (line number, item) pairs and the separator that follows
        the closing brace ("," or "").
        """
        items = []
        inner = indent + unit
        while True:
            line = self.next()
            if line in (indent + "}", indent + "},"):
                return items, line[len(indent) + 1:]
            if not line.startswith(inner):
                raise ParseError("bad indentation", self.pos)
            items.append((self.pos, line[len(inner):]))


def _split_separators(items: List[Tuple[int, str]]) -> List[Tuple[int, str]]:
    """Strip the "," between items, checking the last one carries none."""
    result = []
    for k, (line_no, item) in enumerate(items):
        last = k == len(items) - 1
        if last and item.endswith(","):
            raise ParseError("trailing comma after last entry", line_no)
        if not last:
            if not item.endswith(","):
                raise ParseError("missing ',' between entries", line_no)
            item = item[:-1]
        result.append((line_no, item))
    return result


def _parse_float(token: str, line_no: int) -> float:
    try:
        return float(token)
    except ValueError:
        raise ParseError(f"not a number: {token!r}", line_no) from None


def _parse_states(text: str, line_no: int) -> List[Tuple[int, str]]:
    if not text:
        return []
    states = []
    for token in text.split(", "):
        match = _STATE_RE.match(token)
        if match is None:
            raise ParseError(f"bad state {token!r}", line_no)
        states.append((int(match.group(1)), match.group(2)))
    return states


def _parse_rewards(lines: _Lines, opener: str, unit: str) -> Dict[int, float]:
    if opener == "{}":
        return {}
    if opener != "{":
        raise ParseError("expected '{' to open the rewards block", lines.pos)
    items, separator = lines.block_items(unit, unit)
    if separator:
        raise ParseError("unexpected ',' after the rewards block", lines.pos)
    rewards = {}
    for line_no, item in _split_separators(items):
        match = _REWARD_RE.match(item)
        if match is None:
            raise ParseError(f"bad reward entry {item!r}", line_no)
        rewards[int(match.group(1))] = _parse_float(match.group(3), line_no)
    return rewards


def _parse_transitions(lines: _Lines, opener: str, unit: str) -> List[tuple]:
    """Return (line number, origin name, action, probability, destination) rows."""
    if opener == "{}":
        return []
    if opener != "{":
        raise ParseError("expected '{' to open the transitions block", lines.pos)

    rows = []
    separators = []
    outer = unit + unit
    while True:
        line = lines.next()
        if line == unit + "}":
            break
        if not line.startswith(outer):
            raise ParseError("bad indentation", lines.pos)
        head = line[len(outer):]
        head_no = lines.pos

        separator = ""
        if head.endswith("{},"):
            head, separator = head[:-1], ","
        match = _ENTRY_RE.match(head)
        if match is None:
            raise ParseError(f"bad transition entry {head!r}", head_no)
        origin = match.group(2)

        items = []
        if match.group(3) == "{":
            items, separator = lines.block_items(outer, unit)
        separators.append((head_no, separator))

        for line_no, item in _split_separators(items):
            t = _TRANSITION_RE.match(item)
            if t is None:
                raise ParseError(f"bad transition {item!r}", line_no)
            rows.append((line_no, origin, t.group(1), _parse_float(t.group(2), line_no), t.group(3)))

    for k, (line_no, separator) in enumerate(separators):
        last = k == len(separators) - 1
        if last and separator:
            raise ParseError("trailing comma after last entry", line_no)
        if not last and not separator:
            raise ParseError("missing ',' between entries", line_no)
    return rows


def parse_mdp(text: str, config: Optional[MDPConfig] = None) -> MDP:
    """
    Rebuild an MDP from its canonical text.

    Rendering the result gives back `text` byte for byte. Terminal flags are
    not part of the text, so every parsed state is non-terminal.

    Raises
    ------
    ParseError
        Malformed text, or text describing an inconsistent MDP.
    """
    config = config if config is not None else DEFAULT_CONFIG
    unit = config.indent
    lines = _Lines(text)

    if lines.next() != "M := (":
        raise ParseError("expected 'M := ('", lines.pos)

    states_no = lines.pos + 1
    states = _parse_states(lines.expect_prefix(f"{unit}S = "), states_no)
    actions_no = lines.pos + 1
    actions_text = lines.expect_prefix(f"{unit}A = ")
    actions = actions_text.split(", ") if actions_text else []
    rewards = _parse_rewards(lines, lines.expect_prefix(f"{unit}R = "), unit)
    rows = _parse_transitions(lines, lines.expect_prefix(f"{unit}T = "), unit)
    gamma_no = lines.pos + 1
    gamma = _parse_float(lines.expect_prefix(f"{unit}ɣ = "), gamma_no)
    if lines.next() != ")":
        raise ParseError("expected ')'", lines.pos)
    if lines.pos != len(lines.lines):
        raise ParseError("unexpected text after ')'", lines.pos + 1)

    if set(rewards) != {index for index, _ in states}:
        raise ParseError("rewards block does not match the state list", states_no)

    try:
        mdp = MDP(gamma, config)
    except MDPError as err:
        raise ParseError(str(err), gamma_no) from err

    try:
        for index, name in states:
            mdp.set_state(name, index, False, rewards[index])
    except MDPError as err:
        raise ParseError(str(err), states_no) from err

    try:
        for name in actions:
            mdp.add_action(name)
    except MDPError as err:
        raise ParseError(str(err), actions_no) from err

    # Removed destinations get indices past the last live state, one per name.
    removed: Dict[str, State] = {}
    next_free = max((index for index, _ in states), default=-1) + 1
    for line_no, origin, action, probability, destination in rows:
        try:
            if destination in mdp:
                mdp.set_transition(origin, destination, action, probability)
                continue
            if destination not in removed:
                removed[destination] = State(destination, next_free)
                next_free += 1
            mdp._transitions.update(
                mdp.get_state(origin), mdp._require_action(action), probability, removed[destination]
            )
        except MDPError as err:
            raise ParseError(str(err), line_no) from err

    return mdp
