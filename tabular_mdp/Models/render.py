"""Helpers shared by the canonical text serialization."""

from typing import Iterable

import numpy as np


def render_block(items: Iterable[str], indent: str = "", unit: str = "\t") -> str:
    """
    Render `items` as a braced block.

    The opening brace is not indented (it follows a key on the caller's
    line), each item sits one `unit` deeper than `indent`, and the closing
    brace is at `indent`. Items are joined by ",\\n" without a trailing comma.
    An empty block renders as "{}".
    """
    items = list(items)
    if not items:
        return "{}"
    body = ",\n".join(indent + unit + item for item in items)
    return "{\n" + body + "\n" + indent + "}"


def format_reward(reward) -> str:
    """Shortest float32 positional form: 10, -2, 0.5."""
    # Never exponent notation, so 1e-05 renders as 0.00001 and the reward
    # field stays a single token of digits.
    return np.format_float_positional(np.float32(reward), trim="-")
