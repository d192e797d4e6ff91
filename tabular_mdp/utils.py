"""Small numeric helpers shared by model builders."""

import numpy as np


def bool_to_int(value: bool) -> int:
    return 1 if value else 0


def uniform(support: int) -> np.float32:
    """Probability of each outcome of a uniform distribution over `support` outcomes."""
    if support <= 0:
        raise ValueError(f"support must be positive, got {support}")
    return np.float32(1.0 / support)
