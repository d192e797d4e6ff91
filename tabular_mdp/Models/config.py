"""Configuration for MDP storage and rendering."""

from dataclasses import dataclass

from .errors import InvalidParameterError


@dataclass(frozen=True)
class MDPConfig:
    """Tunable storage and rendering parameters. Frozen, so one instance can be shared.

    default_capacity : initial number of state slots in the backing array
    indent           : indent unit used by the canonical serialization
    precision        : decimals for probabilities and the discount rate
    """

    default_capacity: int = 128
    indent: str = "\t"
    precision: int = 4

    def __post_init__(self):
        if self.default_capacity < 1:
            raise InvalidParameterError("default_capacity must be at least 1")
        if not self.indent:
            raise InvalidParameterError("indent must be non-empty")
        if self.precision < 0:
            raise InvalidParameterError("precision must be non-negative")


DEFAULT_CONFIG = MDPConfig()
