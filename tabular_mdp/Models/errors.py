"""Error types raised by the MDP data model."""


class MDPError(Exception):
    """Base class for all MDP model errors."""


class InvalidParameterError(MDPError, ValueError):
    """Bad discount rate, negative index, empty name, bad config value."""


class NotFoundError(MDPError, LookupError):
    """Unknown state, action or index in a removal or resolution path."""


class AlreadyExistsError(MDPError, ValueError):
    """Duplicate action registration or a state name already in use."""


class PreconditionViolationError(MDPError, RuntimeError):
    """An operation was called on a structure that is not ready for it."""


class ParseError(InvalidParameterError):
    """Malformed canonical MDP text."""

    def __init__(self, message: str, line_no: int = None):
        if line_no is not None:
            message = f"line {line_no}: {message}"
        super().__init__(message)
        self.line_no = line_no
