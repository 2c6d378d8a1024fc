class GraphError(Exception):
    """Base class for every failure raised while building a graph."""


class ParseError(GraphError, ValueError):
    """The equation text could not be compiled into an expression."""

    def __init__(self, equation, reason):
        self.equation = equation
        self.reason = reason
        super().__init__(f"Could not parse equation z = {equation!r}: {reason}")


class ConfigurationError(GraphError, ValueError):
    """A graph was requested with parameters it cannot be built from."""


class EvaluationError(GraphError, RuntimeError):
    """The expression failed at runtime for a reason other than arithmetic."""


class HeightmapWriteError(GraphError, OSError):
    """The heightmap image could not be written or loaded back."""
