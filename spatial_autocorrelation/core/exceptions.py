"""
Custom exception classes for spatial autocorrelation analysis.
"""
from typing import Iterable, Optional


class SpatialAnalysisError(Exception):
    """Base exception for all spatial autocorrelation errors."""
    pass


class GeometryError(SpatialAnalysisError):
    """Malformed or degenerate input geometry."""
    pass


class ConfigurationError(SpatialAnalysisError):
    """Invalid parameters or configuration settings."""
    pass


class IsolatedUnitError(SpatialAnalysisError):
    """A unit has no neighbors and the zero policy rejects empty rows."""

    def __init__(self, units: Iterable[int], message: Optional[str] = None):
        self.units = tuple(int(u) for u in units)
        if message is None:
            listed = ", ".join(str(u) for u in self.units[:10])
            if len(self.units) > 10:
                listed += f", ... ({len(self.units)} in total)"
            message = f"Units without neighbors: {listed}"
        super().__init__(message)


class DimensionMismatchError(SpatialAnalysisError):
    """Attribute length does not match the number of spatial units."""

    def __init__(self, expected: int, actual: int, what: str = "attribute"):
        self.expected = int(expected)
        self.actual = int(actual)
        super().__init__(
            f"{what} has length {self.actual}, expected {self.expected}"
        )


class DegenerateInputError(SpatialAnalysisError):
    """Input for which the statistic is undefined (e.g. zero variance)."""
    pass


class SimulationCancelledError(SpatialAnalysisError):
    """A permutation run was stopped through its cancellation signal."""

    def __init__(self, completed: int, requested: int):
        self.completed = int(completed)
        self.requested = int(requested)
        super().__init__(
            f"Simulation cancelled after {self.completed} of {self.requested} permutations"
        )
