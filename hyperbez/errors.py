"""Error kinds raised by the curve kernel and the chain solver."""

from __future__ import annotations

from typing import Optional, Sequence, Tuple


class HyperbezError(ValueError):
    """Base class for all errors raised by :mod:`hyperbez`."""


class InvalidParameter(HyperbezError):
    """Tension or angle outside the legal domain, or a degenerate chord."""


class ConversionOutOfDomain(HyperbezError):
    """A control handle maps to a tension outside the legal domain."""

    def __init__(self, message: str, *, tension: Optional[float] = None):
        super().__init__(message)
        self.tension = tension


class InvalidSubdivisionPoint(HyperbezError):
    """Split parameter outside the open interval ``(0, 1)``."""


class SolverDidNotConverge(HyperbezError):
    """The chain solver exhausted its iteration bound."""

    def __init__(self, message: str, *, iterations: int = 0, max_residual: float = float("inf")):
        super().__init__(message)
        self.iterations = iterations
        self.max_residual = max_residual


class UnsatisfiableConstraints(HyperbezError):
    """Fixed constraints admit no curvature-continuous solution."""

    def __init__(
        self,
        message: str,
        *,
        points: Sequence[int] = (),
        max_residual: float = float("inf"),
    ):
        super().__init__(message)
        self.points: Tuple[int, ...] = tuple(points)
        self.max_residual = max_residual


__all__ = [
    "HyperbezError",
    "InvalidParameter",
    "ConversionOutOfDomain",
    "InvalidSubdivisionPoint",
    "SolverDidNotConverge",
    "UnsatisfiableConstraints",
]
