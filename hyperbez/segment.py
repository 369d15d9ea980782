"""Hyperbezier segments placed in the plane."""

from __future__ import annotations

import cmath
import logging
from typing import List, NamedTuple, Optional, Tuple

import numpy as np

from .errors import InvalidParameter
from .numerics import Point, PointLike, mod_tau, to_complex, to_point
from .shape import CurveShape, SegmentParams, fit_shape

logger = logging.getLogger(__name__)

_MIN_CHORD_RATIO = 1e-12
_CUBIC_CHECKS = np.array([0.25, 0.5, 0.75])

Cubic = Tuple[Point, Point, Point, Point]


class CurvePoint(NamedTuple):
    position: Point
    tangent_angle: float
    curvature: float


def _check_parameter(s: float) -> float:
    value = float(s)
    if not 0.0 <= value <= 1.0:
        raise InvalidParameter(f"curve parameter must lie in [0, 1], got {s!r}")
    return value


class Hyperbezier:
    """One segment: shape parameters plus its two endpoints.

    The raw shape is mapped onto the chord by a similarity transform, so
    tangent angles shift by the chord rotation and curvature scales with the
    inverse of the arclength.
    """

    def __init__(
        self,
        params: SegmentParams,
        p0: PointLike,
        p1: PointLike,
        shape: Optional[CurveShape] = None,
    ):
        if not isinstance(params, SegmentParams):
            raise InvalidParameter(f"expected SegmentParams, got {type(params).__name__}")
        z0 = to_complex(p0)
        z1 = to_complex(p1)
        if not (cmath.isfinite(z0) and cmath.isfinite(z1)):
            raise InvalidParameter(f"segment endpoints must be finite, got {p0!r} and {p1!r}")
        chord = z1 - z0
        if abs(chord) <= _MIN_CHORD_RATIO * max(1.0, abs(z0), abs(z1)):
            raise InvalidParameter(f"segment endpoints coincide: {p0!r} and {p1!r}")
        self.params = params
        self._z0 = z0
        self._z1 = z1
        self._shape: CurveShape = fit_shape(params) if shape is None else shape
        self._scale_rot = chord / self._shape.chord()

    @property
    def start(self) -> Point:
        return to_point(self._z0)

    @property
    def end(self) -> Point:
        return to_point(self._z1)

    @property
    def chord_length(self) -> float:
        return abs(self._z1 - self._z0)

    @property
    def chord_angle(self) -> float:
        return cmath.phase(self._z1 - self._z0)

    @property
    def arclength(self) -> float:
        return abs(self._scale_rot)

    @property
    def shape(self) -> CurveShape:
        return self._shape

    def eval(self, s: float) -> Point:
        s = _check_parameter(s)
        return to_point(self._z0 + self._scale_rot * self._shape.position(s))

    def tangent_angle(self, s: float) -> float:
        s = _check_parameter(s)
        return mod_tau(cmath.phase(self._scale_rot) + self._shape.theta(s))

    def curvature(self, s: float) -> float:
        s = _check_parameter(s)
        return self._shape.curvature(s) / abs(self._scale_rot)

    def evaluate(self, s: float) -> CurvePoint:
        return CurvePoint(self.eval(s), self.tangent_angle(s), self.curvature(s))

    def curvature_at_ends(self) -> Tuple[float, float]:
        return self.curvature(0.0), self.curvature(1.0)

    def _plane_positions(self, s_values: np.ndarray) -> np.ndarray:
        return self._z0 + self._scale_rot * self._shape.positions(s_values)

    def sample(self, n: int = 32) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Return ``(points, tangent_angles, curvatures)`` at ``n`` even steps."""

        if n < 2:
            raise InvalidParameter(f"need at least two samples, got {n}")
        s = np.linspace(0.0, 1.0, n)
        z = self._plane_positions(s)
        points = np.column_stack([z.real, z.imag])
        angles = cmath.phase(self._scale_rot) + np.asarray(self._shape.theta(s))
        curvatures = np.asarray(self._shape.curvature(s)) / abs(self._scale_rot)
        return points, angles, curvatures

    def subsegment(self, s0: float, s1: float) -> "Hyperbezier":
        from .subdivision import subdivide

        params = subdivide(self.params, s0, s1)
        return Hyperbezier(params, self.eval(s0), self.eval(s1))

    def split(self, s: float) -> Tuple["Hyperbezier", "Hyperbezier"]:
        from .subdivision import split

        left, right = split(self.params, s)
        mid = self.eval(s)
        return Hyperbezier(left, self._z0, mid), Hyperbezier(right, mid, self._z1)

    def _hermite_pieces(self, pieces: int) -> Tuple[List[Cubic], float]:
        knots = np.linspace(0.0, 1.0, pieces + 1)
        z = self._plane_positions(knots)
        rotation = cmath.phase(self._scale_rot)
        directions = np.exp(1j * (rotation + np.asarray(self._shape.theta(knots))))
        arm = self.arclength / (3.0 * pieces)
        t = _CUBIC_CHECKS
        cubics: List[Cubic] = []
        worst = 0.0
        for i in range(pieces):
            p0, p3 = z[i], z[i + 1]
            c1 = p0 + arm * directions[i]
            c2 = p3 - arm * directions[i + 1]
            exact = self._plane_positions(knots[i] + t / pieces)
            u = 1.0 - t
            approx = u**3 * p0 + 3.0 * u * u * t * c1 + 3.0 * u * t * t * c2 + t**3 * p3
            worst = max(worst, float(np.max(np.abs(exact - approx))))
            cubics.append((to_point(p0), to_point(c1), to_point(c2), to_point(p3)))
        return cubics, worst

    def to_cubics(self, tolerance: Optional[float] = None, max_pieces: int = 256) -> List[Cubic]:
        """Approximate the segment by cubic Béziers for an external renderer.

        Pieces match position and tangent direction at their joints; the
        count doubles until the sampled deviation is within ``tolerance``
        (default: 1e-4 of the arclength).
        """

        tol = 1e-4 * self.arclength if tolerance is None else float(tolerance)
        if not tol > 0.0:
            raise InvalidParameter(f"tolerance must be positive, got {tolerance!r}")
        pieces = 1
        while True:
            cubics, error = self._hermite_pieces(pieces)
            if error <= tol or pieces >= max_pieces:
                logger.debug("to_cubics: %d piece(s), deviation %.3g", pieces, error)
                return cubics
            pieces *= 2

    def __repr__(self) -> str:
        return f"Hyperbezier({self.params!r}, {self.start!r}, {self.end!r})"


def evaluate(
    params: SegmentParams, s: float, p0: PointLike = (0.0, 0.0), p1: PointLike = (1.0, 0.0)
) -> CurvePoint:
    """Position, tangent angle and curvature at parameter ``s``."""

    return Hyperbezier(params, p0, p1).evaluate(s)


def arclength(params: SegmentParams, p0: PointLike = (0.0, 0.0), p1: PointLike = (1.0, 0.0)) -> float:
    return Hyperbezier(params, p0, p1).arclength


__all__ = [
    "CurvePoint",
    "Hyperbezier",
    "arclength",
    "evaluate",
]
