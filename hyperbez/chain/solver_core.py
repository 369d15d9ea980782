"""Curvature-continuous solve of a chain's auto sides."""

from __future__ import annotations

import cmath
import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from scipy.optimize import least_squares

from ..errors import InvalidParameter, SolverDidNotConverge, UnsatisfiableConstraints
from ..logging_utils import apply_debug_logging
from ..numerics import mod_tau, to_complex
from ..segment import Hyperbezier
from ..shape import CUSP_TENSION, MIN_TENSION, NATURAL_TENSION, SegmentParams, check_tension, fit_shape_fast
from .model import LEFT, RIGHT, Chain, EndCondition, Fixed, SolveOptions, SolveResult, TensionPolicy

logger = logging.getLogger(__name__)

G1_TOL = 1e-9
FD_STEP = 1e-7
# Residual assigned to equations whose segment cannot be fitted at an iterate.
PENALTY = math.pi
_TERMINATION_TOL = 1e-14
_LOG_TENSION_BOUNDS = (math.log(MIN_TENSION), math.log(CUSP_TENSION))
# Tension unknowns this close to a bound count as pinned against it.
_BOUND_SLACK = 1e-6
_MIN_CHORD_RATIO = 1e-12


def _policy_tension(policy: TensionPolicy, th: float) -> float:
    return check_tension(policy(th), "tension policy result")


@dataclass
class _SideSpec:
    """Where a side's angle and tension come from during the solve.

    ``angle_var``/``tension_var`` index the unknown vector; a ``tension`` of
    ``None`` without a variable means the tension policy decides.
    """

    angle: float = 0.0
    angle_var: Optional[int] = None
    tension: Optional[float] = None
    tension_var: Optional[int] = None

    def angle_at(self, x: np.ndarray) -> float:
        if self.angle_var is not None:
            return float(x[self.angle_var])
        return self.angle

    def tension_at(self, x: np.ndarray, th: float, policy: TensionPolicy) -> float:
        if self.tension_var is not None:
            return math.exp(float(x[self.tension_var]))
        if self.tension is not None:
            return self.tension
        return _policy_tension(policy, th)


@dataclass
class _Variable:
    point: int
    side: str
    kind: str
    segments: Tuple[int, ...]


@dataclass
class _Equation:
    kind: str
    point: int
    side: Optional[str]
    segments: Tuple[int, ...]


class _ChainProblem:
    """Unknowns, equations and residual evaluation for one chain."""

    def __init__(self, chain: Chain, options: SolveOptions):
        self.chain = chain
        self.options = options
        self.chain_points = chain.points
        self.points = [to_complex(p.position) for p in self.chain_points]
        self.n = len(self.points)
        self.closed = chain.is_closed
        self.segment_count = chain.segment_count
        self.sides: Dict[Tuple[int, str], _SideSpec] = {}
        self.lines: Dict[int, Hyperbezier] = {}
        self.variables: List[_Variable] = []
        self.equations: List[_Equation] = []
        self.x0: List[float] = []
        self.lower: List[float] = []
        self.upper: List[float] = []
        self._build()
        self._rows = [
            [row for row, eq in enumerate(self.equations) if set(eq.segments) & set(var.segments)]
            for var in self.variables
        ]
        self._cache_key: Optional[bytes] = None
        self._cache: List[Optional[Hyperbezier]] = []

    def _seg_in(self, i: int) -> int:
        return (i - 1) % self.n

    def _seg_out(self, i: int) -> int:
        return i

    def _chord_angle(self, k: int) -> float:
        return cmath.phase(self.points[(k + 1) % self.n] - self.points[k])

    def _add_variable(
        self,
        point: int,
        side: str,
        kind: str,
        guess: float,
        segments: Sequence[int],
        bounds: Tuple[float, float] = (-math.inf, math.inf),
    ) -> int:
        self.variables.append(_Variable(point, side, kind, tuple(sorted(set(segments)))))
        self.x0.append(guess)
        self.lower.append(bounds[0])
        self.upper.append(bounds[1])
        return len(self.variables) - 1

    def _is_line(self, k: int) -> bool:
        return self.chain_points[k].line_out

    def _build(self) -> None:
        for k in range(self.segment_count):
            if self._is_line(k):
                p0, p1 = self.points[k], self.points[(k + 1) % self.n]
                self.lines[k] = Hyperbezier(SegmentParams(0.0, 0.0), p0, p1)
        for i, point in enumerate(self.chain_points):
            has_in = self.closed or i > 0
            has_out = self.closed or i < self.n - 1
            line_in = has_in and self._is_line(self._seg_in(i))
            line_out = has_out and self._is_line(self._seg_out(i))
            if has_in and has_out and point.smooth and (line_in or line_out):
                self._build_line_joint(i, point, line_in, line_out)
                continue
            if has_in and has_out and point.smooth:
                self._build_joint(i, point.left, point.right)
                continue
            if has_in and not line_in:
                self._build_end(i, LEFT, point.left, self._seg_in(i))
            if has_out and not line_out:
                self._build_end(i, RIGHT, point.right, self._seg_out(i))

    def _build_line_joint(self, i: int, point, line_in: bool, line_out: bool) -> None:
        # A curve meeting a line at a smooth point leaves along the line.
        if line_in and line_out:
            incoming = self._chord_angle(self._seg_in(i))
            outgoing = self._chord_angle(self._seg_out(i))
            if abs(mod_tau(outgoing - incoming)) > G1_TOL:
                raise UnsatisfiableConstraints(
                    f"point {i} is smooth but joins two lines with different directions "
                    f"({incoming:.6g} vs {outgoing:.6g})",
                    points=[i],
                )
            return
        if line_in:
            angle, which, side = self._chord_angle(self._seg_in(i)), RIGHT, point.right
        else:
            angle, which, side = self._chord_angle(self._seg_out(i)), LEFT, point.left
        if isinstance(side, Fixed):
            if abs(mod_tau(side.angle - angle)) > G1_TOL:
                raise UnsatisfiableConstraints(
                    f"point {i} is smooth but its fixed {which} side ({side.angle:.6g}) "
                    f"does not follow the adjacent line ({angle:.6g})",
                    points=[i],
                )
            self.sides[(i, which)] = _SideSpec(angle=side.angle, tension=side.tension)
        else:
            self.sides[(i, which)] = _SideSpec(angle=angle)

    def _build_joint(self, i: int, left, right) -> None:
        segments = (self._seg_in(i), self._seg_out(i))
        if isinstance(left, Fixed) and isinstance(right, Fixed):
            if abs(mod_tau(left.angle - right.angle)) > G1_TOL:
                raise UnsatisfiableConstraints(
                    f"point {i} is smooth but its fixed sides have different tangents "
                    f"({left.angle:.6g} vs {right.angle:.6g})",
                    points=[i],
                )
            self.sides[(i, LEFT)] = _SideSpec(angle=left.angle, tension=left.tension)
            self.sides[(i, RIGHT)] = _SideSpec(angle=right.angle, tension=right.tension)
        elif isinstance(left, Fixed) or isinstance(right, Fixed):
            # Tangent continuity ties the auto side to the fixed angle; its
            # tension is what G2 solves for.
            if isinstance(left, Fixed):
                fixed, fixed_side, free_side, segment = left, LEFT, RIGHT, segments[1]
            else:
                fixed, fixed_side, free_side, segment = right, RIGHT, LEFT, segments[0]
            var = self._add_variable(i, free_side, "tension", 0.0, (segment,), _LOG_TENSION_BOUNDS)
            self.sides[(i, fixed_side)] = _SideSpec(angle=fixed.angle, tension=fixed.tension)
            self.sides[(i, free_side)] = _SideSpec(angle=fixed.angle, tension_var=var)
        else:
            incoming = self._chord_angle(segments[0])
            outgoing = self._chord_angle(segments[1])
            guess = incoming + 0.5 * mod_tau(outgoing - incoming)
            var = self._add_variable(i, "both", "angle", guess, segments)
            self.sides[(i, LEFT)] = _SideSpec(angle_var=var)
            self.sides[(i, RIGHT)] = _SideSpec(angle_var=var)
        self.equations.append(_Equation("g2", i, None, segments))

    def _build_end(self, i: int, which: str, side, segment: int) -> None:
        if isinstance(side, Fixed):
            self.sides[(i, which)] = _SideSpec(angle=side.angle, tension=side.tension)
            return
        var = self._add_variable(i, which, "angle", self._chord_angle(segment), (segment,))
        self.sides[(i, which)] = _SideSpec(angle_var=var)
        self.equations.append(_Equation("end", i, which, (segment,)))

    def _segment(self, k: int, x: np.ndarray, near: Optional[Hyperbezier] = None) -> Optional[Hyperbezier]:
        """Segment ``k`` at iterate ``x``, fitted on the fast rule.

        ``near`` is the same segment at a nearby iterate; its shape seeds the
        fit.
        """

        if k in self.lines:
            return self.lines[k]
        i, j = k, (k + 1) % self.n
        start = self.sides[(i, RIGHT)]
        end = self.sides[(j, LEFT)]
        p0, p1 = self.points[i], self.points[j]
        phi = cmath.phase(p1 - p0)
        th0 = mod_tau(phi - start.angle_at(x))
        th1 = mod_tau(end.angle_at(x) - phi)
        policy = self.options.tension_policy
        tension0 = start.tension_at(x, th0, policy)
        tension1 = end.tension_at(x, th1, policy)
        guess = None if near is None else (near.shape.a, near.shape.b)
        try:
            params = SegmentParams(th0, th1, tension0, tension1)
            return Hyperbezier(params, p0, p1, shape=fit_shape_fast(params, guess))
        except InvalidParameter as exc:
            logger.debug("segment %d rejected at this iterate: %s", k, exc)
            return None

    def _row(self, eq: _Equation, segments: Sequence[Optional[Hyperbezier]]) -> float:
        parts = [segments[k] for k in eq.segments]
        if any(part is None for part in parts):
            return PENALTY
        if eq.kind == "g2":
            incoming, outgoing = parts
            scale = math.sqrt(incoming.chord_length * outgoing.chord_length)
            return math.atan(incoming.curvature(1.0) * scale) - math.atan(outgoing.curvature(0.0) * scale)
        (segment,) = parts
        scale = segment.chord_length
        k0, k1 = segment.curvature_at_ends()
        here, there = (k0, k1) if eq.side == RIGHT else (k1, k0)
        if self.options.end_condition == EndCondition.CONSTANT:
            return math.atan(here * scale) - math.atan(there * scale)
        return math.atan(here * scale)

    def segments_at(self, x: np.ndarray) -> List[Optional[Hyperbezier]]:
        x = np.asarray(x, dtype=float)
        key = x.tobytes()
        if key != self._cache_key:
            previous = self._cache or [None] * self.segment_count
            self._cache = [self._segment(k, x, previous[k]) for k in range(self.segment_count)]
            self._cache_key = key
        return self._cache

    def residuals(self, x: np.ndarray) -> np.ndarray:
        segments = self.segments_at(x)
        return np.array([self._row(eq, segments) for eq in self.equations], dtype=float)

    def jacobian(self, x: np.ndarray) -> np.ndarray:
        """Forward differences that only rebuild the segments each unknown touches."""

        x = np.asarray(x, dtype=float)
        base = list(self.segments_at(x))
        base_values = self.residuals(x)
        jac = np.zeros((len(self.equations), len(self.variables)))
        for col, var in enumerate(self.variables):
            shifted = x.copy()
            step = FD_STEP * max(1.0, abs(x[col]))
            if x[col] + step > self.upper[col]:
                step = -step
            shifted[col] += step
            step = shifted[col] - x[col]
            segments = list(base)
            for k in var.segments:
                segments[k] = self._segment(k, shifted, base[k])
            for row in self._rows[col]:
                jac[row, col] = (self._row(self.equations[row], segments) - base_values[row]) / step
        return jac

    def verify(self, segments: Sequence[Hyperbezier]) -> None:
        tol = self.options.verify_tol
        for eq in self.equations:
            if eq.kind != "g2":
                continue
            incoming = segments[eq.segments[0]]
            outgoing = segments[eq.segments[1]]
            turn = abs(mod_tau(outgoing.tangent_angle(0.0) - incoming.tangent_angle(1.0)))
            scale = math.sqrt(incoming.chord_length * outgoing.chord_length)
            k_in = incoming.curvature(1.0) * scale
            k_out = outgoing.curvature(0.0) * scale
            if turn > tol or abs(k_in - k_out) > tol * max(1.0, abs(k_in), abs(k_out)):
                raise UnsatisfiableConstraints(
                    f"joint at point {eq.point} is not curvature-continuous "
                    f"(tangent jump {turn:.3g}, curvature {k_in:.9g} vs {k_out:.9g})",
                    points=[eq.point],
                )

    def pinned_tensions(self, x: np.ndarray) -> List[int]:
        """Points whose tension unknown ended on a bound of the tension band."""

        pinned = set()
        for col, var in enumerate(self.variables):
            if var.kind != "tension":
                continue
            if x[col] - self.lower[col] <= _BOUND_SLACK or self.upper[col] - x[col] <= _BOUND_SLACK:
                pinned.add(var.point)
        return sorted(pinned)

    def precise(self, segments: Sequence[Hyperbezier]) -> List[Hyperbezier]:
        return [
            segment if k in self.lines else Hyperbezier(segment.params, segment.start, segment.end)
            for k, segment in enumerate(segments)
        ]

    def write_back(self, x: np.ndarray, segments: Sequence[Hyperbezier]) -> None:
        for (i, which), spec in self.sides.items():
            if which == RIGHT:
                tension = segments[self._seg_out(i)].params.tension0
            else:
                tension = segments[self._seg_in(i)].params.tension1
            self.chain._resolve_auto(i, which, mod_tau(spec.angle_at(x)), tension)
        for k in self.lines:
            i, j = k, (k + 1) % self.n
            angle = self._chord_angle(k)
            self.chain._resolve_auto(i, RIGHT, angle, NATURAL_TENSION)
            self.chain._resolve_auto(j, LEFT, angle, NATURAL_TENSION)


def _validate(chain: Chain) -> None:
    n = len(chain)
    if n < 2:
        raise InvalidParameter(f"a chain needs at least two points, got {n}")
    points = [to_complex(p.position) for p in chain.points]
    for k in range(chain.segment_count):
        i, j = chain.segment_endpoints(k)
        p0, p1 = points[i], points[j]
        if abs(p1 - p0) <= _MIN_CHORD_RATIO * max(1.0, abs(p0), abs(p1)):
            raise InvalidParameter(f"points {i} and {j} coincide")


def solve_chain(chain: Chain, options: SolveOptions) -> SolveResult:
    """Solve the auto sides of ``chain`` for curvature continuity.

    Auto values are written back only after the whole solve verifies; on
    any error the chain is left as it was.
    """

    _validate(chain)
    problem = _ChainProblem(chain, options)
    logger.debug(
        "solve_chain: %d unknowns, %d equations, %d segments",
        len(problem.variables),
        len(problem.equations),
        problem.segment_count,
    )

    x = np.asarray(problem.x0, dtype=float)
    iterations = 0
    status = 1
    if problem.variables:
        result = least_squares(
            problem.residuals,
            x,
            jac=problem.jacobian,
            method="trf",
            bounds=(np.asarray(problem.lower), np.asarray(problem.upper)),
            max_nfev=options.max_iterations,
            ftol=_TERMINATION_TOL,
            xtol=_TERMINATION_TOL,
            gtol=_TERMINATION_TOL,
        )
        x = result.x
        iterations = int(result.njev) if result.njev is not None else int(result.nfev)
        status = int(result.status)
        logger.debug(
            "least_squares finished: status=%d nfev=%d njev=%s cost=%.3e (%s)",
            status,
            result.nfev,
            result.njev,
            result.cost,
            result.message,
        )

    segments = problem.segments_at(x)
    values = problem.residuals(x)
    max_residual = float(np.max(np.abs(values))) if values.size else 0.0
    broken = [k for k, segment in enumerate(segments) if segment is None]
    if broken or max_residual > options.tol:
        offending = {eq.point for eq, value in zip(problem.equations, values) if abs(value) > options.tol}
        for k in broken:
            offending.update(chain.segment_endpoints(k))
        pinned = problem.pinned_tensions(x)
        if pinned:
            raise UnsatisfiableConstraints(
                f"tension at points {pinned} reached the edge of "
                f"[{MIN_TENSION:g}, {CUSP_TENSION:g}] without curvature continuity "
                f"(max residual {max_residual:.3e})",
                points=sorted(offending.union(pinned)),
                max_residual=max_residual,
            )
        if status == 0:
            raise SolverDidNotConverge(
                f"chain solve did not converge in {options.max_iterations} evaluations "
                f"(max residual {max_residual:.3e})",
                iterations=iterations,
                max_residual=max_residual,
            )
        raise UnsatisfiableConstraints(
            f"no curvature-continuous solution near points {sorted(offending)} "
            f"(max residual {max_residual:.3e})",
            points=sorted(offending),
            max_residual=max_residual,
        )

    # Iterates use the fast quadrature; results are refitted precisely.
    solved = problem.precise([segment for segment in segments if segment is not None])
    problem.verify(solved)
    problem.write_back(x, solved)
    chain._mark_solved()
    return SolveResult(chain=chain, iterations=iterations, max_residual=max_residual, segments=solved)


__all__ = ["solve_chain"]

apply_debug_logging(
    globals(),
    logger=logger,
    skip={
        "_policy_tension",
        "_SideSpec.angle_at",
        "_SideSpec.tension_at",
        "_ChainProblem._segment",
        "_ChainProblem._row",
        "_ChainProblem.segments_at",
        "_ChainProblem.residuals",
        "_ChainProblem.jacobian",
        "_ChainProblem._chord_angle",
        "_ChainProblem._seg_in",
        "_ChainProblem._seg_out",
    },
)
