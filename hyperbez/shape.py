"""Curve-shape function of the hyperbezier family.

A raw hyperbezier has unit arclength, starts at the origin with a horizontal
tangent and has curvature

    k(s) = (a*s + b) / q(s) ** 1.5,   q(s) = w0*(1-s)**2 + 2*s*(1-s) + w1*s**2

with ``w0 = 1/tension0`` and ``w1 = 1/tension1``.  Natural tension (1.0) at
both ends makes ``q`` constant, so curvature is linear in arclength (an Euler
spiral).  Larger tension shrinks ``q`` at that end and concentrates curvature
there; smaller tension damps the end curvature.

Tension is legal on ``[1/4, 4]``; larger values clamp to ``CUSP_TENSION``.
On that band ``q`` stays within ``[1/4, 4]`` and, for S shapes and for arcs
turning at least as much at one end as at the other, curvature at that end
grows with its tension while the opposite end keeps its sign.  Past the band
a quadratic ``q`` can only sharpen one end by bending the whole segment, and
the fitted end hook reverses.  The band is closed under subdivision since
child weights are mediants of the parent's.

The tangent angle is ``theta(s) = a*I1(s) + b*I0(s)`` where ``I0`` and ``I1``
are the integrals of ``q**-1.5`` and ``t*q**-1.5``.  Those only depend on the
tensions and are computed by one of three strategies:

* ``euler`` -- binomial series of ``(1+u)**-1.5`` around constant ``q``;
  used for ``|u| <= 0.05``, 14 terms, truncation error below 1e-16.
* ``near-square`` -- hypergeometric series around the perfect square
  ``alpha*(s-sigma)**2``; used when ``|eta| <= 0.25*dist(sigma, [0,1])**2``,
  30 terms, truncation error below 1e-17 relative.
* ``general`` -- closed form with the discriminant in the denominator; its
  cancellation error is about machine epsilon divided by the ratio above, so
  it is only used where that ratio exceeds 0.25.

Callers never see which strategy is active.
"""

from __future__ import annotations

import cmath
import logging
import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Optional, Tuple, Union

import numpy as np
from numpy.polynomial import Polynomial
from scipy.special import fresnel

from .errors import InvalidParameter
from .numerics import adaptive_quad, binomial_series_coefficients, composite_gauss_legendre, mod_tau

logger = logging.getLogger(__name__)

NATURAL_TENSION = 1.0
MIN_TENSION = 0.25
# Sharpest end shape; larger tensions are clamped to it.
CUSP_TENSION = 4.0

EULER_SERIES_RADIUS = 0.05
EULER_SERIES_TERMS = 14
NEAR_SQUARE_RATIO = 0.25
NEAR_SQUARE_TERMS = 30
FRESNEL_MIN_RATE = 1e-3

QUAD_TOL = 1e-13
FIT_TOL = 5e-12
FIT_MAX_ITERATIONS = 50
# Fixed rule for solver iterates; q is bounded on the legal band, so four
# 16-point panels resolve exp(i*theta) to rounding.
SOLVER_QUAD_PANELS = 4
_MIN_RAW_CHORD = 1e-9

ArrayLike = Union[float, np.ndarray]
Quadrature = Callable[[Callable[[np.ndarray], np.ndarray], float, float], np.ndarray]


def _precise_quad(func, lo: float, hi: float) -> np.ndarray:
    return adaptive_quad(func, lo, hi, tol=QUAD_TOL)


def _solver_quad(func, lo: float, hi: float) -> np.ndarray:
    return composite_gauss_legendre(func, lo, hi, panels=SOLVER_QUAD_PANELS)


def check_tension(value: object, name: str = "tension") -> float:
    """Return ``value`` as a float or raise :class:`InvalidParameter`."""

    try:
        tension = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise InvalidParameter(f"{name} must be a number, got {value!r}") from exc
    if not math.isfinite(tension) or tension < MIN_TENSION:
        raise InvalidParameter(f"{name} must be finite and >= {MIN_TENSION:g}, got {value!r}")
    return tension


def clamp_tension(value: float) -> float:
    """Clamp ``value`` into the legal tension domain."""

    if math.isnan(value):
        raise InvalidParameter("tension is NaN")
    return min(max(value, MIN_TENSION), CUSP_TENSION)


@dataclass(frozen=True)
class SegmentParams:
    """Shape parameters of one segment.

    ``th0`` is the angle from the start tangent to the chord and ``th1`` the
    angle from the chord to the end tangent, so equal signs give a convex arc
    turning by ``th0 + th1`` and opposite signs give an S shape.  Tensions
    above ``CUSP_TENSION`` are stored clamped, as the curve uses them.
    """

    th0: float
    th1: float
    tension0: float = NATURAL_TENSION
    tension1: float = NATURAL_TENSION

    def __post_init__(self) -> None:
        for name in ("th0", "th1"):
            value = float(getattr(self, name))
            if not math.isfinite(value):
                raise InvalidParameter(f"{name} must be finite, got {value!r}")
            object.__setattr__(self, name, mod_tau(value))
        for name in ("tension0", "tension1"):
            tension = check_tension(getattr(self, name), name)
            object.__setattr__(self, name, min(tension, CUSP_TENSION))

    @property
    def is_natural(self) -> bool:
        return self.tension0 == NATURAL_TENSION and self.tension1 == NATURAL_TENSION


class _EulerSeries:
    kind = "euler"

    def __init__(self, alpha: float, beta: float, gamma: float):
        u = Polynomial([0.0, beta / gamma, alpha / gamma])
        series = Polynomial([0.0])
        power = Polynomial([1.0])
        for coeff in binomial_series_coefficients(EULER_SERIES_TERMS):
            series = series + float(coeff) * power
            power = power * u
        series = series * gamma ** -1.5
        self._i0 = series.integ()
        self._i1 = (series * Polynomial([0.0, 1.0])).integ()

    def integrals(self, s: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        return self._i0(s), self._i1(s)


class _NearSquareSeries:
    kind = "near-square"

    def __init__(self, alpha: float, sigma: float, eta: float):
        self._scale = alpha ** -1.5
        self._sigma = sigma
        self._eta = eta
        n = np.arange(NEAR_SQUARE_TERMS, dtype=float)
        self._powers = n[:, None]
        self._coeffs = binomial_series_coefficients(NEAR_SQUARE_TERMS)[:, None]
        self._den0 = -(2.0 + 2.0 * n)[:, None]
        self._den1 = -(1.0 + 2.0 * n)[:, None]
        # |x|**-(3+2n) == sign * x**-(3+2n) because sigma lies outside [0, 1]
        self._sign = 1.0 if sigma < 0.0 else -1.0
        lo0, lo1 = self._terms(np.array([-sigma]))
        self._lo0 = float(lo0[0])
        self._lo1 = float(lo1[0])

    def _terms(self, x: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        ratio = self._eta / (x * x)
        weighted = self._coeffs * ratio[None, :] ** self._powers
        t0 = np.sum(weighted / self._den0, axis=0) / (x * x)
        t1 = np.sum(weighted / self._den1, axis=0) / x
        return t0, t1

    def integrals(self, s: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        t0, t1 = self._terms(s - self._sigma)
        d0 = t0 - self._lo0
        d1 = t1 - self._lo1
        factor = self._scale * self._sign
        return factor * d0, factor * (d1 + self._sigma * d0)


class _ClosedForm:
    kind = "general"

    def __init__(self, alpha: float, beta: float, gamma: float, delta: float):
        self._alpha = alpha
        self._beta = beta
        self._gamma = gamma
        self._delta = delta
        self._root_gamma = math.sqrt(gamma)

    def integrals(self, s: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        alpha, beta, gamma = self._alpha, self._beta, self._gamma
        root_q = np.sqrt((alpha * s + beta) * s + gamma)
        i0 = 2.0 / self._delta * ((2.0 * alpha * s + beta) / root_q - beta / self._root_gamma)
        i1 = -2.0 / self._delta * ((2.0 * gamma + beta * s) / root_q - 2.0 * self._root_gamma)
        return i0, i1


_Regime = Union[_EulerSeries, _NearSquareSeries, _ClosedForm]


def _select_regime(alpha: float, beta: float, gamma: float) -> _Regime:
    if abs(alpha) + abs(beta) <= EULER_SERIES_RADIUS * gamma:
        return _EulerSeries(alpha, beta, gamma)
    delta = 4.0 * alpha * gamma - beta * beta
    if alpha > 0.0:
        sigma = -beta / (2.0 * alpha)
        if sigma < 0.0 or sigma > 1.0:
            dist = -sigma if sigma < 0.0 else sigma - 1.0
            eta = delta / (4.0 * alpha * alpha)
            if abs(eta) <= NEAR_SQUARE_RATIO * dist * dist:
                return _NearSquareSeries(alpha, sigma, eta)
    return _ClosedForm(alpha, beta, gamma, delta)


class ShapeBasis:
    """Tension-dependent part of a raw hyperbezier."""

    def __init__(self, tension0: float, tension1: float):
        self.tension0 = min(check_tension(tension0, "tension0"), CUSP_TENSION)
        self.tension1 = min(check_tension(tension1, "tension1"), CUSP_TENSION)
        w0 = 1.0 / self.tension0
        w1 = 1.0 / self.tension1
        self.w0 = w0
        self.w1 = w1
        self.alpha = w0 + w1 - 2.0
        self.beta = 2.0 * (1.0 - w0)
        self.gamma = w0
        self._regime = _select_regime(self.alpha, self.beta, self.gamma)
        self.is_euler = self.alpha == 0.0 and self.beta == 0.0
        self.i0_end, self.i1_end = self.integrals(1.0)

    @property
    def regime(self) -> str:
        return self._regime.kind

    def q(self, s: ArrayLike) -> ArrayLike:
        return (self.alpha * s + self.beta) * s + self.gamma

    def blossom(self, s0: float, s1: float) -> float:
        """Polar form of ``q``; the middle Bernstein weight on ``[s0, s1]``."""

        return self.alpha * s0 * s1 + 0.5 * self.beta * (s0 + s1) + self.gamma

    def integrals(self, s: ArrayLike):
        """Return ``(I0(s), I1(s))`` for a scalar or an array of ``s``."""

        values = np.atleast_1d(np.asarray(s, dtype=float))
        i0, i1 = self._regime.integrals(values)
        if np.ndim(s) == 0:
            return float(i0[0]), float(i1[0])
        return i0, i1

    def __repr__(self) -> str:
        return (
            f"ShapeBasis(tension0={self.tension0!r}, tension1={self.tension1!r}, "
            f"regime={self.regime!r})"
        )


@lru_cache(maxsize=256)
def shape_basis(tension0: float, tension1: float) -> ShapeBasis:
    return ShapeBasis(tension0, tension1)


def _fresnel_position(k0: float, k1: float, s: ArrayLike) -> ArrayLike:
    """Closed-form position on an Euler spiral ``theta = k0*t + k1*t**2/2``."""

    sign = 1.0 if k1 > 0.0 else -1.0
    k0s = sign * k0
    k1s = abs(k1)
    norm = math.sqrt(math.pi * k1s)
    s0, c0 = fresnel(k0s / norm)
    s1, c1 = fresnel((k1s * np.asarray(s, dtype=float) + k0s) / norm)
    z = cmath.exp(-0.5j * k0s * k0s / k1s) * (math.pi / norm) * ((c1 - c0) + 1j * (s1 - s0))
    return z if sign > 0.0 else np.conj(z)


class CurveShape:
    """A raw hyperbezier: unit arclength, origin start, horizontal start tangent."""

    def __init__(self, basis: ShapeBasis, a: float, b: float, chord: Optional[complex] = None):
        self.basis = basis
        self.a = float(a)
        self.b = float(b)
        self._chord = chord

    def curvature(self, s: ArrayLike) -> ArrayLike:
        values = np.asarray(s, dtype=float)
        k = (self.a * values + self.b) / self.basis.q(values) ** 1.5
        return float(k) if np.ndim(s) == 0 else k

    def theta(self, s: ArrayLike) -> ArrayLike:
        i0, i1 = self.basis.integrals(s)
        return self.a * i1 + self.b * i0

    def _direction(self, t: np.ndarray) -> np.ndarray:
        return np.exp(1j * self.theta(t))

    def _uses_fresnel(self) -> bool:
        return self.basis.is_euler and abs(self.a) >= FRESNEL_MIN_RATE

    def position(self, s: float) -> complex:
        if s == 0.0:
            return 0j
        if self._uses_fresnel():
            return complex(_fresnel_position(self.b, self.a, float(s)))
        return complex(adaptive_quad(self._direction, 0.0, float(s), tol=QUAD_TOL))

    def positions(self, s_values: np.ndarray) -> np.ndarray:
        """Positions at many parameters, integrating panel by panel."""

        values = np.asarray(s_values, dtype=float)
        if self._uses_fresnel():
            return np.asarray(_fresnel_position(self.b, self.a, values), dtype=complex)
        out = np.zeros(values.shape, dtype=complex)
        flat = values.ravel()
        result = out.ravel()
        acc = 0j
        prev = 0.0
        for idx in np.argsort(flat, kind="stable"):
            cur = float(flat[idx])
            if cur != prev:
                acc += complex(adaptive_quad(self._direction, prev, cur, tol=QUAD_TOL))
                prev = cur
            result[idx] = acc
        return result.reshape(values.shape)

    def chord(self) -> complex:
        """Raw chord vector ``X(1)``, cached per shape."""

        if self._chord is None:
            self._chord = self.position(1.0)
        return self._chord

    def __repr__(self) -> str:
        return f"CurveShape(a={self.a!r}, b={self.b!r}, basis={self.basis!r})"


def _linear_guess(
    basis: ShapeBasis, th0: float, th1: float, quadrature: Optional[Quadrature] = None
) -> Tuple[float, float]:
    # Small-angle relations: th0 = integral of theta, th1 = theta(1) - th0.
    def moments(t: np.ndarray) -> np.ndarray:
        i0, i1 = basis.integrals(t)
        return np.vstack([i1, i0])

    if quadrature is None:
        m1, m0 = adaptive_quad(moments, 0.0, 1.0, tol=1e-10)
    else:
        m1, m0 = quadrature(moments, 0.0, 1.0)
    matrix = np.array([[m1, m0], [basis.i1_end - m1, basis.i0_end - m0]], dtype=float)
    try:
        a, b = np.linalg.solve(matrix, np.array([th0, th1], dtype=float))
    except np.linalg.LinAlgError:
        logger.debug("_linear_guess: singular moment matrix for %r", basis)
        return 0.0, (th0 + th1) / max(basis.i0_end, 1e-12)
    return float(a), float(b)


def _fit_residual(
    basis: ShapeBasis, a: float, b: float, params: SegmentParams, quadrature: Quadrature
):
    def integrand(t: np.ndarray) -> np.ndarray:
        i0, i1 = basis.integrals(t)
        direction = np.exp(1j * (a * i1 + b * i0))
        return np.vstack([direction, 1j * i1 * direction, 1j * i0 * direction])

    chord, d_a, d_b = quadrature(integrand, 0.0, 1.0)
    if not abs(chord) > _MIN_RAW_CHORD:
        return None
    phi = cmath.phase(chord)
    theta_end = a * basis.i1_end + b * basis.i0_end
    residual = np.array([mod_tau(phi - params.th0), mod_tau(theta_end - phi - params.th1)])
    dphi_a = (d_a / chord).imag
    dphi_b = (d_b / chord).imag
    jac = np.array(
        [[dphi_a, dphi_b], [basis.i1_end - dphi_a, basis.i0_end - dphi_b]], dtype=float
    )
    return residual, jac, complex(chord)


def _newton(
    params: SegmentParams, basis: ShapeBasis, a: float, b: float, quadrature: Quadrature
) -> CurveShape:
    state = _fit_residual(basis, a, b, params, quadrature)
    if state is None:
        raise InvalidParameter(f"initial guess for {params!r} closes on itself")
    residual, jac, chord = state
    norm = float(np.max(np.abs(residual)))
    iterations = 0
    while norm > FIT_TOL:
        if iterations >= FIT_MAX_ITERATIONS:
            raise InvalidParameter(
                f"could not fit shape for {params!r}: residual {norm:.3e} after {iterations} iterations"
            )
        iterations += 1
        try:
            step = np.linalg.solve(jac, -residual)
        except np.linalg.LinAlgError as exc:
            raise InvalidParameter(f"singular shape Jacobian for {params!r}") from exc
        scale = 1.0
        for _ in range(16):
            candidate = _fit_residual(basis, a + scale * step[0], b + scale * step[1], params, quadrature)
            if candidate is not None and float(np.max(np.abs(candidate[0]))) < norm:
                break
            scale *= 0.5
        else:
            raise InvalidParameter(
                f"could not fit shape for {params!r}: line search stalled at residual {norm:.3e}"
            )
        a += scale * step[0]
        b += scale * step[1]
        residual, jac, chord = candidate
        norm = float(np.max(np.abs(residual)))

    logger.debug(
        "fit: %r -> a=%.12g b=%.12g regime=%s iterations=%d",
        params,
        a,
        b,
        basis.regime,
        iterations,
    )
    return CurveShape(basis, a, b, chord=chord)


@lru_cache(maxsize=2048)
def fit_shape(params: SegmentParams) -> CurveShape:
    """Find the raw shape whose chord-relative angles match ``params``.

    Damped Newton iteration on ``(a, b)`` with an analytic Jacobian: for
    fixed tensions ``theta`` is linear in ``(a, b)``, so the derivatives of
    the chord direction are integrals of the same basis functions.
    """

    basis = shape_basis(params.tension0, params.tension1)
    a, b = _linear_guess(basis, params.th0, params.th1)
    return _newton(params, basis, a, b, _precise_quad)


def fit_shape_fast(params: SegmentParams, guess: Optional[Tuple[float, float]] = None) -> CurveShape:
    """Uncached fit on the fixed solver rule, for chain-solver iterates.

    Newton starts from ``guess``, the ``(a, b)`` of a nearby shape, and falls
    back to the small-angle guess when that start does not converge.
    """

    basis = shape_basis(params.tension0, params.tension1)
    if guess is not None:
        try:
            return _newton(params, basis, guess[0], guess[1], _solver_quad)
        except InvalidParameter as exc:
            logger.debug("fit_shape_fast: warm start failed for %r: %s", params, exc)
    a, b = _linear_guess(basis, params.th0, params.th1, _solver_quad)
    return _newton(params, basis, a, b, _solver_quad)


def integrate(params: SegmentParams) -> float:
    """Total arclength of the segment for a unit-length chord."""

    chord = fit_shape(params).chord()
    return 1.0 / abs(chord)


__all__ = [
    "CUSP_TENSION",
    "CurveShape",
    "MIN_TENSION",
    "NATURAL_TENSION",
    "SegmentParams",
    "ShapeBasis",
    "check_tension",
    "clamp_tension",
    "fit_shape",
    "fit_shape_fast",
    "integrate",
    "shape_basis",
]
