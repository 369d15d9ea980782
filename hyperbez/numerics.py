"""Numeric helpers shared by the curve and solver modules."""

from __future__ import annotations

import logging
import math
from functools import lru_cache
from typing import Callable, Sequence, Tuple, Union

import numpy as np
from numpy.polynomial.legendre import leggauss
from scipy.special import binom

logger = logging.getLogger(__name__)

Point = Tuple[float, float]
PointLike = Union[Sequence[float], complex]

TAU = 2.0 * math.pi

_EPS = float(np.finfo(float).eps)
_DEFAULT_ORDER = 16
_MAX_PANELS = 4096


def mod_tau(x: float) -> float:
    """Wrap an angle into ``[-pi, pi]`` (ties round to even)."""

    return x - TAU * round(x / TAU)


def to_complex(p: PointLike) -> complex:
    if isinstance(p, complex):
        return p
    x, y = p
    return complex(float(x), float(y))


def to_point(z: complex) -> Point:
    return (float(z.real), float(z.imag))


@lru_cache(maxsize=8)
def gauss_legendre_rule(order: int) -> Tuple[np.ndarray, np.ndarray]:
    """Return Gauss-Legendre nodes and weights on ``[-1, 1]``."""

    nodes, weights = leggauss(order)
    nodes.setflags(write=False)
    weights.setflags(write=False)
    return nodes, weights


def gauss_legendre(
    func: Callable[[np.ndarray], np.ndarray], lo: float, hi: float, order: int = _DEFAULT_ORDER
) -> np.ndarray:
    """Integrate ``func`` over ``[lo, hi]`` with a fixed Gauss-Legendre rule.

    ``func`` receives the node array and returns values whose last axis runs
    over the nodes, so vector-valued (and complex) integrands work.
    """

    nodes, weights = gauss_legendre_rule(order)
    half = 0.5 * (hi - lo)
    mid = 0.5 * (hi + lo)
    values = np.asarray(func(mid + half * nodes))
    return half * np.dot(values, weights)


def composite_gauss_legendre(
    func: Callable[[np.ndarray], np.ndarray],
    lo: float,
    hi: float,
    panels: int = 4,
    order: int = _DEFAULT_ORDER,
) -> np.ndarray:
    """Fixed-cost rule: ``order`` nodes on each of ``panels`` equal panels.

    All nodes go to ``func`` in a single call.
    """

    nodes, weights = gauss_legendre_rule(order)
    half = 0.5 * (hi - lo) / panels
    mids = lo + half * (2.0 * np.arange(panels) + 1.0)
    t = (mids[:, None] + half * nodes[None, :]).ravel()
    values = np.asarray(func(t))
    values = values.reshape(values.shape[:-1] + (panels, order))
    return half * np.sum(values * weights, axis=(-2, -1))


def adaptive_quad(
    func: Callable[[np.ndarray], np.ndarray],
    lo: float,
    hi: float,
    *,
    tol: float = 1e-13,
    order: int = _DEFAULT_ORDER,
    max_depth: int = 40,
) -> np.ndarray:
    """Adaptive Gauss-Legendre quadrature by interval bisection.

    Each panel is accepted when the two-halves estimate agrees with the
    whole-panel estimate to within its share of ``tol`` (or to rounding
    level). Panels near an endpoint with rapidly growing curvature are
    refined until they agree, which plain fixed-order rules cannot do.
    """

    width = hi - lo
    if width == 0.0:
        first = np.asarray(func(np.array([lo])))
        return np.zeros(first.shape[:-1], dtype=first.dtype)

    whole = gauss_legendre(func, lo, hi, order)
    total = np.zeros_like(whole)
    stack = [(lo, hi, whole, 0)]
    panels = 0
    while stack:
        a, b, estimate, depth = stack.pop()
        mid = 0.5 * (a + b)
        left = gauss_legendre(func, a, mid, order)
        right = gauss_legendre(func, mid, b, order)
        refined = left + right
        err = float(np.max(np.abs(refined - estimate)))
        local_tol = tol * abs((b - a) / width)
        floor = 64.0 * _EPS * float(np.max(np.abs(refined)))
        panels += 1
        if err <= max(local_tol, floor) or depth >= max_depth or panels >= _MAX_PANELS:
            if depth >= max_depth or panels >= _MAX_PANELS:
                logger.debug(
                    "adaptive_quad: accepting panel [%.6g, %.6g] at depth=%d panels=%d err=%.3g",
                    a,
                    b,
                    depth,
                    panels,
                    err,
                )
            total = total + refined
        else:
            stack.append((a, mid, left, depth + 1))
            stack.append((mid, b, right, depth + 1))
    return total


@lru_cache(maxsize=8)
def binomial_series_coefficients(terms: int, exponent: float = -1.5) -> np.ndarray:
    """Coefficients ``c_n`` of ``(1 + u) ** exponent = sum c_n u**n``."""

    coeffs = binom(exponent, np.arange(terms, dtype=float))
    coeffs.setflags(write=False)
    return coeffs


__all__ = [
    "Point",
    "PointLike",
    "TAU",
    "adaptive_quad",
    "binomial_series_coefficients",
    "composite_gauss_legendre",
    "gauss_legendre",
    "gauss_legendre_rule",
    "mod_tau",
    "to_complex",
    "to_point",
]
