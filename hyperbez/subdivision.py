"""Exact subdivision of hyperbezier segments.

Restricting a raw curve to ``[s0, s1]`` and reparametrising by ``u`` gives

    q(s0 + u*ds) = e0*(1-u)**2 + 2*m*u*(1-u) + e1*u**2

with ``e0 = q(s0)``, ``e1 = q(s1)`` and ``m`` the polar form of ``q`` at
``(s0, s1)``.  Dividing through by ``m`` puts the middle weight back to 1, so
the child tensions are ``m/e0`` and ``m/e1`` and the curvature coefficients
scale as ``a' = a*ds**2 / m**1.5`` and ``b' = ds*(a*s0 + b) / m**1.5``.  The
child angles come from the parent's sub-chord.  Child weights are mediants of
the parent's, so children stay inside the tension band; clamping only
absorbs rounding at its edges.
"""

from __future__ import annotations

import cmath
import logging
from typing import Tuple

from .errors import InvalidParameter, InvalidSubdivisionPoint
from .logging_utils import apply_debug_logging
from .shape import CurveShape, SegmentParams, clamp_tension, fit_shape

logger = logging.getLogger(__name__)

SPLIT_TOL = 1e-7
_MIN_SUB_CHORD = 1e-12


def _restriction(shape: CurveShape, s0: float, s1: float) -> Tuple[SegmentParams, float, float]:
    sub_chord = shape.position(s1) - shape.position(s0)
    if abs(sub_chord) <= _MIN_SUB_CHORD:
        raise InvalidSubdivisionPoint(f"sub-chord on [{s0:g}, {s1:g}] has zero length")
    phi = cmath.phase(sub_chord)
    basis = shape.basis
    m = basis.blossom(s0, s1)
    span = s1 - s0
    norm = m ** -1.5
    try:
        params = SegmentParams(
            phi - shape.theta(s0),
            shape.theta(s1) - phi,
            clamp_tension(m / basis.q(s0)),
            clamp_tension(m / basis.q(s1)),
        )
    except InvalidParameter as exc:
        raise InvalidSubdivisionPoint(f"restriction to [{s0:g}, {s1:g}] leaves the legal domain: {exc}") from exc
    return params, shape.a * span * span * norm, span * (shape.a * s0 + shape.b) * norm


def _verified(params: SegmentParams, a: float, b: float) -> SegmentParams:
    # Re-fit the child from its own parameters; it must land on the
    # restricted curvature coefficients.
    try:
        child = fit_shape(params)
    except InvalidParameter as exc:
        raise InvalidSubdivisionPoint(f"child {params!r} cannot be fitted: {exc}") from exc
    scale = 1.0 + abs(a) + abs(b)
    if abs(child.a - a) > SPLIT_TOL * scale or abs(child.b - b) > SPLIT_TOL * scale:
        raise InvalidSubdivisionPoint(
            f"child {params!r} fits to a={child.a:.12g} b={child.b:.12g}, "
            f"expected a={a:.12g} b={b:.12g}"
        )
    return params


def subdivide(params: SegmentParams, s0: float, s1: float) -> SegmentParams:
    """Parameters of the part of ``params`` between ``s0`` and ``s1``."""

    s0 = float(s0)
    s1 = float(s1)
    if not 0.0 <= s0 < s1 <= 1.0:
        raise InvalidSubdivisionPoint(f"need 0 <= s0 < s1 <= 1, got s0={s0!r} s1={s1!r}")
    if s0 == 0.0 and s1 == 1.0:
        return params
    return _verified(*_restriction(fit_shape(params), s0, s1))


def split(params: SegmentParams, s_split: float) -> Tuple[SegmentParams, SegmentParams]:
    """Split at ``s_split`` into two children sharing the joint tangent."""

    s = float(s_split)
    if not 0.0 < s < 1.0:
        raise InvalidSubdivisionPoint(f"split point must lie in (0, 1), got {s_split!r}")
    shape = fit_shape(params)
    left = _verified(*_restriction(shape, 0.0, s))
    right = _verified(*_restriction(shape, s, 1.0))
    return left, right


__all__ = ["SPLIT_TOL", "split", "subdivide"]

apply_debug_logging(globals(), logger=logger)
