"""Conversion between control handles and segment parameters.

A handle is the off-curve arm of a cubic-Bézier-like editor: an absolute
direction and length measured from its on-curve point.  The arm length
normalised by the chord and by the tangent angle,

    A = (length / |chord|) * 1.5 * (1 + cos(th)),

maps to tension ``1 / A**2``.  Arms that a cubic Bézier would use to
approximate a circular arc (``A == 1``) give natural tension; shorter arms
give higher tension (clamped at ``CUSP_TENSION``), longer arms lower tension.
"""

from __future__ import annotations

import cmath
import logging
import math
from dataclasses import dataclass
from typing import Tuple

from .errors import ConversionOutOfDomain, InvalidParameter
from .numerics import Point, PointLike, mod_tau, to_complex, to_point
from .shape import MIN_TENSION, SegmentParams, clamp_tension

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Handle:
    angle: float
    length: float


def _chord(chord: PointLike) -> complex:
    z = to_complex(chord)
    if not cmath.isfinite(z) or abs(z) == 0.0:
        raise InvalidParameter(f"chord must be a finite non-zero vector, got {chord!r}")
    return z


def _angle_factor(th: float) -> float:
    return 1.5 * (1.0 + math.cos(th))


def arm_length(th: float, tension: float, chord_length: float) -> float:
    """Absolute arm length giving ``tension`` for tangent angle ``th``."""

    factor = _angle_factor(th)
    if factor <= 0.0:
        raise ConversionOutOfDomain(
            f"tangent angle {th:.6g} reverses the chord; no finite handle", tension=tension
        )
    return chord_length / (math.sqrt(tension) * factor)


def tension_for_arm(th: float, length: float, chord_length: float) -> float:
    """Tension implied by an arm of ``length`` at tangent angle ``th``."""

    normalized = (length / chord_length) * _angle_factor(th)
    if not math.isfinite(normalized) or normalized <= 0.0:
        raise ConversionOutOfDomain(
            f"arm of length {length!r} at angle {th:.6g} has no legal tension"
        )
    tension = 1.0 / (normalized * normalized)
    if not math.isfinite(tension) or tension < MIN_TENSION:
        raise ConversionOutOfDomain(
            f"arm of length {length!r} maps to tension {tension:.6g} below {MIN_TENSION:g}",
            tension=tension,
        )
    return tension


def to_handle(params: SegmentParams, chord: PointLike) -> Tuple[Handle, Handle]:
    """Start and end handles of a segment with the given chord vector.

    The end handle points from the end point back along the curve, as arms
    are drawn in an editor.
    """

    z = _chord(chord)
    phi = cmath.phase(z)
    c = abs(z)
    start = Handle(mod_tau(phi - params.th0), arm_length(params.th0, params.tension0, c))
    end = Handle(mod_tau(phi + params.th1 + math.pi), arm_length(params.th1, params.tension1, c))
    return start, end


def from_handle(h0: Handle, h1: Handle, chord: PointLike) -> SegmentParams:
    z = _chord(chord)
    phi = cmath.phase(z)
    c = abs(z)
    th0 = mod_tau(phi - h0.angle)
    th1 = mod_tau(h1.angle - math.pi - phi)
    tension0 = tension_for_arm(th0, h0.length, c)
    tension1 = tension_for_arm(th1, h1.length, c)
    return SegmentParams(th0, th1, tension0, tension1)


def to_control_points(
    params: SegmentParams, p0: PointLike, p1: PointLike
) -> Tuple[Point, Point]:
    """Absolute off-curve points, as a cubic Bézier editor draws them."""

    z0 = to_complex(p0)
    z1 = to_complex(p1)
    start, end = to_handle(params, z1 - z0)
    c0 = z0 + cmath.rect(start.length, start.angle)
    c1 = z1 + cmath.rect(end.length, end.angle)
    return to_point(c0), to_point(c1)


def from_control_points(
    p0: PointLike, c0: PointLike, c1: PointLike, p1: PointLike, *, clamp: bool = False
) -> SegmentParams:
    """Parameters for a Bézier-style control polygon.

    With ``clamp=True`` tensions outside the legal domain are clamped instead
    of raising :class:`ConversionOutOfDomain`; arms of zero length still
    raise.
    """

    z0, w0, w1, z1 = (to_complex(p) for p in (p0, c0, c1, p1))
    arm0 = w0 - z0
    arm1 = w1 - z1
    h0 = Handle(cmath.phase(arm0), abs(arm0))
    h1 = Handle(cmath.phase(arm1), abs(arm1))
    if not clamp:
        return from_handle(h0, h1, z1 - z0)
    chord = _chord(z1 - z0)
    phi = cmath.phase(chord)
    th0 = mod_tau(phi - h0.angle)
    th1 = mod_tau(h1.angle - math.pi - phi)
    tensions = []
    for th, handle in ((th0, h0), (th1, h1)):
        try:
            tensions.append(tension_for_arm(th, handle.length, abs(chord)))
        except ConversionOutOfDomain as exc:
            if exc.tension is None:
                raise
            logger.debug("from_control_points: clamping tension %.6g", exc.tension)
            tensions.append(clamp_tension(exc.tension))
    return SegmentParams(th0, th1, tensions[0], tensions[1])


__all__ = [
    "Handle",
    "arm_length",
    "clamp_tension",
    "from_control_points",
    "from_handle",
    "tension_for_arm",
    "to_control_points",
    "to_handle",
]
