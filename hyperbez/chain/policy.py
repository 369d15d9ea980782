"""Tension policies for auto sides."""

from __future__ import annotations

import math

from ..numerics import mod_tau
from ..shape import NATURAL_TENSION

EULER_LIMIT = 0.3 * math.pi
HYPERBOLA_LIMIT = 0.5 * math.pi
MIN_POLICY_ARM = 0.5


def euler_to_hyperbola_tension(th: float) -> float:
    """Tension for an auto side whose tangent makes angle ``th`` with the chord.

    Gentle turns keep natural tension (Euler spiral).  Past ``0.3*pi`` the
    normalised arm shrinks linearly towards ``MIN_POLICY_ARM`` at ``pi/2``,
    so the tension grows to at most ``1 / MIN_POLICY_ARM**2``, the cusp
    tension, and the end curvature concentrates like a hyperbola.
    """

    angle = abs(mod_tau(th))
    if angle < EULER_LIMIT:
        return NATURAL_TENSION
    arm = 1.0 - (angle - EULER_LIMIT) / (HYPERBOLA_LIMIT - EULER_LIMIT)
    arm = max(arm, MIN_POLICY_ARM)
    return 1.0 / (arm * arm)


def natural_tension(th: float) -> float:
    """Policy that always uses natural tension."""

    return NATURAL_TENSION


__all__ = ["EULER_LIMIT", "euler_to_hyperbola_tension", "natural_tension"]
