"""Chain solver façade."""

from __future__ import annotations

import logging
from typing import Optional

from .config import get_solve_options, set_solve_options
from .model import (
    LEFT,
    RIGHT,
    Auto,
    Chain,
    ControlPoint,
    EndCondition,
    Fixed,
    Side,
    SolveOptions,
    SolveResult,
    TensionPolicy,
)
from .policy import euler_to_hyperbola_tension, natural_tension
from .solver_core import solve_chain

logger = logging.getLogger(__name__)


def solve(chain: Chain, options: Optional[SolveOptions] = None) -> SolveResult:
    """Solve every auto side of ``chain`` for curvature continuity.

    Uses the process-wide defaults from :func:`get_solve_options` when
    ``options`` is omitted.
    """

    if options is None:
        options = get_solve_options()
    logger.info(
        "Solving chain with %d points (closed=%s, end_condition=%s)",
        len(chain),
        chain.is_closed,
        EndCondition(options.end_condition).value,
    )
    result = solve_chain(chain, options)
    logger.info(
        "Chain solved in %d iteration(s), max residual %.3e",
        result.iterations,
        result.max_residual,
    )
    return result


__all__ = [
    "Auto",
    "Chain",
    "ControlPoint",
    "EndCondition",
    "Fixed",
    "LEFT",
    "RIGHT",
    "Side",
    "SolveOptions",
    "SolveResult",
    "TensionPolicy",
    "euler_to_hyperbola_tension",
    "get_solve_options",
    "natural_tension",
    "set_solve_options",
    "solve",
]
