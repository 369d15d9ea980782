"""Process-wide default solve options."""

from __future__ import annotations

import copy

from .model import SolveOptions

_SOLVE_OPTIONS = SolveOptions()


def get_solve_options() -> SolveOptions:
    return copy.deepcopy(_SOLVE_OPTIONS)


def set_solve_options(options: SolveOptions) -> None:
    global _SOLVE_OPTIONS
    _SOLVE_OPTIONS = copy.deepcopy(options)
