from .errors import (
    HyperbezError,
    InvalidParameter,
    ConversionOutOfDomain,
    InvalidSubdivisionPoint,
    SolverDidNotConverge,
    UnsatisfiableConstraints,
)
from .shape import (
    CUSP_TENSION,
    MIN_TENSION,
    NATURAL_TENSION,
    SegmentParams,
    clamp_tension,
    integrate,
)
from .segment import CurvePoint, Hyperbezier, arclength, evaluate
from .handles import Handle, from_control_points, from_handle, to_control_points, to_handle
from .subdivision import split, subdivide
from .chain import (
    Auto,
    Chain,
    ControlPoint,
    EndCondition,
    Fixed,
    SolveOptions,
    SolveResult,
    euler_to_hyperbola_tension,
    get_solve_options,
    set_solve_options,
    solve,
)
from .chain.serialize import chain_from_dict, chain_to_dict

__all__ = [
    'HyperbezError',
    'InvalidParameter',
    'ConversionOutOfDomain',
    'InvalidSubdivisionPoint',
    'SolverDidNotConverge',
    'UnsatisfiableConstraints',
    'CUSP_TENSION',
    'MIN_TENSION',
    'NATURAL_TENSION',
    'SegmentParams',
    'clamp_tension',
    'integrate',
    'CurvePoint',
    'Hyperbezier',
    'arclength',
    'evaluate',
    'Handle',
    'from_control_points',
    'from_handle',
    'to_control_points',
    'to_handle',
    'split',
    'subdivide',
    'Auto',
    'Chain',
    'ControlPoint',
    'EndCondition',
    'Fixed',
    'SolveOptions',
    'SolveResult',
    'euler_to_hyperbola_tension',
    'get_solve_options',
    'set_solve_options',
    'solve',
    'chain_from_dict',
    'chain_to_dict',
]
