"""Core data structures for the chain solver."""

from __future__ import annotations

import cmath
import copy
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Iterator, List, Optional, Tuple, Union

from ..errors import InvalidParameter, InvalidSubdivisionPoint
from ..numerics import Point, PointLike, mod_tau, to_complex
from ..segment import Hyperbezier
from ..shape import CUSP_TENSION, NATURAL_TENSION, SegmentParams, check_tension
from .policy import euler_to_hyperbola_tension

TensionPolicy = Callable[[float], float]

LEFT = "left"
RIGHT = "right"


class EndCondition(str, Enum):
    """Boundary condition for auto sides at open ends and corners."""

    NATURAL = "natural"
    CONSTANT = "constant"


@dataclass(frozen=True)
class Fixed:
    """A side whose absolute tangent angle and tension are user supplied."""

    angle: float
    tension: float = NATURAL_TENSION

    def __post_init__(self) -> None:
        angle = float(self.angle)
        if not math.isfinite(angle):
            raise InvalidParameter(f"fixed angle must be finite, got {self.angle!r}")
        object.__setattr__(self, "angle", angle)
        object.__setattr__(self, "tension", min(check_tension(self.tension), CUSP_TENSION))


@dataclass
class Auto:
    """A side the solver determines; ``angle``/``tension`` hold the last solve."""

    angle: Optional[float] = None
    tension: Optional[float] = None

    @property
    def is_resolved(self) -> bool:
        return self.angle is not None and self.tension is not None

    def clear(self) -> None:
        self.angle = None
        self.tension = None


Side = Union[Fixed, Auto]


def _check_side(side: object, label: str) -> Side:
    if not isinstance(side, (Fixed, Auto)):
        raise InvalidParameter(f"{label} must be Fixed or Auto, got {type(side).__name__}")
    return side


def _check_position(position: PointLike) -> Point:
    z = to_complex(position)
    if not cmath.isfinite(z):
        raise InvalidParameter(f"point position must be finite, got {position!r}")
    return (z.real, z.imag)


@dataclass
class ControlPoint:
    """A chain point; ``line_out`` makes the segment leaving it straight."""

    position: Point
    left: Side = field(default_factory=Auto)
    right: Side = field(default_factory=Auto)
    smooth: bool = True
    line_out: bool = False

    def __post_init__(self) -> None:
        self.position = _check_position(self.position)
        self.left = _check_side(self.left, "left side")
        self.right = _check_side(self.right, "right side")
        self.smooth = bool(self.smooth)
        self.line_out = bool(self.line_out)

    def side(self, which: str) -> Side:
        if which == LEFT:
            return self.left
        if which == RIGHT:
            return self.right
        raise InvalidParameter(f"side must be 'left' or 'right', got {which!r}")


def resolved_side(side: Side, label: str) -> Tuple[float, float]:
    """Return ``(angle, tension)`` of a fixed side or a solved auto side."""

    if isinstance(side, Fixed):
        return side.angle, side.tension
    if side.angle is None or side.tension is None:
        raise InvalidParameter(f"{label} is an unresolved auto side; solve the chain first")
    return side.angle, side.tension


def params_between(
    p0: PointLike, p1: PointLike, angle0: float, tension0: float, angle1: float, tension1: float
) -> SegmentParams:
    """Segment parameters from absolute tangent angles at both ends."""

    phi = cmath.phase(to_complex(p1) - to_complex(p0))
    return SegmentParams(mod_tau(phi - angle0), mod_tau(angle1 - phi), tension0, tension1)


@dataclass
class SolveOptions:
    """Chain solver options."""

    tol: float = 1e-9
    max_iterations: int = 50
    end_condition: EndCondition = EndCondition.NATURAL
    tension_policy: TensionPolicy = euler_to_hyperbola_tension
    verify_tol: float = 1e-6

    def __post_init__(self) -> None:
        self.end_condition = EndCondition(self.end_condition)
        if not self.tol > 0.0 or not self.verify_tol > 0.0:
            raise InvalidParameter("solver tolerances must be positive")
        if int(self.max_iterations) < 1:
            raise InvalidParameter(f"max_iterations must be at least 1, got {self.max_iterations!r}")
        self.max_iterations = int(self.max_iterations)


@dataclass
class SolveResult:
    chain: "Chain"
    iterations: int
    max_residual: float
    segments: List[Hyperbezier]


class Chain:
    """Ordered control points of one path, open or closed.

    The chain owns its points: they are copied on the way in and on the way
    out (``points``, ``point`` and iteration hand back copies), so every
    edit goes through a chain method and solved auto values can be
    invalidated.  Segments are derived views, rebuilt on demand.
    """

    def __init__(self, points: Iterable[ControlPoint] = (), closed: bool = False):
        self._points: List[ControlPoint] = [self._own(p) for p in points]
        self._closed = bool(closed)
        self._solved = False

    @staticmethod
    def _own(point: ControlPoint) -> ControlPoint:
        if not isinstance(point, ControlPoint):
            raise InvalidParameter(f"expected ControlPoint, got {type(point).__name__}")
        return copy.deepcopy(point)

    @classmethod
    def from_positions(cls, positions: Iterable[PointLike], closed: bool = False) -> "Chain":
        """Chain of smooth points with both sides auto."""

        return cls((ControlPoint(_check_position(p)) for p in positions), closed=closed)

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[ControlPoint]:
        return iter(self.points)

    @property
    def points(self) -> Tuple[ControlPoint, ...]:
        return tuple(copy.deepcopy(p) for p in self._points)

    def point(self, index: int) -> ControlPoint:
        return copy.deepcopy(self._points[self._index(index)])

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def is_solved(self) -> bool:
        return self._solved

    @property
    def segment_count(self) -> int:
        n = len(self._points)
        if n < 2:
            return 0
        return n if self._closed else n - 1

    def _index(self, index: int, *, allow_end: bool = False) -> int:
        n = len(self._points)
        upper = n + 1 if allow_end else n
        if not -n <= index < upper:
            raise IndexError(f"point index {index} out of range for chain of {n} points")
        return index % n if index < 0 else index

    def invalidate(self) -> None:
        """Forget solved auto values."""

        for point in self._points:
            for side in (point.left, point.right):
                if isinstance(side, Auto):
                    side.clear()
        self._solved = False

    def _mark_solved(self) -> None:
        self._solved = True

    def _resolve_auto(self, index: int, which: str, angle: float, tension: float) -> None:
        side = self._points[index].side(which)
        if isinstance(side, Auto):
            side.angle = angle
            side.tension = tension

    def append(self, point: ControlPoint) -> None:
        self._points.append(self._own(point))
        self.invalidate()

    def insert(self, index: int, point: ControlPoint) -> None:
        self._points.insert(self._index(index, allow_end=True), self._own(point))
        self.invalidate()

    def remove(self, index: int) -> ControlPoint:
        point = self._points.pop(self._index(index))
        self.invalidate()
        return point

    def move_point(self, index: int, position: PointLike) -> None:
        self._points[self._index(index)].position = _check_position(position)
        self.invalidate()

    def set_side(self, index: int, which: str, side: Side) -> None:
        point = self._points[self._index(index)]
        side = copy.deepcopy(_check_side(side, f"{which} side"))
        if which == LEFT:
            point.left = side
        elif which == RIGHT:
            point.right = side
        else:
            raise InvalidParameter(f"side must be 'left' or 'right', got {which!r}")
        self.invalidate()

    def set_smooth(self, index: int, smooth: bool) -> None:
        self._points[self._index(index)].smooth = bool(smooth)
        self.invalidate()

    def toggle_smooth(self, index: int) -> bool:
        point = self._points[self._index(index)]
        point.smooth = not point.smooth
        self.invalidate()
        return point.smooth

    def set_line(self, index: int, line: bool = True) -> None:
        """Make segment ``index`` straight, or a curve again with ``line=False``."""

        i, _ = self.segment_endpoints(index)
        self._points[i].line_out = bool(line)
        self.invalidate()

    def is_line(self, index: int) -> bool:
        i, _ = self.segment_endpoints(index)
        return self._points[i].line_out

    def close(self) -> None:
        self._closed = True
        self.invalidate()

    def open(self) -> None:
        self._closed = False
        self.invalidate()

    def segment_endpoints(self, index: int) -> Tuple[int, int]:
        count = self.segment_count
        if not 0 <= index < count:
            raise IndexError(f"segment index {index} out of range for {count} segments")
        return index, (index + 1) % len(self._points)

    def segment(self, index: int) -> Hyperbezier:
        """Segment ``index``, from point ``index`` to the next point."""

        i, j = self.segment_endpoints(index)
        start = self._points[i]
        end = self._points[j]
        if start.line_out:
            return Hyperbezier(SegmentParams(0.0, 0.0), start.position, end.position)
        angle0, tension0 = resolved_side(start.right, f"right side of point {i}")
        angle1, tension1 = resolved_side(end.left, f"left side of point {j}")
        params = params_between(start.position, end.position, angle0, tension0, angle1, tension1)
        return Hyperbezier(params, start.position, end.position)

    def segments(self) -> List[Hyperbezier]:
        return [self.segment(i) for i in range(self.segment_count)]

    def joint_curvatures(self) -> List[Tuple[int, float, float]]:
        """``(point, incoming curvature, outgoing curvature)`` per interior joint."""

        segments = self.segments()
        n = len(self._points)
        joints = []
        for i in range(n):
            if not self._closed and (i == 0 or i == n - 1):
                continue
            incoming = segments[(i - 1) % n]
            outgoing = segments[i]
            joints.append((i, incoming.curvature(1.0), outgoing.curvature(0.0)))
        return joints

    def insert_on_segment(self, index: int, s: float) -> int:
        """Insert a smooth point on segment ``index`` at parameter ``s``.

        The new point's sides are fixed to the exact tangent and tensions of
        the split so the curve keeps its shape; the chain still needs a new
        solve.  A point inserted on a line splits it into two lines.  Returns
        the index of the inserted point.
        """

        segment = self.segment(index)
        if self.is_line(index):
            if not 0.0 < float(s) < 1.0:
                raise InvalidSubdivisionPoint(f"split point must lie in (0, 1), got {s!r}")
            position = index + 1
            self._points.insert(position, ControlPoint(segment.eval(s), line_out=True))
            self.invalidate()
            return position
        left, right = segment.split(s)
        angle = right.tangent_angle(0.0)
        point = ControlPoint(
            right.start,
            left=Fixed(angle, left.params.tension1),
            right=Fixed(angle, right.params.tension0),
            smooth=True,
        )
        position = index + 1
        self._points.insert(position, point)
        self.invalidate()
        return position

    def solve(self, options: Optional[SolveOptions] = None) -> SolveResult:
        from . import solve

        return solve(self, options)

    def __repr__(self) -> str:
        return f"Chain({len(self._points)} points, closed={self._closed}, solved={self._solved})"


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
    "params_between",
    "resolved_side",
]
