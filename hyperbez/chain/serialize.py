"""Plain-JSON mapping of chains, for the CLI and for debugging dumps.

Layout::

    {"closed": false,
     "points": [{"x": 0.0, "y": 0.0, "smooth": true,
                 "left": "auto",
                 "right": {"angle": 0.5, "tension": 1.0}}]}

A point with ``"line_out": true`` starts a straight segment; the key is
written only for such points.
An auto side may carry its solved values as
``{"auto": true, "angle": ..., "tension": ...}``; they are informational
and dropped on load because the loaded chain is unsolved.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

from ..errors import InvalidParameter
from ..shape import NATURAL_TENSION
from .model import Auto, Chain, ControlPoint, Fixed, Side

logger = logging.getLogger(__name__)


def _side_to_dict(side: Side, include_solved: bool) -> Any:
    if isinstance(side, Fixed):
        return {"angle": side.angle, "tension": side.tension}
    if include_solved and side.is_resolved:
        return {"auto": True, "angle": side.angle, "tension": side.tension}
    return "auto"


def _side_from_dict(data: Any, where: str) -> Side:
    if data is None or data == "auto":
        return Auto()
    if not isinstance(data, Mapping):
        raise InvalidParameter(f"{where}: expected 'auto' or an object, got {data!r}")
    if data.get("auto"):
        return Auto()
    if "angle" not in data:
        raise InvalidParameter(f"{where}: fixed side needs an 'angle'")
    return Fixed(data["angle"], data.get("tension", NATURAL_TENSION))


def chain_to_dict(chain: Chain, *, include_solved: bool = False) -> Dict[str, Any]:
    points = []
    for point in chain:
        x, y = point.position
        points.append(
            {
                "x": x,
                "y": y,
                "smooth": point.smooth,
                "left": _side_to_dict(point.left, include_solved),
                "right": _side_to_dict(point.right, include_solved),
            }
        )
        if point.line_out:
            points[-1]["line_out"] = True
    return {"closed": chain.is_closed, "points": points}


def chain_from_dict(data: Mapping[str, Any]) -> Chain:
    if not isinstance(data, Mapping):
        raise InvalidParameter(f"chain data must be an object, got {type(data).__name__}")
    raw_points = data.get("points")
    if not isinstance(raw_points, list):
        raise InvalidParameter("chain data needs a 'points' list")
    points = []
    for index, raw in enumerate(raw_points):
        where = f"point {index}"
        if isinstance(raw, Mapping):
            if "x" not in raw or "y" not in raw:
                raise InvalidParameter(f"{where}: missing 'x' or 'y'")
            position = (raw["x"], raw["y"])
            left = _side_from_dict(raw.get("left"), f"{where} left")
            right = _side_from_dict(raw.get("right"), f"{where} right")
            smooth = raw.get("smooth", True)
            line_out = raw.get("line_out", False)
        elif isinstance(raw, (list, tuple)) and len(raw) == 2:
            position, left, right, smooth, line_out = tuple(raw), Auto(), Auto(), True, False
        else:
            raise InvalidParameter(f"{where}: expected an object or an [x, y] pair, got {raw!r}")
        try:
            xy = (float(position[0]), float(position[1]))
            points.append(ControlPoint(xy, left, right, bool(smooth), bool(line_out)))
        except (TypeError, ValueError) as exc:
            if isinstance(exc, InvalidParameter):
                raise
            raise InvalidParameter(f"{where}: bad coordinates {position!r}") from exc
    logger.debug("chain_from_dict: loaded %d points", len(points))
    return Chain(points, closed=bool(data.get("closed", False)))


__all__ = ["chain_from_dict", "chain_to_dict"]
