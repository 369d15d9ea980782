import argparse
import json
import logging
import math
from pathlib import Path
from typing import List, Optional, Sequence

from hyperbez import (
    EndCondition,
    HyperbezError,
    Hyperbezier,
    SolveOptions,
    chain_from_dict,
    get_solve_options,
    solve,
)

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(levelname)s:%(name)s:%(message)s",
    )


def _svg_document(segments: List[Hyperbezier], samples: int) -> str:
    polylines = []
    xs: List[float] = []
    ys: List[float] = []
    for segment in segments:
        points, _, _ = segment.sample(samples)
        xs.extend(points[:, 0])
        ys.extend(points[:, 1])
        # SVG's y axis points down.
        coords = " ".join(f"{x:.6g},{-y:.6g}" for x, y in points)
        polylines.append(f'  <polyline fill="none" stroke="black" stroke-width="{{stroke}}" points="{coords}"/>')
    x0, x1 = min(xs), max(xs)
    y0, y1 = -max(ys), -min(ys)
    size = max(x1 - x0, y1 - y0, 1e-9)
    pad = 0.05 * size
    stroke = f"{size / 400:.6g}"
    view_box = f"{x0 - pad:.6g} {y0 - pad:.6g} {x1 - x0 + 2 * pad:.6g} {y1 - y0 + 2 * pad:.6g}"
    body = "\n".join(line.replace("{stroke}", stroke) for line in polylines)
    return f'<svg xmlns="http://www.w3.org/2000/svg" viewBox="{view_box}">\n{body}\n</svg>\n'


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Solve a hyperbezier chain from JSON")
    parser.add_argument("path", help="Path to the chain JSON file")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging level (default: WARNING)",
    )
    parser.add_argument(
        "--end-condition",
        choices=[condition.value for condition in EndCondition],
        help="Curvature condition at auto open ends (default: natural)",
    )
    parser.add_argument(
        "--max-iterations",
        type=int,
        help="Bound on solver function evaluations",
    )
    parser.add_argument(
        "--svg",
        help="Write a sampled SVG preview of the solved chain to the given path",
    )
    parser.add_argument(
        "--samples",
        type=int,
        default=32,
        help="Samples per segment for the SVG preview (default: 32)",
    )
    args = parser.parse_args(argv)

    _configure_logging(args.log_level)

    with open(args.path) as fin:
        data = json.load(fin)

    options: SolveOptions = get_solve_options()
    if args.end_condition:
        options.end_condition = EndCondition(args.end_condition)
    if args.max_iterations is not None:
        options.max_iterations = args.max_iterations

    try:
        chain = chain_from_dict(data)
        result = solve(chain, options)
    except HyperbezError as exc:
        logger.error("Solve failed: %s", exc)
        raise SystemExit(1) from exc

    print(f"solved {len(chain)} points in {result.iterations} iteration(s), max residual {result.max_residual:.3e}")
    for index, segment in enumerate(result.segments):
        params = segment.params
        k0, k1 = segment.curvature_at_ends()
        print(
            f"segment {index}: th0={math.degrees(params.th0):.4f}deg th1={math.degrees(params.th1):.4f}deg "
            f"tension0={params.tension0:.6g} tension1={params.tension1:.6g} "
            f"length={segment.arclength:.6g} k0={k0:.6g} k1={k1:.6g}"
        )
    for point, k_in, k_out in chain.joint_curvatures():
        print(f"joint {point}: k_in={k_in:.9g} k_out={k_out:.9g}")

    if args.svg:
        Path(args.svg).write_text(_svg_document(result.segments, max(args.samples, 2)))
        logger.info("Wrote SVG preview to %s", args.svg)


if __name__ == "__main__":
    main()
