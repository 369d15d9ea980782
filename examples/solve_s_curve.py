"""Example: solve a small open chain and print the resulting segments."""

import math

from hyperbez import Chain, ControlPoint, Fixed, solve


def main() -> None:
    chain = Chain(
        [
            ControlPoint((0.0, 0.0), right=Fixed(math.atan2(0.5, 1.0))),
            ControlPoint((1.0, 0.5)),
            ControlPoint((2.0, -0.3)),
            ControlPoint((3.0, 0.0), left=Fixed(0.0)),
        ]
    )
    result = solve(chain)

    print(f"Solved in {result.iterations} iteration(s), max residual {result.max_residual:.3e}")
    for index, segment in enumerate(result.segments):
        params = segment.params
        k0, k1 = segment.curvature_at_ends()
        print(
            f"[{index}] th0={params.th0:+.6f} th1={params.th1:+.6f} "
            f"tension=({params.tension0:.4f}, {params.tension1:.4f}) k=({k0:+.6f}, {k1:+.6f})"
        )
    for point, k_in, k_out in chain.joint_curvatures():
        print(f"joint {point}: {k_in:+.9f} | {k_out:+.9f}")


if __name__ == "__main__":
    main()
