"""Example: solve a closed chain and plot it (needs the ``plot`` extra)."""

import sys

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402

from hyperbez import Chain, solve  # noqa: E402


def main(path: str = "chain.png") -> None:
    positions = [(0.0, 0.0), (2.0, -0.4), (3.2, 0.8), (2.4, 2.2), (0.6, 2.0), (-0.4, 1.0)]
    chain = Chain.from_positions(positions, closed=True)
    chain.set_smooth(2, False)
    result = solve(chain)

    fig, (ax_curve, ax_k) = plt.subplots(1, 2, figsize=(9, 4))
    for index, segment in enumerate(result.segments):
        points, _, curvatures = segment.sample(64)
        ax_curve.plot(points[:, 0], points[:, 1], color="#1f77b4")
        ax_k.plot(index + np.linspace(0.0, 1.0, len(curvatures)), curvatures, color="#d62728")
    xs, ys = zip(*positions)
    ax_curve.scatter(xs, ys, c="black", s=20)
    ax_curve.set_aspect("equal", adjustable="box")
    ax_curve.set_title(f"{len(positions)} points, {result.iterations} iteration(s)")
    ax_k.set_xlabel("segment parameter")
    ax_k.set_ylabel("curvature")
    ax_k.grid(True, linestyle="--", linewidth=0.5, alpha=0.5)
    fig.tight_layout()
    fig.savefig(path)
    plt.close(fig)
    total = sum(segment.arclength for segment in result.segments)
    print(f"Wrote {path} (total length {total:.4f})")


if __name__ == "__main__":
    main(*sys.argv[1:2])
