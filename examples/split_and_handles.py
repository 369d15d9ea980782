"""Example: convert Bézier-style handles to a hyperbezier, split it, export cubics."""

from hyperbez import Hyperbezier, from_control_points, to_control_points


def main() -> None:
    p0, c0, c1, p1 = (0.0, 0.0), (0.2, 0.6), (0.9, 0.7), (1.0, 0.0)
    params = from_control_points(p0, c0, c1, p1)
    print(f"Params: {params}")

    segment = Hyperbezier(params, p0, p1)
    left, right = segment.split(0.4)
    for name, part in (("left", left), ("right", right)):
        print(f"{name}: {part.params}")
        print(f"  control points: {to_control_points(part.params, part.start, part.end)}")

    cubics = segment.to_cubics(tolerance=1e-4)
    print(f"{len(cubics)} cubic piece(s) within 1e-4:")
    for cubic in cubics:
        print("  " + " ".join(f"({x:.5f}, {y:.5f})" for x, y in cubic))


if __name__ == "__main__":
    main()
