import math
import time

import numpy as np
import pytest

from hyperbez import (
    Auto,
    Chain,
    ControlPoint,
    EndCondition,
    Fixed,
    InvalidParameter,
    InvalidSubdivisionPoint,
    SolveOptions,
    SolverDidNotConverge,
    UnsatisfiableConstraints,
    solve,
)
from hyperbez.shape import CUSP_TENSION


def _circle_point(radius, phi):
    return (radius * math.cos(phi), radius * math.sin(phi))


def _assert_g2(chain, tol=1e-6):
    segments = chain.segments()
    n = len(chain)
    for point, k_in, k_out in chain.joint_curvatures():
        if not chain.point(point).smooth:
            continue
        incoming = segments[(point - 1) % n]
        outgoing = segments[point]
        turn = incoming.tangent_angle(1.0) - outgoing.tangent_angle(0.0)
        assert math.cos(turn) == pytest.approx(1.0, abs=1e-12)
        assert k_in == pytest.approx(k_out, rel=tol, abs=tol)


def _zigzag_chain():
    return Chain.from_positions([(0.0, 0.0), (1.0, 0.4), (2.0, 0.1), (3.0, 0.5), (4.0, 0.0)])


def test_three_point_chain_with_fixed_ends():
    chain = Chain(
        [
            ControlPoint((0.0, 0.0), right=Fixed(math.atan2(0.5, 1.0))),
            ControlPoint((1.0, 0.5)),
            ControlPoint((2.0, 0.0), left=Fixed(math.atan2(-0.5, 1.0))),
        ]
    )

    result = solve(chain)

    assert result.iterations <= 20
    assert result.max_residual <= 1e-9
    assert chain.is_solved
    middle = chain.point(1)
    assert middle.left.angle == pytest.approx(0.0, abs=1e-9)
    assert middle.right.angle == pytest.approx(middle.left.angle)
    assert middle.left.tension == pytest.approx(1.0)
    _assert_g2(chain)
    # Both segments bend the same way: a C shape.
    k_first = chain.segment(0).curvature(0.5)
    k_second = chain.segment(1).curvature(0.5)
    assert k_first < 0.0 and k_second < 0.0


def test_asymmetric_three_point_chain_converges_quickly():
    chain = Chain(
        [
            ControlPoint((0.0, 0.0), right=Fixed(math.atan2(0.5, 1.0))),
            ControlPoint((1.0, 0.5)),
            ControlPoint((3.0, 0.0), left=Fixed(math.atan2(-0.5, 2.0))),
        ]
    )

    result = solve(chain)

    assert result.iterations <= 20
    _assert_g2(chain)


def test_two_point_chain_with_natural_end():
    chain = Chain([ControlPoint((0.0, 0.0), right=Fixed(0.3)), ControlPoint((2.0, 0.0))])

    solve(chain)

    segment = chain.segment(0)
    assert segment.curvature(1.0) == pytest.approx(0.0, abs=1e-8)
    assert segment.tangent_angle(0.0) == pytest.approx(0.3, abs=1e-9)


def test_five_point_circle_with_mixed_constraints():
    radius = 10.0
    phis = [0.0, 0.4, 0.9, 1.3, 1.8]
    tangent = [phi + math.pi / 2 for phi in phis]
    chain = Chain(
        [
            ControlPoint(_circle_point(radius, phis[0]), right=Fixed(tangent[0])),
            ControlPoint(_circle_point(radius, phis[1])),
            ControlPoint(_circle_point(radius, phis[2]), left=Fixed(tangent[2]), right=Auto()),
            ControlPoint(_circle_point(radius, phis[3])),
            ControlPoint(_circle_point(radius, phis[4]), left=Fixed(tangent[4])),
        ]
    )

    solve(chain)

    _assert_g2(chain)
    assert chain.point(2).right.angle == pytest.approx(tangent[2])
    assert chain.point(2).right.tension == pytest.approx(1.0, rel=1e-5)
    for segment in chain.segments():
        k0, k1 = segment.curvature_at_ends()
        assert k0 == pytest.approx(1.0 / radius, rel=1e-5)
        assert k1 == pytest.approx(1.0 / radius, rel=1e-5)


def test_twenty_point_circle_with_mixed_constraints():
    radius = 10.0
    phis = np.linspace(0.0, 1.5 * math.pi, 20)
    points = []
    for i, phi in enumerate(phis):
        tangent = Fixed(phi + math.pi / 2)
        if i == 0:
            points.append(ControlPoint(_circle_point(radius, phi), right=tangent))
        elif i == len(phis) - 1:
            points.append(ControlPoint(_circle_point(radius, phi), left=tangent))
        elif i % 4 == 0:
            points.append(ControlPoint(_circle_point(radius, phi), left=tangent))
        elif i % 7 == 0:
            points.append(ControlPoint(_circle_point(radius, phi), right=tangent))
        else:
            points.append(ControlPoint(_circle_point(radius, phi)))
    chain = Chain(points)

    result = solve(chain)

    assert len(result.segments) == 19
    _assert_g2(chain)
    for segment in result.segments:
        assert segment.curvature(0.5) == pytest.approx(1.0 / radius, rel=1e-5)


def test_closed_circle_of_auto_points():
    radius = 3.0
    chain = Chain.from_positions(
        [_circle_point(radius, 2 * math.pi * i / 6) for i in range(6)], closed=True
    )

    solve(chain)

    assert chain.segment_count == 6
    _assert_g2(chain)
    for segment in chain.segments():
        assert segment.curvature(0.0) == pytest.approx(1.0 / radius, rel=1e-6)


def test_open_chain_with_natural_ends():
    chain = _zigzag_chain()

    solve(chain)

    _assert_g2(chain)
    segments = chain.segments()
    assert segments[0].curvature(0.0) == pytest.approx(0.0, abs=1e-8)
    assert segments[-1].curvature(1.0) == pytest.approx(0.0, abs=1e-8)


def test_open_chain_with_constant_ends():
    chain = _zigzag_chain()

    solve(chain, SolveOptions(end_condition=EndCondition.CONSTANT))

    _assert_g2(chain)
    first, last = chain.segment(0), chain.segment(chain.segment_count - 1)
    assert first.curvature(0.0) == pytest.approx(first.curvature(1.0), rel=1e-6, abs=1e-8)
    assert last.curvature(1.0) == pytest.approx(last.curvature(0.0), rel=1e-6, abs=1e-8)


def test_corner_point_gets_end_conditions_on_both_sides():
    chain = Chain(
        [
            ControlPoint((0.0, 0.0), right=Fixed(0.4)),
            ControlPoint((1.0, 0.0), smooth=False),
            ControlPoint((2.0, 0.5), left=Fixed(0.2)),
        ]
    )

    solve(chain)

    assert chain.segment(0).curvature(1.0) == pytest.approx(0.0, abs=1e-8)
    assert chain.segment(1).curvature(0.0) == pytest.approx(0.0, abs=1e-8)


def test_custom_tension_policy_is_used():
    chain = Chain(
        [
            ControlPoint((0.0, 0.0), right=Fixed(0.4)),
            ControlPoint((1.0, 0.3)),
            ControlPoint((2.0, 0.0), left=Fixed(-0.4)),
        ]
    )

    solve(chain, SolveOptions(tension_policy=lambda th: 2.0))

    assert chain.point(1).left.tension == 2.0
    assert chain.point(1).right.tension == 2.0
    _assert_g2(chain)


def test_fixed_sides_are_not_mutated():
    start = Fixed(0.3, 1.5)
    chain = Chain([ControlPoint((0.0, 0.0), right=start), ControlPoint((1.0, 0.2)), ControlPoint((2.0, 0.0))])

    solve(chain)

    assert chain.point(0).right == Fixed(0.3, 1.5)
    assert chain.point(1).left.angle is not None


def test_edits_invalidate_the_solution():
    chain = _zigzag_chain()
    solve(chain)
    assert chain.point(2).left.angle is not None

    chain.move_point(2, (2.0, 0.2))

    assert not chain.is_solved
    assert chain.point(2).left.angle is None
    with pytest.raises(InvalidParameter):
        chain.segment(0)


def test_insert_on_segment_keeps_the_curve():
    chain = _zigzag_chain()
    solve(chain)
    expected = chain.segment(1).eval(0.5)

    index = chain.insert_on_segment(1, 0.5)

    assert index == 2
    assert len(chain) == 6
    assert np.allclose(chain.point(2).position, expected)
    assert isinstance(chain.point(2).left, Fixed)
    solve(chain)
    _assert_g2(chain)


def test_smooth_fixed_sides_with_a_kink_are_unsatisfiable():
    chain = Chain(
        [
            ControlPoint((0.0, 0.0), right=Fixed(0.5)),
            ControlPoint((1.0, 0.5), left=Fixed(0.0), right=Fixed(0.4)),
            ControlPoint((2.0, 0.0), left=Fixed(-0.5)),
        ]
    )

    with pytest.raises(UnsatisfiableConstraints) as excinfo:
        solve(chain)
    assert excinfo.value.points == (1,)


def test_fully_fixed_joint_without_curvature_match_is_unsatisfiable():
    chain = Chain(
        [
            ControlPoint((0.0, 0.0), right=Fixed(0.8)),
            ControlPoint((1.0, 1.0), left=Fixed(0.0), right=Fixed(0.0)),
            ControlPoint((3.0, 0.0), left=Fixed(-0.8)),
        ]
    )

    with pytest.raises(UnsatisfiableConstraints) as excinfo:
        solve(chain)
    assert 1 in excinfo.value.points
    assert not chain.is_solved


def test_iteration_bound_is_reported():
    chain = _zigzag_chain()

    with pytest.raises(SolverDidNotConverge) as excinfo:
        solve(chain, SolveOptions(max_iterations=1))

    assert excinfo.value.max_residual > 1e-9
    assert not chain.is_solved
    assert all(point.left.angle is None for point in chain)


def test_coincident_points_are_rejected():
    chain = Chain.from_positions([(0.0, 0.0), (1.0, 1.0), (1.0, 1.0)])
    with pytest.raises(InvalidParameter):
        solve(chain)


def test_single_point_chain_is_rejected():
    with pytest.raises(InvalidParameter):
        solve(Chain.from_positions([(0.0, 0.0)]))


def test_random_twenty_point_chain_finishes_quickly():
    rng = np.random.default_rng(5)
    points = []
    for i in range(20):
        position = (float(i), float(rng.uniform(-0.6, 0.6)))
        if i % 5 == 2:
            points.append(ControlPoint(position, left=Fixed(0.0), right=Auto()))
        else:
            points.append(ControlPoint(position))
    chain = Chain(points)

    started = time.perf_counter()
    try:
        solve(chain)
    except (SolverDidNotConverge, UnsatisfiableConstraints):
        assert not chain.is_solved
    else:
        _assert_g2(chain)
    assert time.perf_counter() - started < 60.0


def test_tension_pinned_at_the_band_edge_is_unsatisfiable():
    # The second segment is a convex arc, so its start curvature cannot
    # match the straight first segment for any legal tension.
    chain = Chain(
        [
            ControlPoint((0.0, 0.0), right=Fixed(0.0)),
            ControlPoint((1.0, 0.0), left=Fixed(0.0), right=Auto()),
            ControlPoint((2.0, 1.0), left=Fixed(math.pi / 2)),
        ]
    )

    with pytest.raises(UnsatisfiableConstraints) as excinfo:
        solve(chain)
    assert 1 in excinfo.value.points
    assert not chain.is_solved


def _chain_with_line(**middle):
    return Chain(
        [
            ControlPoint((0.0, 0.0)),
            ControlPoint((1.0, 0.5), line_out=True, **middle),
            ControlPoint((2.0, 0.5)),
            ControlPoint((3.0, 0.0)),
        ]
    )


def test_line_segment_between_curves():
    chain = _chain_with_line()

    solve(chain)

    assert chain.is_line(1)
    line = chain.segment(1)
    assert np.allclose(line.eval(0.5), (1.5, 0.5), atol=1e-12)
    assert line.curvature(0.5) == 0.0
    assert chain.segment(0).tangent_angle(1.0) == pytest.approx(0.0, abs=1e-9)
    assert chain.segment(2).tangent_angle(0.0) == pytest.approx(0.0, abs=1e-9)
    assert chain.point(1).right.angle == pytest.approx(0.0)
    assert chain.point(2).left.angle == pytest.approx(0.0)
    assert chain.segment(0).curvature(0.0) == pytest.approx(0.0, abs=1e-8)
    assert chain.segment(2).curvature(1.0) == pytest.approx(0.0, abs=1e-8)


def test_fixed_side_off_the_line_direction_is_unsatisfiable():
    chain = _chain_with_line(left=Fixed(0.3))

    with pytest.raises(UnsatisfiableConstraints) as excinfo:
        solve(chain)
    assert excinfo.value.points == (1,)


def test_smooth_point_between_lines_needs_one_direction():
    positions = [(0.0, 0.0), (1.0, 0.0), (2.0, 1.0)]
    chain = Chain([ControlPoint(p, line_out=True) for p in positions])

    with pytest.raises(UnsatisfiableConstraints):
        solve(chain)

    chain.set_smooth(1, False)
    result = solve(chain)
    assert result.iterations == 0
    assert chain.segment(1).tangent_angle(0.0) == pytest.approx(math.pi / 4)


def test_insert_on_line_splits_it_into_lines():
    chain = _chain_with_line()

    index = chain.insert_on_segment(1, 0.25)

    assert index == 2
    assert chain.point(2).position == pytest.approx((1.25, 0.5))
    assert chain.is_line(1) and chain.is_line(2)
    assert not chain.is_line(3)
    chain.set_line(2, False)
    assert not chain.is_line(2)


def test_points_are_handed_out_as_copies():
    chain = _zigzag_chain()
    solve(chain)

    point = chain.point(1)
    point.position = (9.0, 9.0)
    point.left.clear()
    point.line_out = True
    for each in chain:
        each.smooth = False
    chain.points[0].right = Fixed(1.0)

    assert chain.is_solved
    assert chain.point(1).position == (1.0, 0.4)
    assert chain.point(1).left.angle is not None
    assert not chain.is_line(1)
    assert all(p.smooth for p in chain.points)
    assert isinstance(chain.point(0).right, Auto)


def test_fixed_tension_above_cusp_is_clamped():
    assert Fixed(0.2, 50.0).tension == CUSP_TENSION


@pytest.mark.parametrize("s", [0.0, 1.0])
def test_insert_on_line_needs_an_interior_point(s):
    with pytest.raises(InvalidSubdivisionPoint):
        _chain_with_line().insert_on_segment(1, s)
