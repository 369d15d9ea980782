import math

import numpy as np
import pytest

from hyperbez import Hyperbezier, InvalidSubdivisionPoint, SegmentParams, split, subdivide
from hyperbez.shape import CUSP_TENSION, MIN_TENSION


def _random_cases(count, seed=7):
    rng = np.random.default_rng(seed)
    for _ in range(count):
        params = SegmentParams(
            rng.uniform(-0.8, 0.8),
            rng.uniform(-0.8, 0.8),
            rng.uniform(0.5, 2.5),
            rng.uniform(0.5, 2.5),
        )
        yield params, float(rng.uniform(0.2, 0.8))


@pytest.mark.parametrize("params, s_split", list(_random_cases(4)))
def test_split_children_reproduce_parent(params, s_split):
    parent = Hyperbezier(params, (0.0, 0.0), (2.0, 0.5))
    left, right = parent.split(s_split)

    assert np.allclose(left.end, parent.eval(s_split), atol=1e-12)
    assert np.allclose(right.start, left.end)

    for s in np.linspace(0.0, 1.0, 50):
        if s <= s_split:
            child, u = left, s / s_split
        else:
            child, u = right, (s - s_split) / (1.0 - s_split)
        expected = parent.evaluate(s)
        got = child.evaluate(u)
        assert np.allclose(got.position, expected.position, atol=1e-9)
        assert math.cos(got.tangent_angle - expected.tangent_angle) == pytest.approx(1.0, abs=1e-14)
        assert got.curvature == pytest.approx(expected.curvature, rel=1e-7, abs=1e-9)


def test_children_share_the_joint_tangent():
    params = SegmentParams(0.5, 0.3, 3.0, 0.7)
    parent = Hyperbezier(params, (0.0, 0.0), (1.0, 0.0))
    left, right = parent.split(0.4)

    assert left.tangent_angle(1.0) == pytest.approx(right.tangent_angle(0.0), abs=1e-10)
    assert left.curvature(1.0) == pytest.approx(right.curvature(0.0), rel=1e-8)
    assert left.arclength + right.arclength == pytest.approx(parent.arclength, rel=1e-10)


def test_natural_tension_is_preserved_by_split():
    left, right = split(SegmentParams(0.4, -0.2), 0.3)
    for child in (left, right):
        assert child.tension0 == 1.0
        assert child.tension1 == 1.0


def test_split_of_circular_arc_halves_the_angles():
    left, right = split(SegmentParams(0.6, 0.6), 0.5)
    for child in (left, right):
        assert child.th0 == pytest.approx(0.3, abs=1e-10)
        assert child.th1 == pytest.approx(0.3, abs=1e-10)


def test_subdivide_matches_subsegment():
    params = SegmentParams(0.3, 0.6, 1.8, 0.9)
    parent = Hyperbezier(params, (0.0, 0.0), (1.0, 1.0))
    middle = parent.subsegment(0.25, 0.75)

    assert middle.params == subdivide(params, 0.25, 0.75)
    assert np.allclose(middle.eval(0.5), parent.eval(0.5), atol=1e-9)
    assert subdivide(params, 0.0, 1.0) == params


@pytest.mark.parametrize("s", [0.0, 1.0, -0.2, 1.3, float("nan")])
def test_split_point_must_be_interior(s):
    with pytest.raises(InvalidSubdivisionPoint):
        split(SegmentParams(0.2, 0.2), s)


def test_subdivide_rejects_reversed_range():
    with pytest.raises(InvalidSubdivisionPoint):
        subdivide(SegmentParams(0.2, 0.2), 0.7, 0.3)


@pytest.mark.parametrize(
    "tensions",
    [(MIN_TENSION, CUSP_TENSION), (CUSP_TENSION, MIN_TENSION), (CUSP_TENSION, CUSP_TENSION), (MIN_TENSION, MIN_TENSION)],
)
@pytest.mark.parametrize("s_split", [0.1, 0.5, 0.9])
def test_split_at_the_edges_of_the_tension_band(tensions, s_split):
    parent = Hyperbezier(SegmentParams(0.5, -0.3, *tensions), (0.0, 0.0), (1.0, 0.0))
    left, right = parent.split(s_split)

    for child in (left, right):
        for tension in (child.params.tension0, child.params.tension1):
            assert MIN_TENSION <= tension <= CUSP_TENSION
    for s in np.linspace(0.0, 1.0, 21):
        if s <= s_split:
            child, u = left, s / s_split
        else:
            child, u = right, (s - s_split) / (1.0 - s_split)
        assert np.allclose(child.eval(u), parent.eval(s), atol=1e-9)
        assert child.curvature(u) == pytest.approx(parent.curvature(s), rel=1e-7, abs=1e-9)
