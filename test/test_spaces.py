"""test/test_spaces.py - 状态空间测试"""
import math

import numpy as np
import pytest

from aitkin.errors import ConfigurationError
from aitkin.spaces import KinematicCarSpace, RealVectorSpace, SE2Space, wrap_angle


class TestWrapAngle:

    def test_identity_inside_range(self):
        assert wrap_angle(0.5) == pytest.approx(0.5)

    def test_wraps_positive(self):
        assert wrap_angle(math.pi + 0.1) == pytest.approx(-math.pi + 0.1)

    def test_wraps_negative(self):
        assert wrap_angle(-math.pi - 0.1) == pytest.approx(math.pi - 0.1)


class TestBoundsValidation:
    """非法边界必须抛出 ConfigurationError"""

    def test_shape_mismatch(self):
        with pytest.raises(ConfigurationError):
            RealVectorSpace([0, 0], [1, 1, 1])

    def test_zero_dimensions(self):
        with pytest.raises(ConfigurationError):
            RealVectorSpace([], [])

    def test_low_greater_than_high(self):
        with pytest.raises(ConfigurationError):
            RealVectorSpace([0, 2], [1, 1])

    def test_non_finite(self):
        with pytest.raises(ConfigurationError):
            RealVectorSpace([0, -math.inf], [1, 1])

    def test_zero_size_space(self):
        with pytest.raises(ConfigurationError):
            RealVectorSpace([1, 1], [1, 1])

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            RealVectorSpace([1, 1], [1, 1])

    def test_partially_degenerate_accepted(self):
        space = RealVectorSpace([0, 5], [10, 5])
        assert space.measure() == pytest.approx(10.0)


class TestRealVectorSpace:

    def test_distance(self, space3d):
        assert space3d.distance(np.zeros(3), np.array([3.0, 4.0, 0.0])) == pytest.approx(5.0)

    def test_distances_batch(self, space3d):
        batch = np.array([[1.0, 0, 0], [0, 2.0, 0]])
        np.testing.assert_allclose(space3d.distances(np.zeros(3), batch), [1.0, 2.0])

    def test_sample_uniform_in_bounds(self, space3d, rng):
        samples = space3d.sample_uniform(rng, 500)
        assert samples.shape == (500, 3)
        assert np.all(samples >= -10.0) and np.all(samples <= 10.0)

    def test_degenerate_dimension_sampled_at_bound(self, rng):
        space = RealVectorSpace([0, 5], [10, 5])
        samples = space.sample_uniform(rng, 50)
        np.testing.assert_allclose(samples[:, 1], 5.0)

    def test_interpolate_midpoint(self, space3d):
        mid = space3d.interpolate(np.zeros(3), np.array([2.0, 4.0, 6.0]), 0.5)
        np.testing.assert_allclose(mid, [1.0, 2.0, 3.0])

    def test_enforce_and_satisfy_bounds(self, space3d):
        s = np.array([11.0, -12.0, 0.0])
        assert not space3d.satisfies_bounds(s)
        clipped = space3d.enforce_bounds(s)
        np.testing.assert_allclose(clipped, [10.0, -10.0, 0.0])
        assert space3d.satisfies_bounds(clipped)

    def test_measure(self, space3d):
        assert space3d.measure() == pytest.approx(8000.0)

    def test_bounds_are_copies(self, space3d):
        low, high = space3d.bounds
        low[0] = 99.0
        assert space3d.low[0] == -10.0
        np.testing.assert_allclose(high, [10.0] * 3)


class TestSE2Space:

    def test_position_dims(self, se2_space):
        assert se2_space.position_dims == (0, 1)

    def test_yaw_distance_wraps(self, se2_space):
        a = np.array([0.0, 0.0, math.pi - 0.05])
        b = np.array([0.0, 0.0, -math.pi + 0.05])
        # 跨越 ±pi 的两个航向角很接近
        assert se2_space.distance(a, b) < 0.2

    def test_embedding_matches_distance(self, se2_space, rng):
        a = se2_space.sample_uniform(rng)
        b = se2_space.sample_uniform(rng)
        emb = np.linalg.norm(se2_space.embed(a) - se2_space.embed(b))
        assert se2_space.distance(a, b) == pytest.approx(emb)

    def test_interpolate_takes_short_way(self, se2_space):
        a = np.array([0.0, 0.0, math.pi - 0.1])
        b = np.array([2.0, 0.0, -math.pi + 0.1])
        mid = se2_space.interpolate(a, b, 0.5)
        assert mid[0] == pytest.approx(1.0)
        assert abs(abs(mid[2]) - math.pi) < 1e-9

    def test_satisfies_bounds_wraps_yaw(self, se2_space):
        assert se2_space.satisfies_bounds(np.array([0.0, 0.0, 3 * math.pi / 2]))

    def test_requires_three_dims(self):
        with pytest.raises(ConfigurationError):
            SE2Space([0, 0], [1, 1])


class TestKinematicCarSpace:

    def test_dimension(self, car_space):
        assert car_space.dimension == 4
        assert car_space.embedding_dimension == 5

    def test_velocity_weight(self):
        space = KinematicCarSpace([-1, -1, -math.pi, -1], [1, 1, math.pi, 1],
                                  velocity_weight=2.0)
        a = np.array([0.0, 0.0, 0.0, 0.0])
        b = np.array([0.0, 0.0, 0.0, 0.5])
        assert space.distance(a, b) == pytest.approx(1.0)

    def test_requires_four_dims(self):
        with pytest.raises(ConfigurationError):
            KinematicCarSpace([0, 0, 0], [1, 1, 1])
