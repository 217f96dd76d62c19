"""test/test_sampling.py - 批量采样测试"""
import math

import numpy as np
import pytest

from aitkin.collision import FunctionValidityChecker
from aitkin.sampling import (
    SampleGenerator,
    informed_measure,
    rotation_to_world,
    unit_ball_measure,
)
from aitkin.spaces import RealVectorSpace


class TestHelpers:

    def test_unit_ball_measure(self):
        assert unit_ball_measure(1) == pytest.approx(2.0)
        assert unit_ball_measure(2) == pytest.approx(math.pi)
        assert unit_ball_measure(3) == pytest.approx(4.0 / 3.0 * math.pi)

    def test_rotation_aligns_major_axis(self):
        start = np.array([0.0, 0.0, 0.0])
        goal = np.array([0.0, 3.0, 4.0])
        rot = rotation_to_world(start, goal)
        np.testing.assert_allclose(rot @ np.array([1.0, 0, 0]), [0.0, 0.6, 0.8], atol=1e-9)
        np.testing.assert_allclose(rot @ rot.T, np.eye(3), atol=1e-9)

    def test_rotation_identity_for_coincident_foci(self):
        np.testing.assert_array_equal(rotation_to_world(np.ones(2), np.ones(2)), np.eye(2))


class TestInformedMeasure:

    def test_falls_back_to_space_measure(self, space3d):
        assert informed_measure(space3d, math.inf, np.zeros(3), np.ones(3)) == pytest.approx(8000.0)

    def test_prolate_volume(self, space2d):
        start = np.array([2.0, 5.0])
        goal = np.array([8.0, 5.0])
        # c_best = 10, c_min = 6 → 半轴 5 和 4
        assert informed_measure(space2d, 10.0, start, goal) == pytest.approx(math.pi * 20.0)

    def test_capped_by_space(self, space2d):
        start = np.array([2.0, 5.0])
        goal = np.array([8.0, 5.0])
        assert informed_measure(space2d, 1000.0, start, goal) == pytest.approx(100.0)


class TestSampleGenerator:

    def test_uniform_batch(self, space3d, rng):
        gen = SampleGenerator(space3d, None, rng)
        batch = gen.generate_batch(100)
        assert len(batch) == 100
        assert all(space3d.satisfies_bounds(s) for s in batch)

    def test_informed_samples_inside_ellipse(self, space3d, rng):
        """informed 采样点到两焦点的距离和不超过 c_best"""
        start = np.array([0.0, 0.0, 0.0])
        goal = np.array([5.0, 0.0, 0.0])
        gen = SampleGenerator(space3d, None, rng)
        batch = gen.generate_batch(300, best_cost=6.0, start=start, goal=goal)
        for s in batch:
            total = np.linalg.norm(s - start) + np.linalg.norm(s - goal)
            assert total <= 6.0 + 1e-9

    def test_informed_only_constrains_position_dims(self, se2_space, rng):
        start = np.array([0.0, 0.0, 0.0])
        goal = np.array([4.0, 0.0, 0.0])
        gen = SampleGenerator(se2_space, None, rng)
        batch = np.array(gen.generate_batch(300, best_cost=5.0, start=start, goal=goal))
        pos = batch[:, :2]
        total = (np.linalg.norm(pos - start[:2], axis=1)
                 + np.linalg.norm(pos - goal[:2], axis=1))
        assert np.all(total <= 5.0 + 1e-9)
        # 航向角仍在整个区间内均匀分布
        assert batch[:, 2].min() < -2.0 and batch[:, 2].max() > 2.0

    def test_informed_clamps_when_ellipse_leaves_bounds(self, rng):
        space = RealVectorSpace([0.0, 0.0], [1.0, 1.0])
        gen = SampleGenerator(space, None, rng)
        start = np.array([0.0, 0.0])
        goal = np.array([0.0, 0.0])
        # 以原点为中心、半径 50 的圆几乎全部在边界外
        batch = gen.generate_batch(20, best_cost=100.0, start=start, goal=goal)
        assert all(space.satisfies_bounds(s) for s in batch)
        assert gen.n_clamped > 0

    def test_degenerate_bounds_no_error(self, rng):
        space = RealVectorSpace([0.0, 3.0], [1.0, 3.0])
        gen = SampleGenerator(space, None, rng)
        batch = gen.generate_batch(10)
        assert all(s[1] == 3.0 for s in batch)

    def test_valid_sampler(self, space3d, rng):
        checker = FunctionValidityChecker(lambda s: s[0] > 0.0, space3d)
        gen = SampleGenerator(space3d, checker, rng, max_valid_attempts=100)
        batch = gen.generate_batch(50, use_valid_sampler=True)
        assert all(s[0] > 0.0 for s in batch)

    def test_valid_sampler_keeps_last_draw(self, space3d, all_invalid, rng):
        gen = SampleGenerator(space3d, all_invalid, rng, max_valid_attempts=3)
        batch = gen.generate_batch(5, use_valid_sampler=True)
        assert len(batch) == 5
        assert all_invalid.n_checks == 10

    def test_reproducible(self, space3d):
        a = SampleGenerator(space3d, None, np.random.default_rng(1)).generate_batch(5)
        b = SampleGenerator(space3d, None, np.random.default_rng(1)).generate_batch(5)
        np.testing.assert_array_equal(np.array(a), np.array(b))
