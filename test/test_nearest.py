"""test/test_nearest.py - 近邻索引测试"""
import math

import numpy as np
import pytest

from aitkin.nearest import NearestNeighbors


def _brute_k(points, q, k):
    d = np.linalg.norm(points - q, axis=1)
    order = np.argsort(d, kind='stable')[:k]
    return [(int(i), float(d[i])) for i in order]


class TestNearestNeighbors:

    def test_empty(self, space3d):
        nn = NearestNeighbors(space3d)
        assert nn.size == 0
        assert nn.nearest(np.zeros(3)) is None
        assert nn.nearest_k(np.zeros(3), 5) == []
        assert nn.nearest_r(np.zeros(3), 1.0) == []

    def test_matches_brute_force_across_rebuilds(self, space3d, rng):
        """KD 树前缀 + 暴力尾部的结果应与全量暴力一致"""
        nn = NearestNeighbors(space3d, rebuild_threshold=16, capacity=8)
        points = space3d.sample_uniform(rng, 300)
        for i, p in enumerate(points):
            nn.add(i, p)
        assert len(nn) == 300
        for q in space3d.sample_uniform(rng, 20):
            got = nn.nearest_k(q, 7)
            want = _brute_k(points, q, 7)
            assert [i for i, _ in got] == [i for i, _ in want]
            np.testing.assert_allclose([d for _, d in got], [d for _, d in want])

    def test_radius_query(self, space3d, rng):
        nn = NearestNeighbors(space3d, rebuild_threshold=10)
        points = space3d.sample_uniform(rng, 100)
        for i, p in enumerate(points):
            nn.add(i, p)
        q = np.zeros(3)
        got = nn.nearest_r(q, 5.0)
        d = np.linalg.norm(points - q, axis=1)
        assert sorted(i for i, _ in got) == sorted(np.nonzero(d <= 5.0)[0].tolist())
        dists = [x for _, x in got]
        assert dists == sorted(dists)

    def test_infinite_radius_returns_all(self, space3d, rng):
        nn = NearestNeighbors(space3d, rebuild_threshold=4)
        for i, p in enumerate(space3d.sample_uniform(rng, 30)):
            nn.add(i, p)
        assert len(nn.nearest_r(np.zeros(3), math.inf)) == 30

    def test_stores_ids_not_positions(self, space3d):
        nn = NearestNeighbors(space3d)
        nn.add(42, np.zeros(3))
        nn.add(7, np.ones(3))
        assert nn.list_ids() == [42, 7]
        assert nn.nearest(np.full(3, 0.9))[0] == 7

    def test_k_larger_than_size(self, space3d):
        nn = NearestNeighbors(space3d)
        nn.add(0, np.zeros(3))
        nn.add(1, np.ones(3))
        assert len(nn.nearest_k(np.zeros(3), 10)) == 2

    def test_clear(self, space3d):
        nn = NearestNeighbors(space3d, rebuild_threshold=1)
        for i in range(5):
            nn.add(i, np.full(3, float(i)))
        nn.clear()
        assert nn.size == 0
        assert nn.nearest(np.zeros(3)) is None

    def test_se2_metric(self, se2_space):
        nn = NearestNeighbors(se2_space)
        nn.add(0, np.array([0.0, 0.0, math.pi - 0.01]))
        nn.add(1, np.array([0.0, 0.0, 0.0]))
        vid, d = nn.nearest(np.array([0.0, 0.0, -math.pi + 0.01]))
        assert vid == 0
        assert d == pytest.approx(se2_space.distance(
            np.array([0.0, 0.0, math.pi - 0.01]),
            np.array([0.0, 0.0, -math.pi + 0.01])))
