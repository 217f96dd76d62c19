"""test/test_search.py - 启发式预计算与碰撞检测搜索测试"""
import math

import numpy as np
import pytest

from aitkin.collision import AllInvalidChecker, AllValidChecker, FunctionValidityChecker
from aitkin.errors import ConfigurationError
from aitkin.graph import Graph
from aitkin.search import (
    Found,
    NotFound,
    collision_checked_search,
    precompute_heuristic,
    reconstruct_path,
)
from aitkin.spaces import RealVectorSpace

SQ2 = math.sqrt(2.0)


@pytest.fixture()
def plane():
    return RealVectorSpace([-5.0, -5.0], [5.0, 5.0])


@pytest.fixture()
def two_route_graph():
    """起点 0 → 目标 1，下方路线 0-2-3-1 (代价 3)，上方路线 0-4-5-1 (代价 1+2√2)"""
    g = Graph()
    for p in [(0, 0), (3, 0), (1, 0), (2, 0), (1, 1), (2, 1)]:
        g.add_vertex(np.array(p, dtype=float))
    g.add_edge(0, 2, 1.0)
    g.add_edge(2, 3, 1.0)
    g.add_edge(3, 1, 1.0)
    g.add_edge(0, 4, SQ2)
    g.add_edge(4, 5, 1.0)
    g.add_edge(5, 1, SQ2)
    return g


class TestPrecomputeHeuristic:

    def test_dijkstra_values(self, two_route_graph):
        settled = precompute_heuristic(two_route_graph, 1)
        g = [v.g for v in two_route_graph.vertices]
        np.testing.assert_allclose(g, [3.0, 0.0, 2.0, 1.0, 1.0 + SQ2, SQ2])
        assert settled == 6

    def test_ignores_infinite_edges(self, two_route_graph):
        two_route_graph.set_weight(2, 3, math.inf)
        precompute_heuristic(two_route_graph, 1)
        # 2 只能经起点绕上方路线
        assert two_route_graph.vertex(2).g == pytest.approx(2.0 + 2 * SQ2)
        assert two_route_graph.vertex(0).g == pytest.approx(1.0 + 2 * SQ2)

    def test_unreachable_is_inf(self, two_route_graph):
        two_route_graph.add_vertex(np.array([4.0, 4.0]))
        precompute_heuristic(two_route_graph, 1)
        assert math.isinf(two_route_graph.vertex(6).g)

    def test_ignores_validity(self, two_route_graph):
        two_route_graph.vertex(2).blacklisted = True
        precompute_heuristic(two_route_graph, 1)
        assert two_route_graph.vertex(0).g == pytest.approx(3.0)

    def test_directed_uses_reversed_edges(self):
        g = Graph(directed=True)
        for x in (0.0, 2.0, 1.0, 3.0):
            g.add_vertex(np.array([x]))
        g.add_edge(0, 2, 1.0)
        g.add_edge(2, 1, 1.0)
        g.add_edge(1, 3, 1.0)
        precompute_heuristic(g, 1)
        assert g.vertex(0).g == pytest.approx(2.0)
        assert math.isinf(g.vertex(3).g)

    def test_astar_lower_bounds(self, two_route_graph, plane):
        precompute_heuristic(two_route_graph, 1)
        exact = [v.g for v in two_route_graph.vertices]
        precompute_heuristic(two_route_graph, 1, 'astar', start_id=0,
                             distance=plane.distance)
        approx = [v.g for v in two_route_graph.vertices]
        assert approx[0] == pytest.approx(3.0)
        for a, e in zip(approx, exact):
            assert a <= e + 1e-9

    def test_astar_requires_start(self, two_route_graph):
        with pytest.raises(ConfigurationError):
            precompute_heuristic(two_route_graph, 1, 'astar')

    def test_unknown_strategy(self, two_route_graph):
        with pytest.raises(ConfigurationError):
            precompute_heuristic(two_route_graph, 1, 'bfs')


class TestCollisionCheckedSearch:

    def test_finds_shortest(self, two_route_graph, plane):
        precompute_heuristic(two_route_graph, 1)
        res = collision_checked_search(two_route_graph, 0, 1, AllValidChecker(plane))
        assert isinstance(res, Found) and res.found
        assert res.path == [0, 2, 3, 1]
        assert res.cost == pytest.approx(3.0)
        assert two_route_graph.vertex(1).cost_to_come == pytest.approx(3.0)
        assert two_route_graph.vertex(0).cost_to_come == 0.0

    def test_invalid_vertex_blacklisted_and_search_continues(self, two_route_graph, plane):
        checker = FunctionValidityChecker(
            lambda s: not np.allclose(s, [1.0, 0.0]), plane)
        precompute_heuristic(two_route_graph, 1)
        res = collision_checked_search(two_route_graph, 0, 1, checker)
        assert res.path == [0, 4, 5, 1]
        assert res.cost == pytest.approx(1.0 + 2 * SQ2)
        assert two_route_graph.vertex(2).blacklisted
        assert math.isinf(two_route_graph.weight(0, 2))

    def test_validated_vertices_not_rechecked(self, two_route_graph, plane):
        checker = AllValidChecker(plane)
        precompute_heuristic(two_route_graph, 1)
        collision_checked_search(two_route_graph, 0, 1, checker)
        n = checker.n_checks
        collision_checked_search(two_route_graph, 0, 1, checker)
        assert checker.n_checks == n

    def test_start_never_checked(self, two_route_graph, plane):
        checker = FunctionValidityChecker(lambda s: not np.allclose(s, [0.0, 0.0]), plane)
        precompute_heuristic(two_route_graph, 1)
        res = collision_checked_search(two_route_graph, 0, 1, checker)
        assert isinstance(res, Found)
        assert not two_route_graph.vertex(0).blacklisted

    def test_invalid_goal_not_accepted_nor_blacklisted(self, two_route_graph, plane):
        checker = FunctionValidityChecker(lambda s: not np.allclose(s, [3.0, 0.0]), plane)
        precompute_heuristic(two_route_graph, 1)
        res = collision_checked_search(two_route_graph, 0, 1, checker)
        assert isinstance(res, NotFound) and not res.found
        assert not two_route_graph.vertex(1).blacklisted

    def test_fully_blocked(self, two_route_graph, plane):
        precompute_heuristic(two_route_graph, 1)
        res = collision_checked_search(two_route_graph, 0, 1, AllInvalidChecker(plane))
        assert isinstance(res, NotFound)
        assert two_route_graph.vertex(2).blacklisted
        assert two_route_graph.vertex(4).blacklisted
        assert not two_route_graph.vertex(0).blacklisted

    def test_fully_blocked_with_edge_checks(self, two_route_graph, plane):
        """边检测模式下无效端点同样进黑名单"""
        precompute_heuristic(two_route_graph, 1)
        res = collision_checked_search(two_route_graph, 0, 1, AllInvalidChecker(plane),
                                       check_edges=True)
        assert isinstance(res, NotFound)
        assert two_route_graph.vertex(2).blacklisted
        assert two_route_graph.vertex(4).blacklisted
        assert two_route_graph.n_blacklisted() == 2

    def test_start_unreachable_returns_without_checks(self, plane):
        g = Graph()
        g.add_vertex(np.zeros(2))
        g.add_vertex(np.ones(2))
        checker = AllValidChecker(plane)
        precompute_heuristic(g, 1)
        assert isinstance(collision_checked_search(g, 0, 1, checker), NotFound)
        assert checker.n_checks == 0

    def test_lazy_edge_check(self, two_route_graph, plane):
        """边 2-3 穿过无效区; 顶点本身都有效"""
        checker = FunctionValidityChecker(
            lambda s: not (1.3 < s[0] < 1.7 and abs(s[1]) < 0.2), plane, resolution=0.05)
        precompute_heuristic(two_route_graph, 1)
        res = collision_checked_search(two_route_graph, 0, 1, checker,
                                       check_edges=False)
        assert res.path == [0, 2, 3, 1]

        precompute_heuristic(two_route_graph, 1)
        res = collision_checked_search(two_route_graph, 0, 1, checker,
                                       check_edges=True)
        assert res.path == [0, 4, 5, 1]
        assert math.isinf(two_route_graph.weight(2, 3))
        assert two_route_graph.edge_validated(0, 4)


class TestReconstructPath:

    def test_walks_back_to_start(self):
        pred = {0: 0, 2: 0, 3: 2, 1: 3}
        assert reconstruct_path(pred, 1, 0) == [0, 2, 3, 1]

    def test_start_equals_goal(self):
        assert reconstruct_path({0: 0}, 0, 0) == [0]

    def test_broken_chain(self):
        with pytest.raises(ValueError):
            reconstruct_path({5: 5, 1: 5}, 1, 0)


class TestGoalRegion:
    """控制图: 目标顶点本身不可达, 终点是 goal_region 中的顶点"""

    @pytest.fixture()
    def region_graph(self):
        g = Graph(directed=True)
        for x in (0.0, 3.0, 1.0, 2.0, 2.5):
            g.add_vertex(np.array([x]))
        g.add_edge(0, 2, 1.0)
        g.add_edge(2, 3, 1.0)
        g.add_edge(2, 4, 2.0)
        g.mark_goal_region(3)
        g.mark_goal_region(4)
        return g

    def test_region_vertices_are_sources(self, region_graph):
        precompute_heuristic(region_graph, 1)
        assert region_graph.vertex(3).g == 0.0
        assert region_graph.vertex(4).g == 0.0
        assert region_graph.vertex(0).g == pytest.approx(2.0)

    def test_search_ends_in_region(self, region_graph):
        space = RealVectorSpace([-5.0], [5.0])
        precompute_heuristic(region_graph, 1)
        res = collision_checked_search(region_graph, 0, 1, AllValidChecker(space))
        assert isinstance(res, Found)
        assert res.path == [0, 2, 3]
        assert res.cost == pytest.approx(2.0)
        assert math.isinf(region_graph.vertex(1).cost_to_come)
