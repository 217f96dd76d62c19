"""
aitkin/geometric_builder.py - 几何图 (RGG) 构建

把每轮的采样增量插入无向几何图：
- 与已有顶点距离小于 min_dist_between_vertices 的采样整体丢弃
- 新顶点连接 k 近邻 (默认) 或半径 r 内的邻居，最多 max_neighbors 个
- 长于 max_dist_between_vertices 的候选边丢弃
- 边权即状态空间距离，边本身不做有效性检测 (搜索时惰性检测)

每轮扩展后重新连接目标顶点的邻域，保证目标不会孤立。

连接半径与邻居数随累计采样数 n 变化 (AIT* / BIT* 的 RGG 策略)::

    r(n) = 2·η·((1 + 1/d)·(λ(X)/ζ_d)·(log n / n))^(1/d)
    k(n) = ceil(η·(e + e/d)·log n)
"""

from __future__ import annotations

import logging
import math
from typing import List, Sequence

import numpy as np

from .graph import INF, Graph
from .models import PlannerConfig
from .nearest import NearestNeighbors
from .sampling import unit_ball_measure

logger = logging.getLogger(__name__)


def compute_connection_radius(
    n: int,
    dim: int,
    measure: float,
    rewire_factor: float = 1.0,
) -> float:
    """RGG 连接半径 r(n)，n < 2 时返回 inf"""
    if n < 2:
        return math.inf
    d = float(dim)
    return (2.0 * rewire_factor
            * ((1.0 + 1.0 / d) * (measure / unit_ball_measure(dim))
               * (math.log(n) / n)) ** (1.0 / d))


def compute_number_of_neighbors(
    n: int,
    dim: int,
    rewire_factor: float = 1.0,
) -> int:
    """RGG 邻居数 k(n)，至少为 1"""
    if n < 2:
        return 1
    k = math.ceil(rewire_factor * (math.e + math.e / dim) * math.log(n))
    return max(1, int(k))


class GeometricGraphBuilder:
    """几何图构建器

    Args:
        config: 规划器配置 (邻居数上限、顶点/边距离阈值、连边模式)

    Example:
        >>> builder = GeometricGraphBuilder(config)
        >>> n_added = builder.expand(samples, graph, nn, radius=1.5, k=12)
        >>> builder.ensure_goal_connectivity(goal_id, graph, nn, k=12)
    """

    def __init__(self, config: PlannerConfig) -> None:
        self.config = config
        self.n_rejected = 0

    def _neighbors(
        self,
        state: np.ndarray,
        nn: NearestNeighbors,
        radius: float,
        k: int,
    ):
        cap = self.config.max_neighbors
        if self.config.use_k_nearest:
            if cap > 0:
                k = min(k, cap)
            return nn.nearest_k(state, k)
        near = nn.nearest_r(state, radius)
        if cap > 0:
            near = near[:cap]
        return near

    def _connect(self, vid: int, graph: Graph, neighbors) -> int:
        max_d = self.config.max_dist_between_vertices
        n_edges = 0
        for nid, dist in neighbors:
            if nid == vid or (max_d > 0.0 and dist > max_d):
                continue
            w = INF if graph.vertex(nid).blacklisted else dist
            if graph.add_edge(vid, nid, w):
                n_edges += 1
        return n_edges

    def expand(
        self,
        samples: Sequence[np.ndarray],
        graph: Graph,
        nn: NearestNeighbors,
        radius: float,
        k: int,
    ) -> List[int]:
        """插入一批采样

        Returns:
            新加入顶点的 id 列表
        """
        min_d = self.config.min_dist_between_vertices
        added = []
        n_edges = 0
        for state in samples:
            nearest = nn.nearest(state)
            if nearest is not None and nearest[1] < min_d:
                self.n_rejected += 1
                continue
            neighbors = self._neighbors(state, nn, radius, k)
            vid = graph.add_vertex(state)
            n_edges += self._connect(vid, graph, neighbors)
            nn.add(vid, state)
            added.append(vid)
        logger.debug("GeometricGraphBuilder: +%d 顶点, +%d 边 (r=%.3f, k=%d), "
                     "累计拒绝 %d", len(added), n_edges, radius, k,
                     self.n_rejected)
        return added

    def connect_neighborhood(
        self,
        vid: int,
        graph: Graph,
        nn: NearestNeighbors,
        k: int,
    ) -> int:
        """把顶点 vid 重新连接到其当前的 k 个最近邻

        所有候选都超过 max_dist_between_vertices 时仍连接最近的一个，
        保证图中有其他顶点时 vid 不会孤立。

        Returns:
            新增边数
        """
        state = graph.vertex(vid).state
        neighbors = [(nid, d) for nid, d in nn.nearest_k(state, k + 1)
                     if nid != vid][:k]
        n_edges = self._connect(vid, graph, neighbors)
        if graph.degree(vid) == 0 and neighbors:
            nid, dist = neighbors[0]
            w = INF if graph.vertex(nid).blacklisted else dist
            if graph.add_edge(vid, nid, w):
                n_edges += 1
        return n_edges

    def ensure_goal_connectivity(
        self,
        goal_id: int,
        graph: Graph,
        nn: NearestNeighbors,
        k: int,
    ) -> int:
        n_edges = self.connect_neighborhood(goal_id, graph, nn, k)
        if n_edges:
            logger.debug("目标顶点新增 %d 条边, 度数 %d", n_edges,
                         graph.degree(goal_id))
        return n_edges
