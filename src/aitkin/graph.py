"""
aitkin/graph.py - 顶点表 + 整数 id 的加权图

顶点存储在列表中，顶点 id 即列表下标，是图与近邻索引之间的交叉引用键。
顶点一旦加入不会删除：被判无效的顶点只打上 blacklisted 标记，
并把所有关联边的权重置为 inf，避免已分发出去的 id 失效。

几何图是无向图；控制图是有向图，边的方向即控制量的执行方向。
同一对顶点之间不允许重复边。

控制图的终点是一个区域: 末端落在目标容差内的顶点记入 goal_region，
搜索到达其中任一顶点即成功，不存在指向目标状态的直线边。
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Set, Tuple

import numpy as np

INF = math.inf


@dataclass
class Vertex:
    """图顶点

    Attributes:
        id: 顶点在所属图中的下标
        state: 状态
        control: 产生该状态的控制量（几何图顶点、起点、终点为 None）
        control_duration: 控制量持续的积分步数
        g: 启发式预计算得到的到目标代价（下界），不可达为 inf
        cost_to_come: 最近一次碰撞检测搜索中从起点到达的代价
        blacklisted: 状态在此前的搜索中未通过有效性检测
        validated: 状态已通过有效性检测（无需再次检测）
        parent: 控制图中扩展出该顶点的源顶点 (-1 表示无)
    """
    id: int
    state: np.ndarray
    control: Optional[np.ndarray] = None
    control_duration: int = 0
    g: float = INF
    cost_to_come: float = INF
    blacklisted: bool = False
    validated: bool = False
    parent: int = -1


class Graph:
    """加权图

    Args:
        directed: True 为有向图 (控制图)

    Example:
        >>> g = Graph()
        >>> a = g.add_vertex(np.zeros(2))
        >>> b = g.add_vertex(np.ones(2))
        >>> g.add_edge(a, b, 1.414)
        True
        >>> g.add_edge(b, a, 1.414)   # 无向图中的重复边
        False
    """

    def __init__(self, directed: bool = False) -> None:
        self.directed = directed
        self.vertices: List[Vertex] = []
        self._out: List[Dict[int, float]] = []
        self._in: List[Dict[int, float]] = []
        self._n_edges = 0
        self._checked_edges: Set[Tuple[int, int]] = set()
        # 目标区域: 搜索可在这些顶点终止 (控制图无法精确到达目标状态)
        self.goal_region: Set[int] = set()

    # ── 顶点 ──

    @property
    def n_vertices(self) -> int:
        return len(self.vertices)

    def __len__(self) -> int:
        return len(self.vertices)

    def add_vertex(
        self,
        state: np.ndarray,
        control: Optional[np.ndarray] = None,
        control_duration: int = 0,
        parent: int = -1,
        validated: bool = False,
    ) -> int:
        vid = len(self.vertices)
        self.vertices.append(Vertex(
            id=vid,
            state=np.asarray(state, dtype=np.float64),
            control=control,
            control_duration=int(control_duration),
            parent=parent,
            validated=validated,
        ))
        self._out.append({})
        self._in.append(self._out[-1] if not self.directed else {})
        return vid

    def vertex(self, vid: int) -> Vertex:
        return self.vertices[vid]

    def states(self) -> np.ndarray:
        if not self.vertices:
            return np.empty((0, 0), dtype=np.float64)
        return np.array([v.state for v in self.vertices])

    # ── 边 ──

    @property
    def n_edges(self) -> int:
        return self._n_edges

    def add_edge(self, u: int, v: int, weight: float) -> bool:
        """添加边 u→v（无向图为 u-v）

        Returns:
            False 表示自环或重复边，未添加
        """
        if u == v or v in self._out[u]:
            return False
        w = float(weight)
        self._out[u][v] = w
        self._in[v][u] = w
        self._n_edges += 1
        return True

    def has_edge(self, u: int, v: int) -> bool:
        return v in self._out[u]

    def weight(self, u: int, v: int) -> float:
        return self._out[u][v]

    def set_weight(self, u: int, v: int, weight: float) -> None:
        w = float(weight)
        self._out[u][v] = w
        self._in[v][u] = w

    def out_edges(self, u: int) -> Dict[int, float]:
        """u 的出边 {v: weight}（无向图即全部关联边）"""
        return self._out[u]

    def in_edges(self, v: int) -> Dict[int, float]:
        """v 的入边 {u: weight}（无向图即全部关联边）"""
        return self._in[v]

    def degree(self, vid: int) -> int:
        if self.directed:
            return len(self._out[vid]) + len(self._in[vid])
        return len(self._out[vid])

    def edges(self) -> Iterator[Tuple[int, int, float]]:
        """遍历所有边 (u, v, weight)，无向边只出现一次"""
        for u, nbrs in enumerate(self._out):
            for v, w in nbrs.items():
                if self.directed or u < v:
                    yield u, v, w

    def _edge_key(self, u: int, v: int) -> Tuple[int, int]:
        if self.directed or u < v:
            return u, v
        return v, u

    def mark_edge_validated(self, u: int, v: int) -> None:
        """记录边已通过运动有效性检测，后续搜索不再重复检测"""
        self._checked_edges.add(self._edge_key(u, v))

    def edge_validated(self, u: int, v: int) -> bool:
        return self._edge_key(u, v) in self._checked_edges

    # ── 目标区域 ──

    def mark_goal_region(self, vid: int) -> None:
        self.goal_region.add(vid)

    def in_goal_region(self, vid: int) -> bool:
        return vid in self.goal_region

    # ── 黑名单 ──

    def blacklist(self, vid: int) -> None:
        """标记顶点无效，并把全部关联边权重置为 inf（不删除顶点或边）"""
        self.vertices[vid].blacklisted = True
        for v in list(self._out[vid]):
            self.set_weight(vid, v, INF)
        for u in list(self._in[vid]):
            self.set_weight(u, vid, INF)

    def n_blacklisted(self) -> int:
        return sum(1 for v in self.vertices if v.blacklisted)

    def __repr__(self) -> str:
        kind = "directed" if self.directed else "undirected"
        return (f"Graph({kind}, n_vertices={self.n_vertices}, "
                f"n_edges={self.n_edges})")
