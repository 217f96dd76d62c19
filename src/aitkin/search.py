"""
aitkin/search.py - 启发式预计算与碰撞检测搜索

两阶段搜索，对几何图和控制图使用同一套代码：

1. precompute_heuristic: 从目标沿反向边做单源最短路 (Dijkstra，或以
   到起点距离为启发的 A*)，忽略有效性但遵守 inf 边权，把到目标的代价
   写入每个顶点的 ``g``，作为第二阶段的下界启发
2. collision_checked_search: 从起点做 A* (h = g)，访问时惰性检测顶点
   (及可选的边) 有效性；无效顶点加入黑名单后继续搜索。目标 (或目标区域
   graph.goal_region 中的任一顶点) 出队即成功，
   队列耗尽返回 NotFound

搜索函数只接收图和检测器参数，不持有规划器引用。
"""

from __future__ import annotations

import heapq
import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Union

import numpy as np

from .collision import ValidityChecker
from .errors import ConfigurationError
from .graph import INF, Graph

logger = logging.getLogger(__name__)


@dataclass
class Found:
    """搜索成功: 起点到目标的顶点 id 序列及其代价"""
    path: List[int]
    cost: float
    found: bool = field(default=True, init=False)


@dataclass
class NotFound:
    """本轮图中不存在通向目标的有效路径"""
    found: bool = field(default=False, init=False)


SearchResult = Union[Found, NotFound]


# ═══════════════════════════════════════════════════════════════════════════
# 启发式预计算
# ═══════════════════════════════════════════════════════════════════════════

def precompute_heuristic(
    graph: Graph,
    goal_id: int,
    strategy: str = 'dijkstra',
    start_id: Optional[int] = None,
    distance: Optional[Callable[[np.ndarray, np.ndarray], float]] = None,
) -> int:
    """计算每个顶点到目标的代价下界, 写入 vertex.g

    Args:
        graph: 几何图或控制图
        goal_id: 目标顶点
            (graph.goal_region 中的顶点同样作为代价为 0 的源点)
        strategy: 'dijkstra' 计算到所有顶点的精确代价；'astar' 以
            ``distance(v, start)`` 为启发，起点出队即停止
        start_id: A* 的目标 (起点)
        distance: 状态距离函数 (A* 启发)

    Returns:
        已确定精确代价的顶点数

    A* 提前停止时，未确定的顶点 v 取下界 max(0, C - h(v))，C 为起点的
    代价 (一致启发下 A* 出队序单调)；起点不可达时与 Dijkstra 结果相同。
    """
    if strategy not in ('dijkstra', 'astar'):
        raise ConfigurationError(f"未知启发式策略: {strategy}")
    use_astar = strategy == 'astar'
    if use_astar and (start_id is None or distance is None):
        raise ConfigurationError("astar 策略需要 start_id 和 distance")

    verts = graph.vertices
    for v in verts:
        v.g = INF
    # 目标区域中的顶点与目标同为源点
    sources = {goal_id} | graph.goal_region
    for s in sources:
        verts[s].g = 0.0

    if use_astar:
        start_state = verts[start_id].state

        def h(vid: int) -> float:
            return distance(verts[vid].state, start_state)
    else:
        def h(vid: int) -> float:
            return 0.0

    settled = set()
    heap = [(h(s), 0.0, s) for s in sources]
    heapq.heapify(heap)
    stopped_at = None
    while heap:
        _, cost, u = heapq.heappop(heap)
        if u in settled or cost > verts[u].g:
            continue
        settled.add(u)
        if use_astar and u == start_id:
            stopped_at = cost
            break
        for p, w in graph.in_edges(u).items():
            if math.isinf(w) or p in settled:
                continue
            nc = cost + w
            if nc < verts[p].g:
                verts[p].g = nc
                heapq.heappush(heap, (nc + h(p), nc, p))

    if stopped_at is not None:
        for v in verts:
            if v.id not in settled:
                v.g = max(0.0, stopped_at - h(v.id))
    return len(settled)


# ═══════════════════════════════════════════════════════════════════════════
# 碰撞检测搜索
# ═══════════════════════════════════════════════════════════════════════════

def reconstruct_path(pred: Dict[int, int], goal_id: int, start_id: int) -> List[int]:
    """沿前驱指针从目标回溯到起点，逐个插到结果最前面

    起点的前驱是它自己，遇到自前驱即停止。
    """
    path = [goal_id]
    cur = goal_id
    for _ in range(len(pred) + 1):
        parent = pred[cur]
        if parent == cur:
            break
        path.insert(0, parent)
        cur = parent
    if path[0] != start_id:
        raise ValueError(f"前驱链不通向起点 {start_id}: {path}")
    return path


def collision_checked_search(
    graph: Graph,
    start_id: int,
    goal_id: int,
    validity: ValidityChecker,
    check_edges: bool = False,
    motion_resolution: Optional[float] = None,
) -> SearchResult:
    """以 vertex.g 为启发的惰性碰撞检测 A*

    Args:
        graph: 已完成启发式预计算的图
        start_id: 起点 (不做检测, 直接扩展)
        goal_id: 目标 (无效时不被接受, 也不加入黑名单)
            graph.goal_region 中的顶点同样是可接受的终点
        validity: 有效性检测器
        check_edges: 是否在松弛时检测边的运动有效性 (结果缓存在图上)
        motion_resolution: 边检测插值步长

    Returns:
        Found(path, cost) 或 NotFound()
    """
    verts = graph.vertices
    for v in verts:
        v.cost_to_come = INF
    if math.isinf(verts[start_id].g):
        return NotFound()

    cost: Dict[int, float] = {start_id: 0.0}
    pred: Dict[int, int] = {start_id: start_id}
    heap = [(verts[start_id].g, 0.0, start_id)]
    n_blacklisted = 0
    n_expanded = 0

    while heap:
        _, c, u = heapq.heappop(heap)
        if c > cost[u]:
            continue
        vu = verts[u]

        if u != start_id and not vu.validated:
            if validity.is_valid(vu.state):
                vu.validated = True
            elif u == goal_id:
                continue
            else:
                graph.blacklist(u)
                n_blacklisted += 1
                continue
        vu.cost_to_come = c

        if u == goal_id or u in graph.goal_region:
            logger.debug("搜索成功: 终点 %d, cost=%.4f, 扩展 %d, 新黑名单 %d",
                         u, c, n_expanded, n_blacklisted)
            return Found(reconstruct_path(pred, u, start_id), c)

        n_expanded += 1
        for v, w in graph.out_edges(u).items():
            if math.isinf(w):
                continue
            vv = verts[v]
            if vv.blacklisted or math.isinf(vv.g):
                continue
            nc = c + w
            if nc >= cost.get(v, INF):
                continue
            if check_edges and not graph.edge_validated(u, v):
                # 先检测端点: 无效顶点进黑名单, 而不是只切断这条边
                if v != goal_id and not vv.validated:
                    if not validity.is_valid(vv.state):
                        graph.blacklist(v)
                        n_blacklisted += 1
                        continue
                    vv.validated = True
                if validity.check_motion(vu.state, vv.state, motion_resolution):
                    graph.mark_edge_validated(u, v)
                else:
                    graph.set_weight(u, v, INF)
                    continue
            cost[v] = nc
            pred[v] = u
            heapq.heappush(heap, (nc + vv.g, nc, v))

    logger.debug("搜索失败: 扩展 %d, 新黑名单 %d", n_expanded, n_blacklisted)
    return NotFound()
