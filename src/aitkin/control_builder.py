"""
aitkin/control_builder.py - 控制图构建

控制图的每条边都是一段前向仿真得到的动力学可行轨迹：

1. 对目标状态 (采样，或以 goal_bias 概率替换为目标状态) 找最近的
   控制图顶点作为扩展源
2. 随机抽取控制量和持续步数 (定向扩展时抽 k_number_of_controls 组)，
   前向仿真，保留末端最接近目标的一组
3. 轨迹上每个中间状态都必须在边界内且通过有效性检测，末端状态不能
   与已有顶点近似重复；任一条件不满足则整段丢弃，不做截断
4. 边 (源 → 末端) 的权重为轨迹上相邻状态距离之和

末端状态距目标不超过 control_goal_tolerance 时，新顶点记入图的目标区域
(goal_region)，控制路径在该顶点结束。不向目标顶点连边，直线连接
永远不会进入控制图。末端距目标小于 min_dist_between_vertices 的候选
与近似重复一样丢弃 (目标不在控制图的近邻索引中)。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from .collision import ValidityChecker
from .dynamics import MotionModel
from .graph import Graph
from .models import PlannerConfig
from .nearest import NearestNeighbors

logger = logging.getLogger(__name__)


@dataclass
class ControlCandidate:
    """一次前向仿真的候选"""
    control: np.ndarray
    steps: int
    trajectory: np.ndarray
    distance_to_target: float


def trajectory_cost(space, source: np.ndarray, trajectory: np.ndarray) -> float:
    """源状态 + 轨迹上相邻状态的距离之和"""
    states = np.vstack([source[None, :], trajectory])
    emb = space.embed(states)
    return float(np.sum(np.linalg.norm(np.diff(emb, axis=0), axis=1)))


class ControlGraphBuilder:
    """控制图构建器

    Args:
        model: 运动模型
        validity: 有效性检测器
        config: 规划器配置
        rng: 随机数生成器 (所属工作线程独占)
    """

    def __init__(
        self,
        model: MotionModel,
        validity: ValidityChecker,
        config: PlannerConfig,
        rng: np.random.Generator,
    ) -> None:
        self.model = model
        self.space = model.state_space
        self.validity = validity
        self.config = config
        self.rng = rng
        self.n_discarded = 0

    # ── 单次扩展 ──

    def _best_candidate(
        self,
        source: np.ndarray,
        target: np.ndarray,
        n_controls: int,
    ) -> ControlCandidate:
        best = None
        for _ in range(n_controls):
            control = self.model.sample_control(self.rng)
            steps = self.model.sample_duration(self.rng)
            traj = self.model.simulate(source, control, steps)
            d = self.space.distance(traj[-1], target)
            if best is None or d < best.distance_to_target:
                best = ControlCandidate(control, steps, traj, d)
        return best

    def _trajectory_valid(self, trajectory: np.ndarray) -> bool:
        for state in trajectory:
            if not self.space.satisfies_bounds(state):
                return False
            if not self.validity.is_valid(state):
                return False
        return True

    def extend(
        self,
        target: np.ndarray,
        graph: Graph,
        nn: NearestNeighbors,
        goal_id: int,
        n_controls: int = 1,
    ) -> Optional[int]:
        """从最近的控制图顶点朝 target 扩展一次

        Returns:
            新顶点 id；候选被丢弃时返回 None
        """
        nearest = nn.nearest(target)
        if nearest is None:
            return None
        src_id = nearest[0]
        source = graph.vertex(src_id).state
        cand = self._best_candidate(source, target, n_controls)

        end = cand.trajectory[-1]
        min_d = self.config.min_dist_between_vertices
        goal_state = graph.vertex(goal_id).state
        d_goal = self.space.distance(end, goal_state)
        dup = nn.nearest(end)
        if d_goal < min_d or (dup is not None and dup[1] < min_d):
            self.n_discarded += 1
            return None
        if not self._trajectory_valid(cand.trajectory):
            self.n_discarded += 1
            return None

        vid = graph.add_vertex(end, control=cand.control,
                               control_duration=cand.steps,
                               parent=src_id, validated=True)
        graph.add_edge(src_id, vid,
                       trajectory_cost(self.space, source, cand.trajectory))
        nn.add(vid, end)

        if d_goal <= self.config.control_goal_tolerance:
            graph.mark_goal_region(vid)
            logger.debug("控制图顶点 %d 进入目标邻域 (d=%.3f)", vid, d_goal)
        return vid

    # ── 批量 / 定向 ──

    def expand(
        self,
        samples: Sequence[np.ndarray],
        graph: Graph,
        nn: NearestNeighbors,
        goal_id: int,
    ) -> List[int]:
        """对每个采样扩展一次 (以 goal_bias 概率改为朝目标扩展)

        朝目标的扩展是定向扩展，抽取 k_number_of_controls 组控制量。

        Returns:
            新加入顶点的 id 列表
        """
        goal_state = graph.vertex(goal_id).state
        added = []
        n_before = self.n_discarded
        for sample in samples:
            if self.rng.random() < self.config.goal_bias:
                vid = self.extend(goal_state, graph, nn, goal_id,
                                  n_controls=self.config.k_number_of_controls)
            else:
                vid = self.extend(sample, graph, nn, goal_id)
            if vid is not None:
                added.append(vid)
        logger.debug("ControlGraphBuilder: +%d 顶点, 丢弃 %d 个候选",
                     len(added), self.n_discarded - n_before)
        return added

    def connect_toward(
        self,
        target_id: int,
        graph: Graph,
        nn: NearestNeighbors,
        goal_id: int,
    ) -> Optional[int]:
        """朝指定顶点做定向扩展，抽取 k_number_of_controls 组控制量"""
        target = graph.vertex(target_id).state
        return self.extend(target, graph, nn, goal_id,
                           n_controls=self.config.k_number_of_controls)
