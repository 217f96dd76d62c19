"""
aitkin/path.py - 路径组装与校验

把图中的顶点 id 序列转换为带时间的 PathControl：
- 无控制量的顶点 (起点、目标、几何图顶点) 生成零时长 waypoint
- 控制图顶点生成 (state, control, duration) 段

路径在作为最终结果提交之前总是整体重新校验一次：几何段按直线插值
检测，控制段从前一状态重新仿真后逐点检测。
"""

from __future__ import annotations

import logging
import math
from typing import Optional, Sequence

import numpy as np

from .collision import ValidityChecker
from .dynamics import MotionModel
from .errors import PlannerError
from .graph import Graph
from .models import PathControl
from .spaces import StateSpace

logger = logging.getLogger(__name__)


def assemble_path(
    vertex_ids: Sequence[int],
    graph: Graph,
    step_size: float = 0.0,
) -> PathControl:
    """顶点 id 序列 → PathControl

    Args:
        vertex_ids: 从起点到目标的顶点序列
        graph: 顶点所属的图
        step_size: 运动模型的单步积分时长, control_duration × step_size
            即段的持续时间 (秒)
    """
    path = PathControl()
    for vid in vertex_ids:
        v = graph.vertex(vid)
        if v.control is None:
            path.append(v.state.copy())
        else:
            path.append(v.state.copy(), v.control.copy(),
                        v.control_duration * step_size)
    return path


def compute_path_cost(vertex_ids: Sequence[int], graph: Graph) -> float:
    """沿顶点序列累加边权"""
    total = 0.0
    for u, v in zip(vertex_ids[:-1], vertex_ids[1:]):
        total += graph.weight(u, v)
    return total


def path_length(path: PathControl, space: StateSpace) -> float:
    """路径相邻状态的距离之和 (几何路径的代价)"""
    states = path.states
    if len(states) < 2:
        return 0.0
    emb = space.embed(np.array(states))
    return float(np.sum(np.linalg.norm(np.diff(emb, axis=0), axis=1)))


def find_invalid_segment(
    path: PathControl,
    validity: ValidityChecker,
    model: Optional[MotionModel] = None,
    resolution: Optional[float] = None,
) -> Optional[int]:
    """找出路径中第一个无效的段

    第 i 段指从 states[i-1] 到 states[i] 的运动 (第 0 段即起点状态本身)。
    带控制量的段需要 model 重新仿真；不带控制量的段按直线插值检测。

    Returns:
        第一个无效段的下标；整条路径有效时返回 None
    """
    segs = path.segments
    if not segs:
        return None
    if not validity.is_valid(segs[0].state):
        return 0
    for i in range(1, len(segs)):
        prev, seg = segs[i - 1], segs[i]
        if seg.control is not None:
            if model is None:
                raise PlannerError("校验控制路径需要运动模型")
            steps = int(round(seg.duration / model.propagation_step_size))
            traj = model.simulate(prev.state, seg.control, max(steps, 1))
            for state in traj:
                if not (model.state_space.satisfies_bounds(state)
                        and validity.is_valid(state)):
                    return i
        elif not validity.check_motion(prev.state, seg.state, resolution):
            return i
    return None


def validate_path(
    path: PathControl,
    validity: ValidityChecker,
    model: Optional[MotionModel] = None,
    resolution: Optional[float] = None,
) -> bool:
    """整条路径重新校验"""
    return find_invalid_segment(path, validity, model, resolution) is None


def interpolate_path(
    path: PathControl,
    space: StateSpace,
    resolution: float,
    model: Optional[MotionModel] = None,
) -> PathControl:
    """加密路径

    几何段按 resolution 等间距插值为零时长 waypoint；控制段用 model
    逐步仿真展开，每一步作为一段 (同一控制量, 时长为单步积分时长)。
    """
    if resolution <= 0.0:
        raise ValueError("resolution 必须 > 0")
    segs = path.segments
    out = PathControl()
    if not segs:
        return out
    out.append(segs[0].state.copy(), segs[0].control, segs[0].duration)
    for prev, seg in zip(segs[:-1], segs[1:]):
        if seg.control is not None:
            if model is None:
                raise PlannerError("展开控制路径需要运动模型")
            dt = model.propagation_step_size
            steps = max(1, int(round(seg.duration / dt)))
            for state in model.simulate(prev.state, seg.control, steps):
                out.append(state, seg.control.copy(), dt)
            continue
        dist = space.distance(prev.state, seg.state)
        n = max(1, int(math.ceil(dist / resolution)))
        for k in range(1, n + 1):
            out.append(space.interpolate(prev.state, seg.state, k / n))
    return out
