"""
aitkin/path_smoother.py - 几何路径后处理

1. 合并过近的路径点
2. Shortcut：随机选两点尝试直连，运动有效则删除中间点
3. 等间距重采样

只用于几何路径。控制路径的每一段都是动力学仿真结果，直线 shortcut
会破坏动力学可行性。
"""

from __future__ import annotations

import logging
import math
from typing import List, Optional

import numpy as np

from .collision import ValidityChecker
from .errors import PlannerError
from .models import PathControl
from .spaces import StateSpace

logger = logging.getLogger(__name__)


class PathSmoother:
    """几何路径后处理器

    Args:
        validity: 有效性检测器 (提供 check_motion)
        space: 状态空间 (距离与插值)
        resolution: 直连段的插值检测步长

    Example:
        >>> smoother = PathSmoother(checker, space)
        >>> states = smoother.shortcut(path.states, max_iters=200, rng=rng)
        >>> dense = smoother.resample(states, resolution=0.1)
    """

    def __init__(
        self,
        validity: ValidityChecker,
        space: StateSpace,
        resolution: float = 0.1,
    ) -> None:
        self.validity = validity
        self.space = space
        self.resolution = resolution

    def collapse_close_vertices(
        self,
        states: List[np.ndarray],
        min_dist: float = 1e-6,
    ) -> List[np.ndarray]:
        """删除与前一保留点距离小于 min_dist 的中间点 (首尾保留)"""
        if len(states) <= 2:
            return [s.copy() for s in states]
        out = [states[0].copy()]
        for s in states[1:-1]:
            if self.space.distance(out[-1], s) >= min_dist:
                out.append(s.copy())
        last = states[-1]
        if len(out) > 1 and self.space.distance(out[-1], last) < min_dist:
            out.pop()
        out.append(last.copy())
        return out

    def shortcut(
        self,
        states: List[np.ndarray],
        max_iters: int = 100,
        rng: Optional[np.random.Generator] = None,
    ) -> List[np.ndarray]:
        """随机 shortcut

        反复随机选两个非相邻点 i < j，若 i→j 直连运动有效，删除其间
        所有点。首尾点保持不变。
        """
        if len(states) <= 2:
            return list(states)
        if rng is None:
            rng = np.random.default_rng()

        path = list(states)
        n_before = len(path)
        for _ in range(max_iters):
            if len(path) <= 2:
                break
            i = int(rng.integers(0, len(path) - 2))
            j = int(rng.integers(i + 2, len(path)))
            if self.validity.check_motion(path[i], path[j], self.resolution):
                path = path[:i + 1] + path[j:]

        if len(path) < n_before:
            logger.debug("Shortcut: 路径从 %d → %d 个点", n_before, len(path))
        return path

    def resample(
        self,
        states: List[np.ndarray],
        resolution: float = 0.1,
    ) -> List[np.ndarray]:
        """以固定步长 (状态空间距离) 重新采样"""
        if len(states) <= 1:
            return [s.copy() for s in states]
        out = [states[0].copy()]
        for a, b in zip(states[:-1], states[1:]):
            seg_len = self.space.distance(a, b)
            if seg_len < 1e-10:
                continue
            n_steps = max(1, int(math.ceil(seg_len / resolution)))
            for k in range(1, n_steps + 1):
                out.append(self.space.interpolate(a, b, k / n_steps))
        return out

    def smooth(
        self,
        path: PathControl,
        max_iters: int = 100,
        rng: Optional[np.random.Generator] = None,
        min_dist: float = 1e-6,
    ) -> PathControl:
        """合并近点 + shortcut，返回新的几何路径

        Raises:
            PlannerError: 路径带有控制量
        """
        if path.has_controls:
            raise PlannerError("控制路径不能做几何平滑")
        states = self.collapse_close_vertices(path.states, min_dist)
        states = self.shortcut(states, max_iters=max_iters, rng=rng)
        out = PathControl()
        for s in states:
            out.append(s)
        return out
