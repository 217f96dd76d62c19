"""
aitkin/sampling.py - 批量采样

SampleGenerator 每轮产生一批候选状态：
- 尚无解时在状态空间边界内均匀采样
- 已有代价为 c_best 的解后切换为 informed 采样：在 position_dims 上
  直接采样以 start / goal 为焦点、长轴为 c_best 的长椭球
  (prolate hyperspheroid)，其余维度仍均匀采样

椭球采样点超出边界时做有限次拒绝重采样，仍失败则裁剪到边界内。
退化边界 (某维宽度为 0) 不报错，采样值直接等于边界值。
"""

from __future__ import annotations

import logging
import math
from typing import List, Optional, Sequence

import numpy as np

from .collision import ValidityChecker
from .spaces import StateSpace

logger = logging.getLogger(__name__)

# informed 采样拒绝重采样的最大次数
MAX_INFORMED_REJECTIONS = 100


def unit_ball_measure(dim: int) -> float:
    """d 维单位球体积 ζ_d"""
    return math.pi ** (dim / 2.0) / math.gamma(dim / 2.0 + 1.0)


def sample_unit_ball(rng: np.random.Generator, dim: int) -> np.ndarray:
    """d 维单位球内均匀采样 (高斯方向 + 半径 u^(1/d))"""
    v = rng.standard_normal(dim)
    norm = np.linalg.norm(v)
    if norm < 1e-12:
        return np.zeros(dim)
    r = rng.random() ** (1.0 / dim)
    return v / norm * r


def rotation_to_world(start: np.ndarray, goal: np.ndarray) -> np.ndarray:
    """椭球坐标系 → 世界坐标系的旋转矩阵 C

    椭球长轴 (第一个坐标轴) 对齐 goal - start 方向，用 SVD 构造。
    start 与 goal 重合时返回单位阵。
    """
    dim = start.shape[0]
    diff = goal - start
    c_min = float(np.linalg.norm(diff))
    if c_min < 1e-12:
        return np.eye(dim)
    a1 = (diff / c_min).reshape(dim, 1)
    e1 = np.zeros((1, dim))
    e1[0, 0] = 1.0
    u, _, vt = np.linalg.svd(a1 @ e1)
    diag = np.ones(dim)
    diag[-1] = np.linalg.det(u) * np.linalg.det(vt.T)
    return u @ np.diag(diag) @ vt


def informed_radii(c_best: float, c_min: float, dim: int) -> np.ndarray:
    """长椭球各半轴长度: [c_best/2, sqrt(c_best²-c_min²)/2, ...]"""
    r1 = c_best / 2.0
    rn = math.sqrt(max(c_best * c_best - c_min * c_min, 0.0)) / 2.0
    radii = np.full(dim, rn)
    radii[0] = r1
    return radii


def informed_measure(
    space: StateSpace,
    best_cost: float,
    start: np.ndarray,
    goal: np.ndarray,
) -> float:
    """informed 集合的 Lebesgue 测度

    position_dims 上的长椭球体积乘以其余维度的宽度，不超过整个空间的测度。
    尚无解 (best_cost 为 inf) 时就是 space.measure()。
    """
    full = space.measure()
    if not math.isfinite(best_cost):
        return full
    pos = list(space.position_dims)
    c_min = float(np.linalg.norm(goal[pos] - start[pos]))
    radii = informed_radii(best_cost, c_min, len(pos))
    vol = unit_ball_measure(len(pos)) * float(np.prod(radii))
    mask = np.ones(space.dimension, dtype=bool)
    mask[pos] = False
    rest = space.widths[mask]
    vol *= float(np.prod(rest[rest > 0.0]))
    if vol <= 0.0:
        return full
    return min(vol, full)


class SampleGenerator:
    """批量状态采样器

    Args:
        space: 状态空间
        validity: 有效性检测器 (valid sampler 使用)
        rng: 随机数生成器 (每个工作线程独立)
        max_valid_attempts: valid sampler 每个采样的最大尝试次数

    Example:
        >>> gen = SampleGenerator(space, checker, rng)
        >>> batch = gen.generate_batch(100)                      # 均匀
        >>> batch = gen.generate_batch(100, best_cost=7.5,
        ...                            start=start, goal=goal)   # informed
    """

    def __init__(
        self,
        space: StateSpace,
        validity: Optional[ValidityChecker],
        rng: np.random.Generator,
        max_valid_attempts: int = 100,
    ) -> None:
        self.space = space
        self.validity = validity
        self.rng = rng
        self.max_valid_attempts = max(1, int(max_valid_attempts))
        self._pos = list(space.position_dims)
        self._n_clamped = 0

    @property
    def n_clamped(self) -> int:
        """informed 采样拒绝失败后被裁剪的采样数"""
        return self._n_clamped

    def sample_uniform(self) -> np.ndarray:
        return self.space.sample_uniform(self.rng)

    def sample_informed(
        self,
        best_cost: float,
        start: np.ndarray,
        goal: np.ndarray,
    ) -> np.ndarray:
        """在 c_best 对应的长椭球内采样

        position_dims 上 start→goal 的距离不小于 best_cost 时椭球退化为
        线段 (或点)，此时仍按退化椭球采样。
        """
        pos = self._pos
        s_p = np.asarray(start, dtype=np.float64)[pos]
        g_p = np.asarray(goal, dtype=np.float64)[pos]
        c_min = float(np.linalg.norm(g_p - s_p))
        c_best = max(float(best_cost), c_min)
        radii = informed_radii(c_best, c_min, len(pos))
        rot = rotation_to_world(s_p, g_p)
        centre = (s_p + g_p) / 2.0
        scale = rot * radii  # rot @ diag(radii)

        low, high = self.space.low[pos], self.space.high[pos]
        point = None
        for _ in range(MAX_INFORMED_REJECTIONS):
            point = scale @ sample_unit_ball(self.rng, len(pos)) + centre
            if np.all(point >= low) and np.all(point <= high):
                break
        else:
            self._n_clamped += 1
            point = np.clip(point, low, high)

        state = self.space.sample_uniform(self.rng)
        state[pos] = point
        return state

    def _draw(
        self,
        best_cost: float,
        start: Optional[np.ndarray],
        goal: Optional[np.ndarray],
    ) -> np.ndarray:
        if math.isfinite(best_cost) and start is not None and goal is not None:
            return self.sample_informed(best_cost, start, goal)
        return self.sample_uniform()

    def generate_batch(
        self,
        batch_size: int,
        use_valid_sampler: bool = False,
        best_cost: float = math.inf,
        start: Optional[Sequence[float]] = None,
        goal: Optional[Sequence[float]] = None,
    ) -> List[np.ndarray]:
        """生成 batch_size 个相互独立的采样

        Args:
            batch_size: 采样数
            use_valid_sampler: True 时每个采样最多重试 max_valid_attempts 次
                直到通过有效性检测；全部失败则保留最后一次的采样
            best_cost: 当前最优代价，有限值时启用 informed 采样
            start, goal: informed 椭球的焦点

        Returns:
            长度为 batch_size 的状态列表
        """
        s = None if start is None else np.asarray(start, dtype=np.float64)
        g = None if goal is None else np.asarray(goal, dtype=np.float64)
        check = use_valid_sampler and self.validity is not None
        batch = []
        for _ in range(batch_size):
            state = self._draw(best_cost, s, g)
            if check:
                for _ in range(self.max_valid_attempts - 1):
                    if self.validity.is_valid(state):
                        break
                    state = self._draw(best_cost, s, g)
            batch.append(state)
        logger.debug("SampleGenerator: %d 个采样 (informed=%s, valid=%s)",
                     batch_size, math.isfinite(best_cost), check)
        return batch
