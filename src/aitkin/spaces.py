"""
aitkin/spaces.py - 状态空间描述

提供采样、距离、插值与边界处理：
- RealVectorSpace: R^n 欧氏空间
- SE2Space: (x, y, yaw)，yaw 周期环绕
- KinematicCarSpace: SE2 × 速度，对应带速度状态的车辆模型

距离约定：
    每个空间定义一个度量嵌入 ``embed``，状态间距离等于嵌入后的欧氏
    距离。近邻索引 (KD 树) 直接在嵌入坐标上建树，因此查询结果与
    ``distance`` 完全一致。SE2 的航向角嵌入为 (w·cosθ, w·sinθ)，即
    加权弦长度量。
"""

from __future__ import annotations

import abc
import math
from typing import Optional, Sequence, Tuple

import numpy as np

from .errors import ConfigurationError


def wrap_angle(theta):
    """将角度规约到 [-pi, pi)"""
    return (np.asarray(theta) + math.pi) % (2.0 * math.pi) - math.pi


class StateSpace(abc.ABC):
    """状态空间基类

    Args:
        low: 各维下界
        high: 各维上界

    Raises:
        ConfigurationError: 边界维度不符、非有限值、low > high、
            零维或所有维度宽度为零
    """

    def __init__(self, low: Sequence[float], high: Sequence[float]) -> None:
        low_arr = np.asarray(low, dtype=np.float64)
        high_arr = np.asarray(high, dtype=np.float64)
        if low_arr.ndim != 1 or low_arr.shape != high_arr.shape:
            raise ConfigurationError(
                f"边界形状不匹配: low {low_arr.shape}, high {high_arr.shape}")
        if low_arr.size == 0:
            raise ConfigurationError("状态空间维度为 0")
        if not (np.all(np.isfinite(low_arr)) and np.all(np.isfinite(high_arr))):
            raise ConfigurationError("边界必须为有限值")
        if np.any(low_arr > high_arr):
            bad = np.nonzero(low_arr > high_arr)[0].tolist()
            raise ConfigurationError(f"维度 {bad} 的下界大于上界")
        if np.all(high_arr - low_arr <= 0.0):
            raise ConfigurationError("状态空间尺寸为零 (所有维度宽度为 0)")
        self.low = low_arr
        self.high = high_arr

    # ── 基本属性 ──

    @property
    def dimension(self) -> int:
        return int(self.low.shape[0])

    @property
    def bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        return self.low.copy(), self.high.copy()

    @property
    def widths(self) -> np.ndarray:
        return self.high - self.low

    @property
    def position_dims(self) -> Tuple[int, ...]:
        """承载位置信息的维度 (informed 采样在这些维度上构造椭球)"""
        return tuple(range(self.dimension))

    def measure(self) -> float:
        """状态空间体积（忽略宽度为 0 的维度）"""
        w = self.widths
        return float(np.prod(w[w > 0.0]))

    # ── 采样 / 边界 ──

    def sample_uniform(
        self,
        rng: np.random.Generator,
        n: Optional[int] = None,
    ) -> np.ndarray:
        """在边界内均匀采样；宽度为 0 的维度直接取边界值"""
        if n is None:
            return rng.uniform(self.low, self.high)
        return rng.uniform(self.low, self.high, size=(n, self.dimension))

    def enforce_bounds(self, state: np.ndarray) -> np.ndarray:
        return np.clip(state, self.low, self.high)

    def satisfies_bounds(self, state: np.ndarray, eps: float = 1e-9) -> bool:
        state = np.asarray(state, dtype=np.float64)
        return bool(np.all(state >= self.low - eps)
                    and np.all(state <= self.high + eps))

    # ── 度量 ──

    @abc.abstractmethod
    def embed(self, states: np.ndarray) -> np.ndarray:
        """状态 → 度量嵌入坐标 (支持单个状态或 (N, dim) 批量)"""

    @property
    def embedding_dimension(self) -> int:
        return int(self.embed(self.low).shape[-1])

    def distance(self, a: np.ndarray, b: np.ndarray) -> float:
        return float(np.linalg.norm(self.embed(a) - self.embed(b)))

    def distances(self, a: np.ndarray, batch: np.ndarray) -> np.ndarray:
        """a 到 batch 中每个状态的距离"""
        batch = np.atleast_2d(batch)
        return np.linalg.norm(self.embed(batch) - self.embed(a), axis=1)

    def interpolate(self, a: np.ndarray, b: np.ndarray, t: float) -> np.ndarray:
        return a + t * (b - a)

    def __repr__(self) -> str:
        return (f"{type(self).__name__}(low={self.low.tolist()}, "
                f"high={self.high.tolist()})")


class RealVectorSpace(StateSpace):
    """R^n 欧氏空间"""

    def embed(self, states: np.ndarray) -> np.ndarray:
        return np.asarray(states, dtype=np.float64)


class SE2Space(StateSpace):
    """SE(2) 状态空间 (x, y, yaw[, extra...])

    yaw 周期环绕；第 3 维之后的维度 (如速度) 视作普通实数维度，
    在嵌入中乘以各自权重。

    Args:
        low, high: 各维边界, 前三维为 x, y, yaw
        yaw_weight: 航向角在度量中的权重
        extra_weights: 额外维度的权重
    """

    def __init__(
        self,
        low: Sequence[float],
        high: Sequence[float],
        yaw_weight: float = 1.0,
        extra_weights: Optional[Sequence[float]] = None,
    ) -> None:
        super().__init__(low, high)
        if self.dimension < 3:
            raise ConfigurationError(f"SE2 状态空间至少 3 维, 实际 {self.dimension}")
        n_extra = self.dimension - 3
        if extra_weights is None:
            extra_weights = [1.0] * n_extra
        if len(extra_weights) != n_extra:
            raise ConfigurationError(
                f"extra_weights 长度应为 {n_extra}, 实际 {len(extra_weights)}")
        if yaw_weight < 0.0:
            raise ConfigurationError("yaw_weight 不能为负")
        self.yaw_weight = float(yaw_weight)
        self.extra_weights = np.asarray(extra_weights, dtype=np.float64)

    @property
    def position_dims(self) -> Tuple[int, ...]:
        return (0, 1)

    def embed(self, states: np.ndarray) -> np.ndarray:
        s = np.asarray(states, dtype=np.float64)
        yaw = s[..., 2]
        parts = [
            s[..., 0:2],
            (self.yaw_weight * np.cos(yaw))[..., None],
            (self.yaw_weight * np.sin(yaw))[..., None],
        ]
        if self.dimension > 3:
            parts.append(s[..., 3:] * self.extra_weights)
        return np.concatenate(parts, axis=-1)

    def enforce_bounds(self, state: np.ndarray) -> np.ndarray:
        out = np.array(state, dtype=np.float64)
        out[2] = wrap_angle(out[2])
        return np.clip(out, self.low, self.high)

    def satisfies_bounds(self, state: np.ndarray, eps: float = 1e-9) -> bool:
        s = np.array(state, dtype=np.float64)
        s[2] = wrap_angle(s[2])
        return bool(np.all(s >= self.low - eps) and np.all(s <= self.high + eps))

    def interpolate(self, a: np.ndarray, b: np.ndarray, t: float) -> np.ndarray:
        out = a + t * (b - a)
        dyaw = wrap_angle(b[2] - a[2])
        out[2] = wrap_angle(a[2] + t * dyaw)
        return out


class KinematicCarSpace(SE2Space):
    """SE(2) × 速度 (x, y, yaw, v)

    Args:
        low, high: 4 维边界
        yaw_weight: 航向角权重
        velocity_weight: 速度权重
    """

    def __init__(
        self,
        low: Sequence[float],
        high: Sequence[float],
        yaw_weight: float = 1.0,
        velocity_weight: float = 1.0,
    ) -> None:
        if len(low) != 4 or len(high) != 4:
            raise ConfigurationError("KinematicCarSpace 需要 4 维边界 (x, y, yaw, v)")
        super().__init__(low, high, yaw_weight=yaw_weight,
                         extra_weights=[velocity_weight])
