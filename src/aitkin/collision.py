"""
aitkin/collision.py - 状态有效性检测

规划器把有效性检测当作不透明的预言机 ``is_valid(state) -> bool``。
本模块给出统一接口与几种实现：

- ValidityChecker: 基类，负责调用计数 (线程安全) 与运动段插值检测
- FunctionValidityChecker: 包装任意可调用对象
- AllValidChecker / AllInvalidChecker: 空场景 / 完全阻塞
- SceneValidityChecker: 基于 AABB 障碍物场景与车体包围盒的参考实现

保守性说明：
    SceneValidityChecker 用车体旋转后的 AABB 与障碍物 AABB 做重叠测试，
    AABB 是车体的过估计，因此返回 False 只表示 "可能碰撞"，
    返回 True 保证 "一定无碰撞"。
"""

from __future__ import annotations

import abc
import logging
import math
import threading
from typing import Callable, Optional, Sequence

import numpy as np

from .obstacles import Scene
from .spaces import SE2Space, StateSpace

logger = logging.getLogger(__name__)


def aabb_overlap(min1, max1, min2, max2):
    """AABB 分离轴测试，边界接触算重叠

    min2/max2 可以是 (n, d) 数组，此时返回长度 n 的 bool 数组，
    表示每个盒子是否与 (min1, max1) 重叠。
    """
    lo2 = np.asarray(min2, dtype=np.float64)
    hi2 = np.asarray(max2, dtype=np.float64)
    separated = ((np.asarray(max1) < lo2 - 1e-10)
                 | (hi2 < np.asarray(min1) - 1e-10)).any(axis=-1)
    if separated.ndim == 0:
        return not bool(separated)
    return ~separated


class ValidityChecker(abc.ABC):
    """有效性检测器基类

    Args:
        space: 状态空间（用于运动段插值；None 时按欧氏直线插值）
        resolution: 运动段插值步长（状态空间距离）
    """

    def __init__(
        self,
        space: Optional[StateSpace] = None,
        resolution: float = 0.1,
    ) -> None:
        self.space = space
        self.resolution = float(resolution)
        self._n_checks = 0
        self._lock = threading.Lock()

    @abc.abstractmethod
    def _is_valid(self, state: np.ndarray) -> bool:
        """实际的有效性判定"""

    def is_valid(self, state: np.ndarray) -> bool:
        with self._lock:
            self._n_checks += 1
        return bool(self._is_valid(state))

    @property
    def n_checks(self) -> int:
        """累计有效性检测调用次数"""
        return self._n_checks

    def reset_counter(self) -> None:
        with self._lock:
            self._n_checks = 0

    def check_motion(
        self,
        a: np.ndarray,
        b: np.ndarray,
        resolution: Optional[float] = None,
    ) -> bool:
        """运动段有效性检测：等间隔插值逐点检查（含端点）

        Returns:
            True = 整段有效
        """
        res = self.resolution if resolution is None else resolution
        if self.space is not None:
            dist = self.space.distance(a, b)
        else:
            dist = float(np.linalg.norm(np.asarray(b) - np.asarray(a)))
        n_steps = max(1, int(math.ceil(dist / res)))
        for k in range(n_steps + 1):
            t = k / n_steps
            if self.space is not None:
                q = self.space.interpolate(a, b, t)
            else:
                q = a + t * (b - a)
            if not self.is_valid(q):
                return False
        return True


class FunctionValidityChecker(ValidityChecker):
    """把任意 ``fn(state) -> bool`` 包装为有效性检测器

    Example:
        >>> checker = FunctionValidityChecker(lambda s: s[0] < 3.0)
        >>> checker.is_valid(np.array([1.0, 0.0]))
        True
    """

    def __init__(
        self,
        fn: Callable[[np.ndarray], bool],
        space: Optional[StateSpace] = None,
        resolution: float = 0.1,
    ) -> None:
        super().__init__(space, resolution)
        self._fn = fn

    def _is_valid(self, state: np.ndarray) -> bool:
        return bool(self._fn(state))


class AllValidChecker(ValidityChecker):
    """空场景：所有状态有效"""

    def _is_valid(self, state: np.ndarray) -> bool:
        return True


class AllInvalidChecker(ValidityChecker):
    """完全阻塞：所有状态无效"""

    def _is_valid(self, state: np.ndarray) -> bool:
        return False


class SceneValidityChecker(ValidityChecker):
    """基于 AABB 场景的有效性检测

    车体是一个长方体 (body_dims)，中心位于状态的位置分量
    (2D 状态时 z = body_z)，并按 yaw 旋转。旋转后的车体取 AABB，
    与 (外扩 safety_margin 的) 障碍物 AABB 做重叠测试。
    超出状态空间边界的状态视为无效。

    Args:
        scene: 障碍物场景
        space: 状态空间
        body_dims: 车体尺寸 (x, y, z)
        body_z: 2D 状态时车体中心高度
        safety_margin: 障碍物外扩裕度
        resolution: 运动段插值步长
    """

    def __init__(
        self,
        scene: Scene,
        space: StateSpace,
        body_dims: Sequence[float] = (1.0, 0.8, 0.6),
        body_z: float = 0.5,
        safety_margin: float = 0.0,
        resolution: float = 0.1,
    ) -> None:
        super().__init__(space, resolution)
        self.scene = scene
        self.body_half = np.asarray(body_dims, dtype=np.float64) / 2.0
        self.body_z = float(body_z)
        self.safety_margin = float(safety_margin)

    def body_aabb(self, state: np.ndarray):
        """车体在工作空间中的 AABB (min, max)"""
        state = np.asarray(state, dtype=np.float64)
        if isinstance(self.space, SE2Space):
            center = np.array([state[0], state[1], self.body_z])
            yaw = state[2]
        else:
            pos = state[list(self.space.position_dims)]
            center = np.full(3, self.body_z)
            n = min(3, pos.shape[0])
            center[:n] = pos[:n]
            yaw = 0.0
        c, s = abs(math.cos(yaw)), abs(math.sin(yaw))
        hx, hy, hz = self.body_half
        half = np.array([c * hx + s * hy, s * hx + c * hy, hz])
        return center - half, center + half

    def _is_valid(self, state: np.ndarray) -> bool:
        if not self.space.satisfies_bounds(state):
            return False
        mins, maxs = self.scene.bounds_arrays()
        if mins.shape[0] == 0:
            return True
        body_min, body_max = self.body_aabb(state)
        m = self.safety_margin
        return not aabb_overlap(body_min, body_max, mins - m, maxs + m).any()
