"""
aitkin/dynamics.py - 运动模型 (前向动力学 + 控制空间)

统一的 "动力学能力" 接口，各状态空间变体共享同一套图构建与搜索逻辑：
- HolonomicModel: 位置维度上的有界速度控制 s' = s + u·dt
- KinematicCarModel: 自行车模型，控制量为 (加速度, 前轮转角)

控制时长以 propagation_step_size 的整数倍表示，与控制图顶点上
记录的 control_duration 一致。
"""

from __future__ import annotations

import abc
import math
from typing import Sequence, Tuple

import numpy as np

from .errors import ConfigurationError
from .spaces import KinematicCarSpace, StateSpace, wrap_angle


class MotionModel(abc.ABC):
    """运动模型基类

    Args:
        space: 状态空间
        control_low: 控制量下界
        control_high: 控制量上界
        propagation_step_size: 单步积分时长 (s)
        min_control_duration: 单次控制最少持续步数
        max_control_duration: 单次控制最多持续步数
    """

    def __init__(
        self,
        space: StateSpace,
        control_low: Sequence[float],
        control_high: Sequence[float],
        propagation_step_size: float = 0.1,
        min_control_duration: int = 1,
        max_control_duration: int = 10,
    ) -> None:
        self.space = space
        self.control_low = np.asarray(control_low, dtype=np.float64)
        self.control_high = np.asarray(control_high, dtype=np.float64)
        if (self.control_low.ndim != 1
                or self.control_low.shape != self.control_high.shape
                or self.control_low.size == 0):
            raise ConfigurationError("控制量边界形状非法")
        if np.any(self.control_low > self.control_high):
            raise ConfigurationError("控制量下界大于上界")
        if propagation_step_size <= 0.0:
            raise ConfigurationError("propagation_step_size 必须 > 0")
        if not 1 <= min_control_duration <= max_control_duration:
            raise ConfigurationError(
                f"控制时长范围非法: [{min_control_duration}, {max_control_duration}]")
        self.propagation_step_size = float(propagation_step_size)
        self.min_control_duration = int(min_control_duration)
        self.max_control_duration = int(max_control_duration)

    @property
    def state_space(self) -> StateSpace:
        return self.space

    @property
    def control_dimension(self) -> int:
        return int(self.control_low.shape[0])

    @property
    def control_bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        return self.control_low.copy(), self.control_high.copy()

    def sample_control(self, rng: np.random.Generator) -> np.ndarray:
        return rng.uniform(self.control_low, self.control_high)

    def sample_duration(self, rng: np.random.Generator) -> int:
        """随机控制持续步数 [min, max]"""
        return int(rng.integers(self.min_control_duration,
                                self.max_control_duration + 1))

    @abc.abstractmethod
    def propagate(
        self,
        state: np.ndarray,
        control: np.ndarray,
        duration: float,
    ) -> np.ndarray:
        """从 state 施加 control 持续 duration 秒后的状态（不做边界裁剪）"""

    def simulate(
        self,
        state: np.ndarray,
        control: np.ndarray,
        steps: int,
    ) -> np.ndarray:
        """逐步前向仿真, 返回每一步之后的状态 (steps, dim)

        中间状态全部返回，供调用方逐点做有效性检测。
        """
        traj = np.empty((steps, self.space.dimension), dtype=np.float64)
        cur = np.asarray(state, dtype=np.float64)
        for i in range(steps):
            cur = self.propagate(cur, control, self.propagation_step_size)
            traj[i] = cur
        return traj


class HolonomicModel(MotionModel):
    """全向运动模型

    控制量是位置维度上的速度向量，每个分量限制在 [-max_speed, max_speed]。
    非位置维度 (如 SE2 的 yaw) 保持不变。

    Example:
        >>> space = RealVectorSpace([-10] * 3, [10] * 3)
        >>> model = HolonomicModel(space, max_speed=1.0)
        >>> model.propagate(np.zeros(3), np.array([1.0, 0, 0]), 0.5)
        array([0.5, 0. , 0. ])
    """

    def __init__(
        self,
        space: StateSpace,
        max_speed: float = 1.0,
        propagation_step_size: float = 0.1,
        min_control_duration: int = 1,
        max_control_duration: int = 10,
    ) -> None:
        if max_speed <= 0.0:
            raise ConfigurationError("max_speed 必须 > 0")
        n = len(space.position_dims)
        super().__init__(
            space,
            control_low=[-max_speed] * n,
            control_high=[max_speed] * n,
            propagation_step_size=propagation_step_size,
            min_control_duration=min_control_duration,
            max_control_duration=max_control_duration,
        )
        self.max_speed = float(max_speed)
        self._pos = np.asarray(space.position_dims, dtype=np.intp)

    def propagate(
        self,
        state: np.ndarray,
        control: np.ndarray,
        duration: float,
    ) -> np.ndarray:
        out = np.array(state, dtype=np.float64)
        out[self._pos] += np.asarray(control, dtype=np.float64) * duration
        return out


class KinematicCarModel(MotionModel):
    """自行车运动学模型

    状态 (x, y, yaw, v)，控制 (a, δ)::

        x'   = x + v·dt·cos(yaw)
        y'   = y + v·dt·sin(yaw)
        v'   = v + a·dt
        yaw' = yaw + v/L·tan(δ)·dt

    Args:
        space: KinematicCarSpace
        wheelbase: 轴距 L (m)
        acceleration_bounds: 加速度范围 (m/s^2)
        steering_bounds: 前轮转角范围 (rad)
    """

    def __init__(
        self,
        space: KinematicCarSpace,
        wheelbase: float = 1.32,
        acceleration_bounds: Tuple[float, float] = (-0.3, 0.3),
        steering_bounds: Tuple[float, float] = (-0.1, 0.1),
        propagation_step_size: float = 0.1,
        min_control_duration: int = 1,
        max_control_duration: int = 10,
    ) -> None:
        if not isinstance(space, KinematicCarSpace):
            raise ConfigurationError("KinematicCarModel 需要 KinematicCarSpace")
        if wheelbase <= 0.0:
            raise ConfigurationError("wheelbase 必须 > 0")
        if max(abs(steering_bounds[0]), abs(steering_bounds[1])) >= math.pi / 2:
            raise ConfigurationError("转角必须在 (-pi/2, pi/2) 内")
        super().__init__(
            space,
            control_low=[acceleration_bounds[0], steering_bounds[0]],
            control_high=[acceleration_bounds[1], steering_bounds[1]],
            propagation_step_size=propagation_step_size,
            min_control_duration=min_control_duration,
            max_control_duration=max_control_duration,
        )
        self.wheelbase = float(wheelbase)

    def propagate(
        self,
        state: np.ndarray,
        control: np.ndarray,
        duration: float,
    ) -> np.ndarray:
        x, y, yaw, v = state[0], state[1], state[2], state[3]
        acc, steer = control[0], control[1]
        omega = v / self.wheelbase * math.tan(steer)
        return np.array([
            x + v * duration * math.cos(yaw),
            y + v * duration * math.sin(yaw),
            float(wrap_angle(yaw + omega * duration)),
            v + acc * duration,
        ], dtype=np.float64)


def make_model(
    kind: str,
    space: StateSpace,
    **kwargs,
) -> MotionModel:
    """按名称创建运动模型 ('holonomic' / 'car')"""
    if kind == 'holonomic':
        return HolonomicModel(space, **kwargs)
    if kind == 'car':
        return KinematicCarModel(space, **kwargs)
    raise ConfigurationError(f"未知运动模型: {kind}")
