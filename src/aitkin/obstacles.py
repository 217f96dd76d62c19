"""
aitkin/obstacles.py - AABB 障碍物场景

SceneValidityChecker 的后端。障碍物按名称索引 (保持插入顺序)，
全部包围盒另外缓存为两个 (n, 3) 数组，供检测器一次性向量化地
做重叠测试；增删障碍物时缓存失效。

2D 障碍物 ([x, y]) 在 z 方向上延伸到 ±PLANAR_Z_EXTENT。
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple

import numpy as np

from .errors import ConfigurationError
from .models import Obstacle

logger = logging.getLogger(__name__)

PLANAR_Z_EXTENT = 1e3


def _lift_to_3d(point: Any, z: float) -> np.ndarray:
    p = np.asarray(point, dtype=np.float64).ravel()
    if p.shape[0] == 2:
        return np.array([p[0], p[1], z], dtype=np.float64)
    if p.shape[0] != 3:
        raise ConfigurationError(f"障碍物角点应为 2 或 3 维, 实际 {p.shape[0]} 维")
    return p


class Scene:
    """障碍物集合

    Example:
        >>> scene = Scene()
        >>> scene.add_obstacle([2.0, -1.0, 0.0], [3.0, 1.0, 1.0], name="wall")
        >>> scene.add_obstacle([-1.0, 4.0], [1.0, 5.0])
        >>> mins, maxs = scene.bounds_arrays()
    """

    def __init__(self) -> None:
        self._obstacles: Dict[str, Obstacle] = {}
        self._arrays: Optional[Tuple[np.ndarray, np.ndarray]] = None
        self._next_auto = 0

    def __len__(self) -> int:
        return len(self._obstacles)

    def __iter__(self) -> Iterator[Obstacle]:
        return iter(self._obstacles.values())

    def __contains__(self, name: str) -> bool:
        return name in self._obstacles

    @property
    def n_obstacles(self) -> int:
        return len(self._obstacles)

    def _auto_name(self) -> str:
        while True:
            name = f"obstacle_{self._next_auto}"
            self._next_auto += 1
            if name not in self._obstacles:
                return name

    def add_obstacle(self, min_point: Any, max_point: Any, name: str = "") -> Obstacle:
        """添加一个 AABB 障碍物

        Args:
            min_point: 最小角点 [x, y, z] 或 [x, y]
            max_point: 最大角点
            name: 名称；为空时自动生成 obstacle_<k>

        Raises:
            ConfigurationError: 名称重复、维度不对或 min > max
        """
        lo = _lift_to_3d(min_point, -PLANAR_Z_EXTENT)
        hi = _lift_to_3d(max_point, PLANAR_Z_EXTENT)
        if np.any(lo > hi):
            raise ConfigurationError(f"障碍物 min > max: {lo.tolist()} / {hi.tolist()}")
        if not name:
            name = self._auto_name()
        elif name in self._obstacles:
            raise ConfigurationError(f"障碍物名称重复: '{name}'")

        obs = Obstacle(min_point=lo, max_point=hi, name=name)
        self._obstacles[name] = obs
        self._arrays = None
        logger.debug("添加障碍物 '%s': min=%s, max=%s", name, lo.tolist(), hi.tolist())
        return obs

    def remove_obstacle(self, name: str) -> bool:
        if self._obstacles.pop(name, None) is None:
            return False
        self._arrays = None
        return True

    def clear(self) -> None:
        self._obstacles.clear()
        self._arrays = None

    def get_obstacles(self) -> List[Obstacle]:
        return list(self._obstacles.values())

    def get_obstacle(self, name: str) -> Optional[Obstacle]:
        return self._obstacles.get(name)

    def bounds_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        """所有障碍物的 (mins, maxs)，形状均为 (n, 3)"""
        if self._arrays is None:
            if self._obstacles:
                mins = np.stack([o.min_point for o in self._obstacles.values()])
                maxs = np.stack([o.max_point for o in self._obstacles.values()])
            else:
                mins = maxs = np.empty((0, 3), dtype=np.float64)
            self._arrays = (mins, maxs)
        return self._arrays

    # ── 序列化 ──
    def to_dict(self) -> Dict[str, Any]:
        return {'obstacles': [obs.to_dict() for obs in self]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Scene':
        """data: {'obstacles': [{'min': [...], 'max': [...], 'name': ...}, ...]}"""
        scene = cls()
        for item in data.get('obstacles', []):
            scene.add_obstacle(item['min'], item['max'], name=item.get('name', ''))
        return scene

    def to_json(self, filepath: str) -> None:
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)

    @classmethod
    def from_json(cls, filepath: str) -> 'Scene':
        with open(filepath, 'r', encoding='utf-8') as f:
            return cls.from_dict(json.load(f))

    def __repr__(self) -> str:
        return f"Scene(n_obstacles={self.n_obstacles})"
