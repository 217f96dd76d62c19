"""
aitkin/models.py - 规划器数据模型

定义 AIT*-Kin 规划器使用的核心数据结构：Obstacle、PathSegment、
PathControl、PlannerConfig、PlannerStatus、PlannerResult、PlannerData。
"""

from __future__ import annotations

import enum
import json
import math
from dataclasses import dataclass, field
from dataclasses import fields as dc_fields
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from .errors import ConfigurationError


@dataclass
class Obstacle:
    """工作空间中的轴对齐障碍盒，由 Scene 创建和索引"""
    min_point: np.ndarray
    max_point: np.ndarray
    name: str = ""

    def __post_init__(self) -> None:
        self.min_point = np.asarray(self.min_point, dtype=np.float64)
        self.max_point = np.asarray(self.max_point, dtype=np.float64)
        if self.min_point.shape != self.max_point.shape:
            raise ConfigurationError(
                f"障碍物角点维度不一致: {self.min_point.shape} / {self.max_point.shape}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'min': self.min_point.tolist(),
            'max': self.max_point.tolist(),
            'name': self.name,
        }


# ═══════════════════════════════════════════════════════════════════════════
# 路径
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class PathSegment:
    """带控制量的路径段

    ``state`` 是执行 ``control`` 持续 ``duration`` 秒之后到达的状态。
    起点以及几何图中的顶点没有控制量，duration 为 0。
    """
    state: np.ndarray
    control: Optional[np.ndarray] = None
    duration: float = 0.0

    def __post_init__(self) -> None:
        self.state = np.asarray(self.state, dtype=np.float64)
        if self.control is not None:
            self.control = np.asarray(self.control, dtype=np.float64)


@dataclass
class PathControl:
    """有序、带时间的路径

    几何路径的每一段都是零时长的 waypoint；控制路径的每一段记录
    (state, control, duration)。
    """
    segments: List[PathSegment] = field(default_factory=list)

    def append(
        self,
        state: np.ndarray,
        control: Optional[np.ndarray] = None,
        duration: float = 0.0,
    ) -> None:
        self.segments.append(PathSegment(state, control, duration))

    @property
    def n_states(self) -> int:
        return len(self.segments)

    def __len__(self) -> int:
        return len(self.segments)

    @property
    def states(self) -> List[np.ndarray]:
        return [s.state for s in self.segments]

    @property
    def controls(self) -> List[Optional[np.ndarray]]:
        return [s.control for s in self.segments]

    @property
    def durations(self) -> List[float]:
        return [s.duration for s in self.segments]

    @property
    def total_duration(self) -> float:
        return float(sum(s.duration for s in self.segments))

    @property
    def has_controls(self) -> bool:
        return any(s.control is not None for s in self.segments)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'segments': [
                {
                    'state': s.state.tolist(),
                    'control': None if s.control is None else s.control.tolist(),
                    'duration': s.duration,
                }
                for s in self.segments
            ],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PathControl':
        path = cls()
        for item in data.get('segments', []):
            path.append(item['state'], item.get('control'),
                        float(item.get('duration', 0.0)))
        return path


# ═══════════════════════════════════════════════════════════════════════════
# 配置
# ═══════════════════════════════════════════════════════════════════════════

HEURISTIC_STRATEGIES = ('dijkstra', 'astar')


@dataclass
class PlannerConfig:
    """AIT*-Kin 规划器参数配置

    Attributes:
        num_threads: 并行工作线程数，每个线程持有独立的图和近邻索引
        batch_size: 每轮加入图中的采样数
        radius: RGG 连边的最大半径 (radius 模式下与理论半径取小)
        max_neighbors: 单个顶点最多连接的邻居数 (<=0 表示不限)
        min_dist_between_vertices: 近似重复采样的剔除距离
        max_dist_between_vertices: 边的最大长度 (<=0 表示不限)
        use_valid_sampler: 是否只保留通过有效性检测的采样
        max_valid_sample_attempts: valid sampler 每个采样最多尝试次数
        k_number_of_controls: 定向扩展时每个目标尝试的控制量个数
        use_k_nearest: True 使用 k 近邻连边, False 使用半径连边
        heuristic_strategy: 启发式预计算策略 ('dijkstra' / 'astar')
        goal_bias: 控制图扩展时直接以目标为采样目标的概率
        rewire_factor: RGG 半径/邻居数的放大系数
        goal_tolerance: 起终点重合判定容差
        control_goal_tolerance: 控制图末端状态连接到目标顶点的距离阈值
        check_edges: A* 中是否对几何边做惰性插值有效性检测
        motion_resolution: 边有效性检测的插值步长 (状态空间距离)
        use_informed_sampling: 有解后是否切换为 informed 采样
        enable_geometric_graph: 是否扩展几何图
        enable_control_graph: 是否扩展控制图
        smooth_geometric_path: 是否对几何最优路径做 shortcut 后处理
        nn_rebuild_threshold: 近邻索引未建树尾部超过此数量时重建 KD 树
        seed: 随机种子 (0 = 运行时按时间生成)
    """
    num_threads: int = 1
    batch_size: int = 1000
    radius: float = math.inf
    max_neighbors: int = 10
    min_dist_between_vertices: float = 0.1
    max_dist_between_vertices: float = 0.0
    use_valid_sampler: bool = False
    max_valid_sample_attempts: int = 100
    k_number_of_controls: int = 1
    use_k_nearest: bool = True
    heuristic_strategy: str = 'dijkstra'
    goal_bias: float = 0.05
    rewire_factor: float = 1.0
    goal_tolerance: float = 0.05
    control_goal_tolerance: float = 0.5
    check_edges: bool = True
    motion_resolution: float = 0.1
    use_informed_sampling: bool = True
    enable_geometric_graph: bool = True
    enable_control_graph: bool = True
    smooth_geometric_path: bool = False
    nn_rebuild_threshold: int = 64
    seed: int = 0

    def validate(self) -> None:
        """检查参数取值，非法时抛出 ConfigurationError"""
        if self.num_threads < 1:
            raise ConfigurationError(f"num_threads 必须 >= 1, 实际 {self.num_threads}")
        if self.batch_size < 1:
            raise ConfigurationError(f"batch_size 必须 >= 1, 实际 {self.batch_size}")
        if self.k_number_of_controls < 1:
            raise ConfigurationError("k_number_of_controls 必须 >= 1")
        if not 0.0 <= self.goal_bias <= 1.0:
            raise ConfigurationError(f"goal_bias 必须在 [0, 1], 实际 {self.goal_bias}")
        if self.min_dist_between_vertices < 0.0:
            raise ConfigurationError("min_dist_between_vertices 不能为负")
        if (self.max_dist_between_vertices > 0.0
                and self.max_dist_between_vertices < self.min_dist_between_vertices):
            raise ConfigurationError(
                "max_dist_between_vertices 小于 min_dist_between_vertices")
        if self.radius <= 0.0:
            raise ConfigurationError(f"radius 必须 > 0, 实际 {self.radius}")
        if self.rewire_factor <= 0.0:
            raise ConfigurationError("rewire_factor 必须 > 0")
        if self.goal_tolerance < 0.0 or self.control_goal_tolerance < 0.0:
            raise ConfigurationError("goal tolerance 不能为负")
        if (self.enable_control_graph
                and self.control_goal_tolerance < self.min_dist_between_vertices):
            # 更近的末端会被当作重复丢弃, 目标区域将不可达
            raise ConfigurationError(
                "control_goal_tolerance 小于 min_dist_between_vertices, "
                "控制图无法进入目标区域")
        if self.motion_resolution <= 0.0:
            raise ConfigurationError("motion_resolution 必须 > 0")
        if self.heuristic_strategy not in HEURISTIC_STRATEGIES:
            raise ConfigurationError(
                f"未知启发式策略 '{self.heuristic_strategy}', "
                f"可选 {list(HEURISTIC_STRATEGIES)}")
        if not (self.enable_geometric_graph or self.enable_control_graph):
            raise ConfigurationError("几何图和控制图至少启用一个")
        if self.nn_rebuild_threshold < 1:
            raise ConfigurationError("nn_rebuild_threshold 必须 >= 1")

    # ── JSON 序列化 ──

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in dc_fields(self)}

    def to_json(self, filepath: str | Path) -> str:
        """保存到 JSON 文件, 返回文件路径字符串"""
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        data = self.to_dict()
        # JSON 没有 inf
        if math.isinf(data['radius']):
            data['radius'] = None
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        return str(filepath)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PlannerConfig':
        """从字典创建（忽略未知字段，缺失字段用默认值）"""
        valid_fields = {f.name for f in dc_fields(cls)}
        filtered = {k: v for k, v in data.items() if k in valid_fields}
        if filtered.get('radius', 0.0) is None:
            filtered['radius'] = math.inf
        return cls(**filtered)

    @classmethod
    def from_json(cls, filepath: str | Path) -> 'PlannerConfig':
        filepath = Path(filepath)
        with open(filepath, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return cls.from_dict(data)


# ═══════════════════════════════════════════════════════════════════════════
# 结果
# ═══════════════════════════════════════════════════════════════════════════

class PlannerStatus(enum.Enum):
    """solve() 的终止状态

    NO_SOLUTION 与 "找到零长度路径" 是可区分的：后者是 SOLVED。
    """
    SOLVED = 'solved'
    NO_SOLUTION = 'no_solution'

    def __bool__(self) -> bool:
        return self is PlannerStatus.SOLVED


@dataclass
class PlannerResult:
    """路径规划结果

    Attributes:
        status: SOLVED / NO_SOLUTION
        geometric_path: 几何图上的最优路径（可能为 None）
        control_path: 控制图上的最优路径（可能为 None）
        geometric_cost: 几何最优路径代价 (无解为 inf)
        control_cost: 控制最优路径代价 (无解为 inf)
        cost_history: 每轮结束时的 (round, geometric_cost, control_cost)
        n_rounds: 所有线程完成的轮数总和
        planning_time: 本次 solve 耗时 (s)
        first_solution_time: 首次找到解的时间 (s), 无解为 nan
        n_validity_checks: 有效性检测调用次数
        phase_times: 各阶段累计耗时 (s)
        message: 描述信息
        timestamp: 时间戳
    """
    status: PlannerStatus = PlannerStatus.NO_SOLUTION
    geometric_path: Optional[PathControl] = None
    control_path: Optional[PathControl] = None
    geometric_cost: float = math.inf
    control_cost: float = math.inf
    cost_history: List[Tuple[int, float, float]] = field(default_factory=list)
    n_rounds: int = 0
    planning_time: float = 0.0
    first_solution_time: float = float('nan')
    n_validity_checks: int = 0
    phase_times: Dict[str, float] = field(default_factory=dict)
    message: str = ""
    timestamp: str = field(
        default_factory=lambda: datetime.now().strftime('%Y%m%d_%H%M%S'))

    @property
    def success(self) -> bool:
        return self.status is PlannerStatus.SOLVED

    @property
    def path(self) -> Optional[PathControl]:
        """最佳可执行路径：优先控制路径，其次几何路径"""
        if self.control_path is not None:
            return self.control_path
        return self.geometric_path

    @property
    def cost(self) -> float:
        if self.control_path is not None:
            return self.control_cost
        return self.geometric_cost

    def to_dict(self) -> Dict[str, Any]:
        def _finite(x: float) -> Optional[float]:
            return x if math.isfinite(x) else None

        return {
            'status': self.status.value,
            'geometric_path': (None if self.geometric_path is None
                               else self.geometric_path.to_dict()),
            'control_path': (None if self.control_path is None
                             else self.control_path.to_dict()),
            'geometric_cost': _finite(self.geometric_cost),
            'control_cost': _finite(self.control_cost),
            'cost_history': [[r, _finite(g), _finite(c)]
                             for r, g, c in self.cost_history],
            'n_rounds': self.n_rounds,
            'planning_time': self.planning_time,
            'first_solution_time': _finite(self.first_solution_time),
            'n_validity_checks': self.n_validity_checks,
            'phase_times': dict(self.phase_times),
            'message': self.message,
            'timestamp': self.timestamp,
        }

    def save(self, filepath: str | Path) -> str:
        """将规划结果保存为 JSON 文件, 返回文件路径字符串"""
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
        return str(filepath)


@dataclass
class PlannerData:
    """规划器内部图结构快照 (getPlannerData)

    每个工作线程一份；顶点 id 只在 (图, 线程) 内有效。
    """
    thread_id: int
    geometric_states: np.ndarray
    geometric_edges: List[Tuple[int, int, float]]
    geometric_blacklisted: List[int]
    control_states: np.ndarray
    control_edges: List[Tuple[int, int, float]]
    start_id: int = 0
    goal_id: int = 1
    control_goal_region: List[int] = field(default_factory=list)

    @property
    def n_geometric_vertices(self) -> int:
        return int(self.geometric_states.shape[0])

    @property
    def n_control_vertices(self) -> int:
        return int(self.control_states.shape[0])

    def to_dict(self) -> Dict[str, Any]:
        return {
            'thread_id': self.thread_id,
            'geometric_states': self.geometric_states.tolist(),
            'geometric_edges': [list(e) for e in self.geometric_edges],
            'geometric_blacklisted': list(self.geometric_blacklisted),
            'control_states': self.control_states.tolist(),
            'control_edges': [list(e) for e in self.control_edges],
            'start_id': self.start_id,
            'goal_id': self.goal_id,
            'control_goal_region': list(self.control_goal_region),
        }
