"""
aitkin - 动力学约束下的 AIT* 风格 anytime 运动规划器

同时维护几何随机图 (RGG) 和动力学可行的控制图，用惰性碰撞检测
A* 搜索两张图，在时间预算内持续改进最优路径。

模块结构：
    spaces            状态空间 (R^n / SE2 / SE2 × 速度)
    dynamics          运动模型 (全向 / 自行车模型)
    collision         有效性检测接口与参考实现
    obstacles         AABB 障碍物场景
    sampling          均匀 / informed 批量采样
    nearest           近邻索引 (cKDTree)
    graph             顶点表 + 加权图
    geometric_builder 几何图构建
    control_builder   控制图构建
    search            启发式预计算 + 碰撞检测搜索
    path              路径组装与校验
    path_smoother     几何路径后处理
    termination       终止条件
    planner           主规划器 AITStarKin
"""

from .collision import (
    AllInvalidChecker,
    AllValidChecker,
    FunctionValidityChecker,
    SceneValidityChecker,
    ValidityChecker,
)
from .dynamics import HolonomicModel, KinematicCarModel, MotionModel, make_model
from .errors import ConfigurationError, PlannerError, PlannerStateError
from .graph import Graph, Vertex
from .models import (
    Obstacle,
    PathControl,
    PathSegment,
    PlannerConfig,
    PlannerData,
    PlannerResult,
    PlannerStatus,
)
from .nearest import NearestNeighbors
from .obstacles import Scene
from .planner import AITStarKin, PlannerState
from .search import Found, NotFound
from .spaces import KinematicCarSpace, RealVectorSpace, SE2Space, StateSpace
from .termination import (
    TerminationCondition,
    any_of,
    exact_solution_termination,
    iteration_termination,
    timed_termination,
)

__version__ = "0.1.0"

__all__ = [
    "AITStarKin",
    "PlannerState",
    "PlannerConfig",
    "PlannerResult",
    "PlannerStatus",
    "PlannerData",
    "PathControl",
    "PathSegment",
    "Obstacle",
    "Scene",
    "StateSpace",
    "RealVectorSpace",
    "SE2Space",
    "KinematicCarSpace",
    "MotionModel",
    "HolonomicModel",
    "KinematicCarModel",
    "make_model",
    "ValidityChecker",
    "FunctionValidityChecker",
    "AllValidChecker",
    "AllInvalidChecker",
    "SceneValidityChecker",
    "NearestNeighbors",
    "Graph",
    "Vertex",
    "Found",
    "NotFound",
    "TerminationCondition",
    "timed_termination",
    "iteration_termination",
    "exact_solution_termination",
    "any_of",
    "PlannerError",
    "ConfigurationError",
    "PlannerStateError",
]
