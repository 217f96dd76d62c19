"""
aitkin/planner.py - AIT*-Kin 主规划器

同时维护几何图 (RGG) 和控制图，每轮做
采样 → 扩展 → 启发式预计算 → 碰撞检测搜索 → 路径提交，
在终止条件触发前不断改进最优解 (anytime)。

并发模型：
    每个工作线程 (ThreadPoolExecutor) 独占一套 WorkerContext：两张图、
    两个近邻索引、独立 RNG。线程之间只共享最优路径记录，
    由一把 threading.Lock 保护；读当前最优代价 (informed 采样) 也加锁。
    终止条件在两轮之间轮询，进行中的一轮总会完整结束。

状态机::

    IDLE → SETUP → {SAMPLING, EXPANDING, SEARCHING} (循环) → SOLVED | TIMED_OUT
"""

from __future__ import annotations

import enum
import logging
import math
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple, Union

import numpy as np

from .collision import ValidityChecker
from .control_builder import ControlGraphBuilder
from .dynamics import MotionModel
from .errors import ConfigurationError, PlannerStateError
from .geometric_builder import (
    GeometricGraphBuilder,
    compute_connection_radius,
    compute_number_of_neighbors,
)
from .graph import INF, Graph
from .models import (
    PathControl,
    PlannerConfig,
    PlannerData,
    PlannerResult,
    PlannerStatus,
)
from .nearest import NearestNeighbors
from .path import (
    assemble_path,
    compute_path_cost,
    find_invalid_segment,
    path_length,
)
from .path_smoother import PathSmoother
from .sampling import SampleGenerator, informed_measure
from .search import Found, collision_checked_search, precompute_heuristic
from .termination import TerminationCondition, timed_termination
from .utils import Timer, make_seed, spawn_rngs

logger = logging.getLogger(__name__)

START_ID = 0
GOAL_ID = 1

DEFAULT_TIME_LIMIT = 5.0


class PlannerState(enum.Enum):
    IDLE = 'idle'
    SETUP = 'setup'
    SAMPLING = 'sampling'
    EXPANDING = 'expanding'
    SEARCHING = 'searching'
    SOLVED = 'solved'
    TIMED_OUT = 'timed_out'


@dataclass
class WorkerContext:
    """单个工作线程的私有数据，不与其他线程共享"""
    thread_id: int
    rng: np.random.Generator
    geometric_graph: Graph
    geometric_nn: NearestNeighbors
    control_graph: Graph
    control_nn: NearestNeighbors
    sampler: SampleGenerator
    geometric_builder: GeometricGraphBuilder
    control_builder: ControlGraphBuilder
    smoother: PathSmoother
    n_samples: int = 0
    n_rounds: int = 0


class AITStarKin:
    """AIT*-Kin 规划器

    Args:
        model: 运动模型 (其 state_space 即规划空间)
        validity: 有效性检测器 (外部提供的预言机)
        config: 规划参数配置

    Example:
        >>> space = RealVectorSpace([-10] * 3, [10] * 3)
        >>> planner = AITStarKin(HolonomicModel(space), AllValidChecker(space))
        >>> planner.set_problem([0, 0, 0], [5, 0, 0])
        >>> result = planner.solve(timed_termination(2.0))
        >>> result.status
        <PlannerStatus.SOLVED: 'solved'>
    """

    def __init__(
        self,
        model: MotionModel,
        validity: ValidityChecker,
        config: Optional[PlannerConfig] = None,
    ) -> None:
        self.model = model
        self.space = model.state_space
        self.validity = validity
        self.config = config or PlannerConfig()

        self._start: Optional[np.ndarray] = None
        self._goal: Optional[np.ndarray] = None
        self._workers: List[WorkerContext] = []
        self._state = PlannerState.IDLE
        self._state_lock = threading.Lock()
        self._abort = threading.Event()
        self.timer = Timer()

        # 共享最优路径记录, 由 _lock 保护
        self._lock = threading.Lock()
        self._reset_best()

    def _reset_best(self) -> None:
        with self._lock:
            self._best_geometric_cost = INF
            self._best_geometric_path: Optional[PathControl] = None
            self._best_control_cost = INF
            self._best_control_path: Optional[PathControl] = None
            self._cost_history: List[Tuple[int, float, float]] = []
            self._round_counter = 0
            self._first_solution_time = float('nan')
            self._solve_t0 = 0.0

    # ── 状态 ──

    @property
    def state(self) -> PlannerState:
        return self._state

    def _set_state(self, state: PlannerState) -> None:
        with self._state_lock:
            self._state = state

    @property
    def start(self) -> Optional[np.ndarray]:
        return None if self._start is None else self._start.copy()

    @property
    def goal(self) -> Optional[np.ndarray]:
        return None if self._goal is None else self._goal.copy()

    @property
    def is_setup(self) -> bool:
        return bool(self._workers)

    def best_costs(self) -> Tuple[float, float]:
        """(几何最优代价, 控制最优代价)"""
        with self._lock:
            return self._best_geometric_cost, self._best_control_cost

    def has_solution(self) -> bool:
        g, c = self.best_costs()
        return math.isfinite(g) or math.isfinite(c)

    # ── 问题定义 ──

    def set_problem(self, start, goal) -> None:
        """设置起点和目标；已有的图全部释放"""
        start = np.asarray(start, dtype=np.float64)
        goal = np.asarray(goal, dtype=np.float64)
        dim = self.space.dimension
        if start.shape != (dim,) or goal.shape != (dim,):
            raise ConfigurationError(
                f"起终点维度应为 {dim}, 实际 {start.shape} / {goal.shape}")
        self._start = start
        self._goal = goal
        self.clear()

    def setup(self) -> None:
        """校验配置，为每个工作线程分配图和近邻索引，插入起终点

        Raises:
            PlannerStateError: 未调用 set_problem
            ConfigurationError: 配置非法或起终点越界
        """
        if self._start is None or self._goal is None:
            raise PlannerStateError("solve/setup 之前必须先调用 set_problem")
        cfg = self.config
        cfg.validate()
        for name, s in (("起点", self._start), ("目标", self._goal)):
            if not np.all(np.isfinite(s)):
                raise ConfigurationError(f"{name}含非有限值: {s.tolist()}")
            if not self.space.satisfies_bounds(s):
                raise ConfigurationError(f"{name}超出状态空间边界: {s.tolist()}")

        self._set_state(PlannerState.SETUP)
        seed = make_seed(cfg.seed)
        rngs = spawn_rngs(seed, cfg.num_threads)
        self._workers = [self._make_worker(i, rng) for i, rng in enumerate(rngs)]
        self._reset_best()
        self.timer.reset()

        if not self.validity.is_valid(self._start):
            logger.warning("起点状态未通过有效性检测, 规划可能无解")
        logger.info("AITStarKin setup: %s, %d 线程, batch=%d, seed=%d",
                    type(self.space).__name__, cfg.num_threads,
                    cfg.batch_size, seed)

    def _make_worker(self, thread_id: int, rng: np.random.Generator) -> WorkerContext:
        cfg = self.config
        g_graph = Graph(directed=False)
        g_nn = NearestNeighbors(self.space, rebuild_threshold=cfg.nn_rebuild_threshold)
        c_graph = Graph(directed=True)
        c_nn = NearestNeighbors(self.space, rebuild_threshold=cfg.nn_rebuild_threshold)

        # 起点 id 0, 目标 id 1
        for graph, nn in ((g_graph, g_nn), (c_graph, c_nn)):
            graph.add_vertex(self._start.copy())
            graph.add_vertex(self._goal.copy())
            nn.add(START_ID, self._start)
        # 目标只进几何图的近邻索引：控制图从不以目标为扩展源
        g_nn.add(GOAL_ID, self._goal)

        return WorkerContext(
            thread_id=thread_id,
            rng=rng,
            geometric_graph=g_graph,
            geometric_nn=g_nn,
            control_graph=c_graph,
            control_nn=c_nn,
            sampler=SampleGenerator(self.space, self.validity, rng,
                                    cfg.max_valid_sample_attempts),
            geometric_builder=GeometricGraphBuilder(cfg),
            control_builder=ControlGraphBuilder(self.model, self.validity, cfg, rng),
            smoother=PathSmoother(self.validity, self.space, cfg.motion_resolution),
        )

    def clear(self) -> None:
        """释放所有采样和图，回到 IDLE (保留起终点)"""
        self._workers = []
        self._reset_best()
        self.timer.reset()
        self._abort.clear()
        self._set_state(PlannerState.IDLE)

    # ── 求解 ──

    def solve(
        self,
        ptc: Union[TerminationCondition, Callable[[], bool], float, None] = None,
    ) -> PlannerResult:
        """运行规划直到终止条件触发

        Args:
            ptc: 终止条件；数值表示时间预算 (秒)，None 时使用
                DEFAULT_TIME_LIMIT 秒

        Returns:
            PlannerResult。时间耗尽不是错误：返回此前找到的最优路径，
            一条都没有时 status 为 NO_SOLUTION。

        Raises:
            PlannerStateError: 未设置问题
            ConfigurationError: 配置非法
        """
        if ptc is None:
            ptc = timed_termination(DEFAULT_TIME_LIMIT)
        elif isinstance(ptc, (int, float)):
            ptc = timed_termination(float(ptc))
        if not self.is_setup:
            self.setup()

        t0 = time.perf_counter()
        n_checks0 = self.validity.n_checks
        rounds0 = sum(w.n_rounds for w in self._workers)
        with self._lock:
            self._solve_t0 = t0

        # ---- 起终点重合: 零长度路径 ----
        if self.space.distance(self._start, self._goal) <= self.config.goal_tolerance:
            return self._trivial_result(t0, n_checks0)

        # ---- 工作线程 ----
        self._abort.clear()
        with ThreadPoolExecutor(max_workers=len(self._workers),
                                thread_name_prefix='aitkin') as pool:
            futures = [pool.submit(self._worker_loop, w, ptc)
                       for w in self._workers]
            for f in futures:
                f.result()

        # ---- 组装结果 ----
        with self._lock:
            result = PlannerResult(
                geometric_path=self._best_geometric_path,
                control_path=self._best_control_path,
                geometric_cost=self._best_geometric_cost,
                control_cost=self._best_control_cost,
                cost_history=list(self._cost_history),
                first_solution_time=self._first_solution_time,
            )
        result.n_rounds = sum(w.n_rounds for w in self._workers) - rounds0
        result.planning_time = time.perf_counter() - t0
        result.n_validity_checks = self.validity.n_checks - n_checks0
        result.phase_times = self.timer.to_dict()

        if result.geometric_path is not None or result.control_path is not None:
            result.status = PlannerStatus.SOLVED
            self._set_state(PlannerState.SOLVED)
            result.message = (
                f"规划成功: 几何代价 {result.geometric_cost:.4f}, "
                f"控制代价 {result.control_cost:.4f}, "
                f"{result.n_rounds} 轮, {result.planning_time:.2f}s")
            logger.info(result.message)
        else:
            result.status = PlannerStatus.NO_SOLUTION
            self._set_state(PlannerState.TIMED_OUT)
            result.message = (f"未找到路径: {result.n_rounds} 轮, "
                              f"{result.planning_time:.2f}s")
            logger.warning(result.message)
        return result

    def _trivial_result(self, t0: float, n_checks0: int) -> PlannerResult:
        path = PathControl()
        path.append(self._start.copy())
        with self._lock:
            if self.config.enable_geometric_graph:
                self._best_geometric_cost = 0.0
                self._best_geometric_path = path
            if self.config.enable_control_graph:
                self._best_control_cost = 0.0
                self._best_control_path = path
            self._cost_history.append(
                (0, self._best_geometric_cost, self._best_control_cost))
            self._first_solution_time = 0.0
            result = PlannerResult(
                status=PlannerStatus.SOLVED,
                geometric_path=self._best_geometric_path,
                control_path=self._best_control_path,
                geometric_cost=self._best_geometric_cost,
                control_cost=self._best_control_cost,
                cost_history=list(self._cost_history),
                first_solution_time=0.0,
            )
        result.planning_time = time.perf_counter() - t0
        result.n_validity_checks = self.validity.n_checks - n_checks0
        result.message = "起点与目标重合 (容差内), 返回单点路径"
        self._set_state(PlannerState.SOLVED)
        logger.info(result.message)
        return result

    def _worker_loop(self, w: WorkerContext, ptc: Callable[[], bool]) -> None:
        try:
            while not self._abort.is_set() and not ptc():
                self._run_round(w)
        except Exception:
            # 一个线程出错时让其余线程尽快退出, 异常由 future.result() 抛出
            self._abort.set()
            raise

    def _informed_cost(self) -> float:
        """informed 采样使用的代价：所有启用图的最优代价中的最大者"""
        g, c = self.best_costs()
        costs = []
        if self.config.enable_geometric_graph:
            costs.append(g)
        if self.config.enable_control_graph:
            costs.append(c)
        return max(costs)

    def _run_round(self, w: WorkerContext) -> None:
        cfg = self.config
        best = self._informed_cost() if cfg.use_informed_sampling else INF

        # ---- 采样 ----
        self._set_state(PlannerState.SAMPLING)
        with self.timer.phase('sampling'):
            samples = w.sampler.generate_batch(
                cfg.batch_size, cfg.use_valid_sampler, best,
                self._start, self._goal)
        w.n_samples += len(samples)

        # ---- 扩展 ----
        self._set_state(PlannerState.EXPANDING)
        if cfg.enable_geometric_graph:
            with self.timer.phase('geometric_expand'):
                dim = self.space.dimension
                measure = informed_measure(self.space, best, self._start, self._goal)
                radius = min(cfg.radius, compute_connection_radius(
                    w.n_samples, dim, measure, cfg.rewire_factor))
                k = compute_number_of_neighbors(w.n_samples, dim, cfg.rewire_factor)
                if cfg.max_neighbors > 0:
                    k = min(k, cfg.max_neighbors)
                w.geometric_builder.expand(
                    samples, w.geometric_graph, w.geometric_nn, radius, k)
                w.geometric_builder.ensure_goal_connectivity(
                    GOAL_ID, w.geometric_graph, w.geometric_nn, k)
        if cfg.enable_control_graph:
            with self.timer.phase('control_expand'):
                w.control_builder.expand(
                    samples, w.control_graph, w.control_nn, GOAL_ID)
                w.control_builder.connect_toward(
                    GOAL_ID, w.control_graph, w.control_nn, GOAL_ID)

        # ---- 搜索 ----
        self._set_state(PlannerState.SEARCHING)
        if cfg.enable_geometric_graph:
            with self.timer.phase('geometric_search'):
                self._search_graph(w, w.geometric_graph, is_control=False)
        if cfg.enable_control_graph:
            with self.timer.phase('control_search'):
                self._search_graph(w, w.control_graph, is_control=True)

        w.n_rounds += 1
        with self._lock:
            self._round_counter += 1
            self._cost_history.append((self._round_counter,
                                       self._best_geometric_cost,
                                       self._best_control_cost))
            round_no = self._round_counter
        logger.debug("线程 %d 第 %d 轮: 几何图 %d 顶点 / %d 边, 控制图 %d 顶点",
                     w.thread_id, round_no, w.geometric_graph.n_vertices,
                     w.geometric_graph.n_edges, w.control_graph.n_vertices)

    def _search_graph(self, w: WorkerContext, graph: Graph, is_control: bool) -> None:
        cfg = self.config
        precompute_heuristic(graph, GOAL_ID, cfg.heuristic_strategy,
                             start_id=START_ID, distance=self.space.distance)
        res = collision_checked_search(
            graph, START_ID, GOAL_ID, self.validity,
            check_edges=cfg.check_edges and not is_control,
            motion_resolution=cfg.motion_resolution,
        )
        if not isinstance(res, Found):
            return

        current = self.best_costs()[1 if is_control else 0]
        if res.cost >= current:
            return

        path = assemble_path(res.path, graph, self.model.propagation_step_size)
        bad = find_invalid_segment(path, self.validity, self.model,
                                   cfg.motion_resolution)
        if bad is not None:
            # 整体复检失败: 切断失败的那一段, 下一轮绕开
            if bad > 0:
                graph.set_weight(res.path[bad - 1], res.path[bad], INF)
            logger.debug("线程 %d: 路径复检在第 %d 段失败, 丢弃",
                         w.thread_id, bad)
            return

        cost = compute_path_cost(res.path, graph)
        if not is_control and cfg.smooth_geometric_path:
            path = w.smoother.smooth(path, rng=w.rng)
            cost = min(cost, path_length(path, self.space))
        self._commit(w, path, cost, is_control)

    def _commit(
        self,
        w: WorkerContext,
        path: PathControl,
        cost: float,
        is_control: bool,
    ) -> None:
        """严格改进时更新共享最优记录"""
        kind = "控制" if is_control else "几何"
        with self._lock:
            if is_control:
                if cost >= self._best_control_cost:
                    return
                self._best_control_cost = cost
                self._best_control_path = path
            else:
                if cost >= self._best_geometric_cost:
                    return
                self._best_geometric_cost = cost
                self._best_geometric_path = path
            if math.isnan(self._first_solution_time):
                self._first_solution_time = time.perf_counter() - self._solve_t0
        logger.info("线程 %d: 新的最优%s路径, 代价 %.4f, %d 个点",
                    w.thread_id, kind, cost, len(path))

    # ── 内省 ──

    def get_planner_data(self, thread_id: int = 0) -> PlannerData:
        """导出某个工作线程的图结构快照

        Raises:
            PlannerStateError: 尚未 setup
        """
        if not self._workers:
            raise PlannerStateError("规划器尚未 setup, 没有图数据")
        w = self._workers[thread_id]
        g, c = w.geometric_graph, w.control_graph
        return PlannerData(
            thread_id=thread_id,
            geometric_states=g.states(),
            geometric_edges=list(g.edges()),
            geometric_blacklisted=[v.id for v in g.vertices if v.blacklisted],
            control_states=c.states(),
            control_edges=list(c.edges()),
            start_id=START_ID,
            goal_id=GOAL_ID,
            control_goal_region=sorted(c.goal_region),
        )

    def get_all_planner_data(self) -> List[PlannerData]:
        return [self.get_planner_data(i) for i in range(len(self._workers))]

    def worker(self, thread_id: int = 0) -> WorkerContext:
        """某个工作线程的上下文 (测试与诊断用)"""
        return self._workers[thread_id]
