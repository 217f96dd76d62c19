"""
aitkin/cli.py - 命令行入口 ``aitkin-plan``

Example::

    aitkin-plan --model holonomic --low -10 -10 -10 --high 10 10 10 \\
        --start 0 0 0 --goal 5 0 0 --time 2 --output result.json
    aitkin-plan --model car --scene scene.json --config planner.json \\
        --start 0 0 0 0 --goal 6 2 0 0 --threads 4
"""

from __future__ import annotations

import argparse
import logging
import math
import sys
from typing import List, Optional

from .collision import AllValidChecker, SceneValidityChecker
from .dynamics import make_model
from .errors import PlannerError
from .models import PlannerConfig
from .obstacles import Scene
from .planner import AITStarKin
from .spaces import KinematicCarSpace, RealVectorSpace, SE2Space
from .termination import timed_termination

LOG_FMT = "[%(asctime)s] %(levelname)-7s %(name)s: %(message)s"

logger = logging.getLogger("aitkin.cli")

# 各模型的默认状态空间边界
DEFAULT_BOUNDS = {
    'holonomic': ([-10.0, -10.0, -10.0], [10.0, 10.0, 10.0]),
    'se2': ([-10.0, -10.0, -math.pi], [10.0, 10.0, math.pi]),
    'car': ([-10.0, -10.0, -math.pi, -1.0], [10.0, 10.0, math.pi, 1.0]),
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aitkin-plan",
        description="AIT*-Kin 运动规划 (几何图 + 控制图)")
    parser.add_argument("--model", choices=("holonomic", "se2", "car"),
                        default="holonomic",
                        help="运动模型 (默认: holonomic, R^n 全向)")
    parser.add_argument("--low", type=float, nargs="+", default=None,
                        help="状态空间下界 (默认按模型)")
    parser.add_argument("--high", type=float, nargs="+", default=None,
                        help="状态空间上界 (默认按模型)")
    parser.add_argument("--start", type=float, nargs="+", required=True,
                        help="起点状态")
    parser.add_argument("--goal", type=float, nargs="+", required=True,
                        help="目标状态")
    parser.add_argument("--config", type=str, default=None,
                        help="PlannerConfig JSON 文件")
    parser.add_argument("--scene", type=str, default=None,
                        help="障碍物场景 JSON (默认: 空场景)")
    parser.add_argument("--time", type=float, default=2.0,
                        help="时间预算 秒 (默认: 2)")
    parser.add_argument("--threads", type=int, default=None,
                        help="工作线程数 (覆盖配置文件)")
    parser.add_argument("--seed", type=int, default=None,
                        help="随机种子 (覆盖配置文件, 0 = 按时间生成)")
    parser.add_argument("--output", type=str, default=None,
                        help="规划结果 JSON 输出路径")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="输出 DEBUG 日志")
    return parser


def build_planner(args: argparse.Namespace) -> AITStarKin:
    low, high = DEFAULT_BOUNDS[args.model]
    if args.low is not None:
        low = args.low
    if args.high is not None:
        high = args.high

    space_cls = {'car': KinematicCarSpace, 'se2': SE2Space}.get(args.model, RealVectorSpace)
    space = space_cls(low, high)
    # se2 用全向模型, 只有 car 使用自行车模型
    model = make_model('car' if args.model == 'car' else 'holonomic', space)

    config = PlannerConfig()
    if args.config:
        config = PlannerConfig.from_json(args.config)
    if args.threads is not None:
        config.num_threads = args.threads
    if args.seed is not None:
        config.seed = args.seed

    if args.scene:
        scene = Scene.from_json(args.scene)
        validity = SceneValidityChecker(scene, space,
                                        resolution=config.motion_resolution)
        logger.info("加载场景 %s: %d 个障碍物", args.scene, scene.n_obstacles)
    else:
        validity = AllValidChecker(space, config.motion_resolution)

    planner = AITStarKin(model, validity, config)
    planner.set_problem(args.start, args.goal)
    return planner


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FMT, datefmt="%H:%M:%S")

    try:
        planner = build_planner(args)
        result = planner.solve(timed_termination(args.time))
    except PlannerError as e:
        logger.error("规划失败: %s", e)
        return 2

    logger.info("状态: %s", result.status.value)
    logger.info("几何代价: %.4f, 控制代价: %.4f",
                result.geometric_cost, result.control_cost)
    logger.info("轮数: %d, 有效性检测: %d 次, 耗时 %.2fs",
                result.n_rounds, result.n_validity_checks, result.planning_time)
    for name, sec in result.phase_times.items():
        logger.info("  %-18s %8.1f ms", name, sec * 1000.0)

    if args.output:
        path = result.save(args.output)
        logger.info("结果已保存: %s", path)
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
