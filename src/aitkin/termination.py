"""
aitkin/termination.py - 终止条件

终止条件是一个无参可调用对象，返回 True 表示应停止规划。
工作线程在两轮之间轮询它，正在进行的扩展或搜索总会完整结束
(协作式取消)。所有条件都可以被多个工作线程并发轮询。
"""

from __future__ import annotations

import threading
import time
from typing import Callable


class TerminationCondition:
    """可调用终止条件

    Args:
        fn: 无参谓词；为 None 时只能通过 terminate() 触发

    Example:
        >>> ptc = any_of(timed_termination(2.0), exact_solution_termination(planner))
        >>> result = planner.solve(ptc)
    """

    def __init__(self, fn: Callable[[], bool] = None) -> None:
        self._fn = fn
        self._event = threading.Event()

    def __call__(self) -> bool:
        if self._event.is_set():
            return True
        if self._fn is not None and self._fn():
            self._event.set()
            return True
        return False

    def terminate(self) -> None:
        """立即触发 (下一次轮询返回 True)"""
        self._event.set()

    @property
    def triggered(self) -> bool:
        return self._event.is_set()


def timed_termination(seconds: float) -> TerminationCondition:
    """从创建时起经过 seconds 秒后触发"""
    deadline = time.monotonic() + float(seconds)
    return TerminationCondition(lambda: time.monotonic() >= deadline)


def iteration_termination(n_rounds: int) -> TerminationCondition:
    """被轮询超过 n_rounds 次后触发

    每次轮询计一次，前 n_rounds 次返回 False，计数器加锁。
    多线程下即所有线程合计执行 n_rounds 轮。
    """
    lock = threading.Lock()
    count = [0]

    def _tick() -> bool:
        with lock:
            count[0] += 1
            return count[0] > n_rounds

    return TerminationCondition(_tick)


def exact_solution_termination(planner) -> TerminationCondition:
    """planner 找到任一路径 (几何或控制) 后触发"""
    return TerminationCondition(planner.has_solution)


def any_of(*conditions: Callable[[], bool]) -> TerminationCondition:
    """任一条件触发即触发"""
    return TerminationCondition(lambda: any(c() for c in conditions))
