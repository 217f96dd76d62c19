"""
utils/timing.py - 阶段计时器

记录规划循环各阶段 (采样 / 扩展 / 搜索) 的累计耗时。
同一阶段多次进入时耗时累加，可在多个线程间共享。
"""

import threading
import time
from contextlib import contextmanager
from typing import Dict


class Timer:
    """阶段计时器"""

    def __init__(self) -> None:
        self.records: Dict[str, float] = {}
        self._lock = threading.Lock()

    @contextmanager
    def phase(self, name: str):
        """累计 name 阶段的耗时 (秒)."""
        t0 = time.perf_counter()
        try:
            yield
        finally:
            dt = time.perf_counter() - t0
            with self._lock:
                self.records[name] = self.records.get(name, 0.0) + dt

    @property
    def total(self) -> float:
        return sum(self.records.values())

    def to_dict(self) -> dict:
        with self._lock:
            return {**self.records, "total": sum(self.records.values())}

    def reset(self) -> None:
        with self._lock:
            self.records.clear()

    def summary(self, unit: str = "ms") -> str:
        """返回格式化汇总字符串."""
        mul = 1000.0 if unit == "ms" else 1.0
        lines = []
        for name, sec in self.records.items():
            lines.append(f"  {name:20s}: {sec * mul:8.1f} {unit}")
        lines.append(f"  {'TOTAL':20s}: {self.total * mul:8.1f} {unit}")
        return "\n".join(lines)
