"""aitkin 工具函数：随机种子与阶段计时"""

from .seed import make_rng, make_seed, spawn_rngs
from .timing import Timer

__all__ = [
    "make_rng",
    "make_seed",
    "spawn_rngs",
    "Timer",
]
