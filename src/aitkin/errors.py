"""
aitkin/errors.py - 规划器异常类型

只有配置错误和调用顺序错误会以异常形式抛出。搜索失败、顶点无效、
时间耗尽都属于正常结果，通过 PlannerResult.status 表达。
"""


class PlannerError(Exception):
    """aitkin 所有异常的基类"""


class ConfigurationError(PlannerError, ValueError):
    """非法配置：边界畸形、零尺寸状态空间、参数越界等

    在 setup 阶段抛出，对本次 solve 调用是致命的。
    """


class PlannerStateError(PlannerError, RuntimeError):
    """调用顺序错误，例如未设置始末点就调用 solve"""
