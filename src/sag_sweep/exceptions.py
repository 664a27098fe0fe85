"""
重力下沉扫描异常与警告定义

异常类层次：
- SagSweepError（基类）
  - EngineUnavailableError（分析引擎不可达或分析调用失败）

警告类：
- EngineFailureWarning（单次迭代分析失败，扫描继续）

同时重导出 gravity_sag 与 kinematic_chain 的异常，
调用方可以从此处导入完整的异常体系。
"""

from typing import Optional

# 重导出现有异常
from gravity_sag.exceptions import (
    GravitySagError,
    InvalidParameterError,
    GridFormatError,
)
from kinematic_chain.exceptions import (
    KinematicChainError,
    ChainConfigurationError,
    ConsistencyViolationError,
)


class SagSweepError(Exception):
    """扫描模块基础异常

    属性:
        message: 错误信息
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class EngineUnavailableError(SagSweepError):
    """分析引擎不可用

    引擎无法连接、未加载系统、分析调用失败或请求的系数不存在时抛出。
    在扫描中只影响当前迭代，由编排器捕获并记录为失败结果。

    属性:
        message: 错误描述
        angle_deg: 发生失败的姿态角（可选）
    """

    def __init__(self, message: str, angle_deg: Optional[float] = None) -> None:
        self.angle_deg = angle_deg
        full_message = message
        if angle_deg is not None:
            full_message = f"[θ = {angle_deg:g}°] {message}"
        super().__init__(full_message)
        self.message = message


class EngineFailureWarning(UserWarning):
    """单次迭代分析失败警告

    扫描遇到 EngineUnavailableError 时发出此警告并继续下一个角度。

    捕获警告示例:
        >>> import warnings
        >>> with warnings.catch_warnings(record=True) as w:
        ...     warnings.simplefilter("always")
        ...     results = orchestrator.run()
        ...     failures = [x for x in w if issubclass(x.category, EngineFailureWarning)]
    """
    pass


__all__ = [
    'SagSweepError',
    'EngineUnavailableError',
    'EngineFailureWarning',
    'GravitySagError',
    'InvalidParameterError',
    'GridFormatError',
    'KinematicChainError',
    'ChainConfigurationError',
    'ConsistencyViolationError',
]
