"""
运动学链异常类定义

异常类层次：
- KinematicChainError（基类）
  - ChainConfigurationError（链结构或参数配置错误）
  - ConsistencyViolationError（派生链接一致性校验失败）

ConsistencyViolationError 表示建模缺陷（撤销变换未能抵消正向变换），
不是运行时条件，扫描过程中遇到时应直接中止。

使用示例：
    >>> from kinematic_chain.exceptions import ChainConfigurationError
    >>> raise ChainConfigurationError(
    ...     "变换 'undo_motion' 的参数 'tilt_x' 为派生参数，不能直接写入。"
    ... )
"""

from typing import Optional


class KinematicChainError(Exception):
    """运动学链基础异常

    属性:
        message: 错误信息
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ChainConfigurationError(KinematicChainError, ValueError):
    """链配置错误

    常见触发条件：
    - 变换名称重复或不存在
    - 参数列名未知，或该列不适用于变换类型
    - 派生链接形成环路或指向自身
    - 直接写入派生参数
    - 姿态角、误差角为非有限值
    """
    pass


class ConsistencyViolationError(KinematicChainError):
    """一致性校验失败

    正向旋转与其撤销旋转的合成偏离基线超过容差，
    或派生参数与其源参数不再满足链接关系时抛出。

    属性:
        message: 错误描述
        residual: 超差的残差值（可选）
    """

    def __init__(self, message: str, residual: Optional[float] = None) -> None:
        super().__init__(message)
        self.residual = residual
