"""
运动学链模块

本模块描述圆弧滑轨测试光路中的刚体变换序列（坐标断点、反射镜、
GridSag 测试面），以及正向运动与撤销运动之间的派生链接。

主要功能：
1. RigidTransform / ParameterPickup 描述 LDE 行与 Surface Pickup 求解
2. KinematicChain 维护派生链接依赖图，按拓扑顺序重新求值
3. 一致性校验：撤销旋转抵消正向旋转，净旋转回到基线
4. 按 Zemax 序列模式追踪各环节全局位姿
5. 单通 / 双通测试光路构建

使用示例：
    >>> from kinematic_chain import build_double_pass_chain
    >>> chain = build_double_pass_chain(arc_radius_mm=1500.0, link_height_mm=800.0)
    >>> chain.set_orientation(45.0)
    >>> chain.set_rail_error(0.003)
    >>> chain.check_consistency()

作者：混合光学仿真项目
"""

from .exceptions import (
    KinematicChainError,
    ChainConfigurationError,
    ConsistencyViolationError,
)

from .coordinate_system import (
    CurrentCoordinateSystem,
    CoordinateBreakProcessor,
)

from .transforms import (
    RigidTransform,
    ParameterPickup,
    normalize_column,
    COORDINATE_BREAK,
    MIRROR,
    GRID_SAG,
    SURFACE,
    COLUMN_ALIASES,
)

from .chain import (
    KinematicChain,
    TracedTransform,
    DEFAULT_TOLERANCE,
)

from .builders import (
    build_single_pass_chain,
    build_double_pass_chain,
)

__all__ = [
    # 异常类
    "KinematicChainError",
    "ChainConfigurationError",
    "ConsistencyViolationError",
    # 坐标系
    "CurrentCoordinateSystem",
    "CoordinateBreakProcessor",
    # 变换
    "RigidTransform",
    "ParameterPickup",
    "normalize_column",
    "COORDINATE_BREAK",
    "MIRROR",
    "GRID_SAG",
    "SURFACE",
    "COLUMN_ALIASES",
    # 运动学链
    "KinematicChain",
    "TracedTransform",
    "DEFAULT_TOLERANCE",
    # 光路构建
    "build_single_pass_chain",
    "build_double_pass_chain",
]
