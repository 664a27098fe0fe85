"""
重力下沉面形模块

本模块模拟圆弧滑轨上参考镜在不同姿态角下由重力引起的面形下沉，
并将面形高度及其导数编码为 Zemax GridSag 二进制网格文件。

主要功能：
1. 按姿态角分解重力，计算离焦 + 彗差两项主导的面形
2. 中心差分计算 ∂z/∂x、∂z/∂y、∂²z/∂x∂y
3. 圆形口径硬掩模
4. GridSag 网格文件读写

使用示例：
    >>> from gravity_sag import GravitySagModel, SagCalibration, GridFileCodec
    >>> model = GravitySagModel(SagCalibration(c_defocus_mm=1e-4, c_coma_mm=2e-4))
    >>> field = model.compute(angle_deg=45.0, aperture_diameter_mm=300.0, resolution=257)
    >>> GridFileCodec.write("GravitySag_45.dat", field)

作者：混合光学仿真项目
"""

from .exceptions import (
    GravitySagError,
    InvalidParameterError,
    GridFormatError,
)

from .deformation import (
    ApertureGrid,
    SagCalibration,
    DeformationField,
    GravitySagModel,
    compute_gravity_sag,
    gravity_components,
    DEFAULT_C_DEFOCUS_MM,
    DEFAULT_C_COMA_MM,
)

from .grid_file import (
    GridFileCodec,
    GridHeader,
    grid_file_name,
    HEADER_SIZE,
    RECORD_SIZE,
    DEFAULT_FILE_PATTERN,
)

__all__ = [
    # 异常类
    "GravitySagError",
    "InvalidParameterError",
    "GridFormatError",
    # 面形模型
    "ApertureGrid",
    "SagCalibration",
    "DeformationField",
    "GravitySagModel",
    "compute_gravity_sag",
    "gravity_components",
    "DEFAULT_C_DEFOCUS_MM",
    "DEFAULT_C_COMA_MM",
    # 网格文件
    "GridFileCodec",
    "GridHeader",
    "grid_file_name",
    "HEADER_SIZE",
    "RECORD_SIZE",
    "DEFAULT_FILE_PATTERN",
]
