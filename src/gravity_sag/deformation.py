"""
重力下沉面形模型

本模块根据圆弧滑轨上参考镜的姿态角，计算重力引起的镜面下沉（sag）
及其空间导数，输出可直接写入 Zemax GridSag 文件的采样网格。

物理模型（低阶经验近似，不是有限元求解）：
- 重力分解：轴向分量 g_axial = sin(θ)，横向分量 g_trans = cos(θ)
- 轴向分量驱动离焦项 Z4 ~ (2ρ² - 1)
- 横向分量驱动彗差项 Z7 ~ (3ρ³ - 2ρ)·sin(φ)
- 面形：sag = g_axial·C_defocus·(2ρ² - 1) + g_trans·C_coma·(3ρ³ - 2ρ)·sin(φ)

导数采用中心差分（边界处单侧差分），供 Zemax 双三次插值使用。
口径外（ρ > 1）的节点高度与导数均严格置零（硬光阑，非切趾）。

主要类：
- ApertureGrid: 方形采样网格
- SagCalibration: 经验标定常数
- DeformationField: 面形高度与导数场
- GravitySagModel: 面形计算模型

使用示例：
    >>> from gravity_sag import GravitySagModel
    >>> model = GravitySagModel()
    >>> field = model.compute(angle_deg=22.5, aperture_diameter_mm=300.0, resolution=257)
    >>> field.shape
    (257, 257)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple
import math

import numpy as np
from numpy.typing import NDArray

from .exceptions import InvalidParameterError


# 默认经验标定常数（mm/g）
DEFAULT_C_DEFOCUS_MM = 100e-6  # 100 nm / 单位轴向重力
DEFAULT_C_COMA_MM = 200e-6     # 200 nm / 单位横向重力

# 单位标志：0 表示毫米
UNIT_FLAG_MM = 0


# =============================================================================
# 采样网格
# =============================================================================

@dataclass(frozen=True)
class ApertureGrid:
    """镜面圆形口径上的方形采样网格

    网格覆盖 [-R, R] × [-R, R]，每个轴 resolution 个采样点。
    分辨率取奇数（通常为 2^n + 1，如 257），保证中心节点落在光轴上。

    属性:
        resolution: 每个轴的采样点数（奇数，≥ 3）
        half_extent_mm: 网格半宽，即口径半径 R (mm)
    """
    resolution: int
    half_extent_mm: float

    def __post_init__(self):
        validate_resolution(self.resolution)
        half = self.half_extent_mm
        if isinstance(half, bool) or not np.isfinite(half) or half <= 0:
            raise InvalidParameterError(
                f"网格半宽必须为正有限值，实际为 {half} mm。"
            )
        object.__setattr__(self, 'half_extent_mm', float(half))
        object.__setattr__(self, 'resolution', int(self.resolution))

    @classmethod
    def from_diameter(cls, aperture_diameter_mm: float, resolution: int) -> "ApertureGrid":
        """由口径直径创建网格"""
        validate_diameter(aperture_diameter_mm)
        return cls(resolution=resolution, half_extent_mm=aperture_diameter_mm / 2.0)

    @property
    def step_mm(self) -> float:
        """相邻节点间距 (mm)，与 linspace 的实际步长一致"""
        x = self.coordinates
        return float(x[1] - x[0])

    @property
    def coordinates(self) -> NDArray[np.float64]:
        """单轴坐标 (mm)，shape (resolution,)"""
        return np.linspace(-self.half_extent_mm, self.half_extent_mm, self.resolution)

    def mesh(self) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
        """二维坐标网格

        返回:
            (X, Y)，shape 均为 (resolution, resolution)。
            X 沿列方向变化，Y 沿行方向变化（行优先存储时外层循环为行）。
        """
        x = self.coordinates
        return np.meshgrid(x, x)

    def polar(self) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
        """归一化极坐标

        返回:
            (rho, theta)，rho = r / R，theta = atan2(y, x)
        """
        X, Y = self.mesh()
        rho = np.sqrt(X**2 + Y**2) / self.half_extent_mm
        theta = np.arctan2(Y, X)
        return rho, theta

    def aperture_mask(self) -> NDArray[np.bool_]:
        """口径内节点掩模（rho <= 1）"""
        rho, _ = self.polar()
        return rho <= 1.0


def validate_resolution(resolution) -> None:
    """检查分辨率为不小于 3 的奇数整数"""
    if isinstance(resolution, bool) or not isinstance(resolution, (int, np.integer)):
        raise InvalidParameterError(
            f"网格分辨率必须为整数，实际为 {resolution!r}。"
        )
    if resolution < 3 or resolution % 2 == 0:
        raise InvalidParameterError(
            f"网格分辨率必须为不小于 3 的奇数（建议 2^n + 1），实际为 {resolution}。"
        )


def validate_diameter(aperture_diameter_mm) -> None:
    """检查口径直径为正有限值"""
    try:
        value = float(aperture_diameter_mm)
    except (TypeError, ValueError):
        raise InvalidParameterError(
            f"镜面口径必须为数值，实际为 {aperture_diameter_mm!r}。"
        )
    if not np.isfinite(value) or value <= 0:
        raise InvalidParameterError(
            f"镜面口径必须为正有限值，实际为 {aperture_diameter_mm} mm。"
        )


def validate_angle(angle_deg) -> float:
    """检查姿态角为有限值并返回 float"""
    try:
        value = float(angle_deg)
    except (TypeError, ValueError):
        raise InvalidParameterError(f"姿态角必须为数值，实际为 {angle_deg!r}。")
    if not np.isfinite(value):
        raise InvalidParameterError(f"姿态角必须为有限值，实际为 {angle_deg}°。")
    return value


# =============================================================================
# 标定常数
# =============================================================================

@dataclass(frozen=True)
class SagCalibration:
    """重力下沉经验标定常数

    两个常数是针对具体镜体与支撑的经验/有限元标定值，
    不是物理常数；更换硬件时需要重新标定。

    属性:
        c_defocus_mm: 单位轴向重力产生的离焦项幅值 (mm)
        c_coma_mm: 单位横向重力产生的彗差项幅值 (mm)
    """
    c_defocus_mm: float = DEFAULT_C_DEFOCUS_MM
    c_coma_mm: float = DEFAULT_C_COMA_MM

    def __post_init__(self):
        for name in ('c_defocus_mm', 'c_coma_mm'):
            value = getattr(self, name)
            if isinstance(value, bool) or not np.isfinite(value):
                raise InvalidParameterError(
                    f"标定常数 '{name}' 必须为有限值，实际为 {value}。"
                )
            object.__setattr__(self, name, float(value))


def gravity_components(angle_deg: float) -> Tuple[float, float]:
    """将重力分解为轴向与横向分量

    参数:
        angle_deg: 圆弧滑轨姿态角（度）

    返回:
        (g_axial, g_trans) = (sin θ, cos θ)
    """
    angle_rad = math.radians(angle_deg)
    return math.sin(angle_rad), math.cos(angle_rad)


# =============================================================================
# 面形场
# =============================================================================

@dataclass(eq=False)
class DeformationField:
    """面形高度及其导数场

    所有数组 shape 为 (ny, nx)，行对应 y，列对应 x。

    属性:
        height: 面形高度 (mm)
        dz_dx: ∂z/∂x
        dz_dy: ∂z/∂y
        d2z_dxdy: ∂²z/∂x∂y (1/mm)
        step_x_mm: x 方向网格步长 (mm)
        step_y_mm: y 方向网格步长 (mm)
        angle_deg: 生成该面形的姿态角（仅作元数据，读文件时为 None）
        unit_flag: 单位标志，0 表示毫米
    """
    height: NDArray[np.float64]
    dz_dx: NDArray[np.float64]
    dz_dy: NDArray[np.float64]
    d2z_dxdy: NDArray[np.float64]
    step_x_mm: float
    step_y_mm: float
    angle_deg: Optional[float] = None
    unit_flag: int = UNIT_FLAG_MM

    def __post_init__(self):
        arrays = [np.asarray(a, dtype=np.float64) for a in
                  (self.height, self.dz_dx, self.dz_dy, self.d2z_dxdy)]
        shape = arrays[0].shape
        if len(shape) != 2:
            raise InvalidParameterError(f"面形数组必须为二维，实际 shape 为 {shape}。")
        for a in arrays[1:]:
            if a.shape != shape:
                raise InvalidParameterError(
                    f"高度与导数数组 shape 不一致：{shape} 与 {a.shape}。"
                )
        self.height, self.dz_dx, self.dz_dy, self.d2z_dxdy = arrays

    @property
    def shape(self) -> Tuple[int, int]:
        return self.height.shape

    @property
    def ny(self) -> int:
        return self.height.shape[0]

    @property
    def nx(self) -> int:
        return self.height.shape[1]

    def records(self) -> NDArray[np.float64]:
        """按行优先顺序返回每个节点的 (sag, dz/dx, dz/dy, d2z/dxdy) 记录

        返回:
            shape (ny * nx, 4) 的数组
        """
        stacked = np.stack(
            [self.height, self.dz_dx, self.dz_dy, self.d2z_dxdy], axis=-1
        )
        return stacked.reshape(-1, 4)

    def equals(self, other: "DeformationField") -> bool:
        """逐位比较两个面形场（数组与步长，不比较元数据）"""
        if not isinstance(other, DeformationField):
            return False
        return (
            self.step_x_mm == other.step_x_mm
            and self.step_y_mm == other.step_y_mm
            and self.unit_flag == other.unit_flag
            and all(
                np.array_equal(a, b)
                for a, b in zip(
                    (self.height, self.dz_dx, self.dz_dy, self.d2z_dxdy),
                    (other.height, other.dz_dx, other.dz_dy, other.d2z_dxdy),
                )
            )
        )

    def peak_to_valley(self) -> float:
        """口径内面形峰谷值 (mm)，口径外置零节点不参与统计"""
        values = self._aperture_values()
        if values.size == 0:
            return 0.0
        return float(values.max() - values.min())

    def rms(self) -> float:
        """口径内面形均方根（去除均值）(mm)"""
        values = self._aperture_values()
        if values.size == 0:
            return 0.0
        return float(np.std(values))

    def _aperture_values(self) -> NDArray[np.float64]:
        ny, nx = self.shape
        x = (np.arange(nx) - (nx - 1) / 2.0) * self.step_x_mm
        y = (np.arange(ny) - (ny - 1) / 2.0) * self.step_y_mm
        X, Y = np.meshgrid(x, y)
        radius = min(x[-1], y[-1])
        return self.height[np.sqrt(X**2 + Y**2) <= radius]

    def __repr__(self) -> str:
        angle = f", angle={self.angle_deg}°" if self.angle_deg is not None else ""
        return (
            f"DeformationField(shape={self.shape}, "
            f"dx={self.step_x_mm:.6g}mm, dy={self.step_y_mm:.6g}mm{angle})"
        )


# =============================================================================
# 面形模型
# =============================================================================

class GravitySagModel:
    """重力下沉面形模型

    对固定的姿态角、口径和分辨率，输出逐位确定（无随机性）。

    示例:
        >>> model = GravitySagModel(SagCalibration(c_defocus_mm=1e-4, c_coma_mm=2e-4))
        >>> field = model.compute(0.0, 300.0, 5)
        >>> field.height.shape
        (5, 5)
    """

    def __init__(self, calibration: Optional[SagCalibration] = None) -> None:
        self.calibration = calibration if calibration is not None else SagCalibration()

    def analytic_height(
        self,
        angle_deg: float,
        rho: NDArray[np.float64],
        theta: NDArray[np.float64],
    ) -> NDArray[np.float64]:
        """计算未加掩模的解析面形高度 (mm)"""
        g_axial, g_trans = gravity_components(angle_deg)
        cal = self.calibration
        defocus = g_axial * cal.c_defocus_mm * (2.0 * rho**2 - 1.0)
        coma = g_trans * cal.c_coma_mm * (3.0 * rho**3 - 2.0 * rho) * np.sin(theta)
        return defocus + coma

    def compute(
        self,
        angle_deg: float,
        aperture_diameter_mm: float,
        resolution: int,
    ) -> DeformationField:
        """计算指定姿态角下的面形高度与导数场

        参数:
            angle_deg: 圆弧滑轨姿态角（度）
            aperture_diameter_mm: 镜面口径直径 (mm)
            resolution: 每轴采样点数（奇数，≥ 3）

        返回:
            DeformationField，口径外节点全部为 0

        异常:
            InvalidParameterError: 参数无效
        """
        angle = validate_angle(angle_deg)
        grid = ApertureGrid.from_diameter(aperture_diameter_mm, resolution)
        rho, theta = grid.polar()

        height = self.analytic_height(angle, rho, theta)
        outside = rho > 1.0
        height[outside] = 0.0

        # 先掩模后差分，边缘内侧节点的差分含口径外的 0 值
        # np.gradient 返回 [沿行(y), 沿列(x)]，内部中心差分，边界单侧差分
        step = grid.step_mm
        dz_dy, dz_dx = np.gradient(height, step, step)
        d2z_dxdy = np.gradient(dz_dx, step, axis=0)

        for values in (dz_dx, dz_dy, d2z_dxdy):
            values[outside] = 0.0

        return DeformationField(
            height=height,
            dz_dx=dz_dx,
            dz_dy=dz_dy,
            d2z_dxdy=d2z_dxdy,
            step_x_mm=step,
            step_y_mm=step,
            angle_deg=angle,
        )


def compute_gravity_sag(
    angle_deg: float,
    aperture_diameter_mm: float,
    resolution: int,
    calibration: Optional[SagCalibration] = None,
) -> DeformationField:
    """GravitySagModel.compute 的函数式入口"""
    return GravitySagModel(calibration).compute(angle_deg, aperture_diameter_mm, resolution)
