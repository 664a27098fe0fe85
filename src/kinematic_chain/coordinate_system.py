"""
坐标断点与当前坐标系追踪

按 Zemax 序列模式规则追踪运动学链中"当前坐标系"的演化：
坐标断点更新坐标系，光学面记录顶点位置后沿 Z 轴前进厚度，
反射面不自动改变坐标系方向。

主要类：
- CurrentCoordinateSystem: 当前坐标系状态（不可变）
- CoordinateBreakProcessor: 坐标断点处理器

使用示例：
    >>> cs = CurrentCoordinateSystem.identity()
    >>> cs_new = CoordinateBreakProcessor.process(
    ...     cs, decenter_x=0, decenter_y=0,
    ...     tilt_x_rad=np.pi/4, tilt_y_rad=0, tilt_z_rad=0,
    ...     order=0, thickness=100.0
    ... )
"""

from dataclasses import dataclass
import numpy as np

from .exceptions import ChainConfigurationError


@dataclass(frozen=True)
class CurrentCoordinateSystem:
    """当前坐标系状态（不可变）

    所有变换方法都返回新实例。

    属性:
        origin: 原点在全局坐标系中的位置 (mm)，shape (3,)
        axes: 3×3 矩阵，列向量为 X, Y, Z 轴在全局坐标系中的方向
    """
    origin: np.ndarray
    axes: np.ndarray

    def __post_init__(self):
        object.__setattr__(self, 'origin', np.asarray(self.origin, dtype=np.float64))
        object.__setattr__(self, 'axes', np.asarray(self.axes, dtype=np.float64))
        if self.origin.shape != (3,):
            raise ValueError(f"origin 形状必须为 (3,)，实际为 {self.origin.shape}")
        if self.axes.shape != (3, 3):
            raise ValueError(f"axes 形状必须为 (3, 3)，实际为 {self.axes.shape}")

    @classmethod
    def identity(cls) -> "CurrentCoordinateSystem":
        """与全局坐标系重合的初始状态"""
        return cls(origin=np.zeros(3), axes=np.eye(3))

    @property
    def x_axis(self) -> np.ndarray:
        return self.axes[:, 0].copy()

    @property
    def y_axis(self) -> np.ndarray:
        return self.axes[:, 1].copy()

    @property
    def z_axis(self) -> np.ndarray:
        return self.axes[:, 2].copy()

    def advance_along_z(self, thickness: float) -> "CurrentCoordinateSystem":
        """沿当前 Z 轴前进指定距离（可为负）"""
        return CurrentCoordinateSystem(
            origin=self.origin + thickness * self.z_axis,
            axes=self.axes.copy(),
        )

    def apply_decenter(self, dx: float, dy: float) -> "CurrentCoordinateSystem":
        """沿当前 X、Y 轴平移"""
        return CurrentCoordinateSystem(
            origin=self.origin + dx * self.x_axis + dy * self.y_axis,
            axes=self.axes.copy(),
        )

    def apply_rotation_matrix(self, rotation: np.ndarray) -> "CurrentCoordinateSystem":
        """在当前坐标系下右乘旋转矩阵"""
        return CurrentCoordinateSystem(
            origin=self.origin.copy(),
            axes=self.axes @ rotation,
        )

    def __repr__(self) -> str:
        return (
            f"CurrentCoordinateSystem(origin={np.round(self.origin, 6)}, "
            f"z_axis={np.round(self.z_axis, 6)})"
        )


class CoordinateBreakProcessor:
    """坐标断点处理器

    Order=0：先平移，再按 X → Y → Z 旋转（R = Rz·Ry·Rx）。
    Order=1：先按 Z → Y → X 旋转（R = Rx·Ry·Rz），再平移。

    Order=1 且参数全部取负的坐标断点恰好是 Order=0 坐标断点的逆变换，
    这是撤销变换（undo）的标准写法。

    所有方法都是静态方法，不需要实例化。
    """

    @staticmethod
    def rotation_matrix_x(angle: float) -> np.ndarray:
        """绕 X 轴旋转矩阵（弧度）"""
        c, s = np.cos(angle), np.sin(angle)
        return np.array([
            [1.0, 0.0, 0.0],
            [0.0, c, -s],
            [0.0, s, c],
        ], dtype=np.float64)

    @staticmethod
    def rotation_matrix_y(angle: float) -> np.ndarray:
        """绕 Y 轴旋转矩阵（弧度）"""
        c, s = np.cos(angle), np.sin(angle)
        return np.array([
            [c, 0.0, s],
            [0.0, 1.0, 0.0],
            [-s, 0.0, c],
        ], dtype=np.float64)

    @staticmethod
    def rotation_matrix_z(angle: float) -> np.ndarray:
        """绕 Z 轴旋转矩阵（弧度）"""
        c, s = np.cos(angle), np.sin(angle)
        return np.array([
            [c, -s, 0.0],
            [s, c, 0.0],
            [0.0, 0.0, 1.0],
        ], dtype=np.float64)

    @staticmethod
    def rotation_matrix(
        tilt_x: float,
        tilt_y: float,
        tilt_z: float,
        order: int = 0,
    ) -> np.ndarray:
        """按坐标断点顺序组合旋转矩阵

        参数:
            tilt_x, tilt_y, tilt_z: 旋转角度（弧度）
            order: 0 为 Rz·Ry·Rx，1 为 Rx·Ry·Rz

        返回:
            3×3 组合旋转矩阵
        """
        R_x = CoordinateBreakProcessor.rotation_matrix_x(tilt_x)
        R_y = CoordinateBreakProcessor.rotation_matrix_y(tilt_y)
        R_z = CoordinateBreakProcessor.rotation_matrix_z(tilt_z)
        if order == 0:
            return R_z @ R_y @ R_x
        if order == 1:
            return R_x @ R_y @ R_z
        raise ChainConfigurationError(f"Order 参数必须为 0 或 1，实际为 {order}")

    @staticmethod
    def process(
        current_cs: CurrentCoordinateSystem,
        decenter_x: float,
        decenter_y: float,
        tilt_x_rad: float,
        tilt_y_rad: float,
        tilt_z_rad: float,
        order: int,
        thickness: float,
    ) -> CurrentCoordinateSystem:
        """处理坐标断点，返回更新后的坐标系状态

        变换顺序:
            Order=0: 平移 → 旋转(Rz·Ry·Rx) → 沿新 Z 轴前进厚度
            Order=1: 旋转(Rx·Ry·Rz) → 沿新轴平移 → 沿新 Z 轴前进厚度

        异常:
            ChainConfigurationError: order 不是 0 或 1
        """
        rotation = CoordinateBreakProcessor.rotation_matrix(
            tilt_x_rad, tilt_y_rad, tilt_z_rad, order
        )
        if order == 0:
            cs = current_cs.apply_decenter(decenter_x, decenter_y)
            cs = cs.apply_rotation_matrix(rotation)
        else:
            cs = current_cs.apply_rotation_matrix(rotation)
            cs = cs.apply_decenter(decenter_x, decenter_y)
        return cs.advance_along_z(thickness)
