"""
刚体变换与派生参数链接

RigidTransform 对应 Zemax LDE 中的一行：坐标断点、反射镜、
GridSag 测试面或普通表面。ParameterPickup 对应 Zemax 的
Surface Pickup 求解：target.column = scale × source.source_column + offset。

参数列可以用本模块的列名，也可以用 Zemax 坐标断点的 ParN 别名：
    Par1 → decenter_x    Par2 → decenter_y
    Par3 → tilt_x        Par4 → tilt_y
    Par5 → tilt_z        Par6 → order
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple
import math

import numpy as np

from .coordinate_system import CoordinateBreakProcessor
from .exceptions import ChainConfigurationError


# 变换类型
COORDINATE_BREAK = 'coordinate_break'
MIRROR = 'mirror'
GRID_SAG = 'grid_sag'
SURFACE = 'surface'

TRANSFORM_KINDS = (COORDINATE_BREAK, MIRROR, GRID_SAG, SURFACE)

# 坐标断点专用列
CB_COLUMNS = ('decenter_x', 'decenter_y', 'tilt_x', 'tilt_y', 'tilt_z', 'order')
# 所有类型通用列
COMMON_COLUMNS = ('thickness', 'radius')

ROTATION_COLUMNS = ('tilt_x', 'tilt_y', 'tilt_z')

COLUMN_ALIASES: Dict[str, str] = {
    'par1': 'decenter_x',
    'par2': 'decenter_y',
    'par3': 'tilt_x',
    'par4': 'tilt_y',
    'par5': 'tilt_z',
    'par6': 'order',
}


def normalize_column(column: str) -> str:
    """将列名或 ParN 别名规范化为列名

    异常:
        ChainConfigurationError: 未知列名
    """
    if not isinstance(column, str):
        raise ChainConfigurationError(f"参数列名必须为字符串，实际为 {column!r}。")
    key = column.strip().lower()
    key = COLUMN_ALIASES.get(key, key)
    if key not in CB_COLUMNS and key not in COMMON_COLUMNS:
        raise ChainConfigurationError(
            f"未知参数列 '{column}'，可用列为 {CB_COLUMNS + COMMON_COLUMNS} "
            f"或 Par1..Par6。"
        )
    return key


@dataclass
class RigidTransform:
    """运动学链中的一个环节

    属性:
        name: 唯一名称，供引擎按名称寻址
        kind: 'coordinate_break' | 'mirror' | 'grid_sag' | 'surface'
        decenter_x, decenter_y: 偏心 (mm)，仅坐标断点
        tilt_x, tilt_y, tilt_z: 倾斜角 (度)，仅坐标断点
        order: 0 先平移后旋转，1 先旋转后平移，仅坐标断点
        thickness: 到下一环节的距离 (mm)，inf 时追迹按 0 处理
        radius: 曲率半径 (mm)，inf 为平面
        semi_diameter: 半口径 (mm)，0 表示由引擎自动确定
        comment: LDE 注释
        grid_file: GridSag 面形文件路径，仅 grid_sag 类型
        perturbation: 是否为扰动环节（滑轨误差），不参与基线残差
        is_stop: 是否为光阑面
    """
    name: str
    kind: str = COORDINATE_BREAK
    decenter_x: float = 0.0
    decenter_y: float = 0.0
    tilt_x: float = 0.0
    tilt_y: float = 0.0
    tilt_z: float = 0.0
    order: int = 0
    thickness: float = 0.0
    radius: float = math.inf
    semi_diameter: float = 0.0
    comment: str = ''
    grid_file: Optional[str] = None
    perturbation: bool = False
    is_stop: bool = False

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name:
            raise ChainConfigurationError(f"变换名称必须为非空字符串，实际为 {self.name!r}。")
        if self.kind not in TRANSFORM_KINDS:
            raise ChainConfigurationError(
                f"变换 '{self.name}' 类型无效：{self.kind!r}，可用类型为 {TRANSFORM_KINDS}。"
            )
        if self.kind != COORDINATE_BREAK:
            for column in CB_COLUMNS:
                if getattr(self, column) != 0:
                    raise ChainConfigurationError(
                        f"变换 '{self.name}' 为 {self.kind}，不支持参数 '{column}'。"
                    )
        if self.grid_file is not None and self.kind != GRID_SAG:
            raise ChainConfigurationError(
                f"只有 grid_sag 类型可以指定面形文件，变换 '{self.name}' 为 {self.kind}。"
            )
        for column in CB_COLUMNS + COMMON_COLUMNS:
            self.set_parameter(column, getattr(self, column), _validate_kind=False)

    @property
    def is_coordinate_break(self) -> bool:
        return self.kind == COORDINATE_BREAK

    @property
    def is_reflective(self) -> bool:
        return self.kind in (MIRROR, GRID_SAG)

    def columns(self) -> Tuple[str, ...]:
        """该类型可写的参数列"""
        if self.is_coordinate_break:
            return CB_COLUMNS + COMMON_COLUMNS
        return COMMON_COLUMNS

    def get_parameter(self, column: str) -> float:
        """读取参数（支持 ParN 别名）"""
        key = normalize_column(column)
        return getattr(self, key)

    def set_parameter(self, column: str, value, _validate_kind: bool = True) -> None:
        """写入参数（支持 ParN 别名）

        异常:
            ChainConfigurationError: 列不适用于该类型，或数值无效
        """
        key = normalize_column(column)
        if _validate_kind and key not in self.columns():
            raise ChainConfigurationError(
                f"变换 '{self.name}' 为 {self.kind}，不支持参数 '{key}'。"
            )
        if key == 'order':
            if isinstance(value, bool) or value not in (0, 1):
                raise ChainConfigurationError(
                    f"变换 '{self.name}' 的 order 必须为 0 或 1，实际为 {value!r}。"
                )
            setattr(self, key, int(value))
            return
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ChainConfigurationError(
                f"变换 '{self.name}' 的参数 '{key}' 必须为数值，实际为 {value!r}。"
            )
        if np.isnan(number) or (key not in COMMON_COLUMNS and not np.isfinite(number)):
            raise ChainConfigurationError(
                f"变换 '{self.name}' 的参数 '{key}' 必须为有限值，实际为 {value}。"
            )
        setattr(self, key, number)

    def rotation_matrix(self) -> np.ndarray:
        """该环节对当前坐标系施加的旋转，非坐标断点为单位矩阵"""
        if not self.is_coordinate_break:
            return np.eye(3)
        return CoordinateBreakProcessor.rotation_matrix(
            np.deg2rad(self.tilt_x),
            np.deg2rad(self.tilt_y),
            np.deg2rad(self.tilt_z),
            self.order,
        )

    def parameters(self) -> Dict[str, float]:
        """当前可写参数快照"""
        return {column: getattr(self, column) for column in self.columns()}


@dataclass(frozen=True)
class ParameterPickup:
    """派生参数链接（Zemax Surface Pickup）

    target.column = scale × source.source_column + offset

    属性:
        target: 目标变换名称
        column: 目标参数列
        source: 源变换名称
        source_column: 源参数列，默认与 column 相同
        scale: 比例因子，撤销变换为 -1
        offset: 偏移量
    """
    target: str
    column: str
    source: str
    source_column: Optional[str] = None
    scale: float = 1.0
    offset: float = 0.0

    def __post_init__(self):
        column = normalize_column(self.column)
        source_column = normalize_column(
            self.source_column if self.source_column is not None else column
        )
        object.__setattr__(self, 'column', column)
        object.__setattr__(self, 'source_column', source_column)
        for name in ('scale', 'offset'):
            value = getattr(self, name)
            if isinstance(value, bool) or not np.isfinite(value):
                raise ChainConfigurationError(
                    f"派生链接的 '{name}' 必须为有限值，实际为 {value!r}。"
                )
            object.__setattr__(self, name, float(value))
        if 'order' in (column, source_column):
            raise ChainConfigurationError("order 列不能作为派生链接的源或目标。")

    @property
    def target_key(self) -> Tuple[str, str]:
        return (self.target, self.column)

    @property
    def source_key(self) -> Tuple[str, str]:
        return (self.source, self.source_column)

    @property
    def is_undo(self) -> bool:
        """旋转列上比例为 -1 的撤销链接"""
        return (
            self.column in ROTATION_COLUMNS
            and self.source_column == self.column
            and self.scale == -1.0
            and self.offset == 0.0
        )

    def evaluate(self, source_value: float) -> float:
        return self.scale * source_value + self.offset
