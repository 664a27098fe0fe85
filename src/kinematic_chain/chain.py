"""
运动学链模型

KinematicChain 描述圆弧滑轨干涉测试光路中按序排列的刚体变换：
枢轴 → 圆弧运动 → 滑轨误差 → 测试镜 → 撤销运动 → 回程。

派生链接（pickup）构成一张小型依赖图，每次参数更新后按拓扑顺序
重新求值，而不是一次性复制数值，避免正向变换与撤销变换漂移。

主要类：
- TracedTransform: 追踪得到的环节全局位姿
- KinematicChain: 运动学链

使用示例：
    >>> from kinematic_chain import build_single_pass_chain
    >>> chain = build_single_pass_chain()
    >>> chain.set_orientation(22.5)
    >>> chain.get('return_path').tilt_x
    -22.5
    >>> chain.check_consistency()
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

import numpy as np
from scipy.spatial.transform import Rotation

from .coordinate_system import CoordinateBreakProcessor, CurrentCoordinateSystem
from .exceptions import ChainConfigurationError, ConsistencyViolationError
from .transforms import ParameterPickup, RigidTransform, normalize_column


DEFAULT_TOLERANCE = 1e-9

TransformRef = Union[str, int]


@dataclass(frozen=True)
class TracedTransform:
    """环节在全局坐标系中的位姿

    属性:
        name: 变换名称
        kind: 变换类型
        coordinate_system: 进入该环节时的当前坐标系（光学面即顶点位姿）
    """
    name: str
    kind: str
    coordinate_system: CurrentCoordinateSystem


class KinematicChain:
    """按序排列的刚体变换链

    角色名称：
    - orientation_transform: 接收圆弧滑轨姿态角的坐标断点
    - rail_error_transform: 接收滑轨随机误差的坐标断点（不传播）
    - test_surface: 加载 GridSag 面形的测试镜

    参数:
        name: 链名称
        orientation_column: 姿态角写入的参数列，默认 tilt_x
        rail_error_column: 滑轨误差写入的参数列，默认 tilt_x
    """

    def __init__(
        self,
        name: str = '',
        orientation_column: str = 'tilt_x',
        rail_error_column: str = 'tilt_x',
    ) -> None:
        self.name = name
        self.orientation_column = normalize_column(orientation_column)
        self.rail_error_column = normalize_column(rail_error_column)
        self.orientation_transform: Optional[str] = None
        self.rail_error_transform: Optional[str] = None
        self.test_surface: Optional[str] = None
        self._transforms: List[RigidTransform] = []
        self._pickups: Dict[Tuple[str, str], ParameterPickup] = {}

    # =========================================================================
    # 结构
    # =========================================================================

    def __len__(self) -> int:
        return len(self._transforms)

    def __iter__(self):
        return iter(self._transforms)

    @property
    def transforms(self) -> Tuple[RigidTransform, ...]:
        return tuple(self._transforms)

    @property
    def pickups(self) -> Tuple[ParameterPickup, ...]:
        return tuple(self._pickups.values())

    def add_transform(self, transform: RigidTransform) -> "KinematicChain":
        """在链尾追加变换，返回 self 以支持链式调用"""
        if not isinstance(transform, RigidTransform):
            raise ChainConfigurationError(
                f"只能添加 RigidTransform，实际为 {type(transform).__name__}。"
            )
        if any(t.name == transform.name for t in self._transforms):
            raise ChainConfigurationError(f"变换名称 '{transform.name}' 已存在。")
        self._transforms.append(transform)
        return self

    def index_of(self, name: str) -> int:
        for i, t in enumerate(self._transforms):
            if t.name == name:
                return i
        raise ChainConfigurationError(f"链 '{self.name}' 中不存在变换 '{name}'。")

    def get(self, ref: TransformRef) -> RigidTransform:
        """按名称或索引获取变换"""
        if isinstance(ref, (int, np.integer)) and not isinstance(ref, bool):
            if not -len(self._transforms) <= ref < len(self._transforms):
                raise ChainConfigurationError(
                    f"变换索引 {ref} 超出范围（共 {len(self._transforms)} 个变换）。"
                )
            return self._transforms[ref]
        return self._transforms[self.index_of(ref)]

    def assign_roles(
        self,
        orientation: Optional[str] = None,
        rail_error: Optional[str] = None,
        test_surface: Optional[str] = None,
    ) -> "KinematicChain":
        """指定角色环节"""
        if orientation is not None:
            self._require_column(orientation, self.orientation_column)
            self.orientation_transform = orientation
        if rail_error is not None:
            self._require_column(rail_error, self.rail_error_column)
            if not self.get(rail_error).perturbation:
                raise ChainConfigurationError(
                    f"滑轨误差环节 '{rail_error}' 必须标记为 perturbation。"
                )
            self.rail_error_transform = rail_error
        if test_surface is not None:
            if self.get(test_surface).kind != 'grid_sag':
                raise ChainConfigurationError(
                    f"测试面 '{test_surface}' 必须为 grid_sag 类型。"
                )
            self.test_surface = test_surface
        return self

    def _require_column(self, name: str, column: str) -> None:
        transform = self.get(name)
        if column not in transform.columns():
            raise ChainConfigurationError(
                f"变换 '{name}' 为 {transform.kind}，不支持参数 '{column}'。"
            )

    # =========================================================================
    # 派生链接
    # =========================================================================

    def add_pickup(self, pickup: ParameterPickup) -> "KinematicChain":
        """添加派生链接并立即求值

        异常:
            ChainConfigurationError: 端点不存在、列不适用、目标已被派生、
                自链接或形成环路
        """
        self._require_column(pickup.target, pickup.column)
        self._require_column(pickup.source, pickup.source_column)
        if pickup.target_key == pickup.source_key:
            raise ChainConfigurationError(
                f"派生链接不能指向自身：{pickup.target}.{pickup.column}。"
            )
        if pickup.target_key in self._pickups:
            raise ChainConfigurationError(
                f"参数 {pickup.target}.{pickup.column} 已是派生参数。"
            )

        # 每个目标只有一个源，沿源链回溯即可发现环路
        node = pickup.source_key
        while node in self._pickups:
            node = self._pickups[node].source_key
        if node == pickup.target_key:
            raise ChainConfigurationError(
                f"派生链接 {pickup.source}.{pickup.source_column} → "
                f"{pickup.target}.{pickup.column} 会形成环路。"
            )

        self._pickups[pickup.target_key] = pickup
        self.resolve_pickups()
        return self

    def is_derived(self, name: str, column: str) -> bool:
        return (name, normalize_column(column)) in self._pickups

    def _depth(self, key: Tuple[str, str]) -> int:
        depth = 0
        while key in self._pickups:
            key = self._pickups[key].source_key
            depth += 1
        return depth

    def resolution_order(self) -> List[ParameterPickup]:
        """派生链接的拓扑求值顺序（源先于目标）"""
        return sorted(self._pickups.values(), key=lambda p: self._depth(p.target_key))

    def resolve_pickups(self) -> None:
        """按拓扑顺序重新求值所有派生参数"""
        for pickup in self.resolution_order():
            source_value = self.get(pickup.source).get_parameter(pickup.source_column)
            self.get(pickup.target).set_parameter(
                pickup.column, pickup.evaluate(source_value)
            )

    def undo_links(self) -> List[ParameterPickup]:
        """所有撤销链接（旋转列上比例 -1）"""
        return [p for p in self._pickups.values() if p.is_undo]

    # =========================================================================
    # 参数更新
    # =========================================================================

    def set_parameter(self, name: str, column: str, value) -> None:
        """写入独立参数并重新求值派生参数

        异常:
            ChainConfigurationError: 目标为派生参数，或参数无效
        """
        key = normalize_column(column)
        if (name, key) in self._pickups:
            raise ChainConfigurationError(
                f"变换 '{name}' 的参数 '{key}' 为派生参数，不能直接写入。"
            )
        self.get(name).set_parameter(key, value)
        self.resolve_pickups()

    def get_parameter(self, name: str, column: str) -> float:
        return self.get(name).get_parameter(column)

    def set_orientation(self, angle_deg: float) -> None:
        """设置圆弧滑轨姿态角，并传播到所有派生链接"""
        if self.orientation_transform is None:
            raise ChainConfigurationError(f"链 '{self.name}' 未指定姿态角环节。")
        self._check_finite('姿态角', angle_deg)
        self.set_parameter(self.orientation_transform, self.orientation_column, angle_deg)

    def set_rail_error(self, delta_deg: float) -> None:
        """设置滑轨误差，只更新误差环节本身，不传播"""
        if self.rail_error_transform is None:
            raise ChainConfigurationError(f"链 '{self.name}' 未指定滑轨误差环节。")
        self._check_finite('滑轨误差', delta_deg)
        if self.is_derived(self.rail_error_transform, self.rail_error_column):
            raise ChainConfigurationError(
                f"滑轨误差环节 '{self.rail_error_transform}' 的参数为派生参数。"
            )
        self.get(self.rail_error_transform).set_parameter(self.rail_error_column, delta_deg)

    @staticmethod
    def _check_finite(label: str, value) -> None:
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ChainConfigurationError(f"{label}必须为数值，实际为 {value!r}。")
        if not np.isfinite(number):
            raise ChainConfigurationError(f"{label}必须为有限值，实际为 {value}。")

    @property
    def orientation(self) -> float:
        if self.orientation_transform is None:
            return 0.0
        return self.get_parameter(self.orientation_transform, self.orientation_column)

    @property
    def rail_error(self) -> float:
        if self.rail_error_transform is None:
            return 0.0
        return self.get_parameter(self.rail_error_transform, self.rail_error_column)

    def perturbation_tilt(self, column: str = 'tilt_x') -> float:
        """所有扰动环节在指定旋转列上的倾角之和（度）"""
        key = normalize_column(column)
        return float(sum(
            t.get_parameter(key) for t in self._transforms
            if t.perturbation and t.is_coordinate_break
        ))

    # =========================================================================
    # 一致性
    # =========================================================================

    def cumulative_rotation(
        self,
        start: Optional[TransformRef] = None,
        stop: Optional[TransformRef] = None,
        include_perturbations: bool = True,
    ) -> np.ndarray:
        """区间 [start, stop) 内各环节旋转按序合成

        参数:
            start: 起始环节（名称或索引），默认链首
            stop: 终止环节（不含），默认链尾
            include_perturbations: 是否计入扰动环节

        返回:
            3×3 旋转矩阵
        """
        i0 = 0 if start is None else self._resolve_index(start)
        i1 = len(self._transforms) if stop is None else self._resolve_index(stop)
        rotation = np.eye(3)
        for transform in self._transforms[i0:i1]:
            if transform.perturbation and not include_perturbations:
                continue
            rotation = rotation @ transform.rotation_matrix()
        return rotation

    def _resolve_index(self, ref: TransformRef) -> int:
        if isinstance(ref, (int, np.integer)) and not isinstance(ref, bool):
            return int(ref)
        return self.index_of(ref)

    def baseline_residual(self) -> float:
        """当前链与姿态角为零的基线链之间的净旋转残差（度）

        扰动环节不参与合成。撤销变换正确时，正向旋转与回程旋转
        相互抵消，残差为浮点误差量级。
        """
        current = self.cumulative_rotation(include_perturbations=False)
        baseline_chain = self.copy()
        if baseline_chain.orientation_transform is not None:
            baseline_chain.set_orientation(0.0)
        baseline = baseline_chain.cumulative_rotation(include_perturbations=False)
        residual = Rotation.from_matrix(current.T @ baseline)
        return float(np.rad2deg(residual.magnitude()))

    def check_consistency(self, tol: float = DEFAULT_TOLERANCE) -> None:
        """校验派生链接与净旋转

        1. 每个派生参数等于 scale × 源参数 + offset
        2. 每个撤销链接与其源旋转之和为零
        3. 净旋转与基线一致

        异常:
            ConsistencyViolationError: 任一项超出容差
        """
        for pickup in self._pickups.values():
            source_value = self.get_parameter(pickup.source, pickup.source_column)
            target_value = self.get_parameter(pickup.target, pickup.column)
            drift = abs(target_value - pickup.evaluate(source_value))
            if drift > tol:
                raise ConsistencyViolationError(
                    f"派生参数 {pickup.target}.{pickup.column} = {target_value} "
                    f"偏离 {pickup.scale} × {pickup.source}.{pickup.source_column} "
                    f"+ {pickup.offset}，偏差 {drift:.3e}。",
                    residual=drift,
                )
            if pickup.is_undo and abs(target_value + source_value) > tol:
                raise ConsistencyViolationError(
                    f"撤销变换 {pickup.target}.{pickup.column} 未抵消 "
                    f"{pickup.source}.{pickup.source_column}，"
                    f"和为 {target_value + source_value:.3e}。",
                    residual=abs(target_value + source_value),
                )

        residual = self.baseline_residual()
        if residual > tol:
            raise ConsistencyViolationError(
                f"链 '{self.name}' 净旋转偏离基线 {residual:.3e}°，"
                f"超过容差 {tol:.1e}°。",
                residual=residual,
            )

    # =========================================================================
    # 追踪与快照
    # =========================================================================

    def trace(self) -> List[TracedTransform]:
        """按 Zemax 序列模式追踪每个环节的全局位姿

        坐标断点更新当前坐标系；光学面记录顶点位姿后沿 Z 轴前进厚度，
        反射面不改变坐标系方向。无穷大厚度视为 0。
        """
        cs = CurrentCoordinateSystem.identity()
        traced: List[TracedTransform] = []
        for transform in self._transforms:
            traced.append(TracedTransform(transform.name, transform.kind, cs))
            thickness = transform.thickness if np.isfinite(transform.thickness) else 0.0
            if transform.is_coordinate_break:
                cs = CoordinateBreakProcessor.process(
                    cs,
                    decenter_x=transform.decenter_x,
                    decenter_y=transform.decenter_y,
                    tilt_x_rad=np.deg2rad(transform.tilt_x),
                    tilt_y_rad=np.deg2rad(transform.tilt_y),
                    tilt_z_rad=np.deg2rad(transform.tilt_z),
                    order=transform.order,
                    thickness=thickness,
                )
            else:
                cs = cs.advance_along_z(thickness)
        return traced

    def parameter_table(self) -> Dict[str, Dict[str, float]]:
        """所有环节可写参数的快照"""
        return {t.name: t.parameters() for t in self._transforms}

    def copy(self) -> "KinematicChain":
        """深拷贝（含派生链接与角色）"""
        return copy.deepcopy(self)

    def __repr__(self) -> str:
        return (
            f"KinematicChain(name={self.name!r}, transforms={len(self._transforms)}, "
            f"pickups={len(self._pickups)}, orientation={self.orientation}°)"
        )
