"""
扫描配置

SweepConfig 汇总一次姿态角扫描所需的全部外部输入：
角度列表、口径、网格分辨率、标定常数、对准误差标准差与随机种子、
网格文件目录与命名模板、分析波长、光路布局与待记录的系数。

配置以 JSON 保存和加载（UTF-8，indent=2），未知字段在加载时忽略。
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import json
import math

import numpy as np

from gravity_sag import (
    DEFAULT_C_COMA_MM,
    DEFAULT_C_DEFOCUS_MM,
    DEFAULT_FILE_PATTERN,
    InvalidParameterError,
    SagCalibration,
    grid_file_name,
)
from gravity_sag.deformation import validate_angle, validate_diameter, validate_resolution

from .engine import DEFAULT_WAVELENGTH_UM
from .error_injector import DEFAULT_SIGMA_DEG


def _default_angles() -> List[float]:
    return [float(a) for a in np.linspace(0.0, 45.0, 5)]


def _default_indices() -> List[int]:
    return list(range(1, 12))


@dataclass
class SweepConfig:
    """姿态角扫描配置

    属性:
        angles_deg: 姿态角列表（度），按给定顺序处理
        aperture_diameter_mm: 测试镜口径 (mm)
        resolution: 网格每轴采样点数（奇数，建议 2^n + 1）
        c_defocus_mm: 离焦项标定常数 (mm / 单位轴向重力)
        c_coma_mm: 彗差项标定常数 (mm / 单位横向重力)
        alignment_sigma_deg: 滑轨对准误差标准差（度）
        seed: 随机种子，None 表示不可复现
        grid_dir: 网格文件输出目录
        grid_file_pattern: 网格文件名模板，{angle:d} 为向下取整的角度
        wavelength_um: 分析波长 (μm)，默认 HeNe 0.6328
        double_pass: True 使用 Int 2 双通布局，False 使用 Int 1 单通布局
        arc_radius_mm: 圆弧滑轨半径 (mm)
        link_height_mm: Ref 1 与 Ref 2 的垂直距离 (mm)
        coefficient_indices: 每次迭代记录的 Noll 索引
    """
    angles_deg: List[float] = field(default_factory=_default_angles)
    aperture_diameter_mm: float = 300.0
    resolution: int = 257
    c_defocus_mm: float = DEFAULT_C_DEFOCUS_MM
    c_coma_mm: float = DEFAULT_C_COMA_MM
    alignment_sigma_deg: float = DEFAULT_SIGMA_DEG
    seed: Optional[int] = None
    grid_dir: str = "grid_files"
    grid_file_pattern: str = DEFAULT_FILE_PATTERN
    wavelength_um: float = DEFAULT_WAVELENGTH_UM
    double_pass: bool = True
    arc_radius_mm: float = 1500.0
    link_height_mm: float = 800.0
    coefficient_indices: List[int] = field(default_factory=_default_indices)

    @property
    def calibration(self) -> SagCalibration:
        return SagCalibration(c_defocus_mm=self.c_defocus_mm, c_coma_mm=self.c_coma_mm)

    def grid_path(self, angle_deg: float) -> Path:
        """指定角度的网格文件路径"""
        return Path(self.grid_dir) / grid_file_name(angle_deg, self.grid_file_pattern)

    def validate(self) -> None:
        """校验全部字段，扫描开始前调用

        异常:
            InvalidParameterError: 任一字段无效，或两个角度映射到同一网格文件
        """
        if len(self.angles_deg) == 0:
            raise InvalidParameterError("姿态角列表不能为空。")
        for angle in self.angles_deg:
            validate_angle(angle)
        validate_diameter(self.aperture_diameter_mm)
        validate_resolution(self.resolution)
        # 构造即校验
        SagCalibration(c_defocus_mm=self.c_defocus_mm, c_coma_mm=self.c_coma_mm)

        sigma = self.alignment_sigma_deg
        if isinstance(sigma, bool) or not math.isfinite(sigma) or sigma < 0:
            raise InvalidParameterError(
                f"对准误差标准差必须为非负有限值，实际为 {sigma}°。"
            )
        for name in ('wavelength_um', 'arc_radius_mm', 'link_height_mm'):
            value = getattr(self, name)
            if isinstance(value, bool) or not math.isfinite(value) or value <= 0:
                raise InvalidParameterError(f"'{name}' 必须为正有限值，实际为 {value}。")
        if not self.coefficient_indices:
            raise InvalidParameterError("coefficient_indices 不能为空。")
        for j in self.coefficient_indices:
            if isinstance(j, bool) or not isinstance(j, (int, np.integer)) or j < 1:
                raise InvalidParameterError(f"Zernike 索引必须为正整数，实际为 {j!r}。")

        try:
            names = [grid_file_name(a, self.grid_file_pattern) for a in self.angles_deg]
        except (KeyError, IndexError, ValueError) as e:
            raise InvalidParameterError(
                f"网格文件名模板无效：{self.grid_file_pattern!r}（{e}）。"
            )
        seen: Dict[str, float] = {}
        for angle, name in zip(self.angles_deg, names):
            if name in seen:
                raise InvalidParameterError(
                    f"姿态角 {seen[name]}° 与 {angle}° 映射到同一网格文件 '{name}'，"
                    f"请调整角度或文件名模板。"
                )
            seen[name] = angle

    # =========================================================================
    # 序列化
    # =========================================================================

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['angles_deg'] = [float(a) for a in self.angles_deg]
        data['coefficient_indices'] = [int(j) for j in self.coefficient_indices]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SweepConfig":
        """从字典创建配置，忽略未知字段"""
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}
        if 'angles_deg' in kwargs:
            kwargs['angles_deg'] = [float(a) for a in kwargs['angles_deg']]
        if 'coefficient_indices' in kwargs:
            kwargs['coefficient_indices'] = list(kwargs['coefficient_indices'])
        return cls(**kwargs)

    def save(self, path: Union[str, Path]) -> None:
        """保存为 JSON"""
        out_path = Path(path)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        with open(out_path, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "SweepConfig":
        """从 JSON 加载"""
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return cls.from_dict(data)
