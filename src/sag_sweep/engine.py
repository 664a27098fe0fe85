"""
波前分析引擎接口

扫描编排器通过 AnalysisEngine 与外部光线追迹 / 波前分析引擎交互：
加载运动学链、写入环节参数、为测试面指定 GridSag 文件、
触发分析并按 Noll 索引读取 Zernike Standard 系数（单位：波长）。

实现：
- GridSagZernikeEngine: 进程内参考引擎，直接读取网格文件拟合 Zernike 系数
- ZosApiEngine（zos_engine 模块）: 通过 zospy 驱动 OpticStudio
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Union

import numpy as np

from gravity_sag import GridFileCodec, GridFormatError
from kinematic_chain import GRID_SAG, KinematicChain

from .exceptions import EngineUnavailableError
from .zernike import fit_zernike


DEFAULT_WAVELENGTH_UM = 0.6328
DEFAULT_MAX_TERM = 37


class AnalysisEngine(ABC):
    """外部分析引擎契约

    调用顺序：load_system → (set_surface_parameter / assign_grid_file)*
    → run_analysis → get_coefficient*。分析调用是同步阻塞的。
    失败统一以 EngineUnavailableError 报告。
    """

    @abstractmethod
    def load_system(self, chain: KinematicChain) -> None:
        """按运动学链建立光学系统"""

    @abstractmethod
    def set_surface_parameter(self, name: str, column: str, value: float) -> None:
        """写入指定环节的参数"""

    @abstractmethod
    def assign_grid_file(self, name: str, path: Union[str, Path]) -> None:
        """为 GridSag 环节指定面形文件"""

    @abstractmethod
    def run_analysis(self) -> Dict[int, float]:
        """执行波前分析，返回 {Noll 索引: 系数}"""

    @abstractmethod
    def get_coefficient(self, index: int) -> float:
        """读取最近一次分析的指定系数"""

    def close(self) -> None:
        """释放引擎资源"""

    def __enter__(self) -> "AnalysisEngine":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class GridSagZernikeEngine(AnalysisEngine):
    """进程内参考引擎

    对测试面做反射波前近似：

        OPD = 2 · passes · (sag + tan(δ) · y)

    其中 sag 为网格文件中的面形，δ 为链中所有扰动环节的 tilt_x 之和，
    passes 为测试面在光路中被使用的次数。OPD 换算为波长后，在口径
    (ρ ≤ 1) 内最小二乘拟合 Noll 1..max_term 项。

    引擎持有运动学链的独立副本，派生参数由其自身的 pickup 重新求值，
    与 OpticStudio 的 Surface Pickup 求解行为一致。

    参数:
        wavelength_um: 分析波长 (μm)
        max_term: 拟合的最高 Noll 索引
        surface_passes: 测试面使用次数
    """

    def __init__(
        self,
        wavelength_um: float = DEFAULT_WAVELENGTH_UM,
        max_term: int = DEFAULT_MAX_TERM,
        surface_passes: int = 1,
    ) -> None:
        if not np.isfinite(wavelength_um) or wavelength_um <= 0:
            raise ValueError(f"波长必须为正有限值，实际为 {wavelength_um} μm")
        if max_term < 1:
            raise ValueError(f"max_term 必须 ≥ 1，实际为 {max_term}")
        if surface_passes < 1:
            raise ValueError(f"surface_passes 必须 ≥ 1，实际为 {surface_passes}")
        self.wavelength_um = float(wavelength_um)
        self.max_term = int(max_term)
        self.surface_passes = int(surface_passes)
        self._chain: Optional[KinematicChain] = None
        self._coefficients: Optional[Dict[int, float]] = None

    @property
    def chain(self) -> Optional[KinematicChain]:
        """引擎内部的运动学链副本"""
        return self._chain

    def _require_chain(self) -> KinematicChain:
        if self._chain is None:
            raise EngineUnavailableError("引擎尚未加载光学系统。")
        return self._chain

    def load_system(self, chain: KinematicChain) -> None:
        if chain.test_surface is None:
            raise EngineUnavailableError(f"运动学链 '{chain.name}' 未指定测试面。")
        self._chain = chain.copy()
        self._coefficients = None

    def set_surface_parameter(self, name: str, column: str, value: float) -> None:
        self._require_chain().set_parameter(name, column, value)
        self._coefficients = None

    def assign_grid_file(self, name: str, path: Union[str, Path]) -> None:
        transform = self._require_chain().get(name)
        if transform.kind != GRID_SAG:
            raise EngineUnavailableError(
                f"环节 '{name}' 为 {transform.kind}，不能加载 GridSag 文件。"
            )
        transform.grid_file = str(path)
        self._coefficients = None

    def run_analysis(self) -> Dict[int, float]:
        chain = self._require_chain()
        surface = chain.get(chain.test_surface)
        if surface.grid_file is None:
            raise EngineUnavailableError(f"测试面 '{surface.name}' 尚未指定 GridSag 文件。")
        try:
            field = GridFileCodec.read(surface.grid_file)
        except (OSError, GridFormatError) as e:
            raise EngineUnavailableError(f"无法读取 GridSag 文件：{e}") from e

        x = (np.arange(field.nx) - (field.nx - 1) / 2.0) * field.step_x_mm
        y = (np.arange(field.ny) - (field.ny - 1) / 2.0) * field.step_y_mm
        X, Y = np.meshgrid(x, y)
        radius = surface.semi_diameter if surface.semi_diameter > 0 else min(x[-1], y[-1])
        rho = np.sqrt(X**2 + Y**2) / radius
        theta = np.arctan2(Y, X)
        inside = rho <= 1.0

        delta_rad = np.deg2rad(chain.perturbation_tilt())
        opd_mm = 2.0 * self.surface_passes * (field.height + np.tan(delta_rad) * Y)
        opd_waves = opd_mm / (self.wavelength_um * 1e-3)

        self._coefficients = fit_zernike(
            opd_waves[inside], rho[inside], theta[inside], range(1, self.max_term + 1)
        )
        return dict(self._coefficients)

    def get_coefficient(self, index: int) -> float:
        if self._coefficients is None:
            raise EngineUnavailableError("尚未执行分析或参数已变更，没有可用系数。")
        if index not in self._coefficients:
            raise EngineUnavailableError(
                f"系数 Z{index} 不在分析结果中（1..{self.max_term}）。"
            )
        return self._coefficients[index]

    def close(self) -> None:
        self._chain = None
        self._coefficients = None
