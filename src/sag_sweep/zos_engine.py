"""
OpticStudio 分析引擎（zospy）

通过 zospy 连接 Ansys Zemax OpticStudio，按运动学链逐行建立 LDE：
坐标断点写入 Par1..Par6，反射面材料设为 MIRROR，测试面为 Grid Sag，
派生链接写成 Surface Pickup 求解。分析使用 Zernike Standard Coefficients。

zospy 只在创建引擎时导入；未安装或无法连接时抛出 EngineUnavailableError。
安装方式：pip install "gravity-sag-sweep[zemax]"
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Any, Dict, Optional, Union

from kinematic_chain import COORDINATE_BREAK, GRID_SAG, MIRROR, KinematicChain

from .engine import AnalysisEngine, DEFAULT_MAX_TERM, DEFAULT_WAVELENGTH_UM
from .exceptions import EngineUnavailableError


# 运动学链参数列 → LDE 列
ZOS_COLUMNS = {
    'decenter_x': 'Par1',
    'decenter_y': 'Par2',
    'tilt_x': 'Par3',
    'tilt_y': 'Par4',
    'tilt_z': 'Par5',
    'order': 'Par6',
    'thickness': 'Thickness',
    'radius': 'Radius',
}


def _import_zospy():
    try:
        import zospy
    except ImportError as e:
        raise EngineUnavailableError(
            f"zospy 不可用：{e}。请安装：pip install zospy"
        ) from e
    return zospy


def _extract_value(obj: Any) -> float:
    """zospy 2.x 的系数可能是带 .value 的 UnitField"""
    value = obj.value if hasattr(obj, 'value') else obj
    return float(value)


class ZosApiEngine(AnalysisEngine):
    """OpticStudio 引擎

    参数:
        mode: zospy 连接模式，'standalone' 或 'extension'
        wavelength_um: 主波长 (μm)
        aperture_mm: 入瞳直径 (mm)
        sampling: Zernike 分析采样，如 '64x64'
        maximum_term: 最高 Zernike 项
        copy_grid_files: 是否把网格文件复制到 OpticStudio 的 Grid Files 目录
    """

    def __init__(
        self,
        mode: str = "standalone",
        wavelength_um: float = DEFAULT_WAVELENGTH_UM,
        aperture_mm: float = 100.0,
        sampling: str = "64x64",
        maximum_term: int = DEFAULT_MAX_TERM,
        copy_grid_files: bool = True,
    ) -> None:
        self._zp = _import_zospy()
        self.wavelength_um = wavelength_um
        self.aperture_mm = aperture_mm
        self.sampling = sampling
        self.maximum_term = maximum_term
        self.copy_grid_files = copy_grid_files
        self._rows: Dict[str, int] = {}
        self._coefficients: Optional[Dict[int, float]] = None
        try:
            self.zos = self._zp.ZOS()
            self.oss = self.zos.connect(mode=mode)
        except Exception as e:
            raise EngineUnavailableError(f"无法连接 OpticStudio：{e}") from e
        if self.oss is None:
            raise EngineUnavailableError("无法连接 OpticStudio。")

    # =========================================================================
    # 内部工具
    # =========================================================================

    @property
    def _constants(self):
        return self._zp.constants

    def _surface(self, name: str):
        if name not in self._rows:
            raise EngineUnavailableError(f"OpticStudio 系统中不存在环节 '{name}'。")
        return self.oss.LDE.GetSurfaceAt(self._rows[name])

    def _column(self, column: str):
        return getattr(self._constants.Editors.LDE.SurfaceColumn, ZOS_COLUMNS[column])

    def _write_cell(self, surface, column: str, value) -> None:
        if column == 'thickness':
            surface.Thickness = float(value)
        elif column == 'radius':
            surface.Radius = float(value)
        elif column == 'order':
            surface.GetSurfaceCell(self._column(column)).IntegerValue = int(value)
        else:
            surface.GetSurfaceCell(self._column(column)).DoubleValue = float(value)

    def grid_directory(self) -> Path:
        """OpticStudio 读取 Grid Sag 文件的目录"""
        return Path(str(self.zos.Application.ZemaxDataDir)) / "Objects" / "Grid Files"

    # =========================================================================
    # AnalysisEngine 接口
    # =========================================================================

    def load_system(self, chain: KinematicChain) -> None:
        """新建系统并按链逐行写入 LDE

        第 i 个环节对应 LDE 第 i+1 行，最后一个环节为像面。
        """
        try:
            self.oss.new()
            self.oss.SystemData.Aperture.ApertureValue = self.aperture_mm
            self.oss.SystemData.Wavelengths.GetWavelength(1).Wavelength = self.wavelength_um

            lde = self.oss.LDE
            # 新系统为 OBJ / STOP / IMA 三行
            for _ in range(len(chain) - 2):
                lde.InsertNewSurfaceAt(2)

            surface_type = self._constants.Editors.LDE.SurfaceType
            self._rows = {}
            for i, transform in enumerate(chain):
                row = i + 1
                self._rows[transform.name] = row
                surface = lde.GetSurfaceAt(row)
                surface.Comment = transform.comment or transform.name
                if transform.kind == COORDINATE_BREAK:
                    surface.ChangeType(surface.GetSurfaceTypeSettings(surface_type.CoordinateBreak))
                    for column in ('decenter_x', 'decenter_y', 'tilt_x', 'tilt_y', 'tilt_z', 'order'):
                        self._write_cell(surface, column, transform.get_parameter(column))
                elif transform.kind == GRID_SAG:
                    surface.ChangeType(surface.GetSurfaceTypeSettings(surface_type.GridSag))
                if transform.kind in (MIRROR, GRID_SAG):
                    surface.Material = "MIRROR"
                if transform.radius != float('inf'):
                    surface.Radius = transform.radius
                if transform.semi_diameter > 0:
                    surface.SemiDiameter = transform.semi_diameter
                if transform.is_stop:
                    surface.IsStop = True
                # 像面没有厚度
                if row < len(chain):
                    surface.Thickness = transform.thickness

            solve_type = self._constants.Editors.SolveType
            for pickup in chain.resolution_order():
                cell = lde.GetSurfaceAt(self._rows[pickup.target]).GetSurfaceCell(
                    self._column(pickup.column)
                )
                solve = cell.CreateSolveType(solve_type.SurfacePickup)
                solve._S_SurfacePickup.Surface = self._rows[pickup.source]
                solve._S_SurfacePickup.ScaleFactor = pickup.scale
                solve._S_SurfacePickup.Offset = pickup.offset
                solve._S_SurfacePickup.Column = self._column(pickup.source_column)
                cell.SetSolveData(solve)
        except EngineUnavailableError:
            raise
        except Exception as e:
            raise EngineUnavailableError(f"OpticStudio 建立系统失败：{e}") from e
        self._coefficients = None

    def set_surface_parameter(self, name: str, column: str, value: float) -> None:
        try:
            self._write_cell(self._surface(name), column, value)
        except EngineUnavailableError:
            raise
        except Exception as e:
            raise EngineUnavailableError(f"写入 {name}.{column} 失败：{e}") from e
        self._coefficients = None

    def assign_grid_file(self, name: str, path: Union[str, Path]) -> None:
        source = Path(path)
        try:
            if self.copy_grid_files:
                target_dir = self.grid_directory()
                target_dir.mkdir(parents=True, exist_ok=True)
                if source.resolve().parent != target_dir.resolve():
                    shutil.copy2(source, target_dir / source.name)
            surface = self._surface(name)
            settings = surface.GetSurfaceTypeSettings(
                self._constants.Editors.LDE.SurfaceType.GridSag
            )
            settings.FileName = source.name
            surface.ChangeType(settings)
            surface.Material = "MIRROR"
        except EngineUnavailableError:
            raise
        except Exception as e:
            raise EngineUnavailableError(f"加载 GridSag 文件 {source.name} 失败：{e}") from e
        self._coefficients = None

    def run_analysis(self) -> Dict[int, float]:
        try:
            analysis = self._zp.analyses.wavefront.ZernikeStandardCoefficients(
                sampling=self.sampling,
                maximum_term=self.maximum_term,
                wavelength=1,
                field=1,
                surface="Image",
            )
            result = analysis.run(self.oss)
        except Exception as e:
            raise EngineUnavailableError(f"Zernike Standard Coefficients 分析失败：{e}") from e

        data = getattr(result, 'data', None)
        raw = getattr(data, 'coefficients', None) if data is not None else None
        if not raw:
            raise EngineUnavailableError("Zernike Standard Coefficients 没有返回系数。")

        if isinstance(raw, dict):
            coefficients = {int(k): _extract_value(v) for k, v in raw.items()}
        else:
            coefficients = {i + 1: _extract_value(v) for i, v in enumerate(raw)}
        self._coefficients = coefficients
        return dict(coefficients)

    def get_coefficient(self, index: int) -> float:
        if self._coefficients is None:
            raise EngineUnavailableError("尚未执行分析或参数已变更，没有可用系数。")
        if index not in self._coefficients:
            raise EngineUnavailableError(f"系数 Z{index} 不在分析结果中。")
        return self._coefficients[index]

    def close(self) -> None:
        zos = getattr(self, 'zos', None)
        if zos is not None:
            zos.disconnect()
            self.zos = None
        self._coefficients = None
