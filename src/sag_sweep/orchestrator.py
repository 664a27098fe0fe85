"""
姿态角扫描编排器

对输入的每个姿态角依次执行：

    Prepare → Deform → Perturb → Analyze → Record

- Prepare: 检查网格文件目录
- Deform: 运动学链写入姿态角，面形模型以同一角度计算面形并写出网格文件
- Perturb: 抽取滑轨误差写入误差环节，校验运动学链一致性
- Analyze: 把姿态角、误差与网格文件交给分析引擎，取回 Zernike 系数
- Record: 追加到 ResultsAggregator

引擎失败只影响当前迭代：发出 EngineFailureWarning、记录失败结果并继续；
参数错误与一致性错误说明建模或输入有缺陷，直接中止扫描。
角度严格按输入顺序串行处理，运动学链与引擎句柄由编排器独占。

使用示例：
    >>> from sag_sweep import SweepConfig, SweepOrchestrator, GridSagZernikeEngine
    >>> config = SweepConfig(angles_deg=[0.0, 22.5, 45.0], resolution=129, seed=1)
    >>> with GridSagZernikeEngine(wavelength_um=config.wavelength_um) as engine:
    ...     results = SweepOrchestrator(config, engine).run()
    >>> results.coefficient_series(4)
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional
import warnings

from gravity_sag import GravitySagModel, GridFileCodec
from kinematic_chain import (
    ChainConfigurationError,
    ConsistencyViolationError,
    KinematicChain,
    build_double_pass_chain,
    build_single_pass_chain,
)

from .config import SweepConfig
from .engine import AnalysisEngine, DEFAULT_MAX_TERM, GridSagZernikeEngine
from .error_injector import ErrorInjector
from .exceptions import EngineFailureWarning, EngineUnavailableError, SagSweepError
from .results import ResultsAggregator, STATUS_FAILED, SweepResult
from .state import OpticalSystemState, SweepStage


def build_chain_for_config(config: SweepConfig) -> KinematicChain:
    """按配置构建单通或双通运动学链"""
    if config.double_pass:
        return build_double_pass_chain(
            aperture_diameter_mm=config.aperture_diameter_mm,
            arc_radius_mm=config.arc_radius_mm,
            link_height_mm=config.link_height_mm,
        )
    return build_single_pass_chain(aperture_diameter_mm=config.aperture_diameter_mm)


class SweepOrchestrator:
    """姿态角扫描编排器

    参数:
        config: 扫描配置，构造时即校验
        engine: 分析引擎
        chain: 运动学链，默认按 config.double_pass 构建；编排器持有其副本
        model: 面形模型，默认使用 config 中的标定常数
        injector: 误差发生器，默认使用 config 中的 sigma 与种子
        verbose: 是否输出进度

    异常:
        InvalidParameterError: 配置无效
        ChainConfigurationError: 运动学链缺少姿态角、滑轨误差或测试面角色
    """

    def __init__(
        self,
        config: SweepConfig,
        engine: AnalysisEngine,
        chain: Optional[KinematicChain] = None,
        model: Optional[GravitySagModel] = None,
        injector: Optional[ErrorInjector] = None,
        verbose: bool = True,
    ) -> None:
        config.validate()
        self.config = config
        self._engine = engine
        self._chain = (chain if chain is not None else build_chain_for_config(config)).copy()
        for role in ('orientation_transform', 'rail_error_transform', 'test_surface'):
            if getattr(self._chain, role) is None:
                raise ChainConfigurationError(
                    f"运动学链 '{self._chain.name}' 未指定角色 '{role}'。"
                )
        self._model = model if model is not None else GravitySagModel(config.calibration)
        self._injector = injector if injector is not None else ErrorInjector(
            sigma_deg=config.alignment_sigma_deg,
            seed=config.seed,
            transform=self._chain.rail_error_transform,
        )
        self._results = ResultsAggregator()
        self._stage = SweepStage.IDLE
        self._state: Optional[OpticalSystemState] = None
        self._verbose = verbose

    # =========================================================================
    # 只读状态
    # =========================================================================

    @property
    def stage(self) -> SweepStage:
        return self._stage

    @property
    def state(self) -> Optional[OpticalSystemState]:
        """最近一步完成后的系统快照"""
        return self._state

    @property
    def results(self) -> ResultsAggregator:
        return self._results

    @property
    def chain(self) -> KinematicChain:
        """运动学链的副本，编排器之外不能修改扫描中的链"""
        return self._chain.copy()

    # =========================================================================
    # 扫描
    # =========================================================================

    def run(self) -> ResultsAggregator:
        """执行完整扫描

        返回:
            ResultsAggregator，长度等于角度数，包含成功与失败记录

        异常:
            SagSweepError: 重复运行
            EngineUnavailableError: 引擎无法加载系统（扫描未开始）
            ConsistencyViolationError: 运动学链一致性校验失败
        """
        if self._stage is not SweepStage.IDLE:
            raise SagSweepError("每个编排器只能执行一次扫描，请新建实例。")
        self.config.validate()

        try:
            self._engine.load_system(self._chain)
        except EngineUnavailableError:
            raise
        except Exception as e:
            raise EngineUnavailableError(f"引擎加载系统失败：{e}") from e

        angles = self.config.angles_deg
        if self._verbose:
            layout = "双通" if self.config.double_pass else "单通"
            print(f"开始重力下沉扫描：{len(angles)} 个姿态角，{layout}光路 '{self._chain.name}'")

        for index, angle in enumerate(angles):
            self._run_iteration(index, float(angle))

        self._stage = SweepStage.DONE
        if self._verbose:
            print(f"扫描完成：{self._results.summary()}")
        return self._results

    def _run_iteration(self, index: int, angle_deg: float) -> OpticalSystemState:
        state = self.prepare(index, angle_deg)
        state = self.deform(state)
        state = self.perturb(state)
        try:
            state = self.analyze(state)
        except EngineUnavailableError as e:
            warnings.warn(
                f"姿态角 {angle_deg}° 分析失败，跳过该角度：{e.message}",
                EngineFailureWarning,
                stacklevel=2,
            )
            return self.record(state, error=e)
        return self.record(state)

    # =========================================================================
    # 步骤
    # =========================================================================

    def _enter(self, stage: SweepStage, state: OpticalSystemState) -> OpticalSystemState:
        self._stage = stage
        self._state = state
        return state

    def prepare(self, index: int, angle_deg: float) -> OpticalSystemState:
        """检查网格文件目录"""
        Path(self.config.grid_dir).mkdir(parents=True, exist_ok=True)
        state = OpticalSystemState(
            index=index,
            stage=SweepStage.PREPARE,
            angle_deg=angle_deg,
            parameters=self._chain.parameter_table(),
        )
        return self._enter(SweepStage.PREPARE, state)

    def deform(self, state: OpticalSystemState) -> OpticalSystemState:
        """写入姿态角并生成网格文件"""
        self._chain.set_orientation(state.angle_deg)
        field = self._model.compute(
            state.angle_deg,
            self.config.aperture_diameter_mm,
            self.config.resolution,
        )
        if field.angle_deg != self._chain.orientation:
            raise ConsistencyViolationError(
                f"面形模型姿态角 {field.angle_deg}° 与运动学链姿态角 "
                f"{self._chain.orientation}° 不一致。"
            )
        path = GridFileCodec.write(self.config.grid_path(state.angle_deg), field)
        if self._verbose:
            print(
                f"  [{state.index + 1}/{len(self.config.angles_deg)}] θ = {state.angle_deg:.2f}°，"
                f"面形 PV = {field.peak_to_valley() * 1e6:.2f} nm → {path.name}"
            )
        return self._enter(SweepStage.DEFORM, state.advance(
            SweepStage.DEFORM,
            grid_file=str(path),
            parameters=self._chain.parameter_table(),
        ))

    def perturb(self, state: OpticalSystemState) -> OpticalSystemState:
        """注入滑轨误差并校验一致性"""
        error = self._injector.sample()
        self._chain.set_rail_error(error.tilt_deg)
        self._chain.check_consistency()
        return self._enter(SweepStage.PERTURB, state.advance(
            SweepStage.PERTURB,
            alignment_error_deg=error.tilt_deg,
            parameters=self._chain.parameter_table(),
        ))

    def analyze(self, state: OpticalSystemState) -> OpticalSystemState:
        """把当前参数与网格文件交给引擎并取回系数

        派生参数由引擎自身的 pickup 求解更新，这里只写入独立参数。

        异常:
            EngineUnavailableError: 引擎任一调用失败
        """
        self._enter(SweepStage.ANALYZE, state)
        chain = self._chain
        try:
            self._engine.set_surface_parameter(
                chain.orientation_transform, chain.orientation_column, chain.orientation
            )
            self._engine.set_surface_parameter(
                chain.rail_error_transform, chain.rail_error_column, chain.rail_error
            )
            self._engine.assign_grid_file(chain.test_surface, state.grid_file)
            self._engine.run_analysis()
            coefficients = {
                j: float(self._engine.get_coefficient(j))
                for j in self.config.coefficient_indices
            }
        except EngineUnavailableError as e:
            raise EngineUnavailableError(e.message, angle_deg=state.angle_deg) from e
        except Exception as e:
            raise EngineUnavailableError(
                f"{type(e).__name__}: {e}", angle_deg=state.angle_deg
            ) from e
        return self._enter(SweepStage.ANALYZE, state.advance(
            SweepStage.ANALYZE, coefficients=coefficients,
        ))

    def record(
        self,
        state: OpticalSystemState,
        error: Optional[EngineUnavailableError] = None,
    ) -> OpticalSystemState:
        """追加本次迭代结果"""
        if error is None:
            result = SweepResult(
                index=state.index,
                angle_deg=state.angle_deg,
                alignment_error_deg=state.alignment_error_deg,
                coefficients=state.coefficients,
                grid_file=state.grid_file,
            )
        else:
            result = SweepResult(
                index=state.index,
                angle_deg=state.angle_deg,
                alignment_error_deg=state.alignment_error_deg,
                grid_file=state.grid_file,
                status=STATUS_FAILED,
                error_message=error.message,
            )
            if self._verbose:
                print(f"  θ = {state.angle_deg:.2f}° 分析失败：{error.message}")
        self._results.append(result)
        return self._enter(SweepStage.RECORD, state.advance(SweepStage.RECORD))


def run_sweep(
    config: SweepConfig,
    engine: Optional[AnalysisEngine] = None,
    chain: Optional[KinematicChain] = None,
    verbose: bool = False,
) -> ResultsAggregator:
    """执行扫描的函数式入口

    未提供引擎时使用 GridSagZernikeEngine，并在扫描结束后关闭。
    """
    if engine is not None:
        return SweepOrchestrator(config, engine, chain=chain, verbose=verbose).run()

    max_term = max([DEFAULT_MAX_TERM] + list(config.coefficient_indices))
    with GridSagZernikeEngine(wavelength_um=config.wavelength_um, max_term=max_term) as own:
        return SweepOrchestrator(config, own, chain=chain, verbose=verbose).run()
