"""
重力下沉姿态角扫描模块

本模块编排圆弧滑轨参考镜的姿态角扫描：逐角度生成重力下沉面形
与 GridSag 文件、更新运动学链、注入滑轨对准误差、调用外部分析引擎
取回 Zernike 系数，并汇总结果用于在位标定。

主要功能：
1. SweepConfig: 扫描配置与 JSON 持久化
2. SweepOrchestrator / run_sweep: 扫描状态机，单次失败不中止扫描
3. ErrorInjector: 可设定种子的高斯对准误差
4. AnalysisEngine: 引擎契约，含进程内参考引擎与 OpticStudio 引擎
5. ResultsAggregator: 有序结果集，CSV / JSON 导出
6. 在位标定：W_corrected = W_measured - W_simulated

使用示例：
    >>> from sag_sweep import SweepConfig, run_sweep
    >>> config = SweepConfig(angles_deg=[0, 11.25, 22.5, 33.75, 45], seed=7)
    >>> results = run_sweep(config, verbose=True)
    >>> results.coefficient_series(4)

作者：混合光学仿真项目
"""

from .exceptions import (
    SagSweepError,
    EngineUnavailableError,
    EngineFailureWarning,
    GravitySagError,
    InvalidParameterError,
    GridFormatError,
    KinematicChainError,
    ChainConfigurationError,
    ConsistencyViolationError,
)

from .config import SweepConfig

from .error_injector import (
    AlignmentError,
    ErrorInjector,
    DEFAULT_SIGMA_DEG,
)

from .zernike import (
    noll_to_nm,
    zernike_radial,
    zernike_standard,
    fit_zernike,
)

from .engine import (
    AnalysisEngine,
    GridSagZernikeEngine,
    DEFAULT_WAVELENGTH_UM,
)

from .zos_engine import ZosApiEngine

from .state import (
    SweepStage,
    OpticalSystemState,
)

from .results import (
    SweepResult,
    ResultsAggregator,
    STATUS_OK,
    STATUS_FAILED,
)

from .orchestrator import (
    SweepOrchestrator,
    run_sweep,
    build_chain_for_config,
)

from .calibration import (
    subtract_simulated_sag,
    calibrate_series,
)

__all__ = [
    # 异常类
    "SagSweepError",
    "EngineUnavailableError",
    "EngineFailureWarning",
    "GravitySagError",
    "InvalidParameterError",
    "GridFormatError",
    "KinematicChainError",
    "ChainConfigurationError",
    "ConsistencyViolationError",
    # 配置
    "SweepConfig",
    # 误差注入
    "AlignmentError",
    "ErrorInjector",
    "DEFAULT_SIGMA_DEG",
    # Zernike
    "noll_to_nm",
    "zernike_radial",
    "zernike_standard",
    "fit_zernike",
    # 引擎
    "AnalysisEngine",
    "GridSagZernikeEngine",
    "ZosApiEngine",
    "DEFAULT_WAVELENGTH_UM",
    # 编排
    "SweepStage",
    "OpticalSystemState",
    "SweepOrchestrator",
    "run_sweep",
    "build_chain_for_config",
    # 结果
    "SweepResult",
    "ResultsAggregator",
    "STATUS_OK",
    "STATUS_FAILED",
    # 标定
    "subtract_simulated_sag",
    "calibrate_series",
]
