"""
在位标定

实测波前扣除仿真得到的重力下沉贡献：

    W_corrected = W_measured - W_simulated

按 Zernike 系数逐项相减，系数单位均为波长。
"""

from typing import Dict, Iterable, Mapping
import math

from .exceptions import SagSweepError
from .results import SweepResult


ANGLE_MATCH_TOL_DEG = 1e-9


def subtract_simulated_sag(
    measured: Mapping[int, float],
    result: SweepResult,
) -> Dict[int, float]:
    """从实测系数中扣除同一姿态角的仿真系数

    参数:
        measured: 实测 {Noll 索引: 系数}
        result: 同一姿态角的仿真结果

    返回:
        校正后的 {Noll 索引: 系数}

    异常:
        SagSweepError: 仿真结果为失败记录，或缺少实测中的某一项
    """
    return {j: float(w) - result.coefficient(j) for j, w in measured.items()}


def calibrate_series(
    measured_by_angle: Mapping[float, Mapping[int, float]],
    results: Iterable[SweepResult],
) -> Dict[float, Dict[int, float]]:
    """对多个姿态角逐一扣除仿真系数

    实测角度与仿真角度在 1e-9° 内视为同一角度。

    异常:
        SagSweepError: 某个实测角度没有对应的仿真结果
    """
    results = list(results)
    corrected: Dict[float, Dict[int, float]] = {}
    for angle, measured in measured_by_angle.items():
        match = next(
            (r for r in results
             if math.isclose(r.angle_deg, angle, rel_tol=0.0, abs_tol=ANGLE_MATCH_TOL_DEG)),
            None,
        )
        if match is None:
            raise SagSweepError(f"姿态角 {angle}° 没有对应的仿真结果。")
        corrected[angle] = subtract_simulated_sag(measured, match)
    return corrected
