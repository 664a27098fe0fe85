"""
扫描结果可视化

绘制选定 Zernike 系数随姿态角的变化，失败迭代以红色竖线标出。
"""

from __future__ import annotations

from typing import Iterable, Optional, TYPE_CHECKING
import numpy as np
import matplotlib.pyplot as plt

from gravity_sag.plotting import setup_chinese_fonts

setup_chinese_fonts()

if TYPE_CHECKING:
    from .results import ResultsAggregator


ZERNIKE_LABELS = {
    1: "Z1 Piston",
    2: "Z2 Tilt X",
    3: "Z3 Tilt Y",
    4: "Z4 Defocus",
    5: "Z5 Astig 45°",
    6: "Z6 Astig 0°",
    7: "Z7 Coma Y",
    8: "Z8 Coma X",
    11: "Z11 Spherical",
}


def plot_coefficient_sweep(
    results: "ResultsAggregator",
    indices: Iterable[int] = (4, 7),
    title: str = "重力下沉 Zernike 系数随姿态角变化",
    save_path: Optional[str] = None,
    show: bool = True,
) -> plt.Figure:
    """绘制系数-姿态角曲线

    参数:
        results: 扫描结果
        indices: 绘制的 Noll 索引
        title: 图标题
        save_path: 保存路径（可选）
        show: 是否调用 plt.show()

    返回:
        matplotlib Figure
    """
    angles = results.angles()
    fig, ax = plt.subplots(figsize=(8, 5))

    for j in indices:
        series = results.coefficient_series(j)
        valid = ~np.isnan(series)
        ax.plot(angles[valid], series[valid], 'o-', label=ZERNIKE_LABELS.get(j, f"Z{j}"))

    for i, r in enumerate(results.failed()):
        ax.axvline(r.angle_deg, color='red', linestyle='--', alpha=0.5,
                   label="分析失败" if i == 0 else None)

    ax.set_xlabel("姿态角 θ (°)")
    ax.set_ylabel("系数 (waves)")
    ax.set_title(title)
    ax.grid(True, alpha=0.3)
    ax.legend()
    fig.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
    if show:
        plt.show()

    return fig
