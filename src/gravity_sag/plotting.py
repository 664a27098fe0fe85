"""
重力下沉面形可视化

绘制面形高度及三个导数分量（2×2 布局），用于检查 GridSag 文件内容。
"""

from __future__ import annotations

from typing import Optional, TYPE_CHECKING
import numpy as np
import matplotlib.pyplot as plt
import matplotlib.font_manager as fm


def setup_chinese_fonts():
    """设置 matplotlib 中文字体"""
    chinese_fonts = ['SimHei', 'Microsoft YaHei', 'Noto Sans SC', 'STHeiti', 'SimSun']
    available_fonts = set(f.name for f in fm.fontManager.ttflist)
    for font in chinese_fonts:
        if font in available_fonts:
            plt.rcParams['font.sans-serif'] = [font] + plt.rcParams['font.sans-serif']
            plt.rcParams['font.family'] = 'sans-serif'
            break
    plt.rcParams['axes.unicode_minus'] = False

setup_chinese_fonts()

if TYPE_CHECKING:
    from .deformation import DeformationField


def plot_deformation_field(
    field: "DeformationField",
    title: Optional[str] = None,
    save_path: Optional[str] = None,
    show: bool = True,
) -> plt.Figure:
    """绘制面形高度与导数分布

    参数:
        field: 面形场
        title: 图标题，默认根据姿态角生成
        save_path: 保存路径（可选）
        show: 是否调用 plt.show()

    返回:
        matplotlib Figure
    """
    ny, nx = field.shape
    half_x = field.step_x_mm * (nx - 1) / 2.0
    half_y = field.step_y_mm * (ny - 1) / 2.0
    extent = [-half_x, half_x, -half_y, half_y]

    panels = [
        (field.height * 1e6, "Sag (nm)"),
        (field.dz_dx, "∂z/∂x"),
        (field.dz_dy, "∂z/∂y"),
        (field.d2z_dxdy, "∂²z/∂x∂y (1/mm)"),
    ]

    fig, axes = plt.subplots(2, 2, figsize=(10, 8))
    for ax, (data, label) in zip(axes.flat, panels):
        im = ax.imshow(data, origin='lower', extent=extent, cmap='RdBu_r')
        ax.set_title(label)
        ax.set_xlabel("x (mm)")
        ax.set_ylabel("y (mm)")
        fig.colorbar(im, ax=ax, shrink=0.8)

    if title is None:
        if field.angle_deg is not None:
            title = f"重力下沉面形 θ = {field.angle_deg:.2f}°"
        else:
            title = "重力下沉面形"
    pv_nm = field.peak_to_valley() * 1e6
    rms_nm = field.rms() * 1e6
    fig.suptitle(f"{title}\nPV = {pv_nm:.2f} nm, RMS = {rms_nm:.2f} nm")
    fig.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
    if show:
        plt.show()

    return fig
