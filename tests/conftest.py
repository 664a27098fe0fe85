"""
pytest 配置文件

本文件包含 pytest 的全局配置和 fixtures。
"""

import sys
from pathlib import Path

import matplotlib
matplotlib.use("Agg")

import pytest

# 将 src 目录添加到 Python 路径
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))


@pytest.fixture
def small_config(tmp_path):
    """小分辨率扫描配置，网格文件写入临时目录"""
    from sag_sweep import SweepConfig

    return SweepConfig(
        angles_deg=[0.0, 15.0, 30.0, 45.0],
        resolution=33,
        seed=2024,
        grid_dir=str(tmp_path / "grid_files"),
    )
