"""
重力下沉面形属性基测试

本模块使用 hypothesis 库对面形模型与 GridSag 文件编解码进行属性基测试。

测试框架：pytest + hypothesis
最小迭代次数：100

作者：混合光学仿真项目
"""

import tempfile
from pathlib import Path

import numpy as np
from hypothesis import given, strategies as st, settings

from gravity_sag import (
    ApertureGrid,
    GravitySagModel,
    GridFileCodec,
    SagCalibration,
)


# =============================================================================
# 测试策略定义
# =============================================================================

# 姿态角策略（度），允许超出 [0, 90] 的任意有限角度
angle_strategy = st.floats(min_value=-360.0, max_value=360.0, allow_nan=False, allow_infinity=False)

# 口径策略（mm）
diameter_strategy = st.floats(min_value=10.0, max_value=2000.0, allow_nan=False, allow_infinity=False)

# 奇数分辨率策略，保持较小以控制运行时间
resolution_strategy = st.sampled_from([3, 5, 9, 17, 33])

# 标定常数策略（mm）
coefficient_strategy = st.floats(min_value=-1e-3, max_value=1e-3, allow_nan=False, allow_infinity=False)


# =============================================================================
# 面形模型属性测试
# =============================================================================

class TestDeformationProperties:
    """GravitySagModel 的属性基测试"""

    @given(
        angle=angle_strategy,
        diameter=diameter_strategy,
        resolution=resolution_strategy,
        c_defocus=coefficient_strategy,
        c_coma=coefficient_strategy,
    )
    @settings(max_examples=100)
    def test_outside_aperture_is_zero(self, angle, diameter, resolution, c_defocus, c_coma):
        """
        口径外（ρ > 1）节点的高度与三个导数严格为 0。
        """
        model = GravitySagModel(SagCalibration(c_defocus, c_coma))
        field = model.compute(angle, diameter, resolution)
        outside = ~ApertureGrid.from_diameter(diameter, resolution).aperture_mask()

        for values in (field.height, field.dz_dx, field.dz_dy, field.d2z_dxdy):
            assert np.all(values[outside] == 0.0)
            assert np.all(np.isfinite(values))

    @given(angle=angle_strategy, resolution=resolution_strategy)
    @settings(max_examples=100)
    def test_deterministic(self, angle, resolution):
        """
        相同输入两次计算的结果逐位相同。
        """
        model = GravitySagModel()
        assert model.compute(angle, 300.0, resolution).equals(model.compute(angle, 300.0, resolution))

    @given(angle=angle_strategy, resolution=resolution_strategy)
    @settings(max_examples=100)
    def test_gravity_superposition(self, angle, resolution):
        """
        面形是两个基础面形按 (sin θ, cos θ) 的线性组合：
        h(θ) = sin θ · h(90°) + cos θ · h(0°)
        """
        model = GravitySagModel()
        h = model.compute(angle, 300.0, resolution).height
        h_axial = model.compute(90.0, 300.0, resolution).height
        h_trans = model.compute(0.0, 300.0, resolution).height
        theta = np.deg2rad(angle)
        expected = np.sin(theta) * h_axial + np.cos(theta) * h_trans
        np.testing.assert_allclose(h, expected, rtol=0, atol=1e-15)

    @given(angle=angle_strategy, resolution=resolution_strategy)
    @settings(max_examples=100)
    def test_mirror_symmetric_in_x(self, angle, resolution):
        """
        重力沿 y 方向作用，面形关于 x = 0 镜像对称。
        """
        h = GravitySagModel().compute(angle, 300.0, resolution).height
        np.testing.assert_allclose(h, h[:, ::-1], rtol=0, atol=1e-18)


# =============================================================================
# 网格文件属性测试
# =============================================================================

class TestGridFileProperties:
    """GridFileCodec 的属性基测试"""

    @given(
        angle=angle_strategy,
        diameter=diameter_strategy,
        resolution=resolution_strategy,
    )
    @settings(max_examples=100, deadline=None)
    def test_write_read_bit_exact(self, angle, diameter, resolution):
        """
        写出再读入的面形与原始面形逐位相同，文件长度为 36 + n²·32。
        """
        field = GravitySagModel().compute(angle, diameter, resolution)
        with tempfile.TemporaryDirectory() as tmp:
            path = GridFileCodec.write(Path(tmp) / "sag.dat", field)
            assert path.stat().st_size == 36 + resolution * resolution * 32
            restored = GridFileCodec.read(path)
        assert restored.equals(field)
