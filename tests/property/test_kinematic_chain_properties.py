"""
运动学链属性基测试

本模块使用 hypothesis 库验证：任意姿态角序列下，正向运动与撤销运动
的合成始终回到基线，滑轨误差不被撤销。

测试框架：pytest + hypothesis
最小迭代次数：100

作者：混合光学仿真项目
"""

import numpy as np
from hypothesis import given, strategies as st, settings

from kinematic_chain import (
    CoordinateBreakProcessor,
    CurrentCoordinateSystem,
    build_double_pass_chain,
    build_single_pass_chain,
)


# =============================================================================
# 测试策略定义
# =============================================================================

# 姿态角策略（度）
angle_strategy = st.floats(min_value=-180.0, max_value=180.0, allow_nan=False, allow_infinity=False)

# 姿态角序列策略
angle_sequence_strategy = st.lists(angle_strategy, min_size=1, max_size=12)

# 滑轨误差策略（度）
rail_error_strategy = st.floats(min_value=-0.1, max_value=0.1, allow_nan=False, allow_infinity=False)

# 弧度角策略
radian_strategy = st.floats(min_value=-np.pi, max_value=np.pi, allow_nan=False, allow_infinity=False)

# 偏心策略（mm）
decenter_strategy = st.floats(min_value=-500.0, max_value=500.0, allow_nan=False, allow_infinity=False)

# 布局策略
builder_strategy = st.sampled_from([build_single_pass_chain, build_double_pass_chain])


# =============================================================================
# 撤销变换属性测试
# =============================================================================

class TestUndoProperties:
    """正向 + 撤销 = 基线"""

    @given(builder=builder_strategy, angles=angle_sequence_strategy)
    @settings(max_examples=100)
    def test_forward_plus_undo_is_identity(self, builder, angles):
        """
        对任意姿态角序列逐一写入，每一步撤销参数都等于 -θ，
        净旋转残差不超过 1e-9°。
        """
        chain = builder()
        undo = chain.undo_links()[0]
        for angle in angles:
            chain.set_orientation(angle)
            assert chain.get_parameter(undo.target, undo.column) == -angle
            assert chain.baseline_residual() < 1e-9
            chain.check_consistency()

    @given(angle=angle_strategy, delta=rail_error_strategy)
    @settings(max_examples=100)
    def test_rail_error_survives_undo(self, angle, delta):
        """
        滑轨误差不被撤销：探测面相对基线恰好倾斜 δ。
        """
        chain = build_double_pass_chain()
        chain.set_orientation(angle)
        chain.set_rail_error(delta)
        chain.check_consistency()

        detector = chain.trace()[-1].coordinate_system
        d = np.deg2rad(delta)
        np.testing.assert_allclose(detector.z_axis, [0.0, -np.sin(d), np.cos(d)], atol=1e-12)

    @given(angle=angle_strategy)
    @settings(max_examples=100)
    def test_detector_pose_independent_of_angle(self, angle):
        """
        无滑轨误差时，双通光路探测面位姿与姿态角无关。
        """
        chain = build_double_pass_chain()
        baseline = chain.trace()[-1].coordinate_system
        chain.set_orientation(angle)
        detector = chain.trace()[-1].coordinate_system
        np.testing.assert_allclose(detector.origin, baseline.origin, atol=1e-9)
        np.testing.assert_allclose(detector.axes, baseline.axes, atol=1e-12)


class TestCoordinateBreakInverseProperties:
    """Order=1 负参数坐标断点是 Order=0 坐标断点的逆"""

    @given(
        dx=decenter_strategy,
        dy=decenter_strategy,
        tx=radian_strategy,
        ty=radian_strategy,
        tz=radian_strategy,
    )
    @settings(max_examples=100)
    def test_order_one_undoes_order_zero(self, dx, dy, tx, ty, tz):
        """
        先按 Order=0 施加偏心与倾斜，再按 Order=1 施加全部取负的参数，
        坐标系回到初始状态。
        """
        start = CurrentCoordinateSystem.identity()
        forward = CoordinateBreakProcessor.process(start, dx, dy, tx, ty, tz, 0, 0.0)
        back = CoordinateBreakProcessor.process(forward, -dx, -dy, -tx, -ty, -tz, 1, 0.0)
        np.testing.assert_allclose(back.origin, start.origin, atol=1e-9)
        np.testing.assert_allclose(back.axes, start.axes, atol=1e-12)
