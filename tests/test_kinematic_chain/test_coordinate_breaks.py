"""
坐标断点与当前坐标系测试
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from kinematic_chain import (
    ChainConfigurationError,
    CoordinateBreakProcessor,
    CurrentCoordinateSystem,
)


class TestCurrentCoordinateSystem:
    """测试 CurrentCoordinateSystem"""

    def test_identity(self):
        cs = CurrentCoordinateSystem.identity()
        assert_allclose(cs.origin, [0, 0, 0])
        assert_allclose(cs.axes, np.eye(3))

    def test_advance_along_z(self):
        cs = CurrentCoordinateSystem.identity().advance_along_z(-25.0)
        assert_allclose(cs.origin, [0, 0, -25.0])

    def test_decenter_follows_current_axes(self):
        """偏心沿当前 X、Y 轴而不是全局轴"""
        rotated = CurrentCoordinateSystem.identity().apply_rotation_matrix(
            CoordinateBreakProcessor.rotation_matrix_z(np.pi / 2)
        )
        moved = rotated.apply_decenter(10.0, 0.0)
        assert_allclose(moved.origin, [0, 10.0, 0], atol=1e-12)

    def test_invalid_shape(self):
        with pytest.raises(ValueError):
            CurrentCoordinateSystem(origin=np.zeros(2), axes=np.eye(3))


class TestCoordinateBreakProcessor:
    """测试坐标断点处理"""

    def test_tilt_x_rotates_z_axis(self):
        """绕 X 轴旋转 θ 后 Z 轴为 [0, -sin θ, cos θ]"""
        theta = np.deg2rad(30.0)
        cs = CoordinateBreakProcessor.process(
            CurrentCoordinateSystem.identity(), 0, 0, theta, 0, 0, 0, 0.0
        )
        assert_allclose(cs.z_axis, [0, -np.sin(theta), np.cos(theta)], atol=1e-12)

    def test_order_zero_composition(self):
        tx, ty, tz = 0.1, -0.2, 0.3
        R = CoordinateBreakProcessor.rotation_matrix(tx, ty, tz, order=0)
        expected = (
            CoordinateBreakProcessor.rotation_matrix_z(tz)
            @ CoordinateBreakProcessor.rotation_matrix_y(ty)
            @ CoordinateBreakProcessor.rotation_matrix_x(tx)
        )
        assert_allclose(R, expected)

    def test_order_one_with_negated_tilts_is_inverse(self):
        """Order=1 且参数取负恰为 Order=0 的逆"""
        tx, ty, tz = 0.1, -0.2, 0.3
        forward = CoordinateBreakProcessor.rotation_matrix(tx, ty, tz, order=0)
        undo = CoordinateBreakProcessor.rotation_matrix(-tx, -ty, -tz, order=1)
        assert_allclose(forward @ undo, np.eye(3), atol=1e-14)

    def test_process_then_undo_returns_to_start(self):
        """偏心 + 倾斜后再用 Order=1 负参数撤销，坐标系复原"""
        start = CurrentCoordinateSystem.identity()
        forward = CoordinateBreakProcessor.process(start, 5.0, -3.0, 0.2, 0.1, -0.4, 0, 0.0)
        back = CoordinateBreakProcessor.process(forward, -5.0, 3.0, -0.2, -0.1, 0.4, 1, 0.0)
        assert_allclose(back.origin, start.origin, atol=1e-12)
        assert_allclose(back.axes, start.axes, atol=1e-12)

    def test_invalid_order(self):
        with pytest.raises(ChainConfigurationError, match="Order"):
            CoordinateBreakProcessor.rotation_matrix(0.0, 0.0, 0.0, order=2)

    def test_rotation_is_orthonormal(self):
        R = CoordinateBreakProcessor.rotation_matrix(0.7, -1.1, 2.3, order=1)
        assert_allclose(R @ R.T, np.eye(3), atol=1e-14)
        assert np.linalg.det(R) == pytest.approx(1.0)
