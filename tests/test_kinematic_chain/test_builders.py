"""
测试光路构建测试

验证单通与双通布局的结构、撤销链接以及全局位姿追踪。
"""

import math

import numpy as np
import pytest
from numpy.testing import assert_allclose

from kinematic_chain import (
    ChainConfigurationError,
    GRID_SAG,
    MIRROR,
    build_double_pass_chain,
    build_single_pass_chain,
)


class TestSinglePassChain:
    """测试单通布局"""

    def test_structure(self):
        chain = build_single_pass_chain()
        assert [t.name for t in chain] == [
            'origin', 'arc_motion', 'rail_tolerance', 'test_mirror',
            'return_path', 'detector',
        ]
        assert chain.orientation_transform == 'arc_motion'
        assert chain.rail_error_transform == 'rail_tolerance'
        assert chain.test_surface == 'test_mirror'
        assert chain.get('test_mirror').kind == GRID_SAG
        assert chain.get('test_mirror').semi_diameter == 150.0
        assert math.isinf(chain.get('test_mirror').radius)

    def test_return_path_follows_motion(self):
        chain = build_single_pass_chain()
        chain.set_orientation(22.5)
        assert chain.get('return_path').tilt_x == -22.5
        assert chain.get('return_path').order == 1
        chain.check_consistency()

    def test_invalid_aperture(self):
        with pytest.raises(ChainConfigurationError, match="口径"):
            build_single_pass_chain(aperture_diameter_mm=0.0)


class TestDoublePassChain:
    """测试经 Ref 2 中继的双通布局"""

    def test_structure(self):
        chain = build_double_pass_chain()
        names = [t.name for t in chain]
        assert names[0] == 'int2_aperture'
        assert names[-1] == 'detector'
        # 测试面位于正向运动与撤销运动之间
        assert names.index('ref1_motion') < names.index('ref1_test') < names.index('undo_motion')
        assert chain.get('int2_aperture').is_stop
        assert chain.get('ref2_pass1').kind == MIRROR
        assert chain.get('ref2_pass2').kind == MIRROR
        assert chain.get('ref1_test').radius == -1500.0

    def test_link_height(self):
        chain = build_double_pass_chain(link_height_mm=650.0)
        assert chain.get('ref2_pass1').thickness == -650.0
        assert chain.get('return_linkage').thickness == 650.0

    def test_undo_link_uses_par3_alias(self):
        chain = build_double_pass_chain()
        links = chain.undo_links()
        assert len(links) == 1
        assert links[0].target == 'undo_motion'
        assert links[0].column == 'tilt_x'
        assert links[0].source == 'ref1_motion'

    @pytest.mark.parametrize("angle", [0.0, 11.25, 22.5, 33.75, 45.0])
    def test_consistency_over_sweep(self, angle):
        chain = build_double_pass_chain()
        chain.set_orientation(angle)
        chain.set_rail_error(0.005)
        chain.check_consistency()
        assert chain.get('undo_motion').tilt_x == -angle

    @pytest.mark.parametrize("angle", [0.0, 20.0, 45.0])
    def test_trace_test_surface_pose(self, angle):
        """Ref 1 顶点位于 Ref 2 下方 H_link，法线随姿态角转动"""
        chain = build_double_pass_chain()
        chain.set_orientation(angle)
        poses = {t.name: t.coordinate_system for t in chain.trace()}
        theta = np.deg2rad(angle)
        assert_allclose(poses['ref2_pass1'].origin, [0, 0, 100.0], atol=1e-9)
        assert_allclose(poses['ref1_test'].origin, [0, 0, -700.0], atol=1e-9)
        assert_allclose(poses['ref1_test'].z_axis, [0, -np.sin(theta), np.cos(theta)], atol=1e-12)

    @pytest.mark.parametrize("angle", [0.0, 20.0, 45.0])
    def test_trace_detector_independent_of_angle(self, angle):
        """撤销运动后探测面位姿与姿态角无关"""
        chain = build_double_pass_chain()
        chain.set_orientation(angle)
        detector = chain.trace()[-1].coordinate_system
        assert_allclose(detector.origin, [0, 0, 100.0], atol=1e-9)
        assert_allclose(detector.axes, np.eye(3), atol=1e-12)

    def test_rail_error_tilts_return_path(self):
        """滑轨误差不被撤销，探测面保留该倾角"""
        chain = build_double_pass_chain()
        chain.set_orientation(30.0)
        chain.set_rail_error(0.01)
        detector = chain.trace()[-1].coordinate_system
        delta = np.deg2rad(0.01)
        assert_allclose(detector.z_axis, [0, -np.sin(delta), np.cos(delta)], atol=1e-12)

    @pytest.mark.parametrize("kwargs", [
        {"arc_radius_mm": -1.0},
        {"link_height_mm": 0.0},
        {"aperture_diameter_mm": math.nan},
    ])
    def test_invalid_geometry(self, kwargs):
        with pytest.raises(ChainConfigurationError):
            build_double_pass_chain(**kwargs)
