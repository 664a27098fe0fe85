"""
运动学链测试

测试变换、派生链接、参数传播与一致性校验。
"""

import math

import numpy as np
import pytest

from kinematic_chain import (
    COORDINATE_BREAK,
    GRID_SAG,
    MIRROR,
    SURFACE,
    ChainConfigurationError,
    ConsistencyViolationError,
    KinematicChain,
    ParameterPickup,
    RigidTransform,
    normalize_column,
)


def make_chain(scale=-1.0):
    """最小的 正向 → 扰动 → 测试面 → 撤销 链"""
    chain = KinematicChain(name='mini')
    (chain
        .add_transform(RigidTransform('motion'))
        .add_transform(RigidTransform('error', perturbation=True))
        .add_transform(RigidTransform('test', GRID_SAG))
        .add_transform(RigidTransform('undo', order=1)))
    chain.add_pickup(ParameterPickup('undo', 'tilt_x', 'motion', scale=scale))
    chain.assign_roles(orientation='motion', rail_error='error', test_surface='test')
    return chain


class TestColumns:
    """测试列名规范化"""

    @pytest.mark.parametrize("alias, column", [
        ("Par1", "decenter_x"),
        ("par2", "decenter_y"),
        ("PAR3", "tilt_x"),
        ("Par4", "tilt_y"),
        ("Par5", "tilt_z"),
        ("Par6", "order"),
        ("thickness", "thickness"),
        (" Tilt_X ", "tilt_x"),
    ])
    def test_aliases(self, alias, column):
        assert normalize_column(alias) == column

    def test_unknown_column(self):
        with pytest.raises(ChainConfigurationError, match="未知参数列"):
            normalize_column("Par7")


class TestRigidTransform:
    """测试 RigidTransform"""

    def test_non_break_rejects_tilt(self):
        with pytest.raises(ChainConfigurationError):
            RigidTransform('m', MIRROR, tilt_x=1.0)

    def test_non_break_rejects_order(self):
        with pytest.raises(ChainConfigurationError):
            RigidTransform('m', SURFACE, order=1)

    def test_grid_file_only_on_grid_sag(self):
        with pytest.raises(ChainConfigurationError, match="grid_sag"):
            RigidTransform('m', MIRROR, grid_file="sag.dat")
        assert RigidTransform('t', GRID_SAG, grid_file="sag.dat").grid_file == "sag.dat"

    def test_invalid_kind(self):
        with pytest.raises(ChainConfigurationError, match="类型无效"):
            RigidTransform('x', 'lens')

    def test_set_parameter_with_alias(self):
        t = RigidTransform('cb', COORDINATE_BREAK)
        t.set_parameter('Par3', 12.5)
        assert t.tilt_x == 12.5
        assert t.get_parameter('par3') == 12.5

    def test_set_parameter_rejects_non_finite(self):
        t = RigidTransform('cb')
        with pytest.raises(ChainConfigurationError, match="有限值"):
            t.set_parameter('tilt_x', math.nan)

    def test_radius_may_be_infinite(self):
        t = RigidTransform('m', MIRROR, radius=-1500.0)
        t.set_parameter('radius', math.inf)
        assert math.isinf(t.radius)

    def test_order_must_be_zero_or_one(self):
        t = RigidTransform('cb')
        with pytest.raises(ChainConfigurationError, match="order"):
            t.set_parameter('order', 2)

    def test_mirror_has_identity_rotation(self):
        np.testing.assert_allclose(RigidTransform('m', MIRROR).rotation_matrix(), np.eye(3))

    def test_mirror_rejects_tilt_write(self):
        t = RigidTransform('m', MIRROR)
        with pytest.raises(ChainConfigurationError, match="不支持"):
            t.set_parameter('tilt_x', 1.0)


class TestChainStructure:
    """测试链结构"""

    def test_duplicate_name(self):
        chain = KinematicChain().add_transform(RigidTransform('a'))
        with pytest.raises(ChainConfigurationError, match="已存在"):
            chain.add_transform(RigidTransform('a'))

    def test_get_by_name_and_index(self):
        chain = make_chain()
        assert chain.get('test') is chain.get(2)
        assert chain.get(-1).name == 'undo'
        assert len(chain) == 4
        assert [t.name for t in chain] == ['motion', 'error', 'test', 'undo']

    def test_get_missing(self):
        chain = make_chain()
        with pytest.raises(ChainConfigurationError):
            chain.get('nope')
        with pytest.raises(ChainConfigurationError, match="超出范围"):
            chain.get(10)

    def test_rail_error_role_requires_perturbation(self):
        chain = KinematicChain().add_transform(RigidTransform('cb'))
        with pytest.raises(ChainConfigurationError, match="perturbation"):
            chain.assign_roles(rail_error='cb')

    def test_test_surface_role_requires_grid_sag(self):
        chain = KinematicChain().add_transform(RigidTransform('m', MIRROR))
        with pytest.raises(ChainConfigurationError, match="grid_sag"):
            chain.assign_roles(test_surface='m')


class TestPickups:
    """测试派生链接"""

    def test_pickup_resolved_on_add(self):
        chain = KinematicChain()
        chain.add_transform(RigidTransform('a', tilt_x=7.0))
        chain.add_transform(RigidTransform('b', order=1))
        chain.add_pickup(ParameterPickup('b', 'tilt_x', 'a', scale=-1.0))
        assert chain.get('b').tilt_x == -7.0

    def test_orientation_propagates_to_undo(self):
        chain = make_chain()
        chain.set_orientation(33.75)
        assert chain.get('undo').tilt_x == -33.75
        assert chain.orientation == 33.75

    def test_chained_pickups_resolve_in_order(self):
        """b 跟随 a，c 跟随 b，c 先添加也能正确求值"""
        chain = KinematicChain()
        for name in ('a', 'b', 'c'):
            chain.add_transform(RigidTransform(name))
        chain.add_pickup(ParameterPickup('c', 'tilt_y', 'b', scale=2.0))
        chain.add_pickup(ParameterPickup('b', 'tilt_y', 'a', offset=1.0))
        chain.set_parameter('a', 'tilt_y', 3.0)
        assert chain.get('b').tilt_y == 4.0
        assert chain.get('c').tilt_y == 8.0
        order = [p.target for p in chain.resolution_order()]
        assert order == ['b', 'c']

    def test_cross_column_pickup(self):
        chain = KinematicChain()
        chain.add_transform(RigidTransform('a'))
        chain.add_transform(RigidTransform('b'))
        chain.add_pickup(ParameterPickup('b', 'thickness', 'a', source_column='decenter_y'))
        chain.set_parameter('a', 'decenter_y', 12.0)
        assert chain.get('b').thickness == 12.0

    def test_cycle_rejected(self):
        chain = KinematicChain()
        chain.add_transform(RigidTransform('a'))
        chain.add_transform(RigidTransform('b'))
        chain.add_pickup(ParameterPickup('a', 'tilt_y', 'b'))
        with pytest.raises(ChainConfigurationError, match="环路"):
            chain.add_pickup(ParameterPickup('b', 'tilt_y', 'a'))

    def test_self_link_rejected(self):
        chain = KinematicChain().add_transform(RigidTransform('a'))
        with pytest.raises(ChainConfigurationError, match="自身"):
            chain.add_pickup(ParameterPickup('a', 'tilt_x', 'a'))

    def test_second_pickup_on_same_target_rejected(self):
        chain = make_chain()
        with pytest.raises(ChainConfigurationError, match="已是派生参数"):
            chain.add_pickup(ParameterPickup('undo', 'Par3', 'error'))

    def test_order_column_rejected(self):
        with pytest.raises(ChainConfigurationError, match="order"):
            ParameterPickup('a', 'Par6', 'b')

    def test_derived_parameter_not_directly_writable(self):
        chain = make_chain()
        with pytest.raises(ChainConfigurationError, match="派生参数"):
            chain.set_parameter('undo', 'tilt_x', 1.0)

    def test_undo_links(self):
        chain = make_chain()
        links = chain.undo_links()
        assert len(links) == 1
        assert links[0].is_undo
        assert not ParameterPickup('a', 'tilt_x', 'b', scale=-0.5).is_undo
        assert not ParameterPickup('a', 'thickness', 'b', scale=-1.0).is_undo


class TestOrientationAndRailError:
    """测试姿态角与滑轨误差"""

    def test_rail_error_does_not_propagate(self):
        chain = make_chain()
        chain.set_orientation(20.0)
        chain.set_rail_error(0.004)
        assert chain.rail_error == 0.004
        assert chain.get('undo').tilt_x == -20.0
        assert chain.perturbation_tilt() == 0.004

    @pytest.mark.parametrize("value", [math.nan, math.inf, "x"])
    def test_non_finite_orientation(self, value):
        with pytest.raises(ChainConfigurationError):
            make_chain().set_orientation(value)

    def test_non_finite_rail_error(self):
        with pytest.raises(ChainConfigurationError):
            make_chain().set_rail_error(math.inf)

    def test_missing_roles(self):
        chain = KinematicChain().add_transform(RigidTransform('a'))
        with pytest.raises(ChainConfigurationError, match="姿态角"):
            chain.set_orientation(1.0)
        with pytest.raises(ChainConfigurationError, match="滑轨误差"):
            chain.set_rail_error(1.0)
        assert chain.orientation == 0.0
        assert chain.rail_error == 0.0


class TestConsistency:
    """测试一致性校验"""

    @pytest.mark.parametrize("angle", [0.0, 11.25, 45.0, -30.0, 89.9])
    def test_undo_cancels_forward(self, angle):
        chain = make_chain()
        chain.set_orientation(angle)
        chain.check_consistency()
        assert chain.baseline_residual() < 1e-9

    def test_perturbation_excluded_from_residual(self):
        chain = make_chain()
        chain.set_orientation(45.0)
        chain.set_rail_error(0.01)
        chain.check_consistency()
        np.testing.assert_allclose(
            chain.cumulative_rotation(include_perturbations=False), np.eye(3), atol=1e-12
        )

    def test_wrong_undo_scale_detected(self):
        """比例 -0.5 的撤销链接留下一半旋转"""
        chain = make_chain(scale=-0.5)
        chain.set_orientation(20.0)
        with pytest.raises(ConsistencyViolationError) as exc_info:
            chain.check_consistency()
        assert exc_info.value.residual == pytest.approx(10.0, rel=1e-9)

    def test_zero_orientation_with_wrong_scale_passes(self):
        chain = make_chain(scale=-0.5)
        chain.check_consistency()

    def test_drifted_undo_detected(self):
        """绕过链直接改写撤销参数，校验发现漂移"""
        chain = make_chain()
        chain.set_orientation(10.0)
        chain.get('undo').tilt_x = -9.0
        with pytest.raises(ConsistencyViolationError, match="偏离"):
            chain.check_consistency()


class TestSnapshots:
    """测试快照与追踪"""

    def test_copy_is_independent(self):
        chain = make_chain()
        clone = chain.copy()
        clone.set_orientation(15.0)
        assert chain.orientation == 0.0
        assert clone.get('undo').tilt_x == -15.0
        assert clone.orientation_transform == 'motion'

    def test_parameter_table(self):
        chain = make_chain()
        chain.set_orientation(5.0)
        table = chain.parameter_table()
        assert table['motion']['tilt_x'] == 5.0
        assert table['undo']['tilt_x'] == -5.0
        assert 'tilt_x' not in table['test']

    def test_trace_records_entering_pose(self):
        chain = KinematicChain()
        chain.add_transform(RigidTransform('s', SURFACE, thickness=50.0))
        chain.add_transform(RigidTransform('cb', tilt_x=90.0, thickness=10.0))
        chain.add_transform(RigidTransform('m', MIRROR, thickness=math.inf))
        chain.add_transform(RigidTransform('end', SURFACE))
        traced = chain.trace()
        assert [t.name for t in traced] == ['s', 'cb', 'm', 'end']
        np.testing.assert_allclose(traced[1].coordinate_system.origin, [0, 0, 50.0])
        # 绕 X 轴 90° 后 Z 轴指向 -Y，前进 10 mm
        np.testing.assert_allclose(traced[2].coordinate_system.origin, [0, -10.0, 50.0], atol=1e-12)
        # 无穷大厚度按 0 处理
        np.testing.assert_allclose(traced[3].coordinate_system.origin, [0, -10.0, 50.0], atol=1e-12)

    def test_repr(self):
        assert "mini" in repr(make_chain())
