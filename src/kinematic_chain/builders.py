"""
圆弧滑轨测试光路构建

两种布局：
- 单通（Int 1）：枢轴 O → 圆弧运动 θ → 滑轨误差 → Ref 1 测试镜 → 回程 → 探测面
- 双通（Int 2）：经 Ref 2 中继镜两次反射，Ref 1 位于圆弧运动与撤销运动之间

撤销变换通过比例 -1 的派生链接跟随正向运动的 tilt_x（Zemax Par3 pickup）。
"""

import math

from .chain import KinematicChain
from .transforms import (
    COORDINATE_BREAK,
    GRID_SAG,
    MIRROR,
    SURFACE,
    ParameterPickup,
    RigidTransform,
)
from .exceptions import ChainConfigurationError


DEFAULT_APERTURE_DIAMETER_MM = 300.0
DEFAULT_ARC_RADIUS_MM = 1500.0
DEFAULT_LINK_HEIGHT_MM = 800.0
DEFAULT_STOP_THICKNESS_MM = 100.0


def _check_positive(label: str, value: float) -> float:
    if isinstance(value, bool) or not math.isfinite(value) or value <= 0:
        raise ChainConfigurationError(f"{label}必须为正有限值，实际为 {value}。")
    return float(value)


def build_single_pass_chain(
    aperture_diameter_mm: float = DEFAULT_APERTURE_DIAMETER_MM,
    mirror_radius_mm: float = math.inf,
) -> KinematicChain:
    """构建单通测试光路

    参数:
        aperture_diameter_mm: 测试镜口径 (mm)
        mirror_radius_mm: 测试镜曲率半径 (mm)，默认平面镜

    返回:
        KinematicChain，角色已指定，Return Path 跟随 -1 × Arc Motion
    """
    diameter = _check_positive("测试镜口径", aperture_diameter_mm)

    chain = KinematicChain(name='single_pass')
    (chain
        .add_transform(RigidTransform('origin', SURFACE, comment='Origin O (Int 1)'))
        .add_transform(RigidTransform('arc_motion', COORDINATE_BREAK,
                                      comment='Arc Motion Theta'))
        .add_transform(RigidTransform('rail_tolerance', COORDINATE_BREAK,
                                      comment='Rail Tolerance', perturbation=True))
        .add_transform(RigidTransform('test_mirror', GRID_SAG,
                                      radius=mirror_radius_mm,
                                      semi_diameter=diameter / 2.0,
                                      comment='Ref 1 Test Mirror'))
        .add_transform(RigidTransform('return_path', COORDINATE_BREAK, order=1,
                                      comment='Return Path'))
        .add_transform(RigidTransform('detector', SURFACE, comment='Int 1 Detector')))

    chain.add_pickup(ParameterPickup('return_path', 'tilt_x', 'arc_motion', scale=-1.0))
    chain.assign_roles(
        orientation='arc_motion',
        rail_error='rail_tolerance',
        test_surface='test_mirror',
    )
    return chain


def build_double_pass_chain(
    aperture_diameter_mm: float = DEFAULT_APERTURE_DIAMETER_MM,
    arc_radius_mm: float = DEFAULT_ARC_RADIUS_MM,
    link_height_mm: float = DEFAULT_LINK_HEIGHT_MM,
    stop_thickness_mm: float = DEFAULT_STOP_THICKNESS_MM,
) -> KinematicChain:
    """构建经 Ref 2 中继的双通测试光路

    参数:
        aperture_diameter_mm: Ref 1 测试镜口径 (mm)
        arc_radius_mm: 圆弧滑轨半径 R_arc (mm)，测试面曲率半径取 -R_arc
        link_height_mm: Ref 1 与 Ref 2 的垂直距离 H_link (mm)
        stop_thickness_mm: Int 2 光阑到第一个坐标断点的距离 (mm)

    返回:
        KinematicChain，Undo Motion 跟随 -1 × Ref 1 Motion
    """
    diameter = _check_positive("测试镜口径", aperture_diameter_mm)
    r_arc = _check_positive("圆弧半径", arc_radius_mm)
    h_link = _check_positive("联动高度", link_height_mm)

    chain = KinematicChain(name='double_pass')
    (chain
        .add_transform(RigidTransform('int2_aperture', SURFACE, is_stop=True,
                                      thickness=stop_thickness_mm,
                                      comment='Int 2 Aperture'))
        .add_transform(RigidTransform('locate_int2', COORDINATE_BREAK,
                                      comment='Locate Int 2'))
        .add_transform(RigidTransform('aim_ref2', COORDINATE_BREAK,
                                      comment='Aim to Ref 2'))
        .add_transform(RigidTransform('ref2_pass1', MIRROR, thickness=-h_link,
                                      comment='Ref 2 (Pass 1)'))
        .add_transform(RigidTransform('linkage_base', COORDINATE_BREAK,
                                      comment='Linkage Base'))
        .add_transform(RigidTransform('ref1_motion', COORDINATE_BREAK,
                                      comment='Ref 1 Motion (Theta)'))
        .add_transform(RigidTransform('rail_tolerance', COORDINATE_BREAK,
                                      comment='Rail Tolerance', perturbation=True))
        .add_transform(RigidTransform('ref1_test', GRID_SAG, radius=-r_arc,
                                      semi_diameter=diameter / 2.0,
                                      comment='Ref 1 (Test Surface)'))
        .add_transform(RigidTransform('undo_motion', COORDINATE_BREAK, order=1,
                                      comment='Undo Motion'))
        .add_transform(RigidTransform('return_linkage', COORDINATE_BREAK,
                                      thickness=h_link, comment='Return Linkage'))
        .add_transform(RigidTransform('ref2_pass2', MIRROR, comment='Ref 2 (Pass 2)'))
        .add_transform(RigidTransform('return_alignment', COORDINATE_BREAK,
                                      comment='Return Alignment'))
        .add_transform(RigidTransform('int2_receiver', COORDINATE_BREAK,
                                      comment='Int 2 Receiver'))
        .add_transform(RigidTransform('detector', SURFACE, comment='Detector Plane')))

    chain.add_pickup(ParameterPickup('undo_motion', 'Par3', 'ref1_motion', scale=-1.0))
    chain.assign_roles(
        orientation='ref1_motion',
        rail_error='rail_tolerance',
        test_surface='ref1_test',
    )
    return chain
