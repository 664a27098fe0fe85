"""
Zemax GridSag 二进制网格文件编解码

文件格式（小端序，固定顺序）：

    文件头（36 字节）:
        nx          int32   x 方向节点数（列数）
        ny          int32   y 方向节点数（行数）
        dx          float64 x 方向步长
        dy          float64 y 方向步长
        unit_flag   int32   单位标志，0 = mm
        x_decenter  int32   保留，恒为 0
        y_decenter  int32   保留，恒为 0

    数据体（nx * ny 条记录，行优先：外层循环为行，内层循环为列）:
        每条记录 4 个 float64：sag, dz/dx, dz/dy, d2z/dxdy

文件长度 = 36 + nx * ny * 32 字节。

使用示例：
    >>> from gravity_sag import GravitySagModel, GridFileCodec
    >>> field = GravitySagModel().compute(22.5, 300.0, 257)
    >>> path = GridFileCodec.write("GravitySag_22.dat", field)
    >>> restored = GridFileCodec.read(path)
    >>> restored.equals(field)
    True
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union
import math

import numpy as np

from .deformation import DeformationField, validate_angle
from .exceptions import GridFormatError, InvalidParameterError


HEADER_DTYPE = np.dtype([
    ('nx', '<i4'),
    ('ny', '<i4'),
    ('dx', '<f8'),
    ('dy', '<f8'),
    ('unit_flag', '<i4'),
    ('x_decenter', '<i4'),
    ('y_decenter', '<i4'),
])

RECORD_DTYPE = np.dtype([
    ('sag', '<f8'),
    ('dz_dx', '<f8'),
    ('dz_dy', '<f8'),
    ('d2z_dxdy', '<f8'),
])

HEADER_SIZE = HEADER_DTYPE.itemsize   # 36
RECORD_SIZE = RECORD_DTYPE.itemsize   # 32

DEFAULT_FILE_PATTERN = "GravitySag_{angle:d}.dat"

PathLike = Union[str, Path]


@dataclass(frozen=True)
class GridHeader:
    """GridSag 文件头"""
    nx: int
    ny: int
    dx: float
    dy: float
    unit_flag: int = 0
    x_decenter: int = 0
    y_decenter: int = 0

    @property
    def record_count(self) -> int:
        return self.nx * self.ny

    @property
    def expected_file_size(self) -> int:
        return HEADER_SIZE + self.record_count * RECORD_SIZE


def grid_file_name(angle_deg: float, pattern: str = DEFAULT_FILE_PATTERN) -> str:
    """按姿态角生成网格文件名

    文件名以向下取整的整数角度为键，例如 22.5° -> GravitySag_22.dat。

    参数:
        angle_deg: 姿态角（度）
        pattern: 文件名模板，可使用 {angle:d} 占位符

    返回:
        文件名（不含目录）
    """
    angle = validate_angle(angle_deg)
    return pattern.format(angle=int(math.floor(angle)))


class GridFileCodec:
    """GridSag 网格文件读写

    所有方法为静态方法，不需要实例化。
    """

    @staticmethod
    def write(
        path: PathLike,
        field: DeformationField,
        step_x: Optional[float] = None,
        step_y: Optional[float] = None,
    ) -> Path:
        """写出网格文件

        参数:
            path: 输出路径，父目录不存在时自动创建
            field: 面形场
            step_x: x 方向步长 (mm)，默认使用面形场自身步长
            step_y: y 方向步长 (mm)，默认使用面形场自身步长

        返回:
            写出的文件路径

        异常:
            InvalidParameterError: 步长非正或非有限
        """
        dx = field.step_x_mm if step_x is None else float(step_x)
        dy = field.step_y_mm if step_y is None else float(step_y)
        for name, value in (('step_x', dx), ('step_y', dy)):
            if not np.isfinite(value) or value <= 0:
                raise InvalidParameterError(
                    f"网格步长 '{name}' 必须为正有限值，实际为 {value}。"
                )

        header = np.zeros(1, dtype=HEADER_DTYPE)
        header['nx'] = field.nx
        header['ny'] = field.ny
        header['dx'] = dx
        header['dy'] = dy
        header['unit_flag'] = field.unit_flag

        body = np.empty(field.nx * field.ny, dtype=RECORD_DTYPE)
        body['sag'] = field.height.ravel()
        body['dz_dx'] = field.dz_dx.ravel()
        body['dz_dy'] = field.dz_dy.ravel()
        body['d2z_dxdy'] = field.d2z_dxdy.ravel()

        out_path = Path(path)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        with open(out_path, 'wb') as f:
            f.write(header.tobytes())
            f.write(body.tobytes())
        return out_path

    @staticmethod
    def read_header(path: PathLike) -> GridHeader:
        """只读取文件头

        异常:
            FileNotFoundError: 文件不存在
            GridFormatError: 文件头不完整或尺寸非正
        """
        in_path = Path(path)
        with open(in_path, 'rb') as f:
            raw = f.read(HEADER_SIZE)
        return GridFileCodec._parse_header(raw, in_path)

    @staticmethod
    def read(path: PathLike) -> DeformationField:
        """读取网格文件

        参数:
            path: 网格文件路径

        返回:
            DeformationField（angle_deg 为 None）

        异常:
            FileNotFoundError: 文件不存在
            GridFormatError: 文件头与数据记录数不一致
        """
        in_path = Path(path)
        raw = in_path.read_bytes()
        header = GridFileCodec._parse_header(raw[:HEADER_SIZE], in_path)

        body_bytes = len(raw) - HEADER_SIZE
        expected = header.record_count * RECORD_SIZE
        if body_bytes != expected:
            actual_records = body_bytes / RECORD_SIZE
            raise GridFormatError(
                f"文件头声明 {header.nx} × {header.ny} = {header.record_count} 条记录"
                f"（{expected} 字节），实际数据为 {body_bytes} 字节"
                f"（{actual_records:g} 条记录）。",
                file_path=str(in_path),
            )

        body = np.frombuffer(raw, dtype=RECORD_DTYPE, offset=HEADER_SIZE)
        shape = (header.ny, header.nx)
        return DeformationField(
            height=body['sag'].reshape(shape).copy(),
            dz_dx=body['dz_dx'].reshape(shape).copy(),
            dz_dy=body['dz_dy'].reshape(shape).copy(),
            d2z_dxdy=body['d2z_dxdy'].reshape(shape).copy(),
            step_x_mm=header.dx,
            step_y_mm=header.dy,
            unit_flag=header.unit_flag,
        )

    @staticmethod
    def _parse_header(raw: bytes, path: Path) -> GridHeader:
        if len(raw) < HEADER_SIZE:
            raise GridFormatError(
                f"文件头不完整：需要 {HEADER_SIZE} 字节，实际只有 {len(raw)} 字节。",
                file_path=str(path),
            )
        h = np.frombuffer(raw, dtype=HEADER_DTYPE, count=1)[0]
        header = GridHeader(
            nx=int(h['nx']),
            ny=int(h['ny']),
            dx=float(h['dx']),
            dy=float(h['dy']),
            unit_flag=int(h['unit_flag']),
            x_decenter=int(h['x_decenter']),
            y_decenter=int(h['y_decenter']),
        )
        if header.nx <= 0 or header.ny <= 0:
            raise GridFormatError(
                f"文件头网格尺寸无效：nx = {header.nx}，ny = {header.ny}。",
                file_path=str(path),
            )
        return header
