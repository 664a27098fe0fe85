"""
Zernike Standard（Noll 归一化）多项式与最小二乘拟合

索引约定与 Zemax "Zernike Standard Coefficients" 一致（Noll 排序）：
    Z1 Piston, Z2/Z3 Tilt, Z4 Defocus, Z5/Z6 Astigmatism,
    Z7/Z8 Coma, Z11 Primary Spherical

偶数 j 对应 cos(mθ)，奇数 j 对应 sin(mθ)。
"""

from math import factorial
from typing import Dict, Iterable, Tuple

import numpy as np
from numpy.typing import NDArray


def noll_to_nm(j: int) -> Tuple[int, int]:
    """Noll 索引转换为 (n, m)

    m 的符号：正值表示 cos 项，负值表示 sin 项。

    示例:
        >>> noll_to_nm(4)
        (2, 0)
        >>> noll_to_nm(7)
        (3, -1)
    """
    if isinstance(j, bool) or not isinstance(j, (int, np.integer)) or j < 1:
        raise ValueError(f"Noll 索引必须为正整数，实际为 {j!r}")
    n = 0
    j1 = j - 1
    while j1 > n:
        n += 1
        j1 -= n
    m = (-1) ** j * ((n % 2) + 2 * int((j1 + ((n + 1) % 2)) / 2))
    return n, m


def zernike_radial(n: int, m: int, rho: NDArray) -> NDArray:
    """径向多项式 R_n^|m|(ρ)"""
    m = abs(m)
    result = np.zeros_like(rho, dtype=np.float64)
    for k in range((n - m) // 2 + 1):
        c = ((-1) ** k * factorial(n - k)
             / (factorial(k) * factorial((n + m) // 2 - k) * factorial((n - m) // 2 - k)))
        result = result + c * rho ** (n - 2 * k)
    return result


def zernike_standard(j: int, rho: NDArray, theta: NDArray) -> NDArray:
    """Noll 归一化 Zernike 多项式（单位圆上 RMS 为 1）"""
    n, m = noll_to_nm(j)
    radial = zernike_radial(n, m, rho)
    if m == 0:
        return np.sqrt(n + 1) * radial
    norm = np.sqrt(2 * (n + 1))
    if m > 0:
        return norm * radial * np.cos(m * theta)
    return norm * radial * np.sin(-m * theta)


def fit_zernike(
    values: NDArray,
    rho: NDArray,
    theta: NDArray,
    indices: Iterable[int],
) -> Dict[int, float]:
    """最小二乘拟合 Zernike 系数

    参数:
        values: 采样值（已限定在单位圆内），一维
        rho, theta: 对应的归一化极坐标，一维
        indices: 拟合的 Noll 索引

    返回:
        {Noll 索引: 系数}
    """
    indices = list(indices)
    basis = np.column_stack([zernike_standard(j, rho, theta) for j in indices])
    coeffs, *_ = np.linalg.lstsq(basis, values, rcond=None)
    return {j: float(c) for j, c in zip(indices, coeffs)}
