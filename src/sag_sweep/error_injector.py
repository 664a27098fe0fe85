"""
滑轨对准误差注入

每次扫描迭代从零均值高斯分布抽取一个微小倾角（度），
施加到运动学链的滑轨误差环节，模拟制造与装调公差。
随机序列由显式种子决定，便于复现。
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from gravity_sag.exceptions import InvalidParameterError


DEFAULT_SIGMA_DEG = 0.005


@dataclass(frozen=True)
class AlignmentError:
    """一次抽样得到的对准误差

    属性:
        tilt_deg: 倾角误差 (度)
        transform: 施加误差的环节名称（可选）
        column: 施加误差的参数列
    """
    tilt_deg: float
    transform: Optional[str] = None
    column: str = 'tilt_x'


class ErrorInjector:
    """高斯对准误差发生器

    参数:
        sigma_deg: 标准差 (度)，默认 0.005
        seed: 随机种子，None 表示不可复现的随机序列
        transform: 误差施加的环节名称（写入 AlignmentError）

    示例:
        >>> injector = ErrorInjector(sigma_deg=0.005, seed=42)
        >>> first = injector.sample().tilt_deg
        >>> injector.reseed(42)
        >>> injector.sample().tilt_deg == first
        True
    """

    def __init__(
        self,
        sigma_deg: float = DEFAULT_SIGMA_DEG,
        seed: Optional[int] = None,
        transform: Optional[str] = None,
    ) -> None:
        if isinstance(sigma_deg, bool) or not np.isfinite(sigma_deg) or sigma_deg < 0:
            raise InvalidParameterError(
                f"对准误差标准差必须为非负有限值，实际为 {sigma_deg}°。"
            )
        self.sigma_deg = float(sigma_deg)
        self.transform = transform
        self.seed = seed
        self._rng = np.random.default_rng(seed)

    def reseed(self, seed: Optional[int]) -> None:
        """重置随机序列"""
        self.seed = seed
        self._rng = np.random.default_rng(seed)

    def sample(self) -> AlignmentError:
        """抽取一次倾角误差；sigma 为 0 时恒为 0.0"""
        if self.sigma_deg == 0.0:
            return AlignmentError(0.0, self.transform)
        tilt = float(self._rng.normal(0.0, self.sigma_deg))
        return AlignmentError(tilt, self.transform)
