"""
扫描结果汇总

SweepResult 为单次迭代记录（姿态角、注入误差、Zernike 系数、状态），
ResultsAggregator 按迭代序号只追加地保存记录，并导出 CSV / JSON。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
import csv
import json
import math

import numpy as np

from .exceptions import SagSweepError


STATUS_OK = 'ok'
STATUS_FAILED = 'failed'


@dataclass(frozen=True)
class SweepResult:
    """单次迭代结果

    属性:
        index: 迭代序号（从 0 开始，与输入角度顺序一致）
        angle_deg: 姿态角 (度)
        alignment_error_deg: 注入的滑轨倾角误差 (度)
        coefficients: {Noll 索引: 系数（波长）}，失败时为空
        grid_file: 本次迭代写出的网格文件路径
        status: 'ok' 或 'failed'
        error_message: 失败原因
    """
    index: int
    angle_deg: float
    alignment_error_deg: float
    coefficients: Mapping[int, float] = field(default_factory=dict)
    grid_file: Optional[str] = None
    status: str = STATUS_OK
    error_message: Optional[str] = None

    def __post_init__(self):
        if self.status not in (STATUS_OK, STATUS_FAILED):
            raise ValueError(f"status 必须为 'ok' 或 'failed'，实际为 {self.status!r}")
        object.__setattr__(
            self, 'coefficients',
            MappingProxyType({int(k): float(v) for k, v in dict(self.coefficients).items()}),
        )

    @property
    def succeeded(self) -> bool:
        return self.status == STATUS_OK

    def coefficient(self, j: int) -> float:
        """读取系数；失败迭代调用时抛出 SagSweepError"""
        if not self.succeeded:
            raise SagSweepError(
                f"迭代 {self.index}（θ = {self.angle_deg}°）失败，没有系数：{self.error_message}"
            )
        if j not in self.coefficients:
            raise SagSweepError(f"迭代 {self.index} 未记录系数 Z{j}。")
        return self.coefficients[j]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'index': self.index,
            'angle_deg': self.angle_deg,
            'alignment_error_deg': self.alignment_error_deg,
            'coefficients': {str(k): v for k, v in self.coefficients.items()},
            'grid_file': self.grid_file,
            'status': self.status,
            'error_message': self.error_message,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SweepResult":
        return cls(
            index=int(data['index']),
            angle_deg=float(data['angle_deg']),
            alignment_error_deg=float(data['alignment_error_deg']),
            coefficients={int(k): float(v) for k, v in data.get('coefficients', {}).items()},
            grid_file=data.get('grid_file'),
            status=data.get('status', STATUS_OK),
            error_message=data.get('error_message'),
        )


class ResultsAggregator:
    """只追加的有序结果集

    示例:
        >>> aggregator = ResultsAggregator()
        >>> aggregator.append(SweepResult(0, 0.0, 0.001, {4: 0.01}))
        >>> aggregator.coefficient_series(4)
        array([0.01])
    """

    def __init__(self) -> None:
        self._results: List[SweepResult] = []

    def __len__(self) -> int:
        return len(self._results)

    def __iter__(self):
        return iter(self._results)

    def __getitem__(self, index: int) -> SweepResult:
        return self._results[index]

    def append(self, result: SweepResult) -> None:
        """追加结果，迭代序号必须等于当前长度"""
        if result.index != len(self._results):
            raise SagSweepError(
                f"结果序号 {result.index} 与期望序号 {len(self._results)} 不一致，"
                f"结果只能按迭代顺序追加。"
            )
        self._results.append(result)

    @property
    def results(self) -> Tuple[SweepResult, ...]:
        return tuple(self._results)

    @property
    def by_index(self) -> Mapping[int, SweepResult]:
        """按迭代序号索引的只读映射，保持插入顺序"""
        return MappingProxyType({r.index: r for r in self._results})

    def successful(self) -> List[SweepResult]:
        return [r for r in self._results if r.succeeded]

    def failed(self) -> List[SweepResult]:
        return [r for r in self._results if not r.succeeded]

    def angles(self) -> np.ndarray:
        return np.array([r.angle_deg for r in self._results], dtype=np.float64)

    def alignment_errors(self) -> np.ndarray:
        return np.array([r.alignment_error_deg for r in self._results], dtype=np.float64)

    def coefficient_series(self, j: int) -> np.ndarray:
        """指定系数随迭代的序列，失败或缺失处为 NaN"""
        return np.array(
            [r.coefficients.get(j, math.nan) if r.succeeded else math.nan
             for r in self._results],
            dtype=np.float64,
        )

    def coefficient_indices(self) -> List[int]:
        indices = set()
        for r in self._results:
            indices.update(r.coefficients.keys())
        return sorted(indices)

    # =========================================================================
    # 导出
    # =========================================================================

    def to_rows(self) -> List[Dict[str, Any]]:
        """表格行，每个系数占一列 Z<j>"""
        indices = self.coefficient_indices()
        rows = []
        for r in self._results:
            row: Dict[str, Any] = {
                'index': r.index,
                'angle_deg': r.angle_deg,
                'alignment_error_deg': r.alignment_error_deg,
                'status': r.status,
            }
            for j in indices:
                row[f'Z{j}'] = r.coefficients.get(j, '')
            row['grid_file'] = r.grid_file or ''
            row['error_message'] = r.error_message or ''
            rows.append(row)
        return rows

    def save_csv(self, path: Union[str, Path]) -> None:
        rows = self.to_rows()
        header = ['index', 'angle_deg', 'alignment_error_deg', 'status']
        header += [f'Z{j}' for j in self.coefficient_indices()]
        header += ['grid_file', 'error_message']
        out_path = Path(path)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        with open(out_path, 'w', encoding='utf-8', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=header)
            writer.writeheader()
            writer.writerows(rows)

    def save_json(self, path: Union[str, Path]) -> None:
        out_path = Path(path)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        data = {'results': [r.to_dict() for r in self._results]}
        with open(out_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

    @classmethod
    def load_json(cls, path: Union[str, Path]) -> "ResultsAggregator":
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        aggregator = cls()
        for item in data.get('results', []):
            aggregator.append(SweepResult.from_dict(item))
        return aggregator

    def summary(self) -> str:
        return (
            f"共 {len(self._results)} 次迭代，成功 {len(self.successful())}，"
            f"失败 {len(self.failed())}"
        )
