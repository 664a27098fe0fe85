"""
扫描状态

SweepStage 描述编排器状态机：
    IDLE → {PREPARE → DEFORM → PERTURB → ANALYZE → RECORD}* → DONE

OpticalSystemState 是每一步返回的不可变快照，记录该步完成后
运动学链与网格文件的状态，替代在迭代间隐式共享的可变系统对象。
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional


class SweepStage(Enum):
    """编排器状态"""
    IDLE = 'idle'
    PREPARE = 'prepare'
    DEFORM = 'deform'
    PERTURB = 'perturb'
    ANALYZE = 'analyze'
    RECORD = 'record'
    DONE = 'done'


@dataclass(frozen=True)
class OpticalSystemState:
    """一次迭代中某一步完成后的光学系统快照

    属性:
        index: 迭代序号
        stage: 刚完成的步骤
        angle_deg: 姿态角（同时用于面形模型与运动学链）
        alignment_error_deg: 已施加的滑轨误差
        grid_file: 已写出的网格文件路径
        parameters: 运动学链参数快照 {环节: {列: 值}}
        coefficients: 分析得到的系数
    """
    index: int
    stage: SweepStage
    angle_deg: float
    alignment_error_deg: float = 0.0
    grid_file: Optional[str] = None
    parameters: Mapping[str, Mapping[str, float]] = field(default_factory=dict)
    coefficients: Mapping[int, float] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, 'parameters', MappingProxyType(
            {name: MappingProxyType(dict(cols)) for name, cols in dict(self.parameters).items()}
        ))
        object.__setattr__(self, 'coefficients', MappingProxyType(dict(self.coefficients)))

    def advance(self, stage: SweepStage, **changes) -> "OpticalSystemState":
        """返回进入下一步后的新快照"""
        return replace(self, stage=stage, **changes)

    def parameter(self, name: str, column: str) -> float:
        return self.parameters[name][column]
