"""
重力下沉面形模块异常类定义

异常类层次：
- GravitySagError（基类）
  - InvalidParameterError（口径、分辨率、姿态角或标定常数无效）
  - GridFormatError（GridSag 网格文件格式错误）

使用示例：
    >>> from gravity_sag.exceptions import InvalidParameterError
    >>> raise InvalidParameterError(
    ...     "网格分辨率必须为不小于 3 的奇数，实际为 256。"
    ... )
"""

from typing import Optional


class GravitySagError(Exception):
    """重力下沉面形模块基础异常

    属性:
        message: 错误信息
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidParameterError(GravitySagError, ValueError):
    """输入参数无效

    常见触发条件：
    - 镜面口径为零、负值或非有限值
    - 网格分辨率为偶数或小于 3
    - 姿态角为 NaN 或无穷大
    - 标定常数 C_defocus / C_coma 非有限
    - 网格步长为零或负值

    继承 ValueError，调用方可以按普通参数错误捕获。
    """
    pass


class GridFormatError(GravitySagError):
    """GridSag 网格文件格式错误

    读取网格文件时，文件头声明的尺寸与实际数据记录数不一致、
    文件头被截断或尺寸为非正值时抛出。

    属性:
        message: 错误描述
        file_path: 相关文件路径（可选）
    """

    def __init__(self, message: str, file_path: Optional[str] = None) -> None:
        self.file_path = file_path
        full_message = f"{file_path}: {message}" if file_path else message
        super().__init__(full_message)
        self.message = message
