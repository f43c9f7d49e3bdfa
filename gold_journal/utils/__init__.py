"""
工具模块初始化文件
"""

from . import trading_math

__all__ = ["trading_math"]
