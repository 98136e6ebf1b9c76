"""
CLI presentation layer
展示层 - 地址解析结果与租约表格输出
"""

from .display import ResolutionDisplayManager

__all__ = ['ResolutionDisplayManager']
