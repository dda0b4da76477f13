"""
DStream 基础模块层

包含 Provider 运行时、配置绑定、日志与注册表等可复用基础设施。
"""

from .registry import ProviderEntry, ProviderRegistry

__all__ = [
    "ProviderEntry",
    "ProviderRegistry",
]
