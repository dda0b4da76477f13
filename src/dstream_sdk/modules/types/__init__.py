"""核心类型定义

跨传输层共享的类型定义，避免循环依赖。
"""

from .base import (
    Envelope,
    InfrastructureProvider,
    InfrastructureResult,
    InfrastructureStatus,
    InputProvider,
    OutputProvider,
    ProviderBase,
)

__all__ = [
    "Envelope",
    "InfrastructureProvider",
    "InfrastructureResult",
    "InfrastructureStatus",
    "InputProvider",
    "OutputProvider",
    "ProviderBase",
]
