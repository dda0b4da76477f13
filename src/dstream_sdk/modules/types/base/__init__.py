"""
Provider抽象基类

定义了 Provider 运行时基类与三种能力接口：
- ProviderBase: 保存配置与上下文的运行时基类
- InputProvider: 输入能力（产出 Envelope 流）
- OutputProvider: 输出能力（写出 Envelope 批次）
- InfrastructureProvider: 基础设施生命周期能力（init/destroy/status/plan）

以及核心数据类型：
- Envelope: payload + 元数据
- InfrastructureResult: 生命周期命令结果
"""

from .envelope import Envelope, decode_wire_line, encode_wire_line
from .infrastructure import (
    LIFECYCLE_COMMANDS,
    InfrastructureProvider,
    InfrastructureResult,
    InfrastructureStatus,
    run_lifecycle_command,
)
from .input_provider import InputProvider
from .output_provider import OutputProvider
from .provider_base import ProviderBase, sleep_or_stop

__all__ = [
    "Envelope",
    "InfrastructureProvider",
    "InfrastructureResult",
    "InfrastructureStatus",
    "InputProvider",
    "LIFECYCLE_COMMANDS",
    "OutputProvider",
    "ProviderBase",
    "decode_wire_line",
    "encode_wire_line",
    "run_lifecycle_command",
    "sleep_or_stop",
]
