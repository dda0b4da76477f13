"""
DStream Provider SDK

让一个 Provider 进程通过两种可互换的传输（本地 gRPC 握手协议、stdin/stdout 行分隔 JSON）
被外部编排器驱动：绑定配置、单向传输数据流，以及可选地响应基础设施生命周期命令。

编写 Provider：
    class MyProvider(ProviderBase[MyConfig], InputProvider):
        async def generate(self, stop_event):
            ...

    sys.exit(run_provider(MyProvider, MyConfig, transport="stdio"))
"""

from dstream_sdk.hosts.bootstrap import run_provider
from dstream_sdk.modules.config import BaseProviderConfig, bind_config
from dstream_sdk.modules.di import ProviderContext
from dstream_sdk.modules.registry import ProviderRegistry
from dstream_sdk.modules.types.base import (
    Envelope,
    InfrastructureProvider,
    InfrastructureResult,
    InfrastructureStatus,
    InputProvider,
    OutputProvider,
    ProviderBase,
    sleep_or_stop,
)

__version__ = "0.3.0"

__all__ = [
    "BaseProviderConfig",
    "Envelope",
    "InfrastructureProvider",
    "InfrastructureResult",
    "InfrastructureStatus",
    "InputProvider",
    "OutputProvider",
    "ProviderBase",
    "ProviderContext",
    "ProviderRegistry",
    "bind_config",
    "run_provider",
    "sleep_or_stop",
]
