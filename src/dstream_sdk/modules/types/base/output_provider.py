"""
输出Provider接口

输出能力：Provider 接收 Envelope 批次并写入目标（控制台、队列、数据库等）。
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Sequence

from dstream_sdk.modules.types.base.envelope import Envelope


class OutputProvider(ABC):
    """
    输出Provider能力接口（与 ProviderBase 组合使用）

    stdio 宿主每读到一行就以单元素批次调用一次 write()；
    gRPC 宿主在配置了下游输出 Provider 时同样逐条转发。
    """

    @abstractmethod
    async def write(self, batch: Sequence[Envelope], stop_event: asyncio.Event) -> None:
        """
        写出一批 Envelope（子类必须实现）

        Args:
            batch: Envelope 批次
            stop_event: 停止信号，批次内逐条写出时应检查
        """
        ...
