"""
输入Provider接口

输入能力：Provider 从外部数据源采集数据并产出 Envelope 流。

示例实现：
- CounterInputProvider: 按固定间隔产出递增计数
"""

import asyncio
from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional

from dstream_sdk.modules.types.base.envelope import Envelope


class InputProvider(ABC):
    """
    输入Provider能力接口（与 ProviderBase 组合使用）

    使用方式:
        class MyProvider(ProviderBase[MyConfig], InputProvider):
            async def generate(self, stop_event):
                while not stop_event.is_set():
                    yield Envelope(payload=..., meta={...})

    宿主通过 stream() 拉取数据，每次只有一个在途 Envelope，顺序与产出顺序一致。
    """

    @abstractmethod
    def generate(self, stop_event: asyncio.Event) -> AsyncIterator[Envelope]:
        """
        生成 Envelope 数据流（子类必须实现为异步生成器）

        Args:
            stop_event: 停止信号，应在每次迭代和所有阻塞等待（如 sleep_or_stop）中检查

        Yields:
            Envelope: 数据信封
        """
        ...

    async def stream(self, stop_event: Optional[asyncio.Event] = None) -> AsyncIterator[Envelope]:
        """
        返回 Envelope 数据流

        在每次产出前检查停止信号；数据流结束（正常结束、停止或异常）后调用 cleanup()。
        """
        stop_event = stop_event or asyncio.Event()
        generator = self.generate(stop_event)
        try:
            async for envelope in generator:
                if stop_event.is_set():
                    break
                yield envelope
        finally:
            await generator.aclose()
            await self.cleanup()

    async def cleanup(self) -> None:  # noqa: B027
        """
        清理资源（子类可重写）

        数据流结束后调用，如关闭连接、释放文件句柄等。
        """
        pass
