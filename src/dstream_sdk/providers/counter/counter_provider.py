"""
Counter Input Provider

按固定间隔产出递增计数，用于测试管道和演示最小的输入 Provider 实现。
"""

import asyncio
import itertools
from datetime import datetime, timezone
from typing import AsyncIterator

from pydantic import Field

from dstream_sdk.modules.config.schemas.base import BaseProviderConfig
from dstream_sdk.modules.types.base.envelope import Envelope
from dstream_sdk.modules.types.base.input_provider import InputProvider
from dstream_sdk.modules.types.base.provider_base import ProviderBase, sleep_or_stop

SOURCE = "counter-input-provider"


class CounterInputProvider(ProviderBase["CounterInputProvider.ConfigSchema"], InputProvider):
    """
    计数输入Provider

    每隔 interval 毫秒产出一条 {value, timestamp}，meta 中带 seq（从 1 开始）。
    max_count 为 0 时无限产出，否则产出 max_count 条后结束。
    """

    class ConfigSchema(BaseProviderConfig):
        """计数输入Provider配置"""

        interval: int = Field(default=1000, ge=0, description="计数间隔（毫秒）")
        max_count: int = Field(default=0, ge=0, description="最多产出条数（0 表示无限）")

    def on_initialized(self) -> None:
        max_info = f", max_count={self.config.max_count}" if self.config.max_count > 0 else ", infinite"
        self.logger.info(f"Starting counter with interval={self.config.interval}ms{max_info}")

    async def generate(self, stop_event: asyncio.Event) -> AsyncIterator[Envelope]:
        max_count = self.config.max_count
        for count in itertools.count(1):
            if stop_event.is_set():
                break
            if max_count and count > max_count:
                self.logger.info(f"Reached max count {max_count}, stopping")
                break

            self.logger.debug(f"Emitting counter value: {count}")
            yield Envelope(
                payload={"value": count, "timestamp": datetime.now(timezone.utc).isoformat()},
                meta={"seq": count, "source": SOURCE, "interval_ms": self.config.interval},
            )

            # 最后一条之后不再等待
            if max_count and count >= max_count:
                continue
            if await sleep_or_stop(self.config.interval / 1000, stop_event):
                break

        self.logger.info("Counter stopped")


CounterConfig = CounterInputProvider.ConfigSchema
