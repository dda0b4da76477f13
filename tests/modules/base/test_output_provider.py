"""
OutputProvider 单元测试

测试 OutputProvider 抽象基类：
- 抽象方法验证（write）
- write() 接收 Envelope 批次
"""

import asyncio
from typing import Sequence

import pytest

from dstream_sdk.modules.config.schemas.base import BaseProviderConfig
from dstream_sdk.modules.types.base.envelope import Envelope
from dstream_sdk.modules.types.base.output_provider import OutputProvider
from dstream_sdk.modules.types.base.provider_base import ProviderBase


class MockConfig(BaseProviderConfig):
    pass


class RecordingOutputProvider(ProviderBase[MockConfig], OutputProvider):
    """记录所有写入批次的输出 Provider"""

    def __init__(self):
        super().__init__()
        self.batches: list[list[Envelope]] = []

    async def write(self, batch: Sequence[Envelope], stop_event: asyncio.Event) -> None:
        self.batches.append(list(batch))


class IncompleteOutputProvider(ProviderBase[MockConfig], OutputProvider):
    pass


def test_output_provider_abstract_method_not_implemented():
    with pytest.raises(TypeError):
        _ = IncompleteOutputProvider()


@pytest.mark.asyncio
async def test_write_receives_batches(make_context):
    provider = RecordingOutputProvider()
    provider.initialize(MockConfig(), make_context())

    first = Envelope(payload=1)
    second = Envelope(payload=2)
    await provider.write([first], asyncio.Event())
    await provider.write([second], asyncio.Event())

    assert provider.batches == [[first], [second]]
