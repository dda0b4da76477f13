"""
ProviderBase 单元测试

测试 Provider 运行时基类：
- initialize 保存配置与上下文并调用 on_initialized
- initialize 只能调用一次
- 初始化前访问 config / context 抛出异常
- emit 构造 Envelope 并转交给上下文
- sleep_or_stop 可被停止信号打断
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from dstream_sdk.modules.config.schemas.base import BaseProviderConfig
from dstream_sdk.modules.di.context import ProviderContext
from dstream_sdk.modules.types.base.envelope import Envelope
from dstream_sdk.modules.types.base.provider_base import ProviderBase, sleep_or_stop

# =============================================================================
# 测试用实现
# =============================================================================


class DemoConfig(BaseProviderConfig):
    value: int = 1


class DemoProvider(ProviderBase[DemoConfig]):
    def __init__(self):
        super().__init__()
        self.hook_calls = 0

    def on_initialized(self) -> None:
        self.hook_calls += 1


# =============================================================================
# initialize
# =============================================================================


def test_initialize_stores_config_and_context(make_context):
    provider = DemoProvider()
    config = DemoConfig(value=5)
    context = make_context("demo")

    provider.initialize(config, context)

    assert provider.is_initialized
    assert provider.config is config
    assert provider.context is context
    assert provider.logger is context.logger
    assert provider.hook_calls == 1


def test_initialize_twice_raises(make_context):
    provider = DemoProvider()
    provider.initialize(DemoConfig(), make_context())

    with pytest.raises(RuntimeError, match="只能调用一次"):
        provider.initialize(DemoConfig(value=2), make_context())
    assert provider.config.value == 1
    assert provider.hook_calls == 1


def test_access_before_initialize_raises():
    provider = DemoProvider()

    assert provider.is_initialized is False
    with pytest.raises(RuntimeError, match="尚未初始化"):
        _ = provider.config
    with pytest.raises(RuntimeError, match="尚未初始化"):
        _ = provider.context


# =============================================================================
# emit
# =============================================================================


@pytest.mark.asyncio
async def test_emit_forwards_envelope():
    received = []

    async def emit(envelope):
        received.append(envelope)

    provider = DemoProvider()
    provider.initialize(DemoConfig(), ProviderContext(provider_name="demo", logger=MagicMock(), emit=emit))

    await provider.emit({"value": 1}, {"seq": 1})
    await provider.emit("plain")

    assert received == [Envelope(payload={"value": 1}, meta={"seq": 1}), Envelope(payload="plain")]


@pytest.mark.asyncio
async def test_emit_default_callback_discards(make_context):
    provider = DemoProvider()
    provider.initialize(DemoConfig(), make_context())

    # 默认回调直接丢弃，不应抛出
    await provider.emit({"value": 1})


# =============================================================================
# sleep_or_stop
# =============================================================================


@pytest.mark.asyncio
async def test_sleep_or_stop_times_out():
    stop_event = asyncio.Event()
    assert await sleep_or_stop(0.01, stop_event) is False


@pytest.mark.asyncio
async def test_sleep_or_stop_returns_immediately_when_already_stopped():
    stop_event = asyncio.Event()
    stop_event.set()
    assert await asyncio.wait_for(sleep_or_stop(60, stop_event), timeout=1) is True


@pytest.mark.asyncio
async def test_sleep_or_stop_interrupted():
    stop_event = asyncio.Event()
    asyncio.get_running_loop().call_later(0.02, stop_event.set)

    assert await asyncio.wait_for(sleep_or_stop(60, stop_event), timeout=2) is True


@pytest.mark.asyncio
async def test_sleep_or_stop_without_event():
    assert await sleep_or_stop(0, None) is False
