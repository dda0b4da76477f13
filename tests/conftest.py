"""
Pytest 全局共享 fixtures

这个文件定义了跨多个测试模块共享的 fixtures。
"""

import asyncio
import io
from typing import Generator, Iterable, Optional
from unittest.mock import MagicMock

import pytest
from loguru import logger

from dstream_sdk.modules.di.context import ProviderContext
from dstream_sdk.modules.registry import ProviderRegistry


def _make_reader(lines: Iterable[str], eof: bool = True, limit: Optional[int] = None) -> asyncio.StreamReader:
    """
    构造预先喂好数据的 StreamReader（必须在事件循环中调用）

    Args:
        lines: 每个元素是一行（不含换行符）
        eof: 是否在数据之后标记 EOF
        limit: 单行上限，默认沿用 StreamReader 的 64 KiB
    """
    reader = asyncio.StreamReader() if limit is None else asyncio.StreamReader(limit=limit)
    for line in lines:
        reader.feed_data((line + "\n").encode("utf-8"))
    if eof:
        reader.feed_eof()
    return reader


def _create_mock_context(name: str = "test", emit=None) -> ProviderContext:
    """创建 ProviderContext 用于测试（logger 为 MagicMock）"""
    if emit is None:
        return ProviderContext(provider_name=name, logger=MagicMock())
    return ProviderContext(provider_name=name, logger=MagicMock(), emit=emit)


@pytest.fixture
def log_messages() -> Generator[list, None, None]:
    """
    捕获 loguru 日志消息

    Yields:
        list[str]: 每条日志的 "LEVEL|消息" 文本
    """
    messages: list[str] = []
    handler_id = logger.add(lambda m: messages.append(f"{m.record['level'].name}|{m.record['message']}"), level="DEBUG")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def stdout_buffer() -> io.StringIO:
    """代替 stdout 的文本缓冲区"""
    return io.StringIO()


@pytest.fixture
def clean_registry() -> Generator[type[ProviderRegistry], None, None]:
    """
    测试期间清空 ProviderRegistry，结束后恢复原有注册

    Yields:
        ProviderRegistry 类本身
    """
    saved_inputs = dict(ProviderRegistry._input_providers)
    saved_outputs = dict(ProviderRegistry._output_providers)
    ProviderRegistry.clear_all()
    yield ProviderRegistry
    ProviderRegistry.clear_all()
    ProviderRegistry._input_providers.update(saved_inputs)
    ProviderRegistry._output_providers.update(saved_outputs)


@pytest.fixture
def make_reader():
    """返回构造 StreamReader 的工厂函数（在异步测试中调用）"""
    return _make_reader


@pytest.fixture
def make_context():
    """返回构造测试用 ProviderContext 的工厂函数"""
    return _create_mock_context
