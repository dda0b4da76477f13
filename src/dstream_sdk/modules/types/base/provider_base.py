"""
Provider 运行时基类

保存绑定好的配置和运行时上下文，并提供初始化钩子。
基类本身不做任何 I/O。
"""

import asyncio
from typing import Any, Generic, Mapping, Optional, TypeVar

from pydantic import BaseModel

from dstream_sdk.modules.di.context import ProviderContext
from dstream_sdk.modules.types.base.envelope import Envelope

TConfig = TypeVar("TConfig", bound=BaseModel)


class ProviderBase(Generic[TConfig]):
    """
    Provider 基类

    生命周期:
    1. 实例化(__init__) - 无参数，由宿主构造
    2. 初始化(initialize(config, context)) - 每个进程恰好一次
    3. on_initialized() - 子类可重写的钩子，如打印启动参数
    4. 之后由宿主按能力驱动（InputProvider / OutputProvider / InfrastructureProvider）
    """

    def __init__(self):
        self._config: Optional[TConfig] = None
        self._context: Optional[ProviderContext] = None

    @property
    def config(self) -> TConfig:
        if self._config is None:
            raise RuntimeError(f"{type(self).__name__} 尚未初始化，请先调用 initialize()")
        return self._config

    @property
    def context(self) -> ProviderContext:
        if self._context is None:
            raise RuntimeError(f"{type(self).__name__} 尚未初始化，请先调用 initialize()")
        return self._context

    @property
    def is_initialized(self) -> bool:
        return self._config is not None

    @property
    def logger(self):
        return self.context.logger

    def initialize(self, config: TConfig, context: ProviderContext) -> None:
        """
        保存配置和上下文，然后调用 on_initialized()

        Raises:
            RuntimeError: 重复初始化
        """
        if self._config is not None:
            raise RuntimeError(f"{type(self).__name__} 已初始化，initialize() 只能调用一次")
        self._config = config
        self._context = context
        self.on_initialized()

    def on_initialized(self) -> None:  # noqa: B027
        """初始化完成后的钩子（子类可重写）"""
        pass

    async def emit(self, payload: Any, meta: Optional[Mapping[str, Any]] = None) -> None:
        """构造 Envelope 并交给上下文的 emit 回调"""
        await self.context.emit(Envelope(payload=payload, meta=dict(meta or {})))


async def sleep_or_stop(delay: float, stop_event: Optional[asyncio.Event]) -> bool:
    """
    可被取消的延时

    Args:
        delay: 秒数
        stop_event: 停止信号；为 None 时等价于 asyncio.sleep

    Returns:
        True 表示在延时结束前收到了停止信号
    """
    if stop_event is None:
        await asyncio.sleep(delay)
        return False
    if stop_event.is_set():
        return True
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=delay)
    except TimeoutError:
        return False
    return True
