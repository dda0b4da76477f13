"""
Provider 一次性构造守卫

每个进程只构造并初始化一个 Provider 实例，之后的请求复用它。
"""

from typing import Callable, Generic, Optional, TypeVar

from pydantic import BaseModel

from dstream_sdk.modules.di.context import ProviderContext
from dstream_sdk.modules.logging import get_logger
from dstream_sdk.modules.types.base.provider_base import ProviderBase

P = TypeVar("P", bound=ProviderBase)

logger = get_logger("ProviderSlot")


class ProviderSlot(Generic[P]):
    """
    持有至多一个已初始化的 Provider

    第一次 acquire() 构造实例并调用 initialize(config, context)；
    之后的 acquire() 直接返回同一实例，传入的配置被忽略。
    """

    def __init__(self, factory: Callable[[], P]):
        self._factory = factory
        self._provider: Optional[P] = None

    @property
    def is_filled(self) -> bool:
        return self._provider is not None

    @property
    def provider(self) -> Optional[P]:
        return self._provider

    def acquire(self, config: BaseModel, context: ProviderContext) -> P:
        if self._provider is not None:
            logger.debug(f"复用已初始化的 Provider: {type(self._provider).__name__}")
            return self._provider

        provider = self._factory()
        provider.initialize(config, context)
        self._provider = provider
        logger.debug(f"已构造并初始化 Provider: {type(provider).__name__}")
        return provider
