"""Counter Input Provider"""
from dstream_sdk.modules.registry import ProviderRegistry

from .counter_provider import CounterConfig, CounterInputProvider

# 注册到 ProviderRegistry
ProviderRegistry.register_input("counter", CounterInputProvider, CounterConfig, source="builtin:counter")

__all__ = ["CounterConfig", "CounterInputProvider"]
