"""Console Output Provider"""
from dstream_sdk.modules.registry import ProviderRegistry

from .console_output_provider import ConsoleConfig, ConsoleOutputProvider

# 注册到 ProviderRegistry
ProviderRegistry.register_output("console", ConsoleOutputProvider, ConsoleConfig, source="builtin:console")

__all__ = ["ConsoleConfig", "ConsoleOutputProvider"]
