"""
内置 Provider 实现

导入本包即把以下 Provider 注册到 ProviderRegistry：
- counter: CounterInputProvider，按间隔产出递增计数
- console: ConsoleOutputProvider，把 Envelope 打印到 stdout，并演示基础设施生命周期
"""

from .console_output import ConsoleConfig, ConsoleOutputProvider
from .counter import CounterConfig, CounterInputProvider

__all__ = [
    "ConsoleConfig",
    "ConsoleOutputProvider",
    "CounterConfig",
    "CounterInputProvider",
]
