"""Provider 依赖注入"""

from .context import EmitCallback, ProviderContext

__all__ = ["EmitCallback", "ProviderContext"]
