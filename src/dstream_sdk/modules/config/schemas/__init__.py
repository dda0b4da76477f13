"""Provider 配置 Schema"""

from .base import BaseProviderConfig

__all__ = ["BaseProviderConfig"]
