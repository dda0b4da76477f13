"""
配置模块

- binder: 松散结构 -> 强类型 Provider 配置
- host_settings: 宿主进程设置
- schemas: Provider 配置基类
"""

from .binder import (
    bind_config,
    describe_config_fields,
    encode_config,
    struct_to_dict,
    to_struct,
    unwrap_config_payload,
)
from .host_settings import HostSettings, load_host_settings
from .schemas import BaseProviderConfig

__all__ = [
    "BaseProviderConfig",
    "HostSettings",
    "bind_config",
    "describe_config_fields",
    "encode_config",
    "load_host_settings",
    "struct_to_dict",
    "to_struct",
    "unwrap_config_payload",
]
