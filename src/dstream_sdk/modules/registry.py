"""
Provider Registry - Provider 注册表

静态的 名称 -> (Provider 类, 配置类) 映射，供以下场景使用：
1. 命令行入口按名称启动内置 Provider（python -m dstream_sdk counter）
2. gRPC 宿主按 StartRequest.output.provider 找到下游输出 Provider

设计原则：
- 只做注册和查找，不负责 Provider 生命周期
- 不做运行时的类型扫描或程序集加载，所有 Provider 显式注册
- 名称大小写不敏感
- 内置 Provider 在 dstream_sdk.providers 导入时自动注册

使用方式：
    from dstream_sdk.modules.registry import ProviderRegistry
    ProviderRegistry.register_input("my_input", MyInputProvider, MyConfig, source="plugin:my")
    provider_cls, config_cls = ProviderRegistry.create("my_input")
"""

import inspect
from dataclasses import dataclass
from typing import Dict, List, Literal, Optional, Tuple, Type

from dstream_sdk.modules.logging import get_logger

ProviderKind = Literal["input", "output"]


@dataclass(frozen=True)
class ProviderEntry:
    """注册表条目"""

    name: str
    provider_class: Type
    config_class: Type
    kind: ProviderKind
    source: str = "unknown"


class ProviderRegistry:
    """
    Provider 注册表 - 统一管理所有可按名称启动的 Provider
    """

    # 类级别的注册表（键为小写名称）
    _input_providers: Dict[str, ProviderEntry] = {}
    _output_providers: Dict[str, ProviderEntry] = {}

    _logger = get_logger("ProviderRegistry")

    @classmethod
    def register_input(cls, name: str, provider_class: Type, config_class: Type, source: str = "unknown") -> None:
        """
        注册输入 Provider

        Args:
            name: Provider 名称（唯一标识符，如 "counter"）
            provider_class: Provider 类，须同时继承 ProviderBase 和 InputProvider
            config_class: 配置类，须继承 BaseProviderConfig
            source: 注册来源（用于调试，如 "builtin:counter"）

        Raises:
            TypeError: 不是有效的 Provider 或配置类
            ValueError: 名称为空
        """
        from dstream_sdk.modules.types.base.input_provider import InputProvider

        entry = cls._build_entry(name, provider_class, config_class, "input", InputProvider, source)
        cls._store(cls._input_providers, entry)

    @classmethod
    def register_output(cls, name: str, provider_class: Type, config_class: Type, source: str = "unknown") -> None:
        """
        注册输出 Provider

        Args:
            name: Provider 名称（唯一标识符，如 "console"）
            provider_class: Provider 类，须同时继承 ProviderBase 和 OutputProvider
            config_class: 配置类，须继承 BaseProviderConfig
            source: 注册来源（用于调试）

        Raises:
            TypeError: 不是有效的 Provider 或配置类
            ValueError: 名称为空
        """
        from dstream_sdk.modules.types.base.output_provider import OutputProvider

        entry = cls._build_entry(name, provider_class, config_class, "output", OutputProvider, source)
        cls._store(cls._output_providers, entry)

    @classmethod
    def get(cls, name: str, kind: Optional[ProviderKind] = None) -> Optional[ProviderEntry]:
        """
        按名称查找条目

        Args:
            name: Provider 名称
            kind: 限定 "input" 或 "output"；为 None 时先查输入再查输出

        Returns:
            条目，不存在时返回 None
        """
        key = (name or "").strip().lower()
        if kind in (None, "input") and key in cls._input_providers:
            return cls._input_providers[key]
        if kind in (None, "output") and key in cls._output_providers:
            return cls._output_providers[key]
        return None

    @classmethod
    def create(cls, name: str, kind: Optional[ProviderKind] = None) -> Tuple[Type, Type]:
        """
        按名称取得 (Provider 类, 配置类)

        Raises:
            KeyError: 未注册
        """
        entry = cls.get(name, kind)
        if entry is None:
            available = ", ".join(cls.list_input_providers() + cls.list_output_providers()) or "无"
            raise KeyError(f"未注册的 Provider: '{name}'（可用: {available}）")
        return entry.provider_class, entry.config_class

    @classmethod
    def list_input_providers(cls) -> List[str]:
        return sorted(cls._input_providers)

    @classmethod
    def list_output_providers(cls) -> List[str]:
        return sorted(cls._output_providers)

    @classmethod
    def get_registry_info(cls) -> Dict[str, Dict[str, str]]:
        """获取注册表信息（用于调试）"""
        info: Dict[str, Dict[str, str]] = {}
        for entry in list(cls._input_providers.values()) + list(cls._output_providers.values()):
            info[f"{entry.kind}:{entry.name}"] = {
                "provider": entry.provider_class.__name__,
                "config": entry.config_class.__name__,
                "source": entry.source,
            }
        return info

    @classmethod
    def clear_all(cls) -> None:
        """清除所有注册（主要用于测试）"""
        cls._input_providers.clear()
        cls._output_providers.clear()
        cls._logger.debug("已清除所有 Provider 注册")

    # ---------- 内部 ----------

    @classmethod
    def _build_entry(cls, name, provider_class, config_class, kind, capability, source) -> ProviderEntry:
        if not name or not name.strip():
            raise ValueError("Provider 名称不能为空")
        if not inspect.isclass(provider_class):
            raise TypeError(f"{name} must be a class, got {type(provider_class)}")

        from dstream_sdk.modules.config.schemas.base import BaseProviderConfig
        from dstream_sdk.modules.types.base.provider_base import ProviderBase

        if not issubclass(provider_class, ProviderBase):
            raise TypeError(f"{name} must be a subclass of ProviderBase, got {provider_class.__mro__}")
        if not issubclass(provider_class, capability):
            raise TypeError(f"{name} must be a subclass of {capability.__name__}, got {provider_class.__mro__}")
        if not inspect.isclass(config_class) or not issubclass(config_class, BaseProviderConfig):
            raise TypeError(f"{name} 的配置类必须继承 BaseProviderConfig，got {config_class!r}")

        return ProviderEntry(
            name=name.strip().lower(),
            provider_class=provider_class,
            config_class=config_class,
            kind=kind,
            source=source,
        )

    @classmethod
    def _store(cls, table: Dict[str, ProviderEntry], entry: ProviderEntry) -> None:
        if entry.name in table:
            cls._logger.warning(
                f"{entry.kind} Provider '{entry.name}' already registered from "
                f"'{table[entry.name].source}', overwriting with '{entry.source}'"
            )
        table[entry.name] = entry
        cls._logger.debug(f"Registered {entry.kind} Provider: {entry.name} from {entry.source}")
