"""Provider配置基类定义

定义所有Provider配置的抽象基类。
"""

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BaseProviderConfig(BaseModel):
    """Provider配置基类

    所有Provider配置的基类：
    - Python 侧使用 snake_case 属性名，线上（JSON/HCL）使用 lowerCamelCase 别名
    - 未知字段忽略，缺失字段取声明的默认值
    - 绑定完成后不可变（frozen）

    注意：
    - 子类的每个字段都必须有默认值，绑定失败时会退化为全默认配置
    """

    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    @classmethod
    def get_default_dict(cls) -> dict[str, Any]:
        """获取默认配置字典（线上字段名）

        Returns:
            包含所有字段默认值的字典
        """
        return cls().model_dump(mode="json", by_alias=True)

    @classmethod
    def generate_toml(
        cls,
        output_path: str | Path,
        provider_name: str | None = None,
        include_comments: bool = True,
    ) -> None:
        """从Schema生成TOML配置模板

        生成包含所有可配置字段及其默认值的TOML文件，字段的description作为注释。

        Args:
            output_path: 输出文件路径
            provider_name: TOML中的表名，默认为类名的小写形式
            include_comments: 是否包含字段注释

        Example:
            >>> CounterConfig.generate_toml("counter.toml", "counter")
        """
        output_path = Path(output_path)
        table_name = provider_name if provider_name else cls.__name__.lower()
        config_dict = cls.get_default_dict()

        lines = []
        if include_comments and cls.__doc__:
            lines.append(f"# {cls.__doc__.strip().splitlines()[0]}")
            lines.append("")

        lines.append(f"[{table_name}]")
        for field_name, field_info in cls.model_fields.items():
            wire_name = field_info.alias or field_name
            if include_comments and field_info.description:
                lines.append(f"# {field_info.description}")
            lines.append(f"{wire_name} = {_format_toml_value(config_dict.get(wire_name))}")

        output_path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def _format_toml_value(value: Any) -> str:
    """将Python值转换为TOML字面量字符串

    Args:
        value: Python值

    Returns:
        TOML格式的字符串
    """
    if value is None:
        return '""'
    elif isinstance(value, bool):
        return "true" if value else "false"
    elif isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    elif isinstance(value, (int, float)):
        return str(value)
    elif isinstance(value, list):
        return f"[{', '.join(_format_toml_value(v) for v in value)}]"
    elif isinstance(value, dict):
        # 嵌套字典使用内联表格格式
        pairs = [f"{k} = {_format_toml_value(v)}" for k, v in value.items()]
        return f"{{{', '.join(pairs)}}}"
    else:
        return f'"{str(value)}"'
