"""配置绑定器

把编排器传来的松散结构（JSON 文本、嵌套 dict、protobuf Struct）
转换为强类型的 Provider 配置对象，以及反方向的编码。

绑定规则：
1. 解包优先级：``config`` 键 > ``body`` 键 > 整个输入
2. 字段名大小写不敏感，同时匹配 snake_case 属性名和 camelCase 别名
3. 未知字段忽略，缺失字段取默认值
4. 任何结构性失败（无法解析、null、形状不对、字段校验失败）都退化为全默认配置，
   绑定本身从不抛出异常
"""

import json
from typing import Any, TypeVar

from google.protobuf import json_format, struct_pb2
from pydantic import BaseModel, ValidationError

from dstream_sdk.modules.logging import get_logger

logger = get_logger("ConfigBinder")

TConfig = TypeVar("TConfig", bound=BaseModel)

_WRAPPER_KEYS = ("config", "body")


def bind_config(raw: Any, config_cls: type[TConfig]) -> TConfig:
    """将任意结构绑定为 config_cls 实例

    Args:
        raw: dict / JSON 文本 / bytes / protobuf Struct / Value / None
        config_cls: 目标配置类型（pydantic 模型，所有字段须有默认值）

    Returns:
        绑定后的配置对象；失败时返回全默认配置
    """
    try:
        data = _to_python(raw)
    except ValueError as e:
        logger.warning(f"配置无法解析，使用默认配置 {config_cls.__name__}: {e}")
        return config_cls()

    data = unwrap_config_payload(data)
    if not isinstance(data, dict):
        logger.warning(f"配置不是对象（{type(data).__name__}），使用默认配置 {config_cls.__name__}")
        return config_cls()

    matched = _match_fields(data, config_cls)
    try:
        return config_cls.model_validate(matched)
    except ValidationError as e:
        logger.warning(f"配置字段校验失败，使用默认配置 {config_cls.__name__}: {e.error_count()} 个错误")
        logger.debug(f"校验错误详情: {e}")
        return config_cls()


def unwrap_config_payload(data: Any) -> Any:
    """按 config > body > 整体 的优先级解包"""
    if not isinstance(data, dict):
        return data
    lowered = {str(k).lower(): k for k in data}
    for key in _WRAPPER_KEYS:
        if key in lowered:
            return data[lowered[key]]
    return data


def encode_config(config: BaseModel) -> dict[str, Any]:
    """配置对象 -> 通用结构（线上 camelCase 字段名，JSON 兼容值）"""
    return config.model_dump(mode="json", by_alias=True)


def to_struct(value: dict[str, Any]) -> struct_pb2.Struct:
    """dict -> protobuf Struct（递归支持 null/bool/数字/字符串/字典/列表）"""
    struct = struct_pb2.Struct()
    struct.update(value)
    return struct


def struct_to_dict(struct: struct_pb2.Struct) -> dict[str, Any]:
    """protobuf Struct -> dict

    Struct 中的数字一律是 double，这里把整数值还原为 int。
    """
    return _restore_integers(json_format.MessageToDict(struct))


def describe_config_fields(config_cls: type[BaseModel]) -> list[dict[str, Any]]:
    """从配置类型导出字段描述（供 GetSchema 使用）

    Returns:
        [{"name", "type", "required", "description"}, ...]
    """
    schema = config_cls.model_json_schema(by_alias=True)
    required = set(schema.get("required", []))
    fields = []
    for name, prop in schema.get("properties", {}).items():
        fields.append(
            {
                "name": name,
                "type": _json_type_of(prop),
                "required": name in required,
                "description": prop.get("description", ""),
            }
        )
    return fields


def _to_python(raw: Any) -> Any:
    if raw is None:
        return None
    if isinstance(raw, struct_pb2.Struct):
        return struct_to_dict(raw)
    if isinstance(raw, struct_pb2.Value):
        return _restore_integers(json_format.MessageToDict(raw))
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"不是有效的 JSON: {e.msg}") from e
    return raw


def _match_fields(data: dict[str, Any], config_cls: type[BaseModel]) -> dict[str, Any]:
    """大小写不敏感地把输入键映射到字段名，丢弃未知键"""
    lookup: dict[str, str] = {}
    for field_name, field_info in config_cls.model_fields.items():
        target = field_info.alias or field_name
        lookup[field_name.lower()] = target
        lookup[target.lower()] = target

    matched: dict[str, Any] = {}
    for key, value in data.items():
        target = lookup.get(str(key).lower())
        if target is not None:
            matched[target] = value
    return matched


def _restore_integers(value: Any) -> Any:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, dict):
        return {k: _restore_integers(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_restore_integers(v) for v in value]
    return value


def _json_type_of(prop: dict[str, Any]) -> str:
    if "type" in prop:
        return prop["type"]
    for option in prop.get("anyOf", []):
        if option.get("type") not in (None, "null"):
            return option["type"]
    return "object"
