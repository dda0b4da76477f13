"""
Envelope 数据单元

Provider 与编排器之间交换的统一单元：payload + 元数据。

线上格式（每行一个 JSON 对象）:
    {"source": "...", "type": "...", "data": <payload>, "metadata": {...}}
"""

import json
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Envelope(BaseModel):
    """
    数据信封

    输入 Provider 每产生一条数据就产出一个 Envelope；输出 Provider 以批次形式接收。
    构造后不可变，没有身份标识，只按值相等。

    Attributes:
        payload: 任意 JSON 兼容的数据
        meta: 有序的元数据字典（值可以为 None）
    """

    model_config = ConfigDict(frozen=True)

    payload: Any = None
    meta: dict[str, Optional[Any]] = Field(default_factory=dict)

    @field_validator("meta", mode="before")
    @classmethod
    def _none_meta_to_empty(cls, value):
        return {} if value is None else value

    def to_wire(self) -> dict[str, Any]:
        """转换为线上字典格式（metadata 总是存在）"""
        return {
            "source": str(self.meta.get("source") or ""),
            "type": str(self.meta.get("type") or ""),
            "data": self.payload,
            "metadata": dict(self.meta),
        }

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "Envelope":
        """
        从线上字典构造 Envelope

        字段名大小写不敏感；缺失或为 null 的 data 视为空 payload，
        非字典的 metadata 视为空字典。
        """
        lowered = {str(k).lower(): v for k, v in data.items()}
        payload = lowered.get("data")
        if payload is None:
            payload = {}
        metadata = lowered.get("metadata")
        if not isinstance(metadata, dict):
            metadata = {}
        return cls(payload=payload, meta=metadata)


def encode_wire_line(envelope: Envelope) -> str:
    """Envelope -> 单行 JSON（不含换行符）"""
    return json.dumps(envelope.to_wire(), ensure_ascii=False, default=str)


def decode_wire_line(line: str) -> Envelope | None:
    """
    单行 JSON -> Envelope

    Returns:
        解析成功返回 Envelope；整行不是 JSON 对象时返回 None，由调用方记录并丢弃
    """
    try:
        data = json.loads(line)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    return Envelope.from_wire(data)
