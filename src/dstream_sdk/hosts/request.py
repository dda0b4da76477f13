"""
stdio 请求行解析

第一行 stdin 有两种形状：
1. 命令信封：{"command": "plan", "config": {...}}，command 缺省为 "run"
2. 裸配置：{"interval": 100}，等价于 {"command": "run", "config": {...}}

只要顶层 JSON 对象含有 command 或 config 键（大小写不敏感）就视为命令信封。
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

from dstream_sdk.modules.config.binder import bind_config

TConfig = TypeVar("TConfig", bound=BaseModel)

DEFAULT_COMMAND = "run"
_ENVELOPE_KEYS = ("command", "config")


class RequestKind(str, Enum):
    ENVELOPE = "envelope"
    BARE_CONFIG = "bare_config"
    UNPARSEABLE = "unparseable"


@dataclass(frozen=True)
class ParsedRequest(Generic[TConfig]):
    """
    解析后的请求

    Attributes:
        kind: 请求形状
        command: 小写命令名（不可解析时为空字符串）
        config: 绑定后的配置（不可解析时为 None）
        error: 不可解析的原因
    """

    kind: RequestKind
    command: str = ""
    config: Optional[TConfig] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.kind is not RequestKind.UNPARSEABLE


def parse_request(line: str, config_cls: type[TConfig]) -> ParsedRequest[TConfig]:
    """
    解析第一行请求

    命令名统一转为小写；是否为已知命令由调用方判断。
    配置部分交给 bind_config，它会按 config > body > 整体 的顺序解包。
    """
    try:
        data = json.loads(line)
    except json.JSONDecodeError as e:
        return ParsedRequest(kind=RequestKind.UNPARSEABLE, error=f"不是合法的 JSON: {e.msg}")

    if not isinstance(data, dict):
        return ParsedRequest(kind=RequestKind.UNPARSEABLE, error=f"顶层必须是 JSON 对象，实际为 {type(data).__name__}")

    lowered = {str(k).lower(): v for k, v in data.items()}
    config = bind_config(data, config_cls)

    if not any(key in lowered for key in _ENVELOPE_KEYS):
        return ParsedRequest(kind=RequestKind.BARE_CONFIG, command=DEFAULT_COMMAND, config=config)

    raw_command = lowered.get("command")
    command = str(raw_command).strip().lower() if raw_command is not None else ""
    return ParsedRequest(kind=RequestKind.ENVELOPE, command=command or DEFAULT_COMMAND, config=config)
