"""宿主进程自身的设置

与 Provider 配置（由编排器在运行时下发）不同，宿主设置决定日志、握手版本号、
监听地址等进程级行为。加载顺序（后者覆盖前者）：

1. 字段默认值
2. 可选的 TOML 文件中的 ``[host]`` 表
3. ``DSTREAM_`` 前缀的环境变量（如 ``DSTREAM_LOG_LEVEL=DEBUG``）
"""

import os
import tomllib
from pathlib import Path
from typing import Any, Literal, Mapping

from pydantic import BaseModel, Field, ValidationError

from dstream_sdk.modules.logging import get_logger

logger = get_logger("HostSettings")

ENV_PREFIX = "DSTREAM_"


class HostSettings(BaseModel):
    """宿主进程设置"""

    model_config = {"extra": "ignore", "frozen": True}

    log_level: str = Field(default="INFO", description="stderr 日志级别")
    log_to_file: bool = Field(default=False, description="是否同时写入日志文件")
    log_format: Literal["jsonl", "text"] = Field(default="jsonl", description="日志文件格式")
    log_directory: str = Field(default="logs", description="日志文件目录")

    core_protocol_version: int = Field(default=1, description="握手行中的核心协议版本")
    app_protocol_version: int = Field(default=1, description="握手行中的应用协议版本")
    bind_host: str = Field(default="127.0.0.1", description="gRPC 监听地址")

    surface_stream_errors: bool = Field(
        default=False,
        description="为 True 时 Start 循环内部异常以 gRPC INTERNAL 状态返回，而不是记录后吞掉",
    )
    shutdown_grace: float = Field(default=2.0, ge=0.0, description="收到退出信号后等待进行中调用的秒数")

    def to_logging_config(self, debug: bool = False) -> dict[str, Any]:
        """转换为 configure_from_config() 接受的字典"""
        level = "DEBUG" if debug else self.log_level.upper()
        return {
            "console_level": level,
            "enabled": self.log_to_file,
            "format": self.log_format,
            "directory": self.log_directory,
            "level": level,
        }


def load_host_settings(
    path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> HostSettings:
    """加载宿主设置

    Args:
        path: 可选的 TOML 文件路径，读取其中的 [host] 表
        env: 环境变量映射，默认为 os.environ

    Returns:
        HostSettings 实例；任何来源的非法值都会记录警告并被忽略
    """
    env = os.environ if env is None else env
    values: dict[str, Any] = {}

    if path is not None:
        values.update(_read_toml_table(Path(path)))

    for field_name in HostSettings.model_fields:
        env_key = f"{ENV_PREFIX}{field_name.upper()}"
        if env_key in env:
            values[field_name] = env[env_key]

    try:
        return HostSettings.model_validate(values)
    except ValidationError as e:
        logger.warning(f"宿主设置无效，逐项回退到默认值: {e.error_count()} 个错误")

    # 逐项校验，只丢弃非法的字段
    valid: dict[str, Any] = {}
    for key, value in values.items():
        try:
            HostSettings.model_validate({key: value})
        except ValidationError:
            logger.warning(f"忽略非法的宿主设置 {key}={value!r}")
            continue
        valid[key] = value
    return HostSettings.model_validate(valid)


def _read_toml_table(path: Path) -> dict[str, Any]:
    if not path.exists():
        logger.warning(f"宿主设置文件不存在: {path}")
        return {}
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        logger.warning(f"宿主设置文件解析失败 {path}: {e}")
        return {}
    table = data.get("host", {})
    if not isinstance(table, dict):
        logger.warning(f"宿主设置文件中的 [host] 不是表: {path}")
        return {}
    return table
