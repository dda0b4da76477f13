"""日志配置模块。

Provider 进程的标准输出是协议通道（握手行、数据行、结果行），
因此所有诊断日志都只写入 stderr（旁路通道），可选再写入 JSONL 文件。

应在宿主启动时调用 configure_from_config() 进行配置；
未配置前调用 get_logger() 会得到一个默认的 stderr 处理器。
"""

import json
import os
import sys
import time
from pathlib import Path

from loguru import logger as loguru_logger

# 模块级状态变量
_CONFIGURED = False  # 追踪 configure_from_config() 是否已被调用
_HANDLER_IDS: list[int] = []  # 追踪处理器 ID 以便清理
_DEFAULT_HANDLER_ID: int | None = None  # 追踪默认处理器

_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[module]}</cyan> - <level>{message}</level>"
)


def _ensure_default_handler():
    """确保默认 stderr 处理器存在（延迟初始化）。

    loguru 自带的默认处理器不带 module 字段，这里将其替换为带模块名的格式。
    """
    global _DEFAULT_HANDLER_ID
    if _DEFAULT_HANDLER_ID is None and not _CONFIGURED:
        try:
            loguru_logger.remove(0)
        except ValueError:
            pass
        _DEFAULT_HANDLER_ID = loguru_logger.add(
            sys.stderr,
            level="INFO",
            colorize=False,
            format=_CONSOLE_FORMAT,
        )
    return _DEFAULT_HANDLER_ID


def configure_from_config(config_dict: dict | None = None) -> None:
    """从配置字典配置日志。

    Args:
        config_dict: 日志配置字典，包含以下键：
            - console_level: str - stderr 日志级别（默认："INFO"）
            - enabled: bool - 启用文件日志（默认：False）
            - format: Literal["jsonl", "text"] - 文件日志格式（默认："jsonl"）
            - directory: str - 日志目录路径（默认："logs"）
            - level: str - 文件日志级别（默认："INFO"）
            - rotation: str - 文本日志轮转条件（默认："10 MB"）
            - retention: str - 文本日志保留时间（默认："7 days"）
            - filter: list[str] - 模块过滤器（WARNING 及以上级别总是显示）

    若 config_dict 为 None，仅输出到 stderr。
    """
    global _CONFIGURED, _DEFAULT_HANDLER_ID

    _CONFIGURED = True
    config_dict = config_dict or {}

    enabled = config_dict.get("enabled", False)
    log_format = config_dict.get("format", "jsonl")
    directory = config_dict.get("directory", "logs")
    level = config_dict.get("level", "INFO")
    rotation = config_dict.get("rotation", "10 MB")
    retention = config_dict.get("retention", "7 days")
    console_level = config_dict.get("console_level", "INFO")
    filter_config = config_dict.get("filter")

    # 完全移除已有处理器，避免重复输出
    loguru_logger.remove()
    _DEFAULT_HANDLER_ID = None
    _HANDLER_IDS.clear()

    module_filter = None
    if filter_config:
        if callable(filter_config):
            module_filter = filter_config
        else:
            filter_modules = set(filter_config)

            def module_filter(record):
                """只允许指定模块的日志通过，WARNING 及以上级别总是显示"""
                module = record["extra"].get("module", "unknown")
                return module in filter_modules or record["level"].no >= loguru_logger.level("WARNING").no

    # stdout 是协议通道，控制台日志只能写 stderr
    stderr_handler_id = loguru_logger.add(
        sys.stderr,
        level=console_level,
        colorize=False,
        format=_CONSOLE_FORMAT,
        filter=module_filter,
    )
    _HANDLER_IDS.append(stderr_handler_id)

    if not enabled:
        return

    if not os.path.exists(directory):
        try:
            os.makedirs(directory, exist_ok=True)
        except OSError as e:
            loguru_logger.bind(module="Logging").warning(f"无法创建日志目录 {directory}，将仅使用 stderr 输出: {e}")
            return

    if log_format == "jsonl":
        file_path_for_json = str(Path(directory) / f"dstream_{time.strftime('%Y-%m-%d')}.jsonl")

        def json_sink(message):
            """自定义 JSONL sink，每行写入一个 JSON 对象。"""
            record = json.loads(message)["record"]
            log_obj = {
                "timestamp": record["time"]["repr"],
                "level": record["level"]["name"],
                "module": record["extra"].get("module", "unknown"),
                "message": record["message"],
            }
            with open(file_path_for_json, "a", encoding="utf-8") as f:
                f.write(json.dumps(log_obj, ensure_ascii=False) + "\n")

        file_handler_id = loguru_logger.add(json_sink, level=level, serialize=True)
    else:
        file_handler_id = loguru_logger.add(
            os.path.join(directory, "dstream_{time}.log"),
            level=level,
            format=_CONSOLE_FORMAT,
            rotation=rotation,
            retention=retention,
            encoding="utf-8",
        )
    _HANDLER_IDS.append(file_handler_id)


def get_logger(module_name: str):
    """获取绑定了模块名的 logger 实例。

    Args:
        module_name: 模块名称，用于标识日志来源

    Returns:
        绑定了模块名的 loguru logger 实例
    """
    _ensure_default_handler()
    return loguru_logger.bind(module=module_name)


__all__ = ["get_logger", "configure_from_config"]
