"""
Provider 宿主启动入口

把具体的 Provider 类和配置类接到所选传输上：

    from dstream_sdk.hosts.bootstrap import run_provider
    sys.exit(run_provider(MyProvider, MyConfig, transport="stdio"))

负责：加载宿主设置、配置日志、安装 SIGINT/SIGTERM 处理器（设置共享的 stop_event）、
连接真实 stdin，并把宿主返回的退出码交给调用方。
"""

import asyncio
import signal
import sys
import threading
from typing import Literal, Optional, TextIO

from pydantic import BaseModel

from dstream_sdk.hosts.grpc_host import GrpcProviderHost
from dstream_sdk.hosts.stdio_host import StdioProviderHost
from dstream_sdk.hosts.streaming import STDIN_LINE_LIMIT
from dstream_sdk.modules.config.host_settings import HostSettings, load_host_settings
from dstream_sdk.modules.logging import configure_from_config, get_logger
from dstream_sdk.modules.types.base.provider_base import ProviderBase

logger = get_logger("Bootstrap")

Transport = Literal["stdio", "grpc"]
TRANSPORTS = ("stdio", "grpc")


def install_signal_handlers(loop: asyncio.AbstractEventLoop, stop_event: asyncio.Event) -> list[int]:
    """
    SIGINT / SIGTERM -> stop_event.set()

    Returns:
        成功安装的信号列表（用于之后移除）
    """
    shutdown_initiated = False

    def signal_handler():
        nonlocal shutdown_initiated
        if shutdown_initiated:
            logger.warning("已经在关闭中，忽略重复信号")
            return
        shutdown_initiated = True
        logger.info("收到退出信号，开始关闭...")
        stop_event.set()

    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except (NotImplementedError, ValueError, RuntimeError):
            # Windows 或非主线程不支持 add_signal_handler
            logger.debug(f"无法安装信号处理器: {sig!r}")
            continue
        installed.append(sig)
    return installed


def remove_signal_handlers(loop: asyncio.AbstractEventLoop, installed: list[int]) -> None:
    for sig in installed:
        loop.remove_signal_handler(sig)


async def connect_stdin(stdin=None) -> asyncio.StreamReader:
    """
    把 stdin 包装为 asyncio.StreamReader

    管道和终端走 connect_read_pipe；重定向的普通文件不支持管道传输，改由后台线程逐行喂数据。
    """
    stdin = stdin or sys.stdin
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(limit=STDIN_LINE_LIMIT)
    try:
        await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), stdin)
        return reader
    except ValueError:
        logger.debug("stdin 不是管道，改用后台线程读取")

    def feed():
        for raw in iter(stdin.buffer.readline, b""):
            loop.call_soon_threadsafe(reader.feed_data, raw)
        loop.call_soon_threadsafe(reader.feed_eof)

    threading.Thread(target=feed, name="stdin-reader", daemon=True).start()
    return reader


async def serve(
    provider_cls: type[ProviderBase],
    config_cls: type[BaseModel],
    *,
    transport: Transport = "stdio",
    settings: Optional[HostSettings] = None,
    stop_event: Optional[asyncio.Event] = None,
    provider_name: Optional[str] = None,
    standalone: bool = False,
    reader: Optional[asyncio.StreamReader] = None,
    writer: Optional[TextIO] = None,
) -> int:
    """
    在当前事件循环中运行宿主直到结束

    Returns:
        进程退出码

    Raises:
        ValueError: 未知的传输类型
    """
    if transport not in TRANSPORTS:
        raise ValueError(f"未知的传输类型: {transport}（可选: {', '.join(TRANSPORTS)}）")

    settings = settings or HostSettings()
    stop_event = stop_event or asyncio.Event()
    loop = asyncio.get_running_loop()
    installed = install_signal_handlers(loop, stop_event)

    try:
        if transport == "grpc":
            host = GrpcProviderHost(
                provider_cls,
                config_cls,
                settings=settings,
                stop_event=stop_event,
                provider_name=provider_name,
                standalone=standalone,
                stdout=writer,
            )
            return await host.run()

        stdio_host = StdioProviderHost(
            provider_cls,
            config_cls,
            reader=reader or await connect_stdin(),
            writer=writer or sys.stdout,
            stop_event=stop_event,
            provider_name=provider_name,
        )
        return await stdio_host.run()
    finally:
        remove_signal_handlers(loop, installed)


def run_provider(
    provider_cls: type[ProviderBase],
    config_cls: type[BaseModel],
    *,
    transport: Transport = "stdio",
    settings: Optional[HostSettings] = None,
    provider_name: Optional[str] = None,
    standalone: bool = False,
    debug: bool = False,
) -> int:
    """
    同步入口：配置日志后在 asyncio.run 中运行宿主

    Returns:
        进程退出码（0 正常，1 致命错误）
    """
    settings = settings or load_host_settings()
    configure_from_config(settings.to_logging_config(debug=debug))

    try:
        return asyncio.run(
            serve(
                provider_cls,
                config_cls,
                transport=transport,
                settings=settings,
                provider_name=provider_name,
                standalone=standalone,
            )
        )
    except KeyboardInterrupt:
        logger.info("检测到 KeyboardInterrupt，退出。")
        return 0
