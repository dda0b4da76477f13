"""
stdio 传输宿主

协议：
- stdin 第一行是请求（命令信封或裸配置），见 hosts/request.py
- 生命周期命令（init / destroy / status / plan）：stdout 写出一行结果 JSON
- run 命令：
  - 输入 Provider：每个 Envelope 写成一行 {"source","type","data","metadata"}
  - 输出 Provider：继续逐行读取 stdin 直到 EOF，每行作为单元素批次交给 write()
- 日志只写 stderr，stdout 只承载协议数据

退出码：0 正常结束，1 致命错误（无请求、请求无法解析、能力不匹配、未预期异常）
"""

import asyncio
import json
from typing import Optional, TextIO

from pydantic import BaseModel

from dstream_sdk.hosts.request import DEFAULT_COMMAND, RequestKind, parse_request
from dstream_sdk.hosts.slot import ProviderSlot
from dstream_sdk.hosts.streaming import HostExit, LineTooLong, pump_input, read_line_or_stop
from dstream_sdk.modules.di.context import ProviderContext
from dstream_sdk.modules.logging import get_logger
from dstream_sdk.modules.types.base.envelope import Envelope, decode_wire_line, encode_wire_line
from dstream_sdk.modules.types.base.infrastructure import (
    LIFECYCLE_COMMANDS,
    InfrastructureProvider,
    InfrastructureResult,
    failed_result,
    run_lifecycle_command,
)
from dstream_sdk.modules.types.base.input_provider import InputProvider
from dstream_sdk.modules.types.base.output_provider import OutputProvider
from dstream_sdk.modules.types.base.provider_base import ProviderBase

KNOWN_COMMANDS = (DEFAULT_COMMAND,) + LIFECYCLE_COMMANDS


class StdioProviderHost:
    """
    stdio 命令循环

    reader / writer 由调用方注入：进程内是连接到真实 stdin 的 StreamReader 和 sys.stdout，
    测试中是 feed_data() 喂数据的 StreamReader 和 io.StringIO。
    """

    def __init__(
        self,
        provider_cls: type[ProviderBase],
        config_cls: type[BaseModel],
        *,
        reader: asyncio.StreamReader,
        writer: TextIO,
        stop_event: Optional[asyncio.Event] = None,
        provider_name: Optional[str] = None,
    ):
        self.provider_cls = provider_cls
        self.config_cls = config_cls
        self.provider_name = provider_name or provider_cls.__name__
        self.stop_event = stop_event or asyncio.Event()

        self._reader = reader
        self._writer = writer
        self._slot: ProviderSlot = ProviderSlot(provider_cls)
        self.logger = get_logger(f"StdioHost:{self.provider_name}")

        self.processed_count = 0

    @property
    def provider(self) -> Optional[ProviderBase]:
        return self._slot.provider

    async def run(self) -> int:
        """
        运行一次完整的请求处理

        Returns:
            进程退出码
        """
        try:
            await self._serve()
        except HostExit as e:
            if e.code != 0:
                self.logger.error(f"{e.reason or '宿主异常退出'}（退出码 {e.code}）")
            return e.code
        except asyncio.CancelledError:
            self.logger.info("宿主任务被取消")
            raise
        except Exception as e:
            self.logger.exception(f"Fatal error: {e}")
            return 1
        return 0

    async def _serve(self) -> None:
        self.logger.info(f"[{self.provider_name}] Starting service...")

        try:
            line = await read_line_or_stop(self._reader, self.stop_event)
        except LineTooLong as e:
            raise HostExit(1, f"请求行过长: {e}") from e
        if line is None and self.stop_event.is_set():
            self.logger.info("在收到请求前已停止")
            return
        if not line or not line.strip():
            raise HostExit(1, "No configuration received")

        request = parse_request(line, self.config_cls)
        if request.kind is RequestKind.UNPARSEABLE:
            raise HostExit(1, f"请求无法解析: {request.error}")
        self.logger.debug(f"收到请求（{request.kind.value}）: {line}")

        command = request.command
        if command not in KNOWN_COMMANDS:
            self.logger.warning(f"未知命令 '{command}'，按 run 处理")
            command = DEFAULT_COMMAND

        provider = self._slot.acquire(request.config, self._build_context())

        if command in LIFECYCLE_COMMANDS:
            await self._run_lifecycle(provider, command)
        else:
            await self._run_stream(provider)

    def _build_context(self) -> ProviderContext:
        return ProviderContext(
            provider_name=self.provider_name,
            logger=get_logger(self.provider_name),
            emit=self._write_envelope,
        )

    # ---------- 生命周期命令 ----------

    async def _run_lifecycle(self, provider: ProviderBase, command: str) -> None:
        if not isinstance(provider, InfrastructureProvider):
            raise HostExit(1, f"{type(provider).__name__} 不支持基础设施生命周期命令 '{command}'")

        self.logger.info(f"执行生命周期命令: {command}")
        result = await run_lifecycle_command(provider, command)
        self._write_result(result)

    def _write_result(self, result: InfrastructureResult) -> None:
        try:
            line = json.dumps(result.to_wire(), ensure_ascii=False)
        except (TypeError, ValueError) as e:
            self.logger.error(f"结果无法序列化，改为写出 Failed: {e}")
            result = failed_result(e, "Infrastructure result could not be serialized")
            line = json.dumps(result.to_wire(), ensure_ascii=False)
        self._writer.write(line + "\n")
        self._writer.flush()

        self.logger.info(f"Infrastructure operation result: {result.status.value} - {result.message}")
        if result.resources:
            self.logger.info(f"Resources: {', '.join(result.resources)}")
        if result.error:
            self.logger.error(f"Error: {result.error}")

    # ---------- run 命令 ----------

    async def _run_stream(self, provider: ProviderBase) -> None:
        if isinstance(provider, InputProvider):
            self.logger.info(f"[{self.provider_name}] Starting data generation...")
            count = await pump_input(provider, self.stop_event, self._write_envelope)
            self.logger.info(f"[{self.provider_name}] Input provider completed（共写出 {count} 条）")
        elif isinstance(provider, OutputProvider):
            await self._run_output_loop(provider)
        else:
            raise HostExit(1, f"{type(provider).__name__} 既不是输入 Provider 也不是输出 Provider")

    async def _write_envelope(self, envelope: Envelope) -> None:
        self._writer.write(encode_wire_line(envelope) + "\n")
        self._writer.flush()

    async def _run_output_loop(self, provider: OutputProvider) -> int:
        """逐行读取 stdin 并交给输出 Provider，返回成功处理的条数"""
        self.logger.info(f"[{self.provider_name}] Ready to process messages")

        while not self.stop_event.is_set():
            try:
                line = await read_line_or_stop(self._reader, self.stop_event)
            except LineTooLong as e:
                self.logger.warning(f"Dropped oversized line: {e}")
                continue
            if line is None:
                break

            envelope = decode_wire_line(line) if line.strip() else None
            if envelope is None:
                self.logger.warning(f"Failed to parse JSON: {line[:200]}")
                continue

            try:
                await provider.write([envelope], self.stop_event)
            except Exception as e:
                self.logger.error(f"Error processing message: {e}")
                continue
            self.processed_count += 1

        self.logger.info(f"Processed {self.processed_count} messages. Stream ended.")
        return self.processed_count
