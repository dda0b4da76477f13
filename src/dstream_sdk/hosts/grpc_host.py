"""
gRPC 握手传输宿主

启动流程（状态机 NotStarted -> HandshakeSent -> Streaming -> Terminated）：
1. 检查是否由编排器拉起（PLUGIN_PROTOCOL_VERSIONS / PLUGIN_MIN_PORT 环境变量），
   否则打印警告并以 0 退出；--standalone 跳过该检查
2. 在 127.0.0.1 的临时端口上启动 grpc.aio 服务
3. 向 stdout 写出唯一一行握手：1|1|tcp|127.0.0.1:<port>|grpc，随后把 stdout 换成空设备
4. 等待 Start 调用驱动输入循环，直到调用被取消或收到退出信号
"""

import asyncio
import os
import sys
from enum import Enum
from typing import Any, Callable, Mapping, Optional, TextIO

import grpc
from google.protobuf import json_format
from pydantic import BaseModel

from dstream_sdk.hosts import plugin_proto
from dstream_sdk.hosts.slot import ProviderSlot
from dstream_sdk.hosts.streaming import HostExit, pump_input
from dstream_sdk.modules.config.binder import bind_config, describe_config_fields, encode_config, struct_to_dict
from dstream_sdk.modules.config.host_settings import HostSettings
from dstream_sdk.modules.di.context import ProviderContext
from dstream_sdk.modules.logging import get_logger
from dstream_sdk.modules.registry import ProviderRegistry
from dstream_sdk.modules.types.base.envelope import Envelope
from dstream_sdk.modules.types.base.input_provider import InputProvider
from dstream_sdk.modules.types.base.output_provider import OutputProvider
from dstream_sdk.modules.types.base.provider_base import ProviderBase

PLUGIN_ENV_KEYS = ("PLUGIN_PROTOCOL_VERSIONS", "PLUGIN_MIN_PORT")

DIRECT_EXECUTION_WARNING = (
    "This binary is a plugin. These are not meant to be executed directly.\n"
    "Please execute the program that consumes these plugins, which will\n"
    "load any plugins automatically\n"
)


class HostState(str, Enum):
    NOT_STARTED = "NotStarted"
    HANDSHAKE_SENT = "HandshakeSent"
    STREAMING = "Streaming"
    TERMINATED = "Terminated"


def format_handshake(settings: HostSettings, host: str, port: int) -> str:
    """core_version|protocol_version|network|address|protocol"""
    return f"{settings.core_protocol_version}|{settings.app_protocol_version}|tcp|{host}:{port}|grpc"


def launched_by_orchestrator(env: Mapping[str, str]) -> bool:
    return any(key in env for key in PLUGIN_ENV_KEYS)


class PluginService:
    """
    proto.Plugin 服务实现

    - GetSchema: 返回配置类的字段描述，无副作用
    - Start: 绑定配置，构造并初始化 Provider（每进程一次），
      输入 Provider 会阻塞驱动数据流直到耗尽、停止或调用被取消
    """

    def __init__(
        self,
        provider_cls: type[ProviderBase],
        config_cls: type[BaseModel],
        *,
        settings: Optional[HostSettings] = None,
        stop_event: Optional[asyncio.Event] = None,
        provider_name: Optional[str] = None,
        on_streaming: Optional[Callable[[], None]] = None,
    ):
        self.provider_cls = provider_cls
        self.config_cls = config_cls
        self.settings = settings or HostSettings()
        self.stop_event = stop_event or asyncio.Event()
        self.provider_name = provider_name or provider_cls.__name__
        self.logger = get_logger(f"GrpcHost:{self.provider_name}")

        self._slot: ProviderSlot = ProviderSlot(provider_cls)
        self._output: Optional[OutputProvider] = None
        self._on_streaming = on_streaming

    @property
    def provider(self) -> Optional[ProviderBase]:
        return self._slot.provider

    @property
    def output(self) -> Optional[OutputProvider]:
        return self._output

    # ---------- RPC ----------

    async def get_schema(self, request, context):
        self.logger.info("[RPC] GetSchema()")
        fields = [plugin_proto.FieldSchema(**field) for field in describe_config_fields(self.config_cls)]
        return plugin_proto.GetSchemaResponse(fields=fields)

    async def start(self, request, context):
        raw = json_format.MessageToDict(request, preserving_proto_field_name=True)
        self.logger.info(f"[RPC] Start payload={raw}")

        config = bind_config(raw, self.config_cls)
        self.logger.info(f"[CONFIG] bound={encode_config(config)}")

        if request.HasField("output") and request.output.provider and self._output is None:
            self._output = self._resolve_output(request.output.provider, request.output)

        provider = self._slot.acquire(
            config,
            ProviderContext(
                provider_name=self.provider_name,
                logger=get_logger(self.provider_name),
                emit=self._emit,
            ),
        )

        if not isinstance(provider, InputProvider):
            self.logger.warning(f"{type(provider).__name__} 不是输入 Provider，Start 直接返回")
            return plugin_proto.Empty()

        if self._on_streaming is not None:
            self._on_streaming()

        try:
            count = await pump_input(provider, self.stop_event, self._emit)
            self.logger.info(f"输入循环结束，共转发 {count} 条")
        except asyncio.CancelledError:
            self.logger.info("Start 调用被取消，输入循环正常结束")
            raise
        except Exception as e:
            self.logger.error(f"run_input_loop_failed: {type(e).__name__}: {e}")
            if self.settings.surface_stream_errors:
                await context.abort(grpc.StatusCode.INTERNAL, f"run_input_loop_failed: {e}")
        return plugin_proto.Empty()

    # ---------- emit ----------

    async def _emit(self, envelope: Envelope) -> None:
        if self._output is not None:
            await self._output.write([envelope], self.stop_event)
            return
        self.logger.info(f"emit payload={envelope.payload} meta={envelope.meta}")

    def _resolve_output(self, name: str, spec: Any) -> Optional[OutputProvider]:
        entry = ProviderRegistry.get(name, kind="output")
        if entry is None:
            self.logger.warning(f"未注册的输出 Provider '{name}'，Envelope 仅记录到日志")
            return None

        raw_config = struct_to_dict(spec.config) if spec.HasField("config") else {}
        output = entry.provider_class()
        output.initialize(
            bind_config(raw_config, entry.config_class),
            ProviderContext(provider_name=entry.name, logger=get_logger(entry.name)),
        )
        self.logger.info(f"Envelope 将转发到输出 Provider: {entry.name}")
        return output

    def generic_handler(self) -> grpc.GenericRpcHandler:
        return grpc.method_handlers_generic_handler(
            plugin_proto.SERVICE_NAME,
            {
                "GetSchema": grpc.unary_unary_rpc_method_handler(
                    self.get_schema,
                    request_deserializer=plugin_proto.Empty.FromString,
                    response_serializer=plugin_proto.GetSchemaResponse.SerializeToString,
                ),
                "Start": grpc.unary_unary_rpc_method_handler(
                    self.start,
                    request_deserializer=plugin_proto.StartRequest.FromString,
                    response_serializer=plugin_proto.Empty.SerializeToString,
                ),
            },
        )


class GrpcProviderHost:
    """
    gRPC 握手宿主

    stdout 在握手之后只属于握手行：非独立模式下握手写出后 sys.stdout 被替换为空设备，stop() 时恢复。
    """

    def __init__(
        self,
        provider_cls: type[ProviderBase],
        config_cls: type[BaseModel],
        *,
        settings: Optional[HostSettings] = None,
        stop_event: Optional[asyncio.Event] = None,
        provider_name: Optional[str] = None,
        standalone: bool = False,
        env: Optional[Mapping[str, str]] = None,
        stdout: Optional[TextIO] = None,
    ):
        self.settings = settings or HostSettings()
        self.stop_event = stop_event or asyncio.Event()
        self.provider_name = provider_name or provider_cls.__name__
        self.standalone = standalone
        self.env = os.environ if env is None else env
        self.stdout = stdout

        self.state = HostState.NOT_STARTED
        self.port: Optional[int] = None
        self.logger = get_logger(f"GrpcHost:{self.provider_name}")

        self.service = PluginService(
            provider_cls,
            config_cls,
            settings=self.settings,
            stop_event=self.stop_event,
            provider_name=self.provider_name,
            on_streaming=self._mark_streaming,
        )
        self._server: Optional[grpc.aio.Server] = None
        self._devnull: Optional[TextIO] = None
        self._saved_stdout: Optional[TextIO] = None

    async def run(self) -> int:
        """
        启动服务并阻塞到收到停止信号

        Returns:
            进程退出码
        """
        if not self.standalone and not launched_by_orchestrator(self.env):
            out = self._out()
            out.write(DIRECT_EXECUTION_WARNING)
            out.flush()
            return 0

        try:
            await self.start()
            await self.stop_event.wait()
        except HostExit as e:
            self.logger.error(f"{e.reason}（退出码 {e.code}）")
            return e.code
        finally:
            await self.stop()
        return 0

    async def start(self) -> int:
        """启动 gRPC 服务并写出握手行，返回监听端口"""
        server = grpc.aio.server()
        server.add_generic_rpc_handlers((self.service.generic_handler(),))

        port = self._bind(server)
        await server.start()
        self._server = server
        self.port = port

        if self.standalone:
            out = self._out()
            out.write(f"Server started on port {port} in standalone mode\n")
            out.flush()
        else:
            self._send_handshake(port)
        self.state = HostState.HANDSHAKE_SENT
        self.logger.info(f"grpc_server_started port={port}")
        return port

    async def stop(self) -> None:
        if self._server is not None:
            self.logger.info(f"正在关闭 gRPC 服务（宽限 {self.settings.shutdown_grace}s）...")
            await self._server.stop(self.settings.shutdown_grace)
            self._server = None
        self._restore_stdout()
        self.state = HostState.TERMINATED

    def _bind(self, server: grpc.aio.Server) -> int:
        host = self.settings.bind_host
        candidates = self._candidate_ports()
        for candidate in candidates:
            try:
                port = server.add_insecure_port(f"{host}:{candidate}")
            except RuntimeError as e:
                self.logger.debug(f"端口 {candidate} 绑定失败: {e}")
                continue
            if port:
                return port
        raise HostExit(1, f"无法在 {host} 上绑定端口（候选 {len(candidates)} 个）")

    def _candidate_ports(self) -> list[int]:
        """PLUGIN_MIN_PORT / PLUGIN_MAX_PORT 给出范围时依次尝试，否则用系统分配的临时端口"""
        try:
            low = int(self.env.get("PLUGIN_MIN_PORT", 0))
            high = int(self.env.get("PLUGIN_MAX_PORT", 0))
        except ValueError:
            self.logger.warning("PLUGIN_MIN_PORT / PLUGIN_MAX_PORT 不是整数，使用临时端口")
            return [0]
        if low > 0 and high >= low:
            return list(range(low, high + 1))
        return [0]

    def _send_handshake(self, port: int) -> None:
        out = self._out()
        out.write(format_handshake(self.settings, self.settings.bind_host, port) + "\n")
        out.flush()
        if self.stdout is None:
            # 握手之后 stdout 不再承载任何内容，stop() 时恢复
            self._saved_stdout = sys.stdout
            self._devnull = open(os.devnull, "w")
            sys.stdout = self._devnull

    def _restore_stdout(self) -> None:
        if self._devnull is None:
            return
        if sys.stdout is self._devnull:
            sys.stdout = self._saved_stdout
        self._devnull.close()
        self._devnull = None
        self._saved_stdout = None

    def _mark_streaming(self) -> None:
        self.state = HostState.STREAMING

    def _out(self) -> TextIO:
        return self.stdout if self.stdout is not None else sys.stdout
