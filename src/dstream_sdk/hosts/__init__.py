"""
传输宿主

- StdioProviderHost: 行分隔 JSON over stdin/stdout
- GrpcProviderHost: 本地 gRPC 握手协议
- run_provider / serve: 启动入口
"""

from .bootstrap import run_provider, serve
from .grpc_host import GrpcProviderHost, HostState, PluginService
from .request import ParsedRequest, RequestKind, parse_request
from .slot import ProviderSlot
from .stdio_host import StdioProviderHost
from .streaming import HostExit, LineTooLong, next_or_stop, pump_input, read_line_or_stop

__all__ = [
    "GrpcProviderHost",
    "HostExit",
    "HostState",
    "LineTooLong",
    "ParsedRequest",
    "PluginService",
    "ProviderSlot",
    "RequestKind",
    "StdioProviderHost",
    "next_or_stop",
    "parse_request",
    "pump_input",
    "read_line_or_stop",
    "run_provider",
    "serve",
]
