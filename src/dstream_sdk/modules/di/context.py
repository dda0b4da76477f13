"""Provider 运行时上下文 - 宿主注入给 Provider 的依赖"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable

if TYPE_CHECKING:
    from dstream_sdk.modules.types.base.envelope import Envelope

EmitCallback = Callable[["Envelope"], Awaitable[None]]


async def _discard(envelope: "Envelope") -> None:
    return None


@dataclass(frozen=True)
class ProviderContext:
    """所有 Provider 的运行时上下文（不可变）

    由传输层在初始化 Provider 时构造：
    - logger: 绑定了 Provider 名称的 loguru logger，只写旁路通道
    - emit: 把 Envelope 交给下游的回调（gRPC 下默认记录日志，可接输出 Provider）
    """

    provider_name: str
    logger: Any
    emit: EmitCallback = field(default=_discard)
