"""
数据流驱动与取消

两种传输共用的循环原语：
- next_or_stop: 拉取下一条数据，与停止信号赛跑
- read_line_or_stop: 读取下一行输入，与停止信号赛跑
- pump_input: 把输入 Provider 的数据流逐条交给回调，直到耗尽或停止

所有阻塞点（Provider 拉取、stdin 读取）都与同一个 stop_event 竞争，
停止信号到达时挂起中的操作会被取消，而不是等它自己返回。
"""

import asyncio
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, TypeVar

from dstream_sdk.modules.logging import get_logger
from dstream_sdk.modules.types.base.envelope import Envelope
from dstream_sdk.modules.types.base.input_provider import InputProvider

logger = get_logger("Streaming")

T = TypeVar("T")

_EXHAUSTED = object()

# stdin 单行上限（asyncio.StreamReader 默认只有 64 KiB）
STDIN_LINE_LIMIT = 16 * 1024 * 1024


class HostExit(Exception):
    """
    宿主退出信号

    在宿主内部抛出，由 bootstrap 转换为进程退出码，
    这样宿主本身不直接调用 sys.exit，便于测试。
    """

    def __init__(self, code: int, reason: str = ""):
        super().__init__(reason or f"exit code {code}")
        self.code = code
        self.reason = reason


class LineTooLong(Exception):
    """单行输入超过 StreamReader 的行上限，该行已被丢弃"""


async def _race(awaitable: Awaitable[T], stop_event: asyncio.Event) -> tuple[bool, Optional[T]]:
    """
    让 awaitable 与停止信号赛跑

    Returns:
        (stopped, result)：stopped 为 True 时 awaitable 已被取消，result 为 None
    """
    if stop_event.is_set():
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        return True, None

    work = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(stop_event.wait())
    try:
        await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        # 外层任务被取消（如 RPC 被客户端取消）：先收拾挂起的拉取再向上传播
        waiter.cancel()
        work.cancel()
        await _reap(work, propagate=False)
        raise

    if not waiter.done():
        waiter.cancel()

    # 同时完成时以数据为准，停止信号在下一次迭代边界生效
    if work.done():
        return False, work.result()

    work.cancel()
    await _reap(work)
    return True, None


async def _reap(task: asyncio.Future, propagate: bool = True) -> None:
    """等待被取消的任务真正结束，让生成器的 finally 有机会执行"""
    await asyncio.wait({task})
    if task.cancelled():
        return
    error = task.exception()
    if error is not None and propagate:
        raise error


async def _pull(iterator: AsyncIterator[T]) -> Any:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return _EXHAUSTED


async def next_or_stop(iterator: AsyncIterator[T], stop_event: asyncio.Event) -> Optional[T]:
    """
    拉取下一条数据

    Returns:
        下一条数据；数据流耗尽或收到停止信号时返回 None
    """
    stopped, item = await _race(_pull(iterator), stop_event)
    if stopped or item is _EXHAUSTED:
        return None
    return item


async def read_line_or_stop(reader: asyncio.StreamReader, stop_event: asyncio.Event) -> Optional[str]:
    """
    读取一行文本（去掉行尾换行符）

    Returns:
        读到的行（空行返回 ""）；EOF 或收到停止信号时返回 None

    Raises:
        LineTooLong: 行超过 reader 的上限；超长部分已从缓冲区移除，可以继续读取下一行
    """
    try:
        stopped, raw = await _race(reader.readline(), stop_event)
    except ValueError as e:
        # readline() 把 LimitOverrunError 转换为 ValueError
        raise LineTooLong(str(e)) from e
    if stopped or not raw:
        return None
    return raw.decode("utf-8", errors="replace").rstrip("\r\n")


async def pump_input(
    provider: InputProvider,
    stop_event: asyncio.Event,
    on_envelope: Callable[[Envelope], Awaitable[None]],
) -> int:
    """
    驱动输入 Provider 的数据流

    严格按产出顺序逐条调用 on_envelope，同一时间只有一条在途数据。
    on_envelope 抛出的异常会中止循环并向上传播。

    Returns:
        已交付的 Envelope 数量
    """
    delivered = 0
    stream = provider.stream(stop_event)
    try:
        while not stop_event.is_set():
            envelope = await next_or_stop(stream, stop_event)
            if envelope is None:
                break
            await on_envelope(envelope)
            delivered += 1
    finally:
        await stream.aclose()

    if stop_event.is_set():
        logger.info(f"收到停止信号，输入流已停止（已交付 {delivered} 条）")
    else:
        logger.debug(f"输入流已耗尽（已交付 {delivered} 条）")
    return delivered
