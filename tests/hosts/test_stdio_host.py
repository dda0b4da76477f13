"""
stdio 宿主单元测试

通过注入的 StreamReader 和 StringIO 驱动 StdioProviderHost，不启动子进程。

覆盖：
- 请求行缺失 / 空白 / 无法解析 -> 退出码 1
- run 命令：输入 Provider 写出数据行；输出 Provider 逐行消费 stdin
- 生命周期命令：写出一行结果 JSON；非基础设施 Provider -> 退出码 1
- 未知命令按 run 处理
- 停止信号
"""

import asyncio
import json
from typing import AsyncIterator, Sequence

import pytest

from dstream_sdk.hosts.stdio_host import StdioProviderHost
from dstream_sdk.hosts.streaming import STDIN_LINE_LIMIT
from dstream_sdk.modules.config.schemas.base import BaseProviderConfig
from dstream_sdk.modules.types.base.envelope import Envelope
from dstream_sdk.modules.types.base.infrastructure import (
    InfrastructureProvider,
    InfrastructureResult,
    InfrastructureStatus,
)
from dstream_sdk.modules.types.base.input_provider import InputProvider
from dstream_sdk.modules.types.base.output_provider import OutputProvider
from dstream_sdk.modules.types.base.provider_base import ProviderBase, sleep_or_stop

# =============================================================================
# 测试用 Provider
# =============================================================================


class EchoConfig(BaseProviderConfig):
    count: int = 2
    push: bool = False
    forever: bool = False


class EchoInputProvider(ProviderBase[EchoConfig], InputProvider):
    instances = 0

    def __init__(self):
        super().__init__()
        type(self).instances += 1

    async def generate(self, stop_event: asyncio.Event) -> AsyncIterator[Envelope]:
        i = 0
        while self.config.forever or i < self.config.count:
            i += 1
            if self.config.push:
                # 通过上下文直接推送
                await self.emit({"n": i}, {"seq": i, "type": "push"})
                continue
            yield Envelope(payload={"n": i}, meta={"seq": i, "source": "echo"})
            if self.config.forever and await sleep_or_stop(0.01, stop_event):
                return


class SinkConfig(BaseProviderConfig):
    fail_on: int = -1


class SinkOutputProvider(ProviderBase[SinkConfig], OutputProvider, InfrastructureProvider):
    def __init__(self):
        super().__init__()
        self.received: list[Envelope] = []

    async def write(self, batch: Sequence[Envelope], stop_event: asyncio.Event) -> None:
        for envelope in batch:
            if envelope.payload == self.config.fail_on:
                raise ValueError(f"cannot write {envelope.payload}")
            self.received.append(envelope)

    async def on_plan(self):
        return ["sink:WILL_CREATE"], {"fail_on": self.config.fail_on}


class PlainProvider(ProviderBase[EchoConfig]):
    """既不是输入也不是输出"""


class BrokenProvider(ProviderBase[EchoConfig], InputProvider):
    def on_initialized(self) -> None:
        raise RuntimeError("init exploded")

    async def generate(self, stop_event):
        yield Envelope(payload=1)


def _host(provider_cls, config_cls, reader, writer, stop_event=None):
    return StdioProviderHost(provider_cls, config_cls, reader=reader, writer=writer, stop_event=stop_event)


def _lines(buffer) -> list[str]:
    return buffer.getvalue().splitlines()


# =============================================================================
# 请求行
# =============================================================================


@pytest.mark.asyncio
async def test_no_request_exits_1(make_reader, stdout_buffer, log_messages):
    host = _host(EchoInputProvider, EchoConfig, make_reader([]), stdout_buffer)

    assert await host.run() == 1
    assert stdout_buffer.getvalue() == ""
    assert any("No configuration received" in m for m in log_messages)


@pytest.mark.asyncio
async def test_blank_request_exits_1(make_reader, stdout_buffer):
    host = _host(EchoInputProvider, EchoConfig, make_reader(["   "]), stdout_buffer)
    assert await host.run() == 1


@pytest.mark.asyncio
async def test_unparseable_request_exits_1(make_reader, stdout_buffer):
    host = _host(EchoInputProvider, EchoConfig, make_reader(["{not json"]), stdout_buffer)

    assert await host.run() == 1
    assert host.provider is None
    assert stdout_buffer.getvalue() == ""


@pytest.mark.asyncio
async def test_stop_before_request_exits_0(make_reader, stdout_buffer):
    stop_event = asyncio.Event()
    host = _host(EchoInputProvider, EchoConfig, make_reader([], eof=False), stdout_buffer, stop_event)
    asyncio.get_running_loop().call_later(0.02, stop_event.set)

    assert await asyncio.wait_for(host.run(), timeout=2) == 0
    assert host.provider is None


@pytest.mark.asyncio
async def test_provider_initialization_failure_exits_1(make_reader, stdout_buffer, log_messages):
    host = _host(BrokenProvider, EchoConfig, make_reader(["{}"]), stdout_buffer)

    assert await host.run() == 1
    assert any("init exploded" in m for m in log_messages)


# =============================================================================
# run：输入 Provider
# =============================================================================


@pytest.mark.asyncio
async def test_input_run_writes_wire_lines(make_reader, stdout_buffer):
    host = _host(EchoInputProvider, EchoConfig, make_reader(['{"command": "run", "config": {"count": 3}}']), stdout_buffer)

    assert await host.run() == 0

    lines = [json.loads(line) for line in _lines(stdout_buffer)]
    assert [line["metadata"]["seq"] for line in lines] == [1, 2, 3]
    assert lines[0] == {"source": "echo", "type": "", "data": {"n": 1}, "metadata": {"seq": 1, "source": "echo"}}


@pytest.mark.asyncio
async def test_bare_config_runs(make_reader, stdout_buffer):
    host = _host(EchoInputProvider, EchoConfig, make_reader(['{"count": 1}']), stdout_buffer)

    assert await host.run() == 0
    assert len(_lines(stdout_buffer)) == 1


@pytest.mark.asyncio
async def test_input_emit_via_context_writes_lines(make_reader, stdout_buffer):
    host = _host(EchoInputProvider, EchoConfig, make_reader(['{"count": 2, "push": true}']), stdout_buffer)

    assert await host.run() == 0

    lines = [json.loads(line) for line in _lines(stdout_buffer)]
    assert [line["type"] for line in lines] == ["push", "push"]


@pytest.mark.asyncio
async def test_unknown_command_falls_back_to_run(make_reader, stdout_buffer, log_messages):
    host = _host(EchoInputProvider, EchoConfig, make_reader(['{"command": "apply", "config": {"count": 1}}']), stdout_buffer)

    assert await host.run() == 0
    assert len(_lines(stdout_buffer)) == 1
    assert any(m.startswith("WARNING|") and "apply" in m for m in log_messages)


@pytest.mark.asyncio
async def test_input_run_stops_on_signal(make_reader, stdout_buffer):
    stop_event = asyncio.Event()
    host = _host(EchoInputProvider, EchoConfig, make_reader(['{"forever": true}']), stdout_buffer, stop_event)
    asyncio.get_running_loop().call_later(0.05, stop_event.set)

    assert await asyncio.wait_for(host.run(), timeout=2) == 0

    seqs = [json.loads(line)["metadata"]["seq"] for line in _lines(stdout_buffer)]
    assert seqs == list(range(1, len(seqs) + 1))


@pytest.mark.asyncio
async def test_provider_constructed_once(make_reader, stdout_buffer):
    EchoInputProvider.instances = 0
    host = _host(EchoInputProvider, EchoConfig, make_reader(['{"count": 1}']), stdout_buffer)

    await host.run()

    assert EchoInputProvider.instances == 1
    assert host.provider.config.count == 1


# =============================================================================
# run：输出 Provider
# =============================================================================


@pytest.mark.asyncio
async def test_output_run_consumes_lines(make_reader, stdout_buffer, log_messages):
    lines = [
        '{"command": "run", "config": {"failOn": 3}}',
        '{"data": 1, "metadata": {"seq": 1}}',
        "this is not json",
        "",
        '{"data": 2}',
        '{"data": 3}',
        "[1, 2]",
        '{"data": 4, "metadata": {"seq": 4}}',
    ]
    host = _host(SinkOutputProvider, SinkConfig, make_reader(lines), stdout_buffer)

    assert await host.run() == 0

    provider = host.provider
    assert [e.payload for e in provider.received] == [1, 2, 4]
    assert provider.received[0].meta == {"seq": 1}
    assert provider.received[1].meta == {}
    assert host.processed_count == 3
    assert stdout_buffer.getvalue() == ""

    assert sum("Failed to parse JSON" in m for m in log_messages) == 3
    assert any("Error processing message: cannot write 3" in m for m in log_messages)
    assert any("Processed 3 messages. Stream ended." in m for m in log_messages)


@pytest.mark.asyncio
async def test_output_run_stops_on_signal(make_reader, stdout_buffer):
    stop_event = asyncio.Event()
    reader = make_reader(["{}", '{"data": 1}'], eof=False)
    host = _host(SinkOutputProvider, SinkConfig, reader, stdout_buffer, stop_event)
    asyncio.get_running_loop().call_later(0.05, stop_event.set)

    assert await asyncio.wait_for(host.run(), timeout=2) == 0
    assert host.processed_count == 1


@pytest.mark.asyncio
async def test_neither_capability_exits_1(make_reader, stdout_buffer):
    host = _host(PlainProvider, EchoConfig, make_reader(["{}"]), stdout_buffer)
    assert await host.run() == 1


# =============================================================================
# 生命周期命令
# =============================================================================


@pytest.mark.asyncio
async def test_lifecycle_writes_single_result_line(make_reader, stdout_buffer, log_messages):
    host = _host(SinkOutputProvider, SinkConfig, make_reader(['{"command": "plan", "config": {"failOn": 7}}']), stdout_buffer)

    assert await host.run() == 0

    lines = _lines(stdout_buffer)
    assert len(lines) == 1
    assert json.loads(lines[0]) == {
        "status": "Success",
        "resources": ["sink:WILL_CREATE"],
        "metadata": {"fail_on": 7},
        "message": "Infrastructure plan generated successfully",
        "error": None,
    }
    assert any("Infrastructure operation result: Success" in m for m in log_messages)
    assert any("Resources: sink:WILL_CREATE" in m for m in log_messages)


@pytest.mark.asyncio
@pytest.mark.parametrize("command", ["init", "destroy", "status"])
async def test_default_lifecycle_hooks_succeed(command, make_reader, stdout_buffer):
    request = json.dumps({"command": command})
    host = _host(SinkOutputProvider, SinkConfig, make_reader([request]), stdout_buffer)

    assert await host.run() == 0

    result = json.loads(stdout_buffer.getvalue())
    assert result["status"] == "Success"
    assert result["resources"] == []


@pytest.mark.asyncio
async def test_lifecycle_on_non_infrastructure_provider_exits_1(make_reader, stdout_buffer):
    host = _host(EchoInputProvider, EchoConfig, make_reader(['{"command": "init"}']), stdout_buffer)

    assert await host.run() == 1
    assert stdout_buffer.getvalue() == ""


class FailingSinkProvider(SinkOutputProvider):
    async def on_initialize(self):
        raise ConnectionError("broker unreachable")


@pytest.mark.asyncio
async def test_failed_hook_writes_failed_result_and_exits_0(make_reader, stdout_buffer, log_messages):
    host = _host(FailingSinkProvider, SinkConfig, make_reader(['{"command": "init"}']), stdout_buffer)

    assert await host.run() == 0

    result = json.loads(stdout_buffer.getvalue())
    assert result["status"] == "Failed"
    assert result["error"] == "broker unreachable"
    assert result["resources"] == []
    assert any(m.startswith("ERROR|") and "Error: broker unreachable" in m for m in log_messages)


class UnserializableStatusProvider(SinkOutputProvider):
    async def on_get_status(self):
        return ["r1"], {"checked_at": object()}


class BadResultProvider(SinkOutputProvider):
    async def get_infrastructure_status(self):
        return InfrastructureResult(status=InfrastructureStatus.SUCCESS, metadata={"handle": object()})


@pytest.mark.asyncio
async def test_unserializable_hook_metadata_yields_failed_result(make_reader, stdout_buffer):
    host = _host(UnserializableStatusProvider, SinkConfig, make_reader(['{"command": "status"}']), stdout_buffer)

    assert await host.run() == 0

    lines = _lines(stdout_buffer)
    assert len(lines) == 1
    result = json.loads(lines[0])
    assert result["status"] == "Failed"
    assert result["resources"] == []
    assert result["error"]


@pytest.mark.asyncio
async def test_unserializable_result_written_as_failed(make_reader, stdout_buffer, log_messages):
    host = _host(BadResultProvider, SinkConfig, make_reader(['{"command": "status"}']), stdout_buffer)

    assert await host.run() == 0

    result = json.loads(stdout_buffer.getvalue())
    assert result["status"] == "Failed"
    assert result["message"] == "Infrastructure result could not be serialized"
    assert any(m.startswith("ERROR|") and "结果无法序列化" in m for m in log_messages)


# =============================================================================
# 超长行
# =============================================================================


@pytest.mark.asyncio
async def test_output_run_accepts_lines_over_64k(make_reader, stdout_buffer):
    big = json.dumps({"data": "x" * 100_000})
    lines = ['{"command": "run"}', '{"data": 0}', big, '{"data": 2}']
    host = _host(SinkOutputProvider, SinkConfig, make_reader(lines, limit=STDIN_LINE_LIMIT), stdout_buffer)

    assert await host.run() == 0

    assert host.processed_count == 3
    assert len(host.provider.received[1].payload) == 100_000


@pytest.mark.asyncio
async def test_output_run_drops_line_over_limit_and_continues(make_reader, stdout_buffer, log_messages):
    lines = ['{"command": "run"}', '{"data": 0}', json.dumps({"data": "x" * 500}), '{"data": 2}']
    host = _host(SinkOutputProvider, SinkConfig, make_reader(lines, limit=256), stdout_buffer)

    assert await host.run() == 0

    assert [e.payload for e in host.provider.received] == [0, 2]
    assert host.processed_count == 2
    assert any(m.startswith("WARNING|") and "Dropped oversized line" in m for m in log_messages)


@pytest.mark.asyncio
async def test_oversized_request_line_exits_1(make_reader, stdout_buffer, log_messages):
    request = json.dumps({"config": {"count": 1}, "pad": "x" * 500})
    host = _host(EchoInputProvider, EchoConfig, make_reader([request], limit=256), stdout_buffer)

    assert await host.run() == 1
    assert stdout_buffer.getvalue() == ""
    assert any("请求行过长" in m for m in log_messages)
