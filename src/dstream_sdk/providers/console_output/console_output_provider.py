"""
Console Output Provider

把收到的 Envelope 按配置的格式打印到 stdout，同时演示基础设施生命周期（init/destroy/status/plan）。
"""

import asyncio
import json
import sys
from datetime import datetime, timezone
from typing import Any, Optional, Sequence, TextIO

from pydantic import Field

from dstream_sdk.modules.config.schemas.base import BaseProviderConfig
from dstream_sdk.modules.types.base.envelope import Envelope
from dstream_sdk.modules.types.base.infrastructure import InfrastructureProvider
from dstream_sdk.modules.types.base.output_provider import OutputProvider
from dstream_sdk.modules.types.base.provider_base import ProviderBase


class ConsoleOutputProvider(
    ProviderBase["ConsoleOutputProvider.ConfigSchema"],
    InfrastructureProvider,
    OutputProvider,
):
    """
    控制台输出Provider

    输出格式：
    - simple: Message #N: <payload JSON>
    - json: {"payload": ..., "meta": ...}
    - structured: 分隔行 + 缩进的完整 Envelope
    未知格式按 simple 处理。
    """

    class ConfigSchema(BaseProviderConfig):
        """控制台输出Provider配置"""

        output_format: str = Field(default="simple", description="输出格式：simple / json / structured")
        resource_count: int = Field(default=3, ge=0, description="演示用的基础设施资源数量")

    def __init__(self, stream: Optional[TextIO] = None):
        super().__init__()
        self._stream = stream
        self.message_count = 0

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    # ---------- 输出 ----------

    async def write(self, batch: Sequence[Envelope], stop_event: asyncio.Event) -> None:
        self.logger.debug(
            f"Processing batch of {len(batch)} envelopes with format '{self.config.output_format}'"
        )
        for envelope in batch:
            if stop_event.is_set():
                break
            self.message_count += 1
            self._write_formatted(envelope, self.message_count)
        self.stream.flush()

    def _write_formatted(self, envelope: Envelope, number: int) -> None:
        output_format = (self.config.output_format or "simple").lower()

        if output_format == "json":
            self.stream.write(_dumps({"payload": envelope.payload, "meta": envelope.meta}) + "\n")
        elif output_format == "structured":
            self.stream.write(f"--- Message #{number} ---\n")
            self.stream.write(_dumps(envelope.model_dump(mode="json"), indent=2) + "\n")
        else:
            self.stream.write(f"Message #{number}: {_dumps(envelope.payload)}\n")

    # ---------- 基础设施生命周期 ----------

    async def on_initialize(self) -> list[str]:
        self.logger.info("Running 'init' - Creating demo infrastructure for console output provider...")
        resources = self._resources("console_log_target:stdout", "console_error_target:stderr")
        self.logger.info(f"Infrastructure initialized! Created {self.config.resource_count} demo resources.")
        return resources

    async def on_destroy(self) -> list[str]:
        self.logger.info("Running 'destroy' - Tearing down demo infrastructure for console output provider...")
        resources = self._resources("console_log_target:stdout", "console_error_target:stderr")
        self.logger.info(f"All {self.config.resource_count} demo infrastructure resources destroyed.")
        return resources

    async def on_get_status(self) -> tuple[list[str], Optional[dict[str, Any]]]:
        self.logger.info("Running 'status' - Checking console output provider infrastructure...")
        resources = self._resources("console_log_target:HEALTHY", "console_error_target:HEALTHY")
        metadata = {
            "last_checked": datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC"),
            "output_format": self.config.output_format,
            "console_available": "stdout+stderr ready",
        }
        self.logger.info(f"Status: {self.config.resource_count} demo resources are healthy and running.")
        return resources, metadata

    async def on_plan(self) -> tuple[list[str], Optional[dict[str, Any]]]:
        self.logger.info("Running 'plan' - Planning infrastructure changes for console output provider...")
        count = self.config.resource_count
        resources = self._resources("console_log_target:WILL_CREATE", "console_error_target:WILL_CREATE")
        changes = {
            "resources_to_create": count,
            "resources_to_change": 0,
            "resources_to_destroy": 0,
            "output_format": self.config.output_format,
            "estimated_cost": "$0.00/month (console is free!)",
        }
        self.logger.info(f"Plan: Will create {count} demo resources (+{count} to add, 0 to change, 0 to destroy)")
        return resources, changes

    def _resources(self, *targets: str) -> list[str]:
        return [*targets, f"demo_resource_count:{self.config.resource_count}"]


def _dumps(value: Any, indent: Optional[int] = None) -> str:
    return json.dumps(value, ensure_ascii=False, default=str, indent=indent)


ConsoleConfig = ConsoleOutputProvider.ConfigSchema
