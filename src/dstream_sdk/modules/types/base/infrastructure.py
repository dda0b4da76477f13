"""
基础设施生命周期扩展

Provider 可选实现的能力：init / destroy / status / plan 四个命令，
用于创建、销毁、检查、预览外部资源（队列、主题等）。

这不是严格的状态机，而是一张分发表：四个操作相互独立，可重复调用，
每次调用都产生一个新的 InfrastructureResult。
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from dstream_sdk.modules.logging import get_logger


class InfrastructureStatus(str, Enum):
    """基础设施操作结果状态"""

    SUCCESS = "Success"
    FAILED = "Failed"
    UNKNOWN = "Unknown"


class InfrastructureResult(BaseModel):
    """
    基础设施操作结果

    每次生命周期命令都恰好产生一个，立即序列化到响应通道，不持久化。

    Attributes:
        status: 操作状态
        resources: 资源标识列表（失败时为空）
        metadata: 附加信息（status/plan 使用）
        message: 人类可读的摘要
        error: 失败原因
    """

    status: InfrastructureStatus = InfrastructureStatus.UNKNOWN
    resources: list[str] = Field(default_factory=list)
    metadata: Optional[dict[str, Any]] = None
    message: Optional[str] = None
    error: Optional[str] = None

    def to_wire(self) -> dict[str, Any]:
        """线上格式：所有字段都输出，空值为 null"""
        return self.model_dump(mode="json")

    def summary(self) -> str:
        if self.message:
            return f"{self.status.value} - {self.message}"
        return self.status.value


LIFECYCLE_COMMANDS = ("init", "destroy", "status", "plan")


class InfrastructureProvider:
    """
    基础设施生命周期能力（与 ProviderBase 组合使用）

    子类只需重写 on_initialize / on_destroy / on_get_status / on_plan 中需要的部分；
    未重写的钩子返回空资源列表，因此未实现生命周期的 Provider 对四个命令都是空操作。

    每个公开操作都会：
    1. 在旁路通道记录开始
    2. 调用对应钩子
    3. 成功时包装为 status=Success
    4. 钩子抛出异常时返回 status=Failed，error 为异常信息，不含资源
    """

    async def initialize_infrastructure(self) -> InfrastructureResult:
        """创建基础设施资源"""
        return await self._run_operation(
            "init",
            "初始化基础设施",
            self.on_initialize,
            "Infrastructure initialized successfully",
            "Infrastructure initialization failed",
        )

    async def destroy_infrastructure(self) -> InfrastructureResult:
        """销毁基础设施资源"""
        return await self._run_operation(
            "destroy",
            "销毁基础设施",
            self.on_destroy,
            "Infrastructure destroyed successfully",
            "Infrastructure destruction failed",
        )

    async def get_infrastructure_status(self) -> InfrastructureResult:
        """检查基础设施资源状态"""
        return await self._run_operation(
            "status",
            "检查基础设施状态",
            self.on_get_status,
            "Infrastructure status retrieved successfully",
            "Infrastructure status check failed",
        )

    async def plan_infrastructure(self) -> InfrastructureResult:
        """预览基础设施变更（类似 terraform plan）"""
        return await self._run_operation(
            "plan",
            "规划基础设施变更",
            self.on_plan,
            "Infrastructure plan generated successfully",
            "Infrastructure planning failed",
        )

    # ---------- 子类重写的钩子 ----------

    async def on_initialize(self) -> list[str]:
        return []

    async def on_destroy(self) -> list[str]:
        return []

    async def on_get_status(self) -> tuple[list[str], Optional[dict[str, Any]]]:
        return [], None

    async def on_plan(self) -> tuple[list[str], Optional[dict[str, Any]]]:
        return [], None

    # ---------- 内部 ----------

    async def _run_operation(self, command, label, hook, success_message, failure_message):
        logger = get_logger(type(self).__name__)
        logger.info(f"[{command}] 开始{label}...")
        try:
            resources, metadata = _split_outcome(await hook())
            result = InfrastructureResult(
                status=InfrastructureStatus.SUCCESS,
                resources=[str(r) for r in (resources or [])],
                metadata=dict(metadata) if metadata is not None else None,
                message=success_message,
            )
            # 钩子返回的 metadata 必须能写成线上格式
            result.to_wire()
        except Exception as e:
            logger.error(f"[{command}] {label}失败: {e}")
            return failed_result(e, failure_message)

        logger.info(f"[{command}] {label}完成")
        return result


def failed_result(error: BaseException, message: Optional[str] = None) -> InfrastructureResult:
    """把异常包装为 status=Failed 的结果（不含资源）"""
    return InfrastructureResult(
        status=InfrastructureStatus.FAILED,
        error=str(error) or type(error).__name__,
        message=message,
    )


def _split_outcome(outcome: Any) -> tuple[Any, Any]:
    """钩子返回值 -> (resources, metadata)"""
    if not isinstance(outcome, tuple):
        return outcome, None
    if len(outcome) != 2:
        raise ValueError(f"钩子应返回 (resources, metadata)，实际得到 {len(outcome)} 元组")
    return outcome


async def run_lifecycle_command(provider: InfrastructureProvider, command: str) -> InfrastructureResult:
    """
    按命令名分发到对应的生命周期操作

    Raises:
        ValueError: 未知命令
    """
    dispatch = {
        "init": provider.initialize_infrastructure,
        "destroy": provider.destroy_infrastructure,
        "status": provider.get_infrastructure_status,
        "plan": provider.plan_infrastructure,
    }
    operation = dispatch.get(command.lower())
    if operation is None:
        raise ValueError(f"未知的生命周期命令: {command}")
    return await operation()
