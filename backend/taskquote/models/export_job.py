"""
导出任务模型 - 定义导出请求的状态与生命周期

导出请求在创建时绑定报价单快照，之后的编辑不会影响它
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from .quotation import Quotation


class ExportStatus(str, Enum):
    """导出状态枚举"""
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ExportProgress(BaseModel):
    """导出进度"""
    stage: str = "INIT"
    percent: int = 0
    message: str = ""


class ExportJob(BaseModel):
    """导出任务实体"""
    job_id: str = Field(..., description="UUID")
    fmt: str = "xlsx"
    output_dir: Path

    # 请求时刻的报价单快照
    snapshot: Quotation

    # 状态
    status: ExportStatus = ExportStatus.QUEUED
    progress: ExportProgress = Field(default_factory=ExportProgress)

    # 结果
    artifact: Path | None = None
    page_total: int | None = None
    flags: list[str] = Field(default_factory=list, description="告警标记")
    errors: list[str] = Field(default_factory=list, description="错误信息")

    # 时间戳
    created_at: datetime = Field(default_factory=datetime.now)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    model_config = {"arbitrary_types_allowed": True}

    @property
    def is_finished(self) -> bool:
        return self.status in (ExportStatus.SUCCEEDED, ExportStatus.FAILED, ExportStatus.CANCELLED)

    def mark_running(self, stage: str = "ESTIMATE") -> None:
        """标记为运行中"""
        self.status = ExportStatus.RUNNING
        self.started_at = datetime.now()
        self.progress.stage = stage

    def mark_succeeded(self, artifact: Path) -> None:
        """标记为成功"""
        self.status = ExportStatus.SUCCEEDED
        self.finished_at = datetime.now()
        self.artifact = artifact
        self.progress.percent = 100

    def mark_failed(self, error: str) -> None:
        """标记为失败"""
        self.status = ExportStatus.FAILED
        self.finished_at = datetime.now()
        self.errors.append(error)

    def mark_cancelled(self) -> None:
        """标记为已取消"""
        self.status = ExportStatus.CANCELLED
        self.finished_at = datetime.now()

    def add_flag(self, flag: str) -> None:
        """添加告警标记（不中断）"""
        if flag not in self.flags:
            self.flags.append(flag)
