"""
导出任务管理器 - 导出任务创建/查询/取消

职责：
1. 创建导出任务并分配ID，绑定报价单快照
2. 任务查询与列表
3. 取消排队中/运行中的任务

测试要点：
- test_create_job: 创建任务（快照与后续编辑隔离）
- test_cancel_job: 取消任务
- test_cancel_finished_job: 已结束任务不可取消
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path

from ..config import get_config
from ..interfaces import ExportFailed
from ..models import ExportJob, ExportStatus, Quotation

logger = logging.getLogger(__name__)


class ExportManager:
    """导出任务管理器（仅内存，不落盘）"""

    def __init__(self):
        self.config = get_config()
        self._jobs: dict[str, ExportJob] = {}

    def create_job(
        self,
        snapshot: Quotation,
        fmt: str | None = None,
        output_dir: Path | None = None,
    ) -> ExportJob:
        """创建导出任务"""
        fmt = (fmt or self.config.export.format).lower()
        if fmt not in ("xlsx", "pdf"):
            raise ExportFailed(f"不支持的导出格式: {fmt}")

        job = ExportJob(
            job_id=str(uuid.uuid4()),
            fmt=fmt,
            output_dir=Path(output_dir or self.config.get_export_dir()),
            snapshot=snapshot,
        )
        self._jobs[job.job_id] = job
        logger.info(f"[{job.job_id}] 导出任务已创建: {fmt}, 任务数 {snapshot.task_count}")
        return job

    def get_job(self, job_id: str) -> ExportJob | None:
        """获取任务"""
        return self._jobs.get(job_id)

    def cancel_job(self, job_id: str) -> bool:
        """取消任务"""
        job = self.get_job(job_id)
        if not job:
            return False

        if job.status in [ExportStatus.QUEUED, ExportStatus.RUNNING]:
            job.mark_cancelled()
            logger.info(f"[{job_id}] 导出任务已取消")
            return True

        return False

    def list_jobs(
        self,
        status: ExportStatus | None = None,
        limit: int = 100,
    ) -> list[ExportJob]:
        """列出任务"""
        jobs = list(self._jobs.values())

        if status:
            jobs = [j for j in jobs if j.status == status]

        # 按创建时间降序
        jobs.sort(key=lambda j: j.created_at, reverse=True)

        return jobs[:limit]
