"""
预览控制器 - 编辑命令队列/预览刷新节流/导出

职责：
1. 编辑命令按到达顺序排队执行，每条命令生成新的报价单
2. 被拒绝的命令不改变报价单，以 CommandResult 返回错误
3. 连续编辑合并刷新：两次预览刷新间隔不小于 refresh_interval_sec
4. 导出前先执行完队列中的全部命令，并在请求时刻截取快照
5. 核心错误一律转为结果对象返回，不向调用方抛出

测试要点：
- test_coalesce_rapid_edits: 间隔内多次编辑只刷新一次
- test_stale_id_rejected: 失效ID → NotFoundError 结果，报价单不变
- test_export_includes_last_edit: 导出包含最后一次编辑
- test_export_snapshot_isolated: 导出请求后的编辑不影响快照
- test_cancel_export: 取消后不产生产物
"""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..config import get_config
from ..editor import EditCommand, TaskModel, apply_command, parse_command
from ..interfaces import (
    ExportFailed,
    LayoutOverflowError,
    NotFoundError,
    TaskQuoteError,
    ValidationError,
)
from ..models import ExportJob, Quotation
from .executor import PreviewResult, QuotationPipeline
from .export_manager import ExportManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """单条编辑命令的执行结果"""
    command: EditCommand | None
    ok: bool
    error: str | None = None
    error_type: str | None = None  # ValidationError / NotFoundError


class PreviewController:
    """预览控制器"""

    def __init__(
        self,
        quotation: Quotation | None = None,
        *,
        pipeline: QuotationPipeline | None = None,
        task_model: TaskModel | None = None,
        export_manager: ExportManager | None = None,
        refresh_interval_sec: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        on_preview: Callable[[PreviewResult], None] | None = None,
    ):
        config = get_config()
        self.pipeline = pipeline or QuotationPipeline()
        self.task_model = task_model or TaskModel(self.pipeline.rate_card)
        self.export_manager = export_manager or ExportManager()

        if refresh_interval_sec is None:
            refresh_interval_sec = config.preview.refresh_interval_sec
        self.refresh_interval_sec = refresh_interval_sec
        self._clock = clock
        self._on_preview = on_preview

        self._quotation = quotation or self.task_model.new_quotation()
        self._queue: deque[EditCommand] = deque()
        self._dirty = True
        self._last_refresh: float | None = None
        self._preview: PreviewResult | None = None

        self.refresh_count = 0
        self.last_error: str | None = None

    # === 状态 ===

    @property
    def quotation(self) -> Quotation:
        """当前报价单（已应用的命令）"""
        return self._quotation

    @property
    def preview(self) -> PreviewResult | None:
        """最近一次预览结果"""
        return self._preview

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def is_dirty(self) -> bool:
        """报价单已变化但预览尚未刷新"""
        return self._dirty

    # === 编辑命令 ===

    def enqueue(self, command: EditCommand | dict[str, Any]) -> CommandResult | None:
        """命令入队（格式错误的命令直接返回失败结果）"""
        if isinstance(command, dict):
            try:
                command = parse_command(command)
            except ValidationError as e:
                return CommandResult(command=None, ok=False, error=str(e), error_type="ValidationError")
        self._queue.append(command)
        return None

    def drain(self) -> list[CommandResult]:
        """按顺序执行队列中的全部命令"""
        results: list[CommandResult] = []
        while self._queue:
            command = self._queue.popleft()
            try:
                self._quotation = apply_command(self.task_model, self._quotation, command)
            except (ValidationError, NotFoundError) as e:
                logger.info(f"编辑命令被拒绝: {command.kind}: {e}")
                results.append(
                    CommandResult(command=command, ok=False, error=str(e), error_type=type(e).__name__)
                )
                continue
            self._dirty = True
            results.append(CommandResult(command=command, ok=True))
        return results

    def submit(self, command: EditCommand | dict[str, Any]) -> CommandResult:
        """提交单条命令：执行并按节流规则刷新预览"""
        rejected = self.enqueue(command)
        if rejected is not None:
            return rejected
        results = self.drain()
        self.tick()
        return results[-1]

    # === 预览刷新 ===

    def tick(self) -> PreviewResult | None:
        """节流刷新：距上次刷新不足间隔时推迟，返回本次刷新的结果"""
        self.drain()
        if not self._dirty:
            return None
        now = self._clock()
        if self._last_refresh is not None and now - self._last_refresh < self.refresh_interval_sec:
            return None
        return self._refresh(now)

    def flush(self) -> PreviewResult | None:
        """立即刷新（忽略节流）"""
        self.drain()
        if self._dirty or self._preview is None:
            return self._refresh(self._clock())
        return self._preview

    def _refresh(self, now: float) -> PreviewResult | None:
        self._last_refresh = now
        self._dirty = False
        try:
            result = self.pipeline.build_preview(self._quotation)
        except LayoutOverflowError as e:
            # 保留上一次预览，提示用户缩短内容
            self.last_error = str(e)
            logger.warning(f"预览排版失败: {e}")
            return None
        except TaskQuoteError as e:
            self.last_error = str(e)
            logger.warning(f"预览刷新失败: {e}")
            return None

        self.last_error = None
        self._preview = result
        self.refresh_count += 1
        if self._on_preview:
            self._on_preview(result)
        return result

    # === 导出 ===

    def request_export(self, fmt: str | None = None, output_dir: Path | None = None) -> ExportJob | None:
        """创建导出任务（先执行完排队命令再截取快照）"""
        self.drain()
        try:
            return self.export_manager.create_job(self._quotation, fmt=fmt, output_dir=output_dir)
        except ExportFailed as e:
            self.last_error = str(e)
            logger.error(f"导出请求失败: {e}")
            return None

    def run_export(self, job_id: str) -> ExportJob | None:
        """执行导出任务，失败时任务状态为FAILED"""
        job = self.export_manager.get_job(job_id)
        if job is None:
            return None
        try:
            self.pipeline.execute(job)
        except TaskQuoteError as e:
            self.last_error = str(e)
        return job

    def export(self, fmt: str | None = None, output_dir: Path | None = None) -> ExportJob | None:
        """请求并立即执行导出"""
        job = self.request_export(fmt=fmt, output_dir=output_dir)
        if job is None:
            return None
        return self.run_export(job.job_id)

    def cancel_export(self, job_id: str) -> bool:
        return self.export_manager.cancel_job(job_id)

    def reset(self, quotation: Quotation | None = None) -> None:
        """放弃当前文档（取消未完成的导出）"""
        for job in self.export_manager.list_jobs():
            if not job.is_finished:
                self.export_manager.cancel_job(job.job_id)
        self._queue.clear()
        self._quotation = quotation or self.task_model.new_quotation()
        self._preview = None
        self._dirty = True
        self._last_refresh = None
        self.last_error = None
