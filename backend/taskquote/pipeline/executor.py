"""
流水线执行器 - 金额计算 → 分页排版 → 渲染/导出

职责：
1. 预览：对报价单快照执行计算、排版、屏幕渲染
2. 导出：按阶段执行并更新导出任务进度，支持阶段间取消
3. 分页一致性校验（不中断，写入flags）
4. 进度回调节流

测试要点：
- test_build_preview: 预览结果页数与排版一致
- test_execute_export: 导出成功 → SUCCEEDED + 产物路径
- test_execute_overflow: 排版溢出 → FAILED
- test_execute_cancelled: 已取消任务不再执行后续阶段
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from ..config import RateCard, get_config, load_rate_card
from ..doc_gen import DocumentRenderer, EstimationEngine, PaginationLayoutEngine
from ..interfaces import (
    ExportFailed,
    IDocumentRenderer,
    IEstimationEngine,
    ILayoutEngine,
    TaskQuoteError,
)
from ..models import (
    ExportJob,
    ExportStatus,
    Page,
    PageCapacity,
    PreviewDocument,
    Quotation,
    QuotationWithTotals,
    check_page_consistency,
)
from .stages import EXPORT_STAGES, PipelineStage, StageEnum

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreviewResult:
    """一次预览刷新的结果"""
    totals: QuotationWithTotals
    pages: tuple[Page, ...]
    document: PreviewDocument
    flags: list[str] = field(default_factory=list)

    @property
    def page_total(self) -> int:
        return len(self.pages)


class QuotationPipeline:
    """流水线执行器"""

    def __init__(
        self,
        rate_card: RateCard | None = None,
        capacity: PageCapacity | None = None,
        estimator: IEstimationEngine | None = None,
        layout_engine: ILayoutEngine | None = None,
        renderer: IDocumentRenderer | None = None,
        progress_cb: Callable[[ExportJob], None] | None = None,
    ):
        self.config = get_config()
        self.rate_card = rate_card or load_rate_card(self.config.rate_card_path)
        self.capacity = capacity or PageCapacity.from_config(self.config.layout)

        self.estimator = estimator or EstimationEngine(self.rate_card)
        self.layout_engine = layout_engine or PaginationLayoutEngine()
        self.renderer = renderer or DocumentRenderer(
            self.rate_card,
            wrap_width=self.capacity.wrap_width,
            filename_prefix=self.config.export.filename_prefix,
        )

        self.progress_cb = progress_cb
        self._last_progress_write = 0.0
        self._progress_interval_sec = 0.5

    # ------------------------------------------------------------------
    # 预览
    # ------------------------------------------------------------------

    def build_preview(self, quotation: Quotation) -> PreviewResult:
        """计算 → 排版 → 屏幕渲染（排版溢出时抛出 LayoutOverflowError）"""
        totals = self.estimator.estimate(quotation)
        pages = self.layout_engine.layout(totals, self.capacity)
        document = self.renderer.render_preview(pages, quotation.header)

        flags = check_page_consistency(pages)
        for flag in flags:
            logger.warning(f"预览分页校验: {flag}")

        return PreviewResult(totals=totals, pages=pages, document=document, flags=flags)

    # ------------------------------------------------------------------
    # 导出
    # ------------------------------------------------------------------

    def execute(self, job: ExportJob) -> None:
        """执行导出流水线（只读取任务绑定的快照，已结束的任务不再执行）"""
        if job.is_finished:
            logger.info(f"[{job.job_id}] 导出任务已结束({job.status.value})，跳过执行")
            return

        job.mark_running()
        self._update_progress(job, message="导出开始", force=True)

        context: dict = {}
        try:
            for stage in EXPORT_STAGES:
                if job.status == ExportStatus.CANCELLED:
                    logger.info(f"[{job.job_id}] 导出在阶段 {stage.name} 前被取消")
                    self._update_progress(job, message="导出已取消", force=True)
                    return
                self._execute_stage(job, stage, context)

            if job.status == ExportStatus.CANCELLED:
                # 写文件期间被取消：丢弃产物
                context["artifact"].unlink(missing_ok=True)
                return
            job.page_total = len(context["pages"])
            job.mark_succeeded(context["artifact"])
            self._update_progress(job, message=f"导出完成: {job.artifact.name}", force=True)

        except TaskQuoteError as e:
            logger.error(f"[{job.job_id}] 导出失败: {e}")
            job.mark_failed(str(e))
            self._update_progress(job, message=f"导出失败: {e}", force=True)
            raise

        except Exception as e:
            logger.exception(f"导出流水线执行失败: {job.job_id}")
            job.mark_failed(str(e))
            self._update_progress(job, message=f"导出失败: {e}", force=True)
            raise ExportFailed(f"导出失败: {e}") from e

    def _execute_stage(self, job: ExportJob, stage: PipelineStage, context: dict) -> None:
        """执行单个阶段"""
        job.progress.stage = stage.name
        job.progress.percent = stage.progress_start
        logger.info(f"[{job.job_id}] 开始阶段: {stage.name}")
        self._update_progress(job, message=f"开始阶段: {stage.name}")

        try:
            if stage.name == StageEnum.ESTIMATE.value:
                context["totals"] = self.estimator.estimate(job.snapshot)

            elif stage.name == StageEnum.LAYOUT.value:
                pages = self.layout_engine.layout(context["totals"], self.capacity)
                for flag in check_page_consistency(pages):
                    job.add_flag(flag)
                context["pages"] = pages

            elif stage.name == StageEnum.EXPORT.value:
                totals: QuotationWithTotals = context["totals"]
                context["artifact"] = self.renderer.export(
                    context["pages"],
                    job.snapshot.header,
                    job.output_dir,
                    fmt=job.fmt,
                    type_summary=totals.type_summary,
                    proposal_price=totals.proposal_price,
                )

        except Exception:
            job.add_flag(f"阶段失败:{stage.name}")
            raise

        job.progress.percent = stage.progress_end
        self._update_progress(job, message=f"完成阶段: {stage.name}")

    def _update_progress(self, job: ExportJob, *, message: str | None = None, force: bool = False) -> None:
        if message is not None:
            job.progress.message = message
        if self.progress_cb is None:
            return
        now = time.monotonic()
        if force or (now - self._last_progress_write) >= self._progress_interval_sec:
            self.progress_cb(job)
            self._last_progress_write = now
