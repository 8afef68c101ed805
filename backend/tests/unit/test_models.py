"""
数据模型单元测试

每个模块完成后必须运行：pytest tests/unit/test_models.py -v
"""

from decimal import Decimal
from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

from taskquote.models import (
    Category,
    ExportJob,
    ExportStatus,
    HistoryItem,
    MAX_QUANTITY,
    MAX_UNIT_RATE,
    Page,
    PageCapacity,
    PageRow,
    Quotation,
    QuotationHeader,
    RowKind,
    Task,
    check_page_consistency,
)


class TestTask:
    """任务测试"""

    def test_line_total(self):
        """测试行金额计算"""
        task = Task(quantity=Decimal("2.5"), unit_rate=Decimal("40000"))
        assert task.line_total == Decimal("100000")

    def test_negative_quantity_rejected(self):
        """测试负数数量被拒绝"""
        with pytest.raises(PydanticValidationError):
            Task(quantity=Decimal("-1"), unit_rate=Decimal("1"))

    def test_frozen(self):
        """测试不可变"""
        task = Task(name="a")
        with pytest.raises(PydanticValidationError):
            task.name = "b"

    def test_quantity_and_rate_bounds(self):
        """测试数量/单价上限（超出Decimal默认精度的金额在建模时即被拒绝）"""
        with pytest.raises(PydanticValidationError):
            Task(quantity=Decimal("1e30"), unit_rate=Decimal("1"))
        with pytest.raises(PydanticValidationError):
            Task(quantity=Decimal("1"), unit_rate=MAX_UNIT_RATE * 10)
        assert Task(quantity=MAX_QUANTITY, unit_rate=MAX_UNIT_RATE).line_total == MAX_QUANTITY * MAX_UNIT_RATE

    def test_page_type_and_grade_exclusive(self):
        """测试任务类型与人员等级互斥"""
        with pytest.raises(PydanticValidationError):
            Task(page_type="主页", grade="高级")
        assert Task(grade="高级").grade == "高级"


class TestCategory:
    """分类测试"""

    def test_subtotal(self, sample_quotation: Quotation):
        """测试小计 = 行金额之和"""
        assert sample_quotation.categories[0].subtotal == Decimal("250000")

    def test_empty_subtotal(self):
        """测试空分类小计为0"""
        category = Category(name="空")
        assert category.is_empty
        assert category.subtotal == 0


class TestQuotation:
    """报价单测试"""

    def test_duplicate_task_id_rejected(self):
        """测试任务ID重复"""
        with pytest.raises(PydanticValidationError):
            Quotation(
                categories=(
                    Category(tasks=(Task(task_id="x"),)),
                    Category(tasks=(Task(task_id="x"),)),
                )
            )

    def test_locate_task(self, sample_quotation: Quotation):
        """测试任务定位"""
        assert sample_quotation.locate_task("t-popup") == (0, 1)
        assert sample_quotation.locate_task("missing") is None

    def test_iter_tasks_order(self, sample_quotation: Quotation):
        """测试按文档顺序遍历"""
        ids = [t.task_id for _, t in sample_quotation.iter_tasks()]
        assert ids == ["t-static", "t-popup"]

    def test_blank_history_dropped(self):
        """测试空白修订记录被忽略"""
        header = QuotationHeader(history=(HistoryItem(), HistoryItem(writer="张三", version="1.0")))
        assert len(header.history) == 1

    def test_discount_rate_range(self):
        """测试折扣率范围"""
        with pytest.raises(PydanticValidationError):
            QuotationHeader(discount_rate=Decimal("1.5"))

    def test_tax_rate_range(self):
        with pytest.raises(PydanticValidationError):
            QuotationHeader(tax_rate=Decimal("2"))

    def test_vat_included_default(self):
        """测试默认税额另计"""
        assert QuotationHeader().vat_included is False


class TestPageCapacity:
    """页容量测试"""

    def test_usable_rows(self):
        """测试首页扣除表头预留行"""
        capacity = PageCapacity(rows_per_page=15, first_page_header_rows=6)
        assert capacity.usable_rows(1) == 9
        assert capacity.usable_rows(2) == 15
        assert capacity.max_task_height == 13

    def test_reservation_must_leave_rows(self):
        """测试预留行数必须小于每页行数"""
        with pytest.raises(PydanticValidationError):
            PageCapacity(rows_per_page=5, first_page_header_rows=5)


class TestPageConsistency:
    """分页一致性校验测试"""

    def test_no_pages(self):
        assert check_page_consistency([]) == ["分页_无页面"]

    def test_orphan_subtotal_flagged(self):
        """测试续页以小计行开头时产生标记"""
        pages = [
            Page(page_index=1, rows=(PageRow(kind=RowKind.TASK),), capacity_rows=5),
            Page(
                page_index=2,
                rows=(PageRow(kind=RowKind.SUBTOTAL), PageRow(kind=RowKind.GRAND_TOTAL)),
                capacity_rows=5,
            ),
        ]
        flags = check_page_consistency(pages)
        assert "分页_第2页小计行孤立" in flags

    def test_grand_total_not_last(self):
        """测试总计行不在末页"""
        pages = [
            Page(page_index=1, rows=(PageRow(kind=RowKind.GRAND_TOTAL),), capacity_rows=5),
            Page(page_index=2, rows=(PageRow(kind=RowKind.TASK),), capacity_rows=5),
        ]
        assert "分页_总计行不在末页" in check_page_consistency(pages)


class TestExportJob:
    """导出任务模型测试"""

    def test_lifecycle(self, sample_quotation: Quotation):
        """测试状态流转"""
        job = ExportJob(job_id="j1", output_dir=Path("out"), snapshot=sample_quotation)
        assert job.status == ExportStatus.QUEUED

        job.mark_running()
        assert job.status == ExportStatus.RUNNING
        assert job.started_at is not None

        job.mark_succeeded(Path("out/a.xlsx"))
        assert job.is_finished
        assert job.progress.percent == 100

    def test_add_flag_dedup(self, sample_quotation: Quotation):
        """测试标记去重"""
        job = ExportJob(job_id="j1", output_dir=Path("out"), snapshot=sample_quotation)
        job.add_flag("a")
        job.add_flag("a")
        assert job.flags == ["a"]
