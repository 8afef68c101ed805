"""
分页排版引擎 - 把报价行按页容量切分

职责：
1. 生成行序列：分类表头 → 任务行 → 分类小计，最后是总计行
2. 按页容量贪心分页，首页扣除表头预留行
3. 保持连排：分类表头不与首个任务分离，小计不与最后一个任务分离
4. 分类跨页时，新页以"续"表头开头

排版规则：
- 块划分：[表头, 首任务]、单个中间任务、[末任务, 小计]；
  只有一个任务时为 [表头, 任务, 小计]；可见空分类为 [表头, 小计]；
  总计行单独成块
- 块放不下当前页剩余空间时换页
- 任务行高度 > 每页行数-2 时无法排版（LayoutOverflowError）

测试要点：
- test_continued_header: 容量5、6个任务 → 2页，第2页以续表头开头
- test_layout_deterministic: 同一输入结果相同
- test_grand_total_last_page: 总计行在末页
- test_first_page_reserved: 首页可用行数扣除表头区
"""

from __future__ import annotations

import logging
import math
import unicodedata
from dataclasses import dataclass

from ..interfaces import ILayoutEngine, LayoutOverflowError
from ..models import (
    Category,
    Page,
    PageCapacity,
    PageRow,
    QuotationWithTotals,
    RowKind,
    Task,
)

logger = logging.getLogger(__name__)

CONTINUED_SUFFIX = "（续）"
SUBTOTAL_SUFFIX = " 小计"
GRAND_TOTAL_LABEL = "合计"


def display_width(text: str) -> int:
    """显示宽度（全角/宽字符按2计）"""
    return sum(2 if unicodedata.east_asian_width(ch) in ("W", "F") else 1 for ch in text)


def task_height(task: Task, wrap_width: int | None) -> int:
    """任务行高度（折行后的行数）"""
    if not wrap_width:
        return 1
    return max(1, math.ceil(display_width(task.name) / wrap_width))


@dataclass
class _Block:
    """不可拆分的连排行组"""
    rows: list[PageRow]
    category: Category | None = None
    continues: bool = False  # 属于已开始的分类（换页时需要续表头）

    @property
    def height(self) -> int:
        return sum(r.height for r in self.rows)


class PaginationLayoutEngine(ILayoutEngine):
    """分页排版引擎实现"""

    def layout(self, totals: QuotationWithTotals, capacity: PageCapacity) -> tuple[Page, ...]:
        """排版（纯函数，同一输入结果相同）"""
        blocks = self._build_blocks(totals, capacity)

        pages: list[Page] = []
        current: list[PageRow] = []
        page_index = 1
        remaining = capacity.usable_rows(page_index)

        for block in blocks:
            if block.height > remaining:
                pages.append(self._make_page(page_index, current, capacity))
                page_index += 1
                current = []
                remaining = capacity.usable_rows(page_index)

                if block.continues and block.category is not None:
                    current.append(self._continued_header_row(block.category))
                    remaining -= 1

            current.extend(block.rows)
            remaining -= block.height

        pages.append(self._make_page(page_index, current, capacity))

        logger.debug(f"排版完成: {len(pages)}页, 任务 {totals.quotation.task_count}")
        return tuple(pages)

    def _build_blocks(self, totals: QuotationWithTotals, capacity: PageCapacity) -> list[_Block]:
        blocks: list[_Block] = []
        seq_no = 0

        for category in totals.quotation.categories:
            if category.is_empty and not category.visible:
                continue

            header = PageRow(
                kind=RowKind.CATEGORY_HEADER,
                label=category.name,
                category_id=category.category_id,
            )
            subtotal = PageRow(
                kind=RowKind.SUBTOTAL,
                label=f"{category.name}{SUBTOTAL_SUFFIX}",
                category_id=category.category_id,
                amount=category.subtotal,
            )

            task_rows = []
            for task in category.tasks:
                seq_no += 1
                task_rows.append(self._task_row(task, category, seq_no, capacity))

            if not task_rows:
                blocks.append(_Block([header, subtotal], category))
                continue

            if len(task_rows) == 1:
                blocks.append(_Block([header, task_rows[0], subtotal], category))
                continue

            blocks.append(_Block([header, task_rows[0]], category))
            for row in task_rows[1:-1]:
                blocks.append(_Block([row], category, continues=True))
            blocks.append(_Block([task_rows[-1], subtotal], category, continues=True))

        blocks.append(_Block([self._grand_total_row(totals)]))
        return blocks

    def _task_row(self, task: Task, category: Category, seq_no: int, capacity: PageCapacity) -> PageRow:
        height = task_height(task, capacity.wrap_width)
        if height > capacity.max_task_height:
            raise LayoutOverflowError(
                f"任务行高度 {height} 超出单页可容纳的 {capacity.max_task_height} 行: {task.name}",
                task_id=task.task_id,
            )
        return PageRow(
            kind=RowKind.TASK,
            label=task.name,
            category_id=category.category_id,
            task_id=task.task_id,
            seq_no=seq_no,
            unit=task.unit,
            quantity=task.quantity,
            unit_rate=task.unit_rate,
            amount=task.line_total,
            note=task.note,
            height=height,
        )

    def _continued_header_row(self, category: Category) -> PageRow:
        return PageRow(
            kind=RowKind.CONTINUED_HEADER,
            label=f"{category.name}{CONTINUED_SUFFIX}",
            category_id=category.category_id,
        )

    def _grand_total_row(self, totals: QuotationWithTotals) -> PageRow:
        return PageRow(
            kind=RowKind.GRAND_TOTAL,
            label=GRAND_TOTAL_LABEL,
            amount=totals.grand_total,
            net_total=totals.net_total,
            discount_amount=totals.discount_amount,
            tax_amount=totals.tax_amount,
        )

    def _make_page(self, page_index: int, rows: list[PageRow], capacity: PageCapacity) -> Page:
        return Page(
            page_index=page_index,
            rows=tuple(rows),
            capacity_rows=capacity.usable_rows(page_index),
            reserved_header_rows=capacity.first_page_header_rows if page_index == 1 else 0,
        )
