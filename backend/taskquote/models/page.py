"""
分页模型 - 排版引擎的输出结构

Page 是派生视图：每次排版整体重建，不允许直接修改
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field, model_validator

if TYPE_CHECKING:
    from ..config import LayoutConfig


class RowKind(str, Enum):
    """页内行类型"""
    CATEGORY_HEADER = "category_header"
    CONTINUED_HEADER = "continued_header"  # 续页重复的分类表头（含"续"标记）
    TASK = "task"
    SUBTOTAL = "subtotal"
    GRAND_TOTAL = "grand_total"


class PageCapacity(BaseModel):
    """页容量"""
    rows_per_page: int = Field(15, ge=3, description="每页最大行数")
    first_page_header_rows: int = Field(0, ge=0, description="首页表头区预留行数")
    wrap_width: int | None = Field(None, gt=0, description="任务行折行宽度(半角字符数)")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_reservation(self) -> PageCapacity:
        if self.first_page_header_rows >= self.rows_per_page:
            raise ValueError("首页表头预留行数必须小于每页行数")
        return self

    @classmethod
    def from_config(cls, config: LayoutConfig) -> PageCapacity:
        return cls(
            rows_per_page=config.rows_per_page,
            first_page_header_rows=config.first_page_header_rows,
            wrap_width=config.wrap_width,
        )

    def usable_rows(self, page_index: int) -> int:
        """指定页（1起）可用于表格的行数"""
        if page_index == 1:
            return self.rows_per_page - self.first_page_header_rows
        return self.rows_per_page

    @property
    def max_task_height(self) -> int:
        """任务行最大高度：需与续页表头和小计行同页"""
        return self.rows_per_page - 2


class PageRow(BaseModel):
    """页内一行"""
    kind: RowKind
    label: str = ""
    category_id: str | None = None
    task_id: str | None = None
    seq_no: int | None = Field(None, description="任务全局序号(1起)")
    unit: str = ""
    quantity: Decimal | None = None
    unit_rate: Decimal | None = None
    amount: Decimal | None = None
    note: str = ""
    height: int = Field(1, ge=1)

    # 仅总计行使用
    net_total: Decimal | None = None
    discount_amount: Decimal | None = None
    tax_amount: Decimal | None = None

    model_config = {"frozen": True}


class Page(BaseModel):
    """单页"""
    page_index: int
    rows: tuple[PageRow, ...] = ()
    capacity_rows: int
    reserved_header_rows: int = 0

    model_config = {"frozen": True}

    @property
    def used_rows(self) -> int:
        return sum(r.height for r in self.rows)

    @property
    def has_grand_total(self) -> bool:
        return any(r.kind == RowKind.GRAND_TOTAL for r in self.rows)

    @property
    def first_row(self) -> PageRow | None:
        return self.rows[0] if self.rows else None


def check_page_consistency(pages: tuple[Page, ...] | list[Page]) -> list[str]:
    """分页一致性校验，返回flags（不中断）"""
    flags: list[str] = []

    if not pages:
        return ["分页_无页面"]

    indices = [p.page_index for p in pages]
    if indices != list(range(1, len(pages) + 1)):
        flags.append("分页_页码不连续")

    for page in pages:
        if page.used_rows > page.capacity_rows:
            flags.append(f"分页_第{page.page_index}页超出容量")
        if page.page_index > 1 and page.first_row and page.first_row.kind == RowKind.SUBTOTAL:
            flags.append(f"分页_第{page.page_index}页小计行孤立")

    grand_total_pages = [p.page_index for p in pages for r in p.rows if r.kind == RowKind.GRAND_TOTAL]
    if len(grand_total_pages) != 1:
        flags.append("分页_总计行数量异常")
    elif grand_total_pages[0] != pages[-1].page_index:
        flags.append("分页_总计行不在末页")

    return flags


class PreviewPage(BaseModel):
    """预览页（屏幕展示用的文本行）"""
    page_index: int
    label: str
    lines: tuple[str, ...] = ()

    model_config = {"frozen": True}


class PreviewDocument(BaseModel):
    """预览文档"""
    title: str = ""
    page_total: int = 0
    pages: tuple[PreviewPage, ...] = ()

    model_config = {"frozen": True}

    def as_text(self) -> str:
        return "\n\f\n".join("\n".join(p.lines) for p in self.pages)
