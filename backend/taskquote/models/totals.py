"""
金额汇总模型 - 金额计算引擎的输出结构

排版和渲染模块只消费这个结构，不再自行计算金额
"""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel

from .quotation import Quotation


class TaskLine(BaseModel):
    """单个任务的行金额"""
    task_id: str
    line_total: Decimal

    model_config = {"frozen": True}


class CategoryTotals(BaseModel):
    """分类小计"""
    category_id: str
    name: str
    subtotal: Decimal
    lines: tuple[TaskLine, ...] = ()

    model_config = {"frozen": True}


class TypeSummaryItem(BaseModel):
    """按任务类型汇总的一行"""
    label: str
    page_type: str | None = None
    grade: str | None = None
    quantity: Decimal
    unit_rate: Decimal
    amount: Decimal

    model_config = {"frozen": True}


class QuotationWithTotals(BaseModel):
    """带汇总金额的报价单"""

    quotation: Quotation
    categories: tuple[CategoryTotals, ...] = ()

    # 全精度中间值
    net_total: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0")

    # 唯一一次取整后的总计
    grand_total: Decimal = Decimal("0")
    minor_unit: int = 2

    # 提案价（折后税前，按取整单位向下取整）
    proposal_price: Decimal | None = None

    type_summary: tuple[TypeSummaryItem, ...] = ()

    model_config = {"frozen": True}

    def get_category_totals(self, category_id: str) -> CategoryTotals | None:
        for totals in self.categories:
            if totals.category_id == category_id:
                return totals
        return None

    def get_line_total(self, task_id: str) -> Decimal | None:
        for totals in self.categories:
            for line in totals.lines:
                if line.task_id == task_id:
                    return line.line_total
        return None
