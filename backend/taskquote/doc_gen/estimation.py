"""
金额计算引擎 - 行金额/分类小计/总计

职责：
1. 行金额 = 数量 × 单价，分类小计 = 行金额之和（全精度）
2. 总计 = 净额 × (1 - 折扣率) × (1 + 税率)（单价含税时不再加税），只在最后按币种最小单位四舍五入一次
3. 提案价：折后税前金额按取整单位向下取整
4. 按任务类型/人员等级汇总（自定义类型逐项列出）

依赖：
- rate_card.yaml: 币种最小单位、自定义类型判定

测试要点：
- test_grand_total_with_tax: 2×100000 + 1×50000，税10% → 275000
- test_estimate_idempotent: 对结果再次计算不变
- test_round_once: 不逐行取整
- test_type_summary_grouping: 同类型同单价合并
"""

from __future__ import annotations

import logging
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal, InvalidOperation

from ..config import RateCard, load_rate_card
from ..interfaces import IEstimationEngine, ValidationError
from ..models import (
    CategoryTotals,
    Quotation,
    QuotationWithTotals,
    Task,
    TaskLine,
    TypeSummaryItem,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def round_money(value: Decimal, minor_unit: int) -> Decimal:
    """按币种最小单位四舍五入（ROUND_HALF_UP）"""
    return value.quantize(Decimal(1).scaleb(-minor_unit), rounding=ROUND_HALF_UP)


def floor_to_unit(value: Decimal, unit: Decimal) -> Decimal:
    """向下取整到指定单位（如10000）"""
    return (value / unit).to_integral_value(rounding=ROUND_FLOOR) * unit


class EstimationEngine(IEstimationEngine):
    """金额计算引擎实现"""

    def __init__(self, rate_card: RateCard | None = None):
        self.rate_card = rate_card or load_rate_card()

    def estimate(self, quotation: Quotation | QuotationWithTotals) -> QuotationWithTotals:
        """计算金额（纯函数，同一输入结果相同）"""
        if isinstance(quotation, QuotationWithTotals):
            quotation = quotation.quotation

        header = quotation.header
        minor_unit = self.rate_card.get_minor_unit(header.currency)

        categories = tuple(
            CategoryTotals(
                category_id=category.category_id,
                name=category.name,
                subtotal=category.subtotal,
                lines=tuple(TaskLine(task_id=t.task_id, line_total=t.line_total) for t in category.tasks),
            )
            for category in quotation.categories
        )

        net_total = sum((c.subtotal for c in categories), ZERO)
        try:
            discount_amount = net_total * header.discount_rate
            if header.vat_included:
                # 单价已含税：税额从折后金额中拆出
                discounted = net_total - discount_amount
                pre_tax = discounted / (1 + header.tax_rate)
                tax_amount = discounted - pre_tax
                grand_total = round_money(discounted, minor_unit)
            else:
                pre_tax = net_total - discount_amount
                tax_amount = pre_tax * header.tax_rate
                grand_total = round_money(
                    net_total * (1 - header.discount_rate) * (1 + header.tax_rate), minor_unit
                )

            proposal_price = None
            if header.rounding_unit:
                proposal_price = floor_to_unit(pre_tax, header.rounding_unit)
        except InvalidOperation as e:
            raise ValidationError(f"金额超出可计算范围: 净额 {net_total}") from e

        result = QuotationWithTotals(
            quotation=quotation,
            categories=categories,
            net_total=net_total,
            discount_amount=discount_amount,
            tax_amount=tax_amount,
            grand_total=grand_total,
            minor_unit=minor_unit,
            proposal_price=proposal_price,
            type_summary=self.summarize_by_type(quotation),
        )
        logger.debug(
            f"金额计算完成: 任务 {quotation.task_count}, 净额 {net_total}, 总计 {grand_total} {header.currency}"
        )
        return result

    def summarize_by_type(self, quotation: Quotation) -> tuple[TypeSummaryItem, ...]:
        """
        按任务类型汇总

        - 同类型同单价合并（按首次出现顺序）
        - 自定义类型逐项列出，名称取任务名
        - 按人员等级计价的任务按 等级+单位+单价 合并
        - 未指定类型或等级的任务不参与汇总
        """
        items: list[TypeSummaryItem] = []
        index: dict[tuple, int] = {}

        for _, task in quotation.iter_tasks():
            if task.grade:
                key = ("grade", task.grade, task.unit, task.unit_rate)
                label = f"{task.grade}({task.unit})" if task.unit else task.grade
                self._accumulate(items, index, key, task, label=label, grade=task.grade)
                continue
            if not task.page_type:
                continue

            if self.rate_card.is_custom(task.page_type):
                items.append(
                    TypeSummaryItem(
                        label=task.name or task.page_type,
                        page_type=task.page_type,
                        quantity=task.quantity,
                        unit_rate=task.unit_rate,
                        amount=task.line_total,
                    )
                )
                continue

            key = ("page_type", task.page_type, task.unit_rate)
            self._accumulate(items, index, key, task, label=task.page_type, page_type=task.page_type)

        return tuple(items)

    @staticmethod
    def _accumulate(
        items: list[TypeSummaryItem],
        index: dict[tuple, int],
        key: tuple,
        task: Task,
        **fields,
    ) -> None:
        if key in index:
            pos = index[key]
            prev = items[pos]
            items[pos] = prev.model_copy(
                update={
                    "quantity": prev.quantity + task.quantity,
                    "amount": prev.amount + task.line_total,
                }
            )
            return
        index[key] = len(items)
        items.append(
            TypeSummaryItem(
                quantity=task.quantity,
                unit_rate=task.unit_rate,
                amount=task.line_total,
                **fields,
            )
        )
