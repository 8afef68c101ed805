"""
报价单模型 - 任务/分类/报价单及表头信息

所有实体均为不可变模型（frozen），编辑操作总是返回新的报价单。
行金额、小计等派生值只以属性形式计算，不落地存储。
"""

from __future__ import annotations

import datetime as dt
import uuid
from collections.abc import Iterator
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator, model_validator


# 单行数量/单价上限（保证总计在Decimal默认精度内）
MAX_QUANTITY = Decimal("1e9")
MAX_UNIT_RATE = Decimal("1e13")


def new_id() -> str:
    """生成实体ID"""
    return uuid.uuid4().hex[:12]


class Task(BaseModel):
    """任务（单个计价工作项）"""
    task_id: str = Field(default_factory=new_id)
    name: str = ""
    unit: str = Field("", description="工作量单位(人日/页等)")
    quantity: Decimal = Field(Decimal("0"), ge=0, le=MAX_QUANTITY, description="数量")
    unit_rate: Decimal = Field(Decimal("0"), ge=0, le=MAX_UNIT_RATE, description="单价")
    note: str = ""
    page_type: str | None = Field(None, description="单价表中的任务类型")
    grade: str | None = Field(None, description="人员等级(按人日/人月计价)")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_pricing_basis(self) -> Task:
        if self.page_type and self.grade:
            raise ValueError("任务类型与人员等级不能同时指定")
        return self

    @property
    def line_total(self) -> Decimal:
        """行金额 = 数量 × 单价（不取整）"""
        return self.quantity * self.unit_rate


class Category(BaseModel):
    """分类（一组任务，对应一个小计）"""
    category_id: str = Field(default_factory=new_id)
    name: str = ""
    tasks: tuple[Task, ...] = ()
    visible: bool = Field(False, description="空分类是否仍参与排版")

    model_config = {"frozen": True}

    @property
    def subtotal(self) -> Decimal:
        return sum((t.line_total for t in self.tasks), Decimal("0"))

    @property
    def is_empty(self) -> bool:
        return not self.tasks

    def find_task(self, task_id: str) -> Task | None:
        for task in self.tasks:
            if task.task_id == task_id:
                return task
        return None


class ClientInfo(BaseModel):
    """客户信息"""
    name: str = ""
    phone: str = ""

    model_config = {"frozen": True}


class IssuerInfo(BaseModel):
    """报价方（公司）信息"""
    name: str = ""
    address: str = ""
    business_number: str = ""
    representative: str = ""
    phone: str = ""

    model_config = {"frozen": True}


class ProjectInfo(BaseModel):
    """项目信息"""
    name: str = ""
    version: str = "1.0"
    date: dt.date = Field(default_factory=dt.date.today)
    validity_days: int = Field(14, ge=0)

    model_config = {"frozen": True}


class HistoryItem(BaseModel):
    """修订记录"""
    writer: str = ""
    version: str = ""
    date: str = ""
    note: str = ""

    model_config = {"frozen": True}

    @property
    def is_blank(self) -> bool:
        return not (self.writer or self.version or self.date or self.note)


class QuotationHeader(BaseModel):
    """报价单表头（元数据+计价参数）"""

    # === 当事方 ===
    client: ClientInfo = Field(default_factory=ClientInfo)
    issuer: IssuerInfo = Field(default_factory=IssuerInfo)
    project: ProjectInfo = Field(default_factory=ProjectInfo)

    # === 计价参数 ===
    currency: str = "CNY"
    tax_rate: Decimal = Field(Decimal("0"), ge=0, le=1, description="税率(0.1=10%)")
    discount_rate: Decimal = Field(Decimal("0"), ge=0, le=1, description="折扣率(0.05=5%)")
    rounding_unit: Decimal | None = Field(None, gt=0, description="提案价向下取整单位")
    vat_included: bool = Field(False, description="单价是否已含税(含税时总计不再加税)")

    # === 其他 ===
    work_period_months: int = Field(1, ge=0)
    notes: str = ""
    history: tuple[HistoryItem, ...] = ()

    model_config = {"frozen": True}

    @field_validator("history")
    @classmethod
    def _drop_blank_history(cls, v: tuple[HistoryItem, ...]) -> tuple[HistoryItem, ...]:
        return tuple(item for item in v if not item.is_blank)

    @property
    def quote_date(self) -> dt.date:
        return self.project.date


class Quotation(BaseModel):
    """报价单（表头 + 有序分类）"""
    header: QuotationHeader = Field(default_factory=QuotationHeader)
    categories: tuple[Category, ...] = ()

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_unique_ids(self) -> Quotation:
        seen_categories: set[str] = set()
        seen_tasks: set[str] = set()
        for category in self.categories:
            if category.category_id in seen_categories:
                raise ValueError(f"分类ID重复: {category.category_id}")
            seen_categories.add(category.category_id)
            for task in category.tasks:
                if task.task_id in seen_tasks:
                    raise ValueError(f"任务ID重复: {task.task_id}")
                seen_tasks.add(task.task_id)
        return self

    def find_category(self, category_id: str) -> Category | None:
        for category in self.categories:
            if category.category_id == category_id:
                return category
        return None

    def category_index(self, category_id: str) -> int | None:
        for i, category in enumerate(self.categories):
            if category.category_id == category_id:
                return i
        return None

    def locate_task(self, task_id: str) -> tuple[int, int] | None:
        """返回 (分类下标, 任务下标)，找不到返回None"""
        for ci, category in enumerate(self.categories):
            for ti, task in enumerate(category.tasks):
                if task.task_id == task_id:
                    return ci, ti
        return None

    def iter_tasks(self) -> Iterator[tuple[Category, Task]]:
        """按文档顺序遍历任务"""
        for category in self.categories:
            for task in category.tasks:
                yield category, task

    @property
    def task_count(self) -> int:
        return sum(len(c.tasks) for c in self.categories)
