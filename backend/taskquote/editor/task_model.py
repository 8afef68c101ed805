"""
报价单编辑操作 - 分类/任务的增删改与排序

职责：
1. 每个操作接收一个报价单，返回新的报价单（输入对象不变）
2. 校验失败抛出 ValidationError，引用失效ID抛出 NotFoundError
3. 任务类型单价、人员等级单价从单价表带出（自定义类型手工填写）

依赖：
- rate_card.yaml: 任务类型单价/新建默认值

测试要点：
- test_add_task_rate_from_card: 按类型带出单价
- test_negative_quantity_rejected: 负数被拒绝且原报价单不变
- test_move_task_stable: 排序稳定
- test_remove_stale_task: 失效ID返回NotFoundError
"""

from __future__ import annotations

import logging
from decimal import Decimal
from pathlib import Path
from typing import Any, TypeVar

import yaml
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..config import RateCard, load_rate_card
from ..interfaces import ConfigError, NotFoundError, ValidationError
from ..models import Category, Quotation, QuotationHeader, Task

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

TASK_FIELDS = {"name", "unit", "quantity", "unit_rate", "note", "page_type", "grade"}


def _build(model_cls: type[ModelT], data: dict[str, Any]) -> ModelT:
    """构建模型，pydantic校验错误统一转换为 ValidationError"""
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or model_cls.__name__}: {err['msg']}"
            for err in e.errors()
        )
        raise ValidationError(f"{model_cls.__name__}校验失败: {problems}") from e


def _merge(base: dict[str, Any], changes: dict[str, Any]) -> dict[str, Any]:
    """浅层合并，嵌套dict按键合并"""
    merged = dict(base)
    for key, value in changes.items():
        if isinstance(value, BaseModel):
            value = value.model_dump()
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def _check_insert_index(position: int | None, length: int) -> int:
    if position is None:
        return length
    if not 0 <= position <= length:
        raise ValidationError(f"插入位置越界: {position} (0~{length})")
    return position


def _moved(items: tuple, old_index: int, new_index: int) -> tuple:
    """移动单个元素，其余元素保持相对顺序"""
    if not 0 <= new_index < len(items):
        raise ValidationError(f"目标位置越界: {new_index} (0~{len(items) - 1})")
    rest = list(items)
    item = rest.pop(old_index)
    rest.insert(new_index, item)
    return tuple(rest)


class TaskModel:
    """报价单编辑操作集合（无状态，除单价表外不持有数据）"""

    def __init__(self, rate_card: RateCard | None = None, rate_card_path: str | Path | None = None):
        self.rate_card = rate_card or load_rate_card(rate_card_path)

    # ------------------------------------------------------------------
    # 创建
    # ------------------------------------------------------------------

    def new_quotation(self, **header_changes: Any) -> Quotation:
        """新建空报价单（表头取单价表默认值）"""
        header = _build(QuotationHeader, _merge(self._default_header(), header_changes))
        return Quotation(header=header)

    def from_template(self, path: str | Path) -> Quotation:
        """从YAML/JSON模板创建报价单（缺省ID自动生成）"""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"模板文件不存在: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"模板解析失败: {path}: {e}") from e

        header = _merge(self._default_header(), data.get("header", {}) or {})
        categories = []
        for raw_category in data.get("categories", []) or []:
            raw_category = dict(raw_category)
            raw_category["tasks"] = [
                self._task_data(dict(raw_task)) for raw_task in raw_category.get("tasks", []) or []
            ]
            categories.append(raw_category)

        quotation = _build(Quotation, {"header": header, "categories": categories})
        logger.info(
            f"模板已加载: {path.name} (分类 {len(quotation.categories)}, 任务 {quotation.task_count})"
        )
        return quotation

    def _default_header(self) -> dict[str, Any]:
        defaults = self.rate_card.get_defaults("quotation")
        header: dict[str, Any] = {
            "issuer": dict(self.rate_card.get_defaults("issuer")),
            "project": {},
        }
        for key in (
            "currency",
            "tax_rate",
            "discount_rate",
            "rounding_unit",
            "vat_included",
            "work_period_months",
            "notes",
        ):
            if key in defaults:
                header[key] = defaults[key]
        if "validity_days" in defaults:
            header["project"]["validity_days"] = defaults["validity_days"]
        return header

    def _task_data(self, data: dict[str, Any]) -> dict[str, Any]:
        """补全任务默认值（单位/类型或等级单价）"""
        task_defaults = self.rate_card.get_defaults("task")
        if not data.get("unit"):
            data["unit"] = task_defaults.get("grade_unit" if data.get("grade") else "unit", "")
        if data.get("unit_rate") is None:
            data["unit_rate"] = self._resolve_rate(data.get("page_type"), data.get("grade"), data["unit"])
        return data

    def _resolve_rate(self, page_type: str | None, grade: str | None, unit: str) -> Decimal:
        if page_type:
            return self.rate_card.get_price(page_type)
        if grade:
            return self.rate_card.get_grade_rate(grade, unit)
        return Decimal("0")

    # ------------------------------------------------------------------
    # 表头
    # ------------------------------------------------------------------

    def update_header(self, quotation: Quotation, **changes: Any) -> Quotation:
        """修改表头（client/issuer/project 支持部分字段）"""
        unknown = set(changes) - set(QuotationHeader.model_fields)
        if unknown:
            raise ValidationError(f"未知的表头字段: {', '.join(sorted(unknown))}")
        header = _build(QuotationHeader, _merge(quotation.header.model_dump(), changes))
        return quotation.model_copy(update={"header": header})

    # ------------------------------------------------------------------
    # 分类
    # ------------------------------------------------------------------

    def add_category(
        self,
        quotation: Quotation,
        name: str,
        *,
        category_id: str | None = None,
        visible: bool = False,
        position: int | None = None,
    ) -> Quotation:
        """新增分类（默认追加到末尾）"""
        data: dict[str, Any] = {"name": name, "visible": visible}
        if category_id:
            data["category_id"] = category_id
        category = _build(Category, data)

        index = _check_insert_index(position, len(quotation.categories))
        categories = list(quotation.categories)
        categories.insert(index, category)
        return self._with_categories(quotation, categories)

    def rename_category(self, quotation: Quotation, category_id: str, name: str) -> Quotation:
        return self._update_category(quotation, category_id, name=name)

    def set_category_visible(self, quotation: Quotation, category_id: str, visible: bool) -> Quotation:
        """设置空分类是否参与排版"""
        return self._update_category(quotation, category_id, visible=visible)

    def remove_category(self, quotation: Quotation, category_id: str) -> Quotation:
        """删除分类（连同其任务）"""
        index = self._require_category(quotation, category_id)
        categories = list(quotation.categories)
        del categories[index]
        return self._with_categories(quotation, categories)

    def move_category(self, quotation: Quotation, category_id: str, new_index: int) -> Quotation:
        index = self._require_category(quotation, category_id)
        return self._with_categories(quotation, _moved(quotation.categories, index, new_index))

    # ------------------------------------------------------------------
    # 任务
    # ------------------------------------------------------------------

    def add_task(
        self,
        quotation: Quotation,
        category_id: str,
        name: str = "",
        *,
        quantity: Decimal | int | str = 1,
        unit_rate: Decimal | int | str | None = None,
        unit: str | None = None,
        page_type: str | None = None,
        grade: str | None = None,
        note: str = "",
        task_id: str | None = None,
        position: int | None = None,
    ) -> Quotation:
        """
        新增任务

        unit_rate 为空时：有 page_type 则取类型单价，
        有 grade 则取该等级在 unit（默认人月）下的单价，否则为0
        """
        ci = self._require_category(quotation, category_id)
        data: dict[str, Any] = {
            "name": name,
            "quantity": quantity,
            "unit_rate": unit_rate,
            "unit": unit,
            "page_type": page_type,
            "grade": grade,
            "note": note,
        }
        if task_id:
            data["task_id"] = task_id
        task = _build(Task, self._task_data(data))

        category = quotation.categories[ci]
        index = _check_insert_index(position, len(category.tasks))
        tasks = list(category.tasks)
        tasks.insert(index, task)
        return self._replace_category(quotation, ci, tasks=tuple(tasks))

    def update_task(self, quotation: Quotation, task_id: str, **changes: Any) -> Quotation:
        """
        修改任务字段

        未同时给出 unit_rate 时：
        - 修改 page_type，单价按新类型重新带出
        - 修改 grade 或按等级计价任务的 unit，单价按等级重新带出
        """
        unknown = set(changes) - TASK_FIELDS
        if unknown:
            raise ValidationError(f"未知的任务字段: {', '.join(sorted(unknown))}")

        ci, ti = self._require_task(quotation, task_id)
        task = quotation.categories[ci].tasks[ti]

        if "unit_rate" not in changes:
            grade = changes.get("grade", task.grade)
            if changes.get("page_type"):
                changes["unit_rate"] = self.rate_card.get_price(changes["page_type"])
            elif grade and ("grade" in changes or "unit" in changes):
                if "unit" not in changes:
                    info = self.rate_card.get_grade(grade)
                    if info is not None and task.unit not in info.rates:
                        changes["unit"] = self.rate_card.get_defaults("task").get("grade_unit", "")
                unit = changes.get("unit", task.unit)
                changes["unit_rate"] = self.rate_card.get_grade_rate(grade, unit)

        updated = _build(Task, {**task.model_dump(), **changes})
        tasks = list(quotation.categories[ci].tasks)
        tasks[ti] = updated
        return self._replace_category(quotation, ci, tasks=tuple(tasks))

    def remove_task(self, quotation: Quotation, task_id: str) -> Quotation:
        ci, ti = self._require_task(quotation, task_id)
        tasks = list(quotation.categories[ci].tasks)
        del tasks[ti]
        return self._replace_category(quotation, ci, tasks=tuple(tasks))

    def move_task(
        self,
        quotation: Quotation,
        task_id: str,
        new_index: int,
        *,
        target_category_id: str | None = None,
    ) -> Quotation:
        """移动任务（可跨分类），其余任务保持相对顺序"""
        ci, ti = self._require_task(quotation, task_id)
        source = quotation.categories[ci]

        if target_category_id is None or target_category_id == source.category_id:
            return self._replace_category(quotation, ci, tasks=_moved(source.tasks, ti, new_index))

        tci = self._require_category(quotation, target_category_id)
        target = quotation.categories[tci]
        index = _check_insert_index(new_index, len(target.tasks))

        source_tasks = list(source.tasks)
        task = source_tasks.pop(ti)
        target_tasks = list(target.tasks)
        target_tasks.insert(index, task)

        categories = list(quotation.categories)
        categories[ci] = source.model_copy(update={"tasks": tuple(source_tasks)})
        categories[tci] = target.model_copy(update={"tasks": tuple(target_tasks)})
        return self._with_categories(quotation, categories)

    # ------------------------------------------------------------------
    # 内部工具
    # ------------------------------------------------------------------

    def _require_category(self, quotation: Quotation, category_id: str) -> int:
        index = quotation.category_index(category_id)
        if index is None:
            raise NotFoundError(f"分类不存在: {category_id}")
        return index

    def _require_task(self, quotation: Quotation, task_id: str) -> tuple[int, int]:
        location = quotation.locate_task(task_id)
        if location is None:
            raise NotFoundError(f"任务不存在: {task_id}")
        return location

    def _update_category(self, quotation: Quotation, category_id: str, **changes: Any) -> Quotation:
        ci = self._require_category(quotation, category_id)
        category = quotation.categories[ci]
        updated = _build(Category, {**category.model_dump(exclude={"tasks"}), "tasks": category.tasks, **changes})
        categories = list(quotation.categories)
        categories[ci] = updated
        return self._with_categories(quotation, categories)

    def _replace_category(self, quotation: Quotation, index: int, **changes: Any) -> Quotation:
        categories = list(quotation.categories)
        categories[index] = categories[index].model_copy(update=changes)
        return self._with_categories(quotation, categories)

    def _with_categories(self, quotation: Quotation, categories: list[Category] | tuple[Category, ...]) -> Quotation:
        """重新校验整体（ID唯一等），失败时原报价单不受影响"""
        return _build(Quotation, {"header": quotation.header, "categories": tuple(categories)})
