"""
单价表加载器 - 读取 rate_card.yaml

职责：
- 解析YAML并提供类型安全访问
- 提供任务类型单价、人员等级单价、币种最小单位、报价单默认值
- 缓存加载结果（避免重复解析）

使用方式：
    card = load_rate_card()
    price = card.get_price("服务器对接页面")
    digits = card.get_minor_unit("CNY")
"""

from __future__ import annotations

from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from ..interfaces import ConfigError, ValidationError

DEFAULT_RATE_CARD_PATH = Path(__file__).with_name("rate_card.yaml")


class PageTypeInfo(BaseModel):
    """任务类型（页面类型）单价"""
    type: str
    price: Decimal = Decimal("0")
    description: str = ""
    custom: bool = False  # 自定义类型：单价手工填写


class GradeInfo(BaseModel):
    """人员等级单价（按工作量单位，如 人日/人月）"""
    grade: str
    rates: dict[str, Decimal] = Field(default_factory=dict)
    description: str = ""


class CurrencyInfo(BaseModel):
    """币种配置"""
    code: str
    minor_unit: int = 2
    symbol: str = ""


class RateCard(BaseModel):
    """单价表（rate_card.yaml 的结构化表示）"""
    schema_version: str

    page_types: list[PageTypeInfo] = Field(default_factory=list)
    grades: list[GradeInfo] = Field(default_factory=list)
    currencies: dict[str, CurrencyInfo] = Field(default_factory=dict)

    # 新建报价单时的默认值（公司信息/备注/取整单位等）
    defaults: dict[str, Any] = Field(default_factory=dict)

    # === 便捷访问方法 ===

    def get_page_type(self, page_type: str) -> PageTypeInfo | None:
        """按名称查找任务类型"""
        for info in self.page_types:
            if info.type == page_type:
                return info
        return None

    def get_price(self, page_type: str) -> Decimal:
        """获取类型单价（未知类型视为输入错误）"""
        info = self.get_page_type(page_type)
        if info is None:
            raise ValidationError(f"未知的任务类型: {page_type}")
        return info.price

    def get_grade(self, grade: str) -> GradeInfo | None:
        """按名称查找人员等级"""
        for info in self.grades:
            if info.grade == grade:
                return info
        return None

    def get_grade_rate(self, grade: str, unit: str) -> Decimal:
        """获取等级在指定工作量单位下的单价"""
        info = self.get_grade(grade)
        if info is None:
            raise ValidationError(f"未知的人员等级: {grade}")
        if unit not in info.rates:
            raise ValidationError(f"人员等级 {grade} 未配置单位 {unit} 的单价")
        return info.rates[unit]

    def is_custom(self, page_type: str | None) -> bool:
        """是否为自定义单价类型"""
        if not page_type:
            return False
        info = self.get_page_type(page_type)
        return bool(info and info.custom)

    def get_minor_unit(self, currency: str) -> int:
        """获取币种最小单位位数（未配置时按2位）"""
        info = self.currencies.get(currency)
        return info.minor_unit if info else 2

    def get_defaults(self, section: str) -> dict[str, Any]:
        """获取默认值分节"""
        value = self.defaults.get(section, {})
        return value if isinstance(value, dict) else {}


@lru_cache(maxsize=4)
def _load(path_str: str) -> RateCard:
    path = Path(path_str)
    if not path.exists():
        raise FileNotFoundError(f"单价表文件不存在: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"单价表解析失败: {path}: {e}") from e

    currencies = {
        code: CurrencyInfo(code=code, **(value or {}))
        for code, value in (data.pop("currencies", None) or {}).items()
    }
    return RateCard(currencies=currencies, **data)


def load_rate_card(path: str | Path | None = None) -> RateCard:
    """加载单价表（默认读取包内 rate_card.yaml）"""
    return _load(str(path or DEFAULT_RATE_CARD_PATH))


def reload_rate_card(path: str | Path | None = None) -> RateCard:
    """强制重新加载（清除缓存）"""
    _load.cache_clear()
    return load_rate_card(path)
