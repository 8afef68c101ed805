"""
模块接口契约 - 定义各模块的抽象接口与异常

设计原则：
1. 模块间通过接口通信，不直接依赖具体实现
2. 每个接口定义清晰的输入输出类型
3. 便于单元测试和mock替换

使用方式：
    from taskquote.interfaces import ILayoutEngine

    class MyLayoutEngine(ILayoutEngine):
        def layout(self, totals, capacity) -> tuple[Page, ...]:
            ...
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import (
        Page,
        PageCapacity,
        PreviewDocument,
        Quotation,
        QuotationHeader,
        QuotationWithTotals,
        TypeSummaryItem,
    )


# ============================================================================
# 文档生成模块接口
# ============================================================================

class IEstimationEngine(ABC):
    """金额计算引擎接口"""

    @abstractmethod
    def estimate(self, quotation: Quotation | QuotationWithTotals) -> QuotationWithTotals:
        """
        计算报价单的行金额、分类小计与总计

        Args:
            quotation: 报价单（或已计算过的结果，重复计算结果不变）

        Returns:
            带汇总金额的报价单
        """
        ...


class ILayoutEngine(ABC):
    """分页排版引擎接口"""

    @abstractmethod
    def layout(
        self,
        totals: QuotationWithTotals,
        capacity: PageCapacity,
    ) -> tuple[Page, ...]:
        """
        按页容量把报价行切分为若干页

        Args:
            totals: 已计算金额的报价单
            capacity: 页容量（每页行数/首页表头预留行数）

        Returns:
            有序页列表

        Raises:
            LayoutOverflowError: 单个任务行在空页中也放不下
        """
        ...


class IDocumentRenderer(ABC):
    """文档渲染器接口"""

    @abstractmethod
    def render_preview(
        self,
        pages: tuple[Page, ...],
        header: QuotationHeader,
    ) -> PreviewDocument:
        """渲染屏幕预览"""
        ...

    @abstractmethod
    def export(
        self,
        pages: tuple[Page, ...],
        header: QuotationHeader,
        output_dir: Path,
        fmt: str = "xlsx",
        type_summary: tuple[TypeSummaryItem, ...] = (),
        proposal_price: Decimal | None = None,
    ) -> Path:
        """
        导出可下载文档

        Returns:
            生成的文件路径

        Raises:
            ExportFailed: 写文件或转换失败
        """
        ...


class IPDFExporter(ABC):
    """PDF导出器接口"""

    @abstractmethod
    def export_xlsx_to_pdf(self, xlsx_path: Path, pdf_path: Path) -> None:
        """Excel文档导出PDF"""
        ...

    @abstractmethod
    def count_pdf_pages(self, pdf_path: Path) -> int:
        """计算PDF页数"""
        ...


# ============================================================================
# 异常定义
# ============================================================================

class TaskQuoteError(Exception):
    """基础异常"""
    pass


class ConfigError(TaskQuoteError):
    """配置错误"""
    pass


class ValidationError(TaskQuoteError):
    """数值校验错误（负数/格式错误），模型保持原状态"""
    pass


class NotFoundError(TaskQuoteError):
    """引用的分类/任务不存在（id已失效）"""
    pass


class LayoutOverflowError(TaskQuoteError):
    """单个任务行超出整页容量"""

    def __init__(self, message: str, task_id: str | None = None):
        super().__init__(message)
        self.task_id = task_id


class ExportFailed(TaskQuoteError):
    """导出失败（写文件/打印/转换被拒绝或取消）"""
    pass
