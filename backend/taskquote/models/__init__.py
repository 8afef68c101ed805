"""
数据模型层 - 定义系统核心数据结构

所有模块通过这些模型交互，实现解耦：
- Quotation: 报价单（表头+分类+任务），不可变
- QuotationWithTotals: 金额计算结果
- Page: 分页排版结果（派生视图）
- ExportJob: 导出请求状态与生命周期
"""

from .export_job import ExportJob, ExportProgress, ExportStatus
from .page import (
    Page,
    PageCapacity,
    PageRow,
    PreviewDocument,
    PreviewPage,
    RowKind,
    check_page_consistency,
)
from .quotation import (
    Category,
    ClientInfo,
    HistoryItem,
    IssuerInfo,
    MAX_QUANTITY,
    MAX_UNIT_RATE,
    ProjectInfo,
    Quotation,
    QuotationHeader,
    Task,
    new_id,
)
from .totals import CategoryTotals, QuotationWithTotals, TaskLine, TypeSummaryItem

__all__ = [
    "Task",
    "Category",
    "Quotation",
    "QuotationHeader",
    "ClientInfo",
    "IssuerInfo",
    "ProjectInfo",
    "HistoryItem",
    "new_id",
    "MAX_QUANTITY",
    "MAX_UNIT_RATE",
    "TaskLine",
    "CategoryTotals",
    "TypeSummaryItem",
    "QuotationWithTotals",
    "RowKind",
    "PageRow",
    "Page",
    "PageCapacity",
    "PreviewPage",
    "PreviewDocument",
    "check_page_consistency",
    "ExportJob",
    "ExportStatus",
    "ExportProgress",
]
