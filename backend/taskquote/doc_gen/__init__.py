"""
文档生成模块 - 金额计算/分页排版/预览与导出

子模块：
- estimation: 金额计算（行金额/小计/总计/类型汇总）
- layout: 分页排版
- renderer: 预览渲染与Excel/PDF导出
- pdf_engine: PDF导出引擎
"""

from .estimation import EstimationEngine, floor_to_unit, round_money
from .layout import PaginationLayoutEngine, display_width, task_height
from .pdf_engine import PDFExporter
from .renderer import DocumentRenderer, build_export_filename, wrap_text

__all__ = [
    "EstimationEngine",
    "PaginationLayoutEngine",
    "DocumentRenderer",
    "PDFExporter",
    "round_money",
    "floor_to_unit",
    "display_width",
    "task_height",
    "wrap_text",
    "build_export_filename",
]
