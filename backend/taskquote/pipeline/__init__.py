"""
流水线模块 - 预览刷新与导出编排

子模块：
- stages: 导出流水线各阶段定义
- executor: 流水线执行器（计算 → 排版 → 渲染/导出）
- export_manager: 导出任务管理
- preview_controller: 编辑命令队列与预览刷新节流
"""

from .executor import PreviewResult, QuotationPipeline
from .export_manager import ExportManager
from .preview_controller import CommandResult, PreviewController
from .stages import EXPORT_STAGES, PipelineStage, StageEnum

__all__ = [
    "PipelineStage",
    "StageEnum",
    "EXPORT_STAGES",
    "QuotationPipeline",
    "PreviewResult",
    "ExportManager",
    "PreviewController",
    "CommandResult",
]
