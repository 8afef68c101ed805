"""
流水线阶段定义

职责：
1. 定义各阶段的名称与进度区间
2. 导出任务按阶段更新进度

测试要点：
- test_export_stage_progress: 进度单调递增至100
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class StageEnum(str, Enum):
    """流水线阶段枚举"""
    ESTIMATE = "ESTIMATE"
    LAYOUT = "LAYOUT"
    EXPORT = "EXPORT"


@dataclass(frozen=True)
class PipelineStage:
    """流水线阶段"""
    name: str
    progress_start: int  # 进度起点（0-100）
    progress_end: int    # 进度终点


# 导出：金额计算 → 排版 → 写文件
EXPORT_STAGES: list[PipelineStage] = [
    PipelineStage(StageEnum.ESTIMATE.value, 0, 10),
    PipelineStage(StageEnum.LAYOUT.value, 10, 30),
    PipelineStage(StageEnum.EXPORT.value, 30, 100),
]
