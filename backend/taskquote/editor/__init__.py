"""
编辑层 - 报价单的增删改操作与编辑命令
"""

from .commands import (
    AddCategory,
    AddTask,
    EditCommand,
    MoveCategory,
    MoveTask,
    RemoveCategory,
    RemoveTask,
    RenameCategory,
    SetCategoryVisible,
    UpdateHeader,
    UpdateTask,
    apply_command,
    parse_command,
)
from .task_model import TaskModel

__all__ = [
    "TaskModel",
    "EditCommand",
    "AddCategory",
    "RenameCategory",
    "SetCategoryVisible",
    "RemoveCategory",
    "MoveCategory",
    "AddTask",
    "UpdateTask",
    "RemoveTask",
    "MoveTask",
    "UpdateHeader",
    "parse_command",
    "apply_command",
]
