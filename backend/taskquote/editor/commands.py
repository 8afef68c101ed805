"""
编辑命令 - 把界面操作表示为可排队的数据对象

命令按 kind 字段区分，可从dict/JSON解析（parse_command），
由 apply_command 派发到 TaskModel 的对应操作。
"""

from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..interfaces import ValidationError
from ..models import Quotation
from .task_model import TaskModel


class _Command(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}


class AddCategory(_Command):
    kind: Literal["add_category"] = "add_category"
    name: str
    category_id: str | None = None
    visible: bool = False
    position: int | None = None


class RenameCategory(_Command):
    kind: Literal["rename_category"] = "rename_category"
    category_id: str
    name: str


class SetCategoryVisible(_Command):
    kind: Literal["set_category_visible"] = "set_category_visible"
    category_id: str
    visible: bool


class RemoveCategory(_Command):
    kind: Literal["remove_category"] = "remove_category"
    category_id: str


class MoveCategory(_Command):
    kind: Literal["move_category"] = "move_category"
    category_id: str
    new_index: int


class AddTask(_Command):
    kind: Literal["add_task"] = "add_task"
    category_id: str
    name: str = ""
    quantity: Decimal = Decimal("1")
    unit_rate: Decimal | None = None
    unit: str | None = None
    page_type: str | None = None
    grade: str | None = None
    note: str = ""
    task_id: str | None = None
    position: int | None = None


class UpdateTask(_Command):
    kind: Literal["update_task"] = "update_task"
    task_id: str
    changes: dict[str, Any] = Field(default_factory=dict)


class RemoveTask(_Command):
    kind: Literal["remove_task"] = "remove_task"
    task_id: str


class MoveTask(_Command):
    kind: Literal["move_task"] = "move_task"
    task_id: str
    new_index: int
    target_category_id: str | None = None


class UpdateHeader(_Command):
    kind: Literal["update_header"] = "update_header"
    changes: dict[str, Any] = Field(default_factory=dict)


EditCommand = Annotated[
    Union[
        AddCategory,
        RenameCategory,
        SetCategoryVisible,
        RemoveCategory,
        MoveCategory,
        AddTask,
        UpdateTask,
        RemoveTask,
        MoveTask,
        UpdateHeader,
    ],
    Field(discriminator="kind"),
]

_command_adapter: TypeAdapter[EditCommand] = TypeAdapter(EditCommand)


def parse_command(data: dict[str, Any] | str | bytes) -> EditCommand:
    """从dict或JSON解析命令"""
    try:
        if isinstance(data, (str, bytes)):
            return _command_adapter.validate_json(data)
        return _command_adapter.validate_python(data)
    except PydanticValidationError as e:
        raise ValidationError(f"无效的编辑命令: {e.errors()[0]['msg']}") from e


def apply_command(model: TaskModel, quotation: Quotation, command: EditCommand) -> Quotation:
    """执行单条命令，返回新的报价单"""
    if isinstance(command, AddCategory):
        return model.add_category(
            quotation,
            command.name,
            category_id=command.category_id,
            visible=command.visible,
            position=command.position,
        )
    if isinstance(command, RenameCategory):
        return model.rename_category(quotation, command.category_id, command.name)
    if isinstance(command, SetCategoryVisible):
        return model.set_category_visible(quotation, command.category_id, command.visible)
    if isinstance(command, RemoveCategory):
        return model.remove_category(quotation, command.category_id)
    if isinstance(command, MoveCategory):
        return model.move_category(quotation, command.category_id, command.new_index)
    if isinstance(command, AddTask):
        return model.add_task(
            quotation,
            command.category_id,
            command.name,
            quantity=command.quantity,
            unit_rate=command.unit_rate,
            unit=command.unit,
            page_type=command.page_type,
            grade=command.grade,
            note=command.note,
            task_id=command.task_id,
            position=command.position,
        )
    if isinstance(command, UpdateTask):
        return model.update_task(quotation, command.task_id, **command.changes)
    if isinstance(command, RemoveTask):
        return model.remove_task(quotation, command.task_id)
    if isinstance(command, MoveTask):
        return model.move_task(
            quotation,
            command.task_id,
            command.new_index,
            target_category_id=command.target_category_id,
        )
    if isinstance(command, UpdateHeader):
        return model.update_header(quotation, **command.changes)
    raise ValidationError(f"不支持的命令类型: {type(command).__name__}")
