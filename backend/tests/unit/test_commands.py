"""
编辑命令单元测试

每个模块完成后必须运行：pytest tests/unit/test_commands.py -v
"""

from decimal import Decimal

import pytest

from taskquote.editor import (
    AddTask,
    MoveTask,
    TaskModel,
    UpdateTask,
    apply_command,
    parse_command,
)
from taskquote.interfaces import NotFoundError, ValidationError
from taskquote.models import Quotation


class TestParseCommand:
    """命令解析测试"""

    def test_parse_dict(self):
        cmd = parse_command({"kind": "add_task", "category_id": "c1", "name": "首页", "page_type": "主页"})
        assert isinstance(cmd, AddTask)
        assert cmd.quantity == Decimal("1")

    def test_parse_json(self):
        cmd = parse_command('{"kind": "move_task", "task_id": "t1", "new_index": 2}')
        assert isinstance(cmd, MoveTask)
        assert cmd.new_index == 2

    def test_unknown_kind(self):
        with pytest.raises(ValidationError):
            parse_command({"kind": "explode"})

    def test_extra_field_rejected(self):
        with pytest.raises(ValidationError):
            parse_command({"kind": "remove_task", "task_id": "t1", "force": True})

    def test_malformed_quantity(self):
        with pytest.raises(ValidationError):
            parse_command({"kind": "add_task", "category_id": "c1", "quantity": "abc"})


class TestApplyCommand:
    """命令执行测试"""

    def test_apply_sequence(self, task_model: TaskModel, sample_quotation: Quotation):
        """测试命令按顺序执行"""
        commands = [
            parse_command({"kind": "add_category", "name": "后端", "category_id": "cat-api"}),
            parse_command({"kind": "add_task", "category_id": "cat-api", "name": "接口", "task_id": "t-api",
                           "page_type": "服务器对接页面"}),
            parse_command({"kind": "update_task", "task_id": "t-api", "changes": {"quantity": "2"}}),
            parse_command({"kind": "update_header", "changes": {"client": {"name": "新客户"}}}),
        ]
        q = sample_quotation
        for cmd in commands:
            q = apply_command(task_model, q, cmd)

        task = q.categories[1].tasks[0]
        assert task.quantity == Decimal("2")
        assert task.unit_rate == Decimal("150000")
        assert q.header.client.name == "新客户"

    def test_apply_stale_id(self, task_model: TaskModel, sample_quotation: Quotation):
        with pytest.raises(NotFoundError):
            apply_command(task_model, sample_quotation, UpdateTask(task_id="gone", changes={"quantity": 1}))

    def test_apply_invalid_value(self, task_model: TaskModel, sample_quotation: Quotation):
        with pytest.raises(ValidationError):
            apply_command(
                task_model, sample_quotation, UpdateTask(task_id="t-static", changes={"unit_rate": "-1"})
            )

    def test_apply_grade_task(self, task_model: TaskModel, sample_quotation: Quotation):
        """测试按人员等级新增任务（人月 × 等级单价）"""
        cmd = parse_command(
            {"kind": "add_task", "category_id": "cat-web", "name": "架构设计", "grade": "特级", "quantity": "0.5"}
        )
        q = apply_command(task_model, sample_quotation, cmd)
        task = q.categories[0].tasks[-1]
        assert task.unit == "人月"
        assert task.line_total == Decimal("5000000")
