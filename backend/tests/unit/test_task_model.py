"""
报价单编辑操作单元测试

每个模块完成后必须运行：pytest tests/unit/test_task_model.py -v
"""

from decimal import Decimal
from pathlib import Path

import pytest

from taskquote.editor import TaskModel
from taskquote.interfaces import ConfigError, NotFoundError, ValidationError
from taskquote.models import Quotation


def _task_ids(quotation: Quotation, ci: int = 0) -> list[str]:
    return [t.task_id for t in quotation.categories[ci].tasks]


class TestCreate:
    """新建报价单测试"""

    def test_new_quotation_defaults(self, task_model: TaskModel):
        """测试表头取单价表默认值"""
        q = task_model.new_quotation()
        assert q.categories == ()
        assert q.header.currency == "CNY"
        assert q.header.tax_rate == Decimal("0.1")
        assert q.header.rounding_unit == Decimal("10000")
        assert q.header.project.validity_days == 14

    def test_new_quotation_overrides(self, task_model: TaskModel):
        """测试新建时覆盖表头"""
        q = task_model.new_quotation(client={"name": "星河科技"}, tax_rate="0")
        assert q.header.client.name == "星河科技"
        assert q.header.tax_rate == 0

    def test_from_template(self, task_model: TaskModel, temp_dir: Path):
        """测试从模板创建（类型单价自动带出）"""
        path = temp_dir / "tpl.yaml"
        path.write_text(
            "header:\n"
            "  client: {name: 星河科技}\n"
            "  project: {name: 官网改版}\n"
            "categories:\n"
            "  - name: 页面\n"
            "    tasks:\n"
            "      - {name: 首页, page_type: 主页, quantity: 1}\n"
            "      - {name: 活动页, page_type: 其他, quantity: 1, unit_rate: 80000}\n",
            encoding="utf-8",
        )
        q = task_model.from_template(path)
        tasks = q.categories[0].tasks
        assert q.header.client.name == "星河科技"
        assert tasks[0].unit_rate == Decimal("300000")
        assert tasks[0].unit == "页"
        assert tasks[1].unit_rate == Decimal("80000")
        assert tasks[0].task_id != tasks[1].task_id

    def test_from_template_missing(self, task_model: TaskModel, temp_dir: Path):
        with pytest.raises(FileNotFoundError):
            task_model.from_template(temp_dir / "none.yaml")

    def test_from_template_broken(self, task_model: TaskModel, temp_dir: Path):
        path = temp_dir / "broken.yaml"
        path.write_text("categories: [\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            task_model.from_template(path)


class TestCategoryOps:
    """分类操作测试"""

    def test_add_category(self, task_model: TaskModel, sample_quotation: Quotation):
        """测试新增分类（原报价单不变）"""
        q = task_model.add_category(sample_quotation, "后端开发", category_id="cat-api")
        assert [c.category_id for c in q.categories] == ["cat-web", "cat-api"]
        assert len(sample_quotation.categories) == 1

    def test_add_category_position(self, task_model: TaskModel, sample_quotation: Quotation):
        q = task_model.add_category(sample_quotation, "需求", category_id="cat-req", position=0)
        assert q.categories[0].category_id == "cat-req"

    def test_add_category_bad_position(self, task_model: TaskModel, sample_quotation: Quotation):
        with pytest.raises(ValidationError):
            task_model.add_category(sample_quotation, "x", position=5)

    def test_duplicate_category_id(self, task_model: TaskModel, sample_quotation: Quotation):
        """测试分类ID重复被拒绝"""
        with pytest.raises(ValidationError):
            task_model.add_category(sample_quotation, "x", category_id="cat-web")

    def test_rename_and_visible(self, task_model: TaskModel, sample_quotation: Quotation):
        q = task_model.rename_category(sample_quotation, "cat-web", "网页")
        q = task_model.set_category_visible(q, "cat-web", True)
        category = q.categories[0]
        assert category.name == "网页"
        assert category.visible
        assert len(category.tasks) == 2

    def test_remove_category(self, task_model: TaskModel, sample_quotation: Quotation):
        q = task_model.remove_category(sample_quotation, "cat-web")
        assert q.categories == ()

    def test_move_category(self, task_model: TaskModel, sample_quotation: Quotation):
        q = task_model.add_category(sample_quotation, "B", category_id="b")
        q = task_model.add_category(q, "C", category_id="c")
        q = task_model.move_category(q, "c", 0)
        assert [c.category_id for c in q.categories] == ["c", "cat-web", "b"]

    def test_missing_category(self, task_model: TaskModel, sample_quotation: Quotation):
        with pytest.raises(NotFoundError):
            task_model.rename_category(sample_quotation, "missing", "x")


class TestTaskOps:
    """任务操作测试"""

    def test_add_task_rate_from_card(self, task_model: TaskModel, sample_quotation: Quotation):
        """测试按类型带出单价"""
        q = task_model.add_task(sample_quotation, "cat-web", "公告板", page_type="定制公告板", task_id="t-board")
        task = q.categories[0].tasks[-1]
        assert task.task_id == "t-board"
        assert task.unit_rate == Decimal("200000")
        assert task.quantity == 1

    def test_add_task_without_type(self, task_model: TaskModel, sample_quotation: Quotation):
        q = task_model.add_task(sample_quotation, "cat-web", "需求分析", unit="人日", quantity=3)
        task = q.categories[0].tasks[-1]
        assert task.unit_rate == 0
        assert task.unit == "人日"

    def test_add_task_unknown_type(self, task_model: TaskModel, sample_quotation: Quotation):
        with pytest.raises(ValidationError):
            task_model.add_task(sample_quotation, "cat-web", "x", page_type="不存在")

    def test_negative_quantity_rejected(self, task_model: TaskModel, sample_quotation: Quotation):
        """测试负数被拒绝且原报价单不变"""
        with pytest.raises(ValidationError):
            task_model.update_task(sample_quotation, "t-static", quantity=-1)
        assert sample_quotation.categories[0].tasks[0].quantity == Decimal("2")

    def test_negative_rate_rejected(self, task_model: TaskModel, sample_quotation: Quotation):
        with pytest.raises(ValidationError):
            task_model.add_task(sample_quotation, "cat-web", "x", unit_rate=-5)

    def test_malformed_number_rejected(self, task_model: TaskModel, sample_quotation: Quotation):
        with pytest.raises(ValidationError):
            task_model.update_task(sample_quotation, "t-static", quantity="abc")

    def test_update_task_fields(self, task_model: TaskModel, sample_quotation: Quotation):
        q = task_model.update_task(sample_quotation, "t-static", quantity="3", note="含响应式")
        task = q.categories[0].tasks[0]
        assert task.quantity == Decimal("3")
        assert task.note == "含响应式"
        assert task.unit_rate == Decimal("100000")

    def test_update_type_resets_rate(self, task_model: TaskModel, sample_quotation: Quotation):
        """测试修改类型时单价重新带出"""
        q = task_model.update_task(sample_quotation, "t-static", page_type="主页")
        assert q.categories[0].tasks[0].unit_rate == Decimal("300000")

    def test_add_task_rate_from_grade(self, task_model: TaskModel, sample_quotation: Quotation):
        """测试按人员等级带出单价（默认人月）"""
        q = task_model.add_task(sample_quotation, "cat-web", "后端开发", grade="高级", quantity="1.5")
        task = q.categories[0].tasks[-1]
        assert task.unit == "人月"
        assert task.unit_rate == Decimal("8000000")
        assert task.line_total == Decimal("12000000")

    def test_add_task_grade_daily(self, task_model: TaskModel, sample_quotation: Quotation):
        q = task_model.add_task(sample_quotation, "cat-web", "联调", grade="中级", unit="人日", quantity=5)
        assert q.categories[0].tasks[-1].unit_rate == Decimal("300000")

    def test_add_task_grade_errors(self, task_model: TaskModel, sample_quotation: Quotation):
        """测试未知等级、未配置单位、类型与等级同时指定"""
        with pytest.raises(ValidationError):
            task_model.add_task(sample_quotation, "cat-web", "x", grade="不存在")
        with pytest.raises(ValidationError):
            task_model.add_task(sample_quotation, "cat-web", "x", grade="高级", unit="页")
        with pytest.raises(ValidationError):
            task_model.add_task(sample_quotation, "cat-web", "x", grade="高级", page_type="主页")
        assert sample_quotation.task_count == 2

    def test_update_grade_resets_rate(self, task_model: TaskModel, sample_quotation: Quotation):
        """测试修改等级或单位时单价按等级重新带出"""
        q = task_model.add_task(sample_quotation, "cat-web", "开发", grade="初级", task_id="t-dev")
        q = task_model.update_task(q, "t-dev", grade="特级")
        assert q.categories[0].tasks[-1].unit_rate == Decimal("10000000")
        q = task_model.update_task(q, "t-dev", unit="人日")
        assert q.categories[0].tasks[-1].unit_rate == Decimal("500000")

    def test_switch_page_task_to_grade(self, task_model: TaskModel, sample_quotation: Quotation):
        """测试页面类型任务改为按等级计价（单位改为默认人月）"""
        q = task_model.update_task(sample_quotation, "t-static", page_type=None, grade="中级")
        task = q.categories[0].tasks[0]
        assert task.page_type is None
        assert task.unit == "人月"
        assert task.unit_rate == Decimal("6000000")

    def test_update_unknown_field(self, task_model: TaskModel, sample_quotation: Quotation):
        with pytest.raises(ValidationError):
            task_model.update_task(sample_quotation, "t-static", line_total=1)

    def test_remove_task(self, task_model: TaskModel, sample_quotation: Quotation):
        q = task_model.remove_task(sample_quotation, "t-static")
        assert _task_ids(q) == ["t-popup"]

    def test_remove_stale_task(self, task_model: TaskModel, sample_quotation: Quotation):
        """测试失效ID返回NotFoundError且报价单不变"""
        updated = task_model.remove_task(sample_quotation, "t-static")
        with pytest.raises(NotFoundError):
            task_model.remove_task(updated, "t-static")
        assert _task_ids(updated) == ["t-popup"]

    def test_move_task_stable(self, task_model: TaskModel, six_task_quotation: Quotation):
        """测试排序稳定：仅被移动的任务位置变化"""
        q = task_model.move_task(six_task_quotation, "t2", 4)
        assert _task_ids(q) == ["t1", "t3", "t4", "t5", "t2", "t6"]

    def test_move_task_out_of_range(self, task_model: TaskModel, six_task_quotation: Quotation):
        with pytest.raises(ValidationError):
            task_model.move_task(six_task_quotation, "t2", 6)

    def test_move_task_across_categories(self, task_model: TaskModel, six_task_quotation: Quotation):
        """测试跨分类移动"""
        q = task_model.add_category(six_task_quotation, "测试", category_id="cat-b")
        q = task_model.move_task(q, "t3", 0, target_category_id="cat-b")
        assert _task_ids(q, 0) == ["t1", "t2", "t4", "t5", "t6"]
        assert _task_ids(q, 1) == ["t3"]


class TestHeader:
    """表头测试"""

    def test_update_header_partial(self, task_model: TaskModel, sample_quotation: Quotation):
        """测试部分更新嵌套字段"""
        q = task_model.update_header(sample_quotation, client={"phone": "13800000000"}, discount_rate="0.05")
        assert q.header.client.name == "星河科技"
        assert q.header.client.phone == "13800000000"
        assert q.header.discount_rate == Decimal("0.05")
        assert q.categories == sample_quotation.categories

    def test_update_header_unknown_field(self, task_model: TaskModel, sample_quotation: Quotation):
        with pytest.raises(ValidationError):
            task_model.update_header(sample_quotation, grand_total=1)

    def test_update_header_invalid(self, task_model: TaskModel, sample_quotation: Quotation):
        with pytest.raises(ValidationError):
            task_model.update_header(sample_quotation, tax_rate="-0.1")
