"""
pytest 配置与公共 fixtures

使用方式：
    def test_something(rate_card, sample_quotation):
        assert rate_card.get_price("主页") == 300000
"""

from __future__ import annotations

import tempfile
from decimal import Decimal
from pathlib import Path
from typing import Generator

import pytest

from taskquote.config import RateCard, RuntimeConfig, load_rate_card
from taskquote.doc_gen import DocumentRenderer, EstimationEngine, PaginationLayoutEngine
from taskquote.editor import TaskModel
from taskquote.models import (
    Category,
    ClientInfo,
    PageCapacity,
    ProjectInfo,
    Quotation,
    QuotationHeader,
    Task,
)


# ============================================================================
# 配置 Fixtures
# ============================================================================

@pytest.fixture(scope="session")
def rate_card() -> RateCard:
    """加载包内单价表（会话级别缓存）"""
    return load_rate_card()


@pytest.fixture
def runtime_config() -> RuntimeConfig:
    """运行期配置"""
    return RuntimeConfig()


# ============================================================================
# 引擎 Fixtures
# ============================================================================

@pytest.fixture
def task_model(rate_card: RateCard) -> TaskModel:
    return TaskModel(rate_card)


@pytest.fixture
def estimator(rate_card: RateCard) -> EstimationEngine:
    return EstimationEngine(rate_card)


@pytest.fixture
def layout_engine() -> PaginationLayoutEngine:
    return PaginationLayoutEngine()


@pytest.fixture
def renderer(rate_card: RateCard) -> DocumentRenderer:
    return DocumentRenderer(rate_card)


@pytest.fixture
def small_capacity() -> PageCapacity:
    """每页5行，首页不预留表头"""
    return PageCapacity(rows_per_page=5, first_page_header_rows=0)


# ============================================================================
# 数据模型 Fixtures
# ============================================================================

@pytest.fixture
def sample_header() -> QuotationHeader:
    """示例表头（税率10%）"""
    return QuotationHeader(
        client=ClientInfo(name="星河科技", phone="010-12345678"),
        project=ProjectInfo(name="官网改版", date="2026-03-01"),
        currency="CNY",
        tax_rate=Decimal("0.1"),
    )


@pytest.fixture
def sample_quotation(sample_header: QuotationHeader) -> Quotation:
    """1个分类2个任务：2×100000 + 1×50000"""
    return Quotation(
        header=sample_header,
        categories=(
            Category(
                category_id="cat-web",
                name="前端开发",
                tasks=(
                    Task(
                        task_id="t-static",
                        name="静态页面",
                        unit="页",
                        quantity=Decimal("2"),
                        unit_rate=Decimal("100000"),
                        page_type="静态页面",
                    ),
                    Task(
                        task_id="t-popup",
                        name="弹窗",
                        unit="页",
                        quantity=Decimal("1"),
                        unit_rate=Decimal("50000"),
                        page_type="弹窗",
                    ),
                ),
            ),
        ),
    )


@pytest.fixture
def six_task_quotation(sample_header: QuotationHeader) -> Quotation:
    """1个分类6个任务（每个 1×10000）"""
    tasks = tuple(
        Task(
            task_id=f"t{i}",
            name=f"任务{i}",
            unit="人日",
            quantity=Decimal("1"),
            unit_rate=Decimal("10000"),
        )
        for i in range(1, 7)
    )
    return Quotation(
        header=sample_header,
        categories=(Category(category_id="cat-a", name="开发", tasks=tasks),),
    )


# ============================================================================
# 文件 Fixtures
# ============================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """临时目录"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)
