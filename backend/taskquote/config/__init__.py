"""
配置层 - 加载运行期配置与单价表

职责：
- 加载 documents/runtime.yaml（运行期参数）
- 加载 rate_card.yaml（任务类型单价/币种/默认值）
- 提供类型安全的配置访问接口
"""

from .logging_setup import setup_logging
from .rate_card import (
    CurrencyInfo,
    GradeInfo,
    PageTypeInfo,
    RateCard,
    load_rate_card,
    reload_rate_card,
)
from .runtime_config import (
    ExportConfig,
    LayoutConfig,
    LoggingConfig,
    RuntimeConfig,
    get_config,
    reload_config,
)

__all__ = [
    "RateCard",
    "PageTypeInfo",
    "GradeInfo",
    "CurrencyInfo",
    "load_rate_card",
    "reload_rate_card",
    "RuntimeConfig",
    "LayoutConfig",
    "ExportConfig",
    "LoggingConfig",
    "get_config",
    "reload_config",
    "setup_logging",
]
