"""
运行期配置 - 读取 documents/runtime.yaml

职责：
- 加载分页/预览/导出/日志等运行参数
- 提供环境变量覆盖机制
- 类型安全的配置访问
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from ..interfaces import ConfigError


class LayoutConfig(BaseModel):
    """分页配置"""

    rows_per_page: int = 15
    first_page_header_rows: int = 6
    wrap_width: int | None = None


class PreviewConfig(BaseModel):
    """预览刷新配置"""

    refresh_interval_sec: float = 1.0


class ExportConfig(BaseModel):
    """导出配置"""

    format: str = "xlsx"
    output_dir: Path = Path("storage/exports")
    filename_prefix: str = "报价单"


class TimeoutConfig(BaseModel):
    """超时配置"""

    pdf_export_sec: int = 300


class PDFEngineConfig(BaseModel):
    """PDF引擎配置"""

    preferred: str = "libreoffice"
    fallback: str = ""


class LoggingConfig(BaseModel):
    """日志配置"""

    log_level: str = "INFO"
    log_to_file: bool = False
    log_dir: Path = Path("storage/logs")
    log_file: str = "taskquote.log"


class RuntimeConfig(BaseSettings):
    """运行期配置（支持环境变量覆盖）"""

    # 基础路径
    storage_dir: Path = Path("storage")
    rate_card_path: Path | None = None

    # 各子配置
    layout: LayoutConfig = Field(default_factory=LayoutConfig)
    preview: PreviewConfig = Field(default_factory=PreviewConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    pdf_engine: PDFEngineConfig = Field(default_factory=PDFEngineConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {
        "env_prefix": "TASKQUOTE_",
        "env_nested_delimiter": "__",
        "arbitrary_types_allowed": True,
    }

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> RuntimeConfig:
        """从YAML文件加载配置"""
        path = Path(yaml_path)
        if not path.exists():
            return cls()

        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"运行期配置解析失败: {path}: {e}") from e

        runtime_opts = data.get("runtime_options", {})

        config = cls(
            layout=LayoutConfig(**cls._extract(runtime_opts, "layout")),
            preview=PreviewConfig(**cls._extract(runtime_opts, "preview")),
            export=ExportConfig(**cls._extract(runtime_opts, "export")),
            timeouts=TimeoutConfig(**cls._extract(runtime_opts, "timeouts")),
            pdf_engine=PDFEngineConfig(**cls._extract(runtime_opts, "pdf_engine")),
            logging=LoggingConfig(**cls._extract(runtime_opts, "logging")),
        )

        rate_card = runtime_opts.get("rate_card_path")
        if rate_card:
            config.rate_card_path = Path(rate_card)

        config._resolve_paths(base_dir=path.parent)
        return config

    @staticmethod
    def _extract(data: dict[str, Any], key: str) -> dict[str, Any]:
        """提取并展平配置"""
        section = data.get(key, {}) or {}
        result = {}
        for k, v in section.items():
            if isinstance(v, dict) and "default" in v:
                result[k] = v["default"]
            elif not isinstance(v, dict):
                result[k] = v
        return result

    def _resolve_paths(self, base_dir: Path) -> None:
        """解析相对路径配置为绝对路径（基于配置文件所在目录）"""
        if self.rate_card_path and not self.rate_card_path.is_absolute():
            self.rate_card_path = (base_dir / self.rate_card_path).resolve()

    def get_export_dir(self) -> Path:
        """获取导出目录"""
        return self.export.output_dir

    def ensure_dirs(self) -> None:
        """确保必要目录存在"""
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self.export.output_dir.mkdir(parents=True, exist_ok=True)


# 全局配置实例
_config: RuntimeConfig | None = None


def get_config() -> RuntimeConfig:
    """获取全局配置（惰性加载）"""
    global _config
    if _config is None:
        default_path = Path("documents/runtime.yaml")
        if not default_path.exists():
            fallback_path = Path("config/runtime.yaml")
            if fallback_path.exists():
                default_path = fallback_path
        _config = RuntimeConfig.from_yaml(default_path)
    return _config


def reload_config(yaml_path: str | Path | None = None) -> RuntimeConfig:
    """重新加载配置"""
    global _config
    path = yaml_path or "documents/runtime.yaml"
    _config = RuntimeConfig.from_yaml(path)
    return _config
