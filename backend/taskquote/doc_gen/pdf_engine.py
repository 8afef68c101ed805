"""
PDF导出引擎 - Excel报价单导出PDF

职责：
1. Excel文档导出PDF（LibreOffice，Windows下可选Office COM）
2. PDF页数计算（校验与排版页数一致）

依赖：
- libreoffice: soffice --headless 转换
- pywin32: Windows COM自动化（可选）
- PyPDF2: 读取PDF页数

测试要点：
- test_missing_xlsx: 源文件不存在 → ExportFailed
- test_libreoffice_timeout: 转换超时 → ExportFailed
- test_count_pdf_pages: PDF页数计算
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError

from ..config import get_config
from ..interfaces import ExportFailed, IPDFExporter

logger = logging.getLogger(__name__)


class PDFExporter(IPDFExporter):
    """PDF导出器实现"""

    def __init__(self, preferred_engine: str | None = None, timeout_sec: int | None = None):
        config = get_config()
        self.preferred = preferred_engine or config.pdf_engine.preferred
        self.fallback = config.pdf_engine.fallback
        self.timeout = timeout_sec or config.timeouts.pdf_export_sec

    def export_xlsx_to_pdf(self, xlsx_path: Path, pdf_path: Path) -> None:
        """Excel文档导出PDF"""
        if not xlsx_path.exists():
            raise ExportFailed(f"Excel文档不存在: {xlsx_path}")

        pdf_path.parent.mkdir(parents=True, exist_ok=True)

        # 尝试Office COM
        if self.preferred == "office_com":
            try:
                self._export_xlsx_via_com(xlsx_path, pdf_path)
                return
            except Exception as e:
                if not self.fallback:
                    raise ExportFailed(f"Excel导出PDF失败: {e}") from e
                logger.warning(f"Office COM导出失败，改用{self.fallback}: {e}")

        # 尝试LibreOffice
        if self.fallback == "libreoffice" or self.preferred == "libreoffice":
            self._export_via_libreoffice(xlsx_path, pdf_path)
        else:
            raise ExportFailed("无可用的PDF导出引擎")

        if not pdf_path.exists():
            raise ExportFailed(f"PDF未生成: {pdf_path}")

    def count_pdf_pages(self, pdf_path: Path) -> int:
        """计算PDF页数"""
        if not pdf_path.exists():
            raise ExportFailed(f"PDF文件不存在: {pdf_path}")
        try:
            return len(PdfReader(str(pdf_path)).pages)
        except PdfReadError as e:
            raise ExportFailed(f"PDF读取失败: {pdf_path}: {e}") from e

    def _export_xlsx_via_com(self, xlsx_path: Path, pdf_path: Path) -> None:
        """通过Office COM导出Excel到PDF"""
        try:
            import win32com.client
        except ImportError:
            raise ExportFailed("pywin32未安装，无法使用Office COM")

        excel = None
        wb = None
        try:
            excel = win32com.client.Dispatch("Excel.Application")
            excel.Visible = False

            wb = excel.Workbooks.Open(str(xlsx_path.absolute()))
            wb.ExportAsFixedFormat(0, str(pdf_path.absolute()))  # 0 = PDF
        finally:
            if wb:
                wb.Close(False)
            if excel:
                excel.Quit()

    def _export_via_libreoffice(self, input_path: Path, pdf_path: Path) -> None:
        """通过LibreOffice导出PDF"""
        cmd = [
            "soffice",
            "--headless",
            "--convert-to", "pdf",
            "--outdir", str(pdf_path.parent),
            str(input_path),
        ]

        try:
            subprocess.run(
                cmd,
                capture_output=True,
                timeout=self.timeout,
                check=True,
            )
        except FileNotFoundError as e:
            raise ExportFailed("未找到soffice，请安装LibreOffice") from e
        except subprocess.TimeoutExpired as e:
            raise ExportFailed(f"LibreOffice导出超时: {input_path}") from e
        except subprocess.CalledProcessError as e:
            raise ExportFailed(f"LibreOffice导出失败: {e.stderr}") from e

        # LibreOffice输出文件名与源文件同名
        expected = pdf_path.parent / f"{input_path.stem}.pdf"
        if expected != pdf_path and expected.exists():
            expected.replace(pdf_path)
