"""
文档渲染器 - 屏幕预览与Excel/PDF导出

职责：
1. 预览：每页生成文本行，页脚标注"当前页/总页数"
2. 导出Excel：每个排版页对应一个打印页（手动分页符），首页写入表头区
3. 导出PDF：Excel经PDF引擎转换，并核对页数
4. 第二个工作表写入类型汇总、提案价、备注与修订记录

依赖：
- openpyxl: Excel写入
- pdf_engine: Excel导出PDF

测试要点：
- test_preview_page_labels: 页脚 1/2、2/2
- test_export_xlsx_page_breaks: 分页符数量 = 页数-1
- test_export_filename: 文件名 = 前缀-客户-日期
- test_export_pdf_failure: 转换失败 → ExportFailed
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal
from pathlib import Path

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Alignment, Border, Font, Side
from openpyxl.utils.exceptions import IllegalCharacterError
from openpyxl.worksheet.pagebreak import Break

from ..config import RateCard, load_rate_card
from ..interfaces import ExportFailed, IDocumentRenderer, IPDFExporter
from ..models import (
    Page,
    PageRow,
    PreviewDocument,
    PreviewPage,
    QuotationHeader,
    RowKind,
    TypeSummaryItem,
)
from .estimation import round_money
from .layout import display_width
from .pdf_engine import PDFExporter

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("xlsx", "pdf")

# 表格列：(列字母, 标题, 列宽)
COLUMNS = [
    ("A", "序号", 6),
    ("B", "项目", 40),
    ("C", "单位", 8),
    ("D", "数量", 8),
    ("E", "单价", 14),
    ("F", "金额", 16),
    ("G", "备注", 24),
]

ROW_HEIGHT_PT = 15
_THIN = Side(style="thin")
_BORDER = Border(left=_THIN, right=_THIN, top=_THIN, bottom=_THIN)
_UNSAFE_FILENAME = re.compile(r'[\\/:*?"<>|\s]+')


def build_export_filename(header: QuotationHeader, ext: str, prefix: str = "报价单") -> str:
    """导出文件名：前缀-客户(无客户时取项目名)-日期.扩展名"""
    party = header.client.name or header.project.name
    parts = [prefix, party, header.quote_date.strftime("%Y%m%d")]
    stem = "-".join(_UNSAFE_FILENAME.sub("_", p.strip()) for p in parts if p and p.strip())
    return f"{stem}.{ext}"


def wrap_text(text: str, width: int | None) -> list[str]:
    """按显示宽度折行"""
    if not width or display_width(text) <= width:
        return [text]
    lines: list[str] = []
    current = ""
    for ch in text:
        if display_width(current + ch) > width:
            lines.append(current)
            current = ch
        else:
            current += ch
    if current:
        lines.append(current)
    return lines


def _cell_text(value):
    """去掉Excel不接受的控制字符（粘贴文本中常见的 \\x0b 等）"""
    if isinstance(value, str):
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    return value


def _tax_label(header: QuotationHeader) -> str:
    return "其中税额" if header.vat_included else "税额"


def _fmt_qty(value: Decimal | None) -> str:
    if value is None:
        return ""
    return format(value.normalize(), "f")


class DocumentRenderer(IDocumentRenderer):
    """文档渲染器实现"""

    def __init__(
        self,
        rate_card: RateCard | None = None,
        pdf_exporter: IPDFExporter | None = None,
        wrap_width: int | None = None,
        filename_prefix: str = "报价单",
    ):
        self.rate_card = rate_card or load_rate_card()
        self._pdf_exporter = pdf_exporter
        self.wrap_width = wrap_width
        self.filename_prefix = filename_prefix

    @property
    def pdf_exporter(self) -> IPDFExporter:
        if self._pdf_exporter is None:
            self._pdf_exporter = PDFExporter()
        return self._pdf_exporter

    # ------------------------------------------------------------------
    # 预览
    # ------------------------------------------------------------------

    def render_preview(self, pages: tuple[Page, ...], header: QuotationHeader) -> PreviewDocument:
        """渲染预览（每页文本行+页码）"""
        total = len(pages)
        minor_unit = self.rate_card.get_minor_unit(header.currency)
        title_cols = " | ".join(title for _, title, _ in COLUMNS)

        preview_pages = []
        for page in pages:
            lines: list[str] = []
            if page.page_index == 1:
                lines.extend(self._header_lines(header)[: page.reserved_header_rows])
            lines.append(title_cols)
            for row in page.rows:
                lines.extend(self._preview_row(row, minor_unit, _tax_label(header)))
            label = f"{page.page_index}/{total}"
            lines.append(label)
            preview_pages.append(PreviewPage(page_index=page.page_index, label=label, lines=tuple(lines)))

        return PreviewDocument(
            title=self._title(header),
            page_total=total,
            pages=tuple(preview_pages),
        )

    def _preview_row(self, row: PageRow, minor_unit: int, tax_label: str = "税额") -> list[str]:
        if row.kind in (RowKind.CATEGORY_HEADER, RowKind.CONTINUED_HEADER):
            return [f"[{row.label}]"]

        if row.kind == RowKind.TASK:
            name_lines = wrap_text(row.label, self.wrap_width) if row.height > 1 else [row.label]
            first = " | ".join([
                str(row.seq_no),
                name_lines[0],
                row.unit,
                _fmt_qty(row.quantity),
                self._money(row.unit_rate, minor_unit),
                self._money(row.amount, minor_unit),
                row.note,
            ])
            rest = [f"  | {line}" for line in name_lines[1:]]
            # 折行结果与排版高度保持一致
            rest = (rest + [""] * row.height)[: row.height - 1]
            return [first, *rest]

        if row.kind == RowKind.SUBTOTAL:
            return [f"{row.label}: {self._money(row.amount, minor_unit)}"]

        return [
            f"{row.label}: {self._money(row.amount, minor_unit)}"
            f" (净额 {self._money(row.net_total, minor_unit)}"
            f", 折扣 {self._money(row.discount_amount, minor_unit)}"
            f", {tax_label} {self._money(row.tax_amount, minor_unit)})"
        ]

    # ------------------------------------------------------------------
    # 导出
    # ------------------------------------------------------------------

    def export(
        self,
        pages: tuple[Page, ...],
        header: QuotationHeader,
        output_dir: Path,
        fmt: str = "xlsx",
        type_summary: tuple[TypeSummaryItem, ...] = (),
        proposal_price: Decimal | None = None,
    ) -> Path:
        """导出Excel（或经Excel转换为PDF）"""
        fmt = fmt.lower()
        if fmt not in SUPPORTED_FORMATS:
            raise ExportFailed(f"不支持的导出格式: {fmt}")
        if not pages:
            raise ExportFailed("没有可导出的页面")

        output_dir = Path(output_dir)
        xlsx_path = output_dir / build_export_filename(header, "xlsx", self.filename_prefix)

        try:
            output_dir.mkdir(parents=True, exist_ok=True)
            wb = self._build_workbook(pages, header, type_summary, proposal_price)
            wb.save(xlsx_path)
        except (OSError, ValueError, IllegalCharacterError) as e:
            raise ExportFailed(f"写入Excel失败: {xlsx_path}: {e}") from e

        logger.info(f"Excel已生成: {xlsx_path.name} ({len(pages)}页)")
        if fmt == "xlsx":
            return xlsx_path

        pdf_path = xlsx_path.with_suffix(".pdf")
        self.pdf_exporter.export_xlsx_to_pdf(xlsx_path, pdf_path)

        page_count = self.pdf_exporter.count_pdf_pages(pdf_path)
        if page_count != len(pages):
            logger.warning(f"PDF页数({page_count})与排版页数({len(pages)})不一致: {pdf_path.name}")

        logger.info(f"PDF已生成: {pdf_path.name}")
        return pdf_path

    def _build_workbook(
        self,
        pages: tuple[Page, ...],
        header: QuotationHeader,
        type_summary: tuple[TypeSummaryItem, ...],
        proposal_price: Decimal | None,
    ) -> Workbook:
        wb = Workbook()
        ws = wb.active
        ws.title = "报价单"
        minor_unit = self.rate_card.get_minor_unit(header.currency)
        number_format = self._number_format(minor_unit)

        ws.page_setup.orientation = "portrait"
        ws.page_setup.paperSize = ws.PAPERSIZE_A4
        ws.page_setup.fitToWidth = 1
        ws.page_setup.fitToHeight = 0
        ws.sheet_properties.pageSetUpPr.fitToPage = True
        for letter, _, width in COLUMNS:
            ws.column_dimensions[letter].width = width

        total = len(pages)
        row = 1
        for page in pages:
            # 首页表头区
            if page.page_index == 1 and page.reserved_header_rows:
                lines = self._header_lines(header)[: page.reserved_header_rows]
                for i in range(page.reserved_header_rows):
                    if i < len(lines):
                        ws.cell(row=row, column=1, value=_cell_text(lines[i]))
                        ws.merge_cells(start_row=row, start_column=1, end_row=row, end_column=len(COLUMNS))
                        if i == 0:
                            ws.cell(row=row, column=1).font = Font(bold=True, size=16)
                    row += 1

            # 列标题
            for col, (_, title, _) in enumerate(COLUMNS, start=1):
                cell = ws.cell(row=row, column=col, value=title)
                cell.font = Font(bold=True)
                cell.border = _BORDER
                cell.alignment = Alignment(horizontal="center")
            row += 1

            # 表格行，不足容量的部分留空
            used = 0
            for page_row in page.rows:
                self._write_row(ws, row, page_row, number_format, minor_unit, _tax_label(header))
                row += 1
                used += page_row.height
            row += max(0, page.capacity_rows - used)

            # 页脚
            footer = ws.cell(row=row, column=len(COLUMNS), value=f"{page.page_index}/{total}")
            footer.alignment = Alignment(horizontal="right")
            if page.page_index < total:
                ws.row_breaks.append(Break(id=row))
            row += 1

        self._write_summary_sheet(wb, header, type_summary, proposal_price, number_format, minor_unit)
        return wb

    def _write_row(
        self,
        ws,
        row: int,
        page_row: PageRow,
        number_format: str,
        minor_unit: int,
        tax_label: str = "税额",
    ) -> None:
        """写入单个表格行"""
        kind = page_row.kind

        if kind == RowKind.TASK:
            values = [
                page_row.seq_no,
                page_row.label,
                page_row.unit,
                page_row.quantity,
                self._rounded(page_row.unit_rate, minor_unit),
                self._rounded(page_row.amount, minor_unit),
                page_row.note,
            ]
        elif kind == RowKind.GRAND_TOTAL:
            values = [
                None,
                page_row.label,
                None,
                None,
                None,
                page_row.amount,
                f"净额 {self._money(page_row.net_total, minor_unit)}"
                f" / 折扣 {self._money(page_row.discount_amount, minor_unit)}"
                f" / {tax_label} {self._money(page_row.tax_amount, minor_unit)}",
            ]
        elif kind == RowKind.SUBTOTAL:
            values = [None, page_row.label, None, None, None, self._rounded(page_row.amount, minor_unit), None]
        else:
            values = [None, page_row.label, None, None, None, None, None]

        for col, value in enumerate(values, start=1):
            cell = ws.cell(row=row, column=col, value=_cell_text(value))
            cell.border = _BORDER
            if col in (5, 6):
                cell.number_format = number_format

        if kind != RowKind.TASK:
            for col in range(1, len(COLUMNS) + 1):
                ws.cell(row=row, column=col).font = Font(bold=True)

        if page_row.height > 1:
            ws.cell(row=row, column=2).alignment = Alignment(wrap_text=True, vertical="top")
            ws.row_dimensions[row].height = ROW_HEIGHT_PT * page_row.height

    def _write_summary_sheet(
        self,
        wb: Workbook,
        header: QuotationHeader,
        type_summary: tuple[TypeSummaryItem, ...],
        proposal_price: Decimal | None,
        number_format: str,
        minor_unit: int,
    ) -> None:
        """类型汇总/提案价/备注/修订记录"""
        ws = wb.create_sheet("汇总")
        ws.column_dimensions["A"].width = 30
        ws.column_dimensions["B"].width = 10
        ws.column_dimensions["C"].width = 14
        ws.column_dimensions["D"].width = 16

        ws.append(["类型", "数量", "单价", "金额"])
        for item in type_summary:
            ws.append([
                _cell_text(item.label),
                item.quantity,
                self._rounded(item.unit_rate, minor_unit),
                self._rounded(item.amount, minor_unit),
            ])

        ws.append([])
        ws.append(["工期(月)", header.work_period_months])
        if proposal_price is not None:
            ws.append(["提案价", "不含税", None, proposal_price])
        if header.notes:
            ws.append(["备注", _cell_text(header.notes)])

        if header.history:
            ws.append([])
            ws.append(["修订人", "版本", "日期", "说明"])
            for item in header.history:
                ws.append([_cell_text(v) for v in (item.writer, item.version, item.date, item.note)])

        for row in ws.iter_rows(min_col=3, max_col=4):
            for cell in row:
                if isinstance(cell.value, (int, float, Decimal)):
                    cell.number_format = number_format

    # ------------------------------------------------------------------
    # 工具
    # ------------------------------------------------------------------

    def _title(self, header: QuotationHeader) -> str:
        return f"{self.filename_prefix} {header.project.name}".strip()

    def _header_lines(self, header: QuotationHeader) -> list[str]:
        """首页表头区文本（按预留行数截取）"""
        project = header.project
        issuer = header.issuer
        client = header.client
        return [
            self._title(header),
            f"项目: {project.name}  版本: {project.version}",
            f"日期: {project.date.isoformat()}  有效期: {project.validity_days}天",
            f"客户: {client.name}  电话: {client.phone}",
            f"报价方: {issuer.name}  代表: {issuer.representative}  电话: {issuer.phone}",
            f"地址: {issuer.address}  营业执照号: {issuer.business_number}",
            f"工期: {header.work_period_months}个月  币种: {header.currency}"
            f"  {'单价含税' if header.vat_included else '税额另计'}",
        ]

    @staticmethod
    def _number_format(minor_unit: int) -> str:
        return "#,##0." + "0" * minor_unit if minor_unit else "#,##0"

    @staticmethod
    def _rounded(value: Decimal | None, minor_unit: int) -> Decimal | None:
        return None if value is None else round_money(value, minor_unit)

    def _money(self, value: Decimal | None, minor_unit: int) -> str:
        if value is None:
            return ""
        return f"{round_money(value, minor_unit):,}"
