"""
从模板生成报价单：打印文本预览，可选导出 xlsx/pdf。

用法：
  python tools/render_quotation.py --template documents/sample_quotation.yaml
  python tools/render_quotation.py --template documents/sample_quotation.yaml --export xlsx --out-dir storage/exports
  python tools/render_quotation.py --template documents/sample_quotation.yaml --rows-per-page 10 --header-rows 0
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path


def _add_backend_to_path() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    backend_root = repo_root / "backend"
    if str(backend_root) not in sys.path:
        sys.path.insert(0, str(backend_root))


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Render a quotation template to preview text or an exported document."
    )
    parser.add_argument("--template", required=True, help="报价单模板（YAML/JSON）")
    parser.add_argument("--config", default="documents/runtime.yaml", help="运行期配置")
    parser.add_argument("--export", choices=["xlsx", "pdf"], default="", help="导出格式（不填只预览）")
    parser.add_argument("--out-dir", default="", help="导出目录（默认取配置）")
    parser.add_argument("--rows-per-page", type=int, default=0, help="覆盖每页行数")
    parser.add_argument("--header-rows", type=int, default=-1, help="覆盖首页表头预留行数")
    parser.add_argument("--log-level", default="", help="日志级别")
    args = parser.parse_args()

    _add_backend_to_path()
    from taskquote.config import reload_config, setup_logging  # type: ignore
    from taskquote.interfaces import TaskQuoteError  # type: ignore
    from taskquote.models import PageCapacity  # type: ignore
    from taskquote.pipeline import PreviewController, QuotationPipeline  # type: ignore

    config = reload_config(args.config)
    setup_logging(config.logging, log_level=args.log_level or None)

    layout = config.layout
    capacity = PageCapacity(
        rows_per_page=args.rows_per_page or layout.rows_per_page,
        first_page_header_rows=layout.first_page_header_rows if args.header_rows < 0 else args.header_rows,
        wrap_width=layout.wrap_width,
    )

    try:
        pipeline = QuotationPipeline(capacity=capacity)
        controller = PreviewController(pipeline=pipeline)
        controller.reset(controller.task_model.from_template(args.template))
    except (TaskQuoteError, FileNotFoundError) as exc:
        print(f"模板加载失败: {exc}")
        return 1

    preview = controller.flush()
    if preview is None:
        print(f"排版失败: {controller.last_error}")
        return 1

    print(preview.document.as_text())
    totals = preview.totals
    print(f"\n总计: {totals.grand_total} {controller.quotation.header.currency}")
    if totals.proposal_price is not None:
        print(f"提案价: {totals.proposal_price}")

    if not args.export:
        return 0

    out_dir = Path(args.out_dir) if args.out_dir else None
    job = controller.export(fmt=args.export, output_dir=out_dir)
    if job is None or job.artifact is None:
        print(f"导出失败: {controller.last_error}")
        return 1

    print(f"已导出: {job.artifact} ({job.page_total}页)")
    for flag in job.flags:
        print(f"  告警: {flag}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
