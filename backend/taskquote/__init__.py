"""
任务单价报价系统 - 后端核心模块

模块结构：
- config/     运行期配置与单价表加载
- models/     数据模型定义（报价单/汇总/分页/导出任务）
- editor/     报价单编辑操作与编辑命令
- doc_gen/    文档生成（金额计算/分页排版/渲染/PDF导出）
- pipeline/   流水线编排（预览控制/导出任务管理）
"""

__version__ = "0.1.0"
