# qrtrace/schemas/__init__.py
"""
Schemas package

不做聚合导出；使用时请显式从具体模块导入，例如：
    from qrtrace.schemas.scan import ScanProcessIn
"""

__all__: list[str] = []
