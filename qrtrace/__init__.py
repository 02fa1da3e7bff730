# qrtrace/__init__.py
"""
QR 追溯：完工单扫码载荷 / 发货单行匹配 / 批次序列号对账。
"""

__version__ = "1.0.0"
