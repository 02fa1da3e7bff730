# qrtrace/schemas/_base.py
from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    - 线上字段一律 camelCase（与扫码载荷 / 前端保持一致）
    - populate_by_name: 服务端内部仍可用 snake_case 填充
    - extra="ignore": 对旧客户端更宽容
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        extra="ignore",
    )
