# alembic/env.py qrtrace 迁移入口（同步驱动执行，DSN 与应用同源）

from __future__ import annotations

import os
import re
from logging.config import fileConfig
from typing import Any

from alembic import context
from sqlalchemy import create_engine
from sqlalchemy.engine import Connection
from sqlalchemy.pool import NullPool

# Alembic 基本配置
config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# 延迟加载模型（避免导入时机引发的问题）
from qrtrace.db.base import Base, init_models  # noqa: E402

# ---------------------------------------------------------------------------
# URL 规范化 + 获取：优先用 QRT_DATABASE_URL / DATABASE_URL
# ---------------------------------------------------------------------------

_DRV_RE = re.compile(r"\+asyncpg\b|\+psycopg2\b|\+pg8000\b", re.I)


def normalize_sync_url(url: str) -> str:
    """
    迁移走同步引擎：
      - postgres 一律 +psycopg（psycopg3 同时支持同步 / 异步）
      - sqlite+aiosqlite → sqlite
    """
    if not url:
        return url

    url = _DRV_RE.sub("+psycopg", url)
    url = re.sub(r"^postgres://", "postgresql+psycopg://", url, flags=re.I)
    if url.lower().startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+psycopg://", 1)
    url = re.sub(r"^sqlite\+aiosqlite://", "sqlite://", url, flags=re.I)
    return url


def get_url() -> str:
    """
    优先级：
      1. QRT_DATABASE_URL
      2. DATABASE_URL
      3. alembic.ini 里的 sqlalchemy.url
    """
    url = (
        os.getenv("QRT_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or config.get_main_option("sqlalchemy.url")
    )

    if not url:
        raise RuntimeError(
            "Alembic 无法确定数据库 URL：\n"
            "请设置 QRT_DATABASE_URL / DATABASE_URL，或在 alembic.ini 里配置 sqlalchemy.url"
        )

    # 去掉外层意外加上的引号
    url = url.strip()
    if (url.startswith('"') and url.endswith('"')) or (
        url.startswith("'") and url.endswith("'")
    ):
        url = url[1:-1].strip()

    return normalize_sync_url(url)


def include_object(
    obj: Any, name: str | None, type_: str, reflected: bool, compare_to: Any
) -> bool:
    """DB 里多出来的对象不参与 diff（不自动生成 drop）。"""
    if reflected and compare_to is None:
        return False
    return True


# ---------------------------------------------------------------------------
# 迁移执行函数
# ---------------------------------------------------------------------------


def run_migrations_offline() -> None:
    """
    Offline 模式：不真实连库，只生成 SQL。
    """
    init_models()

    context.configure(
        url=get_url(),
        target_metadata=Base.metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        compare_server_default=False,
        include_object=include_object,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """
    Online 模式：真实连库执行迁移。
    """
    init_models()
    url = get_url()

    engine = create_engine(url, poolclass=NullPool, future=True)
    db_schema = os.getenv("DB_SCHEMA")  # 多 schema 环境可设置

    with engine.connect() as connection:  # type: Connection
        if db_schema:
            connection.exec_driver_sql(f"SET search_path TO {db_schema}")

        context.configure(
            connection=connection,
            target_metadata=Base.metadata,
            compare_type=True,
            compare_server_default=False,
            include_object=include_object,
            render_as_batch=url.startswith("sqlite"),
            version_table_schema=db_schema if db_schema else None,
            include_schemas=bool(db_schema),
        )

        with context.begin_transaction():
            context.run_migrations()


# ---------------------------------------------------------------------------
# 入口：根据 offline/online 模式选择执行路径
# ---------------------------------------------------------------------------

if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
