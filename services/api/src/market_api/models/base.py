"""对象映射基础模型与通用混入。"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import JSON, DateTime, MetaData, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# PostgreSQL 下使用 JSONB，其余方言回退到通用 JSON。
JSONType = JSON().with_variant(JSONB(), "postgresql")


def new_id(prefix: str, length: int = 16) -> str:
    """生成带业务前缀的主键，例如 user_9f1c...。"""
    return f"{prefix}_{uuid4().hex[:length]}"


class Base(DeclarativeBase):
    """全局对象映射声明基类。"""

    metadata = MetaData(
        naming_convention={
            # 统一约束/索引命名规范。
            "pk": "pk_%(table_name)s",
            "ix": "ix_%(table_name)s_%(column_0_name)s",
            "uq": "uk_%(table_name)s_%(column_0_name)s",
            "ck": "ck_%(table_name)s_%(constraint_name)s",
        }
    )


class StringPrimaryKeyMixin:
    """提供带前缀的字符串主键字段，由服务层生成。"""

    id: Mapped[str] = mapped_column(String(64), primary_key=True, comment="主键 ID。")


class TimestampMixin:
    """提供创建时间与更新时间字段。"""

    # 记录创建时间。
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, comment="创建时间。"
    )
    # 记录最后更新时间，更新时自动刷新。
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
        comment="更新时间。",
    )
