"""审计日志模型。"""

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from market_api.models.base import Base, JSONType, StringPrimaryKeyMixin


class AuditLog(Base, StringPrimaryKeyMixin):
    """认证与管理操作审计日志。"""

    __tablename__ = "audit_logs"

    # 日志分类（auth/admin/security）。
    category: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    # 动作标识，例如 LOGIN_SUCCESS / USER_SUSPENDED。
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    # 操作人，匿名动作可为空。
    actor_id: Mapped[str | None] = mapped_column(String(64))
    actor_email: Mapped[str | None] = mapped_column(String(256))
    # 被操作对象。
    target_id: Mapped[str | None] = mapped_column(String(64), index=True)
    target_type: Mapped[str | None] = mapped_column(String(32))
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # 结构化补充信息。
    details: Mapped[dict[str, Any] | None] = mapped_column(JSONType)
    ip: Mapped[str | None] = mapped_column(String(64))
    user_agent: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
