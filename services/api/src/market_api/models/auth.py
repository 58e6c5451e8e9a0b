"""认证会话模型。"""

from datetime import datetime

from sqlalchemy import DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from market_api.models.base import Base, StringPrimaryKeyMixin


class UserSession(Base, StringPrimaryKeyMixin):
    """服务端会话，仅保存令牌摘要，不保存原始令牌。"""

    __tablename__ = "sessions"

    # 会话归属账号 ID，可能来自 users 或 admin_users。
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    # 创建时的角色快照，用于校验时选择身份来源。
    user_role: Mapped[str] = mapped_column(String(32), nullable=False)
    # 令牌摘要，唯一索引用于按令牌查找。
    token_hash: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    ip_address: Mapped[str | None] = mapped_column(String(64))
    user_agent: Mapped[str | None] = mapped_column(Text)
    # 过期时间，每次校验成功后向后滑动。
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
