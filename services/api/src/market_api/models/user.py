"""平台账号模型。"""

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from market_api.models.base import Base, StringPrimaryKeyMixin, TimestampMixin
from market_api.models.enums import UserStatus


class User(Base, StringPrimaryKeyMixin, TimestampMixin):
    """统一账号实体，买家、商家、管理员共用。"""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("role IN ('buyer', 'vendor', 'admin', 'master_admin')", name="role"),
        CheckConstraint("status IN ('active', 'suspended', 'pending', 'banned', 'deleted')", name="status"),
    )

    # 登录邮箱，统一小写存储；唯一约束是并发注册下的最终防线。
    email: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)
    # 口令哈希（salt:digest），第三方登录账号可为空。
    password_hash: Mapped[str | None] = mapped_column(String(256))
    # 展示名。
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    # 账号角色（buyer/vendor/admin/master_admin）。
    role: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    # 账号状态。
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=UserStatus.ACTIVE, index=True)
    avatar: Mapped[str | None] = mapped_column(Text)
    phone: Mapped[str | None] = mapped_column(String(64))
    location: Mapped[str | None] = mapped_column(String(256))

    # 以下为商家字段，非商家账号保持为空。
    business_name: Mapped[str | None] = mapped_column(String(256))
    business_type: Mapped[str | None] = mapped_column(String(128))
    # 商家审核状态，商家账号永不为空。
    verification_status: Mapped[str | None] = mapped_column(String(32))
    verification_notes: Mapped[str | None] = mapped_column(Text)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    verified_by: Mapped[str | None] = mapped_column(String(64))
    store_description: Mapped[str | None] = mapped_column(Text)
    store_banner: Mapped[str | None] = mapped_column(Text)
    store_logo: Mapped[str | None] = mapped_column(Text)

    # 逻辑删除标记，登录与会话校验均排除已删除账号。
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    deleted_by: Mapped[str | None] = mapped_column(String(64))
    deletion_reason: Mapped[str | None] = mapped_column(Text)

    # 最近一次与上一次登录时间。
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    previous_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
