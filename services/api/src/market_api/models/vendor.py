"""商家实体模型。"""

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from market_api.models.base import Base, StringPrimaryKeyMixin, TimestampMixin
from market_api.models.enums import StoreStatus, VerificationStatus


class Vendor(Base, StringPrimaryKeyMixin, TimestampMixin):
    """商家经营资料，与商家账号一一对应，且与账号在同一事务内创建。"""

    __tablename__ = "vendors"

    # 所属账号 ID（逻辑关联 users.id）。
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    business_name: Mapped[str] = mapped_column(String(256), nullable=False)
    business_type: Mapped[str | None] = mapped_column(String(128))
    phone: Mapped[str | None] = mapped_column(String(64))
    email: Mapped[str | None] = mapped_column(String(256))
    # 审核状态（pending/under_review/verified/rejected/suspended）。
    verification_status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=VerificationStatus.PENDING
    )
    verification_notes: Mapped[str | None] = mapped_column(Text)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    verified_by: Mapped[str | None] = mapped_column(String(64))
    # 店铺状态（active/inactive/suspended）。
    store_status: Mapped[str] = mapped_column(String(32), nullable=False, default=StoreStatus.INACTIVE)
