"""管理员账号治理请求与响应结构。"""

from typing import Literal

from pydantic import BaseModel, Field

from market_api.schemas.common import BaseSchema


class AdminAccountCreateRequest(BaseModel):
    """创建管理员请求（仅主管理员）。"""

    email: str = Field(max_length=256, description="登录邮箱。")
    password: str = Field(max_length=128, description="初始口令。")
    name: str = Field(max_length=128, description="展示名。")
    role: str = Field(default="admin", description="admin 或 master_admin。")
    permissions: list[str] | None = Field(default=None, description="自定义权限，为空时使用角色默认权限。")


class UserCreateRequest(BaseModel):
    """管理员代建账号请求，可创建任意角色。"""

    email: str = Field(max_length=256, description="登录邮箱。")
    password: str = Field(max_length=128, description="初始口令。")
    name: str = Field(max_length=128, description="展示名。")
    role: str = Field(description="账号角色。")
    phone: str | None = Field(default=None, max_length=64, description="联系电话。")
    location: str | None = Field(default=None, max_length=256, description="所在地区。")
    business_name: str | None = Field(default=None, max_length=256, description="店铺名称，商家必填。")
    business_type: str | None = Field(default=None, max_length=128, description="经营类型。")
    permissions: list[str] | None = Field(default=None, description="管理员权限，仅管理类角色生效。")


class AdminAccessRequest(BaseModel):
    """管理员访问权限变更请求（仅主管理员）。"""

    action: Literal["revoke", "activate"] = Field(description="revoke 停用并强制下线，activate 恢复访问。")
    reason: str | None = Field(default=None, max_length=1024, description="操作原因，写入审计日志。")


class UserActionRequest(BaseModel):
    """账号治理动作请求。"""

    action: Literal["suspend", "ban", "activate", "delete", "restore", "revoke_sessions"] = Field(
        description="治理动作。"
    )
    reason: str | None = Field(default=None, max_length=1024, description="操作原因，暂停/封禁/删除必填。")


class VendorVerificationRequest(BaseModel):
    """商家审核动作请求。"""

    action: Literal["approve", "reject", "suspend", "under_review"] = Field(description="审核动作。")
    reason: str | None = Field(default=None, max_length=1024, description="审核意见，驳回/暂停必填。")


class UserActionData(BaseSchema):
    """治理动作结果。"""

    user_id: str = Field(description="目标账号 ID。")
    action: str = Field(description="已执行动作。")
    status: str | None = Field(default=None, description="动作后的账号状态。")
    verification_status: str | None = Field(default=None, description="动作后的商家审核状态。")
    revoked_sessions: int | None = Field(default=None, description="吊销会话数量（仅 revoke_sessions）。")


class SessionCleanupData(BaseSchema):
    """过期会话清理结果。"""

    deleted: int = Field(description="删除的过期会话数量。")


class SessionStatsData(BaseSchema):
    """会话统计。"""

    active: int = Field(description="有效会话数量。")
    expired: int = Field(description="已过期未清理会话数量。")
    total: int = Field(description="会话总数。")
