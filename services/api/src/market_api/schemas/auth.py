"""认证接口请求与响应结构。"""

from datetime import datetime

from pydantic import BaseModel, Field

from market_api.schemas.common import BaseSchema


class AuthRegisterRequest(BaseModel):
    """公开注册请求（买家或商家）。

    字段格式由认证流程统一校验，失败返回 INVALID_INPUT。
    """

    email: str = Field(max_length=256, description="登录邮箱。", examples=["alice@example.com"])
    password: str = Field(max_length=128, description="登录口令。", examples=["secret1"])
    name: str = Field(max_length=128, description="展示名。", examples=["Alice"])
    role: str = Field(default="buyer", description="账号角色：buyer 或 vendor。")
    phone: str | None = Field(default=None, max_length=64, description="联系电话。")
    location: str | None = Field(default=None, max_length=256, description="所在地区。")
    business_name: str | None = Field(default=None, max_length=256, description="店铺名称，商家必填。")
    business_type: str | None = Field(default=None, max_length=128, description="经营类型。")


class AuthLoginRequest(BaseModel):
    """登录请求。"""

    email: str = Field(max_length=256, description="登录邮箱。", examples=["alice@example.com"])
    password: str = Field(max_length=128, description="登录口令。", examples=["secret1"])


class PasswordChangeRequest(BaseModel):
    """修改口令请求。"""

    current_password: str = Field(max_length=128, description="当前口令。")
    new_password: str = Field(max_length=128, description="新口令。")


class AuthUserData(BaseSchema):
    """统一身份结构。"""

    id: str = Field(description="账号 ID。")
    email: str = Field(description="登录邮箱。")
    name: str = Field(description="展示名。")
    role: str = Field(description="账号角色。")
    status: str = Field(description="账号状态。")
    phone: str | None = Field(default=None, description="联系电话。")
    location: str | None = Field(default=None, description="所在地区。")
    avatar: str | None = Field(default=None, description="头像地址。")
    business_name: str | None = Field(default=None, description="店铺名称。")
    business_type: str | None = Field(default=None, description="经营类型。")
    verification_status: str | None = Field(default=None, description="商家审核状态。")
    store_description: str | None = Field(default=None, description="店铺简介。")
    store_banner: str | None = Field(default=None, description="店铺横幅。")
    store_logo: str | None = Field(default=None, description="店铺标志。")
    created_at: datetime | None = Field(default=None, description="创建时间。")
    admin_role: str | None = Field(default=None, description="管理员角色（ADMIN/MASTER_ADMIN）。")
    permissions: list[str] | None = Field(default=None, description="管理员权限列表。")


class AuthSessionData(BaseSchema):
    """会话结构。"""

    id: str = Field(description="会话 ID。")
    user_id: str = Field(description="会话所属账号 ID。")
    user_role: str = Field(description="会话创建时的角色快照。")
    expires_at: datetime = Field(description="过期时间（UTC），每次校验成功后滑动。")
    token: str | None = Field(default=None, description="原始会话令牌，仅在签发时返回。")


class AuthLoginData(BaseSchema):
    """登录或注册结果。"""

    user: AuthUserData = Field(description="当前身份。")
    session: AuthSessionData = Field(description="新签发会话。")
    redirect_to: str = Field(description="按角色计算的登录后跳转路径。")


class AdminLoginData(BaseSchema):
    """管理员登录结果。"""

    admin: AuthUserData = Field(description="当前管理员身份。")
    session: AuthSessionData = Field(description="新签发会话。")
    redirect_to: str = Field(description="登录后跳转路径。")


class AuthSessionStateData(BaseSchema):
    """当前会话校验结果。"""

    user: AuthUserData = Field(description="当前身份。")
    session: AuthSessionData = Field(description="已续期的会话。")
    can_sell: bool = Field(description="当前账号是否可上架销售。")


class AuthLogoutData(BaseSchema):
    """登出结果。"""

    revoked: bool = Field(description="是否实际删除了会话。")


class AuthLogoutAllData(BaseSchema):
    """全端登出结果。"""

    revoked_count: int = Field(description="删除的会话数量。")


class PasswordChangeData(BaseSchema):
    """修改口令结果。"""

    revoked_sessions: int = Field(description="被吊销的其他会话数量。")
