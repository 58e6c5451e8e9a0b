"""请求上下文依赖。

职责:
1. 从应用状态获取存储适配器。
2. 解析并校验会话令牌。
3. 生成后续路由统一使用的 RequestContext。
"""

from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer

from market_api.core.security import require_session_token
from market_api.db.session import Store
from market_api.models.enums import UserRole
from market_api.services.auth_result import AuthErrorCode
from market_api.services.authentication import validate_session_token
from market_api.services.identity import AuthSession, AuthUser

# 仅用于在线接口文档展示认证方式，实际令牌由 require_session_token 解析（兼容 Cookie）。
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class RequestContext:
    """请求上下文。"""

    # 当前登录身份。
    user: AuthUser
    # 当前会话（已续期）。
    session: AuthSession
    # 当前请求携带的原始令牌。
    token: str


def get_store(request: Request) -> Store:
    """返回应用启动时创建的存储适配器。"""
    return request.app.state.store


def get_request_context(
    request: Request,
    _credentials=Depends(bearer_scheme),
    store: Store = Depends(get_store),
) -> RequestContext:
    """校验会话令牌并返回请求上下文。"""
    token = require_session_token(request)
    result = validate_session_token(store, token)
    if not result.success or result.data is None:
        error = result.error
        # 令牌本身无效统一按 401 处理，不区分“不存在”与“已过期”。
        if error is None or error.code in {AuthErrorCode.INVALID_CREDENTIALS, AuthErrorCode.INVALID_INPUT}:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="unauthorized")
        raise error
    return RequestContext(user=result.data.user, session=result.data.session, token=token)


def require_admin(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
    """要求管理类角色。"""
    if not ctx.user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="forbidden")
    return ctx


def require_master_admin(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
    """要求主管理员角色。"""
    if ctx.user.role != UserRole.MASTER_ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="forbidden")
    return ctx
