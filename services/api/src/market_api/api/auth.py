"""认证接口。"""

from fastapi import APIRouter, Depends, Request, Response, status

from market_api.core.config import get_settings
from market_api.core.security import require_session_token
from market_api.db.session import Store
from market_api.dependencies import RequestContext, get_request_context, get_store
from market_api.models.enums import AuditCategory
from market_api.schemas.auth import (
    AdminLoginData,
    AuthLoginData,
    AuthLoginRequest,
    AuthLogoutAllData,
    AuthLogoutData,
    AuthRegisterRequest,
    AuthSessionData,
    AuthSessionStateData,
    AuthUserData,
    PasswordChangeData,
    PasswordChangeRequest,
)
from market_api.schemas.common import ErrorResponse, SuccessResponse
from market_api.services.accounts import AccountInput, register_user
from market_api.services.audit import client_ip, client_user_agent, record_event
from market_api.services.auth_result import AuthError, AuthErrorCode, AuthResult
from market_api.services.authentication import login_admin, login_user
from market_api.services.identity import AuthSession, can_vendor_sell, get_route_for_role
from market_api.services.moderation import change_password
from market_api.services.sessions import delete_user_sessions, list_user_sessions, logout_by_token
from market_api.utils.response import success

router = APIRouter(prefix="/auth", tags=["auth"])

_UNKNOWN_ACCOUNT_CODES = {AuthErrorCode.USER_NOT_FOUND, AuthErrorCode.ADMIN_NOT_FOUND}


def _set_session_cookie(response: Response, session: AuthSession) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.auth_session_cookie_name,
        value=session.token or "",
        max_age=settings.auth_session_ttl_seconds,
        httponly=True,
        secure=settings.app_env != "dev",
        samesite="lax",
    )


def _login_failure(result: AuthResult) -> AuthError:
    """登录失败错误；按配置把“账号不存在”呈现为“凭据无效”，防止邮箱枚举。"""
    error = result.error or AuthError(AuthErrorCode.TRANSACTION_FAILED, "登录失败。")
    if error.code in _UNKNOWN_ACCOUNT_CODES and get_settings().auth_mask_unknown_email:
        return AuthError(AuthErrorCode.INVALID_CREDENTIALS, "邮箱或口令错误。")
    return error


@router.post(
    "/register",
    summary="注册账号",
    description="注册买家或商家账号，注册成功即签发会话。商家账号初始为待审核状态。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuthLoginData],
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def register(
    payload: AuthRegisterRequest,
    request: Request,
    response: Response,
    store: Store = Depends(get_store),
):
    """注册账号并登录。"""
    result = register_user(
        store,
        AccountInput(**payload.model_dump()),
        ip_address=client_ip(request),
        user_agent=client_user_agent(request),
    )
    created = result.unwrap()
    record_event(
        store,
        request,
        category=AuditCategory.AUTH,
        action="REGISTER",
        actor_id=created.user.id,
        actor_email=created.user.email,
        target_id=created.user.id,
        target_type="user",
        details={"role": created.user.role},
    )
    _set_session_cookie(response, created.session)
    data = AuthLoginData(
        user=AuthUserData.model_validate(created.user),
        session=AuthSessionData.model_validate(created.session),
        redirect_to=get_route_for_role(created.user.role),
    )
    return success(request, data)


@router.post(
    "/login",
    summary="账号登录",
    description="买家、商家、管理员共用的统一登录入口，返回会话令牌与登录后跳转路径。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuthLoginData],
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        410: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
def login(
    payload: AuthLoginRequest,
    request: Request,
    response: Response,
    store: Store = Depends(get_store),
):
    """校验口令并签发会话。"""
    result = login_user(
        store,
        payload.email,
        payload.password,
        ip_address=client_ip(request),
        user_agent=client_user_agent(request),
    )
    if not result.success or result.data is None:
        record_event(
            store,
            request,
            category=AuditCategory.AUTH,
            action="LOGIN_FAILED",
            actor_email=payload.email.strip().lower(),
            success=False,
            details={"code": result.error.code.value if result.error else None},
        )
        raise _login_failure(result)

    data = result.data
    record_event(
        store,
        request,
        category=AuditCategory.AUTH,
        action="LOGIN_SUCCESS",
        actor_id=data.user.id,
        actor_email=data.user.email,
        target_id=data.user.id,
        target_type="user",
    )
    _set_session_cookie(response, data.session)
    return success(
        request,
        AuthLoginData(
            user=AuthUserData.model_validate(data.user),
            session=AuthSessionData.model_validate(data.session),
            redirect_to=get_route_for_role(data.user.role),
        ),
    )


@router.post(
    "/admin/login",
    summary="管理员登录",
    description="复用统一登录流程，仅允许 admin 与 master_admin 角色。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AdminLoginData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def admin_login(
    payload: AuthLoginRequest,
    request: Request,
    response: Response,
    store: Store = Depends(get_store),
):
    """管理员登录。"""
    result = login_admin(
        store,
        payload.email,
        payload.password,
        ip_address=client_ip(request),
        user_agent=client_user_agent(request),
    )
    if not result.success or result.data is None:
        record_event(
            store,
            request,
            category=AuditCategory.SECURITY,
            action="ADMIN_LOGIN_FAILED",
            actor_email=payload.email.strip().lower(),
            success=False,
            details={"code": result.error.code.value if result.error else None},
        )
        raise _login_failure(result)

    data = result.data
    record_event(
        store,
        request,
        category=AuditCategory.ADMIN,
        action="ADMIN_LOGIN_SUCCESS",
        actor_id=data.admin.id,
        actor_email=data.admin.email,
        target_id=data.admin.id,
        target_type="admin",
    )
    _set_session_cookie(response, data.session)
    return success(
        request,
        AdminLoginData(
            admin=AuthUserData.model_validate(data.admin),
            session=AuthSessionData.model_validate(data.session),
            redirect_to=get_route_for_role(data.admin.role),
        ),
    )


@router.get(
    "/session",
    summary="当前会话",
    description="校验会话令牌并返回当前身份；每次成功校验都会把过期时间向后滑动。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuthSessionStateData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def current_session(request: Request, ctx: RequestContext = Depends(get_request_context)):
    """返回当前身份与续期后的会话。"""
    return success(
        request,
        AuthSessionStateData(
            user=AuthUserData.model_validate(ctx.user),
            session=AuthSessionData.model_validate(ctx.session),
            can_sell=can_vendor_sell(ctx.user.verification_status),
        ),
    )


@router.post(
    "/logout",
    summary="登出",
    description="删除当前令牌对应的会话，重复调用不会报错。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuthLogoutData],
    responses={401: {"model": ErrorResponse}},
)
def logout(request: Request, response: Response, store: Store = Depends(get_store)):
    """注销当前会话。"""
    token = require_session_token(request)
    revoked = logout_by_token(store, token)
    if revoked:
        record_event(store, request, category=AuditCategory.AUTH, action="LOGOUT")
    response.delete_cookie(get_settings().auth_session_cookie_name)
    return success(request, {"revoked": revoked})


@router.post(
    "/logout-all",
    summary="全端登出",
    description="删除当前账号的全部会话（包括当前会话）。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuthLogoutAllData],
    responses={401: {"model": ErrorResponse}},
)
def logout_all(
    request: Request,
    response: Response,
    ctx: RequestContext = Depends(get_request_context),
    store: Store = Depends(get_store),
):
    """吊销当前账号全部会话。"""
    count = delete_user_sessions(store, ctx.user.id)
    record_event(
        store,
        request,
        category=AuditCategory.AUTH,
        action="LOGOUT_ALL",
        actor_id=ctx.user.id,
        actor_email=ctx.user.email,
        target_id=ctx.user.id,
        target_type="user",
        details={"revoked_count": count},
    )
    response.delete_cookie(get_settings().auth_session_cookie_name)
    return success(request, {"revoked_count": count})


@router.get(
    "/sessions",
    summary="我的会话",
    description="列出当前账号的有效会话，按创建时间倒序；不返回原始令牌。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[AuthSessionData]],
    responses={401: {"model": ErrorResponse}},
)
def my_sessions(
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    store: Store = Depends(get_store),
):
    """列出有效会话。"""
    sessions = list_user_sessions(store, ctx.user.id)
    return success(request, [AuthSessionData.model_validate(item) for item in sessions])


@router.post(
    "/password",
    summary="修改口令",
    description="校验当前口令后更新口令，并吊销当前会话以外的全部会话。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[PasswordChangeData],
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
def update_password(
    payload: PasswordChangeRequest,
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    store: Store = Depends(get_store),
):
    """修改口令。"""
    result = change_password(
        store,
        ctx.user.id,
        payload.current_password,
        payload.new_password,
        keep_session_id=ctx.session.id,
    )
    revoked = result.unwrap()
    record_event(
        store,
        request,
        category=AuditCategory.SECURITY,
        action="PASSWORD_CHANGED",
        actor_id=ctx.user.id,
        actor_email=ctx.user.email,
        target_id=ctx.user.id,
        target_type="user",
    )
    return success(request, {"revoked_sessions": revoked})
