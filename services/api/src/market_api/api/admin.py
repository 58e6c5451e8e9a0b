"""平台管理接口。"""

from typing import TypeVar

from fastapi import APIRouter, Depends, HTTPException, Path, Request, status

from market_api.db.session import Store
from market_api.dependencies import RequestContext, get_store, require_admin, require_master_admin
from market_api.models.enums import ADMIN_ROLES, AuditCategory, UserRole, UserStatus
from market_api.schemas.auth import AuthUserData
from market_api.schemas.common import ErrorResponse, SuccessResponse
from market_api.schemas.user import (
    AdminAccessRequest,
    AdminAccountCreateRequest,
    SessionCleanupData,
    SessionStatsData,
    UserActionData,
    UserActionRequest,
    UserCreateRequest,
    VendorVerificationRequest,
)
from market_api.services import moderation
from market_api.services.accounts import AccountInput, create_admin_user, create_user
from market_api.services.audit import record_event
from market_api.services.auth_result import AuthErrorCode, AuthResult
from market_api.services.sessions import cleanup_expired_sessions, session_stats
from market_api.utils.response import success

router = APIRouter(prefix="/admin", tags=["admin"])

T = TypeVar("T")

_ACTION_AUDIT_NAMES = {
    "suspend": "USER_SUSPENDED",
    "ban": "USER_BANNED",
    "activate": "USER_ACTIVATED",
    "delete": "USER_DELETED",
    "restore": "USER_RESTORED",
    "revoke_sessions": "USER_SESSIONS_REVOKED",
}

_VERIFICATION_AUDIT_NAMES = {
    "approve": "VENDOR_APPROVED",
    "reject": "VENDOR_REJECTED",
    "suspend": "VENDOR_SUSPENDED",
    "under_review": "VENDOR_UNDER_REVIEW",
}

_ADMIN_ACCESS_AUDIT_NAMES = {
    "revoke": "ADMIN_ACCESS_REVOKED",
    "activate": "ADMIN_ACTIVATED",
}

_MISSING_TARGET_CODES = {AuthErrorCode.USER_NOT_FOUND, AuthErrorCode.ADMIN_NOT_FOUND}


def _unwrap_target(result: AuthResult[T]) -> T:
    """治理目标不存在时按 404 返回，避免与调用方自身未登录混淆。"""
    if not result.success and result.error is not None and result.error.code in _MISSING_TARGET_CODES:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    return result.unwrap()


@router.post(
    "/admins",
    summary="创建管理员",
    description="仅主管理员可调用。管理员账号写入统一账号表，不签发会话。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuthUserData],
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def create_admin(
    payload: AdminAccountCreateRequest,
    request: Request,
    ctx: RequestContext = Depends(require_master_admin),
    store: Store = Depends(get_store),
):
    """创建管理员账号。"""
    created = create_admin_user(store, AccountInput(**payload.model_dump()), created_by=ctx.user.id).unwrap()
    record_event(
        store,
        request,
        category=AuditCategory.ADMIN,
        action="ADMIN_CREATED",
        actor_id=ctx.user.id,
        actor_email=ctx.user.email,
        target_id=created.user.id,
        target_type="admin",
        details={"role": created.user.role},
    )
    return success(request, AuthUserData.model_validate(created.user))


@router.get(
    "/admins",
    summary="管理员列表",
    description="仅主管理员可调用。返回统一账号表与历史管理员表中的全部管理员，已停用的状态为 suspended。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[AuthUserData]],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def list_admin_accounts(
    request: Request,
    ctx: RequestContext = Depends(require_master_admin),
    store: Store = Depends(get_store),
):
    """列出管理员。"""
    admins = moderation.list_admins(store)
    return success(request, [AuthUserData.model_validate(admin) for admin in admins], meta={"total": len(admins)})


@router.patch(
    "/admins/{admin_id}",
    summary="变更管理员访问权限",
    description="仅主管理员可调用。revoke 停用管理员并强制下线，activate 恢复访问。不能停用自己或最后一名主管理员。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[UserActionData],
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)
def update_admin_access(
    payload: AdminAccessRequest,
    request: Request,
    admin_id: str = Path(..., description="目标管理员 ID。"),
    ctx: RequestContext = Depends(require_master_admin),
    store: Store = Depends(get_store),
):
    """停用或恢复管理员。"""
    if payload.action == "revoke":
        result = moderation.revoke_admin_access(store, admin_id, acting_admin_id=ctx.user.id)
    else:
        result = moderation.activate_admin(store, admin_id)
    admin = _unwrap_target(result)

    record_event(
        store,
        request,
        category=AuditCategory.ADMIN,
        action=_ADMIN_ACCESS_AUDIT_NAMES[payload.action],
        actor_id=ctx.user.id,
        actor_email=ctx.user.email,
        target_id=admin_id,
        target_type="admin",
        details={"email": admin.email, "reason": payload.reason} if payload.reason else {"email": admin.email},
    )
    return success(request, UserActionData(user_id=admin_id, action=payload.action, status=admin.status))


@router.delete(
    "/admins/{admin_id}",
    summary="删除管理员",
    description="仅主管理员可调用。历史管理员物理删除，统一账号中的管理员逻辑删除。不能删除自己或最后一名主管理员。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[UserActionData],
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)
def remove_admin(
    request: Request,
    admin_id: str = Path(..., description="目标管理员 ID。"),
    ctx: RequestContext = Depends(require_master_admin),
    store: Store = Depends(get_store),
):
    """删除管理员。"""
    admin = _unwrap_target(moderation.delete_admin(store, admin_id, acting_admin_id=ctx.user.id))
    record_event(
        store,
        request,
        category=AuditCategory.ADMIN,
        action="ADMIN_DELETED",
        actor_id=ctx.user.id,
        actor_email=ctx.user.email,
        target_id=admin_id,
        target_type="admin",
        details={"email": admin.email},
    )
    return success(request, UserActionData(user_id=admin_id, action="delete", status=UserStatus.DELETED))


@router.post(
    "/users",
    summary="代建账号",
    description="管理员通过统一建号流程创建任意角色账号，不签发会话。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuthUserData],
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def create_account(
    payload: UserCreateRequest,
    request: Request,
    ctx: RequestContext = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """代建账号；管理类角色仅主管理员可创建。"""
    if payload.role in ADMIN_ROLES and ctx.user.role != UserRole.MASTER_ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="forbidden")
    created = create_user(store, AccountInput(**payload.model_dump()), create_session=False).unwrap()
    record_event(
        store,
        request,
        category=AuditCategory.ADMIN,
        action="USER_CREATED",
        actor_id=ctx.user.id,
        actor_email=ctx.user.email,
        target_id=created.user.id,
        target_type="user",
        details={"role": created.user.role},
    )
    return success(request, AuthUserData.model_validate(created.user))


@router.post(
    "/users/{user_id}/actions",
    summary="账号治理",
    description="暂停、封禁、激活、删除、恢复账号或吊销其全部会话。暂停、封禁与删除会强制下线。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[UserActionData],
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def apply_user_action(
    user_id: str,
    payload: UserActionRequest,
    request: Request,
    ctx: RequestContext = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """执行账号治理动作。"""
    data = UserActionData(user_id=user_id, action=payload.action)
    if payload.action == "revoke_sessions":
        data.revoked_sessions = _unwrap_target(moderation.revoke_user_sessions(store, user_id))
    else:
        if payload.action == "suspend":
            result = moderation.suspend_user(store, user_id, reason=payload.reason)
        elif payload.action == "ban":
            result = moderation.ban_user(store, user_id, reason=payload.reason)
        elif payload.action == "activate":
            result = moderation.activate_user(store, user_id)
        elif payload.action == "delete":
            result = moderation.soft_delete_user(store, user_id, reason=payload.reason, deleted_by=ctx.user.id)
        else:
            result = moderation.restore_user(store, user_id)
        user = _unwrap_target(result)
        data.status = user.status
        data.verification_status = user.verification_status

    record_event(
        store,
        request,
        category=AuditCategory.ADMIN,
        action=_ACTION_AUDIT_NAMES[payload.action],
        actor_id=ctx.user.id,
        actor_email=ctx.user.email,
        target_id=user_id,
        target_type="user",
        details={"reason": payload.reason} if payload.reason else None,
    )
    return success(request, data)


@router.post(
    "/vendors/{user_id}/verification",
    summary="商家审核",
    description="审核通过、驳回、暂停商家或标记为审核中。驳回与暂停必须填写原因。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[UserActionData],
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def apply_vendor_verification(
    user_id: str,
    payload: VendorVerificationRequest,
    request: Request,
    ctx: RequestContext = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """执行商家审核动作。"""
    if payload.action == "approve":
        result = moderation.approve_vendor(store, user_id, reviewer_id=ctx.user.id, notes=payload.reason)
    elif payload.action == "reject":
        result = moderation.reject_vendor(store, user_id, reason=payload.reason, reviewer_id=ctx.user.id)
    elif payload.action == "suspend":
        result = moderation.suspend_vendor(store, user_id, reason=payload.reason, reviewer_id=ctx.user.id)
    else:
        result = moderation.mark_vendor_under_review(store, user_id, reviewer_id=ctx.user.id, notes=payload.reason)
    user = _unwrap_target(result)

    record_event(
        store,
        request,
        category=AuditCategory.ADMIN,
        action=_VERIFICATION_AUDIT_NAMES[payload.action],
        actor_id=ctx.user.id,
        actor_email=ctx.user.email,
        target_id=user_id,
        target_type="vendor",
        details={"reason": payload.reason} if payload.reason else None,
    )
    return success(
        request,
        UserActionData(
            user_id=user_id,
            action=payload.action,
            status=user.status,
            verification_status=user.verification_status,
        ),
    )


@router.post(
    "/sessions/cleanup",
    summary="清理过期会话",
    description="批量删除已过期会话，供运维或定时任务调用。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[SessionCleanupData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def cleanup_sessions(
    request: Request,
    ctx: RequestContext = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """清理过期会话。"""
    deleted = cleanup_expired_sessions(store)
    return success(request, {"deleted": deleted})


@router.get(
    "/sessions/stats",
    summary="会话统计",
    description="返回有效与已过期会话数量。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[SessionStatsData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def get_session_stats(
    request: Request,
    ctx: RequestContext = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """会话统计。"""
    return success(request, session_stats(store))
