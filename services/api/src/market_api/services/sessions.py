"""会话持久化服务。

`db` 参数的函数在调用方事务内执行；`store` 参数的函数自行开启事务。
"""

from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from market_api.db.session import Store
from market_api.models.auth import UserSession
from market_api.models.base import new_id
from market_api.services import local_auth
from market_api.services.auth_result import AuthError, AuthErrorCode
from market_api.services.identity import AuthSession

logger = logging.getLogger(__name__)

# 会话主键随机部分长度。
SESSION_ID_LENGTH = 24


def create_session(
    db: Session,
    *,
    user_id: str,
    user_role: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
    duration: timedelta | None = None,
) -> AuthSession:
    """签发会话并落库令牌摘要，返回包含原始令牌的会话信息。"""
    token = local_auth.generate_session_token()
    row = UserSession(
        id=new_id("sess", SESSION_ID_LENGTH),
        user_id=user_id,
        user_role=user_role,
        token_hash=local_auth.hash_session_token(token),
        ip_address=ip_address,
        user_agent=user_agent,
        expires_at=local_auth.compute_session_expiry(duration),
    )
    db.add(row)
    try:
        db.flush()
    except SQLAlchemyError as exc:
        raise AuthError(AuthErrorCode.SESSION_CREATION_FAILED, "会话创建失败。", details=str(exc)) from exc

    return AuthSession(
        id=row.id,
        user_id=row.user_id,
        user_role=row.user_role,
        expires_at=row.expires_at,
        token=token,
    )


def find_live_session(db: Session, token: str) -> UserSession | None:
    """按令牌摘要查找未过期会话。"""
    stmt = select(UserSession).where(
        UserSession.token_hash == local_auth.hash_session_token(token),
        UserSession.expires_at > local_auth.utc_now(),
    )
    return db.execute(stmt).scalar_one_or_none()


def extend_session(db: Session, row: UserSession) -> AuthSession:
    """滑动续期：过期时间重置为当前时刻加完整时长。"""
    row.expires_at = local_auth.compute_session_expiry()
    db.flush()
    return to_auth_session(row)


def to_auth_session(row: UserSession) -> AuthSession:
    return AuthSession(
        id=row.id,
        user_id=row.user_id,
        user_role=row.user_role,
        expires_at=local_auth.as_utc(row.expires_at),
    )


def revoke_account_sessions(db: Session, user_id: str, *, keep_session_id: str | None = None) -> int:
    """删除账号下全部会话，可保留当前会话。"""
    stmt = delete(UserSession).where(UserSession.user_id == user_id)
    if keep_session_id:
        stmt = stmt.where(UserSession.id != keep_session_id)
    return db.execute(stmt).rowcount or 0


def logout_by_token(store: Store, token: str | None) -> bool:
    """按令牌注销会话，幂等；返回是否实际删除了会话。"""
    if not token:
        return False
    token_hash = local_auth.hash_session_token(token)

    def _delete(db: Session) -> int:
        return db.execute(delete(UserSession).where(UserSession.token_hash == token_hash)).rowcount or 0

    removed = store.transaction(_delete)
    return removed > 0


def delete_user_sessions(store: Store, account_id: str) -> int:
    """删除账号全部会话（全端登出或强制下线）。"""
    count = store.transaction(lambda db: revoke_account_sessions(db, account_id))
    logger.info("sessions revoked user_id=%s count=%s", account_id, count)
    return count


def cleanup_expired_sessions(store: Store) -> int:
    """批量清理已过期会话，供定时维护调用。"""
    now = local_auth.utc_now()
    count = store.transaction(
        lambda db: db.execute(delete(UserSession).where(UserSession.expires_at <= now)).rowcount or 0
    )
    logger.info("expired sessions cleaned count=%s", count)
    return count


def list_user_sessions(store: Store, account_id: str) -> list[AuthSession]:
    """列出账号当前有效会话，按创建时间倒序。"""

    def _list(db: Session) -> list[AuthSession]:
        stmt = (
            select(UserSession)
            .where(UserSession.user_id == account_id, UserSession.expires_at > local_auth.utc_now())
            .order_by(UserSession.created_at.desc(), UserSession.id.desc())
        )
        return [to_auth_session(row) for row in db.execute(stmt).scalars().all()]

    return store.transaction(_list)


def session_stats(store: Store) -> dict[str, int]:
    """统计有效与已过期会话数量。"""

    def _stats(db: Session) -> dict[str, int]:
        now = local_auth.utc_now()
        active = db.execute(
            select(func.count()).select_from(UserSession).where(UserSession.expires_at > now)
        ).scalar_one()
        expired = db.execute(
            select(func.count()).select_from(UserSession).where(UserSession.expires_at <= now)
        ).scalar_one()
        return {"active": int(active), "expired": int(expired), "total": int(active) + int(expired)}

    return store.transaction(_stats)
