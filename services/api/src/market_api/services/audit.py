"""审计服务。"""

import logging
from typing import Any

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from market_api.db.session import Store
from market_api.models.audit import AuditLog
from market_api.models.base import new_id
from market_api.models.enums import AuditCategory

logger = logging.getLogger(__name__)


def client_ip(request: Request) -> str | None:
    """从代理头或连接信息中提取客户端 IP。"""
    # 优先读取反向代理透传头，兼容网关/负载均衡场景。
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return None


def client_user_agent(request: Request) -> str | None:
    return request.headers.get("user-agent")


def audit_log(
    db: Session,
    request: Request | None,
    *,
    category: AuditCategory,
    action: str,
    actor_id: str | None = None,
    actor_email: str | None = None,
    target_id: str | None = None,
    target_type: str | None = None,
    success: bool = True,
    details: dict[str, Any] | None = None,
) -> None:
    """在调用方事务内写入审计日志。"""
    db.add(
        AuditLog(
            id=new_id("audit"),
            category=category,
            action=action,
            actor_id=actor_id,
            actor_email=actor_email,
            target_id=target_id,
            target_type=target_type,
            success=success,
            details=details,
            ip=client_ip(request) if request is not None else None,
            user_agent=client_user_agent(request) if request is not None else None,
        )
    )


def record_event(store: Store, request: Request | None, **fields: Any) -> None:
    """以独立事务写入审计日志；审计失败只记录日志，不影响主流程结果。"""
    try:
        store.transaction(lambda db: audit_log(db, request, **fields))
    except SQLAlchemyError:
        logger.exception("audit write failed action=%s", fields.get("action"))
