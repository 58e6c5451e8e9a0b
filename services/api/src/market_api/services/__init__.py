"""服务层能力导出集合。"""

from market_api.services.accounts import AccountInput, create_admin_user, create_user, register_user
from market_api.services.audit import audit_log, record_event
from market_api.services.auth_result import AuthError, AuthErrorCode, AuthResult
from market_api.services.authentication import login_admin, login_user, validate_session_token
from market_api.services.bootstrap import seed_master_admin
from market_api.services.identity import AuthSession, AuthUser, can_vendor_sell, get_route_for_role
from market_api.services.sessions import (
    cleanup_expired_sessions,
    delete_user_sessions,
    list_user_sessions,
    logout_by_token,
    session_stats,
)

__all__ = [
    "AccountInput",
    "AuthError",
    "AuthErrorCode",
    "AuthResult",
    "AuthSession",
    "AuthUser",
    "audit_log",
    "record_event",
    "create_user",
    "register_user",
    "create_admin_user",
    "login_user",
    "login_admin",
    "validate_session_token",
    "logout_by_token",
    "delete_user_sessions",
    "cleanup_expired_sessions",
    "list_user_sessions",
    "session_stats",
    "get_route_for_role",
    "can_vendor_sell",
    "seed_master_admin",
]
