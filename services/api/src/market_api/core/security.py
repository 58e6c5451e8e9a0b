"""会话令牌提取工具。"""

import re

from fastapi import HTTPException, Request, status

from market_api.core.config import get_settings

UNAUTHORIZED = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="unauthorized",
)
TOKEN_PLACEHOLDER_UNAUTHORIZED = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail={
        "code": "AUTH_TOKEN_PLACEHOLDER_NOT_RESOLVED",
        "message": "认证失败：Authorization 仍为变量占位符，未替换为真实会话令牌。",
        "details": {
            "reason": "authorization_placeholder_not_resolved",
            "suggestion": "请先调用登录接口获取 session.token，再在请求头中传入 Bearer 真实令牌。",
        },
    },
)


def _is_placeholder_token(token: str) -> bool:
    return ("{{" in token and "}}" in token) or ("${" in token and "}" in token)


def extract_bearer_token(authorization: str | None) -> str | None:
    """从 Authorization 头中提取 Bearer token，兼容重复头被逗号拼接的场景。"""
    if not authorization:
        return None
    tokens = re.findall(r"Bearer\s+([^,\s]+)", authorization, flags=re.IGNORECASE)
    if not tokens:
        return None
    placeholder_seen = False
    for candidate in reversed(tokens):
        token = candidate.strip()
        if not token:
            continue
        if _is_placeholder_token(token):
            placeholder_seen = True
            continue
        return token
    if placeholder_seen:
        raise TOKEN_PLACEHOLDER_UNAUTHORIZED
    return None


def extract_session_token(request: Request) -> str | None:
    """优先读取 Bearer 头，缺失时回退到会话 Cookie。"""
    token = extract_bearer_token(request.headers.get("authorization"))
    if token:
        return token
    cookie_token = request.cookies.get(get_settings().auth_session_cookie_name)
    return cookie_token.strip() if cookie_token and cookie_token.strip() else None


def require_session_token(request: Request) -> str:
    token = extract_session_token(request)
    if not token:
        raise UNAUTHORIZED
    return token
