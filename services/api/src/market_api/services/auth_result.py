"""认证流程错误码与结果结构。

流程内部通过抛出 `AuthError` 触发事务回滚，
对外统一收敛为 `AuthResult`，调用方无需捕获异常。
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

if TYPE_CHECKING:
    from market_api.db.session import Store

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AuthErrorCode(StrEnum):
    """认证错误码。"""

    INVALID_INPUT = "INVALID_INPUT"  # 请求字段缺失或格式错误，不可重试。
    EMAIL_EXISTS = "EMAIL_EXISTS"  # 邮箱已被任一身份表占用。
    ROLE_ASSIGNMENT_FAILED = "ROLE_ASSIGNMENT_FAILED"  # 写入成功但后置校验失败，属内部缺陷。
    VERIFICATION_STATE_MISSING = "VERIFICATION_STATE_MISSING"  # 商家审核状态未初始化。
    USER_NOT_FOUND = "USER_NOT_FOUND"  # 未找到账号。
    ADMIN_NOT_FOUND = "ADMIN_NOT_FOUND"  # 未找到管理员或账号无管理权限。
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"  # 口令错误，或会话无效/已过期。
    USER_SUSPENDED = "USER_SUSPENDED"  # 账号已暂停。
    USER_BANNED = "USER_BANNED"  # 账号已封禁。
    USER_DELETED = "USER_DELETED"  # 账号已删除。
    ADMIN_DISABLED = "ADMIN_DISABLED"  # 历史管理员已停用。
    SESSION_CREATION_FAILED = "SESSION_CREATION_FAILED"  # 会话写入失败，整体回滚。
    TRANSACTION_FAILED = "TRANSACTION_FAILED"  # 未归类的事务失败。


class AuthError(Exception):
    """认证流程错误。

    `details` 仅用于日志排查，不应原样返回给客户端。
    """

    def __init__(self, code: AuthErrorCode, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details

    def __repr__(self) -> str:
        return f"AuthError(code={self.code.value!r}, message={self.message!r})"


@dataclass
class AuthResult(Generic[T]):
    """认证流程统一结果。"""

    success: bool
    data: T | None = None
    error: AuthError | None = None

    @classmethod
    def ok(cls, data: T) -> "AuthResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: AuthError) -> "AuthResult[T]":
        return cls(success=False, error=error)

    def unwrap(self) -> T:
        """成功时返回数据，失败时抛出对应错误（供路由层使用）。"""
        if not self.success or self.data is None:
            raise self.error or AuthError(AuthErrorCode.TRANSACTION_FAILED, "操作失败。")
        return self.data


def run_pipeline(store: "Store", fn: Callable[[Session], T], *, operation: str) -> AuthResult[T]:
    """在事务中执行流程回调，并把异常收敛为 `AuthResult`。

    `AuthError` 原样返回；存储异常与其余未预期异常均归类为 TRANSACTION_FAILED，
    原始信息只进入 `details`，调用方不会收到异常。
    """
    try:
        return AuthResult.ok(store.transaction(fn))
    except AuthError as exc:
        logger.info("%s rejected code=%s", operation, exc.code.value)
        return AuthResult.fail(exc)
    except SQLAlchemyError as exc:
        logger.exception("%s transaction failed", operation)
        return AuthResult.fail(AuthError(AuthErrorCode.TRANSACTION_FAILED, "操作失败，请稍后重试。", details=str(exc)))
    except Exception as exc:
        logger.exception("%s failed unexpectedly", operation)
        return AuthResult.fail(AuthError(AuthErrorCode.TRANSACTION_FAILED, "操作失败，请稍后重试。", details=repr(exc)))
