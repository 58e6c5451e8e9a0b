import json
import logging
from collections.abc import Generator
from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine, func, select, update
from sqlalchemy.pool import StaticPool

from market_api.core.config import get_settings
from market_api.db.session import Store
from market_api.models.admin import AdminUser
from market_api.models.auth import UserSession
from market_api.models.user import User
from market_api.services import local_auth
from market_api.services.accounts import AccountInput, create_user
from market_api.services.auth_result import AuthErrorCode, run_pipeline
from market_api.services.authentication import login_admin, login_user
from market_api.services.permissions import default_permissions


@pytest.fixture()
def store(monkeypatch) -> Generator[Store, None, None]:
    monkeypatch.delenv("MKT_AUTH_TOKEN_HASH_SECRET", raising=False)
    get_settings.cache_clear()
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    store = Store(engine)
    store.create_schema()
    yield store
    store.dispose()
    get_settings.cache_clear()


def _create(store: Store, email: str, role: str = "buyer", **extra) -> str:
    result = create_user(
        store,
        AccountInput(email=email, password="secret1", name=email.split("@")[0], role=role, **extra),
        create_session=False,
    )
    assert result.success, result.error
    return result.data.user.id


def _add_legacy_admin(store: Store, *, email: str, role: str = "ADMIN", active: bool = True, permissions=None):
    admin = AdminUser(
        id=f"admin_{email.split('@')[0]}",
        email=email,
        password_hash=local_auth.hash_password("adminpass"),
        name="Legacy Admin",
        role=role,
        is_active=active,
        permissions=permissions,
    )
    store.transaction(lambda db: db.add(admin))
    return admin.id


def _session_count(store: Store) -> int:
    return store.transaction(lambda db: db.execute(select(func.count()).select_from(UserSession)).scalar_one())


def test_buyer_login_succeeds_with_same_account_id(store):
    user_id = _create(store, "alice@x.com")

    result = login_user(store, "alice@x.com", "secret1", ip_address="10.0.0.1", user_agent="pytest")

    assert result.success is True
    assert result.data.user.id == user_id
    assert result.data.user.role == "buyer"
    assert result.data.session.user_id == user_id
    row = store.transaction(lambda db: db.get(UserSession, result.data.session.id))
    assert row.ip_address == "10.0.0.1"
    assert row.user_agent == "pytest"


def test_login_is_case_insensitive_on_email(store):
    user_id = _create(store, "alice@x.com")

    result = login_user(store, "  ALICE@x.COM ", "secret1")

    assert result.data.user.id == user_id


def test_wrong_password_returns_invalid_credentials_and_no_session(store):
    _create(store, "alice@x.com")

    result = login_user(store, "alice@x.com", "wrongpass")

    assert result.success is False
    assert result.error.code == AuthErrorCode.INVALID_CREDENTIALS
    assert _session_count(store) == 0


def test_unknown_email_returns_user_not_found(store):
    result = login_user(store, "ghost@x.com", "secret1")

    assert result.error.code == AuthErrorCode.USER_NOT_FOUND


@pytest.mark.parametrize(
    "email,password",
    [("", "secret1"), ("   ", "secret1"), ("alice@x.com", ""), (None, None)],
)
def test_missing_credentials_are_invalid_input(store, email, password):
    assert login_user(store, email, password).error.code == AuthErrorCode.INVALID_INPUT


@pytest.mark.parametrize(
    "status,code",
    [
        ("suspended", AuthErrorCode.USER_SUSPENDED),
        ("banned", AuthErrorCode.USER_BANNED),
        ("deleted", AuthErrorCode.USER_DELETED),
    ],
)
def test_status_gate_blocks_login_without_issuing_session(store, status, code):
    user_id = _create(store, "alice@x.com")
    store.transaction(lambda db: db.execute(update(User).where(User.id == user_id).values(status=status)))

    result = login_user(store, "alice@x.com", "secret1")

    assert result.success is False
    assert result.error.code == code
    assert _session_count(store) == 0


def test_soft_deleted_account_is_not_found(store):
    user_id = _create(store, "alice@x.com")
    store.transaction(lambda db: db.execute(update(User).where(User.id == user_id).values(is_deleted=True)))

    assert login_user(store, "alice@x.com", "secret1").error.code == AuthErrorCode.USER_NOT_FOUND


def test_pending_vendor_can_log_in(store):
    user_id = _create(store, "bob@x.com", role="vendor", business_name="Bob's Shop")

    result = login_user(store, "bob@x.com", "secret1")

    assert result.success is True
    assert result.data.user.id == user_id
    assert result.data.user.status == "pending"
    assert result.data.user.verification_status == "pending"


def test_vendor_with_missing_verification_state_is_repaired(store, caplog):
    user_id = _create(store, "bob@x.com", role="vendor", business_name="Bob's Shop")
    store.transaction(
        lambda db: db.execute(update(User).where(User.id == user_id).values(verification_status=None))
    )

    with caplog.at_level(logging.WARNING, logger="market_api.services.authentication"):
        result = login_user(store, "bob@x.com", "secret1")

    assert result.success is True
    assert result.data.user.verification_status == "pending"
    assert store.transaction(lambda db: db.get(User, user_id).verification_status) == "pending"
    assert any("verification state repaired" in record.getMessage() for record in caplog.records)


def test_login_rotates_last_login_bookkeeping(store, monkeypatch):
    user_id = _create(store, "alice@x.com")
    first = datetime(2026, 1, 1, 8, 0, tzinfo=timezone.utc)
    second = datetime(2026, 1, 2, 8, 0, tzinfo=timezone.utc)

    monkeypatch.setattr(local_auth, "utc_now", lambda: first)
    login_user(store, "alice@x.com", "secret1")
    monkeypatch.setattr(local_auth, "utc_now", lambda: second)
    login_user(store, "alice@x.com", "secret1")

    row = store.transaction(lambda db: db.get(User, user_id))
    assert local_auth.as_utc(row.last_login_at) == second
    assert local_auth.as_utc(row.previous_login_at) == first


def test_canonical_admin_login_gets_role_default_permissions(store):
    _create(store, "ops@x.com", role="admin")

    result = login_user(store, "ops@x.com", "secret1")

    assert result.data.user.role == "admin"
    assert result.data.user.admin_role == "ADMIN"
    assert result.data.user.permissions == default_permissions("admin")


def test_legacy_admin_login_uses_stored_permissions(store):
    admin_id = _add_legacy_admin(
        store,
        email="root@x.com",
        role="MASTER_ADMIN",
        permissions=json.dumps(["FULL_SYSTEM_ACCESS", "MANAGE_ADMINS"]),
    )

    result = login_user(store, "Root@X.com", "adminpass")

    assert result.success is True
    assert result.data.user.id == admin_id
    assert result.data.user.role == "master_admin"
    assert result.data.user.admin_role == "MASTER_ADMIN"
    assert result.data.user.permissions == ["FULL_SYSTEM_ACCESS", "MANAGE_ADMINS"]
    assert result.data.session.user_role == "master_admin"
    row = store.transaction(lambda db: db.get(AdminUser, admin_id))
    assert row.last_login_at is not None


def test_legacy_admin_with_malformed_permissions_gets_empty_list(store):
    _add_legacy_admin(store, email="ops@x.com", permissions="{not-json")

    result = login_user(store, "ops@x.com", "adminpass")

    assert result.success is True
    assert result.data.user.permissions == []


def test_legacy_admin_wrong_password_and_disabled(store):
    _add_legacy_admin(store, email="ops@x.com")
    _add_legacy_admin(store, email="old@x.com", active=False)

    assert login_user(store, "ops@x.com", "nope").error.code == AuthErrorCode.INVALID_CREDENTIALS
    assert login_user(store, "old@x.com", "adminpass").error.code == AuthErrorCode.ADMIN_DISABLED
    assert _session_count(store) == 0


def test_login_admin_accepts_admin_roles(store):
    _create(store, "ops@x.com", role="admin")

    result = login_admin(store, "ops@x.com", "secret1")

    assert result.success is True
    assert result.data.admin.role == "admin"
    assert result.data.session.token


def test_login_admin_maps_unknown_email_to_admin_not_found(store):
    assert login_admin(store, "ghost@x.com", "secret1").error.code == AuthErrorCode.ADMIN_NOT_FOUND


def test_login_admin_rejects_buyer_and_leaves_no_session(store):
    _create(store, "alice@x.com")

    result = login_admin(store, "alice@x.com", "secret1")

    assert result.success is False
    assert result.error.code == AuthErrorCode.ADMIN_NOT_FOUND
    assert _session_count(store) == 0


def test_login_admin_keeps_credential_errors(store):
    _create(store, "ops@x.com", role="admin")

    assert login_admin(store, "ops@x.com", "wrongpass").error.code == AuthErrorCode.INVALID_CREDENTIALS


def test_unencodable_password_fails_without_raising(store):
    _create(store, "alice@x.com")

    result = login_user(store, "alice@x.com", "\ud800abc")

    assert result.success is False
    assert result.error.code == AuthErrorCode.INVALID_CREDENTIALS
    assert _session_count(store) == 0


def test_unexpected_pipeline_error_becomes_transaction_failed(store):
    def _boom(db):
        raise RuntimeError("disk on fire")

    result = run_pipeline(store, _boom, operation="boom")

    assert result.success is False
    assert result.error.code == AuthErrorCode.TRANSACTION_FAILED
    assert "disk on fire" in result.error.details
    assert "disk on fire" not in result.error.message
