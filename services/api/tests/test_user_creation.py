from collections.abc import Generator

import pytest
from sqlalchemy import create_engine, func, select, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import StaticPool

from market_api.core.config import get_settings
from market_api.db.session import Store
from market_api.models.admin import AdminUser
from market_api.models.auth import UserSession
from market_api.models.user import User
from market_api.models.vendor import Vendor
from market_api.services import accounts, local_auth
from market_api.services.accounts import AccountInput, create_admin_user, create_user, register_user
from market_api.services.auth_result import AuthErrorCode
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


def _count(store: Store, model) -> int:
    return store.transaction(lambda db: db.execute(select(func.count()).select_from(model)).scalar_one())


def _buyer(email: str = "alice@x.com") -> AccountInput:
    return AccountInput(email=email, password="secret1", name="Alice", role="buyer")


@pytest.mark.parametrize(
    "payload",
    [
        AccountInput(email="", password="secret1", name="A", role="buyer"),
        AccountInput(email="a@x.com", password="", name="A", role="buyer"),
        AccountInput(email="a@x.com", password="secret1", name="  ", role="buyer"),
        AccountInput(email="not-an-email", password="secret1", name="A", role="buyer"),
        AccountInput(email="a@x.com", password="12345", name="A", role="buyer"),
        AccountInput(email="a@x.com", password="secret1", name="A", role="superuser"),
        AccountInput(email="a@x.com", password="secret1", name="A", role="vendor"),
    ],
)
def test_create_user_rejects_invalid_input_before_touching_store(store, payload):
    result = create_user(store, payload)

    assert result.success is False
    assert result.error.code == AuthErrorCode.INVALID_INPUT
    assert _count(store, User) == 0


def test_create_buyer_returns_user_and_session(store):
    result = create_user(store, _buyer("  Alice@X.com "))

    assert result.success is True
    user = result.data.user
    assert user.id.startswith("user_")
    assert user.email == "alice@x.com"
    assert user.role == "buyer"
    assert user.status == "active"
    assert user.verification_status is None
    assert user.admin_role is None
    assert user.permissions is None

    session = result.data.session
    assert session is not None
    assert session.user_id == user.id
    assert session.user_role == "buyer"
    assert len(session.token) == 64
    assert _count(store, Vendor) == 0

    stored_hash = store.transaction(lambda db: db.get(UserSession, session.id).token_hash)
    assert stored_hash == local_auth.hash_session_token(session.token)
    assert stored_hash != session.token


def test_create_vendor_pairs_vendor_entity(store):
    result = create_user(
        store,
        AccountInput(
            email="bob@x.com",
            password="secret1",
            name="Bob",
            role="vendor",
            business_name="Bob's Shop",
            business_type="retail",
        ),
    )

    assert result.success is True
    user = result.data.user
    assert user.status == "pending"
    assert user.verification_status == "pending"
    assert user.business_name == "Bob's Shop"

    vendors = store.transaction(lambda db: db.execute(select(Vendor)).scalars().all())
    assert len(vendors) == 1
    assert vendors[0].user_id == user.id
    assert vendors[0].business_name == "Bob's Shop"
    assert vendors[0].verification_status == "pending"
    assert vendors[0].store_status == "inactive"


@pytest.mark.parametrize("second_email", ["alice@x.com", "ALICE@X.COM"])
def test_duplicate_email_in_users_table_fails_and_leaves_no_rows(store, second_email):
    assert create_user(store, _buyer()).success is True

    result = create_user(
        store,
        AccountInput(email=second_email, password="secret1", name="Dup", role="vendor", business_name="Dup Shop"),
    )

    assert result.success is False
    assert result.error.code == AuthErrorCode.EMAIL_EXISTS
    assert _count(store, User) == 1
    assert _count(store, Vendor) == 0


def test_email_held_by_legacy_admin_is_rejected(store):
    store.transaction(
        lambda db: db.add(
            AdminUser(
                id="admin_legacy01",
                email="root@x.com",
                password_hash=local_auth.hash_password("rootpass"),
                name="Root",
                role="MASTER_ADMIN",
                is_active=True,
            )
        )
    )

    result = create_user(store, _buyer("Root@x.com"))

    assert result.success is False
    assert result.error.code == AuthErrorCode.EMAIL_EXISTS
    assert _count(store, User) == 0


def test_unique_violation_from_concurrent_insert_maps_to_email_exists(store, monkeypatch):
    assert create_user(store, _buyer()).success is True
    # 模拟并发：两个请求都通过了预检查。
    monkeypatch.setattr(accounts, "email_in_use", lambda db, email: False)

    result = create_user(store, _buyer())

    assert result.success is False
    assert result.error.code == AuthErrorCode.EMAIL_EXISTS
    assert _count(store, User) == 1


def test_session_insert_failure_rolls_back_account_and_vendor(store, monkeypatch):
    monkeypatch.setattr(local_auth, "generate_session_token", lambda: "f" * 64)
    assert create_user(store, _buyer()).success is True

    result = create_user(
        store,
        AccountInput(email="bob@x.com", password="secret1", name="Bob", role="vendor", business_name="Bob's Shop"),
    )

    assert result.success is False
    assert result.error.code == AuthErrorCode.SESSION_CREATION_FAILED
    assert _count(store, User) == 1
    assert _count(store, Vendor) == 0
    assert _count(store, UserSession) == 1


def _vendor(email: str = "bob@x.com") -> AccountInput:
    return AccountInput(email=email, password="secret1", name="Bob", role="vendor", business_name="Bob's Shop")


def test_vendor_entity_insert_failure_rolls_back_account(store, monkeypatch):
    # 商家资料缺少必填字段，写入时触发非空约束。
    monkeypatch.setattr(accounts, "Vendor", lambda **values: Vendor(**{**values, "business_name": None}))

    result = create_user(store, _vendor())

    assert result.success is False
    assert result.error.code == AuthErrorCode.ROLE_ASSIGNMENT_FAILED
    assert _count(store, User) == 0
    assert _count(store, Vendor) == 0
    assert _count(store, UserSession) == 0


def test_role_read_back_failure_rolls_back_account(store, monkeypatch):
    insert_account = accounts._insert_account

    def _insert_then_lose_row(db, payload):
        insert_account(db, payload)
        return "user_missing"

    monkeypatch.setattr(accounts, "_insert_account", _insert_then_lose_row)

    result = create_user(store, _vendor())

    assert result.success is False
    assert result.error.code == AuthErrorCode.ROLE_ASSIGNMENT_FAILED
    assert _count(store, User) == 0
    assert _count(store, Vendor) == 0


def test_vendor_without_verification_state_is_rejected_and_rolled_back(store, monkeypatch):
    insert_account = accounts._insert_account

    def _insert_without_verification_state(db, payload):
        user_id = insert_account(db, payload)
        db.execute(update(User).where(User.id == user_id).values(verification_status=None))
        return user_id

    monkeypatch.setattr(accounts, "_insert_account", _insert_without_verification_state)

    result = create_user(store, _vendor())

    assert result.success is False
    assert result.error.code == AuthErrorCode.VERIFICATION_STATE_MISSING
    assert _count(store, User) == 0
    assert _count(store, Vendor) == 0


def test_admin_creation_attaches_permissions_without_session(store):
    result = create_user(
        store,
        AccountInput(email="ops@x.com", password="secret1", name="Ops", role="admin"),
        create_session=False,
    )

    assert result.success is True
    assert result.data.session is None
    assert result.data.user.admin_role == "ADMIN"
    assert result.data.user.permissions == default_permissions("admin")
    assert _count(store, UserSession) == 0


def test_explicit_admin_permissions_are_returned(store):
    result = create_user(
        store,
        AccountInput(
            email="ops@x.com",
            password="secret1",
            name="Ops",
            role="master_admin",
            permissions=["MANAGE_USERS"],
        ),
    )

    assert result.data.user.admin_role == "MASTER_ADMIN"
    assert result.data.user.permissions == ["MANAGE_USERS"]


def test_register_user_only_allows_buyer_and_vendor(store):
    rejected = register_user(store, AccountInput(email="a@x.com", password="secret1", name="A", role="admin"))
    accepted = register_user(store, _buyer())

    assert rejected.error.code == AuthErrorCode.INVALID_INPUT
    assert accepted.success is True
    assert accepted.data.session is not None


def test_create_admin_user_requires_admin_role_and_never_issues_session(store):
    rejected = create_admin_user(store, _buyer())
    accepted = create_admin_user(
        store,
        AccountInput(email="boss@x.com", password="secret1", name="Boss", role="master_admin"),
        created_by="user_creator",
    )

    assert rejected.error.code == AuthErrorCode.INVALID_INPUT
    assert accepted.success is True
    assert accepted.data.session is None
    assert _count(store, UserSession) == 0


class _BrokenStore:
    def transaction(self, fn):
        raise OperationalError("INSERT INTO users", {}, Exception("connection reset by peer"))


def test_unclassified_store_failure_becomes_transaction_failed():
    get_settings.cache_clear()
    result = create_user(_BrokenStore(), _buyer())

    assert result.success is False
    assert result.error.code == AuthErrorCode.TRANSACTION_FAILED
    assert "connection reset" not in result.error.message
    assert "connection reset" in result.error.details
