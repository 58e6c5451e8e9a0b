import json
from datetime import datetime

import pytest

from market_api.models.admin import AdminUser
from market_api.models.user import User
from market_api.services.auth_result import AuthError, AuthErrorCode
from market_api.services.identity import (
    CanonicalIdentity,
    LegacyIdentity,
    can_vendor_sell,
    enforce_status_gate,
    get_route_for_role,
    identity_role,
    to_auth_user,
)


def _user(**overrides) -> User:
    values = {
        "id": "user_0001",
        "email": "alice@x.com",
        "name": "Alice",
        "role": "buyer",
        "status": "active",
        "created_at": datetime(2026, 1, 1, 0, 0),
    }
    values.update(overrides)
    return User(**values)


@pytest.mark.parametrize(
    "role,expected",
    [
        ("master_admin", "/admin"),
        ("admin", "/admin"),
        ("vendor", "/vendor"),
        ("buyer", "/buyer/dashboard"),
        ("unknown", "/buyer/dashboard"),
    ],
)
def test_get_route_for_role(role, expected):
    assert get_route_for_role(role) == expected


@pytest.mark.parametrize(
    "status,expected",
    [("verified", True), ("pending", False), ("under_review", False), ("rejected", False), (None, False)],
)
def test_can_vendor_sell_only_when_verified(status, expected):
    assert can_vendor_sell(status) is expected


def test_canonical_buyer_has_no_admin_fields():
    auth_user = to_auth_user(CanonicalIdentity(_user()))

    assert auth_user.role == "buyer"
    assert auth_user.admin_role is None
    assert auth_user.permissions is None
    assert auth_user.created_at.tzinfo is not None


def test_legacy_admin_is_normalized_to_unified_vocabulary():
    admin = AdminUser(
        id="admin_0001",
        email="root@x.com",
        password_hash="salt:digest",
        name="Root",
        role="MASTER_ADMIN",
        is_active=True,
        permissions=json.dumps(["MANAGE_ADMINS"]),
    )
    identity = LegacyIdentity(admin)

    auth_user = to_auth_user(identity)

    assert identity_role(identity) == "master_admin"
    assert auth_user.role == "master_admin"
    assert auth_user.status == "active"
    assert auth_user.admin_role == "MASTER_ADMIN"
    assert auth_user.permissions == ["MANAGE_ADMINS"]
    assert auth_user.is_admin is True


@pytest.mark.parametrize(
    "status,code",
    [
        ("suspended", AuthErrorCode.USER_SUSPENDED),
        ("banned", AuthErrorCode.USER_BANNED),
        ("deleted", AuthErrorCode.USER_DELETED),
    ],
)
def test_status_gate_raises_for_blocked_statuses(status, code):
    with pytest.raises(AuthError) as exc_info:
        enforce_status_gate(_user(status=status))
    assert exc_info.value.code == code


@pytest.mark.parametrize("status", ["active", "pending"])
def test_status_gate_allows_active_and_pending(status):
    enforce_status_gate(_user(status=status))
