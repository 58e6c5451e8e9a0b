from market_api.services.permissions import (
    AdminPermission,
    default_permissions,
    legacy_admin_role,
    parse_stored_permissions,
    role_from_legacy,
)


def test_master_admin_defaults_cover_every_permission():
    assert set(default_permissions("master_admin")) == {permission.value for permission in AdminPermission}


def test_admin_defaults_exclude_system_level_permissions():
    permissions = set(default_permissions("admin"))

    assert "MANAGE_USERS" in permissions
    assert "MANAGE_VENDORS" in permissions
    assert not permissions & {"FULL_SYSTEM_ACCESS", "MANAGE_ADMINS", "MANAGE_API_KEYS", "MANAGE_SECURITY"}


def test_non_admin_roles_have_no_permissions():
    assert default_permissions("buyer") == []
    assert default_permissions("vendor") == []


def test_role_vocabulary_round_trip_between_tables():
    assert legacy_admin_role("admin") == "ADMIN"
    assert legacy_admin_role("master_admin") == "MASTER_ADMIN"
    assert role_from_legacy("ADMIN") == "admin"
    assert role_from_legacy("MASTER_ADMIN") == "master_admin"


def test_parse_stored_permissions_tolerates_bad_input():
    assert parse_stored_permissions('["MANAGE_USERS"]') == ["MANAGE_USERS"]
    assert parse_stored_permissions(None) == []
    assert parse_stored_permissions("") == []
    assert parse_stored_permissions("not json") == []
    assert parse_stored_permissions('{"a": 1}') == []
