import hashlib
from datetime import datetime, timedelta, timezone

import pytest

from market_api.core.config import get_settings
from market_api.services import local_auth


@pytest.fixture(autouse=True)
def _reset_settings(monkeypatch):
    monkeypatch.delenv("MKT_AUTH_TOKEN_HASH_SECRET", raising=False)
    monkeypatch.delenv("MKT_AUTH_SESSION_TTL_SECONDS", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_hash_password_uses_salt_digest_format_and_verifies():
    stored = local_auth.hash_password("secret1")
    salt, _, digest = stored.partition(":")

    assert len(salt) == local_auth.PASSWORD_SALT_BYTES * 2
    assert digest == hashlib.sha256(f"secret1{salt}".encode("utf-8")).hexdigest()
    assert local_auth.verify_password("secret1", stored) is True
    assert local_auth.verify_password("secret2", stored) is False


def test_hash_password_generates_fresh_salt_each_time():
    assert local_auth.hash_password("same-password") != local_auth.hash_password("same-password")


def test_verify_password_accepts_legacy_short_salt_hashes():
    salt = "1a2b3c4d5e6f7a8b"
    stored = f"{salt}:{hashlib.sha256(f'legacy-pass{salt}'.encode('utf-8')).hexdigest()}"

    assert local_auth.verify_password("legacy-pass", stored) is True


@pytest.mark.parametrize("stored", ["", "no-separator", ":digest-only", "salt-only:", None, 12345])
def test_verify_password_returns_false_for_malformed_hash(stored):
    assert local_auth.verify_password("secret1", stored) is False


def test_verify_password_returns_false_for_unencodable_password():
    stored = local_auth.hash_password("secret1")

    assert local_auth.verify_password("\ud800abc", stored) is False


def test_session_token_is_64_hex_chars_and_unique():
    first = local_auth.generate_session_token()
    second = local_auth.generate_session_token()

    assert len(first) == 64
    int(first, 16)
    assert first != second


def test_hash_session_token_is_deterministic_sha256_by_default():
    token = "a" * 64

    assert local_auth.hash_session_token(token) == hashlib.sha256(token.encode("utf-8")).hexdigest()
    assert local_auth.hash_session_token(token) == local_auth.hash_session_token(token)


def test_hash_session_token_uses_hmac_when_secret_configured(monkeypatch):
    token = "b" * 64
    plain = local_auth.hash_session_token(token)

    monkeypatch.setenv("MKT_AUTH_TOKEN_HASH_SECRET", "pepper")
    get_settings.cache_clear()

    keyed = local_auth.hash_session_token(token)
    assert keyed != plain
    assert keyed == local_auth.hash_session_token(token)


def test_compute_session_expiry_defaults_to_seven_days(monkeypatch):
    fixed_now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    monkeypatch.setattr(local_auth, "utc_now", lambda: fixed_now)

    assert local_auth.compute_session_expiry() == fixed_now + timedelta(days=7)
    assert local_auth.compute_session_expiry(timedelta(hours=1)) == fixed_now + timedelta(hours=1)


def test_session_duration_follows_settings(monkeypatch):
    monkeypatch.setenv("MKT_AUTH_SESSION_TTL_SECONDS", "3600")
    get_settings.cache_clear()

    assert local_auth.session_duration() == timedelta(hours=1)


def test_as_utc_normalizes_naive_datetimes():
    naive = datetime(2026, 1, 1, 12, 0)

    assert local_auth.as_utc(naive) == datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
    assert local_auth.as_utc(None) is None
