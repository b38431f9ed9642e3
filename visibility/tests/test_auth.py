"""Tests for shared-password checks and session tokens."""
from __future__ import annotations

from datetime import UTC, datetime, timedelta

import jwt
import pytest

from visibility.auth import (
    JWT_ALGORITHM,
    SessionAuthenticator,
    hash_password,
    verify_password,
)


@pytest.fixture(scope="module")
def password_hash():
    return hash_password("s3cret")


class TestPasswords:
    def test_hash_roundtrip(self, password_hash):
        assert password_hash.startswith("$2")
        assert verify_password("s3cret", password_hash)
        assert not verify_password("wrong", password_hash)

    def test_invalid_hash_is_a_mismatch(self):
        assert verify_password("s3cret", "not-a-hash") is False

    def test_check_against_hash(self, password_hash):
        auth = SessionAuthenticator(secret="k", password_hash=password_hash)
        assert auth.check_password("s3cret")
        assert not auth.check_password("S3cret")

    def test_dev_password(self):
        auth = SessionAuthenticator(secret="k", dev_password="admin")
        assert auth.check_password("admin")
        assert not auth.check_password("admin ")

    def test_empty_password_never_matches(self, password_hash):
        auth = SessionAuthenticator(secret="k", password_hash=password_hash, dev_password="admin")
        assert not auth.check_password("")

    def test_nothing_configured(self):
        assert not SessionAuthenticator(secret="k").check_password("anything")


class TestTokens:
    def test_issue_and_verify(self):
        auth = SessionAuthenticator(secret="k")
        assert auth.verify_token(auth.issue_token())

    def test_token_claims(self):
        auth = SessionAuthenticator(secret="k")
        payload = jwt.decode(auth.issue_token(), "k", algorithms=[JWT_ALGORITHM])
        assert payload["authenticated"] is True
        assert payload["exp"] - payload["iat"] == 7 * 24 * 60 * 60

    def test_wrong_secret(self):
        token = SessionAuthenticator(secret="a").issue_token()
        assert not SessionAuthenticator(secret="b").verify_token(token)

    def test_expired(self):
        past = datetime.now(UTC) - timedelta(days=8)
        token = jwt.encode(
            {"authenticated": True, "iat": past, "exp": past + timedelta(days=7)},
            "k", algorithm=JWT_ALGORITHM,
        )
        assert not SessionAuthenticator(secret="k").verify_token(token)

    def test_missing_claim(self):
        token = jwt.encode({"sub": "x"}, "k", algorithm=JWT_ALGORITHM)
        assert not SessionAuthenticator(secret="k").verify_token(token)

    @pytest.mark.parametrize("token", [None, "", "garbage"])
    def test_bad_tokens(self, token):
        assert not SessionAuthenticator(secret="k").verify_token(token)


class TestFromEnv:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("SESSION_SECRET", "env-secret")
        monkeypatch.setenv("SHARED_PASSWORD", "pw")
        monkeypatch.delenv("SHARED_PASSWORD_HASH", raising=False)
        monkeypatch.setenv("VISIBILITY_ENV", "production")
        auth = SessionAuthenticator.from_env()
        assert auth.secret == "env-secret"
        assert auth.secure_cookies is True
        assert auth.check_password("pw")

    def test_development_defaults(self, monkeypatch):
        for name in ("SESSION_SECRET", "SHARED_PASSWORD", "SHARED_PASSWORD_HASH", "VISIBILITY_ENV"):
            monkeypatch.delenv(name, raising=False)
        auth = SessionAuthenticator.from_env()
        assert auth.secret
        assert auth.secure_cookies is False
        assert not auth.check_password("admin")
