"""Shared-password login and signed session cookies.

The password is checked against a bcrypt hash (``SHARED_PASSWORD_HASH``) or,
for local development, a plaintext ``SHARED_PASSWORD``. A successful login
sets an httpOnly cookie holding an HS256 JWT signed with ``SESSION_SECRET``.

Routes never read these settings directly: they depend on
``get_authenticator()``, which tests replace via ``app.dependency_overrides``.
"""
from __future__ import annotations

import hmac
import logging
import os
import sys
from datetime import UTC, datetime, timedelta
from functools import lru_cache

import jwt
from fastapi import Depends, HTTPException, Request
from passlib.context import CryptContext

log = logging.getLogger(__name__)

SESSION_COOKIE = "session"
SESSION_MAX_AGE = 60 * 60 * 24 * 7  # 7 days
JWT_ALGORITHM = "HS256"
DEV_SECRET = "dev-secret-change-in-production"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        log.warning("SHARED_PASSWORD_HASH is not a valid bcrypt hash")
        return False


class SessionAuthenticator:
    """Checks the shared password and issues/verifies session tokens."""

    def __init__(
        self,
        secret: str,
        password_hash: str | None = None,
        dev_password: str | None = None,
        secure_cookies: bool = False,
    ):
        self.secret = secret
        self.password_hash = password_hash
        self.dev_password = dev_password
        self.secure_cookies = secure_cookies

    @classmethod
    def from_env(cls) -> SessionAuthenticator:
        secret = os.environ.get("SESSION_SECRET")
        if not secret:
            log.warning("SESSION_SECRET not set, using the development secret")
            secret = DEV_SECRET
        return cls(
            secret=secret,
            password_hash=os.environ.get("SHARED_PASSWORD_HASH") or None,
            dev_password=os.environ.get("SHARED_PASSWORD") or None,
            secure_cookies=os.environ.get("VISIBILITY_ENV", "development") == "production",
        )

    def check_password(self, password: str) -> bool:
        if not password:
            return False
        if self.dev_password and hmac.compare_digest(password, self.dev_password):
            return True
        if self.password_hash:
            return verify_password(password, self.password_hash)
        return False

    def issue_token(self) -> str:
        now = datetime.now(UTC)
        payload = {
            "authenticated": True,
            "iat": now,
            "exp": now + timedelta(seconds=SESSION_MAX_AGE),
        }
        return jwt.encode(payload, self.secret, algorithm=JWT_ALGORITHM)

    def verify_token(self, token: str | None) -> bool:
        if not token:
            return False
        try:
            payload = jwt.decode(token, self.secret, algorithms=[JWT_ALGORITHM])
        except jwt.InvalidTokenError:
            return False
        return payload.get("authenticated") is True


@lru_cache(maxsize=1)
def get_authenticator() -> SessionAuthenticator:
    return SessionAuthenticator.from_env()


def session_authenticated(
    request: Request, auth: SessionAuthenticator = Depends(get_authenticator),
) -> bool:
    return auth.verify_token(request.cookies.get(SESSION_COOKIE))


def require_session(authenticated: bool = Depends(session_authenticated)) -> None:
    if not authenticated:
        raise HTTPException(401, "Unauthorized")


def main():
    """Print a SHARED_PASSWORD_HASH line for the given password."""
    password = sys.argv[1] if len(sys.argv) > 1 else "admin"
    print("Add this to your environment:")
    print(f"SHARED_PASSWORD_HASH={hash_password(password)}")


if __name__ == "__main__":
    main()
