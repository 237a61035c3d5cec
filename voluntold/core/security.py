import hashlib
import secrets
from datetime import UTC, datetime, timedelta

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from voluntold.core.config import get_settings

ph = PasswordHasher(time_cost=3, memory_cost=64 * 1024, parallelism=2)
settings = get_settings()
JWT_SECRET = settings.jwt_secret
JWT_ALGO = settings.jwt_algo
ACCESS_MIN = settings.access_min
PORTAL_SESSION_MIN = settings.portal_session_min


def generate_raw_token(nbytes: int = 32) -> str:
    return secrets.token_urlsafe(nbytes)


def hash_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def hash_password(plain: str) -> str:
    return ph.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return ph.verify(hashed, plain)
    except (VerificationError, InvalidHashError):
        return False


def create_token(
    sub: str,
    role: str,
    ttl: timedelta,
    *,
    tenant_id: int | None = None,
    scope: str = "admin",
) -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "role": role,
        "tid": tenant_id,
        "scope": scope,
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGO)


def create_access(sub: str, role: str, tenant_id: int | None = None) -> str:
    return create_token(sub, role, timedelta(minutes=ACCESS_MIN), tenant_id=tenant_id)


def create_portal_session(sub: str, tenant_id: int) -> str:
    return create_token(
        sub,
        "member",
        timedelta(minutes=PORTAL_SESSION_MIN),
        tenant_id=tenant_id,
        scope="portal",
    )
