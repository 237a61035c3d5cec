import jwt
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from voluntold.core.config import Settings, get_settings
from voluntold.core.database import get_db
from voluntold.core.errors import Unauthenticated
from voluntold.models.tenants import Role, UserProfile
from voluntold.services.authorization import (
    ADMIN_SCOPE,
    PORTAL_SCOPE,
    ActingContext,
    SessionPrincipal,
)

ACCESS_COOKIE = "access_token"
PORTAL_COOKIE = "portal_session"


def _extract_bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    scheme, _, param = auth_header.strip().partition(" ")
    if scheme.lower() != "bearer" or not param:
        raise Unauthenticated("Invalid authorization header")
    return param.strip()


def _decode_session(raw_token: str, settings: Settings, scope: str) -> dict:
    try:
        payload = jwt.decode(
            raw_token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algo],
        )
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Session expired")
    except jwt.InvalidTokenError:
        raise Unauthenticated("Invalid session")

    if payload.get("scope") != scope:
        raise Unauthenticated("Invalid session")
    return payload


def _profile_from_payload(db: Session, payload: dict) -> UserProfile:
    try:
        profile_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise Unauthenticated("Invalid token payload")

    profile = db.get(UserProfile, profile_id)
    if profile is None:
        raise Unauthenticated("User not found")
    return profile


def _session_tokens(request: Request, cookie_name: str) -> list[str]:
    tokens = []
    header_token = _extract_bearer_token(request)
    if header_token:
        tokens.append(header_token)
    cookie_token = request.cookies.get(cookie_name)
    if cookie_token:
        tokens.append(cookie_token)
    return tokens


def _authenticate_admin(raw_token: str, db: Session, settings: Settings) -> SessionPrincipal:
    payload = _decode_session(raw_token, settings, ADMIN_SCOPE)
    profile = _profile_from_payload(db, payload)
    if not profile.is_admin:
        raise Unauthenticated("Administrator session no longer valid")

    # Super admins carry the organization they picked at sign-in.
    tenant_id = payload.get("tid") if profile.role == Role.super_admin else profile.tenant_id
    return SessionPrincipal.from_profile(profile, tenant_id=tenant_id)


def get_current_principal(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> SessionPrincipal:
    last_error: Unauthenticated | None = None
    for raw_token in _session_tokens(request, ACCESS_COOKIE):
        try:
            return _authenticate_admin(raw_token, db, settings)
        except Unauthenticated as exc:
            last_error = exc

    if last_error:
        raise last_error
    raise Unauthenticated("Not authenticated")


def get_actor(
    principal: SessionPrincipal = Depends(get_current_principal),
) -> ActingContext:
    return principal.acting_context()


def get_portal_actor(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> ActingContext:
    last_error: Unauthenticated | None = None
    for raw_token in _session_tokens(request, PORTAL_COOKIE):
        try:
            payload = _decode_session(raw_token, settings, PORTAL_SCOPE)
            profile = _profile_from_payload(db, payload)
        except Unauthenticated as exc:
            last_error = exc
            continue
        if profile.tenant_id is None or profile.tenant_id != payload.get("tid"):
            last_error = Unauthenticated("Invalid session")
            continue
        return ActingContext(
            email=profile.email,
            tenant_id=profile.tenant_id,
            scope=PORTAL_SCOPE,
            role=Role.member.value,
            profile_id=profile.id,
        )

    if last_error:
        raise last_error
    raise Unauthenticated("Portal session required")
