"""Capability tokens: issue, validate, consume, revoke.

Every emailed link (member portal, admin password setup/reset, opportunity
signup, poll vote) is an AccessToken row. Only the SHA-256 hash of the raw
value is stored; possession of the raw value is the authorization.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from voluntold.core.config import Settings, get_settings
from voluntold.core.errors import RejectionReason, TokenRejected, ValidationFailed
from voluntold.core.security import generate_raw_token, hash_token
from voluntold.models.tokens import AccessToken, TokenPurpose
from voluntold.services.email_service import EmailDeliveryError, EmailDispatcher
from voluntold.services.email_templates import RenderedEmail

logger = logging.getLogger(__name__)

PURPOSE_PATHS = {
    TokenPurpose.member_portal_access: "/member",
    TokenPurpose.admin_password_setup: "/auth/set-password",
    TokenPurpose.admin_password_reset: "/auth/set-password",
    TokenPurpose.opportunity_signup: "/signup",
    TokenPurpose.poll_response: "/vote",
}

TENANT_SCOPED_PURPOSES = frozenset(
    {
        TokenPurpose.member_portal_access,
        TokenPurpose.opportunity_signup,
        TokenPurpose.poll_response,
    }
)

PASSWORD_PURPOSES = (
    TokenPurpose.admin_password_setup,
    TokenPurpose.admin_password_reset,
)


@dataclass(frozen=True)
class IssuedToken:
    token: AccessToken
    raw_token: str
    url: str


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def default_ttl(purpose: TokenPurpose, settings: Settings | None = None) -> timedelta:
    settings = settings or get_settings()
    if purpose == TokenPurpose.member_portal_access:
        return timedelta(minutes=settings.member_token_ttl_minutes)
    if purpose in PASSWORD_PURPOSES:
        return timedelta(hours=settings.password_token_ttl_hours)
    if purpose == TokenPurpose.opportunity_signup:
        return timedelta(days=settings.signup_token_ttl_days)
    return timedelta(days=settings.poll_token_ttl_days)


def ttl_label(ttl: timedelta) -> str:
    hours, remainder = divmod(int(ttl.total_seconds()), 3600)
    if hours and not remainder:
        if hours % 24 == 0 and hours > 24:
            return f"{hours // 24} days"
        return f"{hours} hour{'s' if hours != 1 else ''}"
    return f"{int(ttl.total_seconds() // 60)} minutes"


def build_url(purpose: TokenPurpose, raw_token: str, settings: Settings | None = None) -> str:
    settings = settings or get_settings()
    return f"{settings.site_url.rstrip('/')}{PURPOSE_PATHS[purpose]}/{raw_token}"


def _ensure_unique_token_hash(db: Session, raw_token: str) -> tuple[str, str]:
    token_hash = hash_token(raw_token)
    exists = db.execute(
        select(AccessToken.id).where(AccessToken.token_hash == token_hash)
    ).first()
    if exists:
        return _ensure_unique_token_hash(db, generate_raw_token(32))
    return raw_token, token_hash


def issue(
    db: Session,
    purpose: TokenPurpose,
    subject_email: str,
    *,
    tenant_id: int | None = None,
    context_ref: int | None = None,
    ttl: timedelta | None = None,
    subject_name: str | None = None,
    created_by: int | None = None,
    now: datetime | None = None,
    commit: bool = True,
) -> IssuedToken:
    if purpose in TENANT_SCOPED_PURPOSES and tenant_id is None:
        raise ValidationFailed(f"A tenant is required for {purpose.value} tokens")

    now = now or utcnow()
    ttl = ttl if ttl is not None else default_ttl(purpose)
    raw_token, token_hash = _ensure_unique_token_hash(db, generate_raw_token(32))

    token = AccessToken(
        token_hash=token_hash,
        purpose=purpose.value,
        subject_email=subject_email.strip().lower(),
        expires_at=now + ttl,
        issued_at=now,
        tenant_id=tenant_id,
        context_ref=context_ref,
        subject_name=subject_name,
        created_by=created_by,
    )
    db.add(token)
    if commit:
        db.commit()
        db.refresh(token)
    else:
        db.flush()
    return IssuedToken(token=token, raw_token=raw_token, url=build_url(purpose, raw_token))


def lookup(db: Session, raw_token: str) -> AccessToken | None:
    return db.execute(
        select(AccessToken).where(AccessToken.token_hash == hash_token(raw_token))
    ).scalar_one_or_none()


def validate(
    db: Session,
    raw_token: str,
    purpose: TokenPurpose,
    *,
    now: datetime | None = None,
    allow_consumed: bool = False,
) -> AccessToken:
    token = lookup(db, raw_token) if raw_token else None
    # A token presented on another purpose's route is treated as unknown.
    if token is None or token.purpose != purpose.value:
        raise TokenRejected(RejectionReason.NOT_FOUND)
    if token.consumed_at is not None and not allow_consumed:
        raise TokenRejected(RejectionReason.CONSUMED)
    if as_utc(token.expires_at) < (now or utcnow()):
        raise TokenRejected(RejectionReason.EXPIRED)
    return token


def consume(db: Session, token: AccessToken, *, now: datetime | None = None) -> None:
    """Mark a token used; fails if another request already did."""
    result = db.execute(
        update(AccessToken)
        .where(AccessToken.id == token.id, AccessToken.consumed_at.is_(None))
        .values(consumed_at=now or utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise TokenRejected(RejectionReason.CONSUMED)
    db.expire(token, ["consumed_at"])


def revoke(db: Session, tokens: Iterable[AccessToken]) -> None:
    for token in tokens:
        db.delete(token)
    db.commit()


def expire_outstanding(
    db: Session,
    purposes: Iterable[TokenPurpose],
    subject_email: str,
    *,
    keep: AccessToken | None = None,
    now: datetime | None = None,
) -> int:
    """Mark unused tokens of `purposes` for the subject consumed, except `keep`."""
    stmt = (
        update(AccessToken)
        .where(
            AccessToken.subject_email == subject_email.strip().lower(),
            AccessToken.purpose.in_([p.value for p in purposes]),
            AccessToken.consumed_at.is_(None),
        )
        .values(consumed_at=now or utcnow())
    )
    if keep is not None:
        stmt = stmt.where(AccessToken.id != keep.id)
    result = db.execute(stmt)
    return result.rowcount or 0


def deliver(
    db: Session,
    issued: Sequence[IssuedToken],
    dispatcher: EmailDispatcher,
    to_email: str,
    message: RenderedEmail,
) -> str:
    """Send an email carrying `issued` links; delete those tokens if it fails."""
    try:
        return dispatcher.send(to_email, message.subject, message.html, message.text)
    except EmailDeliveryError:
        logger.warning(
            "Revoking %d token(s) for %s after failed delivery", len(issued), to_email
        )
        revoke(db, [i.token for i in issued])
        raise
