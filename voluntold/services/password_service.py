"""Admin password setup and reset through emailed single-use links."""

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from voluntold.core.config import get_settings
from voluntold.core.errors import DependencyFailure, NotFound, ValidationFailed
from voluntold.core.security import hash_password
from voluntold.models.tenants import ADMIN_ROLES, Credential, UserProfile
from voluntold.models.tokens import AccessToken, TokenPurpose
from voluntold.schemas.password_reset import PasswordTokenOut, PasswordTokenUser
from voluntold.services import token_service
from voluntold.services.email_service import EmailDeliveryError, EmailDispatcher
from voluntold.services.email_templates import renderer
from voluntold.services.member_service import normalize_email

logger = logging.getLogger(__name__)

GENERIC_RESET_MESSAGE = (
    "If an admin account exists with that email, a password reset link has been sent."
)
SETUP_SENT_MESSAGE = "Account setup email sent successfully!"

_SET_MESSAGES = {
    TokenPurpose.admin_password_setup: (
        "Password set successfully! You can now sign in to your admin account."
    ),
    TokenPurpose.admin_password_reset: (
        "Password reset successfully! You can now sign in with your new password."
    ),
}


def find_admin_profiles(db: Session, email: str) -> list[UserProfile]:
    return list(
        db.scalars(
            select(UserProfile)
            .where(
                UserProfile.email == normalize_email(email),
                UserProfile.role.in_([r.value for r in ADMIN_ROLES]),
            )
            .order_by(UserProfile.id)
        )
    )


def send_password_email(
    db: Session,
    dispatcher: EmailDispatcher,
    profile: UserProfile,
    purpose: TokenPurpose,
    *,
    created_by: int | None = None,
) -> token_service.IssuedToken:
    """Issue a setup/reset token for `profile` and email it.

    Earlier unused password tokens for the same address stop working once the
    email is out. Raises EmailDeliveryError after revoking the new token if
    sending fails; the earlier tokens are left as they were.
    """
    issued = token_service.issue(
        db,
        purpose,
        profile.email,
        tenant_id=profile.tenant_id,
        subject_name=profile.full_name or None,
        created_by=created_by,
    )
    message = renderer.render(
        purpose.value,
        first_name=profile.first_name,
        link=issued.url,
        ttl_label=token_service.ttl_label(token_service.default_ttl(purpose)),
    )
    token_service.deliver(db, [issued], dispatcher, profile.email, message)
    token_service.expire_outstanding(
        db, token_service.PASSWORD_PURPOSES, profile.email, keep=issued.token
    )
    db.commit()
    logger.info("Sent %s email to %s", purpose.value, profile.email)
    return issued


def request_password_email(
    db: Session,
    dispatcher: EmailDispatcher,
    email: str,
    purpose: TokenPurpose = TokenPurpose.admin_password_reset,
    *,
    created_by: int | None = None,
) -> str:
    profiles = find_admin_profiles(db, email)
    if not profiles:
        logger.info("Password email requested for an address with no admin profile")
        return GENERIC_RESET_MESSAGE

    try:
        send_password_email(db, dispatcher, profiles[0], purpose, created_by=created_by)
    except EmailDeliveryError as exc:
        raise DependencyFailure("Failed to send email. Please try again.") from exc

    if purpose == TokenPurpose.admin_password_setup:
        return SETUP_SENT_MESSAGE
    return GENERIC_RESET_MESSAGE


def _validate_password_token(
    db: Session, raw_token: str, now: datetime | None = None
) -> AccessToken:
    # Setup and reset links share one route; the stored purpose decides which.
    token = token_service.lookup(db, raw_token) if raw_token else None
    purpose = TokenPurpose.admin_password_reset
    if token is not None and token.purpose in token_service.PASSWORD_PURPOSES:
        purpose = TokenPurpose(token.purpose)
    return token_service.validate(db, raw_token, purpose, now=now)


def inspect_token(
    db: Session, raw_token: str, *, now: datetime | None = None
) -> PasswordTokenOut:
    token = _validate_password_token(db, raw_token, now)
    profiles = find_admin_profiles(db, token.subject_email)
    if not profiles:
        raise NotFound("User account not found or invalid permissions")
    profile = profiles[0]
    return PasswordTokenOut(
        user=PasswordTokenUser(
            email=profile.email,
            first_name=profile.first_name,
            last_name=profile.last_name,
            role=profile.role,
        ),
        token_type=token.purpose,
        expires_at=token_service.as_utc(token.expires_at),
    )


def set_password(
    db: Session, raw_token: str, password: str, *, now: datetime | None = None
) -> tuple[str, TokenPurpose]:
    min_length = get_settings().password_min_length
    if len(password) < min_length:
        raise ValidationFailed(f"Password must be at least {min_length} characters long")

    now = now or token_service.utcnow()
    token = _validate_password_token(db, raw_token, now)
    profiles = find_admin_profiles(db, token.subject_email)
    if not profiles:
        raise NotFound("User account not found or invalid permissions")

    token_service.consume(db, token, now=now)

    credential = db.scalars(
        select(Credential).where(Credential.email == token.subject_email)
    ).first()
    if credential is None:
        credential = Credential(
            email=token.subject_email, password_hash=hash_password(password)
        )
        db.add(credential)
        db.flush()
    else:
        credential.password_hash = hash_password(password)
        credential.updated_at = now

    for profile in profiles:
        if profile.credential_id == credential.id:
            continue
        if profile.credential_id is not None:
            logger.warning(
                "Relinking profile %s from credential %s to %s",
                profile.id,
                profile.credential_id,
                credential.id,
            )
        profile.credential_id = credential.id

    db.commit()
    purpose = TokenPurpose(token.purpose)
    return _SET_MESSAGES[purpose], purpose
