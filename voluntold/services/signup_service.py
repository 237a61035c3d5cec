import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from voluntold.core.errors import Conflict, Forbidden, NotFound
from voluntold.models.projects import Opportunity, Signup
from voluntold.models.tenants import UserProfile
from voluntold.models.tokens import TokenPurpose
from voluntold.schemas.signups import SignupConfirmOut, SignupDetailsOut, SignupOpportunity
from voluntold.services import token_service
from voluntold.services.authorization import PORTAL_SCOPE, ActingContext, TokenCapability
from voluntold.services.member_service import get_tenant

logger = logging.getLogger(__name__)

CONFIRMED = "confirmed"
CANCELLED = "cancelled"


def get_opportunity(db: Session, opportunity_id: int | None, tenant_id: int | None) -> Opportunity:
    opportunity = db.get(Opportunity, opportunity_id) if opportunity_id is not None else None
    if opportunity is None or opportunity.tenant_id != tenant_id:
        raise NotFound("Opportunity not found")
    return opportunity


def find_signup(db: Session, opportunity_id: int, email: str) -> Signup | None:
    return db.scalars(
        select(Signup).where(
            Signup.opportunity_id == opportunity_id, Signup.member_email == email
        )
    ).first()


def claim_spot(
    db: Session,
    opportunity: Opportunity,
    email: str,
    name: str = "",
    *,
    token_id: int | None = None,
    now: datetime | None = None,
) -> str:
    """Confirm a signup for `email`, taking a spot only if it is not held already.

    Returns "updated" for an already-confirmed signup and "confirmed" for a new
    claim. Raises Conflict when the opportunity is full. Does not commit.
    """
    now = now or token_service.utcnow()
    existing = find_signup(db, opportunity.id, email)
    if existing is not None and existing.status == CONFIRMED:
        existing.signed_up_at = now
        if name:
            existing.member_name = name
        return "updated"

    claimed = db.execute(
        update(Opportunity)
        .where(
            Opportunity.id == opportunity.id,
            Opportunity.filled_count < Opportunity.volunteers_needed,
        )
        .values(filled_count=Opportunity.filled_count + 1)
        .execution_options(synchronize_session=False)
    )
    db.expire(opportunity, ["filled_count"])
    if claimed.rowcount != 1:
        raise Conflict("Sorry, this opportunity is already full", code="OPPORTUNITY_FULL")

    if existing is not None:
        existing.status = CONFIRMED
        existing.signed_up_at = now
        existing.token_id = token_id
    else:
        db.add(
            Signup(
                opportunity_id=opportunity.id,
                tenant_id=opportunity.tenant_id,
                member_email=email,
                member_name=name,
                token_id=token_id,
                signed_up_at=now,
            )
        )
    try:
        db.flush()
    except IntegrityError as exc:
        # A concurrent request inserted the same (opportunity, member) pair.
        raise Conflict("You are already signed up for this opportunity") from exc
    return CONFIRMED


def _confirm_message(status: str, opportunity: Opportunity) -> str:
    if status == CONFIRMED:
        return f"You're signed up for {opportunity.title}!"
    return f"Your signup for {opportunity.title} is already confirmed."


def describe(
    db: Session, raw_token: str, *, now: datetime | None = None
) -> SignupDetailsOut:
    token = token_service.validate(
        db, raw_token, TokenPurpose.opportunity_signup, now=now, allow_consumed=True
    )
    opportunity = get_opportunity(db, token.context_ref, token.tenant_id)
    tenant = get_tenant(db, opportunity.tenant_id)
    existing = find_signup(db, opportunity.id, token.subject_email)
    return SignupDetailsOut(
        member_name=token.subject_name or "",
        member_email=token.subject_email,
        opportunity=SignupOpportunity(
            id=opportunity.id,
            title=opportunity.title,
            description=opportunity.description,
            date_scheduled=opportunity.date_scheduled,
            time_start=opportunity.time_start,
            duration_hours=opportunity.duration_hours,
            volunteers_needed=opportunity.volunteers_needed,
            spots_remaining=opportunity.spots_remaining,
            skills_required=list(opportunity.skills_required or []),
            location=opportunity.location,
            project_name=opportunity.project.name,
        ),
        tenant_name=tenant.name,
        token_status="used" if token.consumed_at is not None else "valid",
        existing_signup=existing is not None and existing.status == CONFIRMED,
    )


def confirm(db: Session, raw_token: str, *, now: datetime | None = None) -> SignupConfirmOut:
    now = now or token_service.utcnow()
    token = token_service.validate(db, raw_token, TokenPurpose.opportunity_signup, now=now)
    actor = TokenCapability.from_token(token).acting_context()
    opportunity = get_opportunity(db, token.context_ref, actor.tenant_id)

    status = claim_spot(
        db,
        opportunity,
        actor.email,
        token.subject_name or "",
        token_id=token.id,
        now=now,
    )
    token_service.consume(db, token, now=now)
    db.commit()
    logger.info("Signup %s for opportunity %s", status, opportunity.id)
    return SignupConfirmOut(status=status, message=_confirm_message(status, opportunity))


def signup_as_member(
    db: Session, actor: ActingContext, opportunity_id: int, *, now: datetime | None = None
) -> SignupConfirmOut:
    if actor.scope != PORTAL_SCOPE:
        raise Forbidden("Member portal session required")
    opportunity = get_opportunity(db, opportunity_id, actor.tenant_id)
    name = ""
    if actor.profile_id is not None:
        profile = db.get(UserProfile, actor.profile_id)
        name = profile.full_name if profile is not None else ""

    status = claim_spot(db, opportunity, actor.email, name, now=now)
    db.commit()
    return SignupConfirmOut(status=status, message=_confirm_message(status, opportunity))
