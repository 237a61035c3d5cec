import logging
from collections import defaultdict
from datetime import date, datetime

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from voluntold.core.errors import DependencyFailure, NotFound, ValidationFailed
from voluntold.models.polls import Poll, PollResponse
from voluntold.models.projects import HoursLog, Opportunity, Project, Signup
from voluntold.models.tenants import UserProfile
from voluntold.models.tokens import TokenPurpose
from voluntold.schemas.portal import (
    HoursBreakdown,
    MemberAccessOut,
    MemberInfo,
    MemberOrganization,
    PortalOut,
    PortalPoll,
    ProjectHours,
    RosterMember,
    TenantInfo,
    UpcomingOpportunity,
)
from voluntold.services import token_service
from voluntold.services.email_service import EmailDeliveryError, EmailDispatcher
from voluntold.services.email_templates import renderer
from voluntold.services.member_service import get_tenant, normalize_email

logger = logging.getLogger(__name__)

ACCESS_SENT_MESSAGE = (
    "If that email belongs to a member, an access link has been sent. "
    "Please check your inbox."
)


def request_access(
    db: Session,
    dispatcher: EmailDispatcher,
    email: str,
    selected_tenant_id: int | None = None,
) -> MemberAccessOut:
    email = normalize_email(email)
    profiles = list(
        db.scalars(
            select(UserProfile)
            .where(UserProfile.email == email, UserProfile.tenant_id.is_not(None))
            .order_by(UserProfile.tenant_id)
        )
    )
    if not profiles:
        logger.info("Portal access requested for an unknown address")
        return MemberAccessOut(message=ACCESS_SENT_MESSAGE)

    if selected_tenant_id is None and len(profiles) > 1:
        return MemberAccessOut(
            message="Please select which organization you want to access",
            requires_org_selection=True,
            organizations=[
                MemberOrganization(tenant_id=p.tenant_id, tenant_name=p.tenant.name)
                for p in profiles
            ],
        )

    profile = profiles[0]
    if selected_tenant_id is not None:
        profile = next((p for p in profiles if p.tenant_id == selected_tenant_id), None)
        if profile is None:
            raise ValidationFailed("Invalid organization selection")

    tenant = get_tenant(db, profile.tenant_id)
    purpose = TokenPurpose.member_portal_access
    issued = token_service.issue(
        db,
        purpose,
        email,
        tenant_id=tenant.id,
        subject_name=profile.full_name or None,
    )
    message = renderer.render(
        "member_portal_link",
        tenant_name=tenant.name,
        member_name=profile.first_name,
        link=issued.url,
        ttl_label=token_service.ttl_label(token_service.default_ttl(purpose)),
    )
    try:
        token_service.deliver(db, [issued], dispatcher, email, message)
    except EmailDeliveryError as exc:
        raise DependencyFailure("Failed to send email. Please try again.") from exc

    logger.info("Portal link sent for tenant %s", tenant.id)
    return MemberAccessOut(message=ACCESS_SENT_MESSAGE)


def open_portal(
    db: Session, raw_token: str, *, now: datetime | None = None
) -> tuple[UserProfile, PortalOut]:
    now = now or token_service.utcnow()
    token = token_service.validate(
        db, raw_token, TokenPurpose.member_portal_access, now=now
    )
    token_service.consume(db, token, now=now)
    db.commit()

    profile = db.scalars(
        select(UserProfile).where(
            UserProfile.email == token.subject_email,
            UserProfile.tenant_id == token.tenant_id,
        )
    ).first()
    if profile is None:
        raise NotFound("Member profile not found")
    return profile, build_portal(db, profile, now=now)


def _upcoming_opportunities(
    db: Session, profile: UserProfile, today: date
) -> list[UpcomingOpportunity]:
    rows = db.execute(
        select(Opportunity, Project.name)
        .join(Project, Project.id == Opportunity.project_id)
        .where(
            Opportunity.tenant_id == profile.tenant_id,
            or_(Opportunity.date_scheduled.is_(None), Opportunity.date_scheduled >= today),
        )
        .order_by(Opportunity.date_scheduled, Opportunity.id)
    ).all()
    signed_up = set(
        db.scalars(
            select(Signup.opportunity_id).where(
                Signup.tenant_id == profile.tenant_id,
                Signup.member_email == profile.email,
                Signup.status == "confirmed",
            )
        )
    )
    return [
        UpcomingOpportunity(
            id=opp.id,
            title=opp.title,
            project_name=project_name,
            date_scheduled=opp.date_scheduled,
            time_start=opp.time_start,
            duration_hours=opp.duration_hours,
            volunteers_needed=opp.volunteers_needed,
            filled_count=opp.filled_count,
            spots_remaining=opp.spots_remaining,
            is_signed_up=opp.id in signed_up,
            location=opp.location,
        )
        for opp, project_name in rows
    ]


def _hours(db: Session, profile: UserProfile, today: date) -> HoursBreakdown:
    per_project: dict[str, float] = defaultdict(float)
    this_year = opportunity_hours = additional_hours = 0.0

    past_signups = db.execute(
        select(Opportunity, Project.name)
        .join(Signup, Signup.opportunity_id == Opportunity.id)
        .join(Project, Project.id == Opportunity.project_id)
        .where(
            Signup.tenant_id == profile.tenant_id,
            Signup.member_email == profile.email,
            Signup.status == "confirmed",
            Opportunity.date_scheduled < today,
        )
    ).all()
    for opp, project_name in past_signups:
        hours = opp.duration_hours or 0.0
        opportunity_hours += hours
        per_project[project_name] += hours
        if opp.date_scheduled.year == today.year:
            this_year += hours

    logs = db.scalars(
        select(HoursLog).where(
            HoursLog.tenant_id == profile.tenant_id,
            HoursLog.member_email == profile.email,
        )
    )
    for log in logs:
        additional_hours += log.hours
        per_project[log.project.name if log.project else "Other"] += log.hours
        if log.logged_on.year == today.year:
            this_year += log.hours

    return HoursBreakdown(
        lifetime_total=opportunity_hours + additional_hours,
        this_year_total=this_year,
        opportunity_hours=opportunity_hours,
        additional_hours=additional_hours,
        projects=[
            ProjectHours(project_name=name, hours=hours)
            for name, hours in sorted(per_project.items(), key=lambda kv: -kv[1])
        ],
    )


def _active_polls(db: Session, profile: UserProfile, now: datetime) -> list[PortalPoll]:
    rows = db.execute(
        select(Poll, PollResponse)
        .join(PollResponse, PollResponse.poll_id == Poll.id)
        .where(
            Poll.tenant_id == profile.tenant_id,
            Poll.status == "active",
            PollResponse.member_email == profile.email,
        )
        .order_by(Poll.created_at.desc(), Poll.id.desc())
    ).all()
    return [
        PortalPoll(
            id=poll.id,
            title=poll.title,
            question=poll.question,
            poll_type=poll.poll_type,
            options=list(poll.allowed_responses),
            expires_at=poll.expires_at,
            has_responded=response.response is not None,
            member_response=response.response,
        )
        for poll, response in rows
        if poll.expires_at is None or token_service.as_utc(poll.expires_at) >= now
    ]


def build_portal(
    db: Session, profile: UserProfile, *, now: datetime | None = None
) -> PortalOut:
    now = now or token_service.utcnow()
    today = now.date()
    tenant = get_tenant(db, profile.tenant_id)
    roster = db.scalars(
        select(UserProfile)
        .where(UserProfile.tenant_id == profile.tenant_id)
        .order_by(UserProfile.last_name, UserProfile.first_name, UserProfile.id)
    ).all()
    return PortalOut(
        member=MemberInfo.model_validate(profile),
        tenant=TenantInfo.model_validate(tenant),
        upcoming_opportunities=_upcoming_opportunities(db, profile, today),
        hours=_hours(db, profile, today),
        active_polls=_active_polls(db, profile, now),
        roster=[RosterMember.model_validate(p) for p in roster],
    )
