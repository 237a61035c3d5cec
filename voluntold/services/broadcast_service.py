import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from voluntold.core.errors import NotFound
from voluntold.models.projects import EmailBroadcast, Opportunity, Project
from voluntold.models.tenants import UserProfile
from voluntold.models.tokens import TokenPurpose
from voluntold.services import token_service
from voluntold.services.authorization import ActingContext, Action, authorize
from voluntold.services.email_service import EmailDeliveryError, EmailDispatcher
from voluntold.services.email_templates import renderer
from voluntold.services.email_throttle import SendThrottle
from voluntold.services.member_service import get_tenant, resolve_targets

logger = logging.getLogger(__name__)


@dataclass
class BroadcastReport:
    total: int
    successful: int = 0
    failed: int = 0
    opportunities: int = 0
    projects: int = 0
    targeting_summary: str = ""
    failed_emails: list[str] = field(default_factory=list)


def describe_when(opportunity: Opportunity) -> str:
    if opportunity.date_scheduled is None:
        return "Date to be announced"
    when = opportunity.date_scheduled.strftime("%A, %B %d, %Y")
    if opportunity.time_start is not None:
        when += f" at {opportunity.time_start.strftime('%I:%M %p').lstrip('0')}"
    if opportunity.duration_hours:
        when += f" ({opportunity.duration_hours:g} hours)"
    return when


def send_opportunity_emails(
    db: Session,
    dispatcher: EmailDispatcher,
    throttle: SendThrottle,
    actor: ActingContext,
    tenant_id: int,
    opportunity_ids: list[int],
    *,
    now: datetime | None = None,
) -> BroadcastReport:
    """Email each targeted member one signup link per opportunity.

    Members are resolved per project from its targeting; projects with no
    targeting are skipped. One email goes to each member, grouped by project.
    A failed send revokes that member's tokens and counts as a failure.
    """
    authorize(actor, Action.send_broadcasts, tenant_id)
    now = now or token_service.utcnow()
    tenant = get_tenant(db, tenant_id)

    opportunities = db.scalars(
        select(Opportunity)
        .where(Opportunity.id.in_(opportunity_ids), Opportunity.tenant_id == tenant_id)
        .order_by(Opportunity.date_scheduled, Opportunity.id)
    ).all()
    if not opportunities:
        raise NotFound("No opportunities found")

    projects: dict[int, Project] = {}
    for opportunity in opportunities:
        projects.setdefault(opportunity.project_id, opportunity.project)

    # email -> (profile, opportunities offered to that member)
    recipients: dict[str, tuple[UserProfile, list[Opportunity]]] = {}
    summaries: list[str] = []
    for project in projects.values():
        targeting = resolve_targets(
            db, tenant_id, project.target_all_members, project.target_groups
        )
        if not targeting.profiles:
            logger.warning("Project %s has no targeted members; skipping", project.id)
            continue
        summaries.append(f"{project.name}: {targeting.summary}")
        project_opportunities = [o for o in opportunities if o.project_id == project.id]
        for profile in targeting.profiles:
            _, offered = recipients.setdefault(profile.email, (profile, []))
            offered.extend(project_opportunities)

    if not recipients:
        raise NotFound("No target members found for any project")

    report = BroadcastReport(
        total=len(recipients),
        opportunities=len(opportunities),
        projects=len(projects),
        targeting_summary="; ".join(summaries),
    )
    purpose = TokenPurpose.opportunity_signup

    for email, (profile, offered) in recipients.items():
        throttle.wait()
        issued = [
            token_service.issue(
                db,
                purpose,
                email,
                tenant_id=tenant_id,
                context_ref=opportunity.id,
                subject_name=profile.full_name or None,
                created_by=actor.profile_id,
                now=now,
                commit=False,
            )
            for opportunity in offered
        ]
        db.commit()

        sections: dict[int, dict] = {}
        for opportunity, token in zip(offered, issued, strict=True):
            section = sections.setdefault(
                opportunity.project_id,
                {"project_name": opportunity.project.name, "items": []},
            )
            section["items"].append(
                {
                    "title": opportunity.title,
                    "when": describe_when(opportunity),
                    "description": opportunity.description,
                    "location": opportunity.location,
                    "skills": ", ".join(opportunity.skills_required or []),
                    "link": token.url,
                }
            )
        message = renderer.render(
            "opportunity_broadcast",
            first_name=profile.first_name,
            tenant_name=tenant.name,
            targeting_summary=report.targeting_summary,
            sections=list(sections.values()),
        )
        try:
            token_service.deliver(db, issued, dispatcher, email, message)
        except EmailDeliveryError:
            report.failed += 1
            report.failed_emails.append(email)
            continue
        report.successful += 1

    db.add(
        EmailBroadcast(
            tenant_id=tenant_id,
            broadcast_type="opportunities",
            recipient_count=report.total,
            successful=report.successful,
            failed=report.failed,
            sent_by=actor.profile_id,
            opportunity_ids=[o.id for o in opportunities],
            targeting_summary=report.targeting_summary,
        )
    )
    db.commit()
    logger.info(
        "Opportunity broadcast for tenant %s: %d sent, %d failed",
        tenant_id,
        report.successful,
        report.failed,
    )
    return report
