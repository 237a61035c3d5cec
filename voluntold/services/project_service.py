import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from voluntold.core.errors import NotFound, ValidationFailed
from voluntold.models.projects import HoursLog, Opportunity, Project
from voluntold.models.tenants import Group
from voluntold.schemas.opportunities import HoursLogIn, OpportunityCreate, ProjectCreate
from voluntold.services.authorization import ActingContext, Action, authorize
from voluntold.services.member_service import get_tenant, normalize_email

logger = logging.getLogger(__name__)


def get_project(db: Session, tenant_id: int, project_id: int) -> Project:
    project = db.get(Project, project_id)
    if project is None or project.tenant_id != tenant_id:
        raise NotFound("Project not found")
    return project


def create_project(
    db: Session, actor: ActingContext, tenant_id: int, payload: ProjectCreate
) -> Project:
    authorize(actor, Action.manage_projects, tenant_id)
    get_tenant(db, tenant_id)

    group_ids = list(dict.fromkeys(payload.target_groups))
    if group_ids:
        found = set(
            db.scalars(
                select(Group.id).where(Group.id.in_(group_ids), Group.tenant_id == tenant_id)
            )
        )
        missing = [g for g in group_ids if g not in found]
        if missing:
            raise ValidationFailed(f"Unknown group(s): {', '.join(map(str, missing))}")

    project = Project(
        tenant_id=tenant_id,
        name=payload.name.strip(),
        description=payload.description,
        target_all_members=payload.target_all_members,
        target_groups=group_ids,
    )
    db.add(project)
    db.commit()
    db.refresh(project)
    return project


def list_projects(db: Session, actor: ActingContext, tenant_id: int) -> list[Project]:
    authorize(actor, Action.manage_projects, tenant_id)
    return list(
        db.scalars(
            select(Project).where(Project.tenant_id == tenant_id).order_by(Project.name)
        )
    )


def create_opportunity(
    db: Session, actor: ActingContext, tenant_id: int, payload: OpportunityCreate
) -> Opportunity:
    authorize(actor, Action.manage_projects, tenant_id)
    get_project(db, tenant_id, payload.project_id)

    opportunity = Opportunity(
        tenant_id=tenant_id,
        project_id=payload.project_id,
        title=payload.title.strip(),
        volunteers_needed=payload.volunteers_needed,
        description=payload.description,
        date_scheduled=payload.date_scheduled,
        time_start=payload.time_start,
        duration_hours=payload.duration_hours,
        location=payload.location,
        skills_required=[s.strip() for s in payload.skills_required if s.strip()],
    )
    db.add(opportunity)
    db.commit()
    db.refresh(opportunity)
    logger.info("Opportunity %s created in tenant %s", opportunity.id, tenant_id)
    return opportunity


def list_opportunities(
    db: Session, actor: ActingContext, tenant_id: int
) -> list[Opportunity]:
    authorize(actor, Action.manage_projects, tenant_id)
    return list(
        db.scalars(
            select(Opportunity)
            .where(Opportunity.tenant_id == tenant_id)
            .order_by(Opportunity.date_scheduled, Opportunity.id)
        )
    )


def log_hours(
    db: Session, actor: ActingContext, tenant_id: int, payload: HoursLogIn
) -> HoursLog:
    authorize(actor, Action.manage_members, tenant_id)
    get_tenant(db, tenant_id)
    if payload.project_id is not None:
        get_project(db, tenant_id, payload.project_id)

    entry = HoursLog(
        tenant_id=tenant_id,
        member_email=normalize_email(payload.member_email),
        hours=payload.hours,
        project_id=payload.project_id,
        description=payload.description,
    )
    if payload.logged_on is not None:
        entry.logged_on = payload.logged_on
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry
