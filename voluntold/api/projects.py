from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from voluntold.api.deps import get_actor
from voluntold.core.database import get_db
from voluntold.schemas.opportunities import (
    BroadcastIn,
    BroadcastOut,
    HoursLogIn,
    HoursLogOut,
    OpportunityCreate,
    OpportunityOut,
    ProjectCreate,
    ProjectOut,
)
from voluntold.services import broadcast_service, project_service
from voluntold.services.authorization import ActingContext
from voluntold.services.email_service import EmailDispatcher, get_email_dispatcher
from voluntold.services.email_throttle import SendThrottle, get_send_throttle

router = APIRouter(prefix="/tenants/{tenant_id}", tags=["projects"])


@router.post("/projects", response_model=ProjectOut, status_code=status.HTTP_201_CREATED)
def create_project(
    tenant_id: int,
    payload: ProjectCreate,
    db: Session = Depends(get_db),
    actor: ActingContext = Depends(get_actor),
):
    return project_service.create_project(db, actor, tenant_id, payload)


@router.get("/projects", response_model=list[ProjectOut])
def list_projects(
    tenant_id: int,
    db: Session = Depends(get_db),
    actor: ActingContext = Depends(get_actor),
):
    return project_service.list_projects(db, actor, tenant_id)


@router.post(
    "/opportunities",
    response_model=OpportunityOut,
    status_code=status.HTTP_201_CREATED,
)
def create_opportunity(
    tenant_id: int,
    payload: OpportunityCreate,
    db: Session = Depends(get_db),
    actor: ActingContext = Depends(get_actor),
):
    return project_service.create_opportunity(db, actor, tenant_id, payload)


@router.get("/opportunities", response_model=list[OpportunityOut])
def list_opportunities(
    tenant_id: int,
    db: Session = Depends(get_db),
    actor: ActingContext = Depends(get_actor),
):
    return project_service.list_opportunities(db, actor, tenant_id)


@router.post("/hours", response_model=HoursLogOut, status_code=status.HTTP_201_CREATED)
def log_hours(
    tenant_id: int,
    payload: HoursLogIn,
    db: Session = Depends(get_db),
    actor: ActingContext = Depends(get_actor),
):
    return project_service.log_hours(db, actor, tenant_id, payload)


@router.post("/broadcasts/opportunities", response_model=BroadcastOut)
def broadcast_opportunities(
    tenant_id: int,
    payload: BroadcastIn,
    db: Session = Depends(get_db),
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
    throttle: SendThrottle = Depends(get_send_throttle),
    actor: ActingContext = Depends(get_actor),
):
    report = broadcast_service.send_opportunity_emails(
        db, dispatcher, throttle, actor, tenant_id, payload.opportunity_ids
    )
    return BroadcastOut(
        message=f"Sent {report.successful} of {report.total} email(s)",
        total=report.total,
        successful=report.successful,
        failed=report.failed,
        opportunities=report.opportunities,
        projects=report.projects,
        targeting_summary=report.targeting_summary,
    )
