from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from voluntold.api.deps import get_actor
from voluntold.core.database import get_db
from voluntold.schemas.polls import (
    PollCreate,
    PollCreatedOut,
    PollOut,
    PollResultsOut,
    PollSendOut,
)
from voluntold.services import poll_service
from voluntold.services.authorization import ActingContext
from voluntold.services.email_service import EmailDispatcher, get_email_dispatcher
from voluntold.services.email_throttle import SendThrottle, get_send_throttle

router = APIRouter(prefix="/tenants/{tenant_id}/polls", tags=["polls"])


@router.post("", response_model=PollCreatedOut, status_code=status.HTTP_201_CREATED)
def create_poll(
    tenant_id: int,
    payload: PollCreate,
    db: Session = Depends(get_db),
    actor: ActingContext = Depends(get_actor),
):
    poll, recipients = poll_service.create_poll(db, actor, tenant_id, payload)
    return PollCreatedOut(
        **PollOut.model_validate(poll).model_dump(), recipients=recipients
    )


@router.post("/{poll_id}/send", response_model=PollSendOut)
def send_poll(
    tenant_id: int,
    poll_id: int,
    db: Session = Depends(get_db),
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
    throttle: SendThrottle = Depends(get_send_throttle),
    actor: ActingContext = Depends(get_actor),
):
    return poll_service.send_poll_emails(
        db, dispatcher, throttle, actor, tenant_id, poll_id
    )


@router.post("/{poll_id}/close", response_model=PollOut)
def close_poll(
    tenant_id: int,
    poll_id: int,
    db: Session = Depends(get_db),
    actor: ActingContext = Depends(get_actor),
):
    return poll_service.close_poll(db, actor, tenant_id, poll_id)


@router.get("/{poll_id}/results", response_model=PollResultsOut)
def poll_results(
    tenant_id: int,
    poll_id: int,
    db: Session = Depends(get_db),
    actor: ActingContext = Depends(get_actor),
):
    return poll_service.poll_results(db, actor, tenant_id, poll_id)
