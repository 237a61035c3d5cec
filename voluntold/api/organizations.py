from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from voluntold.core.database import get_db
from voluntold.core.limiter import limit_applications
from voluntold.schemas.tenants import OrganizationApplicationIn, OrganizationApplicationOut
from voluntold.services import tenant_service
from voluntold.services.email_service import EmailDispatcher, get_email_dispatcher

router = APIRouter(prefix="/organizations", tags=["organizations"])


@router.post(
    "/apply",
    response_model=OrganizationApplicationOut,
    status_code=status.HTTP_201_CREATED,
)
@limit_applications
def apply(
    request: Request,
    payload: OrganizationApplicationIn,
    db: Session = Depends(get_db),
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
):
    application = tenant_service.submit_application(db, dispatcher, payload)
    return OrganizationApplicationOut(
        message="Thank you! Your application has been received. We'll be in touch soon.",
        id=application.id,
    )
