from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from voluntold.api.deps import get_actor
from voluntold.core.database import get_db
from voluntold.core.limiter import limit_link_requests
from voluntold.models.tokens import TokenPurpose
from voluntold.schemas.password_reset import (
    PasswordForgotIn,
    PasswordResetIn,
    PasswordSetOut,
    PasswordSetupIn,
    PasswordTokenOut,
)
from voluntold.services import password_service
from voluntold.services.authorization import ActingContext, Action, authorize
from voluntold.services.email_service import EmailDispatcher, get_email_dispatcher

router = APIRouter(prefix="/auth/password", tags=["auth"])


@router.post("/forgot")
@limit_link_requests
def forgot_password(
    request: Request,
    payload: PasswordForgotIn,
    db: Session = Depends(get_db),
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
):
    message = password_service.request_password_email(
        db, dispatcher, payload.email, TokenPurpose.admin_password_reset
    )
    return {"success": True, "message": message}


@router.post("/setup")
def send_setup_email(
    payload: PasswordSetupIn,
    db: Session = Depends(get_db),
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
    actor: ActingContext = Depends(get_actor),
):
    profiles = password_service.find_admin_profiles(db, payload.email)
    if profiles:
        authorize(actor, Action.manage_admins, profiles[0].tenant_id)
    message = password_service.request_password_email(
        db,
        dispatcher,
        payload.email,
        TokenPurpose(payload.purpose),
        created_by=actor.profile_id,
    )
    return {"success": True, "message": message}


@router.get("/tokens/{token}", response_model=PasswordTokenOut)
def inspect_token(token: str, db: Session = Depends(get_db)):
    return password_service.inspect_token(db, token)


@router.post("/set", response_model=PasswordSetOut)
def set_password(payload: PasswordResetIn, db: Session = Depends(get_db)):
    message, purpose = password_service.set_password(
        db,
        payload.token.get_secret_value(),
        payload.password.get_secret_value(),
    )
    return PasswordSetOut(message=message, token_type=purpose.value)
