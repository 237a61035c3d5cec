from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from voluntold.api.deps import PORTAL_COOKIE, get_portal_actor
from voluntold.core.config import get_settings
from voluntold.core.database import get_db
from voluntold.core.errors import NotFound
from voluntold.core.limiter import limit_link_requests
from voluntold.core.security import create_portal_session
from voluntold.models.tenants import UserProfile
from voluntold.schemas.polls import VoteIn, VoteOut
from voluntold.schemas.portal import MemberAccessIn, MemberAccessOut, PortalOut
from voluntold.schemas.signups import SignupConfirmOut
from voluntold.services import member_portal_service, poll_service, signup_service
from voluntold.services.authorization import ActingContext
from voluntold.services.email_service import EmailDispatcher, get_email_dispatcher

router = APIRouter(prefix="/portal", tags=["portal"])
settings = get_settings()


@router.post("/access", response_model=MemberAccessOut)
@limit_link_requests
def request_access(
    request: Request,
    payload: MemberAccessIn,
    db: Session = Depends(get_db),
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
):
    return member_portal_service.request_access(
        db, dispatcher, payload.email, payload.selected_tenant_id
    )


@router.post("/sessions/{token}", response_model=PortalOut)
def open_portal(token: str, db: Session = Depends(get_db)):
    """Exchange a single-use magic link for the portal view and a session."""
    profile, portal = member_portal_service.open_portal(db, token)
    session = create_portal_session(str(profile.id), profile.tenant_id)
    portal.session_token = session

    resp = JSONResponse(portal.model_dump(mode="json"))
    resp.headers["Cache-Control"] = "no-store"
    resp.set_cookie(
        key=PORTAL_COOKIE,
        value=session,
        httponly=True,
        secure=settings.app_env == "production",
        samesite="lax",
        max_age=settings.portal_session_min * 60,
        path="/",
    )
    return resp


@router.get("/me", response_model=PortalOut)
def portal_home(
    actor: ActingContext = Depends(get_portal_actor),
    db: Session = Depends(get_db),
):
    profile = db.get(UserProfile, actor.profile_id)
    if profile is None:
        raise NotFound("Member profile not found")
    return member_portal_service.build_portal(db, profile)


@router.post("/opportunities/{opportunity_id}/signup", response_model=SignupConfirmOut)
def signup(
    opportunity_id: int,
    actor: ActingContext = Depends(get_portal_actor),
    db: Session = Depends(get_db),
):
    return signup_service.signup_as_member(db, actor, opportunity_id)


@router.post("/polls/{poll_id}/vote", response_model=VoteOut)
def vote(
    poll_id: int,
    payload: VoteIn,
    actor: ActingContext = Depends(get_portal_actor),
    db: Session = Depends(get_db),
):
    return poll_service.vote_as_member(db, actor, poll_id, payload.response)


@router.post("/logout")
def logout():
    resp = JSONResponse({"message": "ok"})
    resp.headers["Cache-Control"] = "no-store"
    resp.delete_cookie(key=PORTAL_COOKIE, path="/")
    return resp
