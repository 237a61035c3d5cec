from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from voluntold.api.deps import ACCESS_COOKIE, get_current_principal
from voluntold.core.config import get_settings
from voluntold.core.database import get_db
from voluntold.core.errors import NotFound
from voluntold.core.security import create_access
from voluntold.models.tenants import UserProfile
from voluntold.schemas.auth import LoginIn, LoginOut, ProfileOut, RoleCheckIn, RoleCheckOut
from voluntold.services import auth_service
from voluntold.services.authorization import SessionPrincipal

router = APIRouter(prefix="/auth", tags=["auth"])
settings = get_settings()


@router.post("/login", response_model=LoginOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    result = auth_service.admin_login(
        db,
        payload.email,
        payload.password.get_secret_value(),
        payload.selected_tenant_id,
    )

    resp = JSONResponse(result.body.model_dump(mode="json"))
    resp.headers["Cache-Control"] = "no-store"
    principal = result.principal
    if principal is not None:
        access = create_access(
            str(principal.profile_id), principal.role, principal.tenant_id
        )
        resp.set_cookie(
            key=ACCESS_COOKIE,
            value=access,
            httponly=True,
            secure=settings.app_env == "production",
            samesite="lax",
            max_age=settings.access_min * 60,
            path="/",
        )
    return resp


@router.post("/logout")
def logout():
    resp = JSONResponse({"message": "ok"})
    resp.headers["Cache-Control"] = "no-store"
    resp.delete_cookie(key=ACCESS_COOKIE, path="/")
    return resp


@router.get("/me", response_model=ProfileOut)
def me(
    principal: SessionPrincipal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    profile = db.get(UserProfile, principal.profile_id)
    if profile is None:
        raise NotFound("User not found")
    out = ProfileOut.model_validate(profile)
    out.tenant_id = principal.tenant_id
    return out


@router.post("/check-role", response_model=RoleCheckOut)
def check_role(payload: RoleCheckIn, db: Session = Depends(get_db)):
    return auth_service.check_role(db, payload.email)
