from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from voluntold.core.database import get_db
from voluntold.schemas.signups import SignupConfirmOut, SignupDetailsOut
from voluntold.services import signup_service

router = APIRouter(prefix="/signup", tags=["signups"])


@router.get("/{token}", response_model=SignupDetailsOut)
def describe_signup(token: str, db: Session = Depends(get_db)):
    return signup_service.describe(db, token)


@router.post("/{token}", response_model=SignupConfirmOut)
def confirm_signup(token: str, db: Session = Depends(get_db)):
    return signup_service.confirm(db, token)
