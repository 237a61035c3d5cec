from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from voluntold.core.database import get_db
from voluntold.schemas.polls import VoteIn, VoteOut, VoteTokenOut
from voluntold.services import poll_service

router = APIRouter(prefix="/vote", tags=["polls"])


@router.get("/{token}", response_model=VoteTokenOut)
def describe_vote(token: str, db: Session = Depends(get_db)):
    return poll_service.describe_vote(db, token)


@router.post("/{token}", response_model=VoteOut)
def cast_vote(token: str, payload: VoteIn, db: Session = Depends(get_db)):
    return poll_service.vote(db, token, payload.response)
