import datetime

from pydantic import BaseModel, EmailStr


class SignupOpportunity(BaseModel):
    id: int
    title: str
    description: str | None
    date_scheduled: datetime.date | None
    time_start: datetime.time | None
    duration_hours: float | None
    volunteers_needed: int
    spots_remaining: int
    skills_required: list[str]
    location: str | None
    project_name: str


class SignupDetailsOut(BaseModel):
    member_name: str
    member_email: EmailStr
    opportunity: SignupOpportunity
    tenant_name: str
    token_status: str
    existing_signup: bool


class SignupConfirmOut(BaseModel):
    success: bool = True
    status: str
    message: str
