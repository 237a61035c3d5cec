import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class ProjectCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    target_all_members: bool = True
    target_groups: list[int] = Field(default_factory=list)


class ProjectOut(BaseModel):
    id: int
    tenant_id: int
    name: str
    description: str | None
    target_all_members: bool
    target_groups: list[int]

    model_config = ConfigDict(from_attributes=True)


class OpportunityCreate(BaseModel):
    project_id: int
    title: str = Field(min_length=1, max_length=200)
    volunteers_needed: int = Field(ge=1)
    description: str | None = None
    date_scheduled: datetime.date | None = None
    time_start: datetime.time | None = None
    duration_hours: float | None = Field(default=None, ge=0)
    location: str | None = None
    skills_required: list[str] = Field(default_factory=list)


class OpportunityOut(BaseModel):
    id: int
    tenant_id: int
    project_id: int
    title: str
    description: str | None
    date_scheduled: datetime.date | None
    time_start: datetime.time | None
    duration_hours: float | None
    location: str | None
    skills_required: list[str]
    volunteers_needed: int
    filled_count: int

    model_config = ConfigDict(from_attributes=True)


class BroadcastIn(BaseModel):
    opportunity_ids: list[int] = Field(min_length=1)


class BroadcastOut(BaseModel):
    success: bool = True
    message: str
    total: int
    successful: int
    failed: int
    opportunities: int
    projects: int
    targeting_summary: str


class HoursLogIn(BaseModel):
    member_email: EmailStr
    hours: float = Field(gt=0)
    project_id: int | None = None
    logged_on: datetime.date | None = None
    description: str | None = None


class HoursLogOut(BaseModel):
    id: int
    member_email: EmailStr
    hours: float
    project_id: int | None
    logged_on: datetime.date
    description: str | None

    model_config = ConfigDict(from_attributes=True)
