import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class MemberAccessIn(BaseModel):
    email: EmailStr
    selected_tenant_id: int | None = None


class MemberOrganization(BaseModel):
    tenant_id: int
    tenant_name: str


class MemberAccessOut(BaseModel):
    success: bool = True
    message: str | None = None
    requires_org_selection: bool = False
    organizations: list[MemberOrganization] = Field(default_factory=list)


class MemberInfo(BaseModel):
    id: int
    email: EmailStr
    first_name: str
    last_name: str
    phone_number: str | None
    position: str | None
    tenant_id: int

    model_config = ConfigDict(from_attributes=True)


class TenantInfo(BaseModel):
    id: int
    name: str
    slug: str

    model_config = ConfigDict(from_attributes=True)


class UpcomingOpportunity(BaseModel):
    id: int
    title: str
    project_name: str
    date_scheduled: datetime.date | None
    time_start: datetime.time | None
    duration_hours: float | None
    volunteers_needed: int
    filled_count: int
    spots_remaining: int
    is_signed_up: bool
    location: str | None


class ProjectHours(BaseModel):
    project_name: str
    hours: float


class HoursBreakdown(BaseModel):
    lifetime_total: float
    this_year_total: float
    opportunity_hours: float
    additional_hours: float
    projects: list[ProjectHours]


class PortalPoll(BaseModel):
    id: int
    title: str
    question: str
    poll_type: str
    options: list[str]
    expires_at: datetime.datetime | None
    has_responded: bool
    member_response: str | None


class RosterMember(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: EmailStr
    phone_number: str | None
    position: str | None

    model_config = ConfigDict(from_attributes=True)


class PortalOut(BaseModel):
    member: MemberInfo
    tenant: TenantInfo
    upcoming_opportunities: list[UpcomingOpportunity]
    hours: HoursBreakdown
    active_polls: list[PortalPoll]
    roster: list[RosterMember]
    session_token: str | None = None
