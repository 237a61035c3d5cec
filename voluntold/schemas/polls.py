import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class PollCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    question: str = Field(min_length=1)
    poll_type: Literal["yes_no", "multiple_choice"] = "yes_no"
    options: list[str] = Field(default_factory=list)
    is_anonymous: bool = False
    target_all_members: bool = True
    target_groups: list[int] = Field(default_factory=list)
    expires_at: datetime.datetime | None = None

    @model_validator(mode="after")
    def _check_options(self) -> "PollCreate":
        cleaned = [o.strip() for o in self.options if o.strip()]
        if self.poll_type == "multiple_choice":
            if len(cleaned) < 2:
                raise ValueError("Multiple choice polls need at least two options")
            if len(set(cleaned)) != len(cleaned):
                raise ValueError("Poll options must be unique")
        else:
            cleaned = []
        self.options = cleaned
        return self


class PollOut(BaseModel):
    id: int
    tenant_id: int
    title: str
    question: str
    poll_type: str
    options: list[str]
    is_anonymous: bool
    status: str
    expires_at: datetime.datetime | None
    total_responses: int
    last_emailed_at: datetime.datetime | None

    model_config = ConfigDict(from_attributes=True)


class PollCreatedOut(PollOut):
    recipients: int


class VoteIn(BaseModel):
    response: str = Field(min_length=1)


class VoteOut(BaseModel):
    success: bool = True
    outcome: Literal["recorded", "unchanged", "changed"]
    response: str
    message: str


class VoteTokenOut(BaseModel):
    poll: PollOut
    member_name: str
    current_response: str | None


class PollResponseOut(BaseModel):
    member_email: str | None
    member_name: str | None
    response: str | None
    responded_at: datetime.datetime | None


class PollResultsOut(BaseModel):
    poll: PollOut
    counts: dict[str, int]
    not_responded: int
    responses: list[PollResponseOut]


class PollSendOut(BaseModel):
    message: str
    sent: int
    failed: int
    failed_emails: list[str]
    targeting_info: str
