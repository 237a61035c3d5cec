from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator


class BulkImportIn(BaseModel):
    csv_text: str | None = None
    emails: str | None = None

    @model_validator(mode="after")
    def _one_source(self) -> "BulkImportIn":
        if not (self.csv_text or self.emails):
            raise ValueError("Provide csv_text or a comma-separated emails list")
        return self


class BulkImportOut(BaseModel):
    processed: int
    success: int
    skipped: int
    errors: int
    message: str


class MemberOut(BaseModel):
    id: int
    email: EmailStr
    first_name: str
    last_name: str
    phone_number: str | None
    position: str | None
    role: str
    tenant_id: int | None

    model_config = ConfigDict(from_attributes=True)


class ElevateIn(BaseModel):
    custom_message: str | None = Field(default=None, max_length=2000)


class ElevateOut(BaseModel):
    success: bool = True
    email_sent: bool
    message: str
    member: MemberOut


class GroupCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None


class GroupOut(BaseModel):
    id: int
    tenant_id: int
    name: str
    description: str | None

    model_config = ConfigDict(from_attributes=True)


class GroupMembersIn(BaseModel):
    profile_ids: list[int] = Field(min_length=1)


class GroupMembersOut(BaseModel):
    added: int
    already_members: int
