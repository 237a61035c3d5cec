from pydantic import BaseModel, ConfigDict, EmailStr, Field


class TenantAdminIn(BaseModel):
    email: EmailStr
    first_name: str = ""
    last_name: str = ""


class TenantCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    slug: str = Field(min_length=1, max_length=100, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    admin: TenantAdminIn | None = None


class TenantOut(BaseModel):
    id: int
    name: str
    slug: str

    model_config = ConfigDict(from_attributes=True)


class TenantCreatedOut(TenantOut):
    admin_email_sent: bool | None = None


class OrganizationApplicationIn(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    phone: str = Field(min_length=1)
    club_name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    member_count: str = Field(min_length=1)
    community: str = Field(min_length=1)


class OrganizationApplicationOut(BaseModel):
    success: bool = True
    message: str
    id: int
