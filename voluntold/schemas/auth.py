from pydantic import BaseModel, ConfigDict, EmailStr, Field, SecretStr


class LoginIn(BaseModel):
    email: EmailStr
    password: SecretStr
    selected_tenant_id: int | None = None


class OrganizationOption(BaseModel):
    tenant_id: int
    tenant_name: str
    tenant_slug: str
    role: str


class LoginOut(BaseModel):
    success: bool = True
    requires_org_selection: bool = False
    organizations: list[OrganizationOption] = Field(default_factory=list)
    tenant_id: int | None = None
    organization_name: str | None = None
    user_role: str | None = None


class ProfileOut(BaseModel):
    id: int
    email: EmailStr
    first_name: str
    last_name: str
    role: str
    tenant_id: int | None

    model_config = ConfigDict(from_attributes=True)


class RoleCheckIn(BaseModel):
    email: EmailStr


class AccessOption(BaseModel):
    id: str
    name: str
    access_type: str
    tenant_id: int | None = None


class RoleCheckOut(BaseModel):
    has_admin_access: bool
    has_member_access: bool
    access_options: list[AccessOption]
    total_options: int
