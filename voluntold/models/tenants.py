import datetime
from enum import StrEnum

from sqlalchemy import DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from voluntold.core.database import Base


class Role(StrEnum):
    member = "member"
    tenant_admin = "tenant_admin"
    super_admin = "super_admin"


ADMIN_ROLES = (Role.tenant_admin, Role.super_admin)


class Tenant(Base):
    __tablename__ = "tenants"

    id: Mapped[int] = mapped_column(primary_key=True, init=False)
    name: Mapped[str]
    slug: Mapped[str] = mapped_column(unique=True, index=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=func.now(),
        server_default=func.now(),
        init=False,
    )


class Credential(Base):
    """Password credential backing every admin profile with the same email."""

    __tablename__ = "credentials"

    id: Mapped[int] = mapped_column(primary_key=True, init=False)
    email: Mapped[str] = mapped_column(unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(repr=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=func.now(),
        server_default=func.now(),
        init=False,
    )
    updated_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )


class UserProfile(Base):
    __tablename__ = "user_profiles"

    id: Mapped[int] = mapped_column(primary_key=True, init=False)
    email: Mapped[str] = mapped_column(index=True)
    tenant_id: Mapped[int | None] = mapped_column(
        ForeignKey("tenants.id"), index=True, default=None
    )
    first_name: Mapped[str] = mapped_column(default="")
    last_name: Mapped[str] = mapped_column(default="")
    phone_number: Mapped[str | None] = mapped_column(default=None)
    position: Mapped[str | None] = mapped_column(default=None)
    address: Mapped[str | None] = mapped_column(default=None)
    role: Mapped[str] = mapped_column(default=Role.member.value, server_default="member")
    credential_id: Mapped[int | None] = mapped_column(
        ForeignKey("credentials.id"), default=None
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=func.now(),
        server_default=func.now(),
        init=False,
    )
    tenant: Mapped[Tenant | None] = relationship(init=False)

    __table_args__ = (
        UniqueConstraint("tenant_id", "email", name="uq_profile_tenant_email"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


class Group(Base):
    __tablename__ = "groups"

    id: Mapped[int] = mapped_column(primary_key=True, init=False)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), index=True)
    name: Mapped[str]
    description: Mapped[str | None] = mapped_column(default=None)


class GroupMember(Base):
    __tablename__ = "group_members"

    id: Mapped[int] = mapped_column(primary_key=True, init=False)
    group_id: Mapped[int] = mapped_column(ForeignKey("groups.id"), index=True)
    profile_id: Mapped[int] = mapped_column(ForeignKey("user_profiles.id"), index=True)

    __table_args__ = (
        UniqueConstraint("group_id", "profile_id", name="uq_group_member"),
    )


class OrganizationApplication(Base):
    __tablename__ = "organization_applications"

    id: Mapped[int] = mapped_column(primary_key=True, init=False)
    name: Mapped[str]
    email: Mapped[str]
    phone: Mapped[str]
    club_name: Mapped[str]
    description: Mapped[str]
    member_count: Mapped[str]
    community: Mapped[str]
    status: Mapped[str] = mapped_column(default="pending", server_default="pending")
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=func.now(),
        server_default=func.now(),
        init=False,
    )
