import datetime

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from voluntold.core.database import Base


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(primary_key=True, init=False)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), index=True)
    name: Mapped[str]
    description: Mapped[str | None] = mapped_column(default=None)
    target_all_members: Mapped[bool] = mapped_column(default=True)
    target_groups: Mapped[list[int]] = mapped_column(JSON, default_factory=list)


class Opportunity(Base):
    __tablename__ = "opportunities"

    id: Mapped[int] = mapped_column(primary_key=True, init=False)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), index=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id"), index=True)
    title: Mapped[str]
    volunteers_needed: Mapped[int]
    description: Mapped[str | None] = mapped_column(default=None)
    date_scheduled: Mapped[datetime.date | None] = mapped_column(default=None)
    time_start: Mapped[datetime.time | None] = mapped_column(default=None)
    duration_hours: Mapped[float | None] = mapped_column(default=None)
    location: Mapped[str | None] = mapped_column(default=None)
    skills_required: Mapped[list[str]] = mapped_column(JSON, default_factory=list)
    filled_count: Mapped[int] = mapped_column(default=0, server_default="0")
    project: Mapped[Project] = relationship(init=False)

    __table_args__ = (
        CheckConstraint(
            "filled_count <= volunteers_needed", name="ck_opportunity_capacity"
        ),
    )

    @property
    def spots_remaining(self) -> int:
        return max(self.volunteers_needed - self.filled_count, 0)


class Signup(Base):
    __tablename__ = "signups"

    id: Mapped[int] = mapped_column(primary_key=True, init=False)
    opportunity_id: Mapped[int] = mapped_column(
        ForeignKey("opportunities.id"), index=True
    )
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), index=True)
    member_email: Mapped[str] = mapped_column(index=True)
    member_name: Mapped[str] = mapped_column(default="")
    status: Mapped[str] = mapped_column(default="confirmed", server_default="confirmed")
    token_id: Mapped[int | None] = mapped_column(
        ForeignKey("access_tokens.id"), default=None
    )
    signed_up_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default_factory=_utcnow
    )
    opportunity: Mapped[Opportunity] = relationship(init=False)

    __table_args__ = (
        UniqueConstraint("opportunity_id", "member_email", name="uq_signup_member"),
    )


class HoursLog(Base):
    __tablename__ = "hours_logs"

    id: Mapped[int] = mapped_column(primary_key=True, init=False)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), index=True)
    member_email: Mapped[str] = mapped_column(index=True)
    hours: Mapped[float]
    project_id: Mapped[int | None] = mapped_column(
        ForeignKey("projects.id"), default=None
    )
    logged_on: Mapped[datetime.date] = mapped_column(
        default_factory=lambda: _utcnow().date()
    )
    description: Mapped[str | None] = mapped_column(default=None)
    project: Mapped[Project | None] = relationship(init=False)


class EmailBroadcast(Base):
    __tablename__ = "email_broadcasts"

    id: Mapped[int] = mapped_column(primary_key=True, init=False)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), index=True)
    broadcast_type: Mapped[str]
    recipient_count: Mapped[int]
    successful: Mapped[int]
    failed: Mapped[int]
    sent_by: Mapped[int | None] = mapped_column(
        ForeignKey("user_profiles.id"), default=None
    )
    opportunity_ids: Mapped[list[int]] = mapped_column(JSON, default_factory=list)
    poll_id: Mapped[int | None] = mapped_column(ForeignKey("polls.id"), default=None)
    targeting_summary: Mapped[str | None] = mapped_column(default=None)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=func.now(),
        server_default=func.now(),
        init=False,
    )
