import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from voluntold.core.database import Base

YES_NO_OPTIONS = ("yes", "no")


class Poll(Base):
    __tablename__ = "polls"

    id: Mapped[int] = mapped_column(primary_key=True, init=False)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), index=True)
    title: Mapped[str]
    question: Mapped[str]
    poll_type: Mapped[str] = mapped_column(default="yes_no")
    options: Mapped[list[str]] = mapped_column(JSON, default_factory=list)
    is_anonymous: Mapped[bool] = mapped_column(default=False)
    target_all_members: Mapped[bool] = mapped_column(default=True)
    target_groups: Mapped[list[int]] = mapped_column(JSON, default_factory=list)
    status: Mapped[str] = mapped_column(default="active", server_default="active")
    expires_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    total_responses: Mapped[int] = mapped_column(default=0, server_default="0")
    last_emailed_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    created_by: Mapped[int | None] = mapped_column(
        ForeignKey("user_profiles.id"), default=None
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=func.now(),
        server_default=func.now(),
        init=False,
    )

    @validates("is_anonymous")
    def _freeze_anonymity(self, key: str, value: bool) -> bool:
        state = sa_inspect(self)
        if state.persistent and value != self.is_anonymous:
            raise ValueError("Poll anonymity cannot be changed after creation")
        return value

    @property
    def allowed_responses(self) -> tuple[str, ...]:
        if self.poll_type == "yes_no":
            return YES_NO_OPTIONS
        return tuple(self.options)


class PollResponse(Base):
    __tablename__ = "poll_responses"

    id: Mapped[int] = mapped_column(primary_key=True, init=False)
    poll_id: Mapped[int] = mapped_column(ForeignKey("polls.id"), index=True)
    member_email: Mapped[str] = mapped_column(index=True)
    member_name: Mapped[str] = mapped_column(default="")
    response: Mapped[str | None] = mapped_column(default=None)
    responded_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    updated_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    token_id: Mapped[int | None] = mapped_column(
        ForeignKey("access_tokens.id"), default=None
    )
    poll: Mapped[Poll] = relationship(init=False)

    __table_args__ = (
        UniqueConstraint("poll_id", "member_email", name="uq_poll_response_member"),
    )
