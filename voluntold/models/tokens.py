import datetime
from enum import StrEnum

from sqlalchemy import DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from voluntold.core.database import Base


class TokenPurpose(StrEnum):
    member_portal_access = "member_portal_access"
    admin_password_setup = "admin_password_setup"
    admin_password_reset = "admin_password_reset"
    opportunity_signup = "opportunity_signup"
    poll_response = "poll_response"


class AccessToken(Base):
    __tablename__ = "access_tokens"

    id: Mapped[int] = mapped_column(primary_key=True, init=False)
    token_hash: Mapped[str] = mapped_column(unique=True, index=True, repr=False)
    purpose: Mapped[str] = mapped_column(index=True)
    subject_email: Mapped[str] = mapped_column(index=True)
    expires_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True))
    issued_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True))
    tenant_id: Mapped[int | None] = mapped_column(
        ForeignKey("tenants.id"), index=True, default=None
    )
    context_ref: Mapped[int | None] = mapped_column(default=None)
    subject_name: Mapped[str | None] = mapped_column(default=None)
    created_by: Mapped[int | None] = mapped_column(
        ForeignKey("user_profiles.id"), default=None
    )
    consumed_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
