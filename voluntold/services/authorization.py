"""Who is acting, and may they do this to that tenant.

Admins authenticate with a session (JWT); members act through capability
tokens. Both become an ActingContext so handlers treat them the same way.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum

from voluntold.core.errors import Forbidden
from voluntold.models.tenants import Role, UserProfile
from voluntold.models.tokens import AccessToken


class Action(StrEnum):
    manage_members = "manage_members"
    manage_projects = "manage_projects"
    manage_polls = "manage_polls"
    send_broadcasts = "send_broadcasts"
    manage_admins = "manage_admins"
    manage_tenants = "manage_tenants"


SUPER_ADMIN_ONLY = frozenset({Action.manage_tenants})

ADMIN_SCOPE = "admin"
PORTAL_SCOPE = "portal"


@dataclass(frozen=True)
class ActingContext:
    email: str
    tenant_id: int | None
    scope: str
    role: str
    profile_id: int | None = None


class Authenticator(ABC):
    @abstractmethod
    def acting_context(self) -> ActingContext: ...


@dataclass(frozen=True)
class SessionPrincipal(Authenticator):
    profile_id: int
    email: str
    role: str
    tenant_id: int | None
    scope: str = ADMIN_SCOPE

    @classmethod
    def from_profile(
        cls, profile: UserProfile, *, tenant_id: int | None = None, scope: str = ADMIN_SCOPE
    ) -> "SessionPrincipal":
        return cls(
            profile_id=profile.id,
            email=profile.email,
            role=profile.role,
            tenant_id=tenant_id if tenant_id is not None else profile.tenant_id,
            scope=scope,
        )

    def acting_context(self) -> ActingContext:
        return ActingContext(
            email=self.email,
            tenant_id=self.tenant_id,
            scope=self.scope,
            role=self.role,
            profile_id=self.profile_id,
        )


@dataclass(frozen=True)
class TokenCapability(Authenticator):
    email: str
    tenant_id: int | None
    purpose: str
    context_ref: int | None = None

    @classmethod
    def from_token(cls, token: AccessToken) -> "TokenCapability":
        return cls(
            email=token.subject_email,
            tenant_id=token.tenant_id,
            purpose=token.purpose,
            context_ref=token.context_ref,
        )

    def acting_context(self) -> ActingContext:
        return ActingContext(
            email=self.email,
            tenant_id=self.tenant_id,
            scope=self.purpose,
            role=Role.member.value,
        )


def authorize(actor: ActingContext, action: Action, tenant_id: int | None) -> None:
    """Raise Forbidden unless the actor may perform `action` on `tenant_id`."""
    if actor.scope != ADMIN_SCOPE:
        raise Forbidden("Administrator access required")

    if actor.role == Role.super_admin:
        return

    if actor.role != Role.tenant_admin or action in SUPER_ADMIN_ONLY:
        raise Forbidden("Insufficient permissions")

    if tenant_id is None or actor.tenant_id != tenant_id:
        raise Forbidden("You do not have access to this organization")
